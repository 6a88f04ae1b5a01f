# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Platform role tags and the RoleSet value type.

Roles are stored as a JSON list but always handled as a set: adding a
role that is already present is a no-op, order never matters.

Example:
    >>> roles = RoleSet(["docente"]).add(ESTUDIANTE)
    >>> ESTUDIANTE in roles
    True
    >>> roles.to_list()
    ['docente', 'estudiante']
"""

from collections.abc import Iterable, Iterator

ESTUDIANTE = "estudiante"
ALUMNO = "alumno"
DOCENTE = "docente"
NODOCENTE = "nodocente"
ADMIN_INSTITUCION = "admin-institucion"
ADMIN_PLATAFORMA = "admin-plataforma"
SUPERVISOR = "supervisor"

# Roles stripped from an identity only through explicit pruning
ADMINISTRATIVE_ROLES = frozenset({ADMIN_INSTITUCION})


def _clean(role: str) -> str:
    return role.strip().lower()


class RoleSet:
    """Immutable set of role tags.

    Tags are stripped and lower-cased on the way in; blank tags are dropped.
    """

    __slots__ = ("_roles",)

    def __init__(self, roles: Iterable[str] | None = None) -> None:
        self._roles = frozenset(
            _clean(role) for role in (roles or ()) if isinstance(role, str) and role.strip()
        )

    def __contains__(self, role: object) -> bool:
        return isinstance(role, str) and _clean(role) in self._roles

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._roles))

    def __len__(self) -> int:
        return len(self._roles)

    def __bool__(self) -> bool:
        return bool(self._roles)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RoleSet):
            return self._roles == other._roles
        if isinstance(other, (set, frozenset)):
            return self._roles == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._roles)

    def __repr__(self) -> str:
        return f"RoleSet({self.to_list()!r})"

    def add(self, role: str) -> "RoleSet":
        """Return a set that also holds ``role``."""
        return RoleSet(self._roles | {_clean(role)})

    def remove(self, role: str) -> "RoleSet":
        """Return a set without ``role``. Missing roles are ignored."""
        return RoleSet(self._roles - {_clean(role)})

    def intersects(self, roles: Iterable[str]) -> bool:
        return any(role in self for role in roles)

    def to_list(self) -> list[str]:
        """Storage form: sorted list."""
        return sorted(self._roles)
