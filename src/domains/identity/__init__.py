# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity domain package.

This package provides the allow-list + profile pair tracking which emails
may access the platform and their accumulated roles.
"""

from src.domains.identity.roles import (
    ADMIN_INSTITUCION,
    ADMIN_PLATAFORMA,
    ADMINISTRATIVE_ROLES,
    ALUMNO,
    DOCENTE,
    ESTUDIANTE,
    NODOCENTE,
    SUPERVISOR,
    RoleSet,
)
from src.domains.identity.service import Identity, IdentityStore

__all__ = [
    "ADMIN_INSTITUCION",
    "ADMIN_PLATAFORMA",
    "ADMINISTRATIVE_ROLES",
    "ALUMNO",
    "DOCENTE",
    "ESTUDIANTE",
    "NODOCENTE",
    "SUPERVISOR",
    "Identity",
    "IdentityStore",
    "RoleSet",
]
