# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Institution domain package.

Institution-admin grants and role pruning.
"""

from src.domains.institution.service import InstitutionAdminService

__all__ = [
    "InstitutionAdminService",
]
