# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Identity provider collaborator package."""

from src.infrastructure.identity_provider.client import (
    Account,
    HostedAuthAdminClient,
    IdentityProvider,
    Principal,
)

__all__ = [
    "Account",
    "HostedAuthAdminClient",
    "IdentityProvider",
    "Principal",
]
