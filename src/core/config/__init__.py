# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for the roster engine.

Example:
    >>> from src.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.roster.provision_accounts
    False
"""

from src.core.config.settings import (
    APISettings,
    CORSSettings,
    DatabaseSettings,
    ExtractionSettings,
    IdentityProviderSettings,
    RosterSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "APISettings",
    "CORSSettings",
    "DatabaseSettings",
    "ExtractionSettings",
    "IdentityProviderSettings",
    "RosterSettings",
    "Settings",
    "clear_settings_cache",
    "get_settings",
]
