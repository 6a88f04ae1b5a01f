# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer for storage and external collaborators.

This package contains:
- Database connections, ORM models and migrations
- Identity provider client (hosted auth admin API)
- Text extraction client (LiteLLM)
"""
