# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware components.

This package provides request processing components:
- AuthMiddleware: JWT authentication.
- limiter: slowapi rate limiter.
- enforce_cpe_compliance: Compliance gate for CPE course content.

CPE compliance lives in src.api.middleware.cpe_compliance and is imported
from there directly, since it depends on src.api.dependencies.

Exports:
    AuthMiddleware: JWT authentication middleware.
    CurrentUser: Authenticated user.
    limiter: Rate limiter instance.
"""

from src.api.middleware.auth import AuthMiddleware, CurrentUser
from src.api.middleware.rate_limit import limiter

__all__ = [
    "AuthMiddleware",
    "CurrentUser",
    "limiter",
]
