# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database migrations package.

Alembic migrations for the LearnLedger database (courses, interactions,
CPE audit logs and certificates).
"""
