# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for LearnLedger.

This package contains domain services that encapsulate business logic.

Domains:
    auth: JWT token handling.
    cpe: CPE credits, compliance gate, completion recording and reporting.
    interaction: Learner interaction history.
"""
