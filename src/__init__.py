"""LearnLedger CPE Compliance Service.

Continuing Professional Education compliance for a learning management
system: credit calculation, assessment gating, audit trail and
certificate issuance.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
