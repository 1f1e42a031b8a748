# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Record the token method on each certificate.

Certificates keep verifying after the configured verification method
changes. Existing rows were signed with the legacy method.

Revision ID: 002_certificate_verification_method
Revises: 001_initial_cpe_schema
Create Date: 2025-11-17
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "002_certificate_verification_method"
down_revision: Union[str, None] = "001_initial_cpe_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add cpe_certificates.verification_method."""
    op.add_column(
        "cpe_certificates",
        sa.Column(
            "verification_method",
            sa.String(10),
            server_default="legacy",
            nullable=False,
        ),
    )
    op.create_check_constraint(
        "ck_cpe_certificates_verification_method",
        "cpe_certificates",
        "verification_method IN ('legacy', 'hmac')",
    )


def downgrade() -> None:
    """Drop cpe_certificates.verification_method."""
    op.drop_constraint(
        "ck_cpe_certificates_verification_method",
        "cpe_certificates",
        type_="check",
    )
    op.drop_column("cpe_certificates", "verification_method")
