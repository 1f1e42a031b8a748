# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Certificate numbers and verification tokens.

Certificate numbers look like ``CPE-LX2Q8K1C-7Z0QF3`` (prefix, base-36
epoch milliseconds, six random base-36 characters). They are not globally
unique; the database enforces uniqueness and issuance retries on conflict.

Verification tokens bind a certificate to its learner, course, credit
amount and issue instant. Two methods exist:

- ``legacy``: base64 of the hyphen-joined fields, truncated. A display
  checksum that anyone can recompute.
- ``hmac``: HMAC-SHA256 of the same fields under a server-held secret,
  truncated. Cannot be produced without the secret.
"""

import base64
import hashlib
import hmac
import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal

from src.domains.cpe.credits import format_credits
from src.utils.datetime import to_epoch_millis, utc_from_millis, utc_now

TOKEN_LENGTH = 32
RANDOM_PART_LENGTH = 6

_BASE36_ALPHABET = string.digits + string.ascii_uppercase

VerificationMethod = Literal["legacy", "hmac"]


def to_base36(value: int) -> str:
    """Encode a non-negative integer in upper-case base 36."""
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"

    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


@dataclass(frozen=True)
class CertificateNumberParts:
    """Components of a parsed certificate number."""

    prefix: str
    issued_at: datetime
    random_part: str


def generate_certificate_number(prefix: str = "CPE", issued_at: datetime | None = None) -> str:
    """Generate a human-readable certificate number.

    Args:
        prefix: Leading token of the number.
        issued_at: Instant encoded in the time component (defaults to now).

    Returns:
        Upper-cased number in the form PREFIX-TIME36-RANDOM6.
    """
    millis = to_epoch_millis(issued_at or utc_now())
    random_part = "".join(
        secrets.choice(_BASE36_ALPHABET) for _ in range(RANDOM_PART_LENGTH)
    )
    return f"{prefix}-{to_base36(millis)}-{random_part}".upper()


def parse_certificate_number(value: str) -> CertificateNumberParts:
    """Split a certificate number into its components.

    Args:
        value: Certificate number.

    Returns:
        Parsed parts.

    Raises:
        ValueError: If the number is malformed.
    """
    parts = value.strip().upper().split("-")
    if len(parts) != 3:
        raise ValueError(f"Malformed certificate number: {value!r}")

    prefix, time_part, random_part = parts
    if not prefix or len(random_part) != RANDOM_PART_LENGTH:
        raise ValueError(f"Malformed certificate number: {value!r}")
    if any(ch not in _BASE36_ALPHABET for ch in time_part + random_part):
        raise ValueError(f"Malformed certificate number: {value!r}")

    return CertificateNumberParts(
        prefix=prefix,
        issued_at=utc_from_millis(int(time_part, 36)),
        random_part=random_part,
    )


def _canonical_fields(
    learner_id: str,
    course_id: str,
    credits: Decimal,
    issued_at: datetime,
) -> str:
    return f"{learner_id}-{course_id}-{format_credits(credits)}-{to_epoch_millis(issued_at)}"


def generate_verification_token(
    learner_id: str,
    course_id: str,
    credits: Decimal,
    issued_at: datetime,
    *,
    method: VerificationMethod = "legacy",
    secret: str | None = None,
) -> str:
    """Build the verification token for a certificate.

    Args:
        learner_id: Certificate holder.
        course_id: Course the credits were earned in.
        credits: Credits awarded.
        issued_at: Certificate issue instant (millisecond precision).
        method: "legacy" or "hmac".
        secret: Server-held key, required for "hmac".

    Returns:
        Token of TOKEN_LENGTH characters.

    Raises:
        ValueError: If method is unknown or "hmac" is used without a secret.
    """
    payload = _canonical_fields(learner_id, course_id, credits, issued_at).encode("utf-8")

    if method == "legacy":
        return base64.b64encode(payload).decode("ascii")[:TOKEN_LENGTH]

    if method == "hmac":
        if not secret:
            raise ValueError("HMAC verification tokens require a secret")
        digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
        return digest[:TOKEN_LENGTH]

    raise ValueError(f"Unknown verification method: {method!r}")


def verify_verification_token(
    token: str,
    learner_id: str,
    course_id: str,
    credits: Decimal,
    issued_at: datetime,
    *,
    method: VerificationMethod = "legacy",
    secret: str | None = None,
) -> bool:
    """Check a token against the fields it claims to bind.

    Returns:
        True if the token matches the recomputed value.
    """
    expected = generate_verification_token(
        learner_id,
        course_id,
        credits,
        issued_at,
        method=method,
        secret=secret,
    )
    return hmac.compare_digest(expected.encode("utf-8"), token.encode("utf-8"))
