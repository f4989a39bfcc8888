"""
Random code generators: pure, side-effect-free functions.

Every generator draws from the ``secrets`` module (the OS secure random
source). There is no seeded or time-based fallback: if the source is missing
GeneratorUnavailableError is raised and issuance must abort.
"""

from __future__ import annotations

import secrets

from errors import GeneratorUnavailableError

MFA_CODE_MIN = 100000
MFA_CODE_MAX = 999999

RECOVERY_CODE_BYTES = 6  # 12 hex characters, 48 bits
RECOVERY_CODE_GROUP_SIZE = 4


def generate_mfa_code(low: int = MFA_CODE_MIN, high: int = MFA_CODE_MAX) -> str:
    """Generate a numeric code uniformly distributed over ``[low, high]``.

    Args:
        low: Smallest value that may be produced (inclusive).
        high: Largest value that may be produced (inclusive).

    Returns:
        Decimal string zero-padded to the width of *high*.
    """
    if low < 0 or low > high:
        raise ValueError(f"invalid code range [{low}, {high}]")
    try:
        value = low + secrets.randbelow(high - low + 1)
    except (NotImplementedError, OSError) as e:
        raise GeneratorUnavailableError("Secure random source unavailable") from e
    return str(value).zfill(len(str(high)))


def canonicalize_recovery_code(code: str) -> str:
    """Return the canonical form used for hashing: no dashes or spaces, uppercase."""
    return "".join(ch for ch in code if ch not in "- \t\r\n").upper()


def format_recovery_code(
    canonical: str, group_size: int = RECOVERY_CODE_GROUP_SIZE
) -> str:
    """Split a canonical code into dash-separated groups for display."""
    return "-".join(
        canonical[i : i + group_size] for i in range(0, len(canonical), group_size)
    )


def generate_recovery_code(
    num_bytes: int = RECOVERY_CODE_BYTES, group_size: int = RECOVERY_CODE_GROUP_SIZE
) -> str:
    """Generate a recovery code formatted as ``XXXX-XXXX-XXXX``.

    The dashes are presentation only; pass the result through
    canonicalize_recovery_code() before hashing or comparing.
    """
    try:
        raw = secrets.token_bytes(num_bytes)
    except (NotImplementedError, OSError) as e:
        raise GeneratorUnavailableError("Secure random source unavailable") from e
    return format_recovery_code(raw.hex().upper(), group_size)


def generate_recovery_codes(
    count: int,
    num_bytes: int = RECOVERY_CODE_BYTES,
    group_size: int = RECOVERY_CODE_GROUP_SIZE,
) -> list[str]:
    """Generate *count* independent recovery codes."""
    if count < 1:
        raise ValueError("count must be positive")
    return [generate_recovery_code(num_bytes, group_size) for _ in range(count)]
