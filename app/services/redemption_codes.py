from __future__ import annotations

import re
import secrets

ALPHABET = "ABCDEFGHJKMNPQRSTVWXYZ23456789"
PURCHASE_CODE_LENGTH = 6
DISCOUNT_CODE_LENGTH = 12

_NON_ALNUM_PATTERN = re.compile(r"[^A-Z0-9]")
_AMBIGUOUS_PATTERN = re.compile(r"[O0I1L]")


def generate_code(length: int = PURCHASE_CODE_LENGTH) -> str:
    """Generates a human-typable bearer code with no look-alike characters."""
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def sanitize_code(raw_code: str) -> str:
    normalized = _NON_ALNUM_PATTERN.sub("", raw_code.upper())
    return _AMBIGUOUS_PATTERN.sub("", normalized)
