"""
Value coercion - tolerant text to number/bool conversion.

Every parser returns None on failure. Callers treat None as "leave the
destination unchanged and do nothing else for this field".
"""

from __future__ import annotations

import math
from typing import Optional


def parse_int(text: str) -> Optional[int]:
    """
    Parse an integer, accepting a float and rounding it half away from zero.

    Some firmware versions send "25.0" for integer fields.
    """
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass

    f = parse_float(text)
    if f is None or math.isinf(f):
        return None
    return int(f - 0.5) if f < 0.0 else int(f + 0.5)


def parse_uint(text: str) -> Optional[int]:
    """Parse a non-negative integer. No float fallback."""
    if not text:
        return None
    try:
        value = int(text)
    except ValueError:
        return None
    return value if value >= 0 else None


def parse_float(text: str) -> Optional[float]:
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if math.isnan(value):
        return None
    return value


def parse_bool(text: str) -> Optional[bool]:
    """Case-insensitive "true" is True, anything else False. Empty fails."""
    if not text:
        return None
    return text.lower() == "true"
