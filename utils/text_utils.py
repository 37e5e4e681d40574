"""
Text utilities for comparing spreadsheet values with stored values.

One normalization rule is used everywhere: None, absent, empty and
whitespace-only values are all the same "no value".
"""

import re
import unicodedata
from typing import Any, Optional

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_optional(value: Any) -> Optional[str]:
    """
    Normalize an optional cell/column value for comparison.

    - None, "" and "   " → None
    - "  Front " → "Front"
    - 12345 → "12345"

    Args:
        value: Raw value from a row or stored record

    Returns:
        Trimmed string, or None if there is no value
    """
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def is_blank(value: Any) -> bool:
    """True when the value normalizes to no value."""
    return normalize_optional(value) is None


def fold_key(value: Any) -> Optional[str]:
    """
    Case- and spacing-insensitive form of a business key.

    Only used to detect near-misses for warnings; matching itself is
    exact on the trimmed key.

    - "acr  10-001 " → "acr 10-001"
    """
    text = normalize_optional(value)
    if text is None:
        return None
    text = unicodedata.normalize("NFC", text)
    return _WHITESPACE_RE.sub(" ", text).casefold()


def parse_year(value: Any) -> Optional[int]:
    """
    Parse a year cell.

    Accepts ints, integral floats (2020.0) and digit strings ("2020").
    Returns None for blanks and for anything that is not a whole number.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = str(value).strip()
    if re.fullmatch(r"-?\d+", text):
        return int(text)
    if re.fullmatch(r"-?\d+\.0+", text):
        return int(text.split(".")[0])
    return None
