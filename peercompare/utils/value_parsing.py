"""Scalar value parsing shared by every layer of the engine.

Providers hand us numbers, numeric strings, unit-suffixed strings ("1.2B"),
currency strings ("$1,234.56") and sentinel placeholders ("N/A").  Everything
here is stateless and never raises: an unparseable value is simply ``None``.
"""

import math
import re
from typing import Any, Mapping, Optional

# Placeholders providers use for "no data"
NULL_VALUES: frozenset = frozenset({"N/A", "None", "-", ""})

UNIT_MULTIPLIERS: dict[str, float] = {
    "t": 1e12,
    "trillion": 1e12,
    "b": 1e9,
    "bil": 1e9,
    "billion": 1e9,
    "m": 1e6,
    "mil": 1e6,
    "million": 1e6,
    "k": 1e3,
    "thou": 1e3,
    "thousand": 1e3,
}

_UNIT_PATTERN = re.compile(
    r"^([-+]?\d*\.?\d+(?:[eE][-+]?\d+)?)\s*"
    r"(trillion|billion|million|thousand|thou|bil|mil|t|b|m|k)?$",
    re.IGNORECASE,
)
_NON_NUMERIC = re.compile(r"[^0-9.eE+\-]")


def is_finite_number(value: Any) -> bool:
    """True for int/float values that are neither NaN nor infinite.

    >>> is_finite_number(3.5)
    True
    >>> is_finite_number(float("nan"))
    False
    >>> is_finite_number(True)
    False
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _to_float(text: str) -> Optional[float]:
    try:
        num = float(text)
    except (TypeError, ValueError, OverflowError):
        return None
    return num if math.isfinite(num) else None


def parse_numeric_value(raw: Any) -> Optional[float]:
    """Convert a provider value to a finite number.

    >>> parse_numeric_value("1.5B")
    1500000000.0
    >>> parse_numeric_value("$1,234.56")
    1234.56
    >>> parse_numeric_value("N/A") is None
    True
    >>> parse_numeric_value(42)
    42
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float)):
        return raw if math.isfinite(raw) else None

    if not isinstance(raw, str):
        return None

    text = raw.strip()
    if text in NULL_VALUES:
        return None

    direct = _to_float(text)
    if direct is not None:
        return direct

    cleaned = text.replace("$", "").replace(",", "").strip()
    match = _UNIT_PATTERN.match(cleaned)
    if match:
        number = _to_float(match.group(1))
        if number is not None:
            unit = (match.group(2) or "").lower()
            result = number * UNIT_MULTIPLIERS.get(unit, 1.0)
            return result if math.isfinite(result) else None

    return _to_float(_NON_NUMERIC.sub("", cleaned))


def parse_string(raw: Any) -> Optional[str]:
    """Trimmed string for display, ``None`` for placeholders.

    >>> parse_string("  Apple Inc. ")
    'Apple Inc.'
    >>> parse_string("N/A") is None
    True
    >>> parse_string(12.5)
    '12.5'
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        trimmed = raw.strip()
        return None if trimmed in NULL_VALUES else trimmed
    if isinstance(raw, (bool, int, float)):
        return str(raw)
    return None


def is_valid_value(raw: Any) -> bool:
    """Whether *raw* is meaningfully present.

    Empty strings, sentinels and empty mappings never count as present.

    >>> is_valid_value("-")
    False
    >>> is_valid_value({})
    False
    >>> is_valid_value(0)
    True
    """
    if raw is None:
        return False
    if isinstance(raw, str):
        return raw.strip() not in NULL_VALUES
    if isinstance(raw, Mapping):
        return len(raw) > 0
    return True
