"""
Numeric coercion helpers.

Quantities reach us from the database, from JSON bodies and from older
imported rows, so they can be None, strings, Decimals or garbage. These
helpers turn all of that into plain floats without ever raising.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def to_number(value: Any) -> Optional[float]:
    """
    Coerce a value to a finite float.

    Returns:
        The float value, or None for None, blanks, non-numeric strings,
        NaN and infinities.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, Decimal):
        try:
            number = float(value)
        except (InvalidOperation, OverflowError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except (OverflowError, ValueError):
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    return number


def to_float(value: Any, default: float = 0.0) -> float:
    """Coerce a value to a finite float, falling back to `default`."""
    number = to_number(value)
    return default if number is None else number


def to_int_or_none(value: Any) -> Optional[int]:
    """Coerce an id-like value to int, or None when it is not integral."""
    number = to_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)
