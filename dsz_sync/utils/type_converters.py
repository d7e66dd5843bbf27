"""
Type converters — lenient numeric parsing for supplier record values.

Supplier payloads mix numbers, numeric strings, empty strings and nulls.
Version: 1.0.0
"""
from typing import Any, Optional


def to_float(value: Any) -> Optional[float]:
    """Convert value to float, returning None if missing or unparsable."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def to_positive_float(value: Any) -> Optional[float]:
    """Convert value to float, returning None unless it is > 0."""
    val = to_float(value)
    return val if val is not None and val > 0 else None


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Convert value to int (via float, so "12.0" parses), or default."""
    val = to_float(value)
    if val is None:
        return default
    return int(val)
