"""
Normalization of nullable legacy column values.

Every helper maps NULL, empty and malformed values to a defined default so
aggregates never carry a ``None`` where the document model expects a value.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from storemigrate.documents import EPOCH, OpaqueDocument


def as_int(value: Any, default: int = 0) -> int:
    """
    Coerce a column value to int.

    Examples:
        >>> as_int(None)
        0
        >>> as_int("12")
        12
        >>> as_int("", default=1)
        1
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return int(value)
    try:
        return int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError):
        return default


def as_float(value: Any, default: float = 0.0) -> float:
    """Coerce a column value (often a DECIMAL) to float."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def as_bool(value: Any) -> bool:
    """
    Interpret a TINYINT flag column.

    Only 1 (or "1", or True) is true; NULL and every other value is false.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    return as_int(value, default=0) == 1


def as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    text = str(value)
    return text if text else default


def as_datetime(value: Any, default: datetime = EPOCH) -> datetime:
    """
    Coerce a DATE/DATETIME column to an aware UTC datetime.

    MySQL zero dates ("0000-00-00") and unparseable strings map to the
    default. Naive values are taken to be UTC.
    """
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = as_str(value).strip()
        if text.startswith("0000-00-00"):
            return default
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return default
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def as_id_list(value: Any) -> list[int]:
    """
    Parse a comma-separated id list (e.g. the legacy ``wishlist`` column).

    Zeros and non-numeric entries are dropped.

    Examples:
        >>> as_id_list("3,5,,x,0,9")
        [3, 5, 9]
    """
    if value is None:
        return []
    ids = []
    for part in as_str(value).split(","):
        number = as_int(part.strip(), default=0)
        if number:
            ids.append(number)
    return ids


def as_opaque(value: Any) -> OpaqueDocument:
    return OpaqueDocument.parse(value)


def first_non_empty(*values: Any, default: str = "") -> str:
    """Return the first value that normalizes to a non-empty string."""
    for value in values:
        text = as_str(value)
        if text:
            return text
    return default


__all__ = [
    "as_bool",
    "as_datetime",
    "as_float",
    "as_id_list",
    "as_int",
    "as_opaque",
    "as_str",
    "first_non_empty",
]
