"""
Driver Result Normalization

MySQL drivers hand back COUNT(*) results in several shapes depending on
query type and client: a flat list of rows, a list whose first element is
the row list (``[rows, fields]``), a ``(rows, fields)`` tuple, or a
SQLAlchemy Result. Every call site goes through these two functions
instead of unwrapping results by hand.
"""

import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Union

logger = logging.getLogger(__name__)

Number = Union[int, float]


def _row_to_mapping(row: Any) -> Any:
    # SQLAlchemy Row exposes ._mapping; plain dicts pass through
    mapping = getattr(row, "_mapping", None)
    if mapping is not None:
        return dict(mapping)
    return row


def normalize_rows(result: Any) -> List[Any]:
    """
    Return the list of rows from any supported result shape.

    Accepts T[], T[][] / [T[], fields], (T[], fields), SQLAlchemy Result
    objects (anything with .mappings()) and a single mapping. Anything else
    yields an empty list.
    """
    if result is None:
        return []

    if hasattr(result, "mappings") and callable(result.mappings):
        return [dict(row) for row in result.mappings().all()]

    if isinstance(result, Mapping):
        return [dict(result)]

    if isinstance(result, (list, tuple)):
        if not result:
            return []
        first = result[0]
        # Nested shape: the first element is itself the row list
        if isinstance(first, (list, tuple)) and not hasattr(first, "_mapping"):
            return [_row_to_mapping(row) for row in first]
        return [_row_to_mapping(row) for row in result]

    return []


def coerce_number(value: Any) -> Number:
    """Coerce int/float/Decimal/numeric string to a finite number, else 0."""
    if value is None or isinstance(value, bool):
        return 0

    if isinstance(value, int):
        return value

    if isinstance(value, (float, Decimal)):
        number = float(value)
    elif isinstance(value, (str, bytes)):
        text = value.decode() if isinstance(value, bytes) else value
        text = text.strip()
        try:
            number = float(Decimal(text))
        except (InvalidOperation, ValueError):
            return 0
    else:
        return 0

    if not math.isfinite(number):
        return 0
    return int(number) if number.is_integer() else number


def extract_number(result: Any, field: str = "count") -> Number:
    """
    Pull a numeric column from the first row of a result, defaulting to 0.

    Rows may be mappings (by column name) or positional sequences, in which
    case the first column is used.
    """
    try:
        rows = normalize_rows(result)
    except (TypeError, AttributeError) as e:
        logger.debug(f"Could not normalize result for {field}: {e}")
        return 0

    if not rows:
        return 0

    row = rows[0]
    if isinstance(row, Mapping):
        return coerce_number(row.get(field))
    if isinstance(row, (list, tuple)) and row:
        return coerce_number(row[0])
    return coerce_number(row)
