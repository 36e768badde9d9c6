"""
Period-over-Period Growth

Growth compares a window's count against the equal-length window just
before it. Zero baselines follow fixed conventions instead of dividing:

    previous == 0, current == 0  ->    0.0
    previous == 0, current  > 0  ->  100.0
    current  == 0, previous > 0  -> -100.0
    otherwise                    -> (current - previous) / previous * 100,
                                    capped at +1000
"""

from typing import Iterable, Mapping, Any

MAX_GROWTH_PERCENT = 1000.0


def calculate_growth(current: float, previous: float) -> float:
    """Percentage change from previous to current under the zero conventions."""
    if previous <= 0:
        return 0.0 if current <= 0 else 100.0
    if current <= 0:
        return -100.0

    growth = (current - previous) / previous * 100
    return min(growth, MAX_GROWTH_PERCENT)


def average_growth(records: Iterable[Mapping[str, Any]]) -> float:
    """
    Mean growth across per-table records with count/previous_count.

    Tables without a previous baseline contribute 0 rather than the +100
    convention, so new tables do not inflate the dashboard average.
    """
    records = list(records)
    if not records:
        return 0.0

    total = 0.0
    for record in records:
        previous = record.get("previous_count") or 0
        if previous > 0:
            total += calculate_growth(record.get("count") or 0, previous)
    return total / len(records)


def with_growth(record: Mapping[str, Any]) -> dict:
    """Copy of a count/previous_count record with its growth added."""
    result = dict(record)
    result["growth"] = round(calculate_growth(record.get("count") or 0, record.get("previous_count") or 0), 2)
    return result
