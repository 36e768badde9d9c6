"""
SQL builders for per-table aggregates.

Table names are validated and quoted here. Every other value is a bound
parameter.
"""

from typing import Any, Dict, Tuple

from leadpulse.database.validation import quote_identifier

Query = Tuple[str, Dict[str, Any]]

TABLE_SIZE_SQL = (
    "SELECT ROUND(((data_length + index_length) / 1024 / 1024), 2) AS size_mb "
    "FROM information_schema.tables "
    "WHERE table_schema = DATABASE() AND table_name = :table_name"
)


def count_query(table_name: str) -> Query:
    """Unconditional row count."""
    return f"SELECT COUNT(*) AS count FROM {quote_identifier(table_name)}", {}


def count_in_range_query(table_name: str, start, end) -> Query:
    """Row count for created_at_ts in [start, end)."""
    sql = (
        f"SELECT COUNT(*) AS count FROM {quote_identifier(table_name)} "
        "WHERE created_at_ts >= :start AND created_at_ts < :end"
    )
    return sql, {"start": start, "end": end}


def table_size_query(table_name: str) -> Query:
    """On-disk size (data + indexes) in MB from information_schema."""
    quote_identifier(table_name)
    return TABLE_SIZE_SQL, {"table_name": table_name}


def ping_query() -> Query:
    return "SELECT 1 AS ok", {}
