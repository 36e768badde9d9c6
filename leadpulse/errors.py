"""
Exception hierarchy for the analytics core.

Per-table query errors are caught inside the fan-out executor and degraded
to zero-valued records. Only configuration errors escape at construction.
"""


class LeadPulseError(Exception):
    """Base class for all analytics core errors."""


class QueryError(LeadPulseError):
    """A read-replica query failed."""
    def __init__(self, message: str, table_name: str = None):
        super().__init__(message)
        self.table_name = table_name


class QueryTimeoutError(QueryError):
    """A single per-table query exceeded its timeout."""


class CircuitBreakerOpenError(LeadPulseError):
    """Raised without attempting the call while the breaker is OPEN."""
    def __init__(self, name: str, retry_after: float = 0.0):
        super().__init__(
            f"Circuit breaker '{name}' is OPEN - too many failures "
            f"(retry in {retry_after:.1f}s)"
        )
        self.name = name
        self.retry_after = retry_after


class InvalidTableNameError(LeadPulseError):
    """Table name failed identifier validation and was not interpolated."""
    def __init__(self, table_name: str):
        super().__init__(f"Invalid table identifier: {table_name!r}")
        self.table_name = table_name


class InvalidDateRangeError(LeadPulseError):
    """Date range parameters could not be parsed or are inverted."""
