"""
LeadPulse Database Layer

Read replica access, write-store models and the circuit breaker that
protects the replica's connection pool.

Usage:
    from leadpulse.database import (
        # Engines and query execution
        create_read_replica_engine, ReadReplica,

        # Mapping sources
        TableDescriptor, SqlTableMappingSource, StaticTableMappingSource,

        # Result handling
        normalize_rows, extract_number,

        # Breaker
        CircuitBreaker, CircuitState,
    )
"""

from .models import Base, Client, TableMapping

from .session import (
    get_read_replica_url,
    get_write_database_url,
    create_read_replica_engine,
    create_write_engine,
    get_session_factory,
    session_scope,
    ReadReplica,
)

from .mappings import (
    TableDescriptor,
    TableMappingSource,
    SqlTableMappingSource,
    StaticTableMappingSource,
)

from .results import normalize_rows, extract_number, coerce_number

from .validation import (
    TABLE_NAME_PATTERN,
    is_valid_table_name,
    validate_table_name,
    quote_identifier,
)

from .circuit_breaker import CircuitBreaker, CircuitBreakerState, CircuitState

__all__ = [
    # Models
    "Base",
    "Client",
    "TableMapping",
    # Session
    "get_read_replica_url",
    "get_write_database_url",
    "create_read_replica_engine",
    "create_write_engine",
    "get_session_factory",
    "session_scope",
    "ReadReplica",
    # Mappings
    "TableDescriptor",
    "TableMappingSource",
    "SqlTableMappingSource",
    "StaticTableMappingSource",
    # Results
    "normalize_rows",
    "extract_number",
    "coerce_number",
    # Validation
    "TABLE_NAME_PATTERN",
    "is_valid_table_name",
    "validate_table_name",
    "quote_identifier",
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerState",
    "CircuitState",
]
