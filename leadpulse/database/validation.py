"""
Table Identifier Validation

Table names come from the mapping store and are interpolated in
identifier position (they cannot be bound parameters). Every name is
checked against an allowlist pattern and quoted before it reaches SQL.
"""

import re

from leadpulse.errors import InvalidTableNameError

# MySQL unquoted identifier charset, max identifier length 64
TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]{1,64}$")


def is_valid_table_name(name: str) -> bool:
    """True when the name is safe to use as an identifier."""
    return isinstance(name, str) and bool(TABLE_NAME_PATTERN.match(name))


def validate_table_name(name: str) -> str:
    """Return the name unchanged or raise InvalidTableNameError."""
    if not is_valid_table_name(name):
        raise InvalidTableNameError(name)
    return name


def quote_identifier(name: str, quote_char: str = "`") -> str:
    """Validate then quote a table name (backticks for MySQL)."""
    validate_table_name(name)
    return f"{quote_char}{name}{quote_char}"
