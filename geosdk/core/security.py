"""Security utilities for building backend requests safely.

User-supplied text never reaches SQL text: it is always passed as a bound
parameter. Identifiers come from whitelists, and partition sources (built
from the catalog and the configured data URL) are quoted as string literals.
"""
import re
from typing import Iterable, List

from geosdk.core.models import ADDRESS_COLUMNS, COMPUTED_COLUMNS

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ALLOWED_COLUMNS = frozenset(ADDRESS_COLUMNS + COMPUTED_COLUMNS)


def validate_identifier(name: str) -> bool:
    """
    Validate that a name is a plain SQL identifier.

    Args:
        name: Candidate identifier

    Returns:
        True if the name contains only letters, digits and underscores
    """
    return isinstance(name, str) and bool(_IDENTIFIER_RE.match(name))


def validate_column_name(name: str) -> bool:
    """True if the column is part of the address schema or a computed column."""
    return name in ALLOWED_COLUMNS


def sanitize_columns(columns: Iterable[str]) -> List[str]:
    """
    Validate a column list against the whitelist.

    Raises ValueError on the first unknown column instead of silently dropping it.
    """
    result = []
    for column in columns:
        if not validate_column_name(column):
            raise ValueError(f"Column not allowed in address requests: {column!r}")
        result.append(column)
    return result


def quote_identifier(name: str) -> str:
    if not validate_identifier(name):
        raise ValueError(f"Invalid identifier: {name!r}")
    return f'"{name}"'


def quote_literal(value: str) -> str:
    """Quote a string as an SQL literal, doubling embedded single quotes."""
    return "'" + str(value).replace("'", "''") + "'"
