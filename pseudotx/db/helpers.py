from __future__ import annotations

import re
from typing import Any, Mapping

from sqlalchemy import text
from sqlalchemy.sql.elements import TextClause

from .models import DeleteOp, InsertOp, Operation, UpdateOp


def _validate_identifier(name: str, identifier_type: str = "identifier") -> str:
    """
    Validate that an identifier (collection/column name) is safe for SQL interpolation.

    ⚠️ SECURITY CONTRACT ⚠️
    This function validates identifier format but does NOT make untrusted
    identifiers safe to use. Collection and column names MUST be trusted
    (hardcoded or whitelisted at application boundaries). Values are always
    bound as parameters.

    Args:
        name: The identifier to validate
        identifier_type: Description of the identifier (for error messages)

    Returns:
        The validated identifier (unchanged if valid)

    Raises:
        TypeError: If identifier is not a string
        ValueError: If identifier contains unsafe characters or is invalid

    Example:
        >>> _validate_identifier("wallets", "collection")
        'wallets'
        >>> _validate_identifier("'; DROP TABLE--", "collection")
        ValueError: Invalid collection "'; DROP TABLE--": ...
    """
    if not isinstance(name, str):
        raise TypeError(f"{identifier_type} must be a string, got {type(name).__name__}")

    if not name:
        raise ValueError(f"{identifier_type} cannot be empty")

    if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', name):
        raise ValueError(
            f"Invalid {identifier_type} {name!r}: "
            "must start with letter/underscore and contain only alphanumeric characters and underscores"
        )

    # Postgres truncates at 63, MySQL rejects above 64
    if len(name) > 63:
        raise ValueError(f"{identifier_type} {name!r} exceeds the 63-character limit")

    return name


def _where_clause(match: Mapping[str, Any], params: dict[str, Any]) -> str:
    # Sorted keys for deterministic SQL
    clauses = []
    for i, (col, val) in enumerate(sorted(match.items())):
        col = _validate_identifier(col, "column name")
        if val is None:
            clauses.append(f"{col} IS NULL")
            continue
        param_name = f"where_{i}"
        clauses.append(f"{col} = :{param_name}")
        params[param_name] = val
    return " AND ".join(clauses)


def build_select(
    collection: str, match: Mapping[str, Any], limit: int = 2
) -> tuple[TextClause, dict[str, Any]]:
    """
    Build ``SELECT * ... WHERE ... LIMIT n`` for a pre-image lookup.

    The default limit of 2 is enough to tell "exactly one" from "several".
    """
    table = _validate_identifier(collection, "collection")
    params: dict[str, Any] = {}
    where_sql = _where_clause(match, params)
    sql = f"SELECT * FROM {table} WHERE {where_sql} LIMIT {int(limit)}"
    return text(sql), params


def build_write(op: Operation) -> tuple[TextClause, dict[str, Any]]:
    """Build the INSERT/UPDATE/DELETE statement and bound parameters for op."""
    table = _validate_identifier(op.collection, "collection")
    params: dict[str, Any] = {}

    if isinstance(op, InsertOp):
        cols = [_validate_identifier(c, "column name") for c in op.payload]
        col_names = ", ".join(cols)
        placeholders = ", ".join(f":set_{c}" for c in cols)
        params.update({f"set_{c}": v for c, v in op.payload.items()})
        sql = f"INSERT INTO {table} ({col_names}) VALUES ({placeholders})"
    elif isinstance(op, UpdateOp):
        set_clauses = []
        for col, val in sorted(op.payload.items()):
            col = _validate_identifier(col, "column name")
            set_clauses.append(f"{col} = :set_{col}")
            params[f"set_{col}"] = val
        where_sql = _where_clause(op.match, params)
        sql = f"UPDATE {table} SET {', '.join(set_clauses)} WHERE {where_sql}"
    elif isinstance(op, DeleteOp):
        where_sql = _where_clause(op.match, params)
        sql = f"DELETE FROM {table} WHERE {where_sql}"
    else:
        raise TypeError(f"Unsupported operation: {op!r}")

    return text(sql), params


def build_rpc(function_name: str) -> TextClause:
    """Build ``SELECT fn()`` for a parameterless stored function."""
    fn = _validate_identifier(function_name, "function name")
    return text(f"SELECT {fn}()")
