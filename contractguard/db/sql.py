"""
SQL execution helper with enforced bind-param conventions.

Conventions enforced:
1. Use :name param style only (SQLAlchemy bind params)
2. Pass Python datetime objects for timestamp params (no .isoformat())
3. Never use percent-paren psycopg2-specific style

Usage:
    from contractguard.db.sql import run_sql_one

    row = run_sql_one(
        conn,
        "SELECT id, user_id FROM documents WHERE id = :resource_id",
        resource_id="doc-1",
    )
"""
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import text


PSYCOPG2_PARAM_PATTERN = re.compile(r'%\([a-zA-Z_][a-zA-Z0-9_]*\)s')

# Identifiers interpolated into SQL (table/column names) must match this
IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$')


class SQLParamStyleError(Exception):
    """Raised when SQL uses incorrect parameter style."""
    pass


class SQLDateParamError(Exception):
    """Raised when timestamp parameters are not Python date/datetime objects."""
    pass


def validate_sql_text(sql: str) -> None:
    """
    Validate that SQL text uses correct :name param style.

    Raises SQLParamStyleError if psycopg2 percent-paren style is detected.
    """
    matches = PSYCOPG2_PARAM_PATTERN.findall(sql)
    if matches:
        raise SQLParamStyleError(
            f"SQL contains psycopg2-style params: {matches}. "
            f"Use SQLAlchemy :name style instead."
        )


def validate_params(params: Dict[str, Any]) -> None:
    """
    Validate that timestamp parameters are Python date/datetime objects.

    A param is treated as a timestamp when its name ends in _at or _date.
    """
    for key, value in params.items():
        if not (key.endswith('_at') or key.endswith('_date')) or value is None:
            continue
        if isinstance(value, str):
            raise SQLDateParamError(
                f"Timestamp parameter '{key}' is a string ('{value}'). "
                f"Pass a Python datetime object instead."
            )
        if not isinstance(value, (date, datetime)):
            raise SQLDateParamError(
                f"Timestamp parameter '{key}' has type {type(value).__name__}. "
                f"Expected date or datetime."
            )


def validate_identifier(name: str) -> str:
    """Return name if it is a plain (optionally schema-qualified) SQL identifier."""
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.match(name):
        raise SQLParamStyleError(f"Invalid SQL identifier: {name!r}")
    return name


def _execute(conn, sql: str, validate: bool, params: Dict[str, Any]):
    if validate:
        validate_sql_text(sql)
        validate_params(params)

    # Accept a Connection, a Session, or an object exposing .session
    executor = getattr(conn, 'session', conn)
    return executor.execute(text(sql), params)


def run_sql(conn, sql: str, validate: bool = True, **params) -> List[Tuple]:
    """Execute SQL and return all rows."""
    return _execute(conn, sql, validate, params).fetchall()


def run_sql_one(conn, sql: str, validate: bool = True, **params) -> Optional[Tuple]:
    """Execute SQL and return a single row or None."""
    return _execute(conn, sql, validate, params).fetchone()


def run_sql_write(conn, sql: str, validate: bool = True, **params) -> int:
    """Execute an INSERT/UPDATE/DELETE and return the affected row count."""
    return _execute(conn, sql, validate, params).rowcount
