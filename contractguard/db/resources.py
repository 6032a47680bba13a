"""
SQL-backed resource-owner lookup for owns().

Usage:
    lookup = SQLResourceLookup(get_engine(), table="documents", owner_column="user_id")
    configure(resource_lookup=lookup)

Returns {"id": ..., "userId": ...} or None, the shape owns() expects.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine

from .sql import run_sql_one, validate_identifier

logger = logging.getLogger(__name__)


class SQLResourceLookup:
    def __init__(
        self,
        engine: Engine,
        table: str,
        id_column: str = "id",
        owner_column: str = "user_id",
    ):
        self.engine = engine
        self.table = validate_identifier(table)
        self.id_column = validate_identifier(id_column)
        self.owner_column = validate_identifier(owner_column)
        self.sql = (
            f"SELECT {self.id_column}, {self.owner_column} FROM {self.table} "
            f"WHERE {self.id_column} = :resource_id"
        )

    def __call__(self, resource_id: str) -> Optional[Dict[str, Any]]:
        with self.engine.connect() as conn:
            row = run_sql_one(conn, self.sql, resource_id=resource_id)

        if row is None:
            logger.debug(f"Resource {resource_id} not found in {self.table}")
            return None

        owner = row[1]
        return {
            "id": str(row[0]),
            "userId": str(owner) if owner is not None else None,
        }
