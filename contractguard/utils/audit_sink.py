"""
Audit sinks - where audit_log() records go.

Sinks expose submit(record), sync or async. Two are provided:
- LoggingAuditSink: one JSON line per record on the "audit" logger
- SQLAuditSink: one row per record in contract_audit_events (SQLAlchemy)

A sink may fail; audit_log() catches and logs the failure, so the guarded
operation is never affected.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Boolean, Column, DateTime, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from ..config import get_config
from ..db.sql import run_sql_write

logger = logging.getLogger('contractguard.audit')

metadata = MetaData()

audit_events = Table(
    "contract_audit_events",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("action", String(200), nullable=False),
    Column("user_id", String(200), nullable=False),
    Column("resource_id", String(200), nullable=False),
    Column("success", Boolean, nullable=False),
    Column("occurred_at", DateTime(timezone=True), nullable=False),
    Column("input_json", Text),
    Column("output_json", Text),
    Column("metadata_json", Text),
)


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def to_json(value: Any) -> str:
    return json.dumps(value, default=_json_default, sort_keys=True)


class LoggingAuditSink:
    """Structured audit sink writing JSON lines to a named logger."""

    def __init__(self, name: str = "audit", level: int = logging.INFO):
        self.logger = logging.getLogger(name)
        self.level = level

    def submit(self, record: Dict[str, Any]) -> None:
        self.logger.log(self.level, to_json(record))


class SQLAuditSink:
    """
    Append audit records to contract_audit_events.

    Usage:
        sink = SQLAuditSink(get_engine())
        sink.create_table()
        configure(audit_sink=sink)
    """

    INSERT_SQL = """
        INSERT INTO contract_audit_events
            (action, user_id, resource_id, success, occurred_at,
             input_json, output_json, metadata_json)
        VALUES
            (:action, :user_id, :resource_id, :success, :occurred_at,
             :input_json, :output_json, :metadata_json)
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def create_table(self) -> None:
        metadata.create_all(self.engine, tables=[audit_events])

    def submit(self, record: Dict[str, Any]) -> None:
        occurred_at = record.get("timestamp") or datetime.now(timezone.utc)
        with self.engine.begin() as conn:
            run_sql_write(
                conn,
                self.INSERT_SQL,
                action=record["action"],
                user_id=str(record["userId"]),
                resource_id=str(record["resourceId"]),
                success=bool(record["success"]),
                occurred_at=occurred_at,
                input_json=to_json(record["input"]) if "input" in record else None,
                output_json=to_json(record["output"]) if "output" in record else None,
                metadata_json=to_json(record["metadata"]) if "metadata" in record else None,
            )


_default_sink: Optional[LoggingAuditSink] = None


def get_audit_sink():
    """The configured sink, or a process-wide LoggingAuditSink."""
    global _default_sink
    configured = get_config().audit_sink
    if configured is not None:
        return configured
    if _default_sink is None:
        _default_sink = LoggingAuditSink()
    return _default_sink
