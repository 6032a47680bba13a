"""
Canonical database engine factory.

SINGLE SOURCE OF TRUTH for engine creation: the SQL audit sink and the SQL
resource lookup both take an Engine from here.

Usage:
    from contractguard.db.engine import get_engine

    engine = get_engine()                    # Config.DATABASE_URL
    engine = get_engine("sqlite://")        # in-memory, shared connection

Warmup with retry:
    - Handles cold-starting databases
    - Exponential backoff (0.75s, 1.5s, 3s, 6s)
    - Fails fast after 4 attempts with clear error
    - Skipped for SQLite
"""

from __future__ import annotations

import logging
import time
from typing import Dict, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from ..config import Config

log = logging.getLogger(__name__)

# Module-level engine cache (per-process singletons, keyed by URL)
_ENGINES: Dict[str, Engine] = {}


def _warmup(engine: Engine, attempts: int = 4, base_sleep: float = 0.75) -> None:
    """
    Warm up database connection with exponential backoff retry.

    Args:
        engine: SQLAlchemy engine to warm up
        attempts: Number of retry attempts (default 4)
        base_sleep: Base sleep time in seconds (doubles each attempt)

    Raises:
        OperationalError: If all attempts fail
    """
    last_error: Optional[Exception] = None

    for i in range(attempts):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            log.info("db_warmup_success attempt=%d", i + 1)
            return
        except OperationalError as e:
            last_error = e
            sleep_s = base_sleep * (2 ** i)
            log.warning(
                "db_warmup_retry attempt=%d/%d sleep_s=%.2f err=%s",
                i + 1, attempts, sleep_s, str(e)[:100]
            )
            time.sleep(sleep_s)

    log.error("db_warmup_failed after %d attempts", attempts)
    raise last_error  # type: ignore[misc]


def get_engine(database_url: Optional[str] = None, warmup: bool = True) -> Engine:
    """
    Get a database engine for database_url (default Config.DATABASE_URL).

    In-memory SQLite URLs get a StaticPool so every connection sees the same
    database. Engines are cached per URL.

    Raises:
        RuntimeError: If no URL is given and DATABASE_URL is not set
        OperationalError: If database connection fails after retries
    """
    url = database_url or Config.DATABASE_URL
    if not url:
        raise RuntimeError("DATABASE_URL is required for SQL-backed audit sinks and lookups")

    cached = _ENGINES.get(url)
    if cached is not None:
        return cached

    if url.startswith('sqlite'):
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        log.info("db_engine_created kind=sqlite poolclass=StaticPool")
    else:
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_recycle=300,
        )
        log.info("db_engine_created kind=server")
        if warmup:
            _warmup(engine)

    _ENGINES[url] = engine
    return engine


def dispose_engines() -> None:
    """
    Dispose all cached engines (for testing/cleanup).
    """
    for url, engine in list(_ENGINES.items()):
        engine.dispose()
        _ENGINES.pop(url, None)

    log.info("db_engines_disposed")
