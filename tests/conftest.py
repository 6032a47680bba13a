"""
Shared fixtures for contract tests.

Provides:
- make_context: AuthContext factory (user roles, session expiry)
- memory_store: a fresh in-memory rate counter store
- RecordingSink / recording_sink: audit sink that keeps submitted records
"""

from datetime import datetime, timedelta, timezone

import pytest

from contractguard.contracts.context import AuthContext, Session, User
from contractguard.utils.rate_limiter import RateCounterStore


def build_context(user_id="u1", roles=("user",), expires_in=timedelta(hours=1), session_id="s1"):
    user = User(id=user_id, roles=tuple(roles)) if user_id is not None else None
    session = None
    if expires_in is not None:
        session = Session(id=session_id, expires_at=datetime.now(timezone.utc) + expires_in)
    return AuthContext(user=user, session=session)


@pytest.fixture
def make_context():
    return build_context


@pytest.fixture
def memory_store():
    return RateCounterStore("memory://")


class RecordingSink:
    def __init__(self):
        self.records = []

    def submit(self, record):
        self.records.append(record)


@pytest.fixture
def recording_sink():
    return RecordingSink()
