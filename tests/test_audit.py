import asyncio
import dataclasses
import json
import logging
import threading

import pytest
from pydantic import BaseModel

from contractguard.conditions import audit_log, audit_log_failure, extract_resource_id, sanitize_for_audit
from contractguard.config import configure
from contractguard.contracts.errors import ContractError, ContractViolationError, ErrorType
from contractguard.contracts.wrapper import contract
from contractguard.utils.audit_sink import LoggingAuditSink


class Credentials(BaseModel):
    username: str
    password: str


@dataclasses.dataclass
class ApiClient:
    name: str
    apiKey: str


def test_sanitize_removes_sensitive_fields_at_every_depth():
    value = {
        "user": {"name": "a", "password": "p", "profile": {"secretKey": "123", "city": "x"}},
        "items": [{"token": "t", "id": 1}, ("keep", {"secret": "s"})],
        "accessToken": "a-t",
    }

    assert sanitize_for_audit(value) == {
        "user": {"name": "a", "profile": {"city": "x"}},
        "items": [{"id": 1}, ("keep", {})],
    }


def test_sanitize_keeps_original_untouched():
    value = {"password": "p", "name": "n"}
    sanitize_for_audit(value)
    assert value == {"password": "p", "name": "n"}


def test_sanitize_models_and_dataclasses():
    assert sanitize_for_audit(Credentials(username="u", password="p")) == {"username": "u"}
    assert sanitize_for_audit([ApiClient(name="c", apiKey="k")]) == [{"name": "c"}]


def test_sanitize_custom_fields():
    assert sanitize_for_audit({"pin": 1, "password": 2}, sensitive_fields=["pin"]) == {"password": 2}


def test_sanitize_scalars_pass_through():
    assert sanitize_for_audit("text") == "text"
    assert sanitize_for_audit(None) is None


@pytest.mark.parametrize("value,expected", [
    ({"id": "abc"}, "abc"),
    ({"userId": 7}, "7"),
    ({"id": "", "documentId": "d1"}, "d1"),
    ({"resourceId": "r", "entityId": "e"}, "r"),
    ({"name": "x"}, "N/A"),
    ("plain", "N/A"),
    (None, "N/A"),
])
def test_extract_resource_id(value, expected):
    assert extract_resource_id(value) == expected


def test_audit_log_records_success(make_context, recording_sink):
    @contract(ensures=[audit_log("update_document", metadata={"source": "api"}, sink=recording_sink)])
    async def update(input, context=None):
        return {"id": input["documentId"], "token": "secret"}

    asyncio.run(update({"documentId": "d1", "password": "p"}, make_context()))

    assert len(recording_sink.records) == 1
    record = recording_sink.records[0]
    assert record["action"] == "update_document"
    assert record["userId"] == "u1"
    assert record["resourceId"] == "d1"
    assert record["success"] is True
    assert record["input"] == {"documentId": "d1"}
    assert record["output"] == {"id": "d1"}
    assert record["metadata"] == {"source": "api"}
    assert record["timestamp"].tzinfo is not None


def test_audit_log_anonymous_and_exclusions(recording_sink):
    condition = audit_log("view", include_input=False, include_output=False, sink=recording_sink)

    assert asyncio.run(condition.invoke({"x": 1}, {"id": "r"}, None)) is True

    record = recording_sink.records[0]
    assert record["userId"] == "anonymous"
    assert record["resourceId"] == "r"
    assert "input" not in record
    assert "output" not in record
    assert "metadata" not in record


def test_failing_sink_never_fails_the_operation(make_context, caplog):
    class BrokenSink:
        def submit(self, record):
            raise ConnectionError("audit store offline")

    @contract(ensures=[audit_log("create", sink=BrokenSink())])
    async def create(input, context=None):
        return {"id": "n1"}

    with caplog.at_level(logging.ERROR, logger="contractguard.audit"):
        assert asyncio.run(create({}, make_context())) == {"id": "n1"}

    assert any("audit store offline" in r.getMessage() for r in caplog.records)
    assert any(getattr(r, "event", None) == "audit_submit_failed" for r in caplog.records)


def test_async_sink_is_awaited():
    class AsyncSink:
        def __init__(self):
            self.records = []

        async def submit(self, record):
            await asyncio.sleep(0)
            self.records.append(record)

    sink = AsyncSink()
    asyncio.run(audit_log("a", sink=sink).invoke(None, {}, None))
    assert len(sink.records) == 1


def test_sync_sinks_do_not_block_each_other(make_context):
    both_waiting = threading.Barrier(2, timeout=2)

    class SlowSink:
        def __init__(self):
            self.records = []

        def submit(self, record):
            both_waiting.wait()
            self.records.append(record)

    sink = SlowSink()
    condition = audit_log("export", sink=sink)

    async def run_both():
        await asyncio.gather(
            condition.invoke({"id": "a"}, {"id": "a"}, make_context()),
            condition.invoke({"id": "b"}, {"id": "b"}, make_context()),
        )

    asyncio.run(run_both())
    assert sorted(r["resourceId"] for r in sink.records) == ["a", "b"]


def test_audit_disabled_skips_submission(recording_sink):
    configure(audit_enabled=False)
    assert asyncio.run(audit_log("a", sink=recording_sink).invoke(None, {}, None)) is True
    assert recording_sink.records == []


def test_configured_sink_is_default(recording_sink):
    configure(audit_sink=recording_sink)
    asyncio.run(audit_log("configured").invoke(None, {}, None))
    assert recording_sink.records[0]["action"] == "configured"


def test_audit_log_failure_record(make_context, recording_sink):
    @contract(requires=[lambda i, c: False], name="delete")
    async def delete(input, context=None):
        return None

    try:
        asyncio.run(delete({"id": "d9", "secret": "s"}))
    except ContractViolationError as e:
        error = e

    condition = audit_log_failure("delete_document", error, metadata={"attempt": 1}, sink=recording_sink)
    assert asyncio.run(condition.invoke({"id": "d9", "secret": "s"}, make_context())) is True

    record = recording_sink.records[0]
    assert record["action"] == "delete_document_FAILED"
    assert record["success"] is False
    assert record["resourceId"] == "d9"
    assert record["input"] == {"id": "d9"}
    assert record["output"] == {
        "error": "Contract violation in unknown.delete: Precondition failed for delete",
        "errorType": "ContractViolationError",
    }
    assert record["metadata"]["attempt"] == 1
    assert "ContractViolationError" in record["metadata"]["errorStack"]


def test_logging_sink_writes_json(caplog):
    sink = LoggingAuditSink()
    error = ContractError("x", ErrorType.VALIDATION_FAILED)

    with caplog.at_level(logging.INFO, logger="audit"):
        sink.submit({"action": "a", "userId": "u", "error": error})

    payload = json.loads(caplog.records[0].getMessage())
    assert payload["action"] == "a"
    assert payload["error"] == "x"
