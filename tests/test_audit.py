"""Audit event and rotation coverage."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from github_gateway_mcp.audit import AuditLogger, build_event, new_correlation_id


def _event(correlation_id: str = "c1", **overrides: object):  # noqa: ANN202
    fields: dict[str, object] = {
        "correlation_id": correlation_id,
        "operation": "get_issue",
        "target": "octo/repo",
        "outcome": "succeeded",
        "duration_ms": 1,
    }
    fields.update(overrides)
    return build_event(**fields)  # type: ignore[arg-type]


def test_event_json_is_sorted_and_omits_empty_fields() -> None:
    line = _event(duration_ms=None).to_json()
    payload = json.loads(line)

    assert list(payload) == sorted(payload)
    assert "error_kind" not in payload
    assert "duration_ms" not in payload
    assert payload["timestamp"].endswith("Z")


def test_failed_event_carries_error_kind() -> None:
    payload = json.loads(_event(outcome="failed", error_kind="rate_limit").to_json())
    assert payload["outcome"] == "failed"
    assert payload["error_kind"] == "rate_limit"


def test_unknown_outcome_is_rejected() -> None:
    with pytest.raises(ValueError):
        _ = _event(outcome="maybe")


def test_correlation_ids_are_unique() -> None:
    assert new_correlation_id() != new_correlation_id()


def test_audit_logger_writes_to_stderr_and_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    sink = tmp_path / "subdir" / "audit.jsonl"
    logger = AuditLogger(sink_path=sink, max_bytes=10_000, max_backups=1)

    logger.write_event(_event("c123"))

    err = capsys.readouterr().err
    assert '"correlation_id":"c123"' in err
    lines = sink.read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["correlation_id"] == "c123"
    assert not (tmp_path / "subdir" / "audit.jsonl.1").exists()


def test_audit_logger_rotates_when_exceeding_max_bytes(tmp_path: Path) -> None:
    sink = tmp_path / "audit.jsonl"
    logger = AuditLogger(sink_path=sink, max_bytes=1, max_backups=2)

    logger.write_event(_event("c1"))
    logger.write_event(_event("c2"))
    logger.write_event(_event("c3"))

    assert json.loads(sink.read_text(encoding="utf-8"))["correlation_id"] == "c3"
    assert json.loads((tmp_path / "audit.jsonl.1").read_text(encoding="utf-8"))["correlation_id"] == "c2"
    assert json.loads((tmp_path / "audit.jsonl.2").read_text(encoding="utf-8"))["correlation_id"] == "c1"


def test_audit_logger_truncates_when_backups_disabled(tmp_path: Path) -> None:
    sink = tmp_path / "audit.jsonl"
    logger = AuditLogger(sink_path=sink, max_bytes=1, max_backups=0)

    logger.write_event(_event("c1"))
    logger.write_event(_event("c2"))

    lines = sink.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["correlation_id"] == "c2"
    assert not (tmp_path / "audit.jsonl.1").exists()


def test_unwritable_sink_does_not_raise(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    logger = AuditLogger(sink_path=blocker / "audit.jsonl")

    logger.write_event(_event())


def test_no_sink_is_stderr_only(capsys: pytest.CaptureFixture[str]) -> None:
    AuditLogger(sink_path=None).write_event(_event("only-stderr"))
    assert "only-stderr" in capsys.readouterr().err
