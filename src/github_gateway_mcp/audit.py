"""Structured audit trail.

One JSON line per operation attempt, written to stderr and optionally appended to a
size-rotated file. Events carry the operation name, its target and the outcome;
arguments, response bodies and credentials are never recorded.
"""

from __future__ import annotations

import json
import logging
import sys
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

OUTCOMES = ("succeeded", "failed", "rejected")


def new_correlation_id() -> str:
    return uuid.uuid4().hex


def _now_rfc3339() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class AuditEvent:
    timestamp: str
    correlation_id: str
    operation: str
    target: str
    outcome: str
    error_kind: str | None
    duration_ms: int | None

    def to_json(self) -> str:
        payload: dict[str, object] = {
            "timestamp": self.timestamp,
            "correlation_id": self.correlation_id,
            "operation": self.operation,
            "target": self.target,
            "outcome": self.outcome,
        }
        if self.error_kind is not None:
            payload["error_kind"] = self.error_kind
        if self.duration_ms is not None:
            payload["duration_ms"] = self.duration_ms
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class AuditLogger:
    """Writes audit events to stderr and, when configured, to a JSONL file."""

    def __init__(
        self,
        *,
        sink_path: Path | None,
        max_bytes: int = 5 * 1024 * 1024,
        max_backups: int = 2,
    ) -> None:
        self._sink_path = sink_path
        self._max_bytes = max_bytes
        self._max_backups = max_backups

    def _rotate_if_needed(self) -> None:
        sink = self._sink_path
        if sink is None or not sink.exists() or sink.stat().st_size < self._max_bytes:
            return

        if self._max_backups <= 0:
            sink.write_text("", encoding="utf-8")
            return

        # audit.jsonl -> .1 -> .2 ...; the oldest backup is dropped.
        Path(f"{sink}.{self._max_backups}").unlink(missing_ok=True)
        for i in range(self._max_backups - 1, 0, -1):
            src = Path(f"{sink}.{i}")
            if src.exists():
                src.replace(Path(f"{sink}.{i + 1}"))
        sink.replace(Path(f"{sink}.1"))

    def _append(self, line: str) -> None:
        sink = self._sink_path
        if sink is None:
            return
        try:
            sink.parent.mkdir(parents=True, exist_ok=True)
            self._rotate_if_needed()
            with sink.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as exc:
            # The file sink is optional; stderr already has the event.
            logger.warning("Audit file sink unavailable: %s", type(exc).__name__)

    def write_event(self, event: AuditEvent) -> None:
        line = event.to_json()
        print(line, file=sys.stderr)
        self._append(line)

    def measure_start(self) -> float:
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


def build_event(
    *,
    correlation_id: str,
    operation: str,
    target: str,
    outcome: str,
    error_kind: str | None = None,
    duration_ms: int | None = None,
) -> AuditEvent:
    """Construct an audit event stamped with the current UTC time."""
    if outcome not in OUTCOMES:
        raise ValueError(f"unknown audit outcome: {outcome}")
    return AuditEvent(
        timestamp=_now_rfc3339(),
        correlation_id=correlation_id,
        operation=operation,
        target=target,
        outcome=outcome,
        error_kind=error_kind,
        duration_ms=duration_ms,
    )
