"""Typed error taxonomy and failure classification.

Every failure that crosses the gateway boundary is a single ``GitHubError`` whose
``kind`` is one of a closed set. Callers branch on ``kind``; ``context`` keeps the
raw transport detail for diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Mapping

import httpx


class ErrorKind(str, Enum):
    """Closed set of error kinds."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    AUTHENTICATION = "authentication"
    PERMISSION = "permission"
    RATE_LIMIT = "rate_limit"
    CONFLICT = "conflict"
    PROTOCOL = "protocol"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True, eq=False)
class GitHubError(Exception):
    """The one error type raised by gateway operations."""

    kind: ErrorKind
    message: str
    context: Mapping[str, Any] = field(default_factory=dict)
    status_code: int | None = None
    reset_at: datetime | None = None

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class ConfigError(Exception):
    """Host configuration is missing or invalid."""


# Classifier inputs. Each describes one failed attempt.


@dataclass(frozen=True, slots=True)
class HttpFailure:
    """A non-2xx response from either transport."""

    status_code: int
    body: object
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class GraphQLEnvelope:
    """A decoded GraphQL response body that was not a clean success."""

    payload: object


@dataclass(frozen=True, slots=True)
class TransportFailure:
    """The request never produced a usable response."""

    exc: Exception
    what: str = "GitHub request"


@dataclass(frozen=True, slots=True)
class InputViolations:
    """Contract violations detected locally, before or after dispatch."""

    violations: tuple[tuple[str, str], ...]
    stage: str = "input"


_STATUS_KINDS: dict[int, ErrorKind] = {
    422: ErrorKind.VALIDATION,
    404: ErrorKind.NOT_FOUND,
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.PERMISSION,
    409: ErrorKind.CONFLICT,
    429: ErrorKind.RATE_LIMIT,
}

DEFAULT_RATE_LIMIT_WAIT = timedelta(seconds=60)

NULL_DATA_MESSAGE = "GraphQL returned null data with no explicit error"
MALFORMED_ENVELOPE_MESSAGE = "GraphQL returned a malformed response envelope"


def _lower_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {str(k).lower(): str(v) for k, v in headers.items()}


def _body_message(body: object) -> str | None:
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return None


def _is_secondary_rate_limit(headers: dict[str, str], body: object) -> bool:
    if headers.get("x-ratelimit-remaining") == "0":
        return True
    if "retry-after" in headers:
        return True
    message = _body_message(body) or ""
    return "rate limit" in message.lower()


def rate_limit_reset(headers: Mapping[str, str], *, now: datetime | None = None) -> datetime:
    """Compute when a rate limit lifts from GitHub's response headers."""
    now = now or datetime.now(timezone.utc)
    lowered = _lower_headers(headers)

    reset_raw = lowered.get("x-ratelimit-reset")
    if reset_raw:
        try:
            return datetime.fromtimestamp(int(reset_raw), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            pass

    retry_after = lowered.get("retry-after")
    if retry_after:
        try:
            return now + timedelta(seconds=int(retry_after))
        except ValueError:
            pass

    return now + DEFAULT_RATE_LIMIT_WAIT


def _classify_http(signal: HttpFailure) -> GitHubError:
    headers = _lower_headers(signal.headers)
    status = signal.status_code
    message = _body_message(signal.body) or f"GitHub request failed with status {status}"
    context: dict[str, Any] = {"status": status, "body": signal.body}

    kind = _STATUS_KINDS.get(status, ErrorKind.UNKNOWN)
    if status == 403 and _is_secondary_rate_limit(headers, signal.body):
        kind = ErrorKind.RATE_LIMIT

    if kind is ErrorKind.VALIDATION and isinstance(signal.body, dict):
        details = signal.body.get("errors")
        if isinstance(details, list):
            context["violations"] = details

    reset_at = rate_limit_reset(headers) if kind is ErrorKind.RATE_LIMIT else None
    return GitHubError(kind=kind, message=message, context=context, status_code=status, reset_at=reset_at)


def _classify_graphql(signal: GraphQLEnvelope) -> GitHubError | None:
    payload = signal.payload
    if not isinstance(payload, dict):
        return GitHubError(kind=ErrorKind.PROTOCOL, message=MALFORMED_ENVELOPE_MESSAGE, context={"payload": payload})

    errors = payload.get("errors")
    if errors is not None and not isinstance(errors, list):
        return GitHubError(kind=ErrorKind.PROTOCOL, message=MALFORMED_ENVELOPE_MESSAGE, context={"payload": payload})

    if errors:
        first = errors[0]
        message = "GraphQL request failed"
        if isinstance(first, dict) and isinstance(first.get("message"), str):
            message = first["message"]
        return GitHubError(kind=ErrorKind.PROTOCOL, message=message, context={"errors": errors})

    if "data" not in payload:
        return GitHubError(kind=ErrorKind.PROTOCOL, message=MALFORMED_ENVELOPE_MESSAGE, context={"payload": payload})

    data = payload["data"]
    if data is None:
        return GitHubError(kind=ErrorKind.PROTOCOL, message=NULL_DATA_MESSAGE, context={"null_data": True})
    if not isinstance(data, dict):
        return GitHubError(kind=ErrorKind.PROTOCOL, message=MALFORMED_ENVELOPE_MESSAGE, context={"payload": payload})

    return None


def _classify_transport(signal: TransportFailure) -> GitHubError:
    exc = signal.exc
    context = {"exception": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, httpx.TimeoutException):
        return GitHubError(kind=ErrorKind.UNKNOWN, message=f"{signal.what} timed out", context=context)
    if isinstance(exc, ValueError):
        return GitHubError(kind=ErrorKind.UNKNOWN, message="GitHub returned invalid JSON", context=context)
    return GitHubError(kind=ErrorKind.UNKNOWN, message=f"{signal.what} failed", context=context)


def _classify_violations(signal: InputViolations) -> GitHubError:
    fields = ", ".join(f for f, _ in signal.violations) or "<root>"
    if signal.stage == "input":
        message = f"Invalid arguments ({fields})"
    else:
        message = f"GitHub {signal.stage} did not match the expected shape ({fields})"
    return GitHubError(
        kind=ErrorKind.VALIDATION,
        message=message,
        context={
            "stage": signal.stage,
            "violations": [{"field": f, "message": m} for f, m in signal.violations],
        },
    )


def classify(signal: HttpFailure | GraphQLEnvelope | TransportFailure | InputViolations) -> GitHubError | None:
    """Map one failure signal onto the error taxonomy.

    Returns None only for a ``GraphQLEnvelope`` that turns out to be a clean success.
    """
    if isinstance(signal, HttpFailure):
        return _classify_http(signal)
    if isinstance(signal, GraphQLEnvelope):
        return _classify_graphql(signal)
    if isinstance(signal, TransportFailure):
        return _classify_transport(signal)
    if isinstance(signal, InputViolations):
        return _classify_violations(signal)
    return GitHubError(kind=ErrorKind.UNKNOWN, message="Unexpected failure", context={"signal": repr(signal)})


def error_to_result(err: GitHubError) -> dict[str, Any]:
    """Convert a GitHubError into the tool error envelope."""
    out: dict[str, Any] = {"ok": False, "kind": err.kind.value, "message": err.message}
    if err.status_code is not None:
        out["status_code"] = err.status_code
    if err.reset_at is not None:
        out["reset_at"] = err.reset_at.isoformat().replace("+00:00", "Z")
    if err.context:
        out["context"] = dict(err.context)
    return out
