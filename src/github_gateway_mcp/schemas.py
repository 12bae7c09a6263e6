"""Typed operation contracts.

Each tool is an ``Operation``: an input model, an output type, and an async handler.
Input parsing reports every violated constraint at once. Output parsing fails closed:
a response that does not match its declared shape never reaches the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any, Awaitable, Callable, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from .errors import GitHubError, InputViolations, classify

if TYPE_CHECKING:
    from .tools import Runtime

# Fields typed PassThrough are accepted without structural validation.
PassThrough = Annotated[Any, "pass-through"]

Owner = Annotated[str, Field(min_length=1, description="Repository owner (username or organization)")]
RepoName = Annotated[str, Field(min_length=1, description="Repository name")]
PositiveInt = Annotated[int, Field(ge=1)]
NodeId = Annotated[str, Field(min_length=1, description="Opaque GraphQL node ID")]


class InputModel(BaseModel):
    """Base for tool inputs: unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")

    def to_payload(self, *, exclude: set[str] | None = None) -> dict[str, Any]:
        """Fields the caller actually supplied, ready for a request body or query.

        Omitted optional fields are never turned into explicit nulls.
        """
        return self.model_dump(mode="json", exclude_unset=True, exclude=exclude)


class RemoteModel(BaseModel):
    """Base for REST representations: declared fields are required, extras are dropped."""

    model_config = ConfigDict(extra="ignore")


class GraphModel(BaseModel):
    """Base for GraphQL nodes: camelCase on the wire, snake_case to callers."""

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)


class SuccessResult(BaseModel):
    """Confirmation for operations whose remote response carries no content."""

    model_config = ConfigDict(extra="forbid")

    success: Literal[True]


SUCCESS: dict[str, Any] = {"success": True}

Handler = Callable[["Runtime", Any], Awaitable[object]]


@dataclass(frozen=True, slots=True)
class Operation:
    """One named, contract-bound tool."""

    name: str
    description: str
    input_model: type[InputModel]
    output_adapter: TypeAdapter[Any]
    handler: Handler

    def input_schema(self) -> dict[str, Any]:
        return self.input_model.model_json_schema()

    def with_description(self, description: str) -> Operation:
        return Operation(
            name=self.name,
            description=description,
            input_model=self.input_model,
            output_adapter=self.output_adapter,
            handler=self.handler,
        )


def operation(
    name: str,
    description: str,
    input_model: type[InputModel],
    output: Any,
    handler: Handler,
) -> Operation:
    """Bind an input model, an output type expression, and a handler under one name."""
    return Operation(
        name=name,
        description=description,
        input_model=input_model,
        output_adapter=TypeAdapter(output),
        handler=handler,
    )


def _violations(exc: ValidationError) -> tuple[tuple[str, str], ...]:
    out: list[tuple[str, str]] = []
    for e in exc.errors(include_url=False):
        loc = ".".join(str(p) for p in e.get("loc", ())) or "<root>"
        out.append((loc, str(e.get("msg", "invalid value"))))
    return tuple(out)


def validation_error(exc: ValidationError, *, stage: str) -> GitHubError:
    """Classify a pydantic ValidationError, keeping every violation."""
    return classify(InputViolations(violations=_violations(exc), stage=stage))  # type: ignore[return-value]


def parse_input(op: Operation, arguments: Mapping[str, Any]) -> InputModel:
    """Validate raw tool arguments against the operation's input contract."""
    try:
        return op.input_model.model_validate(dict(arguments))
    except ValidationError as exc:
        raise validation_error(exc, stage="input") from None


def parse_output(op: Operation, raw: object) -> Any:
    """Validate a handler result and return its JSON-ready form."""
    try:
        value = op.output_adapter.validate_python(raw)
    except ValidationError as exc:
        raise validation_error(exc, stage="response") from None
    return op.output_adapter.dump_python(value, mode="json")
