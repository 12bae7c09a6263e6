"""Pagination adapter.

REST listings use numbered pages and return a plain list; the caller asks for the
next page number explicitly. GraphQL listings use forward cursors and return
``{nodes, page_info, total_count}``; the caller passes ``page_info.end_cursor`` as the
next ``after``. A listing is bound to one of the two forms.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import Field

from .schemas import GraphModel, InputModel

DEFAULT_PER_PAGE = 30
DEFAULT_FIRST = 20
MAX_PAGE_SIZE = 100

NodeT = TypeVar("NodeT")


class RestPage(InputModel):
    """Numbered-page listing arguments."""

    page: int = Field(default=1, ge=1, description="Page number")
    per_page: int = Field(default=DEFAULT_PER_PAGE, ge=1, le=MAX_PAGE_SIZE, description="Results per page (max 100)")


class CursorPageInput(InputModel):
    """Cursor listing arguments."""

    first: int = Field(default=DEFAULT_FIRST, ge=1, le=MAX_PAGE_SIZE, description="Number of nodes to return (max 100)")
    after: str | None = Field(default=None, min_length=1, description="end_cursor from the previous page")


def page_params(args: RestPage) -> dict[str, int]:
    return {"page": args.page, "per_page": args.per_page}


def cursor_variables(args: CursorPageInput) -> dict[str, Any]:
    """GraphQL variables for a cursor page; ``after`` is left out on the first page."""
    variables: dict[str, Any] = {"first": args.first}
    if args.after is not None:
        variables["after"] = args.after
    return variables


class PageInfo(GraphModel):
    end_cursor: str | None = None
    has_next_page: bool


class CursorPage(GraphModel, Generic[NodeT]):
    """One slice of a GraphQL connection."""

    nodes: list[NodeT]
    page_info: PageInfo
    total_count: int
