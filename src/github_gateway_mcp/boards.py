"""Routing between the classic and current board models.

Both models offer boards, groupings and work units, but they are not interchangeable:
a classic card sits in exactly one column, while a current item is grouped by a field
value. ``BOARD_ROUTES`` is a static table that sends each capability to exactly one
model's operations. Where a capability is re-expressed in a model, the route carries a
note that is appended to the tool description.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from . import projects_classic, projects_v2
from .schemas import Operation


class BoardModel(str, Enum):
    CLASSIC = "classic"
    CURRENT = "current"


class Capability(str, Enum):
    LIST_BOARDS = "list_boards"
    CREATE_BOARD = "create_board"
    GET_BOARD = "get_board"
    UPDATE_BOARD = "update_board"
    DELETE_BOARD = "delete_board"
    LIST_GROUPINGS = "list_groupings"
    CREATE_GROUPING = "create_grouping"
    UPDATE_GROUPING = "update_grouping"
    DELETE_GROUPING = "delete_grouping"
    LIST_WORK_UNITS = "list_work_units"
    CREATE_WORK_UNIT = "create_work_unit"
    UPDATE_WORK_UNIT = "update_work_unit"
    DELETE_WORK_UNIT = "delete_work_unit"
    MOVE_WORK_UNIT = "move_work_unit"


@dataclass(frozen=True, slots=True)
class BoardRoute:
    capability: Capability
    model: BoardModel
    operations: tuple[str, ...]
    note: str | None = None


_CLASSIC_SCOPES = "Repository and organization variants only."
_FIELDS_NOT_COLUMNS = "Acts on project fields; current projects have no columns."


def _routes() -> dict[tuple[Capability, BoardModel], BoardRoute]:
    C, V = BoardModel.CLASSIC, BoardModel.CURRENT
    table = [
        BoardRoute(Capability.LIST_BOARDS, C, ("list_projects", "list_org_projects")),
        BoardRoute(Capability.CREATE_BOARD, C, ("create_project", "create_org_project"), _CLASSIC_SCOPES),
        BoardRoute(Capability.GET_BOARD, C, ("get_project", "get_org_project")),
        BoardRoute(Capability.UPDATE_BOARD, C, ("update_project", "update_org_project")),
        BoardRoute(Capability.DELETE_BOARD, C, ("delete_project", "delete_org_project")),
        BoardRoute(Capability.LIST_GROUPINGS, C, ("list_project_columns", "list_org_project_columns")),
        BoardRoute(Capability.CREATE_GROUPING, C, ("create_project_column", "create_org_project_column")),
        BoardRoute(Capability.UPDATE_GROUPING, C, ("update_project_column",)),
        BoardRoute(Capability.DELETE_GROUPING, C, ("delete_project_column",)),
        BoardRoute(Capability.LIST_WORK_UNITS, C, ("list_project_cards",)),
        BoardRoute(Capability.CREATE_WORK_UNIT, C, ("create_project_card",)),
        BoardRoute(Capability.UPDATE_WORK_UNIT, C, ("update_project_card",)),
        BoardRoute(Capability.DELETE_WORK_UNIT, C, ("delete_project_card",)),
        BoardRoute(
            Capability.MOVE_WORK_UNIT,
            C,
            ("move_project_card",),
            "Changes the card's column membership and position; returns {success: true}.",
        ),
        BoardRoute(Capability.LIST_BOARDS, V, ("list_projects_v2",)),
        BoardRoute(
            Capability.CREATE_BOARD,
            V,
            ("create_org_project_v2", "create_repo_project_v2"),
            "Resolves the owner (and repository) node IDs before creating; nothing is created if a lookup fails.",
        ),
        BoardRoute(Capability.GET_BOARD, V, ("get_project_v2",)),
        BoardRoute(Capability.UPDATE_BOARD, V, ("update_project_v2",)),
        BoardRoute(Capability.DELETE_BOARD, V, ("delete_project_v2",)),
        BoardRoute(Capability.LIST_GROUPINGS, V, ("list_project_v2_fields",), _FIELDS_NOT_COLUMNS),
        BoardRoute(Capability.CREATE_GROUPING, V, ("create_project_v2_field",), _FIELDS_NOT_COLUMNS),
        BoardRoute(Capability.UPDATE_GROUPING, V, ("update_project_v2_field",), _FIELDS_NOT_COLUMNS),
        BoardRoute(Capability.DELETE_GROUPING, V, ("delete_project_v2_field",), _FIELDS_NOT_COLUMNS),
        BoardRoute(Capability.LIST_WORK_UNITS, V, ("list_project_v2_items",)),
        BoardRoute(Capability.CREATE_WORK_UNIT, V, ("add_project_v2_item",)),
        BoardRoute(Capability.UPDATE_WORK_UNIT, V, ("update_project_v2_item_field_value",)),
        BoardRoute(Capability.DELETE_WORK_UNIT, V, ("delete_project_v2_item",)),
        BoardRoute(
            Capability.MOVE_WORK_UNIT,
            V,
            ("move_project_v2_item",),
            "Re-expressed: sets the item's single-select (status) field value instead of moving it "
            "between columns; returns {success: true}.",
        ),
    ]
    return {(r.capability, r.model): r for r in table}


BOARD_ROUTES: dict[tuple[Capability, BoardModel], BoardRoute] = _routes()

_MODEL_OPERATIONS: dict[BoardModel, dict[str, Operation]] = {
    BoardModel.CLASSIC: projects_classic.OPERATIONS,
    BoardModel.CURRENT: projects_v2.OPERATIONS,
}


def route(capability: Capability, model: BoardModel) -> BoardRoute:
    """The route for one capability in one model."""
    try:
        return BOARD_ROUTES[(capability, model)]
    except KeyError:
        raise LookupError(f"No {model.value} route for {capability.value}") from None


def routes_for(model: BoardModel) -> list[BoardRoute]:
    return [r for (_, m), r in BOARD_ROUTES.items() if m is model]


def check_routes() -> None:
    """Fail if the table names an unknown operation or lets two models share one."""
    owner: dict[str, BoardModel] = {}
    for r in BOARD_ROUTES.values():
        known = _MODEL_OPERATIONS[r.model]
        for name in r.operations:
            if name not in known:
                raise ValueError(f"Route {r.capability.value}/{r.model.value} names unknown operation {name}")
            if owner.setdefault(name, r.model) is not r.model:
                raise ValueError(f"Operation {name} is routed from both board models")

    for model, ops in _MODEL_OPERATIONS.items():
        unrouted = set(ops) - {n for r in routes_for(model) for n in r.operations}
        if unrouted:
            raise ValueError(f"Unrouted {model.value} operations: {', '.join(sorted(unrouted))}")


def board_operations() -> dict[str, Operation]:
    """Every board operation, with route notes folded into its description."""
    check_routes()
    out: dict[str, Operation] = {}
    for r in BOARD_ROUTES.values():
        for name in r.operations:
            op = _MODEL_OPERATIONS[r.model][name]
            description = f"[{r.model.value} projects] {op.description}."
            if r.note:
                description = f"{description} {r.note}"
            out[name] = op.with_description(description)
    return out


def describe_routes() -> list[dict[str, object]]:
    """The routing table as plain data, for the capabilities resource."""
    return [
        {
            "capability": r.capability.value,
            "model": r.model.value,
            "operations": list(r.operations),
            "note": r.note,
        }
        for r in BOARD_ROUTES.values()
    ]
