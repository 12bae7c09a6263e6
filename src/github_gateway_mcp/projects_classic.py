"""Classic projects (projects, columns, cards) over REST.

Classic boards are addressed by numeric IDs and served only under the inertia
preview media type. A card belongs to exactly one column; moving it changes column
membership. Projects are found by their per-owner number by paging through the
owner's project list.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from pydantic import Field, model_validator

from .errors import ErrorKind, GitHubError
from .pagination import MAX_PAGE_SIZE, RestPage, page_params
from .rest_client import INERTIA_PREVIEW_ACCEPT, expand_path
from .schemas import SUCCESS, InputModel, Owner, PositiveInt, RemoteModel, RepoName, SuccessResult, operation

if TYPE_CHECKING:
    from .tools import Runtime


class ProjectCreator(RemoteModel):
    login: str
    id: int
    html_url: str


class ClassicProject(RemoteModel):
    id: int
    node_id: str
    url: str
    html_url: str
    columns_url: str
    name: str
    body: str | None
    number: int
    state: Literal["open", "closed"]
    creator: ProjectCreator
    created_at: str
    updated_at: str


class ClassicColumn(RemoteModel):
    id: int
    node_id: str
    url: str
    project_url: str
    cards_url: str
    name: str
    created_at: str
    updated_at: str


class ClassicCard(RemoteModel):
    id: int
    node_id: str
    url: str
    column_url: str
    content_url: str | None = None
    project_url: str
    creator: ProjectCreator | None
    created_at: str
    updated_at: str
    note: str | None
    archived: bool


# Inputs. Repository and organization scopes are separate contracts.

class _RepoScope(InputModel):
    owner: Owner
    repo: RepoName


class _OrgScope(InputModel):
    org: str = Field(min_length=1, description="Organization name")


class ListProjectsInput(_RepoScope, RestPage):
    state: Literal["open", "closed", "all"] | None = Field(default=None, description="Filter projects by state")


class ListOrgProjectsInput(_OrgScope, RestPage):
    state: Literal["open", "closed", "all"] | None = Field(default=None, description="Filter projects by state")


class CreateProjectInput(_RepoScope):
    name: str = Field(min_length=1, description="Name of the project")
    body: str | None = Field(default=None, description="Body/description of the project")


class CreateOrgProjectInput(_OrgScope):
    name: str = Field(min_length=1, description="Name of the project")
    body: str | None = Field(default=None, description="Body/description of the project")


class GetProjectInput(_RepoScope):
    project_number: PositiveInt = Field(description="Project number")


class GetOrgProjectInput(_OrgScope):
    project_number: PositiveInt = Field(description="Project number")


class _ProjectChanges(InputModel):
    name: str | None = Field(default=None, min_length=1, description="New name of the project")
    body: str | None = Field(default=None, description="New body/description of the project")
    state: Literal["open", "closed"] | None = Field(default=None, description="New state of the project")

    @model_validator(mode="after")
    def _has_changes(self) -> _ProjectChanges:
        if not self.model_fields_set & {"name", "body", "state"}:
            raise ValueError("at least one of name, body or state is required")
        return self


class UpdateProjectInput(GetProjectInput, _ProjectChanges):
    pass


class UpdateOrgProjectInput(GetOrgProjectInput, _ProjectChanges):
    pass


class ListProjectColumnsInput(GetProjectInput, RestPage):
    pass


class ListOrgProjectColumnsInput(GetOrgProjectInput, RestPage):
    pass


class CreateProjectColumnInput(GetProjectInput):
    name: str = Field(min_length=1, description="Name of the column")


class CreateOrgProjectColumnInput(GetOrgProjectInput):
    name: str = Field(min_length=1, description="Name of the column")


class UpdateProjectColumnInput(InputModel):
    column_id: PositiveInt = Field(description="Column ID")
    name: str = Field(min_length=1, description="New name of the column")


class DeleteProjectColumnInput(InputModel):
    column_id: PositiveInt = Field(description="Column ID")


class ListProjectCardsInput(RestPage):
    column_id: PositiveInt = Field(description="Column ID")
    archived_state: Literal["all", "archived", "not_archived"] | None = Field(
        default=None, description="Filter cards by archived state"
    )


class CreateProjectCardInput(InputModel):
    column_id: PositiveInt = Field(description="Column ID")
    note: str | None = Field(default=None, description="The note content for the card")
    content_id: PositiveInt | None = Field(default=None, description="ID of the issue or pull request to attach")
    content_type: Literal["Issue", "PullRequest"] | None = Field(default=None, description="Type of content_id")

    @model_validator(mode="after")
    def _note_or_content(self) -> CreateProjectCardInput:
        has_content = self.content_id is not None or self.content_type is not None
        if self.note is not None and has_content:
            raise ValueError("give either note or content_id/content_type, not both")
        if self.note is None and not (self.content_id is not None and self.content_type is not None):
            raise ValueError("give a note, or both content_id and content_type")
        return self


class UpdateProjectCardInput(InputModel):
    card_id: PositiveInt = Field(description="Card ID")
    note: str | None = Field(default=None, description="The note content for the card")
    archived: bool | None = Field(default=None, description="Whether or not the card is archived")

    @model_validator(mode="after")
    def _has_changes(self) -> UpdateProjectCardInput:
        if not self.model_fields_set & {"note", "archived"}:
            raise ValueError("note or archived is required")
        return self


class DeleteProjectCardInput(InputModel):
    card_id: PositiveInt = Field(description="Card ID")


_POSITION_PATTERN = r"^(top|bottom|after:[1-9][0-9]*)$"


class MoveProjectCardInput(InputModel):
    card_id: PositiveInt = Field(description="Card ID")
    position: str = Field(pattern=_POSITION_PATTERN, description="'top', 'bottom' or 'after:<card_id>'")
    column_id: PositiveInt | None = Field(default=None, description="Column ID to move the card to")


# Handlers


def _projects_path(args: _RepoScope | _OrgScope) -> str:
    if isinstance(args, _OrgScope):
        return expand_path("/orgs/{org}/projects", org=args.org)
    return expand_path("/repos/{owner}/{repo}/projects", owner=args.owner, repo=args.repo)


def _scope_label(args: _RepoScope | _OrgScope) -> str:
    if isinstance(args, _OrgScope):
        return f"organization {args.org}"
    return f"repository {args.owner}/{args.repo}"


async def _find_project(runtime: Runtime, args: Any) -> dict[str, Any]:
    """Locate a classic project by number within its repository or organization."""
    path = _projects_path(args)
    page = 1
    while True:
        data = await runtime.github.request_json(
            method="GET",
            path=path,
            params={"state": "all", "per_page": MAX_PAGE_SIZE, "page": page},
            accept=INERTIA_PREVIEW_ACCEPT,
        )
        if not isinstance(data, list):
            raise GitHubError(kind=ErrorKind.VALIDATION, message="Unexpected projects response", context={"stage": "response"})
        for project in data:
            if isinstance(project, dict) and project.get("number") == args.project_number:
                return project
        if len(data) < MAX_PAGE_SIZE:
            break
        page += 1

    raise GitHubError(
        kind=ErrorKind.NOT_FOUND,
        message=f"Project number {args.project_number} not found in {_scope_label(args)}",
    )


async def _list_projects(runtime: Runtime, args: ListProjectsInput | ListOrgProjectsInput) -> object:
    params: dict[str, Any] = {"state": args.state, **page_params(args)}
    return await runtime.github.request_json(
        method="GET", path=_projects_path(args), params=params, accept=INERTIA_PREVIEW_ACCEPT
    )


async def _create_project(runtime: Runtime, args: CreateProjectInput | CreateOrgProjectInput) -> object:
    return await runtime.github.request_json(
        method="POST",
        path=_projects_path(args),
        json_body=args.to_payload(exclude={"owner", "repo", "org"}),
        accept=INERTIA_PREVIEW_ACCEPT,
    )


async def _get_project(runtime: Runtime, args: GetProjectInput | GetOrgProjectInput) -> object:
    project = await _find_project(runtime, args)
    return await runtime.github.request_json(
        method="GET",
        path=expand_path("/projects/{project_id}", project_id=project["id"]),
        accept=INERTIA_PREVIEW_ACCEPT,
    )


async def _update_project(runtime: Runtime, args: UpdateProjectInput | UpdateOrgProjectInput) -> object:
    project = await _find_project(runtime, args)
    return await runtime.github.request_json(
        method="PATCH",
        path=expand_path("/projects/{project_id}", project_id=project["id"]),
        json_body=args.to_payload(exclude={"owner", "repo", "org", "project_number"}),
        accept=INERTIA_PREVIEW_ACCEPT,
    )


async def _delete_project(runtime: Runtime, args: GetProjectInput | GetOrgProjectInput) -> object:
    project = await _find_project(runtime, args)
    await runtime.github.request_json(
        method="DELETE",
        path=expand_path("/projects/{project_id}", project_id=project["id"]),
        accept=INERTIA_PREVIEW_ACCEPT,
    )
    return SUCCESS


async def _list_columns(runtime: Runtime, args: ListProjectColumnsInput | ListOrgProjectColumnsInput) -> object:
    project = await _find_project(runtime, args)
    return await runtime.github.request_json(
        method="GET",
        path=expand_path("/projects/{project_id}/columns", project_id=project["id"]),
        params=page_params(args),
        accept=INERTIA_PREVIEW_ACCEPT,
    )


async def _create_column(runtime: Runtime, args: CreateProjectColumnInput | CreateOrgProjectColumnInput) -> object:
    project = await _find_project(runtime, args)
    return await runtime.github.request_json(
        method="POST",
        path=expand_path("/projects/{project_id}/columns", project_id=project["id"]),
        json_body={"name": args.name},
        accept=INERTIA_PREVIEW_ACCEPT,
    )


async def _update_column(runtime: Runtime, args: UpdateProjectColumnInput) -> object:
    return await runtime.github.request_json(
        method="PATCH",
        path=expand_path("/projects/columns/{column_id}", column_id=args.column_id),
        json_body={"name": args.name},
        accept=INERTIA_PREVIEW_ACCEPT,
    )


async def _delete_column(runtime: Runtime, args: DeleteProjectColumnInput) -> object:
    await runtime.github.request_json(
        method="DELETE",
        path=expand_path("/projects/columns/{column_id}", column_id=args.column_id),
        accept=INERTIA_PREVIEW_ACCEPT,
    )
    return SUCCESS


async def _list_cards(runtime: Runtime, args: ListProjectCardsInput) -> object:
    params: dict[str, Any] = {"archived_state": args.archived_state, **page_params(args)}
    return await runtime.github.request_json(
        method="GET",
        path=expand_path("/projects/columns/{column_id}/cards", column_id=args.column_id),
        params=params,
        accept=INERTIA_PREVIEW_ACCEPT,
    )


async def _create_card(runtime: Runtime, args: CreateProjectCardInput) -> object:
    return await runtime.github.request_json(
        method="POST",
        path=expand_path("/projects/columns/{column_id}/cards", column_id=args.column_id),
        json_body=args.to_payload(exclude={"column_id"}),
        accept=INERTIA_PREVIEW_ACCEPT,
    )


async def _update_card(runtime: Runtime, args: UpdateProjectCardInput) -> object:
    return await runtime.github.request_json(
        method="PATCH",
        path=expand_path("/projects/columns/cards/{card_id}", card_id=args.card_id),
        json_body=args.to_payload(exclude={"card_id"}),
        accept=INERTIA_PREVIEW_ACCEPT,
    )


async def _delete_card(runtime: Runtime, args: DeleteProjectCardInput) -> object:
    await runtime.github.request_json(
        method="DELETE",
        path=expand_path("/projects/columns/cards/{card_id}", card_id=args.card_id),
        accept=INERTIA_PREVIEW_ACCEPT,
    )
    return SUCCESS


async def _move_card(runtime: Runtime, args: MoveProjectCardInput) -> object:
    await runtime.github.request_json(
        method="POST",
        path=expand_path("/projects/columns/cards/{card_id}/moves", card_id=args.card_id),
        json_body=args.to_payload(exclude={"card_id"}),
        accept=INERTIA_PREVIEW_ACCEPT,
    )
    return SUCCESS


OPERATIONS = {
    op.name: op
    for op in (
        operation("list_projects", "List classic projects in a repository", ListProjectsInput, list[ClassicProject], _list_projects),
        operation("list_org_projects", "List classic projects in an organization", ListOrgProjectsInput, list[ClassicProject], _list_projects),
        operation("create_project", "Create a classic project in a repository", CreateProjectInput, ClassicProject, _create_project),
        operation("create_org_project", "Create a classic project in an organization", CreateOrgProjectInput, ClassicProject, _create_project),
        operation("get_project", "Get a classic repository project by number", GetProjectInput, ClassicProject, _get_project),
        operation("get_org_project", "Get a classic organization project by number", GetOrgProjectInput, ClassicProject, _get_project),
        operation("update_project", "Update a classic repository project", UpdateProjectInput, ClassicProject, _update_project),
        operation("update_org_project", "Update a classic organization project", UpdateOrgProjectInput, ClassicProject, _update_project),
        operation("delete_project", "Delete a classic repository project", GetProjectInput, SuccessResult, _delete_project),
        operation("delete_org_project", "Delete a classic organization project", GetOrgProjectInput, SuccessResult, _delete_project),
        operation("list_project_columns", "List columns of a classic repository project", ListProjectColumnsInput, list[ClassicColumn], _list_columns),
        operation("list_org_project_columns", "List columns of a classic organization project", ListOrgProjectColumnsInput, list[ClassicColumn], _list_columns),
        operation("create_project_column", "Create a column in a classic repository project", CreateProjectColumnInput, ClassicColumn, _create_column),
        operation("create_org_project_column", "Create a column in a classic organization project", CreateOrgProjectColumnInput, ClassicColumn, _create_column),
        operation("update_project_column", "Rename a classic project column", UpdateProjectColumnInput, ClassicColumn, _update_column),
        operation("delete_project_column", "Delete a classic project column", DeleteProjectColumnInput, SuccessResult, _delete_column),
        operation("list_project_cards", "List cards in a classic project column", ListProjectCardsInput, list[ClassicCard], _list_cards),
        operation("create_project_card", "Create a card (note, issue or pull request) in a classic project column", CreateProjectCardInput, ClassicCard, _create_card),
        operation("update_project_card", "Update a classic project card's note or archived flag", UpdateProjectCardInput, ClassicCard, _update_card),
        operation("delete_project_card", "Delete a classic project card", DeleteProjectCardInput, SuccessResult, _delete_card),
        operation("move_project_card", "Move a classic project card within or across columns", MoveProjectCardInput, SuccessResult, _move_card),
    )
}
