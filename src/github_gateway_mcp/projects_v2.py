"""Current projects (ProjectV2) over GraphQL.

Projects, fields and items are addressed by opaque node IDs. An item's position on a
board is a field value, usually a single-select status field; there are no columns.
Mutations that need an owner or repository ID resolve them first through
``ResolutionPipeline`` and never run with a partially resolved set.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import ErrorKind, GitHubError
from .pagination import CursorPage, CursorPageInput, cursor_variables
from .resolver import ResolutionPipeline
from .schemas import (
    SUCCESS,
    GraphModel,
    InputModel,
    NodeId,
    Owner,
    PassThrough,
    PositiveInt,
    RepoName,
    SuccessResult,
    operation,
)

if TYPE_CHECKING:
    from .tools import Runtime


_PROJECT_FIELDS = """
fragment ProjectFields on ProjectV2 {
  id
  number
  title
  url
  shortDescription
  readme
  closed
  public
  createdAt
  updatedAt
  owner { ... on Organization { login } ... on User { login } }
}
""".strip()

_FIELD_FIELDS = """
fragment FieldFields on ProjectV2FieldConfiguration {
  __typename
  ... on ProjectV2FieldCommon { id name dataType }
  ... on ProjectV2SingleSelectField { options { id name color description } }
  ... on ProjectV2IterationField {
    configuration { duration startDay iterations { id title startDate duration } }
  }
}
""".strip()

_ITEM_FIELDS = """
fragment ItemFields on ProjectV2Item {
  id
  type
  isArchived
  createdAt
  updatedAt
  content {
    __typename
    ... on DraftIssue { id title body }
    ... on Issue { id number title url state repository { nameWithOwner } }
    ... on PullRequest { id number title url state repository { nameWithOwner } }
  }
  fieldValues(first: 20) {
    nodes {
      __typename
      ... on ProjectV2ItemFieldTextValue { text field { ... on ProjectV2FieldCommon { id name } } }
      ... on ProjectV2ItemFieldNumberValue { number field { ... on ProjectV2FieldCommon { id name } } }
      ... on ProjectV2ItemFieldDateValue { date field { ... on ProjectV2FieldCommon { id name } } }
      ... on ProjectV2ItemFieldSingleSelectValue { name optionId field { ... on ProjectV2FieldCommon { id name } } }
      ... on ProjectV2ItemFieldIterationValue { title iterationId field { ... on ProjectV2FieldCommon { id name } } }
    }
  }
}
""".strip()


_QUERY_LIST_PROJECTS = f"""
query($login: String!, $first: Int!, $after: String, $query: String) {{
  repositoryOwner(login: $login) {{
    ... on ProjectV2Owner {{
      projectsV2(first: $first, after: $after, query: $query) {{
        nodes {{ ...ProjectFields }}
        pageInfo {{ endCursor hasNextPage }}
        totalCount
      }}
    }}
  }}
}}
{_PROJECT_FIELDS}
""".strip()

_QUERY_GET_PROJECT = f"""
query($login: String!, $number: Int!) {{
  repositoryOwner(login: $login) {{
    ... on ProjectV2Owner {{
      projectV2(number: $number) {{ ...ProjectFields }}
    }}
  }}
}}
{_PROJECT_FIELDS}
""".strip()

_MUTATION_CREATE_PROJECT = f"""
mutation($ownerId: ID!, $title: String!, $repositoryId: ID) {{
  createProjectV2(input: {{ ownerId: $ownerId, title: $title, repositoryId: $repositoryId }}) {{
    projectV2 {{ ...ProjectFields }}
  }}
}}
{_PROJECT_FIELDS}
""".strip()

_MUTATION_UPDATE_PROJECT = f"""
mutation($projectId: ID!, $title: String, $shortDescription: String, $readme: String, $closed: Boolean, $public: Boolean) {{
  updateProjectV2(input: {{
    projectId: $projectId,
    title: $title,
    shortDescription: $shortDescription,
    readme: $readme,
    closed: $closed,
    public: $public
  }}) {{
    projectV2 {{ ...ProjectFields }}
  }}
}}
{_PROJECT_FIELDS}
""".strip()

_MUTATION_DELETE_PROJECT = """
mutation($projectId: ID!) {
  deleteProjectV2(input: { projectId: $projectId }) { projectV2 { id } }
}
""".strip()

_QUERY_LIST_FIELDS = f"""
query($projectId: ID!, $first: Int!, $after: String) {{
  node(id: $projectId) {{
    ... on ProjectV2 {{
      fields(first: $first, after: $after) {{
        nodes {{ ...FieldFields }}
        pageInfo {{ endCursor hasNextPage }}
        totalCount
      }}
    }}
  }}
}}
{_FIELD_FIELDS}
""".strip()

_MUTATION_CREATE_FIELD = f"""
mutation($projectId: ID!, $dataType: ProjectV2CustomFieldType!, $name: String!, $singleSelectOptions: [ProjectV2SingleSelectFieldOptionInput!]) {{
  createProjectV2Field(input: {{
    projectId: $projectId,
    dataType: $dataType,
    name: $name,
    singleSelectOptions: $singleSelectOptions
  }}) {{
    projectV2Field {{ ...FieldFields }}
  }}
}}
{_FIELD_FIELDS}
""".strip()

_MUTATION_UPDATE_FIELD = f"""
mutation($fieldId: ID!, $name: String, $singleSelectOptions: [ProjectV2SingleSelectFieldOptionInput!]) {{
  updateProjectV2Field(input: {{ fieldId: $fieldId, name: $name, singleSelectOptions: $singleSelectOptions }}) {{
    projectV2Field {{ ...FieldFields }}
  }}
}}
{_FIELD_FIELDS}
""".strip()

_MUTATION_DELETE_FIELD = """
mutation($fieldId: ID!) {
  deleteProjectV2Field(input: { fieldId: $fieldId }) { projectV2Field { __typename } }
}
""".strip()

_QUERY_LIST_ITEMS = f"""
query($projectId: ID!, $first: Int!, $after: String) {{
  node(id: $projectId) {{
    ... on ProjectV2 {{
      items(first: $first, after: $after) {{
        nodes {{ ...ItemFields }}
        pageInfo {{ endCursor hasNextPage }}
        totalCount
      }}
    }}
  }}
}}
{_ITEM_FIELDS}
""".strip()

_MUTATION_ADD_ITEM = f"""
mutation($projectId: ID!, $contentId: ID!) {{
  addProjectV2ItemById(input: {{ projectId: $projectId, contentId: $contentId }}) {{
    item {{ ...ItemFields }}
  }}
}}
{_ITEM_FIELDS}
""".strip()

_MUTATION_ADD_DRAFT_ITEM = f"""
mutation($projectId: ID!, $title: String!, $body: String) {{
  addProjectV2DraftIssue(input: {{ projectId: $projectId, title: $title, body: $body }}) {{
    projectItem {{ ...ItemFields }}
  }}
}}
{_ITEM_FIELDS}
""".strip()

_MUTATION_UPDATE_ITEM_FIELD_VALUE = """
mutation($projectId: ID!, $itemId: ID!, $fieldId: ID!, $value: ProjectV2FieldValue!) {
  updateProjectV2ItemFieldValue(
    input: { projectId: $projectId, itemId: $itemId, fieldId: $fieldId, value: $value }
  ) {
    projectV2Item { id }
  }
}
""".strip()

_MUTATION_DELETE_ITEM = """
mutation($projectId: ID!, $itemId: ID!) {
  deleteProjectV2Item(input: { projectId: $projectId, itemId: $itemId }) { deletedItemId }
}
""".strip()


# Output models


class ProjectOwnerRef(GraphModel):
    login: str


class ProjectV2(GraphModel):
    id: str
    number: int
    title: str
    url: str
    short_description: str | None = None
    readme: str | None = None
    closed: bool
    public: bool
    created_at: str
    updated_at: str
    owner: ProjectOwnerRef


class SingleSelectOption(GraphModel):
    id: str
    name: str
    color: str | None = None
    description: str | None = None


class ProjectV2Field(GraphModel):
    typename: str = Field(alias="__typename")
    id: str
    name: str
    data_type: str
    options: list[SingleSelectOption] | None = None
    # Iteration settings vary by field; returned as GitHub sends them.
    configuration: PassThrough = None


class FieldValueConnection(GraphModel):
    nodes: list[PassThrough]


class ProjectV2Item(GraphModel):
    id: str
    type: str
    is_archived: bool
    created_at: str
    updated_at: str
    content: PassThrough = None
    field_values: FieldValueConnection


# Inputs

OptionColor = Literal["GRAY", "BLUE", "GREEN", "YELLOW", "ORANGE", "RED", "PINK", "PURPLE"]


class SingleSelectOptionInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    color: OptionColor = "GRAY"
    description: str = ""


class ListProjectsV2Input(CursorPageInput):
    owner: Owner
    query: str | None = Field(default=None, description="Filter projects, e.g. 'is:open'")


class GetProjectV2Input(InputModel):
    owner: Owner
    project_number: PositiveInt = Field(description="Project number")


class CreateOrgProjectV2Input(InputModel):
    org: str = Field(min_length=1, description="Organization login")
    title: str = Field(min_length=1, description="Project title")


class CreateRepoProjectV2Input(InputModel):
    owner: Owner
    repo: RepoName
    title: str = Field(min_length=1, description="Project title")


class UpdateProjectV2Input(InputModel):
    project_id: NodeId
    title: str | None = Field(default=None, min_length=1)
    short_description: str | None = None
    readme: str | None = None
    closed: bool | None = None
    public: bool | None = None

    @model_validator(mode="after")
    def _has_changes(self) -> UpdateProjectV2Input:
        if not self.model_fields_set - {"project_id"}:
            raise ValueError("at least one field to update is required")
        return self


class ProjectRef(InputModel):
    project_id: NodeId


class ListProjectV2ChildrenInput(CursorPageInput):
    project_id: NodeId


class CreateProjectV2FieldInput(InputModel):
    project_id: NodeId
    name: str = Field(min_length=1, description="Field name")
    data_type: Literal["TEXT", "NUMBER", "DATE", "SINGLE_SELECT"]
    single_select_options: list[SingleSelectOptionInput] | None = Field(
        default=None, description="Options for a SINGLE_SELECT field"
    )

    @model_validator(mode="after")
    def _options_match_type(self) -> CreateProjectV2FieldInput:
        if self.data_type == "SINGLE_SELECT" and not self.single_select_options:
            raise ValueError("single_select_options is required for SINGLE_SELECT fields")
        if self.data_type != "SINGLE_SELECT" and self.single_select_options is not None:
            raise ValueError("single_select_options is only allowed for SINGLE_SELECT fields")
        return self


class UpdateProjectV2FieldInput(InputModel):
    field_id: NodeId
    name: str | None = Field(default=None, min_length=1)
    single_select_options: list[SingleSelectOptionInput] | None = Field(
        default=None, description="Replaces all options of a single-select field"
    )

    @model_validator(mode="after")
    def _has_changes(self) -> UpdateProjectV2FieldInput:
        if not self.model_fields_set - {"field_id"}:
            raise ValueError("name or single_select_options is required")
        return self


class FieldRef(InputModel):
    field_id: NodeId


class AddProjectV2ItemInput(InputModel):
    project_id: NodeId
    content_id: str | None = Field(default=None, min_length=1, description="Node ID of an issue or pull request")
    draft_title: str | None = Field(default=None, min_length=1, description="Title of a new draft issue")
    draft_body: str | None = Field(default=None, description="Body of a new draft issue")

    @model_validator(mode="after")
    def _content_or_draft(self) -> AddProjectV2ItemInput:
        if (self.content_id is None) == (self.draft_title is None):
            raise ValueError("give exactly one of content_id or draft_title")
        if self.draft_body is not None and self.draft_title is None:
            raise ValueError("draft_body requires draft_title")
        return self


class ItemRef(InputModel):
    project_id: NodeId
    item_id: NodeId


_VALUE_KEYS = ("text", "number", "date", "single_select_option_id", "iteration_id")


class UpdateItemFieldValueInput(ItemRef):
    field_id: NodeId
    text: str | None = None
    number: float | None = None
    date: str | None = Field(default=None, pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD")
    single_select_option_id: str | None = Field(default=None, min_length=1)
    iteration_id: str | None = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def _one_value(self) -> UpdateItemFieldValueInput:
        given = [k for k in _VALUE_KEYS if getattr(self, k) is not None]
        if len(given) != 1:
            raise ValueError(f"give exactly one of: {', '.join(_VALUE_KEYS)}")
        return self

    def value(self) -> dict[str, Any]:
        """The ProjectV2FieldValue input object."""
        camel = {
            "text": "text",
            "number": "number",
            "date": "date",
            "single_select_option_id": "singleSelectOptionId",
            "iteration_id": "iterationId",
        }
        return {camel[k]: getattr(self, k) for k in _VALUE_KEYS if getattr(self, k) is not None}


class MoveProjectV2ItemInput(ItemRef):
    field_id: NodeId = Field(description="Single-select field that groups the board, usually Status")
    option_id: str = Field(min_length=1, description="Option to move the item to")


# Handlers


def _node_or_not_found(data: dict[str, Any], path: tuple[str, ...], what: str) -> Any:
    node: Any = data
    for key in path:
        node = node.get(key) if isinstance(node, dict) else None
    if node is None:
        raise GitHubError(kind=ErrorKind.NOT_FOUND, message=f"{what} not found")
    return node


def _payload(data: dict[str, Any], mutation: str, key: str) -> Any:
    # Mutation results are validated by the operation's output type.
    payload = data.get(mutation)
    return payload.get(key) if isinstance(payload, dict) else None


async def _list_projects(runtime: Runtime, args: ListProjectsV2Input) -> object:
    result = await runtime.graphql.execute(
        query=_QUERY_LIST_PROJECTS,
        variables={"login": args.owner, "query": args.query, **cursor_variables(args)},
    )
    return _node_or_not_found(result.data, ("repositoryOwner", "projectsV2"), f"Owner '{args.owner}'")


async def _get_project(runtime: Runtime, args: GetProjectV2Input) -> object:
    result = await runtime.graphql.execute(
        query=_QUERY_GET_PROJECT,
        variables={"login": args.owner, "number": args.project_number},
    )
    return _node_or_not_found(
        result.data,
        ("repositoryOwner", "projectV2"),
        f"Project {args.project_number} of '{args.owner}'",
    )


async def _create_org_project(runtime: Runtime, args: CreateOrgProjectV2Input) -> object:
    ids = await ResolutionPipeline().then("owner_id", lambda _: runtime.resolver.organization_id(args.org)).run()
    result = await runtime.graphql.execute(
        query=_MUTATION_CREATE_PROJECT,
        variables={"ownerId": ids["owner_id"], "title": args.title},
    )
    return _payload(result.data, "createProjectV2", "projectV2")


async def _create_repo_project(runtime: Runtime, args: CreateRepoProjectV2Input) -> object:
    ids = await (
        ResolutionPipeline()
        .then("owner_id", lambda _: runtime.resolver.owner_id(args.owner))
        .then("repository_id", lambda _: runtime.resolver.repository_id(args.owner, args.repo))
        .run()
    )
    result = await runtime.graphql.execute(
        query=_MUTATION_CREATE_PROJECT,
        variables={"ownerId": ids["owner_id"], "title": args.title, "repositoryId": ids["repository_id"]},
    )
    return _payload(result.data, "createProjectV2", "projectV2")


_PROJECT_CHANGES = {
    "title": "title",
    "short_description": "shortDescription",
    "readme": "readme",
    "closed": "closed",
    "public": "public",
}


def _changes(args: InputModel, names: dict[str, str]) -> dict[str, Any]:
    """Variables for the fields the caller set, explicit nulls included."""
    return {camel: getattr(args, name) for name, camel in names.items() if name in args.model_fields_set}


async def _update_project(runtime: Runtime, args: UpdateProjectV2Input) -> object:
    changes = _changes(args, _PROJECT_CHANGES)
    result = await runtime.graphql.execute(
        query=_MUTATION_UPDATE_PROJECT,
        variables={"projectId": args.project_id, **changes},
        keep_null=changes.keys(),
    )
    return _payload(result.data, "updateProjectV2", "projectV2")


async def _delete_project(runtime: Runtime, args: ProjectRef) -> object:
    await runtime.graphql.execute(query=_MUTATION_DELETE_PROJECT, variables={"projectId": args.project_id})
    return SUCCESS


async def _list_fields(runtime: Runtime, args: ListProjectV2ChildrenInput) -> object:
    result = await runtime.graphql.execute(
        query=_QUERY_LIST_FIELDS,
        variables={"projectId": args.project_id, **cursor_variables(args)},
    )
    return _node_or_not_found(result.data, ("node", "fields"), f"Project '{args.project_id}'")


def _options(options: list[SingleSelectOptionInput] | None) -> list[dict[str, Any]] | None:
    if options is None:
        return None
    return [o.model_dump() for o in options]


async def _create_field(runtime: Runtime, args: CreateProjectV2FieldInput) -> object:
    result = await runtime.graphql.execute(
        query=_MUTATION_CREATE_FIELD,
        variables={
            "projectId": args.project_id,
            "dataType": args.data_type,
            "name": args.name,
            "singleSelectOptions": _options(args.single_select_options),
        },
    )
    return _payload(result.data, "createProjectV2Field", "projectV2Field")


async def _update_field(runtime: Runtime, args: UpdateProjectV2FieldInput) -> object:
    changes = _changes(args, {"name": "name"})
    if "single_select_options" in args.model_fields_set:
        changes["singleSelectOptions"] = _options(args.single_select_options)
    result = await runtime.graphql.execute(
        query=_MUTATION_UPDATE_FIELD,
        variables={"fieldId": args.field_id, **changes},
        keep_null=changes.keys(),
    )
    return _payload(result.data, "updateProjectV2Field", "projectV2Field")


async def _delete_field(runtime: Runtime, args: FieldRef) -> object:
    await runtime.graphql.execute(query=_MUTATION_DELETE_FIELD, variables={"fieldId": args.field_id})
    return SUCCESS


async def _list_items(runtime: Runtime, args: ListProjectV2ChildrenInput) -> object:
    result = await runtime.graphql.execute(
        query=_QUERY_LIST_ITEMS,
        variables={"projectId": args.project_id, **cursor_variables(args)},
    )
    return _node_or_not_found(result.data, ("node", "items"), f"Project '{args.project_id}'")


async def _add_item(runtime: Runtime, args: AddProjectV2ItemInput) -> object:
    if args.content_id is not None:
        result = await runtime.graphql.execute(
            query=_MUTATION_ADD_ITEM,
            variables={"projectId": args.project_id, "contentId": args.content_id},
        )
        return _payload(result.data, "addProjectV2ItemById", "item")

    result = await runtime.graphql.execute(
        query=_MUTATION_ADD_DRAFT_ITEM,
        variables={"projectId": args.project_id, "title": args.draft_title, "body": args.draft_body},
    )
    return _payload(result.data, "addProjectV2DraftIssue", "projectItem")


async def _set_field_value(runtime: Runtime, *, project_id: str, item_id: str, field_id: str, value: dict[str, Any]) -> None:
    result = await runtime.graphql.execute(
        query=_MUTATION_UPDATE_ITEM_FIELD_VALUE,
        variables={"projectId": project_id, "itemId": item_id, "fieldId": field_id, "value": value},
    )
    item = _payload(result.data, "updateProjectV2ItemFieldValue", "projectV2Item")
    if not isinstance(item, dict) or not isinstance(item.get("id"), str):
        raise GitHubError(
            kind=ErrorKind.VALIDATION,
            message="GitHub response did not match the expected shape (projectV2Item.id)",
            context={"stage": "response"},
        )


async def _update_item_field_value(runtime: Runtime, args: UpdateItemFieldValueInput) -> object:
    await _set_field_value(
        runtime, project_id=args.project_id, item_id=args.item_id, field_id=args.field_id, value=args.value()
    )
    return SUCCESS


async def _delete_item(runtime: Runtime, args: ItemRef) -> object:
    await runtime.graphql.execute(
        query=_MUTATION_DELETE_ITEM,
        variables={"projectId": args.project_id, "itemId": args.item_id},
    )
    return SUCCESS


async def _move_item(runtime: Runtime, args: MoveProjectV2ItemInput) -> object:
    await _set_field_value(
        runtime,
        project_id=args.project_id,
        item_id=args.item_id,
        field_id=args.field_id,
        value={"singleSelectOptionId": args.option_id},
    )
    return SUCCESS


OPERATIONS = {
    op.name: op
    for op in (
        operation("list_projects_v2", "List projects of a user or organization", ListProjectsV2Input, CursorPage[ProjectV2], _list_projects),
        operation("get_project_v2", "Get a project by owner login and project number", GetProjectV2Input, ProjectV2, _get_project),
        operation("create_org_project_v2", "Create a project owned by an organization", CreateOrgProjectV2Input, ProjectV2, _create_org_project),
        operation("create_repo_project_v2", "Create a project linked to a repository", CreateRepoProjectV2Input, ProjectV2, _create_repo_project),
        operation("update_project_v2", "Update a project's title, description, readme or visibility", UpdateProjectV2Input, ProjectV2, _update_project),
        operation("delete_project_v2", "Delete a project", ProjectRef, SuccessResult, _delete_project),
        operation("list_project_v2_fields", "List the fields of a project", ListProjectV2ChildrenInput, CursorPage[ProjectV2Field], _list_fields),
        operation("create_project_v2_field", "Create a custom field in a project", CreateProjectV2FieldInput, ProjectV2Field, _create_field),
        operation("update_project_v2_field", "Rename a project field or replace its single-select options", UpdateProjectV2FieldInput, ProjectV2Field, _update_field),
        operation("delete_project_v2_field", "Delete a custom field from a project", FieldRef, SuccessResult, _delete_field),
        operation("list_project_v2_items", "List the items of a project", ListProjectV2ChildrenInput, CursorPage[ProjectV2Item], _list_items),
        operation("add_project_v2_item", "Add an existing issue or pull request, or a new draft issue, to a project", AddProjectV2ItemInput, ProjectV2Item, _add_item),
        operation("update_project_v2_item_field_value", "Set one field value on a project item", UpdateItemFieldValueInput, SuccessResult, _update_item_field_value),
        operation("delete_project_v2_item", "Remove an item from a project", ItemRef, SuccessResult, _delete_item),
        operation("move_project_v2_item", "Move a project item by setting its single-select status field", MoveProjectV2ItemInput, SuccessResult, _move_item),
    )
}
