from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WorkflowFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"


class WorkflowDefinition(BaseModel):
    """A serverless workflow document.

    Only the fields the backend reads are declared; everything else in the
    document (specVersion, start, functions, events, ...) is kept as extra
    data so it survives a save unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(min_length=1)
    name: str
    description: str | None = None
    states: list[dict[str, Any]] = Field(min_length=1)
    data_input_schema: str | None = Field(default=None, alias="dataInputSchema")

    def to_document(self) -> dict[str, Any]:
        # Unset optional fields are omitted; extra keys keep explicit nulls.
        exclude = {
            name
            for name in ("description", "data_input_schema")
            if getattr(self, name) is None
        }
        return self.model_dump(by_alias=True, exclude=exclude)

    @property
    def functions(self) -> list[dict[str, Any]]:
        functions = (self.model_extra or {}).get("functions") or []
        return [f for f in functions if isinstance(f, dict)]


class WorkflowSubmission(BaseModel):
    """Body of POST /workflows: the target resource name plus the definition."""

    uri: str
    definition: WorkflowDefinition


class SwfItem(BaseModel):
    id: str
    name: str | None = ""
    description: str | None = ""
    definition: str = ""


class SwfListResult(BaseModel):
    items: list[SwfItem] = Field(default_factory=list)
    limit: int = 0
    offset: int = 0
    total_count: int = Field(default=0, alias="totalCount")

    model_config = ConfigDict(populate_by_name=True)


class SpecFile(BaseModel):
    path: str
    content: Any


class ActionSchema(BaseModel):
    action_name: str
    file_name: str
    json_schema: dict[str, Any]


class CompositionSchema(BaseModel):
    file_name: str
    json_schema: dict[str, Any]


class DataInputSchema(BaseModel):
    composition_schema: CompositionSchema
    action_schemas: list[ActionSchema] = Field(default_factory=list)

    @property
    def schema_files(self) -> list[CompositionSchema | ActionSchema]:
        return [self.composition_schema, *self.action_schemas]
