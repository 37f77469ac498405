"""
Data Input Schema Generator
Derives the JSON-Schemas a workflow needs for structured form input from the
actions its states invoke.
"""
from __future__ import annotations

import copy
import logging
import re
from typing import Any, Iterator, Protocol

from app.schemas.workflow import (
    ActionSchema,
    CompositionSchema,
    DataInputSchema,
    WorkflowDefinition,
)

logger = logging.getLogger(__name__)

SCHEMAS_FOLDER = "schemas"
JSON_SCHEMA_DRAFT = "http://json-schema.org/draft-07/schema#"


class ActionSchemaSource(Protocol):
    async def fetch_input_schemas(self) -> dict[str, dict[str, Any]]:
        ...


def iter_state_actions(states: list[dict[str, Any]]) -> Iterator[dict[str, Any]]:
    """Yield every action object in the states, in document order."""
    for state in states:
        yield from _actions(state.get("actions"))
        for branch in state.get("branches") or []:
            if isinstance(branch, dict):
                yield from _actions(branch.get("actions"))
        for on_event in state.get("onEvents") or []:
            if isinstance(on_event, dict):
                yield from _actions(on_event.get("actions"))
        if isinstance(state.get("action"), dict):
            yield state["action"]


def _actions(actions: Any) -> Iterator[dict[str, Any]]:
    for action in actions or []:
        if isinstance(action, dict):
            yield action


def function_ref_name(action: dict[str, Any]) -> str | None:
    ref = action.get("functionRef")
    if isinstance(ref, str):
        return ref
    if isinstance(ref, dict) and isinstance(ref.get("refName"), str):
        return ref["refName"]
    return None


def collect_action_names(definition: WorkflowDefinition) -> list[str]:
    """Distinct catalog action ids invoked by the workflow, first encounter first.

    A function whose operation points at an OpenAPI operation
    (`specs/actions-openapi.json#fetch:plain`) maps to the fragment; any other
    function maps to its own name.
    """
    operations: dict[str, str] = {}
    for function in definition.functions:
        name = function.get("name")
        operation = function.get("operation")
        if isinstance(name, str) and isinstance(operation, str) and "#" in operation:
            operations[name] = operation.rsplit("#", 1)[1]

    seen: dict[str, None] = {}
    for action in iter_state_actions(definition.states):
        ref_name = function_ref_name(action)
        if not ref_name:
            continue
        seen.setdefault(operations.get(ref_name, ref_name), None)
    return list(seen)


def safe_file_part(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]+", "_", value).strip("_") or "action"


def unique_file_part(action_name: str, taken: set[str]) -> str:
    """Sanitized action name, suffixed _2, _3, ... when already taken."""
    base = safe_file_part(action_name)
    candidate = base
    counter = 2
    while candidate in taken:
        candidate = f"{base}_{counter}"
        counter += 1
    taken.add(candidate)
    return candidate


def action_schema_file_name(workflow_id: str, action_part: str) -> str:
    return f"{safe_file_part(workflow_id)}__sub_schema__{safe_file_part(action_part)}.json"


def composition_schema_file_name(workflow_id: str) -> str:
    return f"{safe_file_part(workflow_id)}__main_schema.json"


def with_schema_id(json_schema: dict[str, Any], folder: str, file_name: str) -> dict[str, Any]:
    """Return the schema with `$id` placed first; other keys are untouched."""
    rest = {k: v for k, v in json_schema.items() if k != "$id"}
    return {"$id": f"classpath:/{folder}/{file_name}", **rest}


def assign_schema_ids(data_input_schema: DataInputSchema, folder: str = SCHEMAS_FOLDER) -> DataInputSchema:
    composition = data_input_schema.composition_schema
    return DataInputSchema(
        composition_schema=CompositionSchema(
            file_name=composition.file_name,
            json_schema=with_schema_id(composition.json_schema, folder, composition.file_name),
        ),
        action_schemas=[
            ActionSchema(
                action_name=action_schema.action_name,
                file_name=action_schema.file_name,
                json_schema=with_schema_id(action_schema.json_schema, folder, action_schema.file_name),
            )
            for action_schema in data_input_schema.action_schemas
        ],
    )


class DataInputSchemaService:
    """Builds one composition schema plus one schema per catalog-known action."""

    def __init__(self, catalog: ActionSchemaSource, schemas_folder: str = SCHEMAS_FOLDER):
        self.catalog = catalog
        self.schemas_folder = schemas_folder

    async def generate(self, definition: WorkflowDefinition) -> DataInputSchema | None:
        action_names = collect_action_names(definition)
        if not action_names:
            return None

        # Catalog failures propagate; nothing is generated from a partial catalog.
        input_schemas = await self.catalog.fetch_input_schemas()

        action_schemas: list[ActionSchema] = []
        properties: dict[str, dict[str, str]] = {}
        taken: set[str] = set()
        for action_name in action_names:
            input_schema = input_schemas.get(action_name)
            if not input_schema:
                logger.debug("Action %s has no input schema, skipping", action_name)
                continue
            # Distinct ids may sanitize alike (publish:github, publish_github).
            action_part = unique_file_part(action_name, taken)
            file_name = action_schema_file_name(definition.id, action_part)
            action_schemas.append(
                ActionSchema(
                    action_name=action_name,
                    file_name=file_name,
                    json_schema=copy.deepcopy(input_schema),
                )
            )
            properties[action_part] = {"$ref": file_name}

        if not action_schemas:
            return None

        composition = CompositionSchema(
            file_name=composition_schema_file_name(definition.id),
            json_schema={
                "$schema": JSON_SCHEMA_DRAFT,
                "title": f"{definition.name} data input",
                "type": "object",
                "properties": properties,
            },
        )
        return assign_schema_ids(
            DataInputSchema(composition_schema=composition, action_schemas=action_schemas),
            self.schemas_folder,
        )
