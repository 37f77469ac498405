"""
Workflow Codec
Converts workflow definitions to and from their JSON / YAML wire formats.
"""
from __future__ import annotations

import json
import re
from typing import Any

import yaml
from pydantic import ValidationError

from app.core.exceptions import ParseFailureError, UnsupportedFormatError
from app.schemas.workflow import WorkflowDefinition, WorkflowFormat

WORKFLOW_URI_PATTERN = re.compile(r"\.sw\.(json|yaml|yml)$")
NORMALIZE_MARKER = "normalize"


def extract_workflow_format(uri: str) -> WorkflowFormat:
    match = WORKFLOW_URI_PATTERN.search(uri or "")
    if not match:
        raise UnsupportedFormatError(f"Unsupported workflow format for uri {uri}")
    if match.group(1) in ("yaml", "yml"):
        return WorkflowFormat.YAML
    return WorkflowFormat.JSON


def to_workflow_json(definition: WorkflowDefinition) -> str:
    return json.dumps(definition.to_document(), indent=2, ensure_ascii=False)


def to_workflow_yaml(definition: WorkflowDefinition) -> str:
    return yaml.safe_dump(
        definition.to_document(),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def to_workflow_string(definition: WorkflowDefinition, workflow_format: WorkflowFormat) -> str:
    if workflow_format == WorkflowFormat.JSON:
        return to_workflow_json(definition)
    if workflow_format == WorkflowFormat.YAML:
        return to_workflow_yaml(definition)
    raise UnsupportedFormatError(f"Unsupported format {workflow_format}")


def from_workflow_source(content: str) -> WorkflowDefinition:
    """Parse JSON or YAML workflow text into the public model.

    The `normalize` marker some workflow tooling injects is removed at every
    nesting level before validation, so it never reaches disk or a caller.
    """
    document = _load_document(content)
    if not isinstance(document, dict):
        raise ParseFailureError("Workflow source must be a JSON or YAML object")
    try:
        return WorkflowDefinition.model_validate(remove_property(document, NORMALIZE_MARKER))
    except ValidationError as exc:
        raise ParseFailureError(f"Invalid workflow definition: {exc}") from exc


def remove_property(obj: Any, prop_to_delete: str) -> Any:
    if isinstance(obj, list):
        return [remove_property(item, prop_to_delete) for item in obj]
    if isinstance(obj, dict):
        return {
            key: remove_property(value, prop_to_delete)
            for key, value in obj.items()
            if key != prop_to_delete
        }
    return obj


def _load_document(content: str) -> Any:
    if content is None or not content.strip():
        raise ParseFailureError("Workflow source is empty")
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass
    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as exc:
        line_info = ""
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            line_info = f" at {mark.line + 1}:{mark.column + 1}"
        raise ParseFailureError(f"Workflow source is neither JSON nor YAML{line_info}: {exc}") from exc
