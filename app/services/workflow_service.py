"""
Workflow Service
Persists workflow definitions and their derived data input schemas under the
engine's resource root.

The default spec listing names specs/actions-openapi.json, which this service
never writes. Operators provide that file under the resource root, or set
SWF_SPEC_LISTING=directory to list whatever JSON files specs/ holds.
"""
from __future__ import annotations

import asyncio
import json
import logging
import shutil
import uuid
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

import httpx

from app.core.exceptions import (
    FetchFailureError,
    ParseFailureError,
    SpecLoadFailureError,
    UnsupportedFormatError,
)
from app.schemas.workflow import (
    DataInputSchema,
    SpecFile,
    WorkflowSubmission,
)
from app.services.data_input_schema import SCHEMAS_FOLDER, DataInputSchemaService
from app.services.workflow_codec import (
    extract_workflow_format,
    from_workflow_source,
    to_workflow_string,
)

logger = logging.getLogger(__name__)

SPECS_FOLDER = "specs"
ACTIONS_OPEN_API_FILE_PATH = f"{SPECS_FOLDER}/actions-openapi.json"
SPEC_FILES = [ACTIONS_OPEN_API_FILE_PATH]


class SpecLister(Protocol):
    def list_spec_paths(self, root: Path) -> list[str]:
        ...


class FixedSpecLister:
    """Lists a pre-declared set of spec files relative to the resource root."""

    def __init__(self, spec_files: list[str] | None = None):
        self.spec_files = list(spec_files if spec_files is not None else SPEC_FILES)

    def list_spec_paths(self, root: Path) -> list[str]:
        return list(self.spec_files)


class DirectorySpecLister:
    """Lists every *.json file under {root}/specs."""

    def __init__(self, folder: str = SPECS_FOLDER):
        self.folder = folder

    def list_spec_paths(self, root: Path) -> list[str]:
        spec_dir = root / self.folder
        if not spec_dir.is_dir():
            return []
        return [f"{self.folder}/{path.name}" for path in sorted(spec_dir.glob("*.json"))]


class WorkflowService:
    def __init__(
        self,
        resources_path: Path,
        data_input_schema_service: DataInputSchemaService,
        http_client: httpx.AsyncClient,
        spec_lister: SpecLister | None = None,
    ):
        self.resources_path = Path(resources_path)
        self.data_input_schema_service = data_input_schema_service
        self.http_client = http_client
        self.spec_lister = spec_lister or FixedSpecLister()

    def definition_path(self, definition_id: str, uri: str) -> Path:
        if Path(definition_id).name != definition_id:
            raise ParseFailureError(f"Invalid workflow id {definition_id!r}")
        suffix = uri[uri.rindex(".sw.") :]
        return self.resources_path / f"{definition_id}{suffix}"

    async def save_workflow_definition(self, item: WorkflowSubmission) -> WorkflowSubmission:
        workflow_format = extract_workflow_format(item.uri)
        definitions_path = self.definition_path(item.definition.id, item.uri)
        self.resources_path.mkdir(parents=True, exist_ok=True)

        staging_dir = self.resources_path / f".staging-{uuid.uuid4().hex}"
        try:
            data_input_schema = await self.data_input_schema_service.generate(item.definition)
            if data_input_schema:
                await self._stage_schema_files(staging_dir, data_input_schema)
                item.definition.data_input_schema = (
                    f"{SCHEMAS_FOLDER}/{data_input_schema.composition_schema.file_name}"
                )

            content = to_workflow_string(item.definition, workflow_format)
            if data_input_schema:
                self._publish_staged_schemas(staging_dir)
            await asyncio.to_thread(_write_text, definitions_path, content)
        finally:
            if staging_dir.exists():
                shutil.rmtree(staging_dir, ignore_errors=True)

        logger.info("Saved workflow %s to %s", item.definition.id, definitions_path)
        return item

    async def _stage_schema_files(self, staging_dir: Path, data_input_schema: DataInputSchema) -> None:
        staging_dir.mkdir(parents=True, exist_ok=True)
        writes = [
            asyncio.to_thread(
                _write_text,
                staging_dir / schema_file.file_name,
                json.dumps(schema_file.json_schema, indent=2),
            )
            for schema_file in data_input_schema.schema_files
        ]
        # All schema files must be on disk before the definition referencing them.
        await asyncio.gather(*writes)

    def _publish_staged_schemas(self, staging_dir: Path) -> None:
        schemas_dir = self.resources_path / SCHEMAS_FOLDER
        schemas_dir.mkdir(parents=True, exist_ok=True)
        for staged in staging_dir.iterdir():
            staged.replace(schemas_dir / staged.name)

    async def save_workflow_definition_from_url(self, url: str) -> WorkflowSubmission:
        workflow = await self.fetch_workflow_definition_from_url(url)
        return await self.save_workflow_definition(workflow)

    async def fetch_workflow_definition_from_url(self, url: str) -> WorkflowSubmission:
        try:
            response = await self.http_client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise FetchFailureError(f"Could not fetch workflow from {url}: {exc}") from exc

        definition = from_workflow_source(response.text)
        file_name = urlparse(url).path.rstrip("/").split("/")[-1]
        return WorkflowSubmission(uri=file_name, definition=definition)

    async def delete_workflow_definition_by_id(self, uri: str) -> None:
        # Only workflow resources (*.sw.json|yaml|yml) are deletable.
        extract_workflow_format(uri)
        if Path(uri).name != uri:
            raise UnsupportedFormatError(f"Invalid workflow resource {uri!r}")
        path = self.resources_path / uri
        path.unlink(missing_ok=True)
        logger.info("Deleted workflow resource %s", path)

    async def list_stored_specs(self) -> list[SpecFile]:
        specs: list[SpecFile] = []
        for relative_path in self.spec_lister.list_spec_paths(self.resources_path):
            path = self.resources_path / relative_path
            try:
                content = json.loads(await asyncio.to_thread(path.read_text, encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as exc:
                raise SpecLoadFailureError(f"Could not load spec {path}: {exc}") from exc
            specs.append(SpecFile(path=str(path), content=content))
        return specs


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def spec_lister_for(kind: str) -> SpecLister:
    if kind == "directory":
        return DirectorySpecLister()
    return FixedSpecLister()
