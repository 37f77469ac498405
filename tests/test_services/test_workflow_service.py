from __future__ import annotations

import json

import httpx
import pytest
import yaml

from app.core.exceptions import (
    FetchFailureError,
    ParseFailureError,
    SpecLoadFailureError,
    UnsupportedFormatError,
)
from app.schemas.workflow import WorkflowSubmission
from app.services.data_input_schema import DataInputSchemaService
from app.services.workflow_service import (
    DirectorySpecLister,
    FixedSpecLister,
    WorkflowService,
)


def make_service(tmp_path, catalog, handler=None, spec_lister=None):
    transport = httpx.MockTransport(handler or (lambda request: httpx.Response(404)))
    return WorkflowService(
        resources_path=tmp_path,
        data_input_schema_service=DataInputSchemaService(catalog),
        http_client=httpx.AsyncClient(transport=transport),
        spec_lister=spec_lister,
    )


@pytest.mark.asyncio
async def test_save_writes_definition_and_schemas(tmp_path, sample_workflow, fake_catalog):
    service = make_service(tmp_path, fake_catalog)
    item = WorkflowSubmission.model_validate({"uri": "anything.sw.json", "definition": sample_workflow})

    saved = await service.save_workflow_definition(item)

    definition_file = tmp_path / "greeting.sw.json"
    stored = json.loads(definition_file.read_text(encoding="utf-8"))
    assert stored["dataInputSchema"] == "schemas/greeting__main_schema.json"
    assert saved.definition.data_input_schema == "schemas/greeting__main_schema.json"

    schema_files = sorted(p.name for p in (tmp_path / "schemas").iterdir())
    assert schema_files == [
        "greeting__main_schema.json",
        "greeting__sub_schema__fetch_template.json",
        "greeting__sub_schema__publish_github.json",
    ]
    composition = json.loads((tmp_path / "schemas" / "greeting__main_schema.json").read_text())
    refs = sorted(p["$ref"] for p in composition["properties"].values())
    assert refs == schema_files[1:]

    ids = set()
    for name in schema_files[1:]:
        action_schema = json.loads((tmp_path / "schemas" / name).read_text())
        assert name in action_schema["$id"]
        ids.add(action_schema["$id"])
    assert len(ids) == 2
    assert not [p for p in tmp_path.iterdir() if p.name.startswith(".staging")]


@pytest.mark.asyncio
async def test_save_yaml_keeps_suffix(tmp_path, sample_workflow, fake_catalog):
    service = make_service(tmp_path, fake_catalog)
    item = WorkflowSubmission.model_validate({"uri": "greeting.sw.yml", "definition": sample_workflow})

    await service.save_workflow_definition(item)

    stored = yaml.safe_load((tmp_path / "greeting.sw.yml").read_text(encoding="utf-8"))
    assert stored["id"] == "greeting"
    assert stored["dataInputSchema"] == "schemas/greeting__main_schema.json"


@pytest.mark.asyncio
async def test_save_keeps_null_extra_keys(tmp_path, sample_workflow, catalog_factory):
    sample_workflow["metadata"] = None
    service = make_service(tmp_path, catalog_factory(schemas={}))
    item = WorkflowSubmission.model_validate({"uri": "greeting.sw.json", "definition": sample_workflow})

    await service.save_workflow_definition(item)

    stored = json.loads((tmp_path / "greeting.sw.json").read_text(encoding="utf-8"))
    assert stored == sample_workflow


@pytest.mark.asyncio
async def test_save_without_known_actions_writes_no_schemas(tmp_path, sample_workflow, catalog_factory):
    service = make_service(tmp_path, catalog_factory(schemas={}))
    item = WorkflowSubmission.model_validate({"uri": "greeting.sw.json", "definition": sample_workflow})

    saved = await service.save_workflow_definition(item)

    assert saved.definition.data_input_schema is None
    assert not (tmp_path / "schemas").exists()
    assert "dataInputSchema" not in json.loads((tmp_path / "greeting.sw.json").read_text())


@pytest.mark.asyncio
async def test_save_rejects_unsupported_uri_before_writing(tmp_path, sample_workflow, fake_catalog):
    service = make_service(tmp_path, fake_catalog)
    item = WorkflowSubmission.model_validate({"uri": "greeting.txt", "definition": sample_workflow})

    with pytest.raises(UnsupportedFormatError):
        await service.save_workflow_definition(item)
    assert list(tmp_path.iterdir()) == []
    assert fake_catalog.calls == 0


@pytest.mark.asyncio
async def test_catalog_failure_leaves_nothing_behind(tmp_path, sample_workflow, catalog_factory):
    service = make_service(tmp_path, catalog_factory(error=FetchFailureError("down")))
    item = WorkflowSubmission.model_validate({"uri": "greeting.sw.json", "definition": sample_workflow})

    with pytest.raises(FetchFailureError):
        await service.save_workflow_definition(item)
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_save_last_write_wins(tmp_path, sample_workflow, catalog_factory):
    service = make_service(tmp_path, catalog_factory(schemas={}))
    first = WorkflowSubmission.model_validate({"uri": "greeting.sw.json", "definition": sample_workflow})
    await service.save_workflow_definition(first)

    sample_workflow["name"] = "Renamed"
    second = WorkflowSubmission.model_validate({"uri": "greeting.sw.json", "definition": sample_workflow})
    await service.save_workflow_definition(second)

    assert json.loads((tmp_path / "greeting.sw.json").read_text())["name"] == "Renamed"


@pytest.mark.asyncio
async def test_save_from_url(tmp_path, sample_workflow, catalog_factory):
    body = yaml.safe_dump(sample_workflow)

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "https://example.com/flows/remote.sw.yaml?ref=main"
        return httpx.Response(200, text=body)

    service = make_service(tmp_path, catalog_factory(schemas={}), handler)
    saved = await service.save_workflow_definition_from_url("https://example.com/flows/remote.sw.yaml?ref=main")

    assert saved.uri == "remote.sw.yaml"
    assert yaml.safe_load((tmp_path / "greeting.sw.yaml").read_text())["name"] == "Greeting workflow"


@pytest.mark.asyncio
async def test_save_from_url_fetch_failure(tmp_path, fake_catalog):
    service = make_service(tmp_path, fake_catalog, lambda request: httpx.Response(404, text="nope"))
    with pytest.raises(FetchFailureError):
        await service.save_workflow_definition_from_url("https://example.com/missing.sw.json")


@pytest.mark.asyncio
async def test_save_from_url_connection_error(tmp_path, fake_catalog):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    service = make_service(tmp_path, fake_catalog, handler)
    with pytest.raises(FetchFailureError):
        await service.save_workflow_definition_from_url("https://example.com/wf.sw.json")


@pytest.mark.asyncio
async def test_save_from_url_parse_failure(tmp_path, fake_catalog):
    service = make_service(tmp_path, fake_catalog, lambda request: httpx.Response(200, text="<html></html>"))
    with pytest.raises(ParseFailureError):
        await service.save_workflow_definition_from_url("https://example.com/page.sw.json")
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_delete_is_idempotent(tmp_path, sample_workflow, catalog_factory):
    service = make_service(tmp_path, catalog_factory(schemas={}))
    item = WorkflowSubmission.model_validate({"uri": "greeting.sw.json", "definition": sample_workflow})
    await service.save_workflow_definition(item)

    await service.delete_workflow_definition_by_id("greeting.sw.json")
    assert not (tmp_path / "greeting.sw.json").exists()
    await service.delete_workflow_definition_by_id("greeting.sw.json")
    await service.delete_workflow_definition_by_id("never-existed.sw.yaml")


@pytest.mark.asyncio
async def test_delete_rejects_paths(tmp_path, fake_catalog):
    service = make_service(tmp_path, fake_catalog)
    with pytest.raises(UnsupportedFormatError):
        await service.delete_workflow_definition_by_id("../outside.sw.json")


@pytest.mark.asyncio
@pytest.mark.parametrize("uri", ["application.properties", "..", "schemas"])
async def test_delete_only_touches_workflow_resources(tmp_path, fake_catalog, uri):
    (tmp_path / "application.properties").write_text("quarkus.http.port=8899", encoding="utf-8")
    (tmp_path / "schemas").mkdir()
    service = make_service(tmp_path, fake_catalog)

    with pytest.raises(UnsupportedFormatError):
        await service.delete_workflow_definition_by_id(uri)

    assert (tmp_path / "application.properties").exists()
    assert (tmp_path / "schemas").is_dir()


@pytest.mark.asyncio
async def test_list_stored_specs_fixed(tmp_path, fake_catalog):
    (tmp_path / "specs").mkdir()
    (tmp_path / "specs" / "actions-openapi.json").write_text('{"openapi": "3.0.3"}', encoding="utf-8")
    service = make_service(tmp_path, fake_catalog)

    specs = await service.list_stored_specs()

    assert len(specs) == 1
    assert specs[0].path.endswith("specs/actions-openapi.json")
    assert specs[0].content == {"openapi": "3.0.3"}


@pytest.mark.asyncio
async def test_list_stored_specs_missing_file_fails(tmp_path, fake_catalog):
    service = make_service(tmp_path, fake_catalog)
    with pytest.raises(SpecLoadFailureError):
        await service.list_stored_specs()


@pytest.mark.asyncio
async def test_list_stored_specs_malformed_file_fails(tmp_path, fake_catalog):
    (tmp_path / "specs").mkdir()
    (tmp_path / "specs" / "good.json").write_text("{}", encoding="utf-8")
    (tmp_path / "specs" / "bad.json").write_text("{not json", encoding="utf-8")
    service = make_service(
        tmp_path,
        fake_catalog,
        spec_lister=FixedSpecLister(["specs/good.json", "specs/bad.json"]),
    )
    with pytest.raises(SpecLoadFailureError):
        await service.list_stored_specs()


@pytest.mark.asyncio
async def test_list_stored_specs_directory(tmp_path, fake_catalog):
    (tmp_path / "specs").mkdir()
    (tmp_path / "specs" / "b.json").write_text('{"b": 1}', encoding="utf-8")
    (tmp_path / "specs" / "a.json").write_text('{"a": 1}', encoding="utf-8")
    (tmp_path / "specs" / "notes.txt").write_text("ignored", encoding="utf-8")
    service = make_service(tmp_path, fake_catalog, spec_lister=DirectorySpecLister())

    specs = await service.list_stored_specs()

    assert [spec.content for spec in specs] == [{"a": 1}, {"b": 1}]


def test_directory_lister_without_folder(tmp_path):
    assert DirectorySpecLister().list_spec_paths(tmp_path) == []
