import copy
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault('APP_ENV', 'test')
os.environ.setdefault('SWF_ENGINE_AUTOSTART', 'false')
os.environ.setdefault('LOG_LEVEL', 'DEBUG')

SAMPLE_WORKFLOW = {
    "id": "greeting",
    "version": "1.0",
    "specVersion": "0.8",
    "name": "Greeting workflow",
    "description": "Fetches a template and publishes it",
    "start": "FetchTemplate",
    "functions": [
        {
            "name": "fetchTemplate",
            "operation": "specs/actions-openapi.json#fetch:template",
            "type": "rest",
        },
        {
            "name": "publishGithub",
            "operation": "specs/actions-openapi.json#publish:github",
            "type": "rest",
        },
        {"name": "logInfo", "operation": "sysout", "type": "custom"},
    ],
    "states": [
        {
            "name": "FetchTemplate",
            "type": "operation",
            "actions": [{"functionRef": {"refName": "fetchTemplate"}}],
            "transition": "Publish",
        },
        {
            "name": "Publish",
            "type": "operation",
            "actions": [
                {"functionRef": "publishGithub"},
                {"functionRef": {"refName": "fetchTemplate"}},
                {"functionRef": {"refName": "logInfo"}},
            ],
            "end": True,
        },
    ],
}

SAMPLE_CATALOG = {
    "fetch:template": {
        "type": "object",
        "required": ["url"],
        "properties": {"url": {"type": "string"}},
    },
    "publish:github": {
        "type": "object",
        "required": ["repoUrl"],
        "properties": {"repoUrl": {"type": "string"}},
    },
}


class FakeCatalog:
    def __init__(self, schemas=None, error=None):
        self.schemas = schemas if schemas is not None else copy.deepcopy(SAMPLE_CATALOG)
        self.error = error
        self.calls = 0

    async def fetch_input_schemas(self):
        self.calls += 1
        if self.error:
            raise self.error
        return self.schemas


@pytest.fixture
def sample_workflow():
    return copy.deepcopy(SAMPLE_WORKFLOW)


@pytest.fixture
def fake_catalog():
    return FakeCatalog()


@pytest.fixture
def catalog_factory():
    return FakeCatalog
