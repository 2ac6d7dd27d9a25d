"""Shared fixtures: isolated log/db locations, the built-in catalog, spec builders."""

import copy
from pathlib import Path

import pytest

from compliance.catalog import load_catalog
from compliance.config import DEFAULT_RULESET_PATH
from compliance.pipeline import load_spec_text

SAMPLE_SPEC_PATH = Path(__file__).resolve().parent.parent / "samples" / "orders_api_v2.yaml"

MINIMAL_SPEC = {
    "openapi": "3.0.3",
    "info": {
        "title": "Items API",
        "version": "1.0.0",
        "x-api-id": "items_1700000000000_0123456789abcdef",
    },
    "paths": {
        "/api/v2/items": {
            "post": {
                "parameters": [{"name": "X-Organization-ID", "in": "header", "required": True}],
                "responses": {"201": {"description": "created"}},
            },
        },
    },
    "components": {"securitySchemes": {"bearerAuth": {"type": "http", "scheme": "bearer"}}},
}


@pytest.fixture(autouse=True)
def isolated_runtime(tmp_path, monkeypatch):
    """Keep audit logs and the grade store out of the project tree."""
    monkeypatch.setenv("GRADER_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("GRADER_DB_PATH", str(tmp_path / "grader.sqlite"))
    for name in ("GRADER_RULESET_PATH", "GRADER_REQUIRED_OPENAPI_VERSION",
                 "GRADER_DEPENDENCY_MIN_COVERAGE", "GRADER_MAX_WORKERS"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def catalog():
    return load_catalog(DEFAULT_RULESET_PATH)


@pytest.fixture
def sample_text():
    return SAMPLE_SPEC_PATH.read_text(encoding="utf-8")


@pytest.fixture
def sample_tree(sample_text):
    return load_spec_text(sample_text)


@pytest.fixture
def minimal_spec():
    return copy.deepcopy(MINIMAL_SPEC)
