"""Schema validation for rule catalogs, grade results and API documents."""

import json
from functools import lru_cache
from pathlib import Path

import jsonschema

SCHEMAS_DIR = Path(__file__).resolve().parent.parent / "schemas"


@lru_cache(maxsize=None)
def _load_schema(name: str) -> dict:
    path = SCHEMAS_DIR / f"{name}.schema.json"
    return json.loads(path.read_text(encoding="utf-8"))


def validate_rule_catalog(data: dict) -> None:
    """Validate a rule catalog file against schema. Raises jsonschema.ValidationError if invalid."""
    jsonschema.validate(data, _load_schema("rule_catalog"))


def validate_grade_result(data: dict) -> None:
    """Validate a serialized grade against schema. Raises jsonschema.ValidationError if invalid."""
    jsonschema.validate(data, _load_schema("grade_result"))


def openapi_document_errors(data) -> list[jsonschema.ValidationError]:
    """All structural errors of a parsed API document, in a stable order."""
    validator = jsonschema.Draft7Validator(_load_schema("openapi_document"))
    return sorted(validator.iter_errors(data), key=lambda e: ([str(p) for p in e.absolute_path], e.message))
