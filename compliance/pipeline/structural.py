"""Structural validator: jsonschema checks on the raw document, reported as OAS-STRUCT findings."""

from compliance.models import Finding
from compliance.validation import openapi_document_errors

STRUCT_RULE_ID = "OAS-STRUCT"
STRUCT_CATEGORY = "structure"


def _json_path(path) -> str:
    out = "$"
    for part in path:
        if isinstance(part, int):
            out += f"[{part}]"
        elif part.isidentifier():
            out += f".{part}"
        else:
            out += f"['{part}']"
    return out


def structural_findings(tree) -> list[Finding]:
    """One error finding per schema violation, plus a warning when no component schemas are defined."""
    findings = [
        Finding(
            rule_id=STRUCT_RULE_ID,
            severity="error",
            message=f"Schema validation failed: {error.message}",
            location=_json_path(error.absolute_path),
            category=STRUCT_CATEGORY,
            fix_hint="Fix the document structure so it matches OpenAPI 3.0",
        )
        for error in openapi_document_errors(tree)
    ]
    components = tree.get("components") if isinstance(tree, dict) else None
    schemas = components.get("schemas") if isinstance(components, dict) else None
    if not schemas:
        findings.append(Finding(
            rule_id=STRUCT_RULE_ID,
            severity="warn",
            message="No reusable schemas defined in components.schemas",
            location="$.components.schemas",
            category=STRUCT_CATEGORY,
            fix_hint="Move shared request/response shapes into components.schemas",
        ))
    return findings
