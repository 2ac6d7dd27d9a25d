"""Prerequisite gate: mandatory structural checks run before any rule is scored.

Checks run in a fixed order, independent of the catalog. Each failing check yields
exactly one error finding. Any failure blocks scoring entirely.
"""

import re
from typing import Callable, NamedTuple

from compliance.config import DEFAULT_OPENAPI_VERSION
from compliance.document import WRITE_METHODS, SpecDocument
from compliance.models import Finding, PrerequisiteResult

CATEGORY = "prerequisites"
API_ID_RE = re.compile(r"^[a-z0-9]+_\d{13}_[a-f0-9]{16}$")
ORG_HEADER = "X-Organization-ID"


class PrerequisiteCheck(NamedTuple):
    id: str
    description: str
    run: Callable[[SpecDocument, str, set], Finding | None]


def _fail(rule_id: str, message: str, location: str, fix_hint: str) -> Finding:
    return Finding(
        rule_id=rule_id,
        severity="error",
        message=message,
        location=location,
        category=CATEGORY,
        fix_hint=fix_hint,
    )


def _openapi_field(doc: SpecDocument, required_version: str, failed: set) -> Finding | None:
    if doc.kind("openapi") == "string":
        return None
    return _fail(
        "PREREQ-OPENAPI",
        "Missing or non-string 'openapi' field",
        "$.openapi",
        f"Add: openapi: {required_version}",
    )


def _openapi_version(doc: SpecDocument, required_version: str, failed: set) -> Finding | None:
    # a missing field is already reported by PREREQ-OPENAPI
    if "PREREQ-OPENAPI" in failed:
        return None
    version = doc.get_str("openapi")
    if version == required_version:
        return None
    return _fail(
        "PREREQ-001",
        f"OpenAPI version must be {required_version}, found {version}",
        "$.openapi",
        f"Change to: openapi: {required_version}",
    )


def _info_block(doc: SpecDocument, required_version: str, failed: set) -> Finding | None:
    title = doc.get_str("info", "title")
    version = doc.get_str("info", "version")
    if title and version:
        return None
    return _fail(
        "PREREQ-INFO",
        "info.title and info.version are required",
        "$.info",
        "Add info.title and info.version",
    )


def _api_id(doc: SpecDocument, required_version: str, failed: set) -> Finding | None:
    api_id = doc.get_str("info", "x-api-id")
    if api_id and API_ID_RE.match(api_id):
        return None
    if api_id is None:
        message = "Missing x-api-id in info section"
    else:
        message = f"Malformed x-api-id: {api_id}"
    return _fail(
        "PREREQ-API-ID",
        message,
        "$.info['x-api-id']",
        "Add: x-api-id: <name>_<13-digit-timestamp>_<16-hex-chars>",
    )


def _paths(doc: SpecDocument, required_version: str, failed: set) -> Finding | None:
    if doc.operations():
        return None
    return _fail(
        "PREREQ-PATHS",
        "No API operations defined under paths",
        "$.paths",
        "Define at least one path with an HTTP operation",
    )


def _security_schemes(doc: SpecDocument, required_version: str, failed: set) -> Finding | None:
    if doc.get_object("components", "securitySchemes"):
        return None
    return _fail(
        "PREREQ-002",
        "Security schemes must be defined in components.securitySchemes",
        "$.components.securitySchemes",
        "Add components.securitySchemes with OAuth2 or Bearer authentication",
    )


def _org_header_on_writes(doc: SpecDocument, required_version: str, failed: set) -> Finding | None:
    missing = [
        op.identifier
        for op in doc.operations(WRITE_METHODS)
        if not doc.has_parameter(op, ORG_HEADER)
    ]
    if not missing:
        return None
    shown = ", ".join(missing[:5])
    if len(missing) > 5:
        shown += f" and {len(missing) - 5} more"
    return _fail(
        "PREREQ-003",
        f"{ORG_HEADER} header missing on {len(missing)} write operation(s): {shown}",
        "$.paths",
        "Add parameter: - $ref: '#/components/parameters/OrganizationHeader'",
    )


PREREQUISITE_CHECKS: tuple[PrerequisiteCheck, ...] = (
    PrerequisiteCheck("PREREQ-OPENAPI", "openapi field present", _openapi_field),
    PrerequisiteCheck("PREREQ-001", "Required OpenAPI version", _openapi_version),
    PrerequisiteCheck("PREREQ-INFO", "info.title and info.version present", _info_block),
    PrerequisiteCheck("PREREQ-API-ID", "Well-formed info.x-api-id", _api_id),
    PrerequisiteCheck("PREREQ-PATHS", "At least one operation", _paths),
    PrerequisiteCheck("PREREQ-002", "Security schemes defined", _security_schemes),
    PrerequisiteCheck("PREREQ-003", "Organization header on write operations", _org_header_on_writes),
)


def check_prerequisites(doc: SpecDocument, required_version: str = DEFAULT_OPENAPI_VERSION) -> PrerequisiteResult:
    """Run every prerequisite check in order. Never raises, whatever the document shape."""
    failures: list[Finding] = []
    failed: set[str] = set()
    for check in PREREQUISITE_CHECKS:
        finding = check.run(doc, required_version, failed)
        if finding is not None:
            failures.append(finding)
            failed.add(check.id)
    return PrerequisiteResult(passed=not failures, failures=tuple(failures))


def summarize_prerequisite_failures(result: PrerequisiteResult) -> str:
    if result.passed:
        return "All prerequisites passed"
    grouped: dict[str, list[str]] = {}
    for f in result.failures:
        grouped.setdefault(f.rule_id, []).append(f.message)
    lines = [f"Prerequisites failed ({len(result.failures)} issue(s)):"]
    for rule_id, messages in grouped.items():
        lines.append(f"  {rule_id}:")
        lines.extend(f"    - {m}" for m in messages[:3])
        if len(messages) > 3:
            lines.append(f"    ... and {len(messages) - 3} more")
    return "\n".join(lines)


def prerequisite_quick_fixes(failures) -> dict[str, list[str]]:
    """Unique fix hints per failing prerequisite id, in first-seen order."""
    fixes: dict[str, list[str]] = {}
    for f in failures:
        if f.fix_hint and f.fix_hint not in fixes.setdefault(f.rule_id, []):
            fixes[f.rule_id].append(f.fix_hint)
    return fixes
