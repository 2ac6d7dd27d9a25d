"""Built-in rule checks: target detection plus the per-target condition.

A catalog entry names its check by key (see CHECKS at the bottom). Detection returns the
concrete targets a rule addresses; an empty list means the rule does not apply to the
document. Validation never raises and never mutates the document.
"""

import re
from typing import Callable, NamedTuple

from compliance.document import WRITE_METHODS, Operation, SpecDocument

CRUD_METHODS = ("get", "post", "put", "patch", "delete")
ERROR_CODES = ("400", "401", "403", "404", "409", "500")
EXPECTED_STATUS = {
    "get": ("200", "404"),
    "post": ("201", "400"),
    "put": ("200", "404"),
    "patch": ("200", "404"),
    "delete": ("204", "404"),
}
OFFSET_PARAMS = {"offset", "page", "page_size", "pageNumber"}
AFTER_KEY_PARAMS = {"AfterKey", "after_key", "afterKey"}
BEFORE_KEY_PARAMS = {"BeforeKey", "before_key", "beforeKey"}
LIMIT_PARAMS = {"Limit", "limit"}
RATE_LIMIT_HEADERS = ("X-RateLimit-Limit", "X-RateLimit-Remaining")
LONG_RUNNING_MARKERS = ("import", "export", "batch")
SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+$")
RESOURCE_RE = re.compile(r"^/api/v\d+/([^/]+)")
NAMESPACE_PREFIX = "/api/v2/"


class Target(NamedTuple):
    location: str
    identifier: str
    operation: Operation | None = None


class Outcome(NamedTuple):
    passed: bool
    message: str = ""
    fix_hint: str | None = None


class RuleCheck(NamedTuple):
    detect: Callable[[SpecDocument], list[Target]]
    validate: Callable[[Target, SpecDocument], Outcome]


def _op_targets(doc: SpecDocument, methods: tuple[str, ...], suffix: str = "") -> list[Target]:
    return [Target(op.location + suffix, op.identifier, op) for op in doc.operations(methods)]


def _responses(op: Operation) -> dict:
    responses = op.op.get("responses")
    return responses if isinstance(responses, dict) else {}


def _json_content(doc: SpecDocument, node) -> dict:
    node = doc.resolve_ref(node)
    if not isinstance(node, dict):
        return {}
    content = node.get("content")
    if not isinstance(content, dict):
        return {}
    media = content.get("application/json")
    return media if isinstance(media, dict) else {}


def _param_names(doc: SpecDocument, op: Operation, location: str) -> set[str]:
    return {
        p["name"]
        for p in doc.parameters_for(op)
        if isinstance(p.get("name"), str) and p.get("in") == location
    }


def _is_list_endpoint(path: str) -> bool:
    last = path.rstrip("/").rsplit("/", 1)[-1]
    return not (last.startswith("{") and last.endswith("}"))


# --- functionality ---------------------------------------------------------

def detect_resources(doc: SpecDocument) -> list[Target]:
    first_path: dict[str, str] = {}
    for path, _item in doc.paths():
        match = RESOURCE_RE.match(path)
        if match and match.group(1) not in first_path:
            first_path[match.group(1)] = path
    return [
        Target(f"$.paths['{path}']", f"Resource: {resource}")
        for resource, path in first_path.items()
    ]


def validate_crud(target: Target, doc: SpecDocument) -> Outcome:
    resource = target.identifier.split(": ", 1)[1]
    methods: set[str] = set()
    for path, item in doc.paths():
        match = RESOURCE_RE.match(path)
        if match and match.group(1) == resource:
            methods.update(m for m in CRUD_METHODS if isinstance(item.get(m), dict))
    missing = [m for m in ("get", "post") if m not in methods]
    if missing:
        return Outcome(False, f"Missing operations: {', '.join(missing)}", "Add missing CRUD operations")
    return Outcome(True)


def detect_operations_with_responses(doc: SpecDocument) -> list[Target]:
    return [
        Target(op.location + ".responses", op.identifier, op)
        for op in doc.operations(CRUD_METHODS)
        if _responses(op)
    ]


def validate_error_responses(target: Target, doc: SpecDocument) -> Outcome:
    responses = _responses(target.operation)
    present = sum(1 for code in ERROR_CODES if code in responses)
    problem_json = False
    for response in responses.values():
        response = doc.resolve_ref(response)
        content = response.get("content") if isinstance(response, dict) else None
        if isinstance(content, dict) and "application/problem+json" in content:
            problem_json = True
            break
    if present * 2 <= len(ERROR_CODES):
        return Outcome(False, "Missing common error responses", "Add 4xx/5xx responses with problem+json format")
    if not problem_json:
        return Outcome(False, "Not using application/problem+json", "Add error responses with problem+json format")
    return Outcome(True)


def detect_success_responses(doc: SpecDocument) -> list[Target]:
    return [
        Target(op.location + ".responses", op.identifier, op)
        for op in doc.operations(("get", "post", "put", "patch"))
        if "200" in _responses(op) or "201" in _responses(op)
    ]


def _is_envelope(doc: SpecDocument, schema) -> bool:
    if not isinstance(schema, dict):
        return False
    ref = schema.get("$ref")
    if isinstance(ref, str) and "ResponseEnvelope" in ref:
        return True
    all_of = schema.get("allOf")
    if isinstance(all_of, list) and any(
        isinstance(s, dict) and "ResponseEnvelope" in str(s.get("$ref", "")) for s in all_of
    ):
        return True
    resolved = doc.resolve_ref(schema)
    props = resolved.get("properties") if isinstance(resolved, dict) else None
    return isinstance(props, dict) and "success" in props and "data" in props


def validate_envelope(target: Target, doc: SpecDocument) -> Outcome:
    responses = _responses(target.operation)
    success = responses.get("200", responses.get("201"))
    schema = _json_content(doc, success).get("schema")
    if _is_envelope(doc, schema):
        return Outcome(True)
    return Outcome(False, "Success response not using ResponseEnvelope", "Wrap response in ResponseEnvelope schema")


def detect_crud_operations(doc: SpecDocument) -> list[Target]:
    return _op_targets(doc, CRUD_METHODS)


def validate_status_codes(target: Target, doc: SpecDocument) -> Outcome:
    responses = _responses(target.operation)
    expected = EXPECTED_STATUS[target.operation.method]
    missing = [code for code in expected if code not in responses]
    if len(missing) * 2 > len(expected):
        return Outcome(False, f"Missing expected status codes: {', '.join(missing)}", "Add appropriate status code responses")
    return Outcome(True)


# --- security --------------------------------------------------------------

def detect_get_operations(doc: SpecDocument) -> list[Target]:
    return _op_targets(doc, ("get",))


def validate_org_header(target: Target, doc: SpecDocument) -> Outcome:
    if doc.has_parameter(target.operation, "X-Organization-ID"):
        return Outcome(True)
    return Outcome(
        False,
        "Missing X-Organization-ID header",
        "Add parameter: - $ref: '#/components/parameters/OrganizationHeader'",
    )


def validate_branch_header(target: Target, doc: SpecDocument) -> Outcome:
    if doc.has_parameter(target.operation, "X-Branch-ID"):
        return Outcome(True)
    return Outcome(
        False,
        "Missing X-Branch-ID header",
        "Add parameter: - $ref: '#/components/parameters/BranchHeader'",
    )


def detect_write_operations(doc: SpecDocument) -> list[Target]:
    return _op_targets(doc, WRITE_METHODS)


def validate_operation_security(target: Target, doc: SpecDocument) -> Outcome:
    op = target.operation.op
    if "security" in op:
        secured = isinstance(op["security"], list) and len(op["security"]) > 0
    else:
        secured = len(doc.get_array("security")) > 0
    if secured:
        return Outcome(True)
    return Outcome(False, "No security requirements defined", "Add security requirements to operation")


def detect_request_bodies(doc: SpecDocument) -> list[Target]:
    return [
        Target(op.location + ".requestBody", op.identifier, op)
        for op in doc.operations(("post", "put", "patch"))
        if isinstance(op.op.get("requestBody"), dict)
    ]


def validate_input_schema(target: Target, doc: SpecDocument) -> Outcome:
    schema = _json_content(doc, target.operation.op.get("requestBody")).get("schema")
    if isinstance(schema, dict) and ("$ref" in schema or "required" in schema or "properties" in schema):
        return Outcome(True)
    return Outcome(False, "Request body lacks validation schema", "Add schema with required fields and validation rules")


# --- scalability -----------------------------------------------------------

def detect_list_operations(doc: SpecDocument) -> list[Target]:
    return [
        Target(op.location, op.identifier, op)
        for op in doc.operations(("get",))
        if _is_list_endpoint(op.path)
    ]


def validate_keyset_pagination(target: Target, doc: SpecDocument) -> Outcome:
    query = _param_names(doc, target.operation, "query")
    has_keyset = bool(query & (AFTER_KEY_PARAMS | BEFORE_KEY_PARAMS)) and bool(query & LIMIT_PARAMS)
    if query & OFFSET_PARAMS:
        return Outcome(False, "Using forbidden offset/page pagination", "Remove offset/page parameters, use AfterKey/BeforeKey/Limit")
    if not has_keyset:
        return Outcome(False, "Missing key-set pagination parameters", "Add AfterKey/BeforeKey/Limit query parameters")
    return Outcome(True)


def detect_cacheable_reads(doc: SpecDocument) -> list[Target]:
    return [
        Target(op.location + ".responses['200']", op.identifier, op)
        for op in doc.operations(("get",))
        if "200" in _responses(op)
    ]


def validate_caching_headers(target: Target, doc: SpecDocument) -> Outcome:
    response = doc.resolve_ref(_responses(target.operation).get("200"))
    headers = response.get("headers") if isinstance(response, dict) else None
    headers = headers if isinstance(headers, dict) else {}
    if "ETag" in headers or "Cache-Control" in headers:
        return Outcome(True)
    return Outcome(False, "Missing caching headers", "Add ETag and Cache-Control headers to response")


def detect_long_running(doc: SpecDocument) -> list[Target]:
    return [
        Target(op.location, op.identifier, op)
        for op in doc.operations(("post", "put"))
        if any(marker in op.path for marker in LONG_RUNNING_MARKERS)
    ]


def validate_async_accepted(target: Target, doc: SpecDocument) -> Outcome:
    if "202" in _responses(target.operation):
        return Outcome(True)
    return Outcome(False, "Long operation should return 202 Accepted", "Add 202 response with status URL")


def detect_first_write_per_path(doc: SpecDocument) -> list[Target]:
    targets = []
    for path, item in doc.paths():
        for method in ("post", "put", "delete"):
            if isinstance(item.get(method), dict):
                op = Operation(path, method, item[method], item)
                targets.append(Target(op.location, op.identifier, op))
                break
    return targets


def validate_rate_limit_headers(target: Target, doc: SpecDocument) -> Outcome:
    for response in _responses(target.operation).values():
        response = doc.resolve_ref(response)
        headers = response.get("headers") if isinstance(response, dict) else None
        if isinstance(headers, dict) and any(h in headers for h in RATE_LIMIT_HEADERS):
            return Outcome(True)
    return Outcome(False, "Missing rate limit headers", "Add X-RateLimit-Limit and X-RateLimit-Remaining headers")


# --- maintainability -------------------------------------------------------

def detect_paths(doc: SpecDocument) -> list[Target]:
    return [Target(f"$.paths['{path}']", path) for path, _item in doc.paths()]


def validate_naming(target: Target, doc: SpecDocument) -> Outcome:
    path = target.identifier
    if not path.startswith(NAMESPACE_PREFIX):
        return Outcome(False, f"Path must start with {NAMESPACE_PREFIX}<domain>", "Move the path under the /api/v2 namespace")
    segments = [s for s in path.split("/") if s and not s.startswith("{")][2:]
    if not all(s == s.lower() and "_" not in s for s in segments):
        return Outcome(False, "Use lowercase, hyphenated resource names", "Follow RESTful naming conventions")
    return Outcome(True)


def validate_documentation(target: Target, doc: SpecDocument) -> Outcome:
    op = target.operation.op
    summary = op.get("summary")
    description = op.get("description")
    tags = op.get("tags")
    score = 0.0
    if isinstance(summary, str) and len(summary) > 10:
        score += 0.4
    if isinstance(description, str) and len(description) > 20:
        score += 0.4
    if isinstance(tags, list) and tags:
        score += 0.2
    if score >= 0.6:
        return Outcome(True)
    return Outcome(False, "Insufficient documentation", "Add summary, description, and tags")


def detect_info_version(doc: SpecDocument) -> list[Target]:
    return [Target("$.info.version", "API Version")]


def validate_semver(target: Target, doc: SpecDocument) -> Outcome:
    version = doc.get_str("info", "version")
    if version and SEMVER_RE.match(version):
        return Outcome(True)
    return Outcome(False, "Invalid semantic version", "Use semantic versioning (e.g., 1.0.0)")


def detect_example_bodies(doc: SpecDocument) -> list[Target]:
    return [
        Target(op.location + ".requestBody", op.identifier, op)
        for op in doc.operations(("post", "put"))
        if isinstance(op.op.get("requestBody"), dict)
    ]


def _has_example(media: dict) -> bool:
    if "example" in media or "examples" in media:
        return True
    schema = media.get("schema")
    return isinstance(schema, dict) and "example" in schema


def validate_request_example(target: Target, doc: SpecDocument) -> Outcome:
    if _has_example(_json_content(doc, target.operation.op.get("requestBody"))):
        return Outcome(True)
    return Outcome(False, "Missing request examples", "Add example or examples to request body")


# --- excellence ------------------------------------------------------------

def validate_any_example(target: Target, doc: SpecDocument) -> Outcome:
    op = target.operation
    if _has_example(_json_content(doc, op.op.get("requestBody"))):
        return Outcome(True)
    responses = _responses(op)
    for code in ("200", "201"):
        if _has_example(_json_content(doc, responses.get(code))):
            return Outcome(True)
    return Outcome(False, "No examples provided", "Add request or response examples")


def detect_info(doc: SpecDocument) -> list[Target]:
    return [Target("$.info", "API Info")]


def validate_performance_hints(target: Target, doc: SpecDocument) -> Outcome:
    info = doc.get_object("info")
    description = (doc.get_str("info", "description") or "").lower()
    if any(k in info for k in ("x-sla", "x-performance")) or any(
        marker in description for marker in ("performance", "sla", "response time")
    ):
        return Outcome(True)
    return Outcome(False, "No performance information provided", "Document SLAs and performance expectations")


def detect_document(doc: SpecDocument) -> list[Target]:
    return [Target("$", "API Specification")]


def validate_advanced_patterns(target: Target, doc: SpecDocument) -> Outcome:
    if doc.kind("webhooks") == "object" and doc.get_object("webhooks"):
        return Outcome(True)
    for op in doc.operations():
        if isinstance(op.op.get("callbacks"), dict) and op.op["callbacks"]:
            return Outcome(True)
        for response in _responses(op).values():
            response = doc.resolve_ref(response)
            if isinstance(response, dict) and isinstance(response.get("links"), dict) and response["links"]:
                return Outcome(True)
    return Outcome(False, "No advanced patterns used", "Consider webhooks, callbacks, or links")


def validate_deprecation_strategy(target: Target, doc: SpecDocument) -> Outcome:
    description = (doc.get_str("info", "description") or "").lower()
    if "deprecat" in description or any(op.op.get("deprecated") is True for op in doc.operations()):
        return Outcome(True)
    return Outcome(False, "No deprecation strategy documented", "Document deprecation and migration paths")


CHECKS: dict[str, RuleCheck] = {
    "crud_operations": RuleCheck(detect_resources, validate_crud),
    "error_responses": RuleCheck(detect_operations_with_responses, validate_error_responses),
    "response_envelope": RuleCheck(detect_success_responses, validate_envelope),
    "status_codes": RuleCheck(detect_crud_operations, validate_status_codes),
    "org_header_reads": RuleCheck(detect_get_operations, validate_org_header),
    "branch_header": RuleCheck(detect_crud_operations, validate_branch_header),
    "operation_security": RuleCheck(detect_write_operations, validate_operation_security),
    "input_validation": RuleCheck(detect_request_bodies, validate_input_schema),
    "keyset_pagination": RuleCheck(detect_list_operations, validate_keyset_pagination),
    "caching_headers": RuleCheck(detect_cacheable_reads, validate_caching_headers),
    "async_long_running": RuleCheck(detect_long_running, validate_async_accepted),
    "rate_limit_headers": RuleCheck(detect_first_write_per_path, validate_rate_limit_headers),
    "naming_conventions": RuleCheck(detect_paths, validate_naming),
    "operation_docs": RuleCheck(detect_crud_operations, validate_documentation),
    "semantic_version": RuleCheck(detect_info_version, validate_semver),
    "request_examples": RuleCheck(detect_example_bodies, validate_request_example),
    "comprehensive_examples": RuleCheck(detect_crud_operations, validate_any_example),
    "performance_hints": RuleCheck(detect_info, validate_performance_hints),
    "advanced_patterns": RuleCheck(detect_document, validate_advanced_patterns),
    "deprecation_strategy": RuleCheck(detect_info, validate_deprecation_strategy),
}
