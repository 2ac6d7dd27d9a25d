"""Prerequisite gate: fixed order, one error finding per failing check, blocked grades."""

import pytest

from compliance.document import SpecDocument
from compliance.scoring import check_prerequisites, evaluate_document
from compliance.scoring.prerequisites import (
    prerequisite_quick_fixes,
    summarize_prerequisite_failures,
)


def test_minimal_spec_passes(minimal_spec):
    result = check_prerequisites(SpecDocument(minimal_spec))
    assert result.passed
    assert result.failures == ()


def test_missing_api_id_blocks_with_exactly_one_error(minimal_spec, catalog):
    del minimal_spec["info"]["x-api-id"]
    result = evaluate_document(SpecDocument(minimal_spec), catalog)

    assert result.blocked_by_prerequisites
    assert result.total_score == 0
    assert result.letter_grade == "F"
    assert result.rule_scores == ()
    assert result.breakdown == ()
    assert len(result.findings) == 1
    finding = result.findings[0]
    assert finding.rule_id == "PREREQ-API-ID"
    assert finding.severity == "error"
    assert finding.category == "prerequisites"
    assert finding.fix_hint


def test_malformed_api_id_reported_once(minimal_spec):
    minimal_spec["info"]["x-api-id"] = "Items-API"
    result = check_prerequisites(SpecDocument(minimal_spec))
    assert [f.rule_id for f in result.failures] == ["PREREQ-API-ID"]
    assert "Malformed" in result.failures[0].message


def test_empty_document_failures_in_fixed_order():
    result = check_prerequisites(SpecDocument({}))
    # PREREQ-001 is not repeated when the field is missing; no write ops means PREREQ-003 passes
    assert [f.rule_id for f in result.failures] == [
        "PREREQ-OPENAPI",
        "PREREQ-INFO",
        "PREREQ-API-ID",
        "PREREQ-PATHS",
        "PREREQ-002",
    ]


@pytest.mark.parametrize("root", [None, [], [1, 2], "openapi: 3.0.3", 42, True])
def test_gate_never_raises_on_odd_roots(root):
    result = check_prerequisites(SpecDocument(root))
    assert not result.passed
    assert all(f.severity == "error" for f in result.failures)


def test_wrong_version(minimal_spec):
    minimal_spec["openapi"] = "3.1.0"
    result = check_prerequisites(SpecDocument(minimal_spec))
    assert [f.rule_id for f in result.failures] == ["PREREQ-001"]
    assert "3.0.3" in result.failures[0].message


def test_required_version_is_configurable(minimal_spec):
    minimal_spec["openapi"] = "3.0.1"
    assert check_prerequisites(SpecDocument(minimal_spec), required_version="3.0.1").passed


def test_org_header_missing_on_writes_is_one_summary_finding(minimal_spec):
    minimal_spec["paths"]["/api/v2/items"]["post"]["parameters"] = []
    minimal_spec["paths"]["/api/v2/items/{id}"] = {
        "delete": {"responses": {"204": {"description": "gone"}}},
    }
    result = check_prerequisites(SpecDocument(minimal_spec))
    assert [f.rule_id for f in result.failures] == ["PREREQ-003"]
    assert "2 write operation(s)" in result.failures[0].message


def test_org_header_via_ref_and_path_level(minimal_spec):
    minimal_spec["paths"]["/api/v2/items"] = {
        "parameters": [{"$ref": "#/components/parameters/Org"}],
        "post": {"responses": {"201": {"description": "created"}}},
    }
    minimal_spec["components"]["parameters"] = {
        "Org": {"name": "x-organization-id", "in": "header"},
    }
    assert check_prerequisites(SpecDocument(minimal_spec)).passed


def test_blocked_result_drops_upstream_findings(minimal_spec, catalog):
    from compliance.models import Finding

    del minimal_spec["components"]
    upstream = [Finding("OAS-STRUCT", "warn", "No reusable schemas")]
    result = evaluate_document(SpecDocument(minimal_spec), catalog, upstream_findings=upstream)
    assert [f.rule_id for f in result.findings] == ["PREREQ-002"]


def test_summary_and_quick_fixes():
    result = check_prerequisites(SpecDocument({}))
    summary = summarize_prerequisite_failures(result)
    assert summary.startswith("Prerequisites failed (5 issue(s))")
    assert "PREREQ-PATHS" in summary

    fixes = prerequisite_quick_fixes(result.failures)
    assert list(fixes) == ["PREREQ-OPENAPI", "PREREQ-INFO", "PREREQ-API-ID", "PREREQ-PATHS", "PREREQ-002"]
    assert all(len(v) == 1 for v in fixes.values())


def test_parameter_ref_to_scalar_is_ignored(minimal_spec):
    minimal_spec["paths"]["/api/v2/items"]["post"]["parameters"] = [{"$ref": "#/info/title"}]
    result = check_prerequisites(SpecDocument(minimal_spec))
    assert [f.rule_id for f in result.failures] == ["PREREQ-003"]
