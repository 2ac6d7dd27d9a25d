"""Dependency resolution: evaluation order, cycles, skipped rules, root-cause analysis."""

import pytest

from compliance.catalog import CatalogConfigError, RuleCatalog
from compliance.document import SpecDocument
from compliance.models import Rule, RuleScore
from compliance.scoring.dependencies import (
    analyze_dependency_chains,
    evaluation_order,
    find_cycle,
    resolves,
    unblocked_by,
)
from compliance.scoring.evaluator import evaluate

STATUS = Rule("FUNC-004", "functionality", 5, "Status codes", "status_codes")
CACHING = Rule("SCALE-002", "scalability", 6, "Caching headers", "caching_headers", depends_on=frozenset({"FUNC-004"}))


def _rule(rule_id: str, *deps: str) -> Rule:
    return Rule(rule_id, "functionality", 1, rule_id, "semantic_version", depends_on=frozenset(deps))


def _score(rule_id: str, applicable=True, coverage=1.0, skipped=False, failed=()) -> RuleScore:
    return RuleScore(rule_id, "functionality", applicable, 1, 1, coverage, 1.0, 1.0, skipped, tuple(failed))


def test_evaluation_order_is_topological_with_catalog_tie_break():
    rules = [_rule("A-1", "B-1"), _rule("B-1"), _rule("C-1")]
    assert evaluation_order(rules) == ["B-1", "A-1", "C-1"]


def test_catalog_rejects_cycles():
    rules = [_rule("A-1", "B-1"), _rule("B-1", "C-1"), _rule("C-1", "A-1")]
    assert find_cycle(rules) == ["A-1", "B-1", "C-1", "A-1"]
    with pytest.raises(CatalogConfigError, match="cycle"):
        RuleCatalog("test", rules)


def test_catalog_rejects_self_dependency():
    with pytest.raises(CatalogConfigError, match="cycle"):
        RuleCatalog("test", [_rule("A-1", "A-1")])


def test_catalog_rejects_unknown_dependency():
    with pytest.raises(CatalogConfigError, match="unknown rule"):
        RuleCatalog("test", [_rule("A-1", "MISSING-1")])


def test_resolves_requires_applicable_dependency():
    rule = _rule("A-1", "B-1")
    assert resolves(rule, {"B-1": _score("B-1")})
    assert not resolves(rule, {})
    assert not resolves(rule, {"B-1": _score("B-1", applicable=False, coverage=0.0)})
    # applicable with zero coverage still counts under the default threshold
    assert resolves(rule, {"B-1": _score("B-1", coverage=0.0)})
    assert not resolves(rule, {"B-1": _score("B-1", coverage=0.5)}, min_coverage=0.6)


def test_unmet_dependency_skips_rule_with_info_finding():
    catalog = RuleCatalog("test", [CACHING, STATUS])
    scores, findings = evaluate(SpecDocument({"paths": {}}), catalog)

    skipped = scores["SCALE-002"]
    assert not skipped.applicable
    assert skipped.skipped
    assert skipped.failed_dependencies == ("FUNC-004",)
    assert (skipped.earned_points, skipped.max_points) == (0.0, 0.0)
    assert [(f.rule_id, f.severity) for f in findings] == [("SCALE-002", "info")]
    # scores come back in catalog order even though FUNC-004 ran first
    assert list(scores) == ["SCALE-002", "FUNC-004"]


def test_min_coverage_threshold_skips_dependents(minimal_spec):
    minimal_spec["paths"]["/api/v2/items"]["get"] = {
        "responses": {"200": {"description": "ok", "headers": {"ETag": {}}}},
    }
    catalog = RuleCatalog("test", [STATUS, CACHING])
    doc = SpecDocument(minimal_spec)

    scores, _ = evaluate(doc, catalog)
    assert scores["SCALE-002"].applicable
    assert scores["FUNC-004"].coverage == 1.0

    minimal_spec["paths"]["/api/v2/items"]["post"]["responses"] = {"200": {"description": "ok"}}
    scores, _ = evaluate(SpecDocument(minimal_spec), catalog, min_coverage=0.75)
    assert scores["FUNC-004"].coverage == 0.5
    assert scores["SCALE-002"].skipped


def test_dependency_chain_analysis():
    scores = {
        "A-1": _score("A-1", applicable=False, coverage=0.0),
        "B-1": _score("B-1", applicable=False, coverage=0.0, skipped=True, failed=["A-1"]),
        "C-1": _score("C-1", applicable=False, coverage=0.0, skipped=True, failed=["B-1"]),
        "D-1": _score("D-1"),
    }
    analysis = analyze_dependency_chains(scores)
    assert analysis == {
        "skippedCount": 2,
        "rootCauses": {"A-1": ["B-1"]},
        "cascadingSkips": ["C-1"],
    }
    assert unblocked_by("A-1", scores) == ["B-1", "C-1"]
    assert unblocked_by("D-1", scores) == []
