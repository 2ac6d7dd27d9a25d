"""Aggregation and grading: totals, category breakdown, letter grades, half-up rounding."""

import pytest

from compliance.models import Finding, RuleScore
from compliance.scoring import finalize, letter_grade
from compliance.scoring.finalizer import category_breakdown
from compliance.utils import round_half_up


def _score(rule_id, category, earned, maximum, applicable=True):
    coverage = earned / maximum if maximum else 0.0
    return RuleScore(rule_id, category, applicable, 1, 1, coverage, earned, maximum)


@pytest.mark.parametrize("score,letter", [
    (100, "A+"), (97, "A+"), (96.9, "A"), (93, "A"), (92.9, "A-"), (90, "A-"),
    (89.9, "B+"), (87, "B+"), (86.9, "B"), (83, "B"), (82.9, "B-"), (80, "B-"),
    (79.9, "C"), (70, "C"), (69.9, "D"), (60, "D"), (59.9, "F"), (0, "F"),
])
def test_letter_grade_breakpoints(score, letter):
    assert letter_grade(score) == letter


def test_round_half_up_is_not_bankers_rounding():
    assert round_half_up(2.675, 2) == 2.68
    assert round_half_up(0.125, 2) == 0.13
    assert round_half_up(86.25, 1) == 86.3
    assert round_half_up(2.5, 0) == 3.0


def test_total_and_breakdown():
    scores = {
        "FUNC-001": _score("FUNC-001", "functionality", 8.0, 10.0),
        "SEC-001": _score("SEC-001", "security", 5.0, 5.0),
        "SCALE-003": _score("SCALE-003", "scalability", 0.0, 0.0, applicable=False),
    }
    result = finalize(scores, [])

    assert result.total_score == 86.7
    assert result.letter_grade == "B"
    assert not result.excellence
    assert result.scoring_mode == "coverage-based"
    by_cat = {b.category: b for b in result.breakdown}
    assert by_cat["functionality"].percentage == 80.0
    assert by_cat["security"].percentage == 100.0
    assert (by_cat["scalability"].earned_points, by_cat["scalability"].max_points) == (0.0, 0.0)
    assert by_cat["scalability"].percentage == 0.0


def test_nothing_applicable_scores_zero():
    scores = {"X-1": _score("X-1", "functionality", 0.0, 0.0, applicable=False)}
    result = finalize(scores, [])
    assert result.total_score == 0.0
    assert result.letter_grade == "F"


def test_excellence_starts_at_ninety():
    result = finalize({"X-1": _score("X-1", "functionality", 9.0, 10.0)}, [])
    assert result.total_score == 90.0
    assert result.letter_grade == "A-"
    assert result.excellence


def test_coverage_mode_counts_errors_but_never_auto_fails():
    findings = [
        Finding("SEC-001", "error", "missing header", "$.paths['/a'].get", "security"),
        Finding("SEC-001", "error", "missing header", "$.paths['/b'].get", "security"),
        Finding("MAINT-002", "warn", "docs", "$.paths['/a'].get", "maintainability"),
    ]
    result = finalize({"SEC-001": _score("SEC-001", "security", 9.5, 10.0)}, findings)
    assert result.critical_findings_count == 2
    assert not result.auto_fail_triggered
    assert result.auto_fail_reasons == ()
    assert result.letter_grade == "A"


def test_breakdown_keeps_requested_category_order():
    scores = [_score("B-1", "security", 1, 1), _score("A-1", "functionality", 1, 2)]
    names = [b.category for b in category_breakdown(scores, ["functionality", "security", "excellence"])]
    assert names == ["functionality", "security", "excellence"]


def test_to_dict_shape():
    result = finalize({"X-1": _score("X-1", "functionality", 7.5, 10.0)}, [])
    data = result.to_dict()
    assert data["total"] == 75.0
    assert data["letter"] == "C"
    assert data["compliancePct"] == 0.75
    assert data["perCategory"]["functionality"] == {"earnedPoints": 7.5, "maxPoints": 10.0, "percentage": 75.0}
    assert data["ruleScores"]["X-1"]["coverage"] == 0.75
