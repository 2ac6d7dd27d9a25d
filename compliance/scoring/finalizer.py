"""Aggregator & grader: category sums, total score and letter grade (coverage mode)."""

from compliance.models import (
    SCORING_MODE_COVERAGE,
    CategoryBreakdown,
    Finding,
    GradeResult,
    RuleScore,
)
from compliance.scoring.findings import normalize
from compliance.utils import clamp, round_half_up

GRADE_BREAKPOINTS = (
    (97, "A+"),
    (93, "A"),
    (90, "A-"),
    (87, "B+"),
    (83, "B"),
    (80, "B-"),
    (70, "C"),
    (60, "D"),
)
EXCELLENCE_THRESHOLD = 90


def letter_grade(score: float) -> str:
    """Lower bounds are inclusive: 90.0 is A-, 89.9 is B+."""
    for threshold, letter in GRADE_BREAKPOINTS:
        if score >= threshold:
            return letter
    return "F"


def category_breakdown(rule_scores, categories=None) -> tuple[CategoryBreakdown, ...]:
    """
    Per-category sums over applicable rules. Categories appear in `categories` order
    when given, otherwise in order of first appearance.
    """
    earned: dict[str, float] = {}
    maximum: dict[str, float] = {}
    for name in categories or ():
        earned.setdefault(name, 0.0)
        maximum.setdefault(name, 0.0)
    for score in rule_scores:
        earned.setdefault(score.category, 0.0)
        maximum.setdefault(score.category, 0.0)
        if score.applicable:
            earned[score.category] += score.earned_points
            maximum[score.category] += score.max_points

    out = []
    for name in earned:
        e = round_half_up(earned[name], 2)
        m = round_half_up(maximum[name], 2)
        pct = round_half_up(e / m * 100, 1) if m > 0 else 0.0
        out.append(CategoryBreakdown(name, e, m, pct))
    return tuple(out)


def total_score(rule_scores) -> float:
    earned = sum(s.earned_points for s in rule_scores if s.applicable)
    maximum = sum(s.max_points for s in rule_scores if s.applicable)
    if maximum <= 0:
        return 0.0
    return clamp(round_half_up(earned / maximum * 100, 1))


def finalize(
    rule_scores: dict[str, RuleScore],
    findings: list[Finding],
    categories: list[str] | None = None,
) -> GradeResult:
    """
    Coverage-mode grade. No auto-fail here: critical findings are counted and reported only.
    """
    scores = tuple(rule_scores.values())
    total = total_score(scores)
    ordered = normalize(findings)
    return GradeResult(
        total_score=total,
        letter_grade=letter_grade(total),
        scoring_mode=SCORING_MODE_COVERAGE,
        critical_findings_count=sum(1 for f in ordered if f.severity == "error"),
        findings=ordered,
        breakdown=category_breakdown(scores, categories),
        rule_scores=scores,
        excellence=total >= EXCELLENCE_THRESHOLD,
    )


def blocked_result(failures, scoring_mode: str) -> GradeResult:
    """Prerequisites failed: zero score, only the gate findings."""
    return GradeResult(
        total_score=0.0,
        letter_grade="F",
        scoring_mode=scoring_mode,
        blocked_by_prerequisites=True,
        critical_findings_count=sum(1 for f in failures if f.severity == "error"),
        findings=normalize(failures),
    )
