"""Derived reports over a finished grade: opportunities, coverage stats, comparisons, summaries."""

from compliance.models import GradeResult, RuleScore
from compliance.scoring.findings import count_by_severity
from compliance.utils import round_half_up

PASSING_SCORE = 70


def improvement_opportunities(rule_scores: dict[str, RuleScore], catalog=None) -> list[dict]:
    """Applicable rules below full coverage, largest point gain first (ties by rule id)."""
    out = []
    for score in rule_scores.values():
        if not score.applicable or score.coverage >= 1.0:
            continue
        rule = catalog.get(score.rule_id) if catalog is not None else None
        out.append({
            "ruleId": score.rule_id,
            "description": rule.description if rule else "",
            "category": score.category,
            "currentCoverage": score.coverage,
            "potentialPoints": round_half_up(score.max_points - score.earned_points, 2),
            "fixCount": score.targets_checked - score.targets_passed,
            "effort": rule.effort if rule else None,
        })
    out.sort(key=lambda o: (-o["potentialPoints"], o["ruleId"]))
    return out


def coverage_stats(rule_scores: dict[str, RuleScore]) -> dict:
    applicable = [s for s in rule_scores.values() if s.applicable]
    partial = sorted((s for s in applicable if s.coverage < 1.0), key=lambda s: s.rule_id)
    worst = min(partial, key=lambda s: s.coverage, default=None)
    best_partial = max(partial, key=lambda s: s.coverage, default=None)
    return {
        "totalRules": len(rule_scores),
        "applicableRules": len(applicable),
        "skippedRules": sum(1 for s in rule_scores.values() if s.skipped),
        "perfectRules": len(applicable) - len(partial),
        "averageCoverage": round(sum(s.coverage for s in applicable) / len(applicable), 4) if applicable else 0.0,
        "worstCoverage": {"ruleId": worst.rule_id, "coverage": worst.coverage} if worst else None,
        "bestPartialCoverage": (
            {"ruleId": best_partial.rule_id, "coverage": best_partial.coverage} if best_partial else None
        ),
    }


def compare_grades(baseline: GradeResult, current: GradeResult) -> dict:
    """Score delta plus findings fixed/introduced, keyed by (rule id, location)."""
    delta = round_half_up(current.total_score - baseline.total_score, 1)
    before = {(f.rule_id, f.location) for f in baseline.findings}
    after = {(f.rule_id, f.location) for f in current.findings}
    fixed = len(before - after)
    new = len(after - before)
    if delta > 0:
        message = f"Improved by {delta} points."
        if fixed:
            message += f" Fixed {fixed} issue(s)."
    elif delta < 0:
        message = f"Decreased by {abs(delta)} points."
        if new:
            message += f" {new} new issue(s) found."
    else:
        message = "No change in score."
    return {
        "scoreDelta": delta,
        "gradeDelta": f"{baseline.letter_grade} -> {current.letter_grade}",
        "improved": delta > 0,
        "fixedFindings": fixed,
        "newFindings": new,
        "message": message,
    }


def grade_summary(result: GradeResult) -> str:
    lines = [f"API Grade: {result.total_score}/100 ({result.letter_grade}) [{result.scoring_mode}]", ""]
    if result.blocked_by_prerequisites:
        lines.append("Blocked: prerequisites failed, no rules were scored.")
    elif result.auto_fail_triggered:
        lines.append("Auto-fail: " + "; ".join(result.auto_fail_reasons))
    elif result.excellence:
        lines.append("Excellent API. This is a reference implementation.")
    elif result.total_score >= PASSING_SCORE:
        lines.append("API meets standards and is production-ready.")
    elif result.total_score >= 60:
        lines.append("API needs improvements before production deployment.")
    else:
        lines.append("API has critical issues that must be addressed.")

    if result.breakdown:
        lines.append("")
        lines.append("Category Breakdown:")
        for cat in result.breakdown:
            lines.append(f"  {cat.category}: {cat.percentage}% ({cat.earned_points}/{cat.max_points} points)")

    if result.findings:
        counts = count_by_severity(result.findings)
        lines.append("")
        lines.append(f"Findings: {counts['error']} error, {counts['warn']} warn, {counts['info']} info")
    return "\n".join(lines)


def would_legacy_auto_fail(result: GradeResult, catalog) -> bool:
    """True if the findings of a coverage-mode grade would have tripped legacy auto-fail."""
    auto_fail_ids = {r.id for r in catalog.rules if r.is_auto_fail}
    for f in result.findings:
        if f.rule_id in ("PREREQ-001", "PREREQ-002", "PREREQ-003") or f.rule_id in auto_fail_ids:
            return True
    return False
