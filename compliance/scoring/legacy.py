"""Legacy binary scoring, kept for callers that still grade in the old mode.

A rule earns all of its points when no finding carries its id, otherwise none.
Any finding on an auto-fail rule caps the total at 59 and forces an F.
"""

from compliance.config import DEFAULT_OPENAPI_VERSION
from compliance.document import SpecDocument
from compliance.models import SCORING_MODE_LEGACY, Finding, GradeResult, RuleScore
from compliance.scoring.evaluator import score_rule
from compliance.scoring.finalizer import EXCELLENCE_THRESHOLD, category_breakdown, letter_grade
from compliance.scoring.findings import normalize
from compliance.scoring.prerequisites import check_prerequisites
from compliance.utils import clamp, round_half_up

AUTO_FAIL_CAP = 59.0
STRUCT_RULE_ID = "OAS-STRUCT"


def legacy_version_check(doc: SpecDocument, required_version: str = DEFAULT_OPENAPI_VERSION) -> Finding | None:
    version = doc.get_str("openapi")
    if version == required_version:
        return None
    return Finding(
        rule_id=STRUCT_RULE_ID,
        severity="error",
        message=f"OpenAPI version must be {required_version}, found {version}",
        location="$.openapi",
        fix_hint=f"Change to: openapi: {required_version}",
    )


def finalize_legacy(findings, catalog) -> GradeResult:
    """Binary per-rule points from the findings, then auto-fail clamping."""
    flagged = {f.rule_id for f in findings}
    checkpoints = []
    reasons = []
    for rule in catalog.rules:
        passed = rule.id not in flagged
        checkpoints.append(RuleScore(
            rule_id=rule.id,
            category=rule.category,
            applicable=True,
            targets_checked=1,
            targets_passed=1 if passed else 0,
            coverage=1.0 if passed else 0.0,
            earned_points=rule.max_points if passed else 0.0,
            max_points=rule.max_points,
        ))
        if not passed and rule.is_auto_fail:
            reasons.append(rule.description)

    total = clamp(round_half_up(sum(c.earned_points for c in checkpoints), 1))
    auto_fail = bool(reasons)
    if auto_fail:
        total = min(total, AUTO_FAIL_CAP)
    letter = "F" if auto_fail else letter_grade(total)
    ordered = normalize(findings)
    return GradeResult(
        total_score=total,
        letter_grade=letter,
        scoring_mode=SCORING_MODE_LEGACY,
        auto_fail_triggered=auto_fail,
        auto_fail_reasons=tuple(reasons),
        critical_findings_count=sum(1 for f in ordered if f.severity == "error"),
        findings=ordered,
        breakdown=category_breakdown(checkpoints, catalog.categories),
        checkpoints=tuple(checkpoints),
        excellence=not auto_fail and total >= EXCELLENCE_THRESHOLD,
    )


def grade_legacy(
    doc: SpecDocument,
    catalog,
    upstream_findings=(),
    required_version: str = DEFAULT_OPENAPI_VERSION,
) -> GradeResult:
    upstream = list(upstream_findings)

    version_finding = legacy_version_check(doc, required_version)
    if version_finding is not None:
        return GradeResult(
            total_score=0.0,
            letter_grade="F",
            scoring_mode=SCORING_MODE_LEGACY,
            blocked_by_prerequisites=True,
            auto_fail_triggered=True,
            auto_fail_reasons=(f"OpenAPI version not {required_version}",),
            critical_findings_count=1,
            findings=(version_finding,),
        )

    gate = check_prerequisites(doc, required_version)
    if not gate.passed:
        return GradeResult(
            total_score=0.0,
            letter_grade="F",
            scoring_mode=SCORING_MODE_LEGACY,
            blocked_by_prerequisites=True,
            auto_fail_triggered=True,
            auto_fail_reasons=tuple(f.message for f in gate.failures),
            critical_findings_count=len(gate.failures),
            findings=normalize(gate.failures),
        )

    findings = []
    for rule in catalog.rules:
        _score, rule_findings = score_rule(rule, doc)
        findings.extend(rule_findings)
    return finalize_legacy(findings + upstream, catalog)
