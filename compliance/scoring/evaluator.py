"""Rule evaluator: per rule, find targets, check each, and turn coverage into points."""

from compliance.catalog.checks import CHECKS
from compliance.document import SpecDocument
from compliance.models import Finding, Rule, RuleScore
from compliance.scoring.dependencies import skipped_score, unmet_dependencies
from compliance.utils import round_half_up


def score_rule(rule: Rule, doc: SpecDocument) -> tuple[RuleScore, list[Finding]]:
    """
    Score one rule. No targets means the rule does not apply (0 of 0 points).
    Each failing target produces one finding; error severity for auto-fail rules.
    """
    check = CHECKS[rule.check]
    targets = check.detect(doc)
    if not targets:
        return RuleScore(rule.id, rule.category, False, 0, 0, 0.0, 0.0, 0.0), []

    findings = []
    passed = 0
    for target in targets:
        outcome = check.validate(target, doc)
        if outcome.passed:
            passed += 1
            continue
        findings.append(Finding(
            rule_id=rule.id,
            severity="error" if rule.is_auto_fail else "warn",
            message=f"{target.identifier}: {outcome.message}",
            location=target.location,
            category=rule.category,
            fix_hint=outcome.fix_hint,
        ))

    coverage = passed / len(targets)
    score = RuleScore(
        rule_id=rule.id,
        category=rule.category,
        applicable=True,
        targets_checked=len(targets),
        targets_passed=passed,
        coverage=coverage,
        earned_points=round_half_up(coverage * rule.max_points, 2),
        max_points=rule.max_points,
    )
    return score, findings


def evaluate(doc: SpecDocument, catalog, min_coverage: float = 0.0) -> tuple[dict[str, RuleScore], list[Finding]]:
    """
    Score every catalog rule in dependency order.
    A rule whose dependencies are not satisfied is skipped, not failed.
    Returns scores keyed by rule id (catalog order) and all findings.
    """
    results: dict[str, RuleScore] = {}
    findings: list[Finding] = []
    for rule_id in catalog.order:
        rule = catalog.get(rule_id)
        failed = unmet_dependencies(rule, results, min_coverage)
        if failed:
            score, finding = skipped_score(rule, failed)
            results[rule_id] = score
            findings.append(finding)
            continue
        score, rule_findings = score_rule(rule, doc)
        results[rule_id] = score
        findings.extend(rule_findings)
    ordered = {r.id: results[r.id] for r in catalog.rules if r.id in results}
    return ordered, findings
