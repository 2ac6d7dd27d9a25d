"""Compliance scoring engine entry point. Pure: no I/O, no logging, no randomness."""

from compliance.config import Settings
from compliance.document import SpecDocument
from compliance.models import SCORING_MODE_COVERAGE, GradeResult
from compliance.scoring.evaluator import evaluate
from compliance.scoring.finalizer import blocked_result, finalize
from compliance.scoring.legacy import grade_legacy
from compliance.scoring.prerequisites import check_prerequisites


def evaluate_document(
    doc,
    catalog,
    *,
    legacy_mode: bool = False,
    upstream_findings=(),
    settings: Settings | None = None,
) -> GradeResult:
    """
    Grade a parsed document against a catalog.

    Coverage mode: prerequisite gate, then every rule in dependency order with partial credit.
    Legacy mode: binary per-rule scoring with auto-fail clamping.
    Both modes merge upstream findings and return them normalized.
    """
    settings = settings or Settings()
    if not isinstance(doc, SpecDocument):
        doc = SpecDocument(doc)

    if legacy_mode:
        return grade_legacy(doc, catalog, upstream_findings, settings.required_openapi_version)

    gate = check_prerequisites(doc, settings.required_openapi_version)
    if not gate.passed:
        return blocked_result(gate.failures, SCORING_MODE_COVERAGE)

    rule_scores, findings = evaluate(doc, catalog, settings.dependency_min_coverage)
    return finalize(rule_scores, findings + list(upstream_findings), catalog.categories)
