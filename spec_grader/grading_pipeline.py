"""Orchestrates one grading run: load document, structural findings, score, persist, audit."""

import time
import uuid
from pathlib import Path

from compliance.catalog import RuleCatalog, load_catalog
from compliance.config import GRADER_VERSION, Settings, get_settings
from compliance.document import SpecDocument
from compliance.models import SCORING_MODE_COVERAGE, GradeResult
from compliance.pipeline import load_spec_file, load_spec_text, spec_hash, structural_findings
from compliance.run_report import write_run_report
from compliance.scoring import evaluate_document
from compliance.scoring.dependencies import analyze_dependency_chains
from compliance.scoring.prerequisites import prerequisite_quick_fixes
from compliance.scoring.reports import (
    coverage_stats,
    grade_summary,
    improvement_opportunities,
    would_legacy_auto_fail,
)
from compliance.utils import round_half_up
from spec_grader.audit import log_grade_run
from spec_grader.persistence import GradeStore


def _api_id(tree: dict) -> str | None:
    info = tree.get("info")
    api_id = info.get("x-api-id") if isinstance(info, dict) else None
    return api_id if isinstance(api_id, str) else None


def build_response(result: GradeResult, catalog: RuleCatalog, digest: str) -> dict:
    """Deterministic response body for a grade: no run id, no timestamps."""
    out = {
        "grade": result.to_dict(),
        "findings": [f.to_dict() for f in result.findings],
        "summary": grade_summary(result),
        "metadata": {
            "specHash": digest,
            "catalogVersion": catalog.version,
            "catalogHash": catalog.content_hash,
            "scoringMode": result.scoring_mode,
            "graderVersion": GRADER_VERSION,
        },
    }
    if result.blocked_by_prerequisites:
        out["quickFixes"] = prerequisite_quick_fixes(result.findings)
    elif result.scoring_mode == SCORING_MODE_COVERAGE:
        scores = {s.rule_id: s for s in result.rule_scores}
        out["improvementOpportunities"] = improvement_opportunities(scores, catalog)
        out["coverageStats"] = coverage_stats(scores)
        out["dependencyAnalysis"] = analyze_dependency_chains(scores)
        out["wouldLegacyAutoFail"] = would_legacy_auto_fail(result, catalog)
    else:
        out["checkpoints"] = {
            c.rule_id: {"earnedPoints": c.earned_points, "maxPoints": c.max_points}
            for c in result.checkpoints
        }
    return out


def _grade_tree(
    tree: dict,
    catalog: RuleCatalog,
    *,
    legacy_mode: bool,
    settings: Settings,
    extra_findings=(),
) -> GradeResult:
    return evaluate_document(
        SpecDocument(tree),
        catalog,
        legacy_mode=legacy_mode,
        upstream_findings=structural_findings(tree) + list(extra_findings),
        settings=settings,
    )


def grade_text(
    text: str,
    catalog: RuleCatalog,
    *,
    legacy_mode: bool = False,
    settings: Settings | None = None,
) -> tuple[GradeResult, dict, str]:
    """Parse and grade. Returns (result, tree, spec_hash). DocumentLoadError propagates."""
    tree = load_spec_text(text)
    result = _grade_tree(tree, catalog, legacy_mode=legacy_mode, settings=settings or get_settings())
    return result, tree, spec_hash(text)


def run_grading(text: str, **kwargs) -> dict:
    """
    Grade one specification end to end.
    When record=True the run is written to the grade store (single transaction).
    Returns the response body plus runId.
    """
    return _run(load_spec_text(text), spec_hash(text), **kwargs)


def run_grading_file(path: Path | str, **kwargs) -> dict:
    """run_grading for a file on disk. OSError and DocumentLoadError propagate."""
    tree, _text, digest = load_spec_file(path)
    return _run(tree, digest, **kwargs)


def _run(
    tree: dict,
    digest: str,
    *,
    catalog: RuleCatalog | None = None,
    legacy_mode: bool = False,
    settings: Settings | None = None,
    record: bool = False,
    store: GradeStore | None = None,
    source: str = "api",
    reports_dir: Path | None = None,
    upstream_findings=(),
) -> dict:
    started = time.monotonic()
    settings = settings or get_settings()
    catalog = catalog or load_catalog(settings.ruleset_path)

    result = _grade_tree(
        tree, catalog, legacy_mode=legacy_mode, settings=settings, extra_findings=upstream_findings
    )
    response = build_response(result, catalog, digest)
    run_id = str(uuid.uuid4())
    api_id = _api_id(tree)

    if record:
        store = store or GradeStore(settings.db_path)
        store.migrate()
        store.record_run(
            run_id=run_id,
            spec_hash=digest,
            api_id=api_id,
            catalog_version=catalog.version,
            catalog_hash=catalog.content_hash,
            grader_version=GRADER_VERSION,
            result=result,
        )

    if reports_dir is not None:
        write_run_report(
            Path(reports_dir) / f"run_report_{run_id[:8]}.json",
            run_id=run_id,
            spec_hash=digest,
            api_id=api_id,
            catalog_version=catalog.version,
            catalog_hash=catalog.content_hash,
            grader_version=GRADER_VERSION,
            grade=response["grade"],
            findings_count=len(result.findings),
        )

    log_grade_run(
        run_id=run_id,
        source=source,
        spec_hash=digest,
        grade=response["grade"],
        findings_count=len(result.findings),
        catalog_version=catalog.version,
        catalog_hash=catalog.content_hash,
        api_id=api_id,
        duration_ms=int((time.monotonic() - started) * 1000),
    )
    return {"runId": run_id, "apiId": api_id, "recorded": record, **response}


def compare_modes(text: str, *, catalog: RuleCatalog | None = None, settings: Settings | None = None) -> dict:
    """Grade the same document in both modes, side by side."""
    settings = settings or get_settings()
    catalog = catalog or load_catalog(settings.ruleset_path)
    coverage, _tree, digest = grade_text(text, catalog, settings=settings)
    legacy, _tree, _digest = grade_text(text, catalog, legacy_mode=True, settings=settings)
    return {
        "specHash": digest,
        "coverage": coverage.to_dict(),
        "legacy": legacy.to_dict(),
        "scoreDelta": round_half_up(coverage.total_score - legacy.total_score, 1),
        "wouldLegacyAutoFail": would_legacy_auto_fail(coverage, catalog),
    }
