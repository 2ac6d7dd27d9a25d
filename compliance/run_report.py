"""Generate run_report.json for auditability."""

import json
from pathlib import Path

from compliance.utils import iso_now


def write_run_report(
    output_path: Path,
    run_id: str,
    spec_hash: str,
    api_id: str | None,
    catalog_version: str,
    catalog_hash: str,
    grader_version: str,
    grade: dict,
    findings_count: int,
) -> None:
    """
    Write run_report.json with hashes, versions, counts, category scores.
    No document content beyond the spec hash.
    """
    report = {
        "run_id": run_id,
        "timestamp": iso_now(),
        "api_id": api_id,
        "spec_hash": spec_hash,
        "catalog_version": catalog_version,
        "catalog_hash": catalog_hash,
        "grader_version": grader_version,
        "scoring_mode": grade.get("scoringMode"),
        "total": grade.get("total"),
        "letter": grade.get("letter"),
        "blocked_by_prerequisites": grade.get("blockedByPrerequisites"),
        "auto_fail_triggered": grade.get("autoFailTriggered"),
        "critical_issues": grade.get("criticalIssues"),
        "findings_count": findings_count,
        "per_category": grade.get("perCategory", {}),
    }
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
