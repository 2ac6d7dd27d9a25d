"""Audit trail for grading runs and API operations."""

import csv
import json
import logging
import threading
from pathlib import Path

from compliance.config import get_settings
from compliance.utils import iso_now

CSV_HEADERS = [
    "timestamp",
    "run_id",
    "source",
    "api_id",
    "spec_hash",
    "catalog_version",
    "catalog_hash",
    "scoring_mode",
    "total",
    "letter",
    "blocked_by_prerequisites",
    "auto_fail_triggered",
    "critical_issues",
    "findings_count",
    "duration_ms",
    "per_category",
]

_write_lock = threading.Lock()


def _log_dir() -> Path:
    log_dir = get_settings().log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def log_grade_run(
    *,
    run_id: str,
    source: str,
    spec_hash: str,
    grade: dict,
    findings_count: int,
    catalog_version: str,
    catalog_hash: str,
    api_id: str | None = None,
    duration_ms: int | None = None,
):
    """
    Log a grading run for later review: when, which document, which catalog, what score.
    Writes to grade_runs.jsonl (append) and grade_runs.csv.
    """
    log_dir = _log_dir()
    entry = {
        "timestamp": iso_now(),
        "run_id": run_id,
        "source": source,
        "api_id": api_id,
        "spec_hash": spec_hash,
        "catalog_version": catalog_version,
        "catalog_hash": catalog_hash,
        "scoring_mode": grade.get("scoringMode"),
        "total": grade.get("total"),
        "letter": grade.get("letter"),
        "blocked_by_prerequisites": grade.get("blockedByPrerequisites"),
        "auto_fail_triggered": grade.get("autoFailTriggered"),
        "critical_issues": grade.get("criticalIssues"),
        "findings_count": findings_count,
        "duration_ms": duration_ms,
        "per_category": grade.get("perCategory", {}),
    }

    row = {k: ("" if v is None else v) for k, v in entry.items()}
    row["per_category"] = json.dumps(entry["per_category"], sort_keys=True)
    csv_path = log_dir / "grade_runs.csv"

    # header check and append are one step across threads
    with _write_lock:
        with open(log_dir / "grade_runs.jsonl", "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")
        csv_exists = csv_path.exists()
        with open(csv_path, "a", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_HEADERS)
            if not csv_exists:
                writer.writeheader()
            writer.writerow(row)


def audit_log(
    action: str,
    status: str,
    *,
    legacy_mode: bool | None = None,
    spec_hash: str | None = None,
    api_id: str | None = None,
    total: float | None = None,
    filename: str | None = None,
    error: str | None = None,
    extra: dict | None = None,
):
    """Append a structured audit entry to the audit log (JSONL)."""
    log_dir = _log_dir()
    entry = {
        "timestamp": iso_now(),
        "action": action,
        "status": status,
    }
    if legacy_mode is not None:
        entry["legacy_mode"] = legacy_mode
    if spec_hash:
        entry["spec_hash"] = spec_hash
    if api_id:
        entry["api_id"] = api_id
    if total is not None:
        entry["total"] = total
    if filename:
        entry["filename"] = filename
    if error:
        entry["error"] = error
    if extra:
        entry.update(extra)

    with open(log_dir / "audit.log", "a", encoding="utf-8") as f:
        f.write(json.dumps(entry, default=str) + "\n")


def setup_app_logging():
    """Configure application logging to console and file."""
    log_dir = _log_dir()
    logger = logging.getLogger("spec_grader")
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)

    fmt = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    # Console
    ch = logging.StreamHandler()
    ch.setLevel(logging.INFO)
    ch.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    logger.addHandler(ch)

    # File
    fh = logging.FileHandler(log_dir / "app.log", encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    logger.addHandler(fh)

    # core modules log under "compliance"; route them to the same handlers
    core = logging.getLogger("compliance")
    if not core.handlers:
        core.setLevel(logging.DEBUG)
        core.addHandler(ch)
        core.addHandler(fh)

    return logger
