"""Audit trail and run logs land in GRADER_LOG_DIR."""

import csv
import json
from concurrent.futures import ThreadPoolExecutor

from spec_grader.audit import audit_log, log_grade_run


def test_audit_log_appends_jsonl(isolated_runtime):
    audit_log("grade", "success", legacy_mode=False, spec_hash="abc", total=99.4)
    audit_log("grade", "error", error="boom")
    lines = (isolated_runtime / "logs" / "audit.log").read_text(encoding="utf-8").splitlines()
    first, second = (json.loads(line) for line in lines)
    assert first["total"] == 99.4 and first["legacy_mode"] is False
    assert second["error"] == "boom"
    assert "spec_hash" not in second


def test_grade_run_written_to_jsonl_and_csv(isolated_runtime):
    grade = {"scoringMode": "coverage", "total": 91.0, "letter": "A-", "criticalIssues": 1,
             "perCategory": {"security": 100.0}}
    for run_id in ("r1", "r2"):
        log_grade_run(run_id=run_id, source="cli", spec_hash="h", grade=grade, findings_count=1,
                      catalog_version="2.0.0", catalog_hash="c")
    log_dir = isolated_runtime / "logs"
    assert len((log_dir / "grade_runs.jsonl").read_text(encoding="utf-8").splitlines()) == 2
    with open(log_dir / "grade_runs.csv", encoding="utf-8", newline="") as f:
        rows = list(csv.DictReader(f))
    assert [r["run_id"] for r in rows] == ["r1", "r2"]
    assert rows[0]["api_id"] == ""
    assert json.loads(rows[0]["per_category"]) == {"security": 100.0}


def test_concurrent_first_writes_emit_one_header(isolated_runtime):
    grade = {"scoringMode": "legacy", "total": 97.0, "letter": "A+"}

    def write(i):
        log_grade_run(run_id=f"r{i}", source="cli", spec_hash="h", grade=grade, findings_count=0,
                      catalog_version="2.0.0", catalog_hash="c")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(write, range(32)))

    lines = (isolated_runtime / "logs" / "grade_runs.csv").read_text(encoding="utf-8").splitlines()
    assert sum(1 for line in lines if line.startswith("timestamp,")) == 1
    assert len(lines) == 33
