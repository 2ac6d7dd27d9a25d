"""SQLite store for grading runs: run rows, category and rule scores, findings."""

import json
import logging
import sqlite3
from contextlib import closing
from pathlib import Path

from compliance.models import GradeResult
from compliance.utils import iso_now, round_half_up

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS run (
    run_id TEXT PRIMARY KEY,
    api_id TEXT,
    spec_hash TEXT NOT NULL,
    catalog_version TEXT NOT NULL,
    catalog_hash TEXT NOT NULL,
    grader_version TEXT NOT NULL,
    scoring_mode TEXT NOT NULL,
    total REAL NOT NULL,
    letter TEXT NOT NULL,
    blocked_by_prerequisites INTEGER NOT NULL,
    auto_fail_triggered INTEGER NOT NULL,
    critical_issues INTEGER NOT NULL,
    grade_json TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_run_api ON run(api_id, created_at);
CREATE INDEX IF NOT EXISTS idx_run_spec_hash ON run(spec_hash);
CREATE TABLE IF NOT EXISTS category_score (
    run_id TEXT NOT NULL REFERENCES run(run_id),
    category TEXT NOT NULL,
    earned_points REAL NOT NULL,
    max_points REAL NOT NULL,
    percentage REAL NOT NULL,
    PRIMARY KEY (run_id, category)
);
CREATE TABLE IF NOT EXISTS rule_score (
    run_id TEXT NOT NULL REFERENCES run(run_id),
    rule_id TEXT NOT NULL,
    category TEXT NOT NULL,
    applicable INTEGER NOT NULL,
    targets_checked INTEGER NOT NULL,
    targets_passed INTEGER NOT NULL,
    coverage REAL NOT NULL,
    earned_points REAL NOT NULL,
    max_points REAL NOT NULL,
    skipped INTEGER NOT NULL,
    PRIMARY KEY (run_id, rule_id)
);
CREATE TABLE IF NOT EXISTS finding (
    run_id TEXT NOT NULL REFERENCES run(run_id),
    seq INTEGER NOT NULL,
    rule_id TEXT NOT NULL,
    severity TEXT NOT NULL,
    category TEXT,
    location TEXT NOT NULL,
    line INTEGER,
    message TEXT NOT NULL,
    fix_hint TEXT,
    PRIMARY KEY (run_id, seq)
);
"""


class GradeStore:
    """One connection per operation, so a store can be shared across threads."""

    def __init__(self, path: Path | str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def migrate(self) -> None:
        with closing(self._connect()) as conn:
            conn.executescript(SCHEMA)

    def record_run(
        self,
        *,
        run_id: str,
        spec_hash: str,
        api_id: str | None,
        catalog_version: str,
        catalog_hash: str,
        grader_version: str,
        result: GradeResult,
    ) -> None:
        """Write the run and all of its rows in one transaction. Any failure leaves nothing behind."""
        with closing(self._connect()) as conn:
            with conn:
                self._insert_run(conn, run_id, spec_hash, api_id, catalog_version, catalog_hash, grader_version, result)
                self._insert_scores(conn, run_id, result)
                self._insert_findings(conn, run_id, result)
        logger.debug("Recorded run %s total=%s", run_id, result.total_score)

    def _insert_run(self, conn, run_id, spec_hash, api_id, catalog_version, catalog_hash, grader_version, result):
        conn.execute(
            "INSERT INTO run (run_id, api_id, spec_hash, catalog_version, catalog_hash, grader_version,"
            " scoring_mode, total, letter, blocked_by_prerequisites, auto_fail_triggered, critical_issues,"
            " grade_json, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                run_id, api_id, spec_hash, catalog_version, catalog_hash, grader_version,
                result.scoring_mode, result.total_score, result.letter_grade,
                int(result.blocked_by_prerequisites), int(result.auto_fail_triggered),
                result.critical_findings_count, json.dumps(result.to_dict(), sort_keys=True), iso_now(),
            ),
        )

    def _insert_scores(self, conn, run_id, result):
        conn.executemany(
            "INSERT INTO category_score (run_id, category, earned_points, max_points, percentage)"
            " VALUES (?, ?, ?, ?, ?)",
            [(run_id, b.category, b.earned_points, b.max_points, b.percentage) for b in result.breakdown],
        )
        scores = result.rule_scores or result.checkpoints
        conn.executemany(
            "INSERT INTO rule_score (run_id, rule_id, category, applicable, targets_checked, targets_passed,"
            " coverage, earned_points, max_points, skipped) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (
                    run_id, s.rule_id, s.category, int(s.applicable), s.targets_checked, s.targets_passed,
                    s.coverage, s.earned_points, s.max_points, int(s.skipped),
                )
                for s in scores
            ],
        )

    def _insert_findings(self, conn, run_id, result):
        conn.executemany(
            "INSERT INTO finding (run_id, seq, rule_id, severity, category, location, line, message, fix_hint)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (run_id, i, f.rule_id, f.severity, f.category, f.location, f.line, f.message, f.fix_hint)
                for i, f in enumerate(result.findings)
            ],
        )

    def _run_summary(self, row: sqlite3.Row) -> dict:
        return {
            "runId": row["run_id"],
            "apiId": row["api_id"],
            "specHash": row["spec_hash"],
            "catalogVersion": row["catalog_version"],
            "scoringMode": row["scoring_mode"],
            "total": row["total"],
            "letter": row["letter"],
            "blockedByPrerequisites": bool(row["blocked_by_prerequisites"]),
            "autoFailTriggered": bool(row["auto_fail_triggered"]),
            "criticalIssues": row["critical_issues"],
            "createdAt": row["created_at"],
        }

    def history(self, api_id: str, limit: int = 20) -> list[dict]:
        """Most recent runs first."""
        limit = max(1, min(limit, 500))
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT * FROM run WHERE api_id = ? ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (api_id, limit),
            ).fetchall()
        return [self._run_summary(r) for r in rows]

    def top_violations(self, limit: int = 10) -> list[dict]:
        """Finding counts per rule across all recorded runs, most frequent first."""
        limit = max(1, min(limit, 500))
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT rule_id, COUNT(*) AS cnt, COUNT(DISTINCT run_id) AS runs FROM finding"
                " GROUP BY rule_id ORDER BY cnt DESC, rule_id LIMIT ?",
                (limit,),
            ).fetchall()
        return [{"ruleId": r["rule_id"], "count": r["cnt"], "runs": r["runs"]} for r in rows]

    def latest_by_spec_hash(self, spec_hash: str) -> dict | None:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT * FROM run WHERE spec_hash = ? ORDER BY created_at DESC, rowid DESC LIMIT 1",
                (spec_hash,),
            ).fetchone()
        return self._run_summary(row) if row else None

    def get_run(self, run_id: str) -> dict | None:
        with closing(self._connect()) as conn:
            row = conn.execute("SELECT * FROM run WHERE run_id = ?", (run_id,)).fetchone()
            if row is None:
                return None
            findings = conn.execute(
                "SELECT * FROM finding WHERE run_id = ? ORDER BY seq", (run_id,)
            ).fetchall()
            rules = conn.execute(
                "SELECT * FROM rule_score WHERE run_id = ? ORDER BY rule_id", (run_id,)
            ).fetchall()
        out = self._run_summary(row)
        out["grade"] = json.loads(row["grade_json"])
        out["findings"] = [
            {
                k: v
                for k, v in {
                    "ruleId": f["rule_id"],
                    "severity": f["severity"],
                    "category": f["category"],
                    "location": f["location"],
                    "line": f["line"],
                    "message": f["message"],
                    "fixHint": f["fix_hint"],
                }.items()
                if v is not None
            }
            for f in findings
        ]
        out["ruleScores"] = {
            r["rule_id"]: {
                "coverage": r["coverage"],
                "earnedPoints": r["earned_points"],
                "maxPoints": r["max_points"],
                "applicable": bool(r["applicable"]),
            }
            for r in rules
        }
        return out

    def compare_runs(self, baseline_id: str, candidate_id: str) -> dict:
        """Raises KeyError if either run is unknown."""
        baseline = self.get_run(baseline_id)
        candidate = self.get_run(candidate_id)
        if baseline is None:
            raise KeyError(baseline_id)
        if candidate is None:
            raise KeyError(candidate_id)
        before = {(f["ruleId"], f["location"]) for f in baseline["findings"]}
        after = {(f["ruleId"], f["location"]) for f in candidate["findings"]}
        improved, regressed = [], []
        for rule_id in sorted(set(baseline["ruleScores"]) | set(candidate["ruleScores"])):
            old = baseline["ruleScores"].get(rule_id, {}).get("earnedPoints", 0.0)
            new = candidate["ruleScores"].get(rule_id, {}).get("earnedPoints", 0.0)
            if new > old:
                improved.append(rule_id)
            elif new < old:
                regressed.append(rule_id)
        return {
            "baseline": baseline_id,
            "candidate": candidate_id,
            "scoreDelta": round_half_up(candidate["total"] - baseline["total"], 1),
            "gradeDelta": f"{baseline['letter']} -> {candidate['letter']}",
            "fixedFindings": len(before - after),
            "newFindings": len(after - before),
            "improvedRules": improved,
            "regressedRules": regressed,
        }
