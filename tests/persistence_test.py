"""Grade store: atomic run recording, history, comparisons."""

import sqlite3
from contextlib import closing

import pytest

from compliance.document import SpecDocument
from compliance.scoring import evaluate_document
from spec_grader.persistence import GradeStore

API_ID = "orders_1700000000000_0123456789abcdef"


@pytest.fixture
def store(tmp_path):
    s = GradeStore(tmp_path / "runs.sqlite")
    s.migrate()
    return s


def _record(store, run_id, result, spec_hash="h" * 64, catalog_version="2.0.0"):
    store.record_run(
        run_id=run_id,
        spec_hash=spec_hash,
        api_id=API_ID,
        catalog_version=catalog_version,
        catalog_hash="c" * 64,
        grader_version="2.0.0",
        result=result,
    )


def _count(store, table):
    with closing(sqlite3.connect(store.path)) as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def test_record_and_read_back(store, sample_tree, catalog):
    result = evaluate_document(SpecDocument(sample_tree), catalog)
    _record(store, "run-1", result)

    run = store.get_run("run-1")
    assert run["total"] == result.total_score
    assert run["letter"] == "A+"
    assert run["grade"] == result.to_dict()
    assert [f["ruleId"] for f in run["findings"]] == ["EXCEL-001"]
    assert len(run["ruleScores"]) == len(catalog)
    assert _count(store, "category_score") == 5
    assert store.get_run("missing") is None


def test_failed_write_rolls_back_everything(store, sample_tree, catalog, monkeypatch):
    result = evaluate_document(SpecDocument(sample_tree), catalog)

    def boom(self, conn, run_id, result):
        raise sqlite3.OperationalError("disk full")

    monkeypatch.setattr(GradeStore, "_insert_findings", boom)
    with pytest.raises(sqlite3.OperationalError):
        _record(store, "run-1", result)

    for table in ("run", "category_score", "rule_score", "finding"):
        assert _count(store, table) == 0
    assert store.history(API_ID) == []


def test_duplicate_run_id_leaves_first_run_intact(store, sample_tree, catalog):
    result = evaluate_document(SpecDocument(sample_tree), catalog)
    _record(store, "run-1", result)
    with pytest.raises(sqlite3.IntegrityError):
        _record(store, "run-1", result)
    assert _count(store, "run") == 1
    assert _count(store, "finding") == 1


def test_history_and_latest(store, sample_tree, catalog):
    coverage = evaluate_document(SpecDocument(sample_tree), catalog)
    legacy = evaluate_document(SpecDocument(sample_tree), catalog, legacy_mode=True)
    _record(store, "run-1", coverage, spec_hash="a" * 64)
    _record(store, "run-2", legacy, spec_hash="b" * 64)

    history = store.history(API_ID)
    assert [h["runId"] for h in history] == ["run-2", "run-1"]
    assert history[0]["scoringMode"] == "legacy"
    assert store.history(API_ID, limit=1)[0]["runId"] == "run-2"
    assert store.latest_by_spec_hash("a" * 64)["runId"] == "run-1"
    assert store.latest_by_spec_hash("z" * 64) is None


def test_compare_runs(store, sample_tree, catalog):
    good = evaluate_document(SpecDocument(sample_tree), catalog)
    sample_tree["paths"]["/api/v2/orders"]["get"]["parameters"] = []
    worse = evaluate_document(SpecDocument(sample_tree), catalog)
    _record(store, "base", good)
    _record(store, "cand", worse)

    diff = store.compare_runs("base", "cand")
    assert diff["scoreDelta"] == round(worse.total_score - good.total_score, 1)
    assert diff["regressedRules"] == ["SCALE-001"]
    assert diff["improvedRules"] == []
    assert diff["newFindings"] == 1
    assert diff["fixedFindings"] == 0

    with pytest.raises(KeyError):
        store.compare_runs("base", "nope")


def test_top_violations_across_runs(store, sample_tree, catalog):
    assert store.top_violations() == []
    good = evaluate_document(SpecDocument(sample_tree), catalog)
    sample_tree["paths"]["/api/v2/orders"]["get"]["parameters"] = []
    worse = evaluate_document(SpecDocument(sample_tree), catalog)
    _record(store, "run-1", good)
    _record(store, "run-2", worse)
    _record(store, "run-3", worse)

    top = store.top_violations()
    assert top == [
        {"ruleId": "EXCEL-001", "count": 3, "runs": 3},
        {"ruleId": "SCALE-001", "count": 2, "runs": 2},
    ]
    assert store.top_violations(limit=1) == top[:1]
