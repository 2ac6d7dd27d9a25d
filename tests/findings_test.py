"""Finding normalizer: total, production-order-independent ordering."""

import itertools
import random

from compliance.models import Finding
from compliance.scoring import normalize

FINDINGS = [
    Finding("SEC-001", "error", "missing org header", "$.paths['/b'].get", "security"),
    Finding("SEC-001", "error", "missing org header", "$.paths['/a'].get", "security"),
    Finding("FUNC-002", "warn", "no problem+json", "$.paths['/a'].get.responses", "functionality"),
    Finding("OAS-STRUCT", "error", "schema", "$.info"),
    Finding("SCALE-002", "info", "skipped", "$", "scalability"),
    Finding("MAINT-002", "warn", "docs", "$.paths['/a'].get", "maintainability", line=12),
    Finding("MAINT-002", "warn", "docs", "$.paths['/a'].get", "maintainability", line=3),
]


def test_sort_precedence():
    ordered = normalize(FINDINGS)
    assert [(f.severity, f.rule_id, f.location, f.line) for f in ordered] == [
        ("error", "OAS-STRUCT", "$.info", None),
        ("error", "SEC-001", "$.paths['/a'].get", None),
        ("error", "SEC-001", "$.paths['/b'].get", None),
        ("warn", "FUNC-002", "$.paths['/a'].get.responses", None),
        ("warn", "MAINT-002", "$.paths['/a'].get", 3),
        ("warn", "MAINT-002", "$.paths['/a'].get", 12),
        ("info", "SCALE-002", "$", None),
    ]


def test_order_independent_of_production_order():
    expected = normalize(FINDINGS)
    for perm in itertools.islice(itertools.permutations(FINDINGS), 200):
        assert normalize(perm) == expected
    rng = random.Random(42)
    for _ in range(50):
        shuffled = FINDINGS[:]
        rng.shuffle(shuffled)
        assert normalize(shuffled) == expected


def test_ties_broken_by_message():
    a = Finding("X-1", "warn", "alpha", "$")
    b = Finding("X-1", "warn", "beta", "$")
    assert normalize([b, a]) == (a, b)


def test_exact_duplicates_are_kept():
    dup = Finding("X-1", "warn", "same", "$")
    assert normalize([dup, dup]) == (dup, dup)


def test_unknown_severity_rejected():
    import pytest

    with pytest.raises(ValueError):
        Finding("X-1", "critical", "nope")
