"""Finding normalizer: one deterministic ordering for every finding list we emit."""

from compliance.models import SEVERITY_RANK, Finding


def sort_key(finding: Finding) -> tuple:
    return (
        SEVERITY_RANK[finding.severity],
        finding.category or "",
        finding.rule_id,
        finding.location,
        finding.line if finding.line is not None else 0,
        finding.message,
        finding.fix_hint or "",
    )


def normalize(findings) -> tuple[Finding, ...]:
    """Sort by severity, category, rule id, location, line. Duplicates are kept."""
    return tuple(sorted(findings, key=sort_key))


def count_by_severity(findings) -> dict[str, int]:
    counts = {s: 0 for s in SEVERITY_RANK}
    for f in findings:
        counts[f.severity] += 1
    return counts
