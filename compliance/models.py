"""Immutable value types shared by the catalog, the scoring engine and the pipeline."""

from dataclasses import dataclass, field

SEVERITIES = ("error", "warn", "info")
SEVERITY_RANK = {s: i for i, s in enumerate(SEVERITIES)}

SCORING_MODE_LEGACY = "legacy"
SCORING_MODE_COVERAGE = "coverage-based"


@dataclass(frozen=True)
class Rule:
    """One weighted checkpoint of a catalog version."""

    id: str
    category: str
    max_points: float
    description: str
    check: str
    target_selector: str = ""
    is_auto_fail: bool = False
    depends_on: frozenset = field(default_factory=frozenset)
    rationale: str = ""
    effort: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "maxPoints": self.max_points,
            "isAutoFail": self.is_auto_fail,
            "dependsOn": sorted(self.depends_on),
            "targetSelector": self.target_selector,
            "description": self.description,
            "rationale": self.rationale,
            "effort": self.effort,
        }


@dataclass(frozen=True)
class Finding:
    rule_id: str
    severity: str
    message: str
    location: str = "$"
    category: str | None = None
    line: int | None = None
    fix_hint: str | None = None

    def __post_init__(self):
        if self.severity not in SEVERITY_RANK:
            raise ValueError(f"Unknown finding severity: {self.severity!r}")

    def to_dict(self) -> dict:
        out = {
            "ruleId": self.rule_id,
            "severity": self.severity,
            "message": self.message,
            "location": self.location,
        }
        if self.category is not None:
            out["category"] = self.category
        if self.line is not None:
            out["line"] = self.line
        if self.fix_hint is not None:
            out["fixHint"] = self.fix_hint
        return out

    @classmethod
    def from_dict(cls, data: dict) -> "Finding":
        """Accepts both our own shape and the jsonPath-keyed shape older validators emit."""
        return cls(
            rule_id=str(data["ruleId"]),
            severity=data.get("severity", "warn"),
            message=str(data.get("message", "")),
            location=data.get("location") or data.get("jsonPath") or "$",
            category=data.get("category"),
            line=data.get("line"),
            fix_hint=data.get("fixHint"),
        )


@dataclass(frozen=True)
class RuleScore:
    rule_id: str
    category: str
    applicable: bool
    targets_checked: int
    targets_passed: int
    coverage: float
    earned_points: float
    max_points: float
    skipped: bool = False
    failed_dependencies: tuple = ()

    def to_dict(self) -> dict:
        out = {
            "category": self.category,
            "applicable": self.applicable,
            "targetsChecked": self.targets_checked,
            "targetsPassed": self.targets_passed,
            "coverage": self.coverage,
            "earnedPoints": self.earned_points,
            "maxPoints": self.max_points,
        }
        if self.skipped:
            out["skipped"] = True
            out["failedDependencies"] = list(self.failed_dependencies)
        return out


@dataclass(frozen=True)
class CategoryBreakdown:
    category: str
    earned_points: float
    max_points: float
    percentage: float

    def to_dict(self) -> dict:
        return {
            "earnedPoints": self.earned_points,
            "maxPoints": self.max_points,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class PrerequisiteResult:
    passed: bool
    failures: tuple = ()


@dataclass(frozen=True)
class GradeResult:
    total_score: float
    letter_grade: str
    scoring_mode: str
    blocked_by_prerequisites: bool = False
    auto_fail_triggered: bool = False
    auto_fail_reasons: tuple = ()
    critical_findings_count: int = 0
    findings: tuple = ()
    breakdown: tuple = ()
    rule_scores: tuple = ()
    checkpoints: tuple = ()
    excellence: bool = False

    @property
    def compliance_pct(self) -> float:
        return round(self.total_score / 100, 4)

    def rule_score(self, rule_id: str) -> RuleScore | None:
        for score in self.rule_scores:
            if score.rule_id == rule_id:
                return score
        return None

    def to_dict(self) -> dict:
        """Flat grade object handed to persistence and transport."""
        out = {
            "total": self.total_score,
            "letter": self.letter_grade,
            "compliancePct": self.compliance_pct,
            "blockedByPrerequisites": self.blocked_by_prerequisites,
            "autoFailTriggered": self.auto_fail_triggered,
            "autoFailReasons": list(self.auto_fail_reasons),
            "criticalIssues": self.critical_findings_count,
            "perCategory": {b.category: b.to_dict() for b in self.breakdown},
            "scoringMode": self.scoring_mode,
            "excellence": self.excellence,
        }
        if self.scoring_mode == SCORING_MODE_COVERAGE:
            out["ruleScores"] = {s.rule_id: s.to_dict() for s in self.rule_scores}
        return out
