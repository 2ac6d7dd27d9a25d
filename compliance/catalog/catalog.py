"""Immutable, versioned rule catalog."""

from types import MappingProxyType

from compliance.catalog.checks import CHECKS
from compliance.models import Rule
from compliance.scoring.dependencies import evaluation_order, find_cycle

RESERVED_PREFIX = "PREREQ-"


class CatalogConfigError(ValueError):
    """Raised when a catalog is malformed: duplicate, reserved or unknown ids, or a dependency cycle."""


class RuleCatalog:
    """
    One version of the rule set. Built once, shared read-only by every grading call.
    Rules keep catalog order; `order` is the dependency-respecting evaluation order.
    """

    def __init__(self, version: str, rules: list[Rule], content_hash: str = ""):
        self._version = version
        self._content_hash = content_hash
        self._rules = tuple(rules)
        self._validate()
        self._by_id = MappingProxyType({r.id: r for r in self._rules})
        self._order = tuple(evaluation_order(list(self._rules)))

    def _validate(self) -> None:
        seen: set[str] = set()
        for rule in self._rules:
            if rule.id in seen:
                raise CatalogConfigError(f"Duplicate rule id: {rule.id}")
            seen.add(rule.id)
            if rule.id.startswith(RESERVED_PREFIX):
                raise CatalogConfigError(f"Rule id {rule.id} uses reserved prefix {RESERVED_PREFIX}")
            if rule.check not in CHECKS:
                raise CatalogConfigError(f"Rule {rule.id} references unknown check: {rule.check}")
            if rule.max_points <= 0:
                raise CatalogConfigError(f"Rule {rule.id} must have max_points > 0")
        for rule in self._rules:
            unknown = sorted(d for d in rule.depends_on if d not in seen)
            if unknown:
                raise CatalogConfigError(f"Rule {rule.id} depends on unknown rule(s): {', '.join(unknown)}")
        cycle = find_cycle(list(self._rules))
        if cycle:
            raise CatalogConfigError(f"Dependency cycle: {' -> '.join(cycle)}")

    @property
    def version(self) -> str:
        return self._version

    @property
    def content_hash(self) -> str:
        return self._content_hash

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def order(self) -> tuple[str, ...]:
        return self._order

    @property
    def categories(self) -> list[str]:
        out: list[str] = []
        for rule in self._rules:
            if rule.category not in out:
                out.append(rule.category)
        return out

    @property
    def max_points(self) -> float:
        return sum(r.max_points for r in self._rules)

    def get(self, rule_id: str) -> Rule | None:
        return self._by_id.get(rule_id)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._by_id

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    def __repr__(self) -> str:
        return f"RuleCatalog(version={self._version!r}, rules={len(self._rules)})"
