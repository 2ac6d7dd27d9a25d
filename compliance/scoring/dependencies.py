"""Dependency resolution between rules: evaluation order, cycles, skipped-rule analysis."""

from compliance.models import Finding, Rule, RuleScore


def evaluation_order(rules: list[Rule]) -> list[str]:
    """
    Topological order of rule ids (Kahn's algorithm).
    Ties are broken by catalog order, so the result is deterministic.
    Dependencies on ids outside `rules` are ignored here; the catalog rejects them earlier.
    Rules caught in a cycle are left out; use find_cycle() to report them.
    """
    ids = [r.id for r in rules]
    position = {rid: i for i, rid in enumerate(ids)}
    indegree = {rid: 0 for rid in ids}
    dependents: dict[str, list[str]] = {rid: [] for rid in ids}
    for rule in rules:
        for dep in rule.depends_on:
            if dep in position:
                indegree[rule.id] += 1
                dependents[dep].append(rule.id)

    ready = sorted((rid for rid in ids if indegree[rid] == 0), key=position.__getitem__)
    order = []
    while ready:
        current = ready.pop(0)
        order.append(current)
        for child in dependents[current]:
            indegree[child] -= 1
            if indegree[child] == 0:
                ready.append(child)
        ready.sort(key=position.__getitem__)
    return order


def find_cycle(rules: list[Rule]) -> list[str] | None:
    """Return one dependency cycle as [a, b, ..., a], or None."""
    by_id = {r.id: r for r in rules}
    WHITE, GREY, BLACK = 0, 1, 2
    color = {rid: WHITE for rid in by_id}
    stack: list[str] = []

    def visit(rid: str) -> list[str] | None:
        color[rid] = GREY
        stack.append(rid)
        for dep in sorted(by_id[rid].depends_on):
            if dep not in by_id:
                continue
            if color[dep] == GREY:
                return stack[stack.index(dep):] + [dep]
            if color[dep] == WHITE:
                found = visit(dep)
                if found:
                    return found
        stack.pop()
        color[rid] = BLACK
        return None

    for rule in rules:
        if color[rule.id] == WHITE:
            found = visit(rule.id)
            if found:
                return found
    return None


def unmet_dependencies(rule: Rule, prior_results: dict[str, RuleScore], min_coverage: float = 0.0) -> list[str]:
    unmet = []
    for dep in sorted(rule.depends_on):
        score = prior_results.get(dep)
        if score is None or not score.applicable or score.coverage < min_coverage:
            unmet.append(dep)
    return unmet


def resolves(rule: Rule, prior_results: dict[str, RuleScore], min_coverage: float = 0.0) -> bool:
    """True when every dependency was evaluated, is applicable, and meets min_coverage."""
    return not unmet_dependencies(rule, prior_results, min_coverage)


def skipped_score(rule: Rule, failed: list[str]) -> tuple[RuleScore, Finding]:
    """Inapplicable score plus the single info finding explaining the skip."""
    score = RuleScore(
        rule_id=rule.id,
        category=rule.category,
        applicable=False,
        targets_checked=0,
        targets_passed=0,
        coverage=0.0,
        earned_points=0.0,
        max_points=0.0,
        skipped=True,
        failed_dependencies=tuple(failed),
    )
    finding = Finding(
        rule_id=rule.id,
        severity="info",
        message=f"Skipped: depends on {', '.join(failed)} which is not applicable",
        location="$",
        category=rule.category,
        fix_hint=f"Fix {', '.join(failed)} first",
    )
    return score, finding


def analyze_dependency_chains(rule_scores: dict[str, RuleScore]) -> dict:
    """
    Split skipped rules into root causes (the failing dependencies that were not
    themselves skipped) and cascading skips (rules skipped because a dependency was skipped).
    """
    skipped = {rid: s for rid, s in rule_scores.items() if s.skipped}
    root_causes: dict[str, list[str]] = {}
    cascading: list[str] = []
    for rid in sorted(skipped):
        deps = skipped[rid].failed_dependencies
        if any(dep in skipped for dep in deps):
            cascading.append(rid)
        for dep in deps:
            if dep not in skipped:
                root_causes.setdefault(dep, []).append(rid)
    return {
        "skippedCount": len(skipped),
        "rootCauses": {k: root_causes[k] for k in sorted(root_causes)},
        "cascadingSkips": cascading,
    }


def unblocked_by(rule_id: str, rule_scores: dict[str, RuleScore]) -> list[str]:
    """Rules that would become evaluable (directly or transitively) once rule_id passes."""
    unblocked: list[str] = []
    frontier = [rule_id]
    while frontier:
        current = frontier.pop(0)
        for rid in sorted(rule_scores):
            score = rule_scores[rid]
            if score.skipped and current in score.failed_dependencies and rid not in unblocked:
                unblocked.append(rid)
                frontier.append(rid)
    return unblocked
