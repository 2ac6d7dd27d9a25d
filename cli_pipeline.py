#!/usr/bin/env python3
"""CLI for deterministic API specification grading."""

import argparse
import json
import sqlite3
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from compliance.catalog import CatalogConfigError, load_catalog
from compliance.config import get_settings
from compliance.pipeline import DocumentLoadError
from compliance.scoring.prerequisites import PREREQUISITE_CHECKS
from spec_grader.audit import audit_log
from spec_grader.grading_pipeline import compare_modes, run_grading_file
from spec_grader.persistence import GradeStore


def _settings_and_catalog(args: argparse.Namespace):
    try:
        settings = get_settings()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    ruleset = args.ruleset or settings.ruleset_path
    try:
        catalog = load_catalog(ruleset)
    except (OSError, CatalogConfigError) as e:
        print(f"Error: cannot load rule catalog {ruleset}: {e}", file=sys.stderr)
        sys.exit(1)
    return settings, catalog


def _print_grade(path: Path, result: dict) -> None:
    grade = result["grade"]
    print(f"=== {path} ===")
    print(result["summary"])
    if result["findings"]:
        print("\nFindings:")
        for f in result["findings"]:
            print(f"  [{f['severity']}] {f['ruleId']} {f['location']}: {f['message']}")
    if grade.get("blockedByPrerequisites"):
        print("\nQuick fixes:")
        for rule_id, fixes in result.get("quickFixes", {}).items():
            for fix in fixes:
                print(f"  {rule_id}: {fix}")
    elif result.get("improvementOpportunities"):
        print("\nTop improvement opportunities:")
        for o in result["improvementOpportunities"][:5]:
            print(f"  {o['ruleId']} +{o['potentialPoints']} pts ({o['fixCount']} target(s) to fix)")
    print(f"\nspecHash: {result['metadata']['specHash']}")


def cmd_grade(args: argparse.Namespace) -> None:
    """Grade one or more spec files concurrently against one shared catalog."""
    settings, catalog = _settings_and_catalog(args)
    paths = [Path(p) for p in args.spec_files]
    missing = [p for p in paths if not p.exists()]
    if missing:
        print(f"Error: spec file not found: {missing[0]}", file=sys.stderr)
        sys.exit(1)

    def grade_one(path: Path) -> dict:
        if args.compare:
            return compare_modes(path.read_text(encoding="utf-8"), catalog=catalog, settings=settings)
        return run_grading_file(
            path,
            catalog=catalog,
            legacy_mode=args.legacy,
            settings=settings,
            record=args.record,
            source="cli",
            reports_dir=args.reports_dir,
        )

    try:
        with ThreadPoolExecutor(max_workers=settings.max_workers) as pool:
            results = list(pool.map(grade_one, paths))
    except (OSError, DocumentLoadError, sqlite3.Error) as e:
        audit_log(action="cli_grade", status="error", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    for path, result in zip(paths, results):
        audit_log(
            action="cli_grade",
            status="success",
            legacy_mode=args.legacy,
            filename=str(path),
            spec_hash=result.get("specHash") or result["metadata"]["specHash"],
            total=None if args.compare else result["grade"]["total"],
        )

    if args.json:
        out = {str(p): r for p, r in zip(paths, results)}
        print(json.dumps(out if len(results) > 1 else results[0], indent=2))
        return
    for path, result in zip(paths, results):
        if args.compare:
            print(f"=== {path} ===")
            print(f"Coverage: {result['coverage']['total']} ({result['coverage']['letter']})")
            print(f"Legacy:   {result['legacy']['total']} ({result['legacy']['letter']})")
            print(f"Delta:    {result['scoreDelta']}")
            print(f"Would fail under legacy auto-fail: {result['wouldLegacyAutoFail']}")
        else:
            _print_grade(path, result)
        print()


def cmd_checkpoints(args: argparse.Namespace) -> None:
    """List prerequisites and catalog checkpoints."""
    _settings, catalog = _settings_and_catalog(args)
    if args.json:
        print(json.dumps([r.to_dict() for r in catalog.rules], indent=2))
        return
    print(f"Rule catalog {catalog.version} ({len(catalog)} checkpoints, {catalog.max_points:g} points)")
    print("\nPrerequisites (must all pass):")
    for check in PREREQUISITE_CHECKS:
        print(f"  {check.id}: {check.description}")
    for category in catalog.categories:
        print(f"\n{category}:")
        for rule in catalog.rules:
            if rule.category != category:
                continue
            flags = []
            if rule.is_auto_fail:
                flags.append("auto-fail")
            if rule.depends_on:
                flags.append("depends on " + ", ".join(sorted(rule.depends_on)))
            suffix = f" [{'; '.join(flags)}]" if flags else ""
            print(f"  {rule.id} ({rule.max_points:g} pts): {rule.description}{suffix}")


def cmd_explain(args: argparse.Namespace) -> None:
    """Explain one checkpoint or prerequisite."""
    _settings, catalog = _settings_and_catalog(args)
    rule = catalog.get(args.rule_id)
    if rule is None:
        for check in PREREQUISITE_CHECKS:
            if check.id == args.rule_id:
                print(f"{check.id} (prerequisite): {check.description}")
                return
        print(f"Error: unknown rule id: {args.rule_id}", file=sys.stderr)
        sys.exit(1)
    print(f"{rule.id} [{rule.category}] {rule.max_points:g} pts")
    print(f"  {rule.description}")
    if rule.rationale:
        print(f"  Why: {rule.rationale}")
    if rule.target_selector:
        print(f"  Targets: {rule.target_selector}")
    if rule.depends_on:
        print(f"  Depends on: {', '.join(sorted(rule.depends_on))}")
    if rule.is_auto_fail:
        print("  Auto-fail in legacy mode")
    if rule.effort:
        print(f"  Effort: {rule.effort}")


def cmd_history(args: argparse.Namespace) -> None:
    """Show recorded runs for an API id."""
    settings = get_settings()
    store = GradeStore(settings.db_path)
    try:
        store.migrate()
        runs = store.history(args.api_id, args.limit)
    except sqlite3.Error as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if args.json:
        print(json.dumps(runs, indent=2))
        return
    if not runs:
        print(f"No recorded runs for {args.api_id}")
        return
    for run in runs:
        print(f"{run['createdAt']}  {run['total']:>5} {run['letter']:<2}  {run['scoringMode']:<14}  {run['runId']}")


def cmd_top_violations(args: argparse.Namespace) -> None:
    """Rules violated most often across recorded runs."""
    store = GradeStore(get_settings().db_path)
    try:
        store.migrate()
        violations = store.top_violations(args.limit)
    except sqlite3.Error as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    if args.json:
        print(json.dumps(violations, indent=2))
        return
    if not violations:
        print("No recorded findings")
        return
    for v in violations:
        print(f"{v['ruleId']:<12} {v['count']:>5} finding(s) in {v['runs']} run(s)")


def main() -> None:
    parser = argparse.ArgumentParser(description="Deterministic API specification compliance grader")
    parser.add_argument("--ruleset", type=Path, help="Rule catalog file (or GRADER_RULESET_PATH env)")
    sub = parser.add_subparsers(dest="command", required=True)

    # grade
    p_grade = sub.add_parser("grade", help="Grade one or more OpenAPI documents")
    p_grade.add_argument("spec_files", nargs="+", type=Path, help="Paths to YAML or JSON specs")
    p_grade.add_argument("--legacy", action="store_true", help="Use legacy binary scoring")
    p_grade.add_argument("--compare", action="store_true", help="Grade in both modes side by side")
    p_grade.add_argument("--record", action="store_true", help="Record the run in the grade store")
    p_grade.add_argument("--reports-dir", type=Path, help="Directory for run_report.json")
    p_grade.add_argument("--json", action="store_true", help="Output JSON")
    p_grade.set_defaults(func=cmd_grade)

    # checkpoints
    p_list = sub.add_parser("checkpoints", help="List prerequisites and checkpoints")
    p_list.add_argument("--json", action="store_true", help="Output JSON")
    p_list.set_defaults(func=cmd_checkpoints)

    # explain
    p_explain = sub.add_parser("explain", help="Explain one checkpoint")
    p_explain.add_argument("rule_id", help="Checkpoint or prerequisite id, e.g. SEC-001")
    p_explain.set_defaults(func=cmd_explain)

    # history
    p_hist = sub.add_parser("history", help="Show recorded runs for an API")
    p_hist.add_argument("api_id", help="info.x-api-id of the API")
    p_hist.add_argument("--limit", type=int, default=20, help="Maximum runs to show")
    p_hist.add_argument("--json", action="store_true", help="Output JSON")
    p_hist.set_defaults(func=cmd_history)

    # top-violations
    p_top = sub.add_parser("top-violations", help="Rules violated most often across recorded runs")
    p_top.add_argument("--limit", type=int, default=10, help="Maximum rules to show")
    p_top.add_argument("--json", action="store_true", help="Output JSON")
    p_top.set_defaults(func=cmd_top_violations)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
