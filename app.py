#!/usr/bin/env python3
"""Flask web app for the API specification compliance grader."""

import sqlite3

from dotenv import load_dotenv
from flask import Flask, current_app, jsonify, request

from compliance.catalog import load_catalog
from compliance.config import GRADER_VERSION, get_settings
from compliance.models import Finding
from compliance.pipeline import DocumentLoadError, spec_hash
from compliance.scoring.prerequisites import PREREQUISITE_CHECKS
from spec_grader.audit import audit_log, setup_app_logging
from spec_grader.grading_pipeline import compare_modes, run_grading
from spec_grader.persistence import GradeStore

load_dotenv()

log = setup_app_logging()

settings = get_settings()
# CatalogConfigError here stops the app from starting
catalog = load_catalog(settings.ruleset_path)

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024  # 16MB
app.config["GRADER_SETTINGS"] = settings
app.config["RULE_CATALOG"] = catalog
app.config["GRADE_STORE"] = GradeStore(settings.db_path)


def _request_content() -> tuple[str, dict]:
    data = request.get_json(silent=True) or {}
    content = data.get("content")
    return (content if isinstance(content, str) else ""), data


def _upstream_findings(data: dict) -> list[Finding]:
    """Findings from an external validator, passed through with the document."""
    raw = data.get("upstream_findings") or []
    if not isinstance(raw, list) or not all(isinstance(f, dict) for f in raw):
        raise ValueError("upstream_findings must be a list of objects")
    try:
        return [Finding.from_dict(f) for f in raw]
    except KeyError as e:
        raise ValueError(f"upstream finding is missing {e}") from e


@app.route("/api/grade", methods=["POST"])
def api_grade():
    """Grade one specification. Body: {content, legacy_mode?, record?, upstream_findings?}."""
    content, data = _request_content()
    legacy_mode = bool(data.get("legacy_mode", False))
    record = bool(data.get("record", False))

    if not content.strip():
        return jsonify({"error": "content is required"}), 400
    try:
        upstream = _upstream_findings(data)
    except ValueError as e:
        return jsonify({"error": str(e), "code": "INVALID_FINDINGS"}), 400

    log.info("Grade started (legacy_mode=%s, record=%s, chars=%d)", legacy_mode, record, len(content))
    try:
        result = run_grading(
            content,
            catalog=current_app.config["RULE_CATALOG"],
            legacy_mode=legacy_mode,
            settings=current_app.config["GRADER_SETTINGS"],
            record=record,
            store=current_app.config["GRADE_STORE"],
            source="http",
            upstream_findings=upstream,
        )
        audit_log(
            action="grade",
            status="success",
            legacy_mode=legacy_mode,
            spec_hash=result["metadata"]["specHash"],
            api_id=result["apiId"],
            total=result["grade"]["total"],
            extra={"run_id": result["runId"], "letter": result["grade"]["letter"], "recorded": record},
        )
        log.info("Grade complete: total=%s letter=%s", result["grade"]["total"], result["grade"]["letter"])
        return jsonify(result)
    except DocumentLoadError as e:
        audit_log(action="grade", status="error", legacy_mode=legacy_mode, spec_hash=spec_hash(content), error=str(e))
        log.warning("Grade rejected: %s", e)
        return jsonify({"error": str(e), "code": "INVALID_DOCUMENT"}), 400
    except sqlite3.Error as e:
        audit_log(action="grade", status="error", legacy_mode=legacy_mode, error=str(e), extra={"error_type": "persistence"})
        log.exception("Grade could not be recorded")
        return jsonify({"error": f"Could not record run: {e}", "code": "PERSISTENCE_FAILED"}), 500
    except Exception as e:
        audit_log(action="grade", status="error", legacy_mode=legacy_mode, error=str(e))
        log.exception("Grade failed")
        return jsonify({"error": str(e)}), 500


@app.route("/api/grade/compare", methods=["POST"])
def api_grade_compare():
    """Grade in coverage and legacy mode side by side."""
    content, _data = _request_content()
    if not content.strip():
        return jsonify({"error": "content is required"}), 400
    try:
        result = compare_modes(
            content,
            catalog=current_app.config["RULE_CATALOG"],
            settings=current_app.config["GRADER_SETTINGS"],
        )
        audit_log(action="grade_compare", status="success", spec_hash=result["specHash"])
        return jsonify(result)
    except DocumentLoadError as e:
        audit_log(action="grade_compare", status="error", error=str(e))
        return jsonify({"error": str(e), "code": "INVALID_DOCUMENT"}), 400
    except Exception as e:
        audit_log(action="grade_compare", status="error", error=str(e))
        log.exception("Grade compare failed")
        return jsonify({"error": str(e)}), 500


@app.route("/api/checkpoints", methods=["GET"])
def api_checkpoints():
    """List prerequisites and every checkpoint of the loaded catalog."""
    rules = current_app.config["RULE_CATALOG"]
    return jsonify({
        "version": rules.version,
        "catalogHash": rules.content_hash,
        "totalPoints": rules.max_points,
        "prerequisites": [{"id": c.id, "description": c.description} for c in PREREQUISITE_CHECKS],
        "checkpoints": [r.to_dict() for r in rules.rules],
    })


@app.route("/api/explain/<rule_id>", methods=["GET"])
def api_explain(rule_id: str):
    rules = current_app.config["RULE_CATALOG"]
    rule = rules.get(rule_id)
    if rule is not None:
        return jsonify(rule.to_dict())
    for check in PREREQUISITE_CHECKS:
        if check.id == rule_id:
            return jsonify({"id": check.id, "category": "prerequisites", "description": check.description})
    return jsonify({"error": f"Unknown rule id: {rule_id}"}), 404


@app.route("/api/history/<api_id>", methods=["GET"])
def api_history(api_id: str):
    """Recorded runs for one API, newest first."""
    try:
        limit = int(request.args.get("limit", 20))
    except ValueError:
        return jsonify({"error": "limit must be an integer"}), 400
    store = current_app.config["GRADE_STORE"]
    try:
        store.migrate()
        runs = store.history(api_id, limit)
    except sqlite3.Error as e:
        log.exception("History lookup failed")
        return jsonify({"error": str(e)}), 500
    return jsonify({"apiId": api_id, "runs": runs})


@app.route("/api/trends/top-violations", methods=["GET"])
def api_top_violations():
    """Most frequently violated rules across every recorded run."""
    try:
        limit = int(request.args.get("limit", 10))
    except ValueError:
        return jsonify({"error": "limit must be an integer"}), 400
    store = current_app.config["GRADE_STORE"]
    try:
        store.migrate()
        violations = store.top_violations(limit)
    except sqlite3.Error as e:
        log.exception("Top violations lookup failed")
        return jsonify({"error": str(e)}), 500
    return jsonify({"violations": violations})


@app.route("/api/version", methods=["GET"])
def api_version():
    rules = current_app.config["RULE_CATALOG"]
    return jsonify({
        "graderVersion": GRADER_VERSION,
        "catalogVersion": rules.version,
        "catalogHash": rules.content_hash,
        "requiredOpenapiVersion": current_app.config["GRADER_SETTINGS"].required_openapi_version,
    })


if __name__ == "__main__":
    log.info(
        "Spec grader starting on http://127.0.0.1:5000 | catalog %s (%d rules) | Logs: %s/app.log | Audit: %s/audit.log",
        catalog.version, len(catalog), settings.log_dir, settings.log_dir,
    )
    app.run(debug=True, port=5000)
