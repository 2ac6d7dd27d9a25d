"""Spec Grader - OpenAPI compliance grading service (HTTP, CLI, persistence, audit)."""

from spec_grader.grading_pipeline import compare_modes, run_grading, run_grading_file
from spec_grader.persistence import GradeStore

__all__ = ["compare_modes", "run_grading", "run_grading_file", "GradeStore"]
