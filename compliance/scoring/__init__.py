"""Compliance scoring engine: prerequisite gate, coverage scoring, legacy scoring."""

from compliance.scoring.engine import evaluate_document
from compliance.scoring.finalizer import finalize, letter_grade
from compliance.scoring.findings import normalize
from compliance.scoring.legacy import finalize_legacy
from compliance.scoring.prerequisites import check_prerequisites

__all__ = [
    "check_prerequisites",
    "evaluate_document",
    "finalize",
    "finalize_legacy",
    "letter_grade",
    "normalize",
]
