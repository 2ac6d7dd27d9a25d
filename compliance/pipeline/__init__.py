"""I/O boundary: document loading, spec hashing and structural validation."""

from compliance.pipeline.loader import DocumentLoadError, load_spec_file, load_spec_text, spec_hash
from compliance.pipeline.structural import structural_findings

__all__ = [
    "DocumentLoadError",
    "load_spec_file",
    "load_spec_text",
    "spec_hash",
    "structural_findings",
]
