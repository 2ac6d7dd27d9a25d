"""Document loader: parse YAML/JSON API specifications and compute their spec hash."""

import logging
from pathlib import Path

import yaml

from compliance.utils import hash_text, normalize_line_endings

logger = logging.getLogger(__name__)


class DocumentLoadError(ValueError):
    """Raised when a specification cannot be parsed into a mapping."""


def _stringify_keys(node):
    # YAML reads unquoted status codes (200:) as ints; rules address them as strings
    if isinstance(node, dict):
        return {str(k): _stringify_keys(v) for k, v in node.items()}
    if isinstance(node, list):
        return [_stringify_keys(v) for v in node]
    return node


def spec_hash(text: str) -> str:
    """SHA-256 of the text with CRLF/CR line endings normalized to LF."""
    return hash_text(normalize_line_endings(text))


def load_spec_text(text: str) -> dict:
    """
    Parse YAML or JSON text (JSON is a YAML subset).
    Raises DocumentLoadError if the text is empty, malformed, or not a mapping.
    """
    if not text or not text.strip():
        raise DocumentLoadError("Specification is empty")
    try:
        tree = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DocumentLoadError(f"Specification is not valid YAML/JSON: {e}") from e
    if not isinstance(tree, dict):
        raise DocumentLoadError(f"Specification root must be a mapping, got {type(tree).__name__}")
    return _stringify_keys(tree)


def load_spec_file(path: Path | str) -> tuple[dict, str, str]:
    """Read and parse a spec file. Returns (tree, text, spec_hash). OSError propagates."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    tree = load_spec_text(text)
    digest = spec_hash(text)
    logger.debug("Loaded spec %s hash=%s", path, digest[:12])
    return tree, text, digest
