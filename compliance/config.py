"""Runtime settings read from the environment (.env is loaded by the entry points)."""

import os
from dataclasses import dataclass
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_RULESET_PATH = PROJECT_ROOT / "rulesets" / "api_v2.yaml"
DEFAULT_DB_PATH = PROJECT_ROOT / "artifacts" / "grader.sqlite"
DEFAULT_LOG_DIR = PROJECT_ROOT / "logs"
DEFAULT_OPENAPI_VERSION = "3.0.3"

GRADER_VERSION = "2.0.0"


@dataclass(frozen=True)
class Settings:
    ruleset_path: Path = DEFAULT_RULESET_PATH
    db_path: Path = DEFAULT_DB_PATH
    log_dir: Path = DEFAULT_LOG_DIR
    required_openapi_version: str = DEFAULT_OPENAPI_VERSION
    dependency_min_coverage: float = 0.0
    max_workers: int = 4


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be between 0 and 1, got {value}")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}")
    return value


def get_settings() -> Settings:
    """Build Settings from GRADER_* environment variables. Raises ValueError on malformed numbers."""
    return Settings(
        ruleset_path=Path(os.environ.get("GRADER_RULESET_PATH") or DEFAULT_RULESET_PATH),
        db_path=Path(os.environ.get("GRADER_DB_PATH") or DEFAULT_DB_PATH),
        log_dir=Path(os.environ.get("GRADER_LOG_DIR") or DEFAULT_LOG_DIR),
        required_openapi_version=os.environ.get("GRADER_REQUIRED_OPENAPI_VERSION") or DEFAULT_OPENAPI_VERSION,
        dependency_min_coverage=_env_float("GRADER_DEPENDENCY_MIN_COVERAGE", 0.0),
        max_workers=_env_int("GRADER_MAX_WORKERS", 4),
    )
