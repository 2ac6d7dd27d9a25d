"""Load a rule catalog from a YAML or JSON file."""

import logging
import threading
from pathlib import Path

import jsonschema
import yaml

from compliance.catalog.catalog import CatalogConfigError, RuleCatalog
from compliance.models import Rule
from compliance.utils import hash_text
from compliance.validation import validate_rule_catalog

logger = logging.getLogger(__name__)

_cache: dict[str, RuleCatalog] = {}
_cache_lock = threading.Lock()


def _rule_from_entry(entry: dict) -> Rule:
    return Rule(
        id=entry["id"],
        category=entry["category"],
        max_points=float(entry["maxPoints"]),
        description=entry["description"],
        check=entry["check"],
        target_selector=entry.get("targetSelector", ""),
        is_auto_fail=bool(entry.get("autoFail", False)),
        depends_on=frozenset(entry.get("dependsOn", [])),
        rationale=entry.get("rationale", ""),
        effort=entry.get("effort"),
    )


def parse_catalog(text: str, content_hash: str | None = None) -> RuleCatalog:
    """
    Build a RuleCatalog from catalog file text.
    Raises CatalogConfigError on parse, schema or consistency problems.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CatalogConfigError(f"Catalog is not valid YAML/JSON: {e}") from e
    try:
        validate_rule_catalog(data)
    except jsonschema.ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise CatalogConfigError(f"Catalog schema error at {where}: {e.message}") from e
    rules = [_rule_from_entry(entry) for entry in data["rules"]]
    return RuleCatalog(str(data["version"]), rules, content_hash or hash_text(text))


def load_catalog(path: Path | str) -> RuleCatalog:
    """
    Load and cache a catalog file. Each resolved path keeps only its latest
    content hash, so editing the file yields a fresh catalog and drops the old one.
    OSError from reading propagates.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    content_hash = hash_text(text)
    key = str(path.resolve())
    with _cache_lock:
        cached = _cache.get(key)
    if cached is not None and cached.content_hash == content_hash:
        return cached

    catalog = parse_catalog(text, content_hash)
    logger.info(
        "Loaded rule catalog %s version=%s rules=%d hash=%s",
        path, catalog.version, len(catalog), content_hash[:12],
    )
    with _cache_lock:
        current = _cache.get(key)
        if current is not None and current.content_hash == content_hash:
            return current
        _cache[key] = catalog
        return catalog
