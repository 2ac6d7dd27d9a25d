"""Rule catalog: versioned rule definitions and the checks that back them."""

from compliance.catalog.checks import CHECKS
from compliance.catalog.catalog import CatalogConfigError, RuleCatalog
from compliance.catalog.loader import load_catalog, parse_catalog

__all__ = [
    "CHECKS",
    "CatalogConfigError",
    "RuleCatalog",
    "load_catalog",
    "parse_catalog",
]
