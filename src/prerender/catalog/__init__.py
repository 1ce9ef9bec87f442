"""Target catalog loading and selection."""

from prerender.catalog.loader import load_catalog, load_targets, parse_catalog, select_targets

__all__ = [
    "load_catalog",
    "load_targets",
    "parse_catalog",
    "select_targets",
]
