"""Composition of static documents from the template and rendered output."""

from prerender.compose.assets import fix_asset_paths
from prerender.compose.template import ComposedDocument, compose_document

__all__ = [
    "ComposedDocument",
    "compose_document",
    "fix_asset_paths",
]
