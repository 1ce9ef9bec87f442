"""Utility functions."""

from prerender.utils.url_utils import (
    find_key_collisions,
    matches_selector,
    normalize_target,
    output_key,
    render_url,
)

__all__ = [
    "find_key_collisions",
    "matches_selector",
    "normalize_target",
    "output_key",
    "render_url",
]
