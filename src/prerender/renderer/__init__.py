"""Headless page rendering."""

from prerender.renderer.base import BaseRenderer, Failed, Rendered, RenderOutcome
from prerender.renderer.playwright_renderer import PlaywrightRenderer

__all__ = [
    "BaseRenderer",
    "Failed",
    "PlaywrightRenderer",
    "Rendered",
    "RenderOutcome",
]
