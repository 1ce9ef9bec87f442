"""Local render host."""

from prerender.host.server import RenderHost

__all__ = ["RenderHost"]
