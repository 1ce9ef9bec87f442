"""Output writers for generated pages."""

from prerender.output.sitemap import write_sitemap
from prerender.output.writer import OutputWriter

__all__ = [
    "OutputWriter",
    "write_sitemap",
]
