"""sitemap.xml generation from an already built output directory."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from xml.sax.saxutils import escape

from pydantic import BaseModel

logger = logging.getLogger(__name__)

_ENTITIES = {'"': "&quot;", "'": "&apos;"}


class SitemapEntry(BaseModel):
    """One <url> element."""

    loc: str
    lastmod: str | None = None


def normalize_base_url(base_url: str) -> str:
    """Ensure the base URL ends with a slash."""
    if not base_url:
        raise ValueError("A sitemap base URL is required")
    return base_url if base_url.endswith("/") else base_url + "/"


def _lastmod(path: Path) -> str | None:
    try:
        mtime = path.stat().st_mtime
    except OSError:
        return None
    return datetime.fromtimestamp(mtime, tz=timezone.utc).date().isoformat()


def collect_entries(output_dir: Path, base_url: str) -> list[SitemapEntry]:
    """Root page first, then every built ``<dir>/index.html`` sorted by name."""
    base_url = normalize_base_url(base_url)
    entries = [SitemapEntry(loc=base_url, lastmod=_lastmod(output_dir / "index.html"))]

    if output_dir.is_dir():
        built = sorted(
            d.name
            for d in output_dir.iterdir()
            if d.is_dir() and (d / "index.html").is_file()
        )
        for name in built:
            entries.append(
                SitemapEntry(
                    loc=f"{base_url}{name}/",
                    lastmod=_lastmod(output_dir / name / "index.html"),
                )
            )
    return entries


def build_sitemap_xml(entries: list[SitemapEntry]) -> str:
    """Render entries as a sitemaps.org urlset document."""
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for entry in entries:
        parts.append("  <url>")
        parts.append(f"    <loc>{escape(entry.loc, _ENTITIES)}</loc>")
        if entry.lastmod:
            parts.append(f"    <lastmod>{escape(entry.lastmod, _ENTITIES)}</lastmod>")
        parts.append("  </url>")
    parts.append("</urlset>")
    return "\n".join(parts) + "\n"


def write_sitemap(output_dir: Path, base_url: str) -> tuple[Path, int]:
    """Write sitemap.xml into ``output_dir``; returns its path and URL count."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    entries = collect_entries(output_dir, base_url)
    out_path = output_dir / "sitemap.xml"
    out_path.write_text(build_sitemap_xml(entries), encoding="utf-8")
    logger.info("Wrote %s (%d urls)", out_path, len(entries))
    return out_path, len(entries)
