"""Merge a rendered page into the master template."""

import re

from pydantic import BaseModel, Field

from prerender.compose.assets import fix_asset_paths
from prerender.config import MarkerConfig
from prerender.renderer.base import Rendered


_HEAD_RE = re.compile(r"<head\b[^>]*>.*?</head>", re.IGNORECASE | re.DOTALL)
_HEAD_CLOSE_RE = re.compile(r"</head>", re.IGNORECASE)


class ComposedDocument(BaseModel):
    """Final static HTML for one target."""

    target: str
    html: str
    degradations: list[str] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.degradations)


def marker_pattern(attribute: str, value: str) -> re.Pattern[str]:
    """Regex for an empty ``<div ... attribute="value" ...></div>`` marker."""
    return re.compile(
        r"<div\b[^>]*\b" + re.escape(attribute)
        + r"""=(["'])""" + re.escape(value) + r"""\1[^>]*>\s*</div>""",
        re.IGNORECASE,
    )


def replace_between_markers(html: str, fragment: str, markers: MarkerConfig) -> str | None:
    """Replace everything between the begin and end markers with ``fragment``.

    Returns None when either marker is missing or they are out of order.
    """
    begin = marker_pattern(markers.attribute, markers.begin).search(html)
    end = marker_pattern(markers.attribute, markers.end).search(html)
    if not begin or not end or end.start() < begin.end():
        return None
    return html[: begin.end()] + fragment + html[end.start():]


def replace_head(html: str, head: str) -> str | None:
    """Swap the first <head> element for ``head``; None if there is none."""
    if not _HEAD_RE.search(html):
        return None
    return _HEAD_RE.sub(lambda _m: head, html, count=1)


def add_static_flag(html: str, flag: str) -> str:
    """Mark the document as statically generated, just before </head>."""
    script = f"<script>window.{flag} = true;</script>"
    if script in html:
        return html
    match = _HEAD_CLOSE_RE.search(html)
    if not match:
        return html
    return html[: match.start()] + script + "\n" + html[match.start():]


def compose_document(template: str, outcome: Rendered, markers: MarkerConfig) -> ComposedDocument:
    """Build the static document for one rendered target.

    Without a result the template is kept as is, so the page falls back to
    the client app's default search view.
    """
    html = template
    degradations: list[str] = []

    if outcome.result_present:
        if outcome.fragment is None:
            degradations.append("rendered page has no marker region")
        else:
            replaced = replace_between_markers(html, outcome.fragment, markers)
            if replaced is None:
                degradations.append("template markers missing or out of order")
            else:
                html = replaced

        if outcome.head:
            replaced = replace_head(html, outcome.head)
            if replaced is None:
                degradations.append("template has no <head> element")
            else:
                html = replaced
        else:
            degradations.append("rendered page has no <head> element")

        html = add_static_flag(html, markers.static_flag)

    html = fix_asset_paths(html)
    return ComposedDocument(target=outcome.target, html=html, degradations=degradations)
