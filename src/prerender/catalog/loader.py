"""Target catalog loading from a tab-separated source of record."""

import logging
from pathlib import Path

import httpx

from prerender.config import CatalogConfig
from prerender.errors import MissingSourceError, NoMatchingTargetError
from prerender.utils.url_utils import matches_selector, normalize_target

logger = logging.getLogger(__name__)

DEFAULT_PREFIXES = ("http://", "https://")


def parse_catalog(
    data: bytes | str, prefixes: tuple[str, ...] | list[str] = DEFAULT_PREFIXES
) -> list[str]:
    """Return normalized targets from the first column of a TSV table.

    Row 0 is the header. Rows whose first field is empty or lacks a URL
    scheme are skipped. Duplicates keep their first position.
    """
    text = data.decode("utf-8-sig") if isinstance(data, bytes) else data
    lines = [line for line in text.splitlines() if line.strip()]

    targets: list[str] = []
    seen: set[str] = set()
    for line in lines[1:]:
        url = line.split("\t", 1)[0].strip()
        if not url or not url.startswith(tuple(prefixes)):
            continue
        target = normalize_target(url)
        if not target or target in seen:
            continue
        seen.add(target)
        targets.append(target)
    return targets


async def load_catalog(source: str) -> bytes:
    """Read the raw catalog from a local path or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        return await _download(source)

    path = Path(source).expanduser()
    if not path.is_file():
        raise MissingSourceError(f"Catalog not found: {path}")
    try:
        return path.read_bytes()
    except OSError as e:
        raise MissingSourceError(f"Cannot read catalog {path}: {e}") from e


async def _download(url: str) -> bytes:
    logger.info("Downloading catalog from %s", url)
    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=30.0) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise MissingSourceError(
            f"Catalog download failed: HTTP {e.response.status_code} for {url}"
        ) from e
    except httpx.HTTPError as e:
        raise MissingSourceError(f"Catalog download failed for {url}: {e}") from e
    return response.content


async def load_targets(config: CatalogConfig) -> tuple[bytes, list[str]]:
    """Load the catalog and return its raw bytes along with the parsed targets."""
    raw = await load_catalog(config.source)
    return raw, parse_catalog(raw, config.url_prefixes)


def select_targets(
    targets: list[str], selector: str | None = None, build_all: bool = False
) -> list[str]:
    """Pick the targets for one build.

    With neither a selector nor ``build_all`` only the first target is kept,
    which gives a quick smoke build.
    """
    if not targets:
        raise NoMatchingTargetError("The catalog contains no targets")

    if build_all:
        return list(targets)

    if selector:
        selected = [t for t in targets if matches_selector(t, selector)]
        if not selected:
            raise NoMatchingTargetError(f'No target matches "{selector}"')
        return selected

    return targets[:1]
