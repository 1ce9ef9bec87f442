"""URL manipulation utilities."""

import re
from collections import defaultdict
from urllib.parse import quote

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def normalize_target(url: str) -> str:
    """Strip the protocol and any trailing slashes from a URL."""
    return _SCHEME_RE.sub("", url.strip()).rstrip("/")


def output_key(target: str, max_length: int = 100) -> str:
    """Convert a target into a filesystem-safe directory name.

    Truncation means two long targets sharing a prefix map to the same key;
    see :func:`find_key_collisions`.
    """
    key = _UNSAFE_KEY_CHARS.sub("_", normalize_target(target))[:max_length]
    # "", "." and ".." would resolve to the output root or its parent
    if not key.strip("."):
        key = "_" * max(len(key), 1)
    return key


def find_key_collisions(targets: list[str], max_length: int = 100) -> dict[str, list[str]]:
    """Return output keys claimed by more than one target."""
    claimed: dict[str, list[str]] = defaultdict(list)
    for target in targets:
        claimed[output_key(target, max_length)].append(target)
    return {key: owners for key, owners in claimed.items() if len(owners) > 1}


def render_url(base_url: str, target: str, query_param: str = "url") -> str:
    """Build the render host URL that asks the client app for one target."""
    return f"{base_url.rstrip('/')}/?{query_param}={quote(target, safe='')}"


def matches_selector(target: str, selector: str) -> bool:
    """Substring match in either direction, ignoring scheme and trailing slashes."""
    pattern = normalize_target(selector)
    clean = normalize_target(target)
    if not pattern:
        return False
    return pattern in clean or clean in pattern
