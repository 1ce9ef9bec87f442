"""Asset path rewriting for documents placed one directory deep."""

import re

ASSET_EXTENSIONS = ("png", "svg", "jpg", "jpeg", "gif", "webp", "ico", "css", "js")

# Relative src/href values that point at an asset file. Values with a scheme,
# protocol-relative or root-relative values, and values already starting
# with ../ are left alone, which also makes the rewrite idempotent.
_ASSET_REF_RE = re.compile(
    r"""\b(?P<attr>src|href)=(?P<q>["'])"""
    r"""(?!(?:[a-zA-Z][a-zA-Z0-9+.-]*:|/|\.\./))"""
    r"""(?P<path>[^"'?#]+\.(?:""" + "|".join(ASSET_EXTENSIONS) + r"""))"""
    r"""(?P<suffix>[?#][^"']*)?(?P=q)""",
    re.IGNORECASE,
)


def fix_asset_paths(html: str) -> str:
    """Prefix relative asset references with one parent-directory segment."""

    def prefix(match: re.Match[str]) -> str:
        quote = match.group("q")
        suffix = match.group("suffix") or ""
        return f"{match.group('attr')}={quote}../{match.group('path')}{suffix}{quote}"

    return _ASSET_REF_RE.sub(prefix, html)
