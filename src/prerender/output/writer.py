"""Writing composed documents and site scaffolding to the output directory."""

import logging
import shutil
from pathlib import Path

import aiofiles  # type: ignore[import-untyped]

from prerender.compose.assets import fix_asset_paths
from prerender.config import OutputConfig
from prerender.utils.url_utils import output_key

logger = logging.getLogger(__name__)


class OutputWriter:
    """Write each target's document to ``<output>/<key>/index.html``."""

    def __init__(self, config: OutputConfig):
        self.config = config
        self.output_dir = Path(config.path)

    def key_for(self, target: str) -> str:
        return output_key(target, self.config.max_key_length)

    def path_for(self, target: str) -> Path:
        """Return the index.html path a target is written to."""
        return self.output_dir / self.key_for(target) / "index.html"

    async def write(self, target: str, html: str) -> Path:
        """Write one document, creating its directory. Overwrites earlier runs."""
        filepath = self.path_for(target)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(filepath, "w", encoding="utf-8") as f:
            await f.write(html)

        logger.debug("Wrote %s", filepath)
        return filepath

    def prepare_site(self, template_path: Path, asset_root: Path) -> list[Path]:
        """Copy the root page, a 404 page, and static assets into the output.

        Returns the files written.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []

        index_path = self.output_dir / "index.html"
        shutil.copyfile(template_path, index_path)
        written.append(index_path)

        if self.config.write_404:
            # 404.html is served for arbitrarily deep paths, so it needs the
            # same asset prefix as the per-target pages
            html_404 = fix_asset_paths(Path(template_path).read_text(encoding="utf-8"))
            path_404 = self.output_dir / "404.html"
            path_404.write_text(html_404, encoding="utf-8")
            written.append(path_404)

        for asset in self._iter_assets(Path(asset_root)):
            dest = self.output_dir / asset.name
            shutil.copyfile(asset, dest)
            written.append(dest)

        return written

    def _iter_assets(self, asset_root: Path) -> list[Path]:
        """Resolve the configured asset names/globs to unique files."""
        found: dict[str, Path] = {}
        for pattern in self.config.assets:
            for match in sorted(asset_root.glob(pattern)):
                if match.is_file():
                    found.setdefault(match.name, match)
        return list(found.values())
