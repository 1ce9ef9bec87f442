"""Shared fixtures for the prerender test-suite."""

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from prerender.config import AppConfig, CatalogConfig, HostConfig, OutputConfig, RendererConfig
from prerender.renderer.base import BaseRenderer, Rendered, RenderOutcome

TEMPLATE = """<!DOCTYPE html>
<html lang="zh-Hant">
<head>
    <meta charset="UTF-8">
    <title>Default title</title>
    <link rel="canonical" href="https://example.test/">
    <link rel="stylesheet" href="styles.css">
</head>
<body>
    <img src="logo.svg" alt="logo">
    <div class="static-wrapper" data-static="begin"></div>
    <div id="search">default search</div>
    <div class="static-wrapper" data-static="end"></div>
    <script src="https://unpkg.com/vue@3/dist/vue.global.prod.js"></script>
    <script src="app.js"></script>
</body>
</html>
"""

CATALOG = (
    "url\tscore\tdate\n"
    "https://example.org/\t90\t2025-01-01\n"
    "http://www.article19.org\t80\t2025-01-02\n"
    "not-a-url\t0\t2025-01-03\n"
    "https://news.example.com/path/\t70\t2025-01-04\n"
)


@pytest.fixture()
def site_dir(tmp_path: Path) -> Path:
    """A minimal client application checkout: template, assets, result data."""
    root = tmp_path / "site"
    root.mkdir()
    (root / "index.html").write_text(TEMPLATE, encoding="utf-8")
    (root / "styles.css").write_text("body { margin: 0; }", encoding="utf-8")
    (root / "app.js").write_text("console.log('app');", encoding="utf-8")
    (root / "logo.svg").write_text("<svg></svg>", encoding="utf-8")
    data = root / "test-result"
    data.mkdir()
    (data / "statistic.tsv").write_text(CATALOG, encoding="utf-8")
    (data / "example.org.json").write_text('{"url": "https://example.org"}', encoding="utf-8")
    return root


@pytest.fixture()
def app_config(site_dir: Path, tmp_path: Path) -> AppConfig:
    """Config pointing at ``site_dir`` with an ephemeral render host port."""
    return AppConfig(
        catalog=CatalogConfig(source=str(site_dir / "test-result" / "statistic.tsv")),
        host=HostConfig(
            port=0,
            template=site_dir / "index.html",
            asset_root=site_dir,
            data_root=site_dir / "test-result",
        ),
        renderer=RendererConfig(workers=4, settle_ms=0),
        output=OutputConfig(path=tmp_path / "web"),
    )


def rendered(target: str, title: str = "Report") -> Rendered:
    """A successful outcome with a populated result."""
    return Rendered(
        target=target,
        head=f'<head><meta charset="UTF-8"><title>{title} {target}</title>'
        f'<link rel="stylesheet" href="styles.css"></head>',
        fragment=f'<section class="result">{target}</section>',
        result_present=True,
        title=f"{title} {target}",
    )


class FakeRenderer(BaseRenderer):
    """In-memory renderer driven by a callable instead of a browser."""

    def __init__(
        self,
        worker_id: int,
        produce: Callable[[str], RenderOutcome] = rendered,
        delay: float = 0.0,
        fail_launch: bool = False,
        seen: list[str] | None = None,
        launch_delay: float = 0.0,
    ):
        super().__init__(worker_id)
        self.produce = produce
        self.delay = delay
        self.fail_launch = fail_launch
        self.launch_delay = launch_delay
        self.seen = seen if seen is not None else []
        self.entered = False
        self.exited = False

    async def __aenter__(self):
        await asyncio.sleep(self.launch_delay)
        if self.fail_launch:
            raise RuntimeError("Executable doesn't exist")
        self.entered = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.exited = True

    async def render(self, target: str) -> RenderOutcome:
        await asyncio.sleep(self.delay)
        self.seen.append(target)
        return self.produce(target)
