"""Tests for the worker pool, driven through in-memory renderers."""

import asyncio
import io
from collections import Counter

import pytest
from rich.console import Console

from prerender.catalog import parse_catalog
from prerender.compose import fix_asset_paths
from prerender.errors import BrowserLaunchError, MissingSourceError
from prerender.orchestrator import Orchestrator, TargetStatus
from prerender.renderer.base import Failed, Rendered

from .conftest import TEMPLATE, FakeRenderer, rendered


def quiet_console() -> Console:
    return Console(file=io.StringIO(), width=120)


def make_orchestrator(app_config, renderers: list[FakeRenderer], **factory_kwargs) -> Orchestrator:
    def factory(worker_id: int, base_url: str) -> FakeRenderer:
        renderer = FakeRenderer(worker_id, **factory_kwargs)
        renderers.append(renderer)
        return renderer

    return Orchestrator(app_config, quiet_console(), renderer_factory=factory)


async def test_every_target_rendered_exactly_once(app_config):
    targets = [f"site{i}.example" for i in range(25)]
    seen: list[str] = []
    renderers: list[FakeRenderer] = []

    def factory(worker_id: int, base_url: str) -> FakeRenderer:
        renderer = FakeRenderer(worker_id, delay=0.001 * worker_id, seen=seen)
        renderers.append(renderer)
        return renderer

    orchestrator = Orchestrator(app_config, quiet_console(), renderer_factory=factory)
    report = await orchestrator.run(targets)

    assert Counter(seen) == Counter(targets)
    assert report.success_count == 25
    assert report.failure_count == 0
    assert report.workers_launched == 4
    assert {r.worker_id for r in report.records} == {1, 2, 3, 4}
    assert all(r.exited for r in renderers)
    for target in targets:
        assert (app_config.output.path / target / "index.html").is_file()


async def test_worker_count_capped_by_target_count(app_config):
    renderers: list[FakeRenderer] = []
    orchestrator = make_orchestrator(app_config, renderers)
    report = await orchestrator.run(["a.example", "b.example"])
    assert len(renderers) == 2
    assert report.workers_launched == 2


async def test_failure_is_isolated_to_its_target(app_config):
    def produce(target: str):
        if target == "bad.example":
            return Failed(target=target, reason="net::ERR_NAME_NOT_RESOLVED")
        if target == "boom.example":
            raise RuntimeError("page crashed")
        return rendered(target)

    renderers: list[FakeRenderer] = []
    orchestrator = make_orchestrator(app_config, renderers, produce=produce)
    targets = ["a.example", "bad.example", "b.example", "boom.example", "c.example"]
    report = await orchestrator.run(targets)

    assert report.success_count == 3
    assert report.failure_count == 2
    reasons = {r.target: r.reason for r in report.failures}
    assert reasons == {
        "bad.example": "net::ERR_NAME_NOT_RESOLVED",
        "boom.example": "page crashed",
    }
    out = app_config.output.path
    assert not (out / "bad.example").exists()
    assert not (out / "boom.example").exists()
    for target in ("a.example", "b.example", "c.example"):
        assert (out / target / "index.html").is_file()


async def test_partial_launch_failure_continues(app_config):
    renderers: list[FakeRenderer] = []

    def factory(worker_id: int, base_url: str) -> FakeRenderer:
        renderer = FakeRenderer(worker_id, fail_launch=worker_id in (1, 3))
        renderers.append(renderer)
        return renderer

    orchestrator = Orchestrator(app_config, quiet_console(), renderer_factory=factory)
    targets = [f"site{i}.example" for i in range(6)]
    report = await orchestrator.run(targets)

    assert report.workers_launched == 2
    assert report.success_count == 6
    assert {r.worker_id for r in report.records} <= {2, 4}
    launched = [r for r in renderers if r.entered]
    assert all(r.exited for r in launched)


async def test_all_launches_failing_is_fatal(app_config):
    renderers: list[FakeRenderer] = []
    orchestrator = make_orchestrator(app_config, renderers, fail_launch=True)
    with pytest.raises(BrowserLaunchError):
        await orchestrator.run(["a.example", "b.example"])


async def test_single_row_catalog_end_to_end(app_config):
    catalog = "url\tscore\nhttps://example.org/\t90\n"
    targets = parse_catalog(catalog.encode("utf-8"))
    assert targets == ["example.org"]

    renderers: list[FakeRenderer] = []
    orchestrator = make_orchestrator(app_config, renderers)
    report = await orchestrator.run(targets, catalog.encode("utf-8"))

    assert report.success_count == 1
    assert report.failure_count == 0
    out = app_config.output.path
    page_dirs = [p.name for p in out.iterdir() if p.is_dir()]
    assert page_dirs == ["example.org"]

    html = (out / "example.org" / "index.html").read_text(encoding="utf-8")
    assert '<section class="result">example.org</section>' in html
    assert "<title>Report example.org</title>" in html
    assert "window.__IS_STATIC_PAGE__ = true;" in html
    assert 'src="../app.js"' in html
    # shared site files sit next to the page directories
    assert (out / "index.html").is_file()
    assert (out / "404.html").is_file()
    assert (out / "styles.css").is_file()


async def test_no_result_writes_template_with_fixed_assets(app_config):
    renderers: list[FakeRenderer] = []
    orchestrator = make_orchestrator(
        app_config,
        renderers,
        produce=lambda target: Rendered(target=target, result_present=False),
    )
    report = await orchestrator.run(["nothing.example"])

    assert report.success_count == 1
    assert report.no_result_count == 1
    assert report.records[0].status == TargetStatus.NO_RESULT
    html = (app_config.output.path / "nothing.example" / "index.html").read_text(encoding="utf-8")
    assert html == fix_asset_paths(TEMPLATE)


async def test_repeated_runs_are_byte_identical(app_config):
    targets = ["a.example", "b.example", "c.example"]
    out = app_config.output.path

    await make_orchestrator(app_config, []).run(targets)
    first = {t: (out / t / "index.html").read_bytes() for t in targets}
    await make_orchestrator(app_config, []).run(targets)
    second = {t: (out / t / "index.html").read_bytes() for t in targets}

    assert first == second


async def test_missing_template_is_fatal(app_config, site_dir):
    (site_dir / "index.html").unlink()
    renderers: list[FakeRenderer] = []
    orchestrator = make_orchestrator(app_config, renderers)
    with pytest.raises(MissingSourceError):
        await orchestrator.run(["a.example"])
    assert renderers == []


async def test_empty_target_list(app_config):
    renderers: list[FakeRenderer] = []
    report = await make_orchestrator(app_config, renderers).run([])
    assert report.records == []
    assert renderers == []


async def test_key_collisions_are_reported(app_config):
    renderers: list[FakeRenderer] = []
    report = await make_orchestrator(app_config, renderers).run(["a.example/x", "a.example?x"])
    assert report.key_collisions == {"a.example_x": ["a.example/x", "a.example?x"]}
    assert report.success_count == 2
    assert (app_config.output.path / "a.example_x" / "index.html").is_file()


async def test_degraded_composition_is_still_written(app_config, site_dir):
    template = TEMPLATE.replace('<div class="static-wrapper" data-static="end"></div>', "")
    (site_dir / "index.html").write_text(template, encoding="utf-8")

    report = await make_orchestrator(app_config, []).run(["example.org"])

    record = report.records[0]
    assert record.status == TargetStatus.DONE
    assert record.degradations == ["template markers missing or out of order"]
    html = record.output_path.read_text(encoding="utf-8")
    assert "default search" in html


async def test_cancel_during_launch_closes_started_browsers(app_config):
    renderers: list[FakeRenderer] = []

    def factory(worker_id: int, base_url: str) -> FakeRenderer:
        renderer = FakeRenderer(worker_id, launch_delay=0.0 if worker_id == 1 else 60.0)
        renderers.append(renderer)
        return renderer

    orchestrator = Orchestrator(app_config, quiet_console(), renderer_factory=factory)
    task = asyncio.create_task(orchestrator.run(["a.example", "b.example"]))
    for _ in range(500):
        if renderers and renderers[0].entered:
            break
        await asyncio.sleep(0.01)
    assert renderers[0].entered

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert renderers[0].exited
    assert not renderers[1].entered
    assert not renderers[1].exited
