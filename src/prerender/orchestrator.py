"""Worker pool that renders catalog targets into static pages."""

import asyncio
import logging
import time
from collections.abc import Callable
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import aiofiles  # type: ignore[import-untyped]
from rich.console import Console, Group
from rich.live import Live
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table
from rich.text import Text

from prerender.compose.template import compose_document
from prerender.config import AppConfig
from prerender.errors import BrowserLaunchError, MissingSourceError
from prerender.host.server import RenderHost
from prerender.output.writer import OutputWriter
from prerender.renderer.base import BaseRenderer, Failed, RenderOutcome
from prerender.renderer.playwright_renderer import PlaywrightRenderer
from prerender.utils.url_utils import find_key_collisions

logger = logging.getLogger(__name__)

RendererFactory = Callable[[int, str], BaseRenderer]


class TargetStatus(str, Enum):
    """Status of a target in the pipeline."""

    QUEUED = "queued"
    RENDERING = "rendering"
    COMPOSING = "composing"
    WRITING = "writing"
    DONE = "done"
    NO_RESULT = "no result"
    FAILED = "failed"


@dataclass
class TargetRecord:
    """What happened to one target."""

    target: str
    worker_id: int = 0
    status: TargetStatus = TargetStatus.QUEUED
    outcome: RenderOutcome | None = None
    reason: str = ""
    title: str | None = None
    output_path: Path | None = None
    degradations: list[str] = field(default_factory=list)
    start: float = 0.0
    end: float = 0.0

    @property
    def duration(self) -> float:
        if self.start and self.end:
            return self.end - self.start
        return 0.0


class BuildReport:
    """Aggregate outcome of one pipeline run."""

    def __init__(self):
        self.records: list[TargetRecord] = []
        self.key_collisions: dict[str, list[str]] = {}
        self.workers_launched: int = 0
        self.pipeline_start: float = 0.0
        self.pipeline_end: float = 0.0

    def record(self, record: TargetRecord) -> None:
        self.records.append(record)

    @property
    def success_count(self) -> int:
        return sum(
            1 for r in self.records if r.status in (TargetStatus.DONE, TargetStatus.NO_RESULT)
        )

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def no_result_count(self) -> int:
        return sum(1 for r in self.records if r.status == TargetStatus.NO_RESULT)

    @property
    def failures(self) -> list[TargetRecord]:
        return [r for r in self.records if r.status == TargetStatus.FAILED]

    @property
    def total_duration(self) -> float:
        return max(0.0, self.pipeline_end - self.pipeline_start)


class Orchestrator:
    """Coordinates the render host, browser workers, and output."""

    def __init__(
        self,
        config: AppConfig,
        console: Console | None = None,
        renderer_factory: RendererFactory | None = None,
    ):
        self.config = config
        self.console = console or Console()
        self.writer = OutputWriter(config.output)
        self._renderer_factory = renderer_factory or self._create_renderer
        self._active: dict[int, TargetRecord] = {}

    async def run(self, targets: list[str], catalog_bytes: bytes | None = None) -> BuildReport:
        """Render every target and write its page; returns the build report."""
        report = BuildReport()
        report.pipeline_start = time.monotonic()

        if not targets:
            self.console.print("[yellow]No targets to render.[/yellow]")
            report.pipeline_end = time.monotonic()
            return report

        report.key_collisions = find_key_collisions(targets, self.config.output.max_key_length)
        for key, owners in report.key_collisions.items():
            logger.warning("Output key %s is shared by %d targets: %s", key, len(owners), ", ".join(owners))

        template_path = self.config.host.template
        if not template_path.is_file():
            raise MissingSourceError(f"Template not found: {template_path}")
        self.writer.prepare_site(template_path, self.config.host.asset_root)

        queue: asyncio.Queue[str] = asyncio.Queue()
        for target in targets:
            queue.put_nowait(target)

        worker_count = min(self.config.renderer.workers, len(targets))

        host = RenderHost(self.config.host, _catalog_name(self.config.catalog.source), catalog_bytes)
        async with host:
            async with AsyncExitStack() as stack:
                renderers = await self._launch_renderers(stack, worker_count, host.base_url)
                report.workers_launched = len(renderers)
                self.console.print(
                    f"[blue]Rendering {len(targets)} targets with"
                    f" {len(renderers)} browser instance(s)...[/blue]"
                )
                await self._run_workers(renderers, queue, report, len(targets))

        report.pipeline_end = time.monotonic()
        self._print_summary(report)
        return report

    def _create_renderer(self, worker_id: int, base_url: str) -> BaseRenderer:
        return PlaywrightRenderer(
            self.config.renderer, self.config.markers, base_url, worker_id
        )

    async def _launch_renderers(
        self, stack: AsyncExitStack, count: int, base_url: str
    ) -> list[BaseRenderer]:
        """Launch ``count`` renderers concurrently; each one is torn down by ``stack``."""
        renderers = [self._renderer_factory(i + 1, base_url) for i in range(count)]

        async def launch(renderer: BaseRenderer) -> None:
            await renderer.__aenter__()
            # Registered immediately so a cancelled launch still closes it
            stack.push_async_exit(renderer)

        results = await asyncio.gather(
            *(launch(renderer) for renderer in renderers),
            return_exceptions=True,
        )

        launched: list[BaseRenderer] = []
        for renderer, res in zip(renderers, results):
            if isinstance(res, BaseException):
                logger.error("Browser %d failed to launch: %s", renderer.worker_id, res)
                continue
            launched.append(renderer)

        if not launched:
            raise BrowserLaunchError(f"None of {count} browser instance(s) could be launched")
        return launched

    async def _run_workers(
        self,
        renderers: list[BaseRenderer],
        queue: "asyncio.Queue[str]",
        report: BuildReport,
        total: int,
    ) -> None:
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            TextColumn("•"),
            TimeRemainingColumn(),
            console=self.console,
        )
        progress_task = progress.add_task("Rendering...", total=total)

        live = Live(
            self._build_live_display(progress, report),
            console=self.console,
            refresh_per_second=4,
        )

        with live:
            refresh_stop = asyncio.Event()

            async def refresh_display():
                while not refresh_stop.is_set():
                    live.update(self._build_live_display(progress, report))
                    try:
                        await asyncio.wait_for(refresh_stop.wait(), timeout=0.25)
                    except asyncio.TimeoutError:
                        pass

            refresh_task = asyncio.create_task(refresh_display())
            try:
                await asyncio.gather(
                    *(
                        self._worker(renderer, queue, report, progress, progress_task)
                        for renderer in renderers
                    )
                )
            finally:
                refresh_stop.set()
                await refresh_task
                live.update(self._build_live_display(progress, report))

    async def _worker(
        self,
        renderer: BaseRenderer,
        queue: "asyncio.Queue[str]",
        report: BuildReport,
        progress: Progress,
        task_id: TaskID,
    ) -> None:
        """Pull targets until the queue is empty."""
        while True:
            try:
                target = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            record = await self._process_target(renderer, target)
            report.record(record)
            progress.update(task_id, advance=1)

    async def _process_target(self, renderer: BaseRenderer, target: str) -> TargetRecord:
        """Render, compose, and write one target. Failures stay with the target."""
        record = TargetRecord(target=target, worker_id=renderer.worker_id, start=time.monotonic())
        self._active[renderer.worker_id] = record
        try:
            record.status = TargetStatus.RENDERING
            outcome = await renderer.render(target)
            record.outcome = outcome

            if isinstance(outcome, Failed):
                record.status = TargetStatus.FAILED
                record.reason = outcome.reason
                logger.warning("[browser %d] failed: %s (%s)", renderer.worker_id, target, outcome.reason)
                return record

            record.title = outcome.title
            record.status = TargetStatus.COMPOSING
            template = await self._read_template()
            document = compose_document(template, outcome, self.config.markers)
            record.degradations = document.degradations
            for message in document.degradations:
                logger.warning("%s: %s", target, message)

            record.status = TargetStatus.WRITING
            record.output_path = await self.writer.write(target, document.html)
            record.status = TargetStatus.DONE if outcome.result_present else TargetStatus.NO_RESULT
            logger.info("Saved %s", record.output_path)
        except Exception as e:
            logger.debug("Processing %s failed", target, exc_info=True)
            record.status = TargetStatus.FAILED
            record.reason = str(e) or type(e).__name__
            logger.warning("[browser %d] failed: %s (%s)", renderer.worker_id, target, record.reason)
        finally:
            record.end = time.monotonic()
            self._active.pop(renderer.worker_id, None)
        return record

    async def _read_template(self) -> str:
        """Fresh copy of the master template for each target."""
        async with aiofiles.open(self.config.host.template, encoding="utf-8") as f:
            return await f.read()

    def _build_live_display(self, progress: Progress, report: BuildReport) -> Group:
        """Progress bar plus a table of in-flight and recently finished targets."""
        now = time.monotonic()

        table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
        table.add_column("Browser", width=8, justify="right")
        table.add_column("Status", width=10)
        table.add_column("Target", min_width=40, overflow="ellipsis", no_wrap=True)
        table.add_column("Elapsed", width=8, justify="right")

        status_styles = {
            TargetStatus.RENDERING: "cyan",
            TargetStatus.COMPOSING: "yellow",
            TargetStatus.WRITING: "magenta",
            TargetStatus.DONE: "green",
            TargetStatus.NO_RESULT: "dim",
            TargetStatus.FAILED: "red",
        }

        for worker_id, record in sorted(self._active.items()):
            table.add_row(
                str(worker_id),
                Text(record.status.value, style=status_styles.get(record.status, "white")),
                record.target,
                f"{now - record.start:.1f}s",
            )

        for record in report.records[-3:]:
            table.add_row(
                str(record.worker_id),
                Text(record.status.value, style=status_styles.get(record.status, "white")),
                record.target,
                f"{record.duration:.1f}s",
            )

        elements: list[Progress | Text | Table] = [progress]
        done_count = len(report.records)
        if done_count and report.pipeline_start:
            elapsed = now - report.pipeline_start
            if elapsed > 0:
                elements.append(Text(f"  {done_count / elapsed:.2f} pages/sec", style="dim"))
        elements.append(table)
        return Group(*elements)

    def _print_summary(self, report: BuildReport) -> None:
        """Print the post-run report."""
        self.console.print()
        self.console.print("[bold]Build complete[/bold]")
        self.console.print()
        self.console.print(f"  Pages generated: [green]{report.success_count}[/green]")
        if report.no_result_count:
            self.console.print(f"  Without result:  [yellow]{report.no_result_count}[/yellow]")
        if report.failure_count:
            self.console.print(f"  Failed:          [red]{report.failure_count}[/red]")
        self.console.print(f"  Output:          {self.writer.output_dir}")
        self.console.print(f"  Total time:      {report.total_duration:.1f}s")

        timed = [r for r in report.records if r.duration]
        if len(timed) > 1:
            slowest = sorted(timed, key=lambda r: r.duration, reverse=True)[:5]
            self.console.print()
            self.console.print("[bold]Slowest targets[/bold]")
            for record in slowest:
                self.console.print(f"  {record.target}  [dim]{record.duration:.1f}s[/dim]")

        if report.key_collisions:
            self.console.print()
            self.console.print("[bold yellow]Output key collisions[/bold yellow]")
            for key, owners in report.key_collisions.items():
                self.console.print(f"  {key}: {', '.join(owners)}")

        failures = report.failures
        if failures:
            self.console.print()
            self.console.print("[bold red]Failures[/bold red]")
            for record in failures[:10]:
                self.console.print(f"  [red]{record.target}[/red]: {record.reason}")
            if len(failures) > 10:
                self.console.print(f"  [dim]... and {len(failures) - 10} more[/dim]")


def _catalog_name(source: str) -> str:
    """File name the client app requests the catalog under."""
    if source.startswith(("http://", "https://")):
        return PurePosixPath(urlparse(source).path).name
    return Path(source).name
