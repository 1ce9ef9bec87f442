"""Command-line interface for prerender."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from prerender import __version__
from prerender.catalog import load_targets, select_targets
from prerender.config import AppConfig, BuildMode
from prerender.errors import FatalSetupError
from prerender.orchestrator import BuildReport, Orchestrator
from prerender.output.sitemap import write_sitemap
from prerender.utils.url_utils import find_key_collisions, output_key

app = typer.Typer(
    name="prerender",
    help="Render client-side report pages into static HTML, one page per target URL.",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console()

DEFAULT_CONFIG_FILE = Path("prerender.toml")
SITEMAP_BASE_ENV = "PRERENDER_SITEMAP_BASE"


def version_callback(value: bool):
    if value:
        console.print(f"prerender version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """Static page generation for client-rendered reports."""
    pass


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, rich_tracebacks=verbose)],
        force=True,
    )
    # Library loggers are chatty at DEBUG
    for name in ("asyncio", "aiohttp.access", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _load_config(config_path: Optional[Path]) -> AppConfig:
    """Load config from an explicit file, ./prerender.toml, or defaults."""
    if config_path is not None:
        if not config_path.is_file():
            console.print(f"[red]Config file not found: {config_path}[/red]")
            raise typer.Exit(1)
        return AppConfig.from_toml(config_path)
    if DEFAULT_CONFIG_FILE.is_file():
        return AppConfig.from_toml(DEFAULT_CONFIG_FILE)
    return AppConfig()


def _with_overrides(config: AppConfig, **sections: dict) -> AppConfig:
    """Apply command-line values (None means unset) and re-validate the config."""
    data = config.model_dump()
    for section, values in sections.items():
        data[section].update({k: v for k, v in values.items() if v is not None})
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            console.print(f"[red]Invalid value for {location}: {error['msg']}[/red]")
        raise typer.Exit(1)


def _build_mode(site: Optional[str], build_all: bool) -> BuildMode:
    if build_all:
        return BuildMode.ALL
    if site:
        return BuildMode.SITE
    return BuildMode.SMOKE


async def _build(config: AppConfig, site: Optional[str], build_all: bool) -> BuildReport:
    raw, targets = await load_targets(config.catalog)
    selected = select_targets(targets, site, build_all)

    mode = _build_mode(site, build_all)
    if mode == BuildMode.SMOKE:
        console.print("[cyan]Smoke build: rendering the first target only (use --all for everything)[/cyan]")
    elif mode == BuildMode.SITE:
        console.print(f"[cyan]Rendering {len(selected)} target(s) matching '{site}':[/cyan]")
        for target in selected:
            console.print(f"  - {target}")
    console.print(f"[green]Catalog has {len(targets)} targets, rendering {len(selected)}[/green]")

    orchestrator = Orchestrator(config, console)
    return await orchestrator.run(selected, raw)


@app.command()
def build(
    site: Optional[str] = typer.Argument(
        None,
        help="Render only targets containing this name (e.g. www.article19.org)",
    ),
    build_all: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Render every target in the catalog",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="TOML config file (defaults to ./prerender.toml when present)",
    ),
    catalog: Optional[str] = typer.Option(
        None,
        "--catalog",
        help="Catalog TSV path or URL",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        help="Number of browser instances",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        help="Render host port (0 picks a free port)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
):
    """
    Render catalog targets into static pages.

    Without arguments only the first target is rendered, as a quick check.

    Examples:

        prerender build

        prerender build --all

        prerender build www.article19.org
    """
    _configure_logging(verbose)
    config = _load_config(config_path)

    config = _with_overrides(
        config,
        catalog={"source": catalog},
        output={"path": output},
        renderer={"workers": workers},
        host={"port": port},
    )
    config.verbose = verbose or config.verbose

    try:
        report = asyncio.run(_build(config, site, build_all))
    except FatalSetupError as e:
        console.print(f"[red]Build failed: {e}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Build cancelled.[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        raise typer.Exit(1)

    if _build_mode(site, build_all) == BuildMode.SMOKE:
        written = [r.output_path for r in report.records if r.output_path]
        if written:
            console.print(f"\n[bold]Test page:[/bold] {written[0]}")


@app.command()
def targets(
    site: Optional[str] = typer.Argument(None, help="Filter targets by name"),
    build_all: bool = typer.Option(False, "--all", "-a", help="List every target"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
    catalog: Optional[str] = typer.Option(None, "--catalog", help="Catalog TSV path or URL"),
):
    """List the targets a build would render and their output directories."""
    config = _with_overrides(_load_config(config_path), catalog={"source": catalog})

    try:
        _raw, all_targets = asyncio.run(load_targets(config.catalog))
        selected = select_targets(all_targets, site, build_all)
    except FatalSetupError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    max_length = config.output.max_key_length
    collisions = find_key_collisions(selected, max_length)

    table = Table(title=f"Targets ({len(selected)} of {len(all_targets)})")
    table.add_column("Target", style="cyan")
    table.add_column("Output directory")
    table.add_column("Collision", justify="center")

    for target in selected:
        key = output_key(target, max_length)
        table.add_row(target, f"{key}/", "[red]yes[/red]" if key in collisions else "")

    console.print(table)


@app.command()
def sitemap(
    base: Optional[str] = typer.Option(
        None,
        "--base",
        help=f"Public base URL of the output (or ${SITEMAP_BASE_ENV})",
    ),
    out: Optional[Path] = typer.Option(None, "--out", help="Built output directory"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
):
    """Write sitemap.xml for an already built output directory."""
    config = _load_config(config_path)
    base_url = base or os.environ.get(SITEMAP_BASE_ENV) or config.sitemap.base_url
    output_dir = out or config.output.path

    try:
        path, count = write_sitemap(output_dir, base_url)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]Sitemap written: {path}[/green]")
    console.print(f"  base URL: {base_url}")
    console.print(f"  urls:     {count}")


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(DEFAULT_CONFIG_FILE, help="Where to write the config"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
):
    """Write the default configuration as TOML."""
    if path.exists() and not force:
        console.print(f"[red]{path} already exists (use --force to overwrite).[/red]")
        raise typer.Exit(1)
    path.write_text(AppConfig().to_toml(), encoding="utf-8")
    console.print(f"[green]Config written to {path}[/green]")


if __name__ == "__main__":
    app()
