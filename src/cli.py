"""CLI entry point for the visual regression suite."""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from src.errors import VisualRegressionError
from src.fetcher.image_fetcher import ImageFetcher
from src.models.config import VisualRegressionConfig
from src.models.visual import BaselineVariant, BrowserEngine, TestIdentity
from src.reporter.artifacts import ArtifactCollector
from src.storage.temp_files import TempFileStore
from src.visual.baselines import BaselineResolver
from src.visual.orchestrator import ACTUAL_SCREENSHOT_NAME, VisualRegressionOrchestrator

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_config(config: str) -> VisualRegressionConfig:
    try:
        return VisualRegressionConfig.load(config)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'ui-regression init' to create a default config.")
        sys.exit(2)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Visual regression checks for UI test suites"""
    setup_logging(verbose)


@cli.command()
@click.option("--output", "-o", default="vr-config.json", help="Config file path")
@click.option("--project", default="ui-regression", help="Project name used in temp-file names")
def init(output: str, project: str) -> None:
    """Create a default configuration file."""
    config_path = Path(output)
    if config_path.exists():
        if not click.confirm(f"{output} already exists. Overwrite?"):
            return

    cfg = VisualRegressionConfig(project_name=project)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nPoint 'baseline_paths' at your baseline PNGs, then run:")
    console.print("  [blue]ui-regression baselines[/blue]")


@cli.command()
@click.option("--config", "-c", default="vr-config.json", help="Config file path")
def baselines(config: str) -> None:
    """Validate the baseline table and show which file each variant uses."""
    cfg = _load_config(config)
    try:
        resolver = BaselineResolver.from_config(cfg)
    except VisualRegressionError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)

    table = Table(title="Baselines")
    table.add_column("Variant", style="bold")
    table.add_column("Baseline")
    for key, path in resolver.table().items():
        table.add_row(key, str(path))
    console.print(table)


@cli.command()
@click.argument("url")
@click.option("--config", "-c", default="vr-config.json", help="Config file path")
def fetch(url: str, config: str) -> None:
    """Download an image into the temp directory and print its path."""
    cfg = _load_config(config)
    fetcher = ImageFetcher(
        TempFileStore(cfg.temp_dir),
        timeout=cfg.fetch_timeout_seconds,
        default_identity=TestIdentity(project=cfg.project_name),
    )
    try:
        path = asyncio.run(fetcher.fetch(url))
    except VisualRegressionError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)
    click.echo(str(path))


@cli.command()
@click.argument("actual", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--url", help="Fetch the actual screenshot from this URL instead")
@click.option(
    "--engine", "-e",
    type=click.Choice([e.value for e in BrowserEngine]),
    default=BrowserEngine.CHROMIUM.value,
    help="Browser engine the screenshot was taken with",
)
@click.option("--mobile", is_flag=True, help="Screenshot was taken with a mobile device profile")
@click.option("--title", default="", help="Test title recorded with the artifacts")
@click.option("--config", "-c", default="vr-config.json", help="Config file path")
def compare(actual: Optional[str], url: Optional[str], engine: str, mobile: bool, title: str, config: str) -> None:
    """Compare a screenshot against the baseline for its variant.

    Exits 1 when pixels differ and 2 when the comparison could not run.
    """
    if bool(actual) == bool(url):
        raise click.UsageError("Pass either ACTUAL or --url")

    cfg = _load_config(config)
    identity = TestIdentity(project=cfg.project_name, title=title)
    variant = BaselineVariant(engine=BrowserEngine(engine), is_mobile=mobile)
    store = TempFileStore(cfg.temp_dir)
    collector = ArtifactCollector(Path(cfg.artifacts_dir))

    try:
        orchestrator = VisualRegressionOrchestrator(cfg, store=store, sink=collector)
    except VisualRegressionError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)

    async def _run():
        if url:
            fetcher = ImageFetcher(store, timeout=cfg.fetch_timeout_seconds, default_identity=identity)
            actual_path = await fetcher.fetch(url)
        else:
            # The orchestrator deletes the screenshot it is given, so hand it a copy.
            actual_path = store.new_temp_path(identity, ACTUAL_SCREENSHOT_NAME)
            await asyncio.to_thread(shutil.copyfile, actual, actual_path)
        return await orchestrator.compare_against_baseline(actual_path, variant, identity)

    try:
        outcome = asyncio.run(_run())
    except (VisualRegressionError, OSError) as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(2)

    if not outcome.ok:
        console.print(f"[red]Comparison failed:[/red] {outcome.error}")
        sys.exit(2)

    result = outcome.result
    collector.save_manifest()
    table = Table(title="Visual Comparison")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Variant", variant.key)
    table.add_row("Threshold", f"{cfg.threshold:.2f}")
    count_style = "green" if result.matches else "red"
    table.add_row("Mismatched pixels", f"[{count_style}]{result.mismatched_pixel_count}[/{count_style}]")
    console.print(table)
    if result.diff_image_path:
        console.print(f"Diff image: {result.diff_image_path}", soft_wrap=True, markup=False, highlight=False)

    if not result.matches:
        sys.exit(1)


if __name__ == "__main__":
    cli()
