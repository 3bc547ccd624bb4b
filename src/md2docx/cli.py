"""
CLI: ``md2docx``, convert Markdown requirement documents to DOCX.

Commands:
    md2docx convert SRS.md [OUT.docx] [--config md2docx.yaml]
    md2docx batch docs/*.md --output-dir build/ [--force]
    md2docx config [--config md2docx.yaml]
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from md2docx import __version__
from md2docx.converter import convert_batch, convert_file
from md2docx.errors import ConfigError, DocGenError
from md2docx.logging import configure_logging
from md2docx.models import ConversionResult
from md2docx.settings import ConverterSettings

app = typer.Typer(
    name="md2docx",
    help="md2docx: Markdown to DOCX for regulated software documents.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"md2docx {__version__}")
        raise typer.Exit()


@app.callback()
def root(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """md2docx CLI: cover, TOC, revision history, requirement tables, diagrams."""


# ── Helpers ──────────────────────────────────────────────────────────────


def load_settings(
    config: Path | None,
    *,
    cache_dir: Path | None = None,
    no_fallback: bool = False,
    verbose: bool = False,
) -> ConverterSettings:
    """Settings from YAML/env plus CLI overrides; configures logging."""
    overrides: dict = {}
    if cache_dir is not None:
        overrides["cache_dir"] = cache_dir
    if no_fallback:
        overrides["fallback_to_code"] = False
    if verbose:
        overrides["log_level"] = "DEBUG"

    try:
        if config is not None:
            settings = ConverterSettings.from_yaml(config, **overrides)
        else:
            settings = ConverterSettings.build(**overrides)
    except ConfigError as e:
        err_console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        raise typer.Exit(code=1) from e

    configure_logging(level=settings.log_level, json_format=settings.json_logs)
    return settings


def print_results(results: list[ConversionResult]) -> None:
    table = Table(title="Conversion Results")
    table.add_column("Document")
    table.add_column("Status")
    table.add_column("Output")
    table.add_column("Diagrams", justify="right")
    table.add_column("Requirements", justify="right")

    for result in results:
        if result.skipped:
            status = "[yellow]up to date[/yellow]"
        elif result.ok:
            status = "[green]converted[/green]"
        else:
            status = "[red]failed[/red]"
        table.add_row(
            str(result.source),
            status,
            str(result.output or "-"),
            f"{result.diagrams_rendered} ({result.diagrams_fallback} as code)",
            str(result.requirements),
        )
    console.print(table)

    for result in results:
        for warning in result.warnings:
            console.print(f"[yellow]⚠[/yellow] {result.source.name}: {warning}")
        if result.error:
            err_console.print(f"[bold red]✗[/bold red] {result.source.name}: {result.error}")


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("convert")
def convert_command(
    source: Path = typer.Argument(..., help="Markdown document to convert"),
    output: Path | None = typer.Argument(None, help="Output .docx path (default: next to source)"),
    config: Path | None = typer.Option(None, "--config", "-c", help="YAML settings file"),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Persistent diagram cache"),
    no_fallback: bool = typer.Option(
        False, "--no-fallback", help="Fail if the diagram renderer is missing"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Convert one Markdown document."""
    settings = load_settings(config, cache_dir=cache_dir, no_fallback=no_fallback, verbose=verbose)

    try:
        result = convert_file(source, output, settings)
    except DocGenError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {e.message}")
        raise typer.Exit(code=1) from e

    print_results([result])


@app.command("batch")
def batch_command(
    sources: list[Path] = typer.Argument(..., help="Markdown documents to convert"),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Directory for .docx files"),
    force: bool = typer.Option(False, "--force", "-f", help="Convert even if output is up to date"),
    config: Path | None = typer.Option(None, "--config", "-c", help="YAML settings file"),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Persistent diagram cache"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Convert several documents; failures do not stop the batch."""
    settings = load_settings(config, cache_dir=cache_dir, verbose=verbose)
    results = convert_batch(sources, output_dir, settings, force=force)
    print_results(results)
    if any(not result.ok for result in results):
        raise typer.Exit(code=1)


@app.command("config")
def config_command(
    config: Path | None = typer.Option(None, "--config", "-c", help="YAML settings file"),
    as_json: bool = typer.Option(False, "--json", help="Print as JSON"),
) -> None:
    """Show effective settings."""
    settings = load_settings(config)
    if as_json:
        console.print_json(settings.model_dump_json())
        return

    table = Table(title="md2docx settings")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in settings.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
