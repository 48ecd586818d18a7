"""Command-line interface for Oven.

This module defines the CLI commands using the Click framework.

Commands:
- bake: Render a project's content into its output directory.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .bake import BakeError, BakeOptions, bake

_LEVEL_STYLES = {
    logging.DEBUG: {"dim": True},
    logging.WARNING: {"fg": "yellow"},
    logging.ERROR: {"fg": "red"},
    logging.CRITICAL: {"fg": "red", "bold": True},
}


class ClickHandler(logging.Handler):
    """Logging handler that writes records through click.

    Warnings and errors go to stderr, everything else to stdout.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            style = _LEVEL_STYLES.get(record.levelno, {})
            click.echo(click.style(message, **style), err=record.levelno >= logging.WARNING)
        except Exception:
            self.handleError(record)


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route the package's log records to the terminal.

    Args:
        verbose: Show debug records.
        quiet: Only show warnings and errors.
    """
    package_logger = logging.getLogger("oven")
    for handler in list(package_logger.handlers):
        if isinstance(handler, ClickHandler):
            package_logger.removeHandler(handler)
    handler = ClickHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(handler)
    if verbose:
        package_logger.setLevel(logging.DEBUG)
    elif quiet:
        package_logger.setLevel(logging.WARNING)
    else:
        package_logger.setLevel(logging.INFO)


@click.group()
@click.version_option(version=__version__, prog_name="oven")
def cli():
    """Oven content baking engine."""


@cli.command("bake", context_settings={"ignore_unknown_options": True})
@click.argument("path", required=False, type=click.Path(path_type=Path))
@click.argument("arguments", nargs=-1, type=click.UNPROCESSED)
@click.option("--include-drafts", is_flag=True, help="Render documents marked as drafts")
@click.option("--clean", is_flag=True, help="Empty the output directory first")
@click.option(
    "--continue-on-error",
    is_flag=True,
    help="Leave pages out of the content index instead of failing",
)
@click.option(
    "--no-default-renderers",
    is_flag=True,
    help="Disable the built-in container vocabulary",
)
@click.option(
    "--no-native-containers",
    is_flag=True,
    help="Disable <NameContainer> component wrappers",
)
@click.option("--output", "output_dir", help="Output directory (overrides oven.yaml)")
@click.option(
    "--configuration",
    help="Build configuration of local plugin projects (overrides oven.yaml)",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors")
def bake_command(
    path: Path | None,
    arguments: tuple[str, ...],
    include_drafts: bool,
    clean: bool,
    continue_on_error: bool,
    no_default_renderers: bool,
    no_native_containers: bool,
    output_dir: str | None,
    configuration: str | None,
    verbose: bool,
    quiet: bool,
):
    """Bake the project at PATH (default: current directory).

    Any extra ARGUMENTS are passed to plugins untouched.
    """
    setup_logging(verbose=verbose, quiet=quiet)
    project_root = path if path is not None else Path.cwd()

    options = BakeOptions.from_config(
        project_root,
        include_drafts=True if include_drafts else None,
        clean=True if clean else None,
        continue_on_error=True if continue_on_error else None,
        use_default_renderers=False if no_default_renderers else None,
        use_native_containers=False if no_native_containers else None,
        output_dir=output_dir,
        configuration=configuration,
        arguments=list(arguments),
    )

    try:
        result = bake(options)
    except BakeError as exc:
        click.echo(click.style("Bake failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None

    if not quiet:
        click.echo(
            f"Baked {len(result.written)} page(s), skipped {len(result.skipped)}."
        )
    click.echo(click.style("Build completed successfully.", fg="green"))


def main():
    """Entry point for the CLI application."""
    cli()
