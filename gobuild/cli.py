"""Thin CLI wrapper for gobuild.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from gobuild import __version__
from gobuild.config import get_settings, print_settings_json

app = typer.Typer(
    name="gobuild",
    help="gobuild - run build jobs inside disposable containers",
    add_completion=False,
)
console = Console()

LOG_FORMAT = "%(asctime)s %(message)s"
LOG_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"


def configure_logging(level: str) -> logging.Logger:
    """Attach a timestamped stderr handler to the package logger."""
    log = logging.getLogger("gobuild")
    for handler in list(log.handlers):
        log.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    log.addHandler(handler)
    log.setLevel(level)
    return log


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"gobuild version {__version__}")
        raise typer.Exit()


@app.command()
def main(
    config_file: Annotated[
        Path | None,
        typer.Argument(
            metavar="CONFIG_FILE",
            help="Build configuration file (default: .gobuild.yaml)",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option("--show-config", help="Show effective settings as JSON and exit"),
    ] = False,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Run every job of a build configuration, one container at a time."""
    from gobuild.service import run_build_file

    settings = get_settings()
    if show_config:
        console.print(print_settings_json(settings))
        return

    log = configure_logging(settings.log_level)
    result = run_build_file(config_file, settings=settings, log=log)
    if not result.success:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
