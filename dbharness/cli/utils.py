"""Shared CLI utilities for dbharness."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from dbharness.config.parser import load_source
from dbharness.exceptions import ConfigurationError

# Single console instance reused across CLI modules
console = Console()


def configure_logging(level: str) -> None:
    """Route dbharness log records through rich at the given level name."""
    package_logger = logging.getLogger("dbharness")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.addHandler(RichHandler(console=console, show_path=False))
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def load_cli_source(ctx: click.Context) -> Dict[str, Any]:
    """Load the configuration source named by the root ``--config`` option.

    Exits with status 1 on configuration errors.
    """
    config_path: Optional[str] = ctx.obj.get("config") if ctx.obj else None
    try:
        return load_source(config_path)
    except ConfigurationError as exc:
        console.print(f"[red]Configuration Error: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc


def print_exception(message: str, error: Exception, verbose: bool = False) -> None:
    """Render a formatted exception message.

    Args:
        message: Friendly context message to display before the exception.
        error: Original exception instance.
        verbose: When True, render the full traceback for debugging.
    """
    console.print(f"[red]{message}: {escape(str(error))}[/red]")
    if verbose:
        import traceback

        console.print(traceback.format_exc(), style="dim", markup=False, highlight=False)
