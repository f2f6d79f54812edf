"""Configuration management CLI commands."""

from __future__ import annotations

from pathlib import Path

import click
from rich.markup import escape
from rich.table import Table

from dbharness.cli.utils import console, load_cli_source
from dbharness.config import create_sample_config, get_privileged_connection_params, has_required_params
from dbharness.config.resolver import get_connection_params
from dbharness.exceptions import MissingExtensionError


@click.group(name="config")
def config_group() -> None:
    """Configuration management."""
    pass


@config_group.command(name="sample")
@click.argument("output_file", type=click.Path())
def sample_command(output_file: str) -> None:
    """Create sample configuration file."""
    try:
        output_path = Path(output_file)
        if output_path.exists():
            click.confirm(f"File '{output_file}' exists. Overwrite?", abort=True)

        create_sample_config(output_path)
        console.print(f"[green]Sample configuration created: {output_file}[/green]")
        console.print("\n[yellow]Next steps:[/yellow]")
        console.print("1. Edit the db_* and tmpdb_* keys to match your database server")
        console.print("2. Set DB_PASSWORD / TMPDB_PASSWORD or edit the defaults")
        console.print(f"3. Check: [cyan]dbharness --config {output_file} config params[/cyan]")
    except click.Abort:
        raise
    except Exception as exc:
        console.print(f"[red]Error creating sample configuration: {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc


@config_group.command(name="params")
@click.option("--privileged", is_flag=True, help="Show the privileged (create/drop) connection parameters")
@click.option("--show-secrets", is_flag=True, help="Do not mask passwords")
@click.pass_context
def params_command(ctx: click.Context, privileged: bool, show_secrets: bool) -> None:
    """Show resolved connection parameters."""
    source = load_cli_source(ctx)

    try:
        if privileged:
            params = get_privileged_connection_params(source)
            title = "Privileged connection parameters"
        else:
            params = get_connection_params(source)
            title = "Test connection parameters"
    except MissingExtensionError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise SystemExit(1) from exc

    if not has_required_params(source):
        console.print("[yellow]No db_driver configured, using the in-memory SQLite fallback[/yellow]\n")

    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Parameter", style="cyan")
    table.add_column("Value", style="green")

    for key, value in params.to_dict(mask_secrets=not show_secrets).items():
        if key == "driver_options":
            for option, option_value in value.items():
                table.add_row(f"driver_option_{option}", escape(str(option_value)))
        else:
            table.add_row(key, escape(str(value)))

    console.print(table)
