"""Database provisioning CLI commands."""

from __future__ import annotations

from typing import Optional

import click
import yaml
from rich.markup import escape
from rich.table import Table

from dbharness.cli.utils import console, load_cli_source, print_exception
from dbharness.config import has_required_params
from dbharness.db.platforms import PlatformFactory
from dbharness.exceptions import DBHarnessError
from dbharness.harness import TestHarness
from dbharness.query import generate_result_set_query


@click.group(name="db")
@click.pass_context
def db_group(ctx: click.Context) -> None:
    """Test database management."""
    pass


@db_group.command(name="provision")
@click.pass_context
def provision_command(ctx: click.Context) -> None:
    """Drop and recreate the configured test database."""
    source = load_cli_source(ctx)

    if not has_required_params(source):
        console.print("[yellow]No db_driver configured; nothing to provision[/yellow]")
        return

    harness = TestHarness(source)
    try:
        harness.provisioner.ensure_initialized(harness.source)
    except DBHarnessError as exc:
        print_exception("Provisioning failed", exc, ctx.obj.get("verbose", False))
        raise SystemExit(1) from exc

    params = harness.get_connection_params()
    console.print(f"[green]Test database provisioned using {params.driver}[/green]")


@db_group.command(name="tables")
@click.pass_context
def tables_command(ctx: click.Context) -> None:
    """List tables in the test database."""
    harness = TestHarness(load_cli_source(ctx))

    try:
        with harness.get_connection() as connection:
            tables_list = connection.create_schema_manager().list_table_names()
    except DBHarnessError as exc:
        print_exception("Error", exc, ctx.obj.get("verbose", False))
        raise SystemExit(1) from exc

    if not tables_list:
        console.print("[yellow]No tables found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=4)
    table.add_column("Table Name", style="cyan")
    for i, table_name in enumerate(sorted(tables_list), start=1):
        table.add_row(str(i), escape(table_name))
    console.print(table)
    console.print(f"\n[dim]Total: {len(tables_list)} table(s)[/dim]")


@db_group.command(name="query")
@click.argument("rows_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--driver", help="Render for this SQLAlchemy driver instead of the configured one (not with --execute)")
@click.option("--execute", "execute", is_flag=True, help="Run the query on the test connection")
@click.pass_context
def query_command(ctx: click.Context, rows_file: str, driver: Optional[str], execute: bool) -> None:
    """Build a result-set query from a YAML/JSON list of rows."""
    if driver and execute:
        raise click.UsageError("--driver cannot be combined with --execute")

    try:
        with open(rows_file, "r", encoding="utf-8") as file:
            rows = yaml.safe_load(file)
    except yaml.YAMLError as exc:
        console.print(f"[red]Invalid rows file '{escape(rows_file)}': {escape(str(exc))}[/red]")
        raise SystemExit(1) from exc

    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        console.print(f"[red]Rows file must contain a list of mappings: {escape(rows_file)}[/red]")
        raise SystemExit(1)

    try:
        if driver:
            console.print(
                generate_result_set_query(rows, PlatformFactory.for_driver(driver)),
                soft_wrap=True, markup=False, highlight=False,
            )
            return

        harness = TestHarness(load_cli_source(ctx))
        with harness.get_connection() as connection:
            query = generate_result_set_query(rows, connection.get_database_platform())
            console.print(query, soft_wrap=True, markup=False, highlight=False)

            if execute:
                result = connection.execute_query(query)
                table = Table(show_header=True, header_style="bold magenta")
                for column in result.columns:
                    table.add_column(column, style="cyan")
                for record in result.to_records():
                    table.add_row(*(escape(str(record[column])) for column in result.columns))
                console.print(table)
    except DBHarnessError as exc:
        print_exception("Error", exc, ctx.obj.get("verbose", False))
        raise SystemExit(1) from exc
