"""Main CLI entry point for dbharness."""

from __future__ import annotations

import click

from dbharness import __version__
from dbharness.cli.commands import register_commands
from dbharness.cli.commands.configuration import config_group
from dbharness.cli.commands.database import db_group
from dbharness.cli.utils import configure_logging, console
from dbharness.config.models import EnvironmentSettings


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.option("--config", type=click.Path(exists=True), help="Path to configuration file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, version: bool, config: str, verbose: bool) -> None:
    """dbharness - test database provisioning for integration tests."""
    ctx.ensure_object(dict)
    ctx.obj.update({"config": config, "verbose": verbose})

    settings = EnvironmentSettings()
    configure_logging("DEBUG" if verbose or settings.debug else settings.log_level)

    if version:
        console.print(f"dbharness v{__version__}")
        return

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


COMMAND_REGISTRY = [
    db_group,
    config_group,
]

register_commands(cli, COMMAND_REGISTRY)


if __name__ == "__main__":
    cli()
