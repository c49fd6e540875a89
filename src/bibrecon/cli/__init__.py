# ABOUTME: CLI package for bibrecon, built on Click.
# ABOUTME: Defines the root command group, wires logging, and registers subcommands.

import logging

import click
from rich.logging import RichHandler

from bibrecon.cli.commands import config_cmd, preview_cmd, reconcile_cmd, search_cmd


@click.group()
@click.version_option(package_name="bibrecon")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """bibrecon - reconcile book metadata from several providers."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(rich_tracebacks=True)],
        )


cli.add_command(reconcile_cmd.reconcile)
cli.add_command(preview_cmd.preview)
cli.add_command(config_cmd.config)
cli.add_command(search_cmd.search)
