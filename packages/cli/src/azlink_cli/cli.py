"""CLI entry point for azlink.

Commands:
  validate: check a pull request for AB#<id> work item links (the GitHub Action)
  link    : link one pull request to one Azure DevOps work item
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from azlink_cli.commands.link import link_cmd
from azlink_cli.commands.validate import validate_cmd

console = Console()


@click.group()
@click.version_option(
    version=importlib.metadata.version("azlink"),
    prog_name="azlink",
)
@click.option(
    "--config",
    "config_path",
    default=".azlink.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="AZLINK_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Validate and link Azure DevOps work items on GitHub pull requests."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(validate_cmd)
main.add_command(link_cmd)
