"""link command: link a single pull request to a single work item."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from azlink_core.azure.client import (
    LINK_FAILED_MESSAGE,
    AzureDevOpsClient,
    AzureDevOpsConnectionError,
    LinkError,
    LinkStatus,
)
from azlink_core.config import load_config

console = Console()


@click.command("link")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option("--work-item", "work_item_id", required=True, help="Azure DevOps work item id (digits, no AB#).")
@click.option(
    "--server-url",
    default="https://github.com",
    show_default=True,
    envvar="GITHUB_SERVER_URL",
    help="GitHub server the pull request lives on.",
)
@click.option("--organization", default=None, help="Azure DevOps organization. Overrides config file.")
@click.pass_context
def link_cmd(ctx, repo: str, pr_number: int, work_item_id: str, server_url: str, organization: str | None):
    """Add a GitHub pull request artifact link to an Azure DevOps work item.

    \b
    Required configuration:
      azure-devops-organization   (or --organization)
      azure-devops-token          full-access PAT
    """
    config_path = ctx.obj.get("config_path", ".azlink.yml") if ctx.obj else ".azlink.yml"
    config = load_config(config_path, cli_overrides={"azure_devops_organization": organization})

    if not config["azure_devops_organization"] or not config["azure_devops_token"]:
        raise click.UsageError("Both azure-devops-organization and azure-devops-token must be configured.")

    work_item_id = work_item_id.upper().removeprefix("AB#")
    if not work_item_id.isdigit():
        raise click.BadParameter("must be a numeric work item id", param_hint="--work-item")

    client = AzureDevOpsClient(config["azure_devops_organization"], config["azure_devops_token"])
    console.print(f"Linking work item {work_item_id} to {repo}#{pr_number} ...")
    try:
        status = client.link_pull_request(work_item_id, repo, pr_number, server_url)
    except AzureDevOpsConnectionError as e:
        console.print(f"[red]{e}[/red]")
        ctx.exit(1)
    except LinkError as e:
        console.print(f"[red]... failed! {escape(str(e))}[/red]")
        console.print(f"[red]{LINK_FAILED_MESSAGE}[/red]")
        ctx.exit(1)

    if status is LinkStatus.ALREADY_LINKED:
        console.print("[yellow]... (already exists) ...[/yellow]")
    console.print("[green]... process complete![/green]")
