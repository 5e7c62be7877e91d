"""validate command: run the work item checks against the current pull request."""

from __future__ import annotations

import click
from rich.console import Console

from azlink_core.config import load_config, load_context
from azlink_core.validator import run_action

console = Console()


def _escape_workflow_command(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def emit_failures(failures: list[str]) -> None:
    """Surface each failure as a GitHub Actions error annotation."""
    for message in failures:
        click.echo(f"::error::{_escape_workflow_command(message)}")


@click.command("validate")
@click.option("--check-commits/--no-check-commits", default=None, help="Require AB#<id> in every commit message.")
@click.option(
    "--check-pull-request/--no-check-pull-request", default=None, help="Require AB#<id> in the PR title or body."
)
@click.option(
    "--fail-if-missing-workitem-commit-link/--no-fail-if-missing-workitem-commit-link",
    "fail_if_missing_workitem_commit_link",
    default=None,
    help="Fail when any commit lacks a work item reference.",
)
@click.option(
    "--link-commits-to-pull-request/--no-link-commits-to-pull-request",
    default=None,
    help="Link work items found in commits to the PR in Azure DevOps.",
)
@click.option(
    "--validate-work-item-exists/--no-validate-work-item-exists",
    default=None,
    help="Check that referenced work items exist in Azure DevOps.",
)
@click.option("--comment-on-failure/--no-comment-on-failure", default=None, help="Maintain status comments on the PR.")
@click.pass_context
def validate_cmd(ctx, **overrides):
    """Validate the pull request described by the GitHub Actions environment.

    Inputs are read from INPUT_* variables (as set by the runner), then from
    the configuration file, and finally from the flags above.

    \b
    Required environment variables:
      GITHUB_EVENT_PATH    pull_request event payload (set by Actions)
      GITHUB_REPOSITORY    owner/name of the repository (set by Actions)
      GITHUB_TOKEN         or the github-token input
    """
    from azlink_cli.auth import resolve_github_token

    config_path = ctx.obj.get("config_path", ".azlink.yml") if ctx.obj else ".azlink.yml"
    config = load_config(config_path, cli_overrides=overrides)

    token = resolve_github_token(config.get("github_token"))
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set the github-token input, GITHUB_TOKEN, or run `gh auth login`."
        )
    config["github_token"] = token

    context = load_context()
    result = run_action(config, context)

    if result.linked_work_items:
        console.print(f"[green]Linked work item(s): {', '.join(result.linked_work_items)}[/green]")

    if result.passed:
        console.print(f"[green]Pull request #{result.pull_number}: all work item checks passed.[/green]")
        return

    emit_failures(result.failures)
    ctx.exit(1)
