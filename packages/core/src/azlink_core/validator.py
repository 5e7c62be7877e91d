"""Work item validation pipeline for a single pull request."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.markup import escape

from azlink_core.azure.client import (
    LINK_FAILED_MESSAGE,
    AzureDevOpsClient,
    AzureDevOpsConnectionError,
    LinkError,
    LinkStatus,
)
from azlink_core.comments import (
    COMMITS_LINKED_BODY,
    COMMITS_NOT_LINKED,
    INVALID_WORK_ITEMS,
    PR_LINKED_BODY,
    PR_NOT_LINKED,
    WORK_ITEMS_VALID_BODY,
    CommentPermissionError,
    CommentReconciler,
    render_commits_not_linked,
    render_invalid_work_items,
    render_pr_not_linked,
)
from azlink_core.config import ActionContext
from azlink_core.gh.pull_request import get_commits, get_pull, get_repo
from azlink_core.models import CommitCheckResult, CommitRecord, RunResult
from azlink_core.utils.workitems import extract_work_item_ids

console = Console()
logger = logging.getLogger(__name__)

NOT_A_PULL_REQUEST_MESSAGE = "This action can only be run on pull requests"


def _is_are(count: int) -> str:
    return "is" if count == 1 else "are"


def _s(count: int) -> str:
    return "" if count == 1 else "s"


def _can_validate(config: dict) -> bool:
    return bool(
        config.get("validate_work_item_exists")
        and config.get("azure_devops_organization")
        and config.get("azure_devops_token")
    )


def _write_comment(result: RunResult, action, *args) -> None:
    """Run a reconciler call, turning a permission denial into a run failure."""
    try:
        action(*args)
    except CommentPermissionError as e:
        logger.error("%s", e)
        result.fail(str(e))


def find_missing_work_items(azure: AzureDevOpsClient, work_item_ids: list[str]) -> list[str]:
    """Return the ids that Azure DevOps does not know about, in input order."""
    missing = []
    for work_item_id in work_item_ids:
        if not azure.work_item_exists(work_item_id):
            missing.append(work_item_id)
    return missing


def _report_missing(missing: list[str]) -> None:
    count = len(missing)
    console.print(
        f"[red]Pull request contains {'an ' if count == 1 else ''}invalid work item{_s(count)}: "
        f"{', '.join(missing)}. "
        f"{'This work item does' if count == 1 else 'These work items do'} not exist in Azure DevOps "
        "-- failing operation.[/red]"
    )


def link_work_items(
    azure: AzureDevOpsClient,
    work_item_ids: list[str],
    context: ActionContext,
    pull_number: int,
    result: RunResult,
) -> None:
    """Link each work item to the PR once.

    A connection failure ends linking for the run; any other link failure
    only affects that work item.
    """
    for work_item_id in work_item_ids:
        console.print(f"Linking work item {work_item_id} to pull request {pull_number}...")
        try:
            status = azure.link_pull_request(work_item_id, context.repository, pull_number, context.server_url)
        except AzureDevOpsConnectionError as e:
            console.print(f"  [red]... failed! {escape(str(e.__cause__ or e))}[/red]")
            result.fail(str(e))
            return
        except LinkError as e:
            console.print(f"  [red]... failed! {escape(str(e))}[/red]")
            result.fail(LINK_FAILED_MESSAGE)
            continue

        if status is LinkStatus.ALREADY_LINKED:
            console.print("  ... (already exists) ...")
        else:
            console.print("  ... success!")
        result.linked_work_items.append(work_item_id)


def check_commits(
    commits: list[CommitRecord],
    pull_number: int,
    config: dict,
    context: ActionContext,
    reconciler: CommentReconciler,
    azure: AzureDevOpsClient,
    result: RunResult,
) -> CommitCheckResult:
    """Classify every commit as linked or unlinked and act on the outcome.

    Unlinked commits block the rest of the check when
    fail_if_missing_workitem_commit_link is set. Otherwise the work items
    found are optionally validated and then linked to the PR. Invalid work
    items are returned rather than reported so the caller can merge them with
    those from the PR title/body into one comment.
    """
    check = CommitCheckResult()
    unlinked: list[CommitRecord] = []

    for commit in commits:
        console.print(f"Validating new commit: {commit.sha} - {escape(commit.message)}")
        ids = extract_work_item_ids(commit.message)
        if not ids:
            unlinked.append(commit)
            continue
        for work_item_id in ids:
            check.work_item_sources.setdefault(work_item_id, commit)

    if unlinked and config["fail_if_missing_workitem_commit_link"]:
        count = len(unlinked)
        console.print(
            f"\n\n[red]Pull request contains invalid commit: {unlinked[0].sha}. This commit lacks an `AB#xxx` "
            "in the message, in the expected format: `AB#xxx` -- failing operation.[/red]"
        )
        summary = (
            f"There {_is_are(count)} {count} commit{_s(count)} in pull request #{pull_number} not linked to work items"
        )
        logger.error("Commit(s) not linked to work items: %s", summary)

        if config["comment_on_failure"]:
            body = render_commits_not_linked(unlinked, pull_number, context.repo_html_url)
            _write_comment(result, reconciler.add_or_update, COMMITS_NOT_LINKED, body)

        result.fail(summary)
        check.has_blocking_failure = True
        return check

    if config["comment_on_failure"]:
        _write_comment(result, reconciler.resolve, COMMITS_NOT_LINKED, COMMITS_LINKED_BODY)

    work_item_ids = list(check.work_item_sources)

    if _can_validate(config) and work_item_ids:
        missing = find_missing_work_items(azure, work_item_ids)
        if missing:
            _report_missing(missing)
            check.invalid_work_items = missing
            return check

    if config["link_commits_to_pull_request"] and work_item_ids:
        link_work_items(azure, work_item_ids, context, pull_number, result)

    return check


def check_pull_request(
    title: str | None,
    body: str | None,
    pull_number: int,
    config: dict,
    reconciler: CommentReconciler,
    azure: AzureDevOpsClient,
    work_item_sources: dict[str, CommitRecord | None],
    result: RunResult,
) -> list[str]:
    """Require a work item in the PR title or body; return those that do not exist.

    Ids first seen here are added to work_item_sources with no commit.
    """
    work_item_ids = extract_work_item_ids(f"{title or ''} {body or ''}")

    if not work_item_ids:
        console.print("PR not linked to a work item")
        logger.error(
            "Pull Request not linked to work item(s): The pull request #%d is not linked to any work item(s)",
            pull_number,
        )
        if config["comment_on_failure"]:
            _write_comment(result, reconciler.add_or_update, PR_NOT_LINKED, render_pr_not_linked())
        result.fail(f"The pull request #{pull_number} is not linked to any work item(s)")
        return []

    console.print("PR linked to work item")
    _write_comment(result, reconciler.resolve, PR_NOT_LINKED, PR_LINKED_BODY)

    if not _can_validate(config):
        return []

    for work_item_id in work_item_ids:
        console.print(f"PR title/body contains work item: {work_item_id}")
        work_item_sources.setdefault(work_item_id, None)

    missing = find_missing_work_items(azure, work_item_ids)
    if missing:
        _report_missing(missing)
    return missing


def report_invalid_work_items(
    invalid: list[str],
    pull_number: int,
    config: dict,
    context: ActionContext,
    reconciler: CommentReconciler,
    work_item_sources: dict[str, CommitRecord | None],
    result: RunResult,
    blocked: bool = False,
) -> None:
    count = len(invalid)
    if count:
        if config["comment_on_failure"]:
            body = render_invalid_work_items(invalid, work_item_sources, pull_number, context.repo_html_url)
            _write_comment(result, reconciler.add_or_update, INVALID_WORK_ITEMS, body)
        summary = (
            f"There {_is_are(count)} {count} work item{_s(count)} that "
            f"{'does' if count == 1 else 'do'} not exist in Azure DevOps"
        )
        logger.error("Invalid work item(s): %s", summary)
        result.fail(summary)
    elif config["comment_on_failure"] and _can_validate(config) and not blocked:
        # A blocked commit check never looked the ids up.
        _write_comment(result, reconciler.resolve, INVALID_WORK_ITEMS, WORK_ITEMS_VALID_BODY)


def validate_pull_request(
    pr,
    config: dict,
    context: ActionContext,
    reconciler: CommentReconciler,
    azure: AzureDevOpsClient,
    result: RunResult,
) -> None:
    pull_number = pr.number
    work_item_sources: dict[str, CommitRecord | None] = {}
    invalid_from_commits: list[str] = []
    invalid_from_pr: list[str] = []
    blocked = False

    if config["check_commits"]:
        commit_check = check_commits(
            get_commits(pr), pull_number, config, context, reconciler, azure, result
        )
        work_item_sources = commit_check.work_item_sources
        invalid_from_commits = commit_check.invalid_work_items
        blocked = commit_check.has_blocking_failure

    if config["check_pull_request"]:
        invalid_from_pr = check_pull_request(
            pr.title, pr.body, pull_number, config, reconciler, azure, work_item_sources, result
        )

    # Ordered union: commit-sourced ids first, so their commit attribution wins.
    invalid = list(dict.fromkeys(invalid_from_commits + invalid_from_pr))
    result.invalid_work_items = invalid
    result.work_item_sources = work_item_sources

    report_invalid_work_items(
        invalid, pull_number, config, context, reconciler, work_item_sources, result, blocked=blocked
    )


def run_action(
    config: dict,
    context: ActionContext,
    repo_obj=None,
    azure_client: AzureDevOpsClient | None = None,
    reconciler: CommentReconciler | None = None,
) -> RunResult:
    """Run every enabled check against the PR in context and return the outcome.

    Never raises: classified failures are collected in RunResult.failures and
    anything unexpected is reported as "Action failed with error: ...".
    """
    result = RunResult(pull_number=context.pull_number)

    if not context.pull_number:
        result.fail(NOT_A_PULL_REQUEST_MESSAGE)
        return result

    try:
        repo = (
            repo_obj
            if repo_obj is not None
            else get_repo(context.repository, token=config["github_token"], base_url=context.api_url)
        )
        pr = get_pull(repo, context.pull_number)
        if reconciler is None:
            reconciler = CommentReconciler(pr, context.run_url)
        if azure_client is None:
            azure_client = AzureDevOpsClient(config["azure_devops_organization"], config["azure_devops_token"])

        validate_pull_request(pr, config, context, reconciler, azure_client, result)
    except Exception as e:
        logger.debug("Unhandled error during validation", exc_info=True)
        result.fail(f"Action failed with error: {e}")

    return result
