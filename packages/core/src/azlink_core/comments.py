"""Status comments on the pull request.

Each validation category owns at most one comment per PR. The comment is
found again on later runs by its hidden HTML marker (or, for comments written
before markers existed, by a legacy text fragment) and is edited in place:
failures rewrite it with the current list, and once the condition clears it
is flipped to a success message. Comments are never deleted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from github import GithubException
from rich.console import Console

from azlink_core.gh.pull_request import get_comments, is_permission_error
from azlink_core.models import CommitRecord

console = Console()
logger = logging.getLogger(__name__)

PERMISSION_MESSAGE = (
    "Unable to comment on pull request. The GITHUB_TOKEN does not have sufficient permissions. "
    'Please add "pull-requests: write" permission to your workflow. '
    "See: https://docs.github.com/en/actions/security-guides/automatic-token-authentication"
    "#permissions-for-the-github_token"
)


class CommentPermissionError(Exception):
    """The token may read the PR but not write comments on it."""

    def __init__(self, message: str = PERMISSION_MESSAGE):
        super().__init__(message)


@dataclass(frozen=True)
class CommentCategory:
    name: str
    marker: str
    # Wording used by earlier releases, before (or alongside) the marker.
    # Append new entries; never edit old ones or existing threads stop matching.
    legacy_fragments: tuple[str, ...] = ()

    def matches(self, body: str | None) -> bool:
        body = body or ""
        return self.marker in body or any(fragment in body for fragment in self.legacy_fragments)


PR_NOT_LINKED_TEXT = ":x: This pull request is not linked to a work item."

COMMITS_NOT_LINKED = CommentCategory(
    name="commits-not-linked",
    marker="<!-- AZDO-VALIDATOR: COMMITS-NOT-LINKED -->",
    legacy_fragments=(":x: There is at least one commit in pull request",),
)
INVALID_WORK_ITEMS = CommentCategory(
    name="invalid-work-items",
    marker="<!-- AZDO-VALIDATOR: INVALID-WORK-ITEMS -->",
)
PR_NOT_LINKED = CommentCategory(
    name="pr-not-linked",
    marker="<!-- AZDO-VALIDATOR: PR-NOT-LINKED -->",
    legacy_fragments=(
        PR_NOT_LINKED_TEXT,
        ":white_check_mark: This pull request is now linked to a work item.",
    ),
)

COMMENT_MARKERS = {c.name: c.marker for c in (COMMITS_NOT_LINKED, INVALID_WORK_ITEMS, PR_NOT_LINKED)}


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


def _details(summary: str, items: list[str]) -> str:
    return f"\n\n<details>\n<summary>{summary}</summary>\n" + "\n".join(items) + "</details>"


def render_footer(run_url: str, now: datetime) -> str:
    timestamp = now.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    return (
        "\n<details>\n<summary>Workflow run details</summary>\n\n"
        f"[View workflow run]({run_url}) - _Last ran: {timestamp} UTC_\n</details>"
    )


def render_commits_not_linked(commits: list[CommitRecord], pull_number: int, repo_url: str) -> str:
    count = len(commits)
    reference = ""
    details = ""
    if count == 1:
        reference = f" ([`{commits[0].short_sha}`]({repo_url}/commit/{commits[0].sha}))"
    else:
        items = [f"- [`{c.short_sha}`]({repo_url}/commit/{c.sha}) - {c.subject}" for c in commits]
        details = _details(f"View all {count} commits missing work items", items)

    s = _plural(count, "", "s")
    return (
        f"{COMMITS_NOT_LINKED.marker}\n"
        f":x: There {_plural(count, 'is', 'are')} {count} commit{s}{reference} in pull request #{pull_number} "
        f"not linked to {_plural(count, 'a work item', 'work items')}. "
        f"Please amend the commit message{s} to include a work item reference (`AB#xxx`) "
        "and re-run the failed job to continue. Any new commits to the pull request will also re-run the job."
        f"{details}"
    )


def render_invalid_work_items(
    work_item_ids: list[str],
    sources: dict[str, CommitRecord | None],
    pull_number: int,
    repo_url: str,
) -> str:
    count = len(work_item_ids)
    reference = ""
    details = ""
    if count == 1:
        reference = f" (`AB#{work_item_ids[0]}`)"
    else:
        items = []
        for work_item_id in work_item_ids:
            commit = sources.get(work_item_id)
            if commit is not None:
                items.append(f"- `AB#{work_item_id}` (commit [`{commit.short_sha}`]({repo_url}/commit/{commit.sha}))")
            else:
                items.append(f"- `AB#{work_item_id}` (in PR title/body)")
        details = _details(f"View all {count} invalid work items", items)

    s = _plural(count, "", "s")
    return (
        f"{INVALID_WORK_ITEMS.marker}\n"
        f":x: There {_plural(count, 'is', 'are')} {count} work item{s}{reference} in pull request #{pull_number} "
        f"that {_plural(count, 'does', 'do')} not exist in Azure DevOps. "
        f"Please verify the work item{s} and update the commit message{s} or PR title/body."
        f"{details}"
    )


def render_pr_not_linked() -> str:
    return (
        f"{PR_NOT_LINKED.marker}\n{PR_NOT_LINKED_TEXT} Please update the title or body to include a work item "
        "and re-run the failed job to continue. Any new commits to the pull request will also re-run the job."
    )


COMMITS_LINKED_BODY = (
    f"{COMMITS_NOT_LINKED.marker}\n:white_check_mark: All commits in this pull request are now linked to work items."
)
WORK_ITEMS_VALID_BODY = (
    f"{INVALID_WORK_ITEMS.marker}\n"
    ":white_check_mark: All work items referenced in this pull request now exist in Azure DevOps."
)
PR_LINKED_BODY = f"{PR_NOT_LINKED.marker}\n:white_check_mark: This pull request is now linked to a work item."


class CommentReconciler:
    """Creates, updates and resolves the per-category comments on one PR."""

    def __init__(self, pull_request, run_url: str, clock: Callable[[], datetime] | None = None):
        self._pr = pull_request
        self._run_url = run_url
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def find(self, category: CommentCategory):
        for comment in get_comments(self._pr):
            if category.matches(comment.body):
                return comment
        return None

    def _with_footer(self, body: str) -> str:
        return body + render_footer(self._run_url, self._clock())

    def add_or_update(self, category: CommentCategory, body: str) -> None:
        """Write body to the category's comment, creating it on first use.

        Raises CommentPermissionError when the token cannot write comments.
        """
        full_body = self._with_footer(body)
        try:
            existing = self.find(category)
            if existing is not None:
                console.print(f"Comment already exists: {existing.id}. Updating it.")
                existing.edit(full_body)
            else:
                console.print("Comment does not exist. Posting a new comment.")
                self._pr.create_issue_comment(full_body)
        except GithubException as e:
            if is_permission_error(e):
                raise CommentPermissionError() from e
            raise

    def resolve(self, category: CommentCategory, success_body: str) -> bool:
        """Flip an existing category comment to success_body.

        Never creates a comment; returns True when one was updated.
        """
        existing = self.find(category)
        if existing is None:
            return False
        console.print(f"Found existing {category.name} comment: {existing.id}. Updating it to success.")
        try:
            existing.edit(self._with_footer(success_body))
        except GithubException as e:
            if is_permission_error(e):
                raise CommentPermissionError() from e
            raise
        return True
