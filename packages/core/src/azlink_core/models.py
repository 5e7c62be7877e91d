"""Shared dataclasses passed between the GitHub layer, the validators and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CommitRecord:
    sha: str
    message: str = ""

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def subject(self) -> str:
        """First line of the commit message, used for display only."""
        return self.message.split("\n")[0]


@dataclass
class CommitCheckResult:
    # work item id -> commit it was first seen in (None = PR title/body)
    work_item_sources: dict[str, CommitRecord | None] = field(default_factory=dict)
    invalid_work_items: list[str] = field(default_factory=list)
    has_blocking_failure: bool = False


@dataclass
class RunResult:
    """Outcome of one invocation.

    ``failures`` mirrors the action's terminal "setFailed" signal: every
    classified failure appends one human-readable message, and the run
    passes only when the list stays empty.
    """

    pull_number: int | None = None
    failures: list[str] = field(default_factory=list)
    invalid_work_items: list[str] = field(default_factory=list)
    work_item_sources: dict[str, CommitRecord | None] = field(default_factory=dict)
    linked_work_items: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failures

    def fail(self, message: str) -> None:
        self.failures.append(message)
