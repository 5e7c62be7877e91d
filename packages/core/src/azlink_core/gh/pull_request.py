from __future__ import annotations

from github import Auth, Github, GithubException

from azlink_core.models import CommitRecord

PERMISSION_DENIED_TEXT = "Resource not accessible by integration"


def get_repo(repo_name: str, token: str, base_url: str = "https://api.github.com"):
    return Github(auth=Auth.Token(token), base_url=base_url).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_commits(pr) -> list[CommitRecord]:
    """Return every commit on the PR in order (PyGithub follows pagination)."""
    return [CommitRecord(sha=c.sha, message=c.commit.message or "") for c in pr.get_commits()]


def get_comments(pr) -> list:
    return list(pr.get_issue_comments())


def is_permission_error(exc: Exception) -> bool:
    """True for the 403 GitHub returns when the token lacks write access."""
    if not isinstance(exc, GithubException) or exc.status != 403:
        return False
    return PERMISSION_DENIED_TEXT in f"{exc.data} {exc}"
