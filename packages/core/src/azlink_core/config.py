import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict = {
    "check_pull_request": False,
    "check_commits": True,
    "fail_if_missing_workitem_commit_link": True,
    "link_commits_to_pull_request": False,
    "comment_on_failure": True,
    "validate_work_item_exists": False,
    "azure_devops_organization": "",
    "azure_devops_token": "",
    "github_token": "",
}

# config key -> GitHub Actions input name (action.yml)
ACTION_INPUTS: dict[str, str] = {
    "check_pull_request": "check-pull-request",
    "check_commits": "check-commits",
    "fail_if_missing_workitem_commit_link": "fail-if-missing-workitem-commit-link",
    "link_commits_to_pull_request": "link-commits-to-pull-request",
    "azure_devops_token": "azure-devops-token",
    "azure_devops_organization": "azure-devops-organization",
    "github_token": "github-token",
    "comment_on_failure": "comment-on-failure",
    "validate_work_item_exists": "validate-work-item-exists",
}

BOOLEAN_KEYS = frozenset(k for k, v in DEFAULT_CONFIG.items() if isinstance(v, bool))


def _input_env_name(input_name: str) -> str:
    # Mirrors the runner: spaces become underscores, everything is uppercased,
    # hyphens are kept (INPUT_CHECK-COMMITS).
    return "INPUT_" + input_name.replace(" ", "_").upper()


def get_input(name: str, env: Optional[Mapping[str, str]] = None) -> str:
    """Return the trimmed value of an action input, or "" when it is unset."""
    env = os.environ if env is None else env
    return env.get(_input_env_name(name), "").strip()


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def load_config(
    config_path: str = ".azlink.yml",
    cli_overrides: Optional[dict] = None,
    env: Optional[Mapping[str, str]] = None,
) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .azlink.yml in the current directory
      3. GitHub Actions inputs (INPUT_* environment variables)
      4. CLI argument overrides
    """
    env = os.environ if env is None else env
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update({k.replace("-", "_"): v for k, v in file_config.items()})

    for key, input_name in ACTION_INPUTS.items():
        raw = get_input(input_name, env)
        if raw:
            config[key] = raw

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    for key in BOOLEAN_KEYS:
        config[key] = parse_bool(config.get(key, False))

    if not config.get("github_token"):
        config["github_token"] = env.get("GITHUB_TOKEN", "")

    return config


@dataclass(frozen=True)
class ActionContext:
    """The slice of the GitHub Actions runtime a run needs."""

    repository: str = ""
    pull_number: Optional[int] = None
    repo_html_url: str = ""
    run_id: str = ""
    server_url: str = "https://github.com"
    api_url: str = "https://api.github.com"

    @property
    def run_url(self) -> str:
        return f"{self.repo_html_url}/actions/runs/{self.run_id}"


def _read_event_payload(event_path: Optional[str]) -> dict:
    if not event_path:
        return {}
    try:
        with open(event_path, encoding="utf-8") as f:
            return json.load(f) or {}
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read event payload at %s: %s", event_path, e)
        return {}


def load_context(env: Optional[Mapping[str, str]] = None) -> ActionContext:
    """Build an ActionContext from GITHUB_* variables and the event payload.

    A run outside a pull_request event yields a context whose pull_number is None.
    """
    env = os.environ if env is None else env
    payload = _read_event_payload(env.get("GITHUB_EVENT_PATH"))
    server_url = env.get("GITHUB_SERVER_URL") or "https://github.com"
    repository = env.get("GITHUB_REPOSITORY", "")

    pull_request = payload.get("pull_request") or {}
    repo_payload = payload.get("repository") or {}
    repo_html_url = repo_payload.get("html_url") or (f"{server_url}/{repository}" if repository else "")

    return ActionContext(
        repository=repo_payload.get("full_name") or repository,
        pull_number=pull_request.get("number"),
        repo_html_url=repo_html_url,
        run_id=env.get("GITHUB_RUN_ID", ""),
        server_url=server_url,
        api_url=env.get("GITHUB_API_URL") or "https://api.github.com",
    )
