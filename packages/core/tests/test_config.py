"""Tests for configuration and GitHub Actions context loading."""

import json

from azlink_core.config import ActionContext, get_input, load_config, load_context, parse_bool


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"), env={})
    assert config["check_commits"] is True
    assert config["check_pull_request"] is False
    assert config["fail_if_missing_workitem_commit_link"] is True
    assert config["link_commits_to_pull_request"] is False
    assert config["comment_on_failure"] is True
    assert config["validate_work_item_exists"] is False
    assert config["github_token"] == ""


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".azlink.yml"
    cfg.write_text("check-pull-request: true\nazure-devops-organization: contoso\n")
    config = load_config(config_path=str(cfg), env={})
    assert config["check_pull_request"] is True
    assert config["azure_devops_organization"] == "contoso"


def test_action_inputs_override_config_file(tmp_path):
    cfg = tmp_path / ".azlink.yml"
    cfg.write_text("check_commits: true\n")
    env = {"INPUT_CHECK-COMMITS": "false", "INPUT_AZURE-DEVOPS-TOKEN": " pat "}
    config = load_config(config_path=str(cfg), env=env)
    assert config["check_commits"] is False
    assert config["azure_devops_token"] == "pat"


def test_empty_input_does_not_override(tmp_path):
    cfg = tmp_path / ".azlink.yml"
    cfg.write_text("validate_work_item_exists: true\n")
    config = load_config(config_path=str(cfg), env={"INPUT_VALIDATE-WORK-ITEM-EXISTS": ""})
    assert config["validate_work_item_exists"] is True


def test_cli_overrides_inputs(tmp_path):
    env = {"INPUT_CHECK-PULL-REQUEST": "true"}
    config = load_config(
        config_path=str(tmp_path / "none.yml"), cli_overrides={"check_pull_request": False}, env=env
    )
    assert config["check_pull_request"] is False


def test_none_cli_overrides_ignored(tmp_path):
    env = {"INPUT_CHECK-PULL-REQUEST": "true"}
    config = load_config(
        config_path=str(tmp_path / "none.yml"), cli_overrides={"check_pull_request": None}, env=env
    )
    assert config["check_pull_request"] is True


def test_github_token_falls_back_to_env(tmp_path):
    config = load_config(config_path=str(tmp_path / "none.yml"), env={"GITHUB_TOKEN": "ghs_env"})
    assert config["github_token"] == "ghs_env"


def test_github_token_input_wins_over_env(tmp_path):
    env = {"GITHUB_TOKEN": "ghs_env", "INPUT_GITHUB-TOKEN": "ghs_input"}
    config = load_config(config_path=str(tmp_path / "none.yml"), env=env)
    assert config["github_token"] == "ghs_input"


def test_get_input_missing_is_empty():
    assert get_input("check-commits", env={}) == ""


class TestParseBool:
    def test_true_strings(self):
        assert parse_bool("true") is True
        assert parse_bool(" TRUE ") is True

    def test_other_strings_false(self):
        assert parse_bool("yes") is False
        assert parse_bool("") is False

    def test_bool_passthrough(self):
        assert parse_bool(True) is True
        assert parse_bool(False) is False


class TestLoadContext:
    def test_reads_pull_request_payload(self, tmp_path):
        event = tmp_path / "event.json"
        event.write_text(
            json.dumps(
                {
                    "pull_request": {"number": 42},
                    "repository": {"full_name": "octo/repo", "html_url": "https://github.com/octo/repo"},
                }
            )
        )
        ctx = load_context(
            env={"GITHUB_EVENT_PATH": str(event), "GITHUB_RUN_ID": "987", "GITHUB_REPOSITORY": "octo/repo"}
        )
        assert ctx.pull_number == 42
        assert ctx.repository == "octo/repo"
        assert ctx.run_url == "https://github.com/octo/repo/actions/runs/987"
        assert ctx.server_url == "https://github.com"
        assert ctx.api_url == "https://api.github.com"

    def test_push_event_has_no_pull_number(self, tmp_path):
        event = tmp_path / "event.json"
        event.write_text(json.dumps({"ref": "refs/heads/main"}))
        ctx = load_context(env={"GITHUB_EVENT_PATH": str(event), "GITHUB_REPOSITORY": "octo/repo"})
        assert ctx.pull_number is None
        assert ctx.repo_html_url == "https://github.com/octo/repo"

    def test_missing_payload_is_not_an_error(self, tmp_path):
        ctx = load_context(env={"GITHUB_EVENT_PATH": str(tmp_path / "missing.json")})
        assert ctx == ActionContext()

    def test_enterprise_server_urls(self):
        env = {
            "GITHUB_SERVER_URL": "https://ghe.example.com",
            "GITHUB_API_URL": "https://ghe.example.com/api/v3",
            "GITHUB_REPOSITORY": "octo/repo",
        }
        ctx = load_context(env=env)
        assert ctx.server_url == "https://ghe.example.com"
        assert ctx.api_url == "https://ghe.example.com/api/v3"
        assert ctx.repo_html_url == "https://ghe.example.com/octo/repo"
