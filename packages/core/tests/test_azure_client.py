"""Tests for the Azure DevOps wrapper."""

import json
from unittest.mock import MagicMock

import pytest
import responses

from azlink_core.azure.client import (
    DATA_PROVIDER_URL,
    GITHUB_LINK_DATA_PROVIDER,
    AzureDevOpsClient,
    AzureDevOpsConnectionError,
    InternalRepoIdError,
    LinkError,
    LinkStatus,
    MissingAuthorizationError,
)

ORG = "test-org"
URL = DATA_PROVIDER_URL.format(org=ORG)
REPO_ID = "12345678-1234-1234-1234-123456789abc"


def _provider_payload(repo_id=REPO_ID):
    return {"data": {GITHUB_LINK_DATA_PROVIDER: {"resolvedLinkItems": [{"repoInternalId": repo_id}]}}}


def _client(wit=None):
    return AzureDevOpsClient(ORG, "azdo-pat", wit_client=wit or MagicMock())


class TestWorkItemExists:
    def test_true_when_fetched(self):
        wit = MagicMock()
        assert _client(wit).work_item_exists("12345") is True
        wit.get_work_item.assert_called_once_with(id=12345)

    def test_false_on_not_found(self):
        wit = MagicMock()
        error = Exception("Work item not found")
        error.status_code = 404
        wit.get_work_item.side_effect = error
        assert _client(wit).work_item_exists("99999") is False
        wit.get_work_item.assert_called_once_with(id=99999)

    def test_false_on_network_error(self):
        wit = MagicMock()
        wit.get_work_item.side_effect = ConnectionError("Network error")
        assert _client(wit).work_item_exists("12345") is False

    def test_false_when_connection_fails(self, mocker):
        mocker.patch("azlink_core.azure.client.Connection", side_effect=RuntimeError("no route"))
        client = AzureDevOpsClient(ORG, "azdo-pat")
        assert client.work_item_exists("1") is False


class TestResolveInternalRepoId:
    @responses.activate
    def test_sends_expected_request(self):
        responses.add(responses.POST, URL, json=_provider_payload())
        repo_id = _client().resolve_internal_repo_id("12345", "https://github.com/owner/repo/pull/42")

        assert repo_id == REPO_ID
        body = json.loads(responses.calls[0].request.body)
        assert body["context"]["properties"]["workItemId"] == "12345"
        assert body["context"]["properties"]["urls"] == ["https://github.com/owner/repo/pull/42"]
        assert body["contributionIds"] == ["ms.vss-work-web.github-link-data-provider"]
        assert responses.calls[0].request.headers["Authorization"].startswith("Basic ")

    @responses.activate
    def test_401_is_missing_authorization(self):
        responses.add(responses.POST, URL, status=401, json={})
        with pytest.raises(MissingAuthorizationError, match="full access for the PAT"):
            _client().resolve_internal_repo_id("1", "u")

    @responses.activate
    def test_null_repo_id(self):
        responses.add(responses.POST, URL, json=_provider_payload(repo_id=None))
        with pytest.raises(InternalRepoIdError, match="couldn't be resolved"):
            _client().resolve_internal_repo_id("1", "u")

    @responses.activate
    def test_missing_provider_data(self):
        responses.add(responses.POST, URL, json={"data": {}})
        with pytest.raises(InternalRepoIdError):
            _client().resolve_internal_repo_id("1", "u")


class TestLinkPullRequest:
    @responses.activate
    def test_adds_artifact_link(self):
        responses.add(responses.POST, URL, json=_provider_payload())
        wit = MagicMock()

        status = _client(wit).link_pull_request("12345", "owner/repo", 42, "https://github.com")

        assert status is LinkStatus.LINKED
        kwargs = wit.update_work_item.call_args.kwargs
        assert kwargs["id"] == 12345
        assert kwargs["expand"] == "Relations"
        patch = kwargs["document"][0]
        assert patch.op == "add"
        assert patch.path == "/relations/-"
        assert patch.value["rel"] == "ArtifactLink"
        assert patch.value["url"] == f"vstfs:///GitHub/PullRequest/{REPO_ID}%2F42"
        assert patch.value["attributes"] == {"name": "GitHub Pull Request", "comment": "Pull Request 42"}

    @responses.activate
    def test_already_exists_is_not_an_error(self):
        responses.add(responses.POST, URL, json=_provider_payload())
        wit = MagicMock()
        wit.update_work_item.side_effect = Exception("The relation already exists")

        status = _client(wit).link_pull_request("12345", "owner/repo", 42, "https://github.com")

        assert status is LinkStatus.ALREADY_LINKED

    @responses.activate
    def test_other_update_errors_raise_link_error(self):
        responses.add(responses.POST, URL, json=_provider_payload())
        wit = MagicMock()
        wit.update_work_item.side_effect = Exception("TF401232: Work item 12345 does not exist")

        with pytest.raises(LinkError, match="TF401232"):
            _client(wit).link_pull_request("12345", "owner/repo", 42, "https://github.com")

    @responses.activate
    def test_unresolved_repo_id_raises_link_error(self):
        responses.add(responses.POST, URL, json=_provider_payload(repo_id=""))
        wit = MagicMock()
        with pytest.raises(LinkError):
            _client(wit).link_pull_request("12345", "owner/repo", 42, "https://github.com")
        wit.update_work_item.assert_not_called()

    def test_connection_failure(self, mocker):
        mocker.patch("azlink_core.azure.client.Connection", side_effect=RuntimeError("Connection failed"))
        client = AzureDevOpsClient(ORG, "azdo-pat")
        with pytest.raises(AzureDevOpsConnectionError, match="Failed connection to dev ops!"):
            client.link_pull_request("12345", "owner/repo", 42, "https://github.com")
