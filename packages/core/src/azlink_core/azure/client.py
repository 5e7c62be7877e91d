"""Thin wrapper around the two Azure DevOps operations azlink needs.

* ``work_item_exists``: is ``AB#<id>`` a real work item?
* ``link_pull_request``: add a "GitHub Pull Request" artifact link from a
  work item to the PR, the same relation the Azure Boards GitHub app creates.

The artifact URI embeds an internal repository id, resolved through the web
UI's data-provider endpoint with ``requests``.
"""

from __future__ import annotations

import enum
import logging

import requests
from azure.devops.connection import Connection
from azure.devops.v7_1.work_item_tracking.models import JsonPatchOperation
from msrest.authentication import BasicAuthentication

logger = logging.getLogger(__name__)

REL_ARTIFACT_LINK = "ArtifactLink"
REL_NAME_GITHUB_PR = "GitHub Pull Request"
GITHUB_LINK_DATA_PROVIDER = "ms.vss-work-web.github-link-data-provider"
DATA_PROVIDER_URL = "https://dev.azure.com/{org}/_apis/Contribution/dataProviders/query?api-version=7.1-preview.1"

CONNECTION_FAILED_MESSAGE = "Failed connection to dev ops!"
LINK_FAILED_MESSAGE = "Failed to retrieve internalRepoId!"


class AzureDevOpsConnectionError(Exception):
    """The work item tracking client could not be created."""

    def __init__(self, message: str = CONNECTION_FAILED_MESSAGE):
        super().__init__(message)


class LinkError(Exception):
    """Linking one work item to the PR failed after the connection was opened."""


class MissingAuthorizationError(LinkError):
    pass


class InternalRepoIdError(LinkError):
    pass


class LinkStatus(enum.Enum):
    LINKED = "linked"
    ALREADY_LINKED = "already-linked"


class AzureDevOpsClient:
    def __init__(self, organization: str, token: str, wit_client=None, timeout: int = 30):
        self.organization = organization
        self._token = token
        self._wit_client = wit_client
        self._timeout = timeout

    @property
    def organization_url(self) -> str:
        return f"https://dev.azure.com/{self.organization}"

    def _wit(self):
        if self._wit_client is None:
            try:
                connection = Connection(base_url=self.organization_url, creds=BasicAuthentication("", self._token))
                self._wit_client = connection.clients.get_work_item_tracking_client()
            except Exception as e:
                logger.debug("Connection to %s failed: %s", self.organization_url, e)
                raise AzureDevOpsConnectionError() from e
        return self._wit_client

    def work_item_exists(self, work_item_id: str) -> bool:
        """Return True when the work item can be fetched.

        Any failure (404, auth, network, connection) counts as "does not exist".
        """
        try:
            self._wit().get_work_item(id=int(work_item_id))
            return True
        except Exception as e:
            logger.debug("Work item %s could not be fetched: %s", work_item_id, e)
            return False

    def resolve_internal_repo_id(self, work_item_id: str, pull_request_url: str) -> str:
        response = requests.post(
            DATA_PROVIDER_URL.format(org=self.organization),
            auth=("", self._token),
            headers={"Accept": "application/json"},
            json={
                "context": {"properties": {"workItemId": work_item_id, "urls": [pull_request_url]}},
                "contributionIds": [GITHUB_LINK_DATA_PROVIDER],
            },
            timeout=self._timeout,
        )
        if response.status_code == 401:
            raise MissingAuthorizationError(
                "Missing authorization (Linking PRs to cards requires full access for the PAT)."
            )

        provider = (response.json().get("data") or {}).get(GITHUB_LINK_DATA_PROVIDER) or {}
        items = provider.get("resolvedLinkItems") or [{}]
        internal_repo_id = items[0].get("repoInternalId")
        if not internal_repo_id:
            raise InternalRepoIdError("Internal repo url couldn't be resolved.")
        return internal_repo_id

    def link_pull_request(self, work_item_id: str, repo: str, pull_number: int, server_url: str) -> LinkStatus:
        """Add a GitHub PR artifact link to the work item.

        Raises AzureDevOpsConnectionError when no client can be opened and
        LinkError for any other failure. A relation that already exists is
        reported as LinkStatus.ALREADY_LINKED.
        """
        wit = self._wit()
        pull_request_url = f"{server_url}/{repo}/pull/{pull_number}"

        try:
            internal_repo_id = self.resolve_internal_repo_id(work_item_id, pull_request_url)
            logger.debug("Resolved internal repo id %s for %s", internal_repo_id, repo)
            patch = JsonPatchOperation(
                op="add",
                path="/relations/-",
                value={
                    "rel": REL_ARTIFACT_LINK,
                    "url": f"vstfs:///GitHub/PullRequest/{internal_repo_id}%2F{pull_number}",
                    "attributes": {"name": REL_NAME_GITHUB_PR, "comment": f"Pull Request {pull_number}"},
                },
            )
            try:
                wit.update_work_item(document=[patch], id=int(work_item_id), expand="Relations")
            except Exception as e:
                if "already exists" in str(e):
                    logger.info("Work item %s is already linked to %s", work_item_id, pull_request_url)
                    return LinkStatus.ALREADY_LINKED
                raise
        except LinkError:
            raise
        except Exception as e:
            raise LinkError(str(e)) from e

        return LinkStatus.LINKED
