"""Token used to read PR commits and write the AB# status comments.

Inside a workflow the ``github-token`` input (or the runner's GITHUB_TOKEN)
always supplies it. Running ``azlink validate`` from a laptop usually has
neither, so the signed-in GitHub CLI session is borrowed instead.
"""

from __future__ import annotations

import logging
import os
import subprocess
from typing import Mapping

logger = logging.getLogger(__name__)

GH_TOKEN_TIMEOUT = 5


def _gh_session_token() -> str | None:
    try:
        completed = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=GH_TOKEN_TIMEOUT,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if completed.returncode != 0:
        return None
    return completed.stdout.strip() or None


def resolve_github_token(explicit: str | None = None, env: Mapping[str, str] | None = None) -> str | None:
    """Pick the token for comment writes: the configured value, then GITHUB_TOKEN, then ``gh``.

    Returns None when nothing is available; ``validate`` turns that into a usage error.
    """
    env = os.environ if env is None else env
    token = explicit or env.get("GITHUB_TOKEN")
    if token:
        return token

    token = _gh_session_token()
    if token:
        logger.debug("Using the GitHub CLI session token for PR comments.")
    return token
