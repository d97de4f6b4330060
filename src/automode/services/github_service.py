from __future__ import annotations

import logging

from github import Github, GithubException
from github.GithubRetry import GithubRetry

from automode.config import settings
from automode.errors import ToolRuntimeError

logger = logging.getLogger(__name__)


def _make_github_client(token: str) -> Github:
    """Create a Github client with longer retry backoff for flaky connections."""
    retry = GithubRetry(
        total=6,
        backoff_factor=2,
        backoff_max=60,
    )
    return Github(token, retry=retry, timeout=30)


class GitHubService:
    def __init__(self, github_client: Github | None = None) -> None:
        self.gh = github_client or _make_github_client(settings.github_token)

    def get_commit_changes(self, owner: str, repo: str, sha: str) -> str:
        """Per-file additions, deletions and patch of one commit."""
        logger.info("Fetching commit %s from %s/%s", sha, owner, repo)
        try:
            commit = self.gh.get_repo(f"{owner}/{repo}").get_commit(sha)
            files = list(commit.files)
        except GithubException as e:
            raise ToolRuntimeError(f"GitHub request failed ({e.status}): {e.data}") from e

        if not files:
            return f"Commit {sha} has no file changes"
        lines = [
            f"File: {f.filename}, Additions: {f.additions}, Deletions: {f.deletions}, "
            f"Patch: {f.patch or ''}"
            for f in files
        ]
        return "\n".join(lines)
