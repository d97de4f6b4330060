from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from github import GithubException

from automode.errors import ToolRuntimeError
from automode.services.github_service import GitHubService
from automode.tools.github_tools import create_github_tools


def _service(files=None, error=None) -> tuple[GitHubService, MagicMock]:
    gh = MagicMock()
    if error is not None:
        gh.get_repo.side_effect = error
    else:
        gh.get_repo.return_value.get_commit.return_value = SimpleNamespace(files=files or [])
    return GitHubService(github_client=gh), gh


def test_commit_changes_formatting():
    files = [
        SimpleNamespace(filename="a.py", additions=3, deletions=1, patch="@@ -1 +1 @@"),
        SimpleNamespace(filename="logo.png", additions=0, deletions=0, patch=None),
    ]
    service, gh = _service(files)
    tool = create_github_tools(service)[0]
    result = tool.execute({"owner": "octo", "repo": "demo", "sha": "abc123"})

    gh.get_repo.assert_called_once_with("octo/demo")
    gh.get_repo.return_value.get_commit.assert_called_once_with("abc123")
    assert result.splitlines() == [
        "File: a.py, Additions: 3, Deletions: 1, Patch: @@ -1 +1 @@",
        "File: logo.png, Additions: 0, Deletions: 0, Patch: ",
    ]


def test_empty_commit():
    service, _ = _service([])
    assert service.get_commit_changes("o", "r", "s") == "Commit s has no file changes"


def test_github_error_becomes_tool_error():
    service, _ = _service(error=GithubException(404, {"message": "Not Found"}, None))
    with pytest.raises(ToolRuntimeError, match="GitHub request failed \\(404\\)"):
        service.get_commit_changes("o", "r", "s")


def test_tool_declaration():
    tool = create_github_tools(MagicMock())[0]
    assert tool.name == "fetch_commit_changes"
    assert tool.read_only
    assert list(tool.spec.parameters) == ["owner", "repo", "sha"]
