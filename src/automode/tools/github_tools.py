from __future__ import annotations

from automode.services.github_service import GitHubService
from automode.tools import Param, ParamType, Tool, ToolSpec


def create_github_tools(service: GitHubService) -> list[Tool]:
    def fetch_commit_changes(args: dict) -> str:
        return service.get_commit_changes(args["owner"], args["repo"], args["sha"])

    return [
        Tool(
            ToolSpec(
                name="fetch_commit_changes",
                description=(
                    "Fetch the file changes (additions, deletions, patch) of a commit "
                    "in a GitHub repository."
                ),
                parameters={
                    "owner": Param(ParamType.STRING, "Repository owner"),
                    "repo": Param(ParamType.STRING, "Repository name"),
                    "sha": Param(ParamType.STRING, "Commit SHA"),
                },
                read_only=True,
            ),
            fetch_commit_changes,
        )
    ]
