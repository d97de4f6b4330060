"""Tool plugin system for the agentic loop."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from automode.errors import DuplicateToolError, UnknownToolError
from automode.tools.schema import Param, ParamType, ToolSpec

logger = logging.getLogger(__name__)

__all__ = ["Param", "ParamType", "Tool", "ToolRegistry", "ToolSpec"]


@dataclass(frozen=True)
class Tool:
    spec: ToolSpec
    execute: Callable[[dict[str, Any]], Any]

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def description(self) -> str:
        return self.spec.description

    @property
    def read_only(self) -> bool:
        return self.spec.read_only


class ToolRegistry:
    """Name-unique tool table. Iteration order is registration order."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        self._tools[tool.name] = tool
        logger.debug("Registered tool %s (read_only=%s)", tool.name, tool.read_only)

    def register_many(self, tools: list[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def lookup(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def list_all(self) -> list[Tool]:
        return list(self._tools.values())

    def specs(self) -> list[ToolSpec]:
        return [tool.spec for tool in self._tools.values()]

    def to_openai_tools(self) -> list[dict[str, Any]]:
        return [spec.to_openai_tool() for spec in self.specs()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
