"""Declared parameter schemas and eager argument validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from automode.errors import InvalidArgumentsError


class ParamType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


def _matches(value: Any, kind: ParamType) -> bool:
    # bool is a subclass of int; never let True pass as a number
    if kind is ParamType.STRING:
        return isinstance(value, str)
    if kind is ParamType.BOOLEAN:
        return isinstance(value, bool)
    if kind is ParamType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if kind is ParamType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind is ParamType.ARRAY:
        return isinstance(value, list)
    return isinstance(value, dict)


@dataclass(frozen=True)
class Param:
    type: ParamType
    description: str = ""
    required: bool = True
    items: ParamType | None = None

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type.value}
        if self.description:
            schema["description"] = self.description
        if self.type is ParamType.ARRAY and self.items is not None:
            schema["items"] = {"type": self.items.value}
        return schema


@dataclass(frozen=True)
class ToolSpec:
    """What the model sees about a tool: name, description and parameters."""

    name: str
    description: str
    parameters: dict[str, Param] = field(default_factory=dict)
    read_only: bool = False

    def to_json_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {name: p.to_json_schema() for name, p in self.parameters.items()},
            "required": [name for name, p in self.parameters.items() if p.required],
        }

    def to_openai_tool(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.to_json_schema(),
            },
        }


def validate_arguments(spec: ToolSpec, arguments: dict[str, Any]) -> None:
    """Check a tool call payload against the spec.

    Collects every problem (missing required fields, type mismatches, unexpected
    fields) and raises a single InvalidArgumentsError listing them.
    """
    problems: list[str] = []
    for name, param in spec.parameters.items():
        if name not in arguments or arguments[name] is None:
            if param.required:
                problems.append(f"missing required field '{name}'")
            continue
        value = arguments[name]
        if not _matches(value, param.type):
            problems.append(
                f"field '{name}' expected {param.type.value}, got {type(value).__name__}"
            )
            continue
        if param.type is ParamType.ARRAY and param.items is not None:
            bad = [i for i, item in enumerate(value) if not _matches(item, param.items)]
            if bad:
                problems.append(
                    f"field '{name}' expected items of type {param.items.value} "
                    f"(bad indexes: {', '.join(map(str, bad))})"
                )
    for name in arguments:
        if name not in spec.parameters:
            problems.append(f"unexpected field '{name}'")
    if problems:
        raise InvalidArgumentsError(spec.name, problems)
