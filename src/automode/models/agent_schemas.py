"""Models for the agentic loop."""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ErrorKind(str, Enum):
    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"
    TOOL_RUNTIME_FAILURE = "tool_runtime_failure"
    CANCELLED = "cancelled"


class AgentState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOLS = "dispatching_tools"
    COMPLETED = "completed"
    ABORTED = "aborted"


class AbortReason(str, Enum):
    ITERATION_LIMIT_EXCEEDED = "iteration_limit_exceeded"
    CANCELLED = "cancelled"
    BACKEND_UNAVAILABLE = "backend_unavailable"
    MALFORMED_RESPONSE = "malformed_response"


class ToolCallRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Outcome of one tool call: success with output, or failure with a kind and message."""

    model_config = ConfigDict(frozen=True)

    call_id: str
    tool_name: str
    success: bool
    output: Any = None
    error_kind: ErrorKind | None = None
    error: str | None = None

    @model_validator(mode="after")
    def _check_outcome(self) -> ToolResult:
        if not self.success and self.error_kind is None:
            raise ValueError("a failed ToolResult needs an error_kind")
        if self.success and self.error_kind is not None:
            raise ValueError("a successful ToolResult cannot carry an error_kind")
        return self

    @classmethod
    def ok(cls, request: ToolCallRequest, output: Any) -> ToolResult:
        return cls(call_id=request.id, tool_name=request.name, success=True, output=output)

    @classmethod
    def failure(cls, request: ToolCallRequest, kind: ErrorKind, message: str) -> ToolResult:
        return cls(
            call_id=request.id,
            tool_name=request.name,
            success=False,
            error_kind=kind,
            error=message,
        )

    def to_content(self) -> str:
        """Render the result as the text fed back to the model."""
        if not self.success:
            return f"Error ({self.error_kind.value}): {self.error}"
        if self.output is None:
            return ""
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output, indent=2, default=str)


class Turn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCallRequest, ...] = ()
    tool_call_id: str | None = None
    result: ToolResult | None = None

    @model_validator(mode="after")
    def _check_shape(self) -> Turn:
        if self.tool_calls and self.role is not Role.ASSISTANT:
            raise ValueError("only assistant turns may carry tool calls")
        if self.role is Role.TOOL:
            if self.tool_call_id is None or self.result is None:
                raise ValueError("tool turns need a tool_call_id and a result")
            if self.result.call_id != self.tool_call_id:
                raise ValueError("tool turn id does not match its result")
        elif self.tool_call_id is not None or self.result is not None:
            raise ValueError("only tool turns may carry a tool_call_id or result")
        return self


class ModelResponse(BaseModel):
    """Parsed model reply: text, tool calls, or both."""

    model_config = ConfigDict(frozen=True)

    text: str | None = None
    tool_calls: tuple[ToolCallRequest, ...] = ()

    @model_validator(mode="after")
    def _not_empty(self) -> ModelResponse:
        if not self.text and not self.tool_calls:
            raise ValueError("model response has neither text nor tool calls")
        return self


class AgentResult(BaseModel):
    state: AgentState
    reason: AbortReason | None = None
    detail: str = ""
    output: str
    iterations: int
    tool_calls_made: int
    turns: tuple[Turn, ...] = ()

    @property
    def completed(self) -> bool:
        return self.state is AgentState.COMPLETED

    @property
    def exit_code(self) -> int:
        return 0 if self.completed else 1
