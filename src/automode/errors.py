"""Exception hierarchy for the agent loop and tool dispatch."""

from __future__ import annotations


class AutomodeError(Exception):
    """Base class for all automode errors."""


# ---- Tool-level (always recovered into a failure ToolResult) ----


class DuplicateToolError(AutomodeError):
    def __init__(self, name: str) -> None:
        super().__init__(f"tool '{name}' is already registered")
        self.name = name


class UnknownToolError(AutomodeError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown tool '{name}'")
        self.name = name


class InvalidArgumentsError(AutomodeError):
    """Raised when a tool call payload does not match the declared schema."""

    def __init__(self, tool_name: str, problems: list[str]) -> None:
        self.tool_name = tool_name
        self.problems = list(problems)
        super().__init__(f"invalid arguments for '{tool_name}': " + "; ".join(self.problems))


class ToolRuntimeError(AutomodeError):
    """Raised by a tool implementation to report an expected failure."""


# ---- Model-level ----


class BackendUnavailableError(AutomodeError):
    """Network, auth or rate-limit failure talking to the LLM backend.

    ``retryable`` is False for rejections that will not change on retry
    (bad request, unknown model).
    """

    def __init__(self, message: str, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class MalformedResponseError(AutomodeError):
    """The backend answered, but the tool-call structure could not be parsed."""


# ---- Terminal ----


class IterationLimitExceeded(AutomodeError):
    def __init__(self, limit: int) -> None:
        super().__init__(f"iteration limit of {limit} reached without completion")
        self.limit = limit


class Cancelled(AutomodeError):
    """The run was cancelled from outside."""


# ---- Conversation invariants (programming errors, propagate) ----


class ConversationError(AutomodeError):
    """A turn would violate the conversation's referential invariant."""


class ConversationClosedError(ConversationError):
    """The conversation reached a terminal state and no longer accepts turns."""


# ---- Startup ----


class ConfigurationError(AutomodeError):
    """Required settings are missing, so the agent cannot be built."""
