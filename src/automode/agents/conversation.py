"""Single-writer conversation history for one task run."""

from __future__ import annotations

import logging
from typing import Sequence

from automode.errors import ConversationClosedError, ConversationError
from automode.models.agent_schemas import (
    AbortReason,
    Role,
    ToolCallRequest,
    ToolResult,
    Turn,
)

logger = logging.getLogger(__name__)


class ConversationState:
    """Ordered, append-only list of turns plus run bookkeeping.

    Every tool turn must answer a tool call that an earlier assistant turn
    issued and that no other tool turn has answered yet. Appends that would
    break this raise ConversationError. Once the run completes or aborts the
    state is closed and rejects further appends.
    """

    def __init__(self, task: str) -> None:
        self._turns: list[Turn] = []
        self._pending: dict[str, ToolCallRequest] = {}
        self._seen_ids: set[str] = set()
        self.iterations = 0
        self.completed = False
        self.abort_reason: AbortReason | None = None
        self.append_user(task)

    # ---- reads ----

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def snapshot(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def closed(self) -> bool:
        return self.completed or self.abort_reason is not None

    def pending_calls(self) -> list[ToolCallRequest]:
        """Tool calls that have no result yet, in the order they were issued."""
        return list(self._pending.values())

    def call_id_used(self, call_id: str) -> bool:
        return call_id in self._seen_ids

    def last_assistant_text(self) -> str:
        for turn in reversed(self._turns):
            if turn.role is Role.ASSISTANT and turn.content:
                return turn.content
        return ""

    # ---- writes ----

    def _check_open(self) -> None:
        if self.closed:
            raise ConversationClosedError("conversation is closed")

    def append_user(self, content: str) -> Turn:
        self._check_open()
        if self._pending:
            raise ConversationError("cannot add a user turn while tool calls await results")
        turn = Turn(role=Role.USER, content=content)
        self._turns.append(turn)
        return turn

    def append_assistant(
        self, content: str = "", tool_calls: Sequence[ToolCallRequest] = ()
    ) -> Turn:
        self._check_open()
        if self._pending:
            raise ConversationError(
                f"{len(self._pending)} tool call(s) still awaiting results"
            )
        ids = [call.id for call in tool_calls]
        if len(set(ids)) != len(ids):
            raise ConversationError("duplicate tool call id within one turn")
        reused = self._seen_ids.intersection(ids)
        if reused:
            raise ConversationError(f"tool call id(s) already used: {sorted(reused)}")
        turn = Turn(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))
        self._turns.append(turn)
        for call in tool_calls:
            self._pending[call.id] = call
            self._seen_ids.add(call.id)
        return turn

    def append_tool_result(self, result: ToolResult) -> Turn:
        self._check_open()
        call = self._pending.get(result.call_id)
        if call is None:
            raise ConversationError(f"no pending tool call with id '{result.call_id}'")
        next_id = next(iter(self._pending))
        if result.call_id != next_id:
            raise ConversationError(
                f"result for '{result.call_id}' is out of order; expected '{next_id}'"
            )
        del self._pending[result.call_id]
        turn = Turn(
            role=Role.TOOL,
            content=result.to_content(),
            tool_call_id=result.call_id,
            result=result,
        )
        self._turns.append(turn)
        return turn

    def next_iteration(self) -> int:
        self._check_open()
        self.iterations += 1
        return self.iterations

    def complete(self) -> None:
        self._check_open()
        self.completed = True
        logger.debug("Conversation completed after %d iterations", self.iterations)

    def abort(self, reason: AbortReason) -> None:
        self._check_open()
        self.abort_reason = reason
        logger.debug("Conversation aborted (%s) after %d iterations", reason.value, self.iterations)

    # ---- invariants ----

    def verify(self) -> None:
        """Re-check the whole log: every tool turn answers an earlier, unanswered call."""
        open_calls: dict[str, str] = {}
        for index, turn in enumerate(self._turns):
            if turn.role is Role.ASSISTANT:
                for call in turn.tool_calls:
                    open_calls[call.id] = call.name
            elif turn.role is Role.TOOL:
                if turn.tool_call_id not in open_calls:
                    raise ConversationError(
                        f"turn {index} answers unknown or already answered call "
                        f"'{turn.tool_call_id}'"
                    )
                del open_calls[turn.tool_call_id]
