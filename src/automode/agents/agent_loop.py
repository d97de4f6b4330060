"""Agent loop: the state machine that drives model turns and tool dispatch."""

from __future__ import annotations

import logging
from typing import Protocol

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from automode.agents.cancellation import CancellationToken
from automode.agents.completion import CompletionDetector
from automode.agents.conversation import ConversationState
from automode.agents.model_client import ModelClient
from automode.errors import (
    BackendUnavailableError,
    Cancelled,
    IterationLimitExceeded,
    MalformedResponseError,
)
from automode.models.agent_schemas import (
    AbortReason,
    AgentResult,
    AgentState,
    ErrorKind,
    ModelResponse,
    ToolCallRequest,
    ToolResult,
)
from automode.prompts.prompt_layer import (
    budget_warning,
    continuation_prompt,
    malformed_response_prompt,
)
from automode.tools import ToolRegistry
from automode.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)


class StepCallback(Protocol):
    def on_step_start(self, step: int, max_steps: int) -> None: ...
    def on_thinking(self, text: str) -> None: ...
    def on_tool_call(self, request: ToolCallRequest) -> None: ...
    def on_tool_result(self, result: ToolResult) -> None: ...
    def on_warning(self, text: str) -> None: ...
    def on_finish(self, result: AgentResult) -> None: ...


class NullCallback:
    def on_step_start(self, step: int, max_steps: int) -> None: ...
    def on_thinking(self, text: str) -> None: ...
    def on_tool_call(self, request: ToolCallRequest) -> None: ...
    def on_tool_result(self, result: ToolResult) -> None: ...
    def on_warning(self, text: str) -> None: ...
    def on_finish(self, result: AgentResult) -> None: ...


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, BackendUnavailableError) and exc.retryable


def build_retrying(
    max_attempts: int = 3,
    min_wait: float = 2.0,
    max_wait: float = 30.0,
    cancel_token: CancellationToken | None = None,
) -> Retrying:
    """Default backend retry policy: exponential backoff on retryable backend errors.

    With a ``cancel_token`` the backoff sleep wakes up as soon as the token
    is cancelled and no further attempt is made.
    """
    stop = stop_after_attempt(max_attempts)
    kwargs = {}
    if cancel_token is not None:
        stop = stop | stop_when_event_set(cancel_token.event)
        kwargs["sleep"] = cancel_token.wait
    return Retrying(
        stop=stop,
        wait=wait_exponential(min=min_wait, max=max_wait),
        retry=retry_if_exception(_is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
        **kwargs,
    )


class AgentLoop:
    """Runs one task to ``completed`` or ``aborted``.

    Each iteration makes exactly one model call. A reply with tool calls is
    recorded as an assistant turn, every call is dispatched through the
    executor and each result is appended, in request order, before the model
    is asked again. A reply without tool calls completes the run when it
    carries the completion marker; otherwise the model is nudged to continue.

    The iteration limit, cancellation, exhausted backend retries and repeated
    malformed replies all end the run in ``aborted`` with the conversation
    left intact for inspection.
    """

    def __init__(
        self,
        model: ModelClient,
        registry: ToolRegistry,
        executor: ToolExecutor | None = None,
        max_iterations: int = 25,
        completion: CompletionDetector | None = None,
        retrying: Retrying | None = None,
        max_malformed_retries: int = 1,
        warn_remaining: int = 0,
        callback: StepCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.model = model
        self.registry = registry
        self.executor = executor or ToolExecutor(registry)
        self.max_iterations = max_iterations
        self.completion = completion or CompletionDetector()
        self.cancel_token = cancel_token or CancellationToken()
        self.retrying = retrying or build_retrying(cancel_token=self.cancel_token)
        self.max_malformed_retries = max_malformed_retries
        self.warn_remaining = warn_remaining
        self.cb: StepCallback = callback or NullCallback()
        self.state = AgentState.AWAITING_MODEL
        self.conversation: ConversationState | None = None
        self._tool_calls_made = 0

    def cancel(self) -> None:
        """Request cancellation; honoured before the next model call or tool dispatch."""
        if not self.cancel_token.cancelled:
            logger.info("Cancellation requested")
        self.cancel_token.cancel()

    def run(self, task: str) -> AgentResult:
        conversation = ConversationState(task)
        self.conversation = conversation
        self.state = AgentState.AWAITING_MODEL
        self._tool_calls_made = 0
        malformed_streak = 0

        while True:
            if self.cancel_token.cancelled:
                return self._abort(AbortReason.CANCELLED, "cancelled by user")
            if conversation.iterations >= self.max_iterations:
                logger.warning("Agent hit max iterations (%d)", self.max_iterations)
                return self._abort(
                    AbortReason.ITERATION_LIMIT_EXCEEDED,
                    str(IterationLimitExceeded(self.max_iterations)),
                )

            step = conversation.next_iteration()
            self.cb.on_step_start(step, self.max_iterations)
            self._inject_budget_warning(step)

            try:
                response = self._with_unique_call_ids(self._send())
            except Cancelled:
                return self._abort(AbortReason.CANCELLED, "cancelled by user")
            except BackendUnavailableError as e:
                if self.cancel_token.cancelled:
                    # retry wait cut short by cancellation
                    return self._abort(AbortReason.CANCELLED, "cancelled by user")
                logger.error("Backend unavailable, giving up: %s", e)
                return self._abort(AbortReason.BACKEND_UNAVAILABLE, str(e))
            except MalformedResponseError as e:
                malformed_streak += 1
                logger.warning("Malformed model response (%d in a row): %s", malformed_streak, e)
                if malformed_streak > self.max_malformed_retries:
                    return self._abort(AbortReason.MALFORMED_RESPONSE, str(e))
                self.cb.on_warning(f"Malformed model response: {e}")
                conversation.append_user(malformed_response_prompt(str(e)))
                continue
            malformed_streak = 0

            if response.tool_calls:
                self._dispatch(response)
                continue

            conversation.append_assistant(response.text or "")
            conversation.verify()
            if self.completion.is_complete(response):
                return self._complete()
            logger.info("No tool calls and no completion marker; asking the model to continue")
            conversation.append_user(continuation_prompt(self.completion.marker))

    # ---- transitions ----

    def _send(self) -> ModelResponse:
        conversation = self.conversation

        def attempt() -> ModelResponse:
            if self.cancel_token.cancelled:
                raise Cancelled("cancelled before the model call")
            return self.model.send(conversation.snapshot(), self.registry.specs())

        try:
            return self.retrying(attempt)
        except RetryError as e:
            # Retrying built without reraise=True wraps the last failure
            raise BackendUnavailableError(str(e.last_attempt.exception())) from e

    def _with_unique_call_ids(self, response: ModelResponse) -> ModelResponse:
        """Reject repeated ids within a reply and re-key ids used by earlier turns.

        Some backends restart their id sequence every turn, so a reused id is
        renamed to ``<id>_<n>`` with the smallest free ``n``.
        """
        ids = [call.id for call in response.tool_calls]
        if len(set(ids)) != len(ids):
            raise MalformedResponseError("reply uses the same tool call id more than once")
        conversation = self.conversation
        if not any(conversation.call_id_used(call_id) for call_id in ids):
            return response

        taken = set(ids)
        calls = []
        for call in response.tool_calls:
            if conversation.call_id_used(call.id):
                n = 1
                while conversation.call_id_used(f"{call.id}_{n}") or f"{call.id}_{n}" in taken:
                    n += 1
                new_id = f"{call.id}_{n}"
                logger.warning("Tool call id '%s' was already used; renamed to '%s'", call.id, new_id)
                taken.add(new_id)
                call = call.model_copy(update={"id": new_id})
            calls.append(call)
        return response.model_copy(update={"tool_calls": tuple(calls)})

    def _dispatch(self, response: ModelResponse) -> None:
        conversation = self.conversation
        conversation.append_assistant(response.text or "", response.tool_calls)
        if response.text:
            self.cb.on_thinking(response.text)

        self.state = AgentState.DISPATCHING_TOOLS
        for request in response.tool_calls:
            self.cb.on_tool_call(request)
        results = self.executor.execute_batch(response.tool_calls, self.cancel_token)
        for result in results:
            conversation.append_tool_result(result)
            self.cb.on_tool_result(result)
            if result.error_kind is not ErrorKind.CANCELLED:
                self._tool_calls_made += 1
        conversation.verify()
        self.state = AgentState.AWAITING_MODEL

    def _inject_budget_warning(self, step: int) -> None:
        remaining = self.max_iterations - step + 1
        if self.warn_remaining and remaining == self.warn_remaining and step > 1:
            text = budget_warning(remaining, self.completion.marker)
            self.conversation.append_user(text)
            self.cb.on_warning(text)
            logger.info("Injected iteration budget warning (%d remaining)", remaining)

    def _complete(self) -> AgentResult:
        self.conversation.complete()
        self.state = AgentState.COMPLETED
        output = self.completion.strip(self.conversation.last_assistant_text())
        return self._finish(output=output)

    def _abort(self, reason: AbortReason, detail: str) -> AgentResult:
        self.conversation.abort(reason)
        self.state = AgentState.ABORTED
        return self._finish(reason=reason, detail=detail, output=self.conversation.last_assistant_text())

    def _finish(self, output: str, reason: AbortReason | None = None, detail: str = "") -> AgentResult:
        conversation = self.conversation
        result = AgentResult(
            state=self.state,
            reason=reason,
            detail=detail,
            output=output,
            iterations=conversation.iterations,
            tool_calls_made=self._tool_calls_made,
            turns=conversation.snapshot(),
        )
        logger.info(
            "Run finished: %s%s after %d iterations",
            self.state.value,
            f" ({reason.value})" if reason else "",
            conversation.iterations,
        )
        self.cb.on_finish(result)
        return result
