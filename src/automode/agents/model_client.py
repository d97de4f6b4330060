"""Boundary between the agent loop and the LLM backend."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol, Sequence

import openai
from pydantic import ValidationError

from automode.errors import BackendUnavailableError, MalformedResponseError
from automode.models.agent_schemas import ModelResponse, Role, ToolCallRequest, Turn
from automode.services.llm_service import LLMService
from automode.tools.schema import ToolSpec

logger = logging.getLogger(__name__)

_RETRYABLE_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.AuthenticationError,
    openai.PermissionDeniedError,
    openai.InternalServerError,
)


class ModelClient(Protocol):
    def send(self, conversation: Sequence[Turn], tools: Sequence[ToolSpec]) -> ModelResponse: ...


def turns_to_messages(conversation: Sequence[Turn], system_prompt: str = "") -> list[dict]:
    """Serialize turns to OpenAI chat messages, system prompt first."""
    messages: list[dict] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    for turn in conversation:
        if turn.role is Role.USER:
            messages.append({"role": "user", "content": turn.content})
        elif turn.role is Role.ASSISTANT:
            message: dict[str, Any] = {"role": "assistant", "content": turn.content or None}
            if turn.tool_calls:
                message["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(call.arguments),
                        },
                    }
                    for call in turn.tool_calls
                ]
            messages.append(message)
        else:
            messages.append(
                {"role": "tool", "tool_call_id": turn.tool_call_id, "content": turn.content}
            )
    return messages


def _parse_arguments(raw: Any, name: str) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise MalformedResponseError(f"arguments for '{name}' are not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise MalformedResponseError(
            f"arguments for '{name}' must be a JSON object, got {type(parsed).__name__}"
        )
    return parsed


def parse_completion(response: Any, id_prefix: str = "call") -> ModelResponse:
    """Turn an OpenAI chat completion into a ModelResponse."""
    choices = getattr(response, "choices", None)
    if not choices:
        raise MalformedResponseError("response has no choices")
    message = choices[0].message

    calls: list[ToolCallRequest] = []
    seen: set[str] = set()
    for index, tool_call in enumerate(message.tool_calls or []):
        function = getattr(tool_call, "function", None)
        name = getattr(function, "name", None)
        if not name:
            raise MalformedResponseError(f"tool call #{index} has no function name")
        call_id = tool_call.id or f"{id_prefix}_{index}"
        if call_id in seen:
            raise MalformedResponseError(f"tool call id '{call_id}' appears twice in one reply")
        seen.add(call_id)
        calls.append(
            ToolCallRequest(
                id=call_id,
                name=name,
                arguments=_parse_arguments(function.arguments, name),
            )
        )

    try:
        return ModelResponse(text=message.content or None, tool_calls=tuple(calls))
    except ValidationError as e:
        raise MalformedResponseError("response has neither text nor tool calls") from e


class OpenAIModelClient:
    """ModelClient for any OpenAI-compatible chat completions endpoint."""

    def __init__(self, llm: LLMService, system_prompt: str = "") -> None:
        self.llm = llm
        self.system_prompt = system_prompt

    def send(self, conversation: Sequence[Turn], tools: Sequence[ToolSpec]) -> ModelResponse:
        messages = turns_to_messages(conversation, self.system_prompt)
        try:
            response = self.llm.chat(
                messages, [spec.to_openai_tool() for spec in tools]
            )
        except _RETRYABLE_ERRORS as e:
            logger.warning("Backend unavailable: %s", e)
            raise BackendUnavailableError(str(e)) from e
        except openai.APIError as e:
            logger.error("Backend rejected the request: %s", e)
            raise BackendUnavailableError(str(e), retryable=False) from e
        return parse_completion(response, id_prefix=f"call_{len(conversation)}")
