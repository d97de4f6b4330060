from __future__ import annotations

import logging

from openai import OpenAI

from automode.config import ModelConfig, get_model_config, settings
from automode.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.2


def _create_openai_client(config: ModelConfig) -> OpenAI:
    if not settings.llm_api_key:
        raise ConfigurationError("LLM_API_KEY is not set (environment or .env)")
    # Retries are owned by the agent loop's retry hook, not the SDK.
    return OpenAI(
        api_key=settings.llm_api_key,
        base_url=config.base_url or settings.llm_base_url,
        timeout=settings.request_timeout,
        max_retries=0,
    )


class LLMService:
    """One chat-completions endpoint and model, as chosen by a ModelConfig."""

    def __init__(self, config: ModelConfig | None = None) -> None:
        self.config = config or get_model_config()
        self.client = _create_openai_client(self.config)
        self.model = self.config.model or settings.llm_model

    @property
    def temperature(self) -> float:
        if self.config.temperature is None:
            return DEFAULT_TEMPERATURE
        return self.config.temperature

    def chat(self, messages: list[dict], tools: list[dict]):
        request: dict = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
        }
        if tools:
            request["tools"] = tools
        if self.config.max_tokens is not None:
            request["max_tokens"] = self.config.max_tokens
        logger.debug(
            "Requesting %s: %d messages, %d tools", self.model, len(messages), len(tools)
        )
        return self.client.chat.completions.create(**request)
