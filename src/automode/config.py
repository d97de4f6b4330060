from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    llm_api_key: str = ""
    llm_base_url: str = "https://openrouter.ai/api/v1"
    llm_model: str = "anthropic/claude-3.5-sonnet"
    github_token: str = ""
    request_timeout: float = 120.0

    # Agent loop
    max_iterations: int = 25
    completion_marker: str = "AUTOMODE_COMPLETE"
    max_malformed_retries: int = 1
    warn_remaining: int = 3
    parallel_tools: bool = False

    # Backend retry
    backend_max_attempts: int = 3
    backend_retry_min_wait: float = 2.0
    backend_retry_max_wait: float = 30.0

    # Tools
    command_timeout: int = 120
    max_file_size_kb: int = 100
    max_output_chars: int = 20000


settings = Settings()


@dataclass
class ModelConfig:
    model: str = ""
    temperature: float | None = None
    max_tokens: int | None = None
    base_url: str = ""


_models_config_cache: dict | None = None


def _load_models_yaml() -> dict:
    global _models_config_cache
    if _models_config_cache is not None:
        return _models_config_cache

    path = Path(os.environ.get("MODELS_CONFIG_PATH", "models.yaml"))
    if not path.is_file():
        _models_config_cache = {}
        return _models_config_cache

    import yaml

    with open(path) as f:
        _models_config_cache = yaml.safe_load(f) or {}
    return _models_config_cache


def get_model_config(role: str = "") -> ModelConfig:
    """Model config for a role: the ``default`` section of models.yaml merged
    with the ``roles.<role>`` override.

    Without a models.yaml the env-based Settings are used.
    """
    data = _load_models_yaml()
    if not data:
        return ModelConfig(model=settings.llm_model, base_url=settings.llm_base_url)

    default = data.get("default", {})
    merged = {
        "model": default.get("model", settings.llm_model),
        "temperature": default.get("temperature"),
        "max_tokens": default.get("max_tokens"),
        "base_url": default.get("base_url", settings.llm_base_url),
    }
    if role:
        for key, value in data.get("roles", {}).get(role, {}).items():
            if key in merged:
                merged[key] = value
    return ModelConfig(**merged)
