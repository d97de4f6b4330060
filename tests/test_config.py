"""Tests for Settings, models.yaml loading and ModelConfig merging."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from automode.config import ModelConfig, Settings, _load_models_yaml, get_model_config, settings
from automode.errors import ConfigurationError


@pytest.fixture(autouse=True)
def _reset_cache():
    """Reset the module-level YAML cache before each test."""
    import automode.config as cfg
    cfg._models_config_cache = None
    yield
    cfg._models_config_cache = None


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def test_settings_defaults():
    s = Settings(llm_api_key="k", _env_file=None)
    assert s.max_iterations == 25
    assert s.completion_marker == "AUTOMODE_COMPLETE"
    assert s.max_malformed_retries == 1
    assert s.parallel_tools is False
    assert s.backend_max_attempts == 3


def test_settings_from_env():
    env = {"MAX_ITERATIONS": "7", "PARALLEL_TOOLS": "true", "COMPLETION_MARKER": "DONE"}
    with patch.dict("os.environ", env):
        s = Settings(_env_file=None)
    assert s.max_iterations == 7
    assert s.parallel_tools is True
    assert s.completion_marker == "DONE"


# ---------------------------------------------------------------------------
# ModelConfig dataclass
# ---------------------------------------------------------------------------

def test_model_config_defaults():
    mc = ModelConfig()
    assert mc.model == ""
    assert mc.temperature is None
    assert mc.max_tokens is None
    assert mc.base_url == ""


# ---------------------------------------------------------------------------
# _load_models_yaml
# ---------------------------------------------------------------------------

def test_load_yaml_missing_file(tmp_path):
    """When file doesn't exist, returns empty dict."""
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(tmp_path / "nope.yaml")}):
        result = _load_models_yaml()
    assert result == {}


def test_load_yaml_empty_file(tmp_path):
    yaml_file = tmp_path / "models.yaml"
    yaml_file.write_text("")
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(yaml_file)}):
        result = _load_models_yaml()
    assert result == {}


def test_load_yaml_caches_result(tmp_path):
    """Second call returns cached dict without re-reading."""
    yaml_file = tmp_path / "models.yaml"
    yaml_file.write_text("default:\n  model: m1\n")
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(yaml_file)}):
        first = _load_models_yaml()
        yaml_file.write_text("default:\n  model: m2\n")
        second = _load_models_yaml()
    assert first is second
    assert first["default"]["model"] == "m1"


# ---------------------------------------------------------------------------
# get_model_config
# ---------------------------------------------------------------------------

YAML_WITH_ROLES = (
    "default:\n"
    "  model: openai/gpt-4.1-mini\n"
    "  temperature: 0.2\n"
    "  base_url: https://openrouter.ai/api/v1\n"
    "roles:\n"
    "  agent:\n"
    "    model: anthropic/claude-3.5-sonnet\n"
    "    max_tokens: 8192\n"
)


def test_no_yaml_falls_back_to_settings(tmp_path):
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(tmp_path / "missing.yaml")}):
        mc = get_model_config("agent")
    assert mc.model != ""
    assert mc.temperature is None
    assert mc.max_tokens is None


def test_role_override_merges_with_default(tmp_path):
    (tmp_path / "m.yaml").write_text(YAML_WITH_ROLES)
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(tmp_path / "m.yaml")}):
        mc = get_model_config("agent")
    assert mc.model == "anthropic/claude-3.5-sonnet"
    assert mc.max_tokens == 8192
    # inherited from default
    assert mc.temperature == 0.2
    assert mc.base_url == "https://openrouter.ai/api/v1"


def test_unknown_role_gets_default(tmp_path):
    (tmp_path / "m.yaml").write_text(YAML_WITH_ROLES)
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(tmp_path / "m.yaml")}):
        mc = get_model_config("summarizer")
    assert mc.model == "openai/gpt-4.1-mini"
    assert mc.max_tokens is None


def test_unknown_keys_in_role_are_ignored(tmp_path):
    (tmp_path / "m.yaml").write_text(
        "default:\n  model: m\nroles:\n  agent:\n    colour: blue\n    temperature: 0.5\n"
    )
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(tmp_path / "m.yaml")}):
        mc = get_model_config("agent")
    assert mc.model == "m"
    assert mc.temperature == 0.5


def test_null_temperature_in_yaml(tmp_path):
    (tmp_path / "m.yaml").write_text("default:\n  model: m\n  temperature: null\n")
    with patch.dict("os.environ", {"MODELS_CONFIG_PATH": str(tmp_path / "m.yaml")}):
        mc = get_model_config()
    assert mc.temperature is None


# ---------------------------------------------------------------------------
# LLMService integration with ModelConfig
# ---------------------------------------------------------------------------

@pytest.fixture
def api_key():
    with patch.object(settings, "llm_api_key", "test-key"):
        yield


def test_llm_service_uses_model_config(api_key):
    from automode.services.llm_service import LLMService

    cfg = ModelConfig(model="test-model", temperature=0.7, max_tokens=512, base_url="https://example.com/v1")
    svc = LLMService(config=cfg)
    assert svc.model == "test-model"
    assert svc.temperature == 0.7
    assert svc.client.max_retries == 0


def test_llm_service_default_temperature(api_key):
    from automode.services.llm_service import LLMService

    svc = LLMService(config=ModelConfig(model="m", base_url="https://example.com/v1"))
    assert svc.temperature == 0.2


def test_llm_service_request_kwargs(api_key):
    from automode.services.llm_service import LLMService

    svc = LLMService(config=ModelConfig(model="m", max_tokens=100, base_url="https://example.com/v1"))
    with patch.object(svc.client.chat.completions, "create", return_value="resp") as create:
        assert svc.chat([{"role": "user", "content": "hi"}], []) == "resp"
    kwargs = create.call_args.kwargs
    assert kwargs["model"] == "m"
    assert kwargs["max_tokens"] == 100
    assert "tools" not in kwargs


def test_llm_service_requires_api_key():
    from automode.services.llm_service import LLMService

    with patch.object(settings, "llm_api_key", ""):
        with pytest.raises(ConfigurationError, match="LLM_API_KEY"):
            LLMService(config=ModelConfig(model="m", base_url="https://example.com/v1"))
