from __future__ import annotations

import pytest

from automode.agents.completion import DEFAULT_MARKER, CompletionDetector
from automode.models.agent_schemas import ModelResponse, ToolCallRequest


@pytest.fixture
def detector() -> CompletionDetector:
    return CompletionDetector()


def test_default_marker(detector):
    assert detector.marker == DEFAULT_MARKER == "AUTOMODE_COMPLETE"


@pytest.mark.parametrize(
    "text",
    [
        "AUTOMODE_COMPLETE",
        "All tests pass.\nAUTOMODE_COMPLETE",
        "Done (AUTOMODE_COMPLETE).",
        "**AUTOMODE_COMPLETE**",
    ],
)
def test_marker_detected(detector, text):
    assert detector.is_complete(ModelResponse(text=text))


@pytest.mark.parametrize(
    "text",
    [
        "Still working",
        "AUTOMODE_COMPLETED",
        "NOT_AUTOMODE_COMPLETE",
        "automode_complete",
    ],
)
def test_marker_not_detected(detector, text):
    assert not detector.is_complete(ModelResponse(text=text))


def test_marker_with_tool_calls_is_ignored(detector):
    response = ModelResponse(
        text="AUTOMODE_COMPLETE",
        tool_calls=(ToolCallRequest(id="1", name="read_file", arguments={"path": "a"}),),
    )
    assert detector.mentions_marker(response.text)
    assert not detector.is_complete(response)


def test_mentions_marker_handles_empty(detector):
    assert detector.mentions_marker(None) is False
    assert detector.mentions_marker("") is False


def test_strip(detector):
    assert detector.strip("Fixed the bug.\n\nAUTOMODE_COMPLETE") == "Fixed the bug."
    assert detector.strip("AUTOMODE_COMPLETE") == ""


def test_custom_marker_is_escaped():
    detector = CompletionDetector("[DONE]")
    assert detector.mentions_marker("ok [DONE]")
    assert not detector.mentions_marker("ok D")


def test_empty_marker_rejected():
    with pytest.raises(ValueError):
        CompletionDetector("  ")
