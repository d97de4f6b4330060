"""Completion signal detection.

A run is finished when the model answers with no tool calls and its text
contains the completion marker as a whole word. The match is case-sensitive
and anchored on word boundaries, so ``AUTOMODE_COMPLETED`` or
``not_AUTOMODE_COMPLETE`` do not count. A marker in a reply that also asks
for tools is ignored: the tools run and the loop continues.
"""

from __future__ import annotations

import re

from automode.models.agent_schemas import ModelResponse

DEFAULT_MARKER = "AUTOMODE_COMPLETE"


class CompletionDetector:
    def __init__(self, marker: str = DEFAULT_MARKER) -> None:
        if not marker or not marker.strip():
            raise ValueError("completion marker must be a non-empty string")
        self.marker = marker
        self._pattern = re.compile(rf"(?<!\w){re.escape(marker)}(?!\w)")

    def mentions_marker(self, text: str | None) -> bool:
        if not text:
            return False
        return self._pattern.search(text) is not None

    def is_complete(self, response: ModelResponse) -> bool:
        if response.tool_calls:
            return False
        return self.mentions_marker(response.text)

    def strip(self, text: str) -> str:
        """Remove the marker from a final answer."""
        return self._pattern.sub("", text).strip()
