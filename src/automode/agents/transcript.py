"""Markdown export of a finished run."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

from automode.models.agent_schemas import AgentResult, Role

logger = logging.getLogger(__name__)


def render_transcript(result: AgentResult, title: str = "automode chat log") -> str:
    parts: list[str] = [f"# {title}", ""]
    status = result.state.value
    if result.reason is not None:
        status += f" ({result.reason.value}: {result.detail})"
    parts += [
        f"**Status:** {status}  ",
        f"**Iterations:** {result.iterations}  ",
        f"**Tool calls:** {result.tool_calls_made}",
        "",
    ]
    for turn in result.turns:
        if turn.role is Role.USER:
            parts += ["## User", "", turn.content, ""]
        elif turn.role is Role.ASSISTANT:
            parts += ["## Assistant", ""]
            if turn.content:
                parts += [turn.content, ""]
            for call in turn.tool_calls:
                parts += [
                    f"### Tool use: {call.name} (`{call.id}`)",
                    "",
                    "```json",
                    json.dumps(call.arguments, indent=2),
                    "```",
                    "",
                ]
        else:
            outcome = "ok" if turn.result.success else turn.result.error_kind.value
            parts += [
                f"### Tool result: {turn.result.tool_name} (`{turn.tool_call_id}`, {outcome})",
                "",
                "```",
                turn.content.replace("```", "'''"),
                "```",
                "",
            ]
    return "\n".join(parts)


def default_transcript_path(directory: Path, now: datetime | None = None) -> Path:
    now = now or datetime.now()
    return directory / f"Chat_{now:%Y%m%d_%H%M%S}.md"


def save_transcript(result: AgentResult, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_transcript(result), encoding="utf-8")
    logger.info("Transcript saved to %s", path)
    return path
