"""Shell command execution inside the working directory."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from automode.errors import ToolRuntimeError
from automode.tools import Param, ParamType, Tool, ToolSpec

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120
MAX_OUTPUT_CHARS = 20000


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    half = limit // 2
    return f"{text[:half]}\n... ({len(text) - limit} chars omitted) ...\n{text[-half:]}"


def create_shell_tools(
    work_dir: Path,
    timeout: int = DEFAULT_TIMEOUT,
    max_output_chars: int = MAX_OUTPUT_CHARS,
) -> list[Tool]:
    def run_command(args: dict) -> str:
        command = args["command"]
        limit = min(args.get("timeout", timeout), timeout)
        logger.info("Running command: %s", command)
        try:
            proc = subprocess.run(
                command,
                shell=True,
                cwd=work_dir,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=limit,
            )
        except subprocess.TimeoutExpired as e:
            raise ToolRuntimeError(f"command timed out after {limit}s: {command}") from e

        parts = [f"exit code: {proc.returncode}"]
        if proc.stdout:
            parts.append(f"stdout:\n{_truncate(proc.stdout, max_output_chars)}")
        if proc.stderr:
            parts.append(f"stderr:\n{_truncate(proc.stderr, max_output_chars)}")
        return "\n".join(parts)

    return [
        Tool(
            ToolSpec(
                name="run_command",
                description=(
                    "Run a shell command in the repository root and return its exit code, "
                    "stdout and stderr. Use it for tests, builds and git inspection. "
                    "Commands must terminate; servers and interactive programs will time out."
                ),
                parameters={
                    "command": Param(ParamType.STRING, "Shell command to run"),
                    "timeout": Param(
                        ParamType.INTEGER,
                        f"Seconds before the command is killed (max {timeout})",
                        required=False,
                    ),
                },
            ),
            run_command,
        )
    ]
