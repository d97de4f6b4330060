"""Rich console callback for the agent loop."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from automode.models.agent_schemas import AgentResult, ToolCallRequest, ToolResult
from automode.tools import ToolRegistry

MAX_PANEL_LINES = 30
MAX_PANEL_CHARS = 2000
MAX_INLINE_CHARS = 120


def _clip_block(text: str) -> str:
    """Clip text shown in a panel to a screenful."""
    lines = text.splitlines()
    if len(lines) <= MAX_PANEL_LINES and len(text) <= MAX_PANEL_CHARS:
        return text
    clipped = "\n".join(lines[:MAX_PANEL_LINES])[:MAX_PANEL_CHARS]
    hidden = len(lines) - MAX_PANEL_LINES
    return clipped + (f"\n... ({hidden} more lines)" if hidden > 0 else "\n...")


def _clip_inline(value: Any) -> str:
    text = str(value)
    return text if len(text) <= MAX_INLINE_CHARS else text[:MAX_INLINE_CHARS] + "..."


TOOL_ICONS = {
    "create_folder": "📁",
    "create_file": "📄",
    "read_file": "👁 ",
    "read_multiple_files": "📚",
    "list_files": "📂",
    "search_file": "🔎",
    "grep": "🔍",
    "find_files": "🗂 ",
    "edit_file": "✏️ ",
    "run_command": "💻",
    "fetch_commit_changes": "🔗",
}


class ConsoleCallback:
    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def print_tools(self, registry: ToolRegistry) -> None:
        table = Table(title="Available tools", border_style="dim", show_lines=False)
        table.add_column("Tool", style="bold cyan", no_wrap=True)
        table.add_column("Description", style="dim")
        for tool in registry.list_all():
            icon = TOOL_ICONS.get(tool.name, "🔧")
            params = ", ".join(tool.spec.parameters)
            table.add_row(f"{icon} {tool.name}({params})", tool.description)
        self.console.print(table)
        self.console.print()

    def on_step_start(self, step: int, max_steps: int) -> None:
        self.console.rule(f"[bold blue]Step {step}/{max_steps}", style="blue")

    def on_thinking(self, text: str) -> None:
        self.console.print(
            Panel(Text(_clip_block(text)), title="[bold yellow]Thinking", border_style="yellow", padding=(0, 1))
        )

    def on_tool_call(self, request: ToolCallRequest) -> None:
        icon = TOOL_ICONS.get(request.name, "🔧")
        self.console.print(f"  {icon} [bold cyan]{request.name}[/] [dim]({request.id})[/]")
        for k, v in request.arguments.items():
            val = str(v)
            # Multiline values (content / old_text / new_text) get a panel
            if "\n" in val:
                self.console.print(f"      [dim]{k}:[/]")
                self.console.print(
                    Panel(
                        Syntax(_clip_block(val), "text", theme="ansi_dark", word_wrap=True),
                        border_style="dim",
                        padding=(0, 1),
                    )
                )
            else:
                self.console.print(f"      [dim]{k}:[/] {escape(_clip_inline(val))}")

    def on_tool_result(self, result: ToolResult) -> None:
        clipped = _clip_block(result.to_content())
        body = (
            Syntax(clipped, "text", theme="ansi_dark", word_wrap=True)
            if len(clipped) > 200
            else Text(clipped, style="dim" if result.success else "red")
        )
        title = "[dim]result" if result.success else f"[red]{result.error_kind.value}"
        self.console.print(
            Panel(body, title=title, border_style="dim" if result.success else "red", padding=(0, 1))
        )

    def on_warning(self, text: str) -> None:
        self.console.print(f"[yellow]⚠ {escape(text)}[/yellow]")

    def on_finish(self, result: AgentResult) -> None:
        self.console.print()
        summary = f"{result.iterations} steps, {result.tool_calls_made} tool calls"
        if result.completed:
            self.console.rule("[bold green]Completed", style="green")
            self.console.print(
                Panel(
                    Text(result.output or "(no final message)"),
                    title=f"[bold green]Result ({summary})",
                    border_style="green",
                    padding=(0, 1),
                )
            )
            return
        self.console.rule("[bold red]Aborted", style="red")
        self.console.print(
            Panel(
                Text(f"{result.reason.value}: {result.detail}"),
                title=f"[bold red]Aborted ({summary})",
                border_style="red",
                padding=(0, 1),
            )
        )
