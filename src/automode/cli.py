import logging
import signal
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

app = typer.Typer(name="automode", help="Coding assistant that works on a task inside a local repository.")
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s | %(levelname)s | %(message)s")


def _build_registry(work_dir: Path):
    """File, shell and (with a token) GitHub tools rooted at work_dir."""
    from automode.config import settings
    from automode.services.local_service import LocalService
    from automode.tools import ToolRegistry
    from automode.tools.base_tools import create_base_tools
    from automode.tools.shell_tools import create_shell_tools

    registry = ToolRegistry()
    service = LocalService(work_dir=work_dir, max_file_size_kb=settings.max_file_size_kb)
    registry.register_many(create_base_tools(service))
    registry.register_many(
        create_shell_tools(
            service.work_dir,
            timeout=settings.command_timeout,
            max_output_chars=settings.max_output_chars,
        )
    )
    if settings.github_token:
        from automode.services.github_service import GitHubService
        from automode.tools.github_tools import create_github_tools

        registry.register_many(create_github_tools(GitHubService()))
    return registry


def _build_agent(
    work_dir: Path,
    max_iterations: int = 0,
    parallel_tools: bool = False,
    callback=None,
):
    """Create an AgentLoop talking to the configured backend."""
    from automode.agents.agent_loop import AgentLoop, build_retrying
    from automode.agents.cancellation import CancellationToken
    from automode.agents.completion import CompletionDetector
    from automode.agents.model_client import OpenAIModelClient
    from automode.config import get_model_config, settings
    from automode.prompts.prompt_layer import system_prompt
    from automode.services.llm_service import LLMService
    from automode.tools.executor import ToolExecutor

    registry = _build_registry(work_dir)
    completion = CompletionDetector(settings.completion_marker)
    model = OpenAIModelClient(
        LLMService(get_model_config("agent")),
        system_prompt=system_prompt(completion.marker),
    )
    cancel_token = CancellationToken()
    return AgentLoop(
        model=model,
        registry=registry,
        executor=ToolExecutor(registry, parallel=parallel_tools or settings.parallel_tools),
        max_iterations=max_iterations or settings.max_iterations,
        completion=completion,
        retrying=build_retrying(
            settings.backend_max_attempts,
            settings.backend_retry_min_wait,
            settings.backend_retry_max_wait,
            cancel_token=cancel_token,
        ),
        max_malformed_retries=settings.max_malformed_retries,
        warn_remaining=settings.warn_remaining,
        callback=callback,
        cancel_token=cancel_token,
    )


def _read_task(task: str, editor: bool) -> str:
    if task:
        return task.strip()
    if editor:
        text = typer.edit("\n# Describe the task above. Lines starting with '#' are ignored.\n")
        lines = [line for line in (text or "").splitlines() if not line.startswith("#")]
        return "\n".join(lines).strip()
    return typer.prompt("Task").strip()


def _install_interrupt_handler(agent):
    """First Ctrl-C cancels at the next step; a second one interrupts immediately."""

    def handler(signum, frame):
        if agent.cancel_token.cancelled:
            raise KeyboardInterrupt
        console.print("\n[yellow]Interrupt received, stopping before the next step "
                      "(Ctrl-C again to force).[/yellow]")
        agent.cancel()

    return signal.signal(signal.SIGINT, handler)


@app.command()
def run(
    task: str = typer.Argument("", help="Task description (prompted for when omitted)"),
    work_dir: Path = typer.Option(Path("."), "--work-dir", "-C", help="Repository to work in"),
    max_iterations: int = typer.Option(0, "--max-iterations", help="Max model turns (0 = use config)"),
    editor: bool = typer.Option(False, "--editor", "-e", help="Write the task in $EDITOR"),
    parallel_tools: bool = typer.Option(
        False, "--parallel-tools", help="Run batches of read-only tool calls concurrently"
    ),
    save_log: str = typer.Option(
        "", "--save-log", help="Write a markdown transcript to this file (or into this directory)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable detailed logging"),
) -> None:
    """Work on a task until the model signals completion or the run is aborted."""
    from automode.agents.console_callback import ConsoleCallback
    from automode.agents.transcript import default_transcript_path, save_transcript
    from automode.errors import ConfigurationError

    _setup_logging(verbose)

    if not work_dir.is_dir():
        console.print(f"[red]Not a directory: {work_dir}[/red]")
        raise typer.Exit(2)

    full_task = _read_task(task, editor)
    if not full_task:
        console.print("[red]No task given.[/red]")
        raise typer.Exit(2)

    callback = ConsoleCallback(console)
    try:
        agent = _build_agent(
            work_dir, max_iterations=max_iterations, parallel_tools=parallel_tools, callback=callback
        )
    except ConfigurationError as e:
        console.print(f"[red]Cannot start: {escape(str(e))}[/red]")
        raise typer.Exit(2)
    except Exception as e:
        logging.getLogger(__name__).exception("Failed to set up the agent")
        console.print(f"[red]Cannot start: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    callback.print_tools(agent.registry)
    console.print(f"[bold]Task:[/bold] {escape(full_task)}")
    console.print()

    previous = _install_interrupt_handler(agent)
    try:
        result = agent.run(full_task)
    except KeyboardInterrupt:
        console.print("[red]Aborted: interrupted.[/red]")
        raise typer.Exit(130)
    except Exception as e:
        logging.getLogger(__name__).exception("Agent loop crashed")
        console.print(f"[red]Aborted: internal error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    finally:
        signal.signal(signal.SIGINT, previous)

    if save_log:
        target = Path(save_log)
        if target.is_dir():
            target = default_transcript_path(target)
        path = save_transcript(result, target)
        console.print(f"[dim]Transcript: {path}[/dim]")

    if result.completed:
        console.print("[green]Completed.[/green]")
    else:
        console.print(f"[red]Aborted ({result.reason.value}): {escape(result.detail)}[/red]")
    raise typer.Exit(result.exit_code)


@app.command()
def tools(
    work_dir: Path = typer.Option(Path("."), "--work-dir", "-C", help="Repository to work in"),
) -> None:
    """List the tools the agent can call."""
    from automode.agents.console_callback import ConsoleCallback

    ConsoleCallback(console).print_tools(_build_registry(work_dir))


if __name__ == "__main__":
    app()
