"""Command-line entry point for Manus Agent."""

import asyncio
import signal
import sys
from collections.abc import Awaitable
from typing import TypeVar

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from manus_agent.agent import AgentExecutionResult, AgentLoop
from manus_agent.config import Config, set_config
from manus_agent.exceptions import ConfigurationError
from manus_agent.llm import close_provider
from manus_agent.logging import configure_logging, log
from manus_agent.session import SessionRegistry, create_history_store
from manus_agent.tools import create_tool_registry

app = typer.Typer(help="Manus Agent - a tool-using LLM agent loop")
console = Console()
err_console = Console(stderr=True)

T = TypeVar("T")


def _bootstrap(config_path: str, verbose: bool) -> Config:
    """Load config from an explicit path (or the default lookup) and set up logging."""
    try:
        cfg = Config.load(config_path or None)
    except ConfigurationError as e:
        err_console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(code=2) from e
    set_config(cfg)
    configure_logging(verbose=verbose)
    return cfg


def _print_result(result: AgentExecutionResult, streamed: bool) -> None:
    if streamed:
        console.print()
    for step in result.steps:
        console.print(f"[dim]{escape(step)}[/dim]", highlight=False)
    if result.error:
        err_console.print(f"[red]Error:[/red] {result.error}")
        return
    status = "[green]completed[/green]" if result.is_completed else "[yellow]not completed[/yellow]"
    console.print(f"Status: {status}")
    if not streamed or not result.is_completed:
        console.print(result.final_result, markup=False, highlight=False)
    if result.usage is not None:
        console.print(
            f"[dim]tokens: prompt={result.usage.prompt_tokens} "
            f"completion={result.usage.completion_tokens} total={result.usage.total_tokens}[/dim]"
        )


async def _run_cancellable(work: Awaitable[T], abort: asyncio.Event) -> tuple[T | None, bool]:
    """Run work and cancel it when ``abort`` is set."""
    work_task = asyncio.create_task(work)
    abort_task = asyncio.create_task(abort.wait())
    try:
        done, _ = await asyncio.wait(
            {work_task, abort_task},
            return_when=asyncio.FIRST_COMPLETED,
        )

        if work_task in done:
            return work_task.result(), False

        log.info("Interrupt received, cancelling current task")
        work_task.cancel()
        try:
            await work_task
        except asyncio.CancelledError:
            pass
        return None, True
    finally:
        if not abort_task.done():
            abort_task.cancel()
        if not work_task.done():
            work_task.cancel()


async def _run_task(
    message: str,
    session: str,
    user: str | None,
    max_steps: int | None,
    model: str | None,
    stream: bool,
) -> tuple[AgentExecutionResult, bool]:
    """Run one task; Ctrl+C cancels it and returns ``cancelled=True``."""
    agent = AgentLoop()
    abort = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, abort.set)
    except (NotImplementedError, RuntimeError):
        pass

    def on_chunk(text: str) -> None:
        console.print(text, end="", markup=False, highlight=False)

    try:
        result, cancelled = await _run_cancellable(
            agent.execute_task(
                session,
                message,
                max_steps=max_steps,
                model=model,
                user_id=user,
                on_chunk=on_chunk if stream else None,
            ),
            abort,
        )
        if cancelled:
            result = AgentExecutionResult(session_id=session, final_result=agent.cancelled_message)
        return result, cancelled
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
        await agent.close()
        await close_provider()


@app.command()
def run(
    message: str = typer.Argument(..., help="Task for the agent"),
    session: str = typer.Option("default", "-s", "--session", help="Session id"),
    user: str = typer.Option("", "-u", "--user", help="Optional user id"),
    max_steps: int = typer.Option(0, "--max-steps", help="Override agent.max_steps"),
    model: str = typer.Option("", "-m", "--model", help="Override model"),
    stream: bool = typer.Option(False, "--stream", help="Stream assistant output"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
) -> None:
    """Run one task through the agent loop."""
    _bootstrap(config, verbose)
    result, cancelled = asyncio.run(
        _run_task(
            message,
            session,
            user or None,
            max_steps if max_steps > 0 else None,
            model or None,
            stream,
        )
    )
    _print_result(result, streamed=stream)
    if cancelled:
        raise typer.Exit(code=130)
    if result.error:
        log.error("Run failed", session_id=session, error=result.error)
        raise typer.Exit(code=1)


@app.command()
def tools(
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
) -> None:
    """List the enabled tools."""
    cfg = _bootstrap(config, False)
    registry = create_tool_registry(cfg)

    table = Table(title="Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Description")
    for tool in registry.tools():
        table.add_row(tool.name, tool.description)
    console.print(table)
    asyncio.run(registry.close())


async def _show_history(session: str, user: str | None, cfg: Config) -> None:
    sessions = SessionRegistry(create_history_store(cfg))
    try:
        memory = await sessions.load(session, user)
        if not memory.messages:
            console.print(f"No history for session '{session}'.")
            return
        table = Table(title=f"Session {session}")
        table.add_column("Time", style="dim")
        table.add_column("Role", style="cyan")
        table.add_column("Content", overflow="fold")
        for message in memory.messages:
            if message.role == "system":
                continue
            table.add_row(message.timestamp.strftime("%Y-%m-%d %H:%M:%S"), message.role, escape(message.content))
        console.print(table)
    finally:
        await sessions.close()


@app.command()
def history(
    session: str = typer.Argument(..., help="Session id"),
    user: str = typer.Option("", "-u", "--user", help="Optional user id"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
) -> None:
    """Show stored messages of a session."""
    cfg = _bootstrap(config, False)
    asyncio.run(_show_history(session, user or None, cfg))


async def _list_sessions(user: str | None, cfg: Config) -> None:
    sessions = SessionRegistry(create_history_store(cfg))
    try:
        infos = await sessions.list_sessions(user)
    finally:
        await sessions.close()
    if not infos:
        console.print("No stored sessions.")
        return
    table = Table(title="Sessions")
    table.add_column("Id", style="cyan")
    table.add_column("Title")
    table.add_column("Messages", justify="right")
    table.add_column("Last activity", style="dim")
    for info in infos:
        table.add_row(
            info.id,
            escape(info.title),
            str(info.message_count),
            info.last_activity.strftime("%Y-%m-%d %H:%M:%S") if info.last_activity else "-",
        )
    console.print(table)


@app.command()
def sessions(
    user: str = typer.Option("", "-u", "--user", help="Optional user id"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
) -> None:
    """List stored sessions, most recent first."""
    cfg = _bootstrap(config, False)
    asyncio.run(_list_sessions(user or None, cfg))


async def _clear_session(session: str, user: str | None, cfg: Config) -> None:
    registry = SessionRegistry(create_history_store(cfg))
    try:
        await registry.clear(session, user)
    finally:
        await registry.close()


@app.command()
def clear(
    session: str = typer.Argument(..., help="Session id"),
    user: str = typer.Option("", "-u", "--user", help="Optional user id"),
    config: str = typer.Option("", "-c", "--config", help="Path to config file"),
) -> None:
    """Delete a session's history."""
    cfg = _bootstrap(config, False)
    asyncio.run(_clear_session(session, user or None, cfg))
    console.print(f"Cleared session '{session}'.")


@app.command()
def version() -> None:
    """Show version information."""
    from manus_agent import __version__
    console.print(f"Manus Agent v{__version__}")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
