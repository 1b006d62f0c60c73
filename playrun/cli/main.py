"""playrun CLI — run a program through the supervisor from a terminal.

`playrun run -- CMD ARGS...` starts CMD exactly as a client "run" command
would: output is relayed as messages, capped by the output limiter, and
the end status decides the exit code.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from playrun import __version__
from playrun.channel import MessageChannel
from playrun.config import settings
from playrun.exceptions import InvocationError
from playrun.processes import OutputLimiter, Process, start_process
from playrun.types import MessageKind

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)

app = typer.Typer(
    name="playrun",
    help="playrun -- supervise child programs and stream their output.",
    no_args_is_help=True,
)


@app.callback()
def _main(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Logging level"),
):
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


async def _kill_on_request(kills: MessageChannel, p: Process) -> None:
    async for message in kills:
        if message.id == p.id:
            await p.kill()
            return


async def _run(workdir: Optional[Path], command: List[str], limit: int) -> str:
    """Run ``command``, print its output, return the end message body."""
    out = MessageChannel()
    kills = MessageChannel()
    limiter = OutputLimiter(out, kills, limit=limit)

    p = await start_process(workdir, command, limiter)
    killer = asyncio.create_task(_kill_on_request(kills, p)) if p is not None else None
    try:
        async for message in out:
            if message.kind == MessageKind.STDOUT:
                console.out(message.body, end="")
            elif message.kind == MessageKind.STDERR:
                err_console.out(message.body, end="", style="red")
            elif message.is_terminal:
                if limiter.kill_requested:
                    err_console.print(f"[yellow]output limit of {limit} messages reached[/yellow]")
                return message.body
    finally:
        if killer is not None:
            killer.cancel()
    return ""


@app.command("run")
def run(
    command: List[str] = typer.Argument(help="Program and arguments (put them after --)"),
    workdir: Optional[Path] = typer.Option(None, "--dir", "-d", help="Working directory"),
    limit: int = typer.Option(settings.msg_limit, "--limit", "-l", help="Max output messages"),
):
    """Run a program and stream its output."""
    try:
        error = asyncio.run(_run(workdir, command, limit))
    except InvocationError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=2)

    if error:
        err_console.print(f"[bold red]{error}[/bold red]")
        raise typer.Exit(code=1)


@app.command("version")
def version():
    """Show playrun version."""
    console.print(f"playrun v{__version__}")


def main():
    app()
