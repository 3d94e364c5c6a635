"""HackerOS-Steam CLI application."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Optional

import typer
from rich.markup import escape

from hackerosteam import __version__
from hackerosteam.cli.output import out
from hackerosteam.client import SteamClient
from hackerosteam.errors import SteamboxError
from hackerosteam.lifecycle import SandboxOrchestrator
from hackerosteam.progress import OperationReporter

app = typer.Typer(
    name="hackerosteam",
    help="Run Steam in a GPU-accelerated systemd-nspawn sandbox.",
    no_args_is_help=True,
)


def run_async(coro):
    """Run an async coroutine from sync typer commands."""
    return asyncio.run(coro)


def handle_errors(func):
    """Decorator turning sandbox errors into a message and an exit code."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SteamboxError as e:
            out.error(escape(str(e)))
            raise typer.Exit(e.exit_code) from None
    return wrapper


def shell_exit_code(code: int) -> int:
    """Map a child exit status to a process exit code.

    subprocess reports death by signal N as -N; shells report 128 + N.
    """
    return 128 - code if code < 0 else code


def get_orchestrator() -> SandboxOrchestrator:
    """Orchestrator for the invoking user, rendering progress on the console."""
    reporter = OperationReporter()
    reporter.subscribe(out.render)
    return SandboxOrchestrator.from_environ(reporter=reporter)


def version_callback(value: bool) -> None:
    if value:
        out.info(f"hackerosteam version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """HackerOS-Steam: Steam in an isolated Fedora container."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s %(levelname)s: %(message)s",
    )


@app.command()
@handle_errors
def create():
    """Create the container and install Steam into it."""
    get_orchestrator().create()


@app.command("run")
@handle_errors
def run_session(
    session: Optional[str] = typer.Argument(
        None,
        help="Session: default, gamescope-session-steam / deck (gamepad UI) or terminal.",
    ),
):
    """Launch Steam, creating the container first if needed."""
    code = get_orchestrator().run(session)
    if code != 0:
        raise typer.Exit(shell_exit_code(code))


@app.command()
@handle_errors
def update():
    """Update the packages inside the container."""
    get_orchestrator().update()


@app.command()
@handle_errors
def kill():
    """Force Steam to stop."""
    get_orchestrator().kill()


@app.command()
@handle_errors
def restart():
    """Stop Steam and start it again. Steam data is kept."""
    code = get_orchestrator().restart()
    if code != 0:
        raise typer.Exit(shell_exit_code(code))


@app.command()
@handle_errors
def remove():
    """Remove the container. Steam data is kept."""
    get_orchestrator().remove()


@app.command()
@handle_errors
def status():
    """Show whether the container is running."""
    if get_orchestrator().status():
        out.success("Container is running")
    else:
        out.info("Container is not running")


@app.command()
@handle_errors
def watch(
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Give up after this many seconds."),
):
    """Follow the progress of the daemon's current operation."""
    async def _watch():
        async with SteamClient() as client:
            return await client.wait_completed(out.render, timeout=timeout)

    try:
        result = run_async(_watch())
    except asyncio.TimeoutError:
        out.error(f"no operation completed within {timeout} seconds")
        raise typer.Exit(1) from None

    if result.success:
        out.success("Operation completed")
    else:
        if result.message:
            out.error(escape(result.message))
        raise typer.Exit(shell_exit_code(result.exit_code) or 1)


@app.command()
def daemon(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """Run the D-Bus daemon on the session bus."""
    from hackerosteam.daemon.__main__ import run_daemon

    logging.getLogger().setLevel(logging.DEBUG if verbose else logging.INFO)
    try:
        run_async(run_daemon())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    app()
