"""CLI output formatting using rich."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from hackerosteam.progress import (
    Event,
    MessageEvent,
    MessageType,
    ProgressEvent,
)

console = Console()
err_console = Console(stderr=True)


class Output:
    """Renders orchestrator events on the console.

    Usage:
        out = Output()
        reporter.subscribe(out.render)
    """

    def __init__(self, console: Console | None = None, err_console: Console | None = None) -> None:
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def error(self, msg: str) -> None:
        """Print an error message in red."""
        self.err_console.print(f"[red]error:[/red] {msg}")

    def warning(self, msg: str) -> None:
        """Print a warning message in yellow."""
        self.console.print(f"[yellow]Warning:[/yellow] {msg}")

    def hint(self, msg: str) -> None:
        """Print a hint message in yellow."""
        self.console.print(f"[yellow]Hint:[/yellow] {msg}")

    def success(self, msg: str) -> None:
        """Print a success message with green checkmark."""
        self.console.print(f"[green]✓[/green] {msg}")

    def dim(self, msg: str) -> None:
        """Print a dimmed message."""
        self.console.print(f"[dim]{msg}[/dim]", highlight=False)

    def info(self, msg: str) -> None:
        """Print an info message (no special formatting)."""
        self.console.print(msg)

    def progress(self, fraction: float) -> None:
        self.console.print(f"[bold cyan]{fraction * 100:.0f}%[/bold cyan]")

    def render(self, event: Event) -> None:
        """Print one orchestrator event.

        Completion is left to the caller, which knows the exit code.
        """
        if isinstance(event, ProgressEvent):
            self.progress(event.fraction)
        elif isinstance(event, MessageEvent):
            self.message(event.type, event.text)

    def message(self, message_type: int, text: str) -> None:
        text = escape(text)
        if message_type == MessageType.SUCCESS:
            self.success(text)
        elif message_type == MessageType.WARNING:
            self.warning(text)
        elif message_type == MessageType.ERROR:
            self.error(text)
        elif message_type == MessageType.DIM:
            self.dim(text)
        elif message_type == MessageType.HINT:
            self.hint(text)
        else:
            self.info(text)


# Module-level instance for convenience
out = Output(console, err_console)
