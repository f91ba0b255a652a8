"""CLI command implementations.

Each ``cmd_*`` function implements one subcommand and returns an exit code.
"""

import httpx
from rich.console import Console
from rich.markup import escape

console = Console()


def print_error(error: Exception) -> None:
    """Print a red error line, with status and body for HTTP failures."""
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        console.print(
            f"[red]Error:[/] {response.status_code} {response.reason_phrase} "
            f"for {error.request.method} {error.request.url.path}"
        )
        if response.text:
            console.print(f"[dim]{escape(response.text[:500])}[/]")
        return
    console.print(f"[red]Error:[/] {escape(str(error))}")
