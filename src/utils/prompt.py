"""Console confirmation prompt."""

from rich.console import Console
from rich.prompt import Confirm


def confirm(question: str, *, assume_yes: bool = False, console: Console | None = None) -> bool:
    """Ask a yes/no question, defaulting to no.

    With ``assume_yes`` the question is echoed and answered without reading input.
    """
    if assume_yes:
        if console is not None:
            console.print(f"{question} [dim](auto-confirmed)[/]")
        return True
    return Confirm.ask(question, default=False, console=console)
