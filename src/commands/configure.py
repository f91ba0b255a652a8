"""View and change persisted cardflow settings."""

from rich.panel import Panel
from rich.table import Table

import src.config as config_module
from src.commands import console, print_error
from src.config import SECRET_KEYS, ConfigError, load_config, set_config_value
from src.trello.api_logging import clear_logs, get_log_directory, is_api_logging_enabled

SECTIONS = ("trello", "github", "mattermost", "llm", "paths")


def mask_secret(value: str | None) -> str:
    """Show only the last four characters of a secret."""
    if not value:
        return "[dim](not set)[/]"
    if len(value) <= 4:
        return "****"
    return f"****{value[-4:]}"


def _display(value) -> str:
    if value is None or value == "":
        return "[dim](not set)[/]"
    if isinstance(value, list):
        return ", ".join(value) or "[dim](none)[/]"
    return str(value)


def cmd_config(
    *,
    action: str | None = None,
    key: str | None = None,
    value: str | None = None,
) -> int:
    """Show the effective configuration, set a key, or clear API logs.

    Args:
        action: None to show, "set" or "clear-api-logs"
        key: ``section.key`` for set
        value: Value for set

    Returns:
        Exit code (0 for success)
    """
    console.print(Panel("[bold blue]cardflow config[/]", expand=False))

    if action == "clear-api-logs":
        count = clear_logs()
        console.print(f"[green]✓[/] Deleted {count} API log files from {get_log_directory()}")
        return 0

    if action == "set":
        if not key or value is None:
            console.print("[red]Error:[/] Usage: cardflow config set SECTION.KEY VALUE")
            return 1
        try:
            set_config_value(key, value)
        except ConfigError as e:
            print_error(e)
            return 1
        console.print(f"[green]✓[/] Set {key} = {value}")
        return 0

    try:
        settings = load_config()
    except ConfigError as e:
        print_error(e)
        return 1
    table = Table(title="Configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for section in SECTIONS:
        for name, current in vars(getattr(settings, section)).items():
            shown = mask_secret(current) if name in SECRET_KEYS else _display(current)
            table.add_row(f"{section}.{name}", shown)

    console.print()
    console.print(table)
    console.print()
    logging_state = "on" if is_api_logging_enabled() else "off"
    console.print(f"[dim]API logging: {logging_state} ({get_log_directory()})[/]")
    console.print(f"[dim]Config file: {config_module.CONFIG_FILE}[/]")
    return 0
