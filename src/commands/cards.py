"""Card maintenance commands: due dates, weekly review, creation, state, branch names."""

import logging
from datetime import datetime
from pathlib import Path
from urllib.parse import urlparse

import httpx
from rich.panel import Panel
from rich.table import Table

from src.commands import console, print_error
from src.config import ConfigError, TrelloConfig, load_config
from src.trello.batch import DueSlotClock, run_batch
from src.trello.client import TrelloClient
from src.trello.filters import (
    in_window,
    is_assigned_to,
    is_older_than,
    is_past_due_but_not_today,
    last_n_days_window,
    week_range,
)
from src.trello.models import Card, TrelloList
from src.utils.prompt import confirm
from src.utils.text import extract_card_id, slugify

logger = logging.getLogger(__name__)

PREVIEW_LINES = 6
OLD_DUE_DAYS = 7


def resolve_list_id(
    client: TrelloClient,
    config: TrelloConfig,
    *,
    list_id: str | None,
    list_name: str | None,
    what: str,
) -> str:
    """Resolve a list id, falling back to a case-insensitive name lookup on the board.

    Raises:
        ConfigError: If no board is configured or the list does not exist
    """
    if list_id:
        return list_id
    if not config.board_id:
        raise ConfigError(
            f"Set {what.upper()}_LIST_ID or TRELLO_BOARD_ID to resolve the {what} list"
        )
    found = client.get_list_by_name(config.board_id, list_name or "")
    if not found:
        raise ConfigError(f'Cannot find list named "{list_name}" on board {config.board_id}')
    return found.id


def resolve_done_list_id(lists: list[TrelloList], config: TrelloConfig) -> str | None:
    """Configured done list id, or the board list matching the configured name."""
    if config.done_list_id:
        return config.done_list_id
    if config.done_list_name:
        wanted = config.done_list_name.lower()
        for lst in lists:
            if lst.name.lower() == wanted:
                return lst.id
    return None


def _format_due(due: datetime | None) -> str:
    return due.astimezone().strftime("%Y-%m-%d %H:%M") if due else "-"


def _card_table(cards: list[Card], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Card")
    table.add_column("Due", style="dim")
    table.add_column("URL", style="cyan")
    for card in cards:
        table.add_row(card.name, _format_due(card.due), card.link)
    return table


def cmd_due_today(
    *,
    dry_run: bool = False,
    yes: bool = False,
    now: datetime | None = None,
) -> int:
    """Move past due dates of my cards in the Doing list to staggered slots today.

    Cards overdue by more than a week are listed but left alone.
    """
    now = now or datetime.now().astimezone()
    console.print(Panel("[bold blue]cardflow due-today[/]", expand=False))

    try:
        config = load_config().trello
        with TrelloClient(config=config) as client:
            me = client.get_me()
            list_id = resolve_list_id(
                client,
                config,
                list_id=config.doing_list_id,
                list_name=config.doing_list_name,
                what="doing",
            )
            cards = client.get_list_cards(list_id)

            candidates = [
                c
                for c in cards
                if is_assigned_to(c, me.id)
                and not c.closed
                and is_past_due_but_not_today(c.due, now)
            ]
            if not candidates:
                console.print("[green]✓[/] No assigned cards in Doing with a past due date.")
                return 0

            too_old = [c for c in candidates if is_older_than(c.due, now, OLD_DUE_DAYS)]
            recent = [c for c in candidates if c not in too_old]

            if too_old:
                console.print(_card_table(too_old, "Older than a week (not updated)"))
            if not recent:
                console.print("[green]✓[/] No cards from the last week require updates.")
                return 0

            console.print(_card_table(recent, "Move to today"))
            if dry_run:
                console.print("\n[yellow]Dry run - no changes made[/]")
                return 0

            clock = DueSlotClock(now)

            def apply(card: Card) -> None:
                client.update_card_due(card.id, clock.current)
                clock.advance()

            result = run_batch(
                recent,
                question=lambda c: f"Update to today {clock.current:%H:%M} -> {c.name}?",
                apply=apply,
                label=lambda c: c.name,
                assume_yes=yes,
                console=console,
            )
    except (ConfigError, httpx.HTTPError) as e:
        print_error(e)
        return 1

    console.print(f"\n{result.summary()}")
    return result.exit_code


def cmd_review_week(
    *,
    days: int = 4,
    week: bool = False,
    include_all: bool = False,
    dry_run: bool = False,
    yes: bool = False,
    now: datetime | None = None,
) -> int:
    """Review incomplete cards due in a recent window and mark them complete.

    Confirmed cards are marked due-complete and moved to the done list when
    one is configured.
    """
    now = now or datetime.now().astimezone()
    start, end = week_range(now) if week else last_n_days_window(now, days)
    console.print(Panel("[bold blue]cardflow review-week[/]", expand=False))
    console.print(f"[dim]Due between {start:%Y-%m-%d} and {end:%Y-%m-%d}[/]")

    try:
        config = load_config().trello
        board_id = config.require_board_id()
        with TrelloClient(config=config) as client:
            me = client.get_me()
            lists = client.get_board_lists(board_id)
            done_list_id = resolve_done_list_id(lists, config)

            include = set(config.include_list_names)
            scope = [
                lst for lst in lists if lst.id != done_list_id and lst.name.lower() in include
            ]
            console.print(
                f"[dim]Considering {len(scope)}/{len(lists)} list(s): "
                f"{', '.join(lst.name for lst in scope)}[/]"
            )

            cards = client.get_cards_in_lists(lst.id for lst in scope)
            if include_all:
                console.print("[dim]Including cards assigned to any member[/]")
            else:
                console.print(
                    f"[dim]Only cards assigned to {me.username} (use --all for everyone)[/]"
                )
                cards = [c for c in cards if is_assigned_to(c, me.id)]

            candidates = [
                c
                for c in cards
                if not c.closed and not c.due_complete and in_window(c.due, start, end)
            ]
            if not candidates:
                console.print("[green]✓[/] No matching incomplete cards in the selected window.")
                return 0

            console.print(_card_table(candidates, "Incomplete cards to review"))
            if dry_run:
                console.print("\n[yellow]Dry run - no changes made[/]")
                return 0

            def apply(card: Card) -> None:
                client.set_card_due_complete(card.id, True)
                if done_list_id and card.list_id != done_list_id:
                    client.move_card_to_list(card.id, done_list_id)

            result = run_batch(
                candidates,
                question=lambda c: f"Mark complete -> {c.name}?",
                apply=apply,
                label=lambda c: c.name,
                assume_yes=yes,
                console=console,
            )
    except (ConfigError, httpx.HTTPError) as e:
        print_error(e)
        return 1

    console.print(f"\n{result.summary()}")
    return result.exit_code


def read_description(raw: str | None) -> str:
    """Description text, or the contents of a file when given as ``@path``."""
    if not raw:
        return ""
    if raw.startswith("@"):
        return Path(raw[1:]).expanduser().read_text(encoding="utf-8")
    return raw


def description_preview(description: str, lines: int = PREVIEW_LINES) -> str:
    head = description.split("\n")
    more = "\n…" if len(head) > lines else ""
    return "\n".join(head[:lines]) + more


def cmd_create_card(
    title: str,
    description: str | None = None,
    *,
    list_id: str | None = None,
    list_name: str | None = None,
    dry_run: bool = False,
    yes: bool = False,
    now: datetime | None = None,
) -> int:
    """Create a card assigned to me, due today at noon."""
    now = now or datetime.now().astimezone()
    due = now.replace(hour=12, minute=0, second=0, microsecond=0)

    try:
        desc = read_description(description)
    except OSError as e:
        console.print(f"[red]Error:[/] Could not read description: {e}")
        return 1

    try:
        config = load_config().trello
        with TrelloClient(config=config) as client:
            target = resolve_list_id(
                client,
                config,
                list_id=list_id or config.doing_list_id,
                list_name=list_name or config.doing_list_name,
                what="doing",
            )
            me = client.get_me()
            try:
                target_name = client.get_list(target).name
            except httpx.HTTPStatusError:
                target_name = None

            console.print(Panel("[bold blue]About to create a card[/]", expand=False))
            console.print(f"  List: {f'{target_name} ({target})' if target_name else target}")
            console.print(f"  Title: {title}")
            console.print(f"  Assign: {me.display_name}")
            console.print(f"  Due: {due:%Y-%m-%d %H:%M}")
            console.print("  Description (head):")
            console.print(description_preview(desc), markup=False, highlight=False)

            if dry_run:
                console.print("\n[yellow]Dry run - no changes made[/]")
                return 0
            if not confirm("Create this card?", assume_yes=yes, console=console):
                console.print("Aborted.")
                return 0

            card = client.create_card(target, title, desc=desc, due=due, member_ids=[me.id])
    except (ConfigError, httpx.HTTPError) as e:
        print_error(e)
        return 1

    console.print(f"[green]✓[/] Created: {card.name}")
    console.print(f"  URL: {card.link}")
    console.print(f"  Due: {_format_due(card.due)}")
    return 0


def cmd_set_state(
    card: str,
    *,
    to: str | None = None,
    complete: bool | None = None,
    dry_run: bool = False,
    yes: bool = False,
) -> int:
    """Move a card to the review/rejected list and/or set its due-complete flag."""
    if to is None and complete is None:
        console.print("[red]Error:[/] Nothing to do. Pass --to and/or --complete.")
        return 1
    if to not in (None, "review", "rejected"):
        console.print(f"[red]Error:[/] Unknown --to value: {to}. Use 'review' or 'rejected'.")
        return 1

    card_id = extract_card_id(card)
    try:
        config = load_config().trello
        with TrelloClient(config=config) as client:
            current = client.get_card(card_id, fields=("name", "idList"))
            console.print(f"\nCard: [bold]{current.name}[/] [dim](ID: {card_id})[/]")

            target_list = None
            if to == "review":
                target_list = resolve_list_id(
                    client,
                    config,
                    list_id=config.review_list_id,
                    list_name=config.review_list_name,
                    what="review",
                )
            elif to == "rejected":
                target_list = resolve_list_id(
                    client,
                    config,
                    list_id=config.rejected_list_id,
                    list_name=config.rejected_list_name,
                    what="rejected",
                )

            console.print("\nPlanned changes:")
            if target_list:
                console.print(f"  Move to list: {to} (id {target_list})")
            if complete is not None:
                console.print(f"  Set dueComplete: {str(complete).lower()}")

            if dry_run:
                console.print("\n[yellow]Dry run - no changes made[/]")
                return 0
            if not confirm("Proceed?", assume_yes=yes, console=console):
                console.print("Aborted.")
                return 0

            if target_list:
                client.move_card_to_list(card_id, target_list)
            if complete is not None:
                client.set_card_due_complete(card_id, complete)
    except (ConfigError, httpx.HTTPError) as e:
        print_error(e)
        return 1

    console.print("[green]✓[/] Done.")
    return 0


def branch_name_for(url: str, client: TrelloClient | None = None) -> str:
    """Branch name for a card URL.

    The full form ``/c/<short>/<n>-<slug>`` already carries the name and is
    returned as-is. The short form ``/c/<short>`` is resolved through the API
    to ``<idShort>-<slugified name>``.

    Raises:
        ValueError: If the URL is not a card URL
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"Invalid URL: {url}")
    parts = [p for p in parsed.path.split("/") if p]
    if not parts or parts[0] != "c":
        raise ValueError("URL does not look like a card URL (expected path starting with /c/...)")

    if len(parts) >= 3:
        return parts[2]

    if len(parts) == 2:
        owns_client = client is None
        client = client or TrelloClient()
        try:
            card = client.get_card(parts[1], fields=("idShort", "name"))
        finally:
            if owns_client:
                client.close()
        if card.id_short is None:
            raise ValueError("Unable to resolve idShort from the API")
        return f"{card.id_short}-{slugify(card.name)}"

    raise ValueError("Unrecognized card URL format")


def cmd_branch_name(url: str) -> int:
    """Print a git branch name for a card URL."""
    try:
        name = branch_name_for(url)
    except (ValueError, ConfigError, httpx.HTTPError) as e:
        print_error(e)
        return 1
    print(name)
    return 0
