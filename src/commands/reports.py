"""Activity and time-tracking reports, and posting them to chat.

- activity-report: my card interactions in a rolling 30-hour window
- daily-report: tracked time entries matched to my recently active cards
- post-report: send a daily report to a chat channel, one post per ticket
"""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import httpx
from rich.panel import Panel
from rich.text import Text

from src.cache import CacheError, SnapshotCache
from src.chat.mattermost import MattermostClient
from src.commands import console, print_error
from src.config import ConfigError, load_config
from src.trello.client import TrelloClient
from src.trello.filters import (
    is_assigned_to,
    is_blacklisted,
    is_done_list,
    rolling_cutoff,
    sort_by_timestamp,
)
from src.trello.models import Action, Card, Member, TrelloList
from src.utils.duration import TimeEntry, format_minutes, group_time_entries
from src.utils.prompt import confirm

logger = logging.getLogger(__name__)

REPORT_WINDOW_HOURS = 30
COMMENT_PREVIEW_CHARS = 50
POST_DELAY_SECONDS = 0.5
SEPARATOR = "-" * 60

BOARD_MEMBER_PARAMS = {"members": "true", "member_fields": "id,fullName,username"}
REPORT_FOOTER = "_Report generated by Trello Activity Tracker with Planyway time reference_"

_IMAGE_PATH = re.compile(r"!\[.*?\]\((.+?)\)")


@dataclass
class Interaction:
    kind: str
    time: str
    description: str


@dataclass
class CardActivity:
    card: Card
    list_name: str
    interactions: list[Interaction] = field(default_factory=list)


def _fmt(value: datetime) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


def describe_action(action: Action) -> str:
    """One-line summary of one of my actions on a card."""
    if action.text:
        text = action.text[:COMMENT_PREVIEW_CHARS]
        if len(action.text) > COMMENT_PREVIEW_CHARS:
            text += "..."
        return f"Comment: {text}"
    list_after = action.data.get("listAfter")
    if list_after:
        return f"Moved card to {list_after.get('name', 'Unknown')}"
    if action.type == "createCard":
        return "Created this card"
    if action.type == "addMemberToCard":
        return "Added member to card"
    if action.type == "removeMemberFromCard":
        return "Removed member from card"
    return action.type


def find_interactions(
    card: Card, member_id: str, cutoff: datetime, actions: list[Action]
) -> list[Interaction]:
    """Card activity, my actions after the cutoff, and current assignment."""
    interactions = []
    if card.date_last_activity and card.date_last_activity > cutoff:
        interactions.append(
            Interaction("card_activity", _fmt(card.date_last_activity), "Card activity detected")
        )
    for action in actions:
        if action.member_creator_id == member_id and action.date and action.date > cutoff:
            interactions.append(
                Interaction(action.type, _fmt(action.date), describe_action(action))
            )
    if is_assigned_to(card, member_id):
        interactions.append(Interaction("assigned", "current", "Currently assigned to this card"))
    return interactions


def format_activity_report(
    activities: list[CardActivity],
    user_name: str,
    cutoff: datetime,
    now: datetime,
    hours: float = REPORT_WINDOW_HOURS,
) -> str:
    report = f"TRELLO ACTIVITY REPORT - LAST {hours:g} HOURS\n"
    report += "=" * 60 + "\n\n"
    report += f"User: {user_name}\n"
    report += f"Since: {_fmt(cutoff)}\n"
    report += f"Generated: {now.astimezone():%Y-%m-%d %H:%M:%S}\n\n"

    if not activities:
        report += f"No interactions found in the last {hours:g} hours.\n"
        return report

    report += f"Found {len(activities)} cards with recent activity:\n\n"
    for index, item in enumerate(activities, start=1):
        report += f"{index}. {item.card.name}\n"
        report += f"   URL: {item.card.link}\n"
        report += f"   List: {item.list_name}\n"
        if item.card.date_last_activity:
            report += f"   Last Activity: {_fmt(item.card.date_last_activity)}\n"
        if item.interactions:
            report += "   Your Interactions:\n"
            for interaction in item.interactions:
                report += f"      • {interaction.time} - {interaction.description}\n"
        report += f"\n{SEPARATOR}\n\n"
    return report


def cmd_activity_report(
    *, hours: float = REPORT_WINDOW_HOURS, now: datetime | None = None
) -> int:
    """Report my interactions with board cards in the last ``hours``."""
    now = now or datetime.now().astimezone()
    cutoff = rolling_cutoff(now, hours)
    console.print(Panel("[bold blue]cardflow activity-report[/]", expand=False))

    try:
        settings = load_config()
        board_id = settings.trello.require_board_id()
        with TrelloClient(config=settings.trello) as client:
            me = client.get_me()
            console.print(f"[dim]User: {me.display_name}[/]")
            list_names = {lst.id: lst.name for lst in client.get_board_lists(board_id)}
            cards = client.get_board_cards(board_id, extra_params=BOARD_MEMBER_PARAMS)
            console.print(f"[dim]{len(cards)} cards on the board, since {_fmt(cutoff)}[/]")

            activities = []
            for card in sort_by_timestamp(cards):
                # Any action of mine after the cutoff also bumps the card's activity date
                if not card.date_last_activity or card.date_last_activity <= cutoff:
                    continue
                actions = client.get_card_actions(card.id)
                activities.append(
                    CardActivity(
                        card=card,
                        list_name=list_names.get(card.list_id or "", "Unknown List"),
                        interactions=find_interactions(card, me.id, cutoff, actions),
                    )
                )
    except (ConfigError, httpx.HTTPError) as e:
        print_error(e)
        return 1

    report = format_activity_report(activities, me.display_name, cutoff, now, hours)
    console.print(Text(report))

    path = Path(settings.paths.reports_dir) / f"trello-activity-report-{now:%Y-%m-%d-%H-%M}.txt"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(report, encoding="utf-8")
    except OSError as e:
        logger.warning("Could not save report: %s", e)
        console.print(f"[yellow]Warning:[/] Could not save report to {path}: {e}")
        return 0
    console.print(f"[green]✓[/] Report saved to {path}")
    return 0


def load_time_entries(path: Path) -> list[dict]:
    """Read exported time entries: a JSON list of ``{date, name, time}`` objects."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of time entries")
    return data


@dataclass
class TicketLine:
    card: Card
    list_name: str
    minutes: int


def format_daily_report(user: Member, tickets: list[TicketLine], entries: list[TimeEntry]) -> str:
    """Markdown daily report: summary line, ticket section, footer."""
    tracked = format_minutes(sum(e.minutes for e in entries))
    lines = "\n".join(
        f"- [{t.card.name}]({t.card.link}) - {t.list_name} | {format_minutes(t.minutes)}"
        for t in tickets
    )
    summary = f"\n{user.display_name}: update 8h | tracked {tracked}\n"
    return f"{summary}\n## tickets:\n{lines}\n\n---\n{REPORT_FOOTER}"


def _load_board_snapshot(
    client: TrelloClient, board_id: str, snapshot: SnapshotCache
) -> tuple[list[TrelloList], list[Card]]:
    cached = snapshot.load()
    if cached is not None:
        console.print(f"[dim]Using cached board data: {snapshot.path}[/]")
        return (
            [TrelloList.from_api(item) for item in cached["lists"]],
            [Card.from_api(item) for item in cached["cards"]],
        )

    lists = client.get_board_lists(board_id)
    cards = client.get_board_cards(board_id, extra_params={"members": "true"})
    snapshot.save(
        [{"id": lst.id, "name": lst.name, "closed": lst.closed} for lst in lists],
        [card.raw for card in cards],
    )
    console.print(f"[dim]Cached board data to {snapshot.path}[/]")
    return lists, cards


def cmd_daily_report(
    *,
    entries_file: Path | None = None,
    hours: float = REPORT_WINDOW_HOURS,
    now: datetime | None = None,
) -> int:
    """Build the markdown time-tracking report for my recently active cards."""
    now = now or datetime.now().astimezone()
    console.print(Panel("[bold blue]cardflow daily-report[/]", expand=False))

    try:
        settings = load_config()
        config = settings.trello
        board_id = config.require_board_id()

        source = entries_file or Path(settings.paths.time_entries_file)
        try:
            entries = group_time_entries(load_time_entries(source))
        except (OSError, ValueError) as e:
            console.print(f"[red]Error:[/] Could not read time entries from {source}: {e}")
            return 1

        snapshot = SnapshotCache(Path(settings.paths.cache_dir), now)
        with TrelloClient(config=config) as client:
            me = client.get_me()
            console.print(f"[dim]User: {me.display_name}[/]")
            lists, cards = _load_board_snapshot(client, board_id, snapshot)
    except (ConfigError, CacheError, httpx.HTTPError) as e:
        print_error(e)
        return 1

    list_names = {lst.id: lst.name for lst in lists}
    cutoff = rolling_cutoff(now, hours)
    mine = [
        c
        for c in cards
        if c.date_last_activity
        and c.date_last_activity > cutoff
        and not is_blacklisted(c.name, config.blacklist_patterns)
        and is_assigned_to(c, me.id)
    ]
    console.print(f"Found {len(mine)} of your cards active in the last {hours:g} hours")

    blacklisted = sum(1 for c in cards if is_blacklisted(c.name, config.blacklist_patterns))
    if blacklisted:
        console.print(f"[dim]Ignored {blacklisted} cards matching blacklist patterns[/]")

    by_name = {}
    for card in mine:
        by_name.setdefault(card.name, card)

    tickets = [
        TicketLine(
            card=by_name[entry.name],
            list_name=list_names.get(by_name[entry.name].list_id or "", "Unknown"),
            minutes=entry.minutes,
        )
        for entry in entries
        if entry.name in by_name
    ]
    done = sum(1 for t in tickets if is_done_list(t.list_name, config.done_list_patterns))
    console.print(
        f"Matched {len(tickets)}/{len(entries)} tracked tickets ({done} done or in review)"
    )

    report = format_daily_report(me, tickets, entries)
    path = Path(settings.paths.reports_dir) / f"daily-report-{now:%Y-%m-%d-%H}.md"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report, encoding="utf-8")
    console.print(f"[green]✓[/] Report saved: {path}")
    return 0


@dataclass
class ReportSections:
    summary: str = ""
    tickets: list[str] = field(default_factory=list)
    screenshot: str | None = None

    @property
    def empty(self) -> bool:
        return not self.summary and not self.tickets and not self.screenshot


def parse_report_sections(markdown: str) -> ReportSections:
    """Split a daily report into summary, ticket lines and screenshot path.

    Parsing stops at the first line starting with ``---``.
    """
    summary: list[str] = []
    tickets: list[str] = []
    screenshot = None
    section = "summary"

    for line in markdown.splitlines():
        stripped = line.strip()
        if stripped.startswith("## tickets:"):
            section = "tickets"
            continue
        if stripped.startswith("## screenshot:"):
            section = "screenshot"
            continue
        if line.startswith("---"):
            break

        if section == "screenshot":
            match = _IMAGE_PATH.search(line)
            if match:
                screenshot = match.group(1)
        elif section == "tickets":
            if stripped:
                tickets.append(stripped)
        else:
            summary.append(line)

    return ReportSections(
        summary="\n".join(summary).strip(), tickets=tickets, screenshot=screenshot
    )


def _resolve_screenshot(path: str | None, report_path: Path) -> Path | None:
    if not path:
        return None
    candidate = Path(path).expanduser()
    if candidate.is_file() or candidate.is_absolute():
        return candidate
    return report_path.parent / candidate


def cmd_post_report(
    report_file: Path | None = None,
    *,
    channel: str | None = None,
    dry_run: bool = False,
    yes: bool = False,
    now: datetime | None = None,
) -> int:
    """Post a daily report to the chat channel: summary first, then each ticket."""
    now = now or datetime.now().astimezone()
    console.print(Panel("[bold blue]cardflow post-report[/]", expand=False))

    try:
        settings = load_config()
    except ConfigError as e:
        print_error(e)
        return 1
    path = report_file or Path(settings.paths.reports_dir) / f"daily-report-{now:%Y-%m-%d-%H}.md"
    try:
        sections = parse_report_sections(path.read_text(encoding="utf-8"))
    except OSError as e:
        console.print(f"[red]Error:[/] Could not read report {path}: {e}")
        return 1

    screenshot = _resolve_screenshot(sections.screenshot, path)

    if sections.summary:
        console.print("[bold]Summary:[/]")
        console.print(Text(sections.summary))
    console.print("[bold]Tickets:[/]")
    for ticket in sections.tickets:
        console.print(Text(f"  {ticket}"))
    if screenshot:
        found = "[green]found[/]" if screenshot.is_file() else "[red]not found[/]"
        console.print(f"[bold]Screenshot:[/] {screenshot} ({found})")

    if sections.empty:
        console.print("[yellow]Nothing to send.[/]")
        return 0
    if dry_run:
        console.print("\n[yellow]Dry run - nothing sent[/]")
        return 0
    if not confirm("Send these messages to the channel?", assume_yes=yes, console=console):
        console.print("Cancelled. No messages were sent.")
        return 0

    try:
        with MattermostClient(channel_id=channel, config=settings.mattermost) as chat:
            file_ids = []
            if screenshot and screenshot.is_file():
                file_ids.append(chat.upload_file(screenshot))
                console.print("[green]✓[/] Screenshot uploaded")

            if sections.summary:
                chat.post_message(sections.summary, file_ids=file_ids)
                suffix = " with screenshot" if file_ids else ""
                console.print(f"[green]✓[/] Summary sent{suffix}")

            for ticket in sections.tickets:
                chat.post_message(ticket)
                console.print(Text(f"✓ Ticket sent: {ticket}"))
                time.sleep(POST_DELAY_SECONDS)
    except (ConfigError, httpx.HTTPError) as e:
        print_error(e)
        return 1

    console.print("[green]✓[/] All messages sent")
    return 0
