"""Suggest better descriptions (and titles) for my recently created cards.

Nothing is written to the board unless ``--apply`` is given. Decisions are
remembered per card in a JSON cache so unchanged cards are not offered again.
"""

import logging
import time
from datetime import UTC, datetime, timedelta
from pathlib import Path

import httpx
from rich.panel import Panel
from rich.text import Text

from src.cache import CacheError, DecisionCache, content_hash
from src.commands import console, print_error
from src.config import ConfigError, load_config
from src.llm import generate_description, generate_title, get_llm, merge_description
from src.trello.client import TrelloClient
from src.trello.models import Card, Member
from src.utils.prompt import confirm

logger = logging.getLogger(__name__)

ENHANCE_CARD_FIELDS = (
    "id", "name", "desc", "shortUrl", "dateLastActivity", "idMembers", "idList"
)
CACHE_FILENAME = "trello-enhancer.json"
CARD_DELAY_SECONDS = 0.25

# Configuration problems exit with 2 so wrappers can tell them from runtime failures
EXIT_CONFIG_ERROR = 2


def find_recent_cards(
    client: TrelloClient,
    board_id: str,
    me: Member,
    cards: list[Card],
    *,
    hours: float,
    now: datetime | None = None,
) -> tuple[list[Card], bool]:
    """Cards I created in the last ``hours``.

    Uses the board's ``createCard`` history. When that yields nothing, falls
    back to cards I am a member of whose id-encoded creation time is recent.

    Returns:
        Tuple of (cards in board order, whether the fallback was used)
    """
    since = (now or datetime.now(UTC)) - timedelta(hours=hours)
    actions = client.get_board_actions(board_id, filter="createCard", since=since)
    created = {
        a.card_id
        for a in actions
        if a.type == "createCard" and a.member_creator_id == me.id and a.card_id
    }

    used_fallback = False
    if not created:
        used_fallback = True
        created = {
            c.id
            for c in cards
            if me.id in c.member_ids and c.created_at is not None and c.created_at >= since
        }

    return [c for c in cards if c.id in created], used_fallback


def _print_candidates(
    candidates: list[Card], list_names: dict[str, str], min_desc_chars: int
) -> None:
    for index, card in enumerate(candidates, start=1):
        size = len(card.desc)
        created = card.created_at.isoformat() if card.created_at else "unknown"
        console.print(f"#{index} [bold]{card.name}[/]")
        console.print(f"   List: {list_names.get(card.list_id or '', 'Unknown')}")
        console.print(f"   Created: {created}")
        verdict = "short" if size < min_desc_chars else "ok"
        console.print(f"   Description: {size} chars ({verdict})")
        console.print(f"   URL: {card.link}")


def cmd_enhance(
    *,
    hours: float = 48,
    min_desc_chars: int = 60,
    model: str | None = None,
    max_cards: int = 15,
    apply: bool = False,
    title: bool = True,
    force: bool = False,
    list_only: bool = False,
    merge: str = "prepend",
    cache_file: Path | None = None,
) -> int:
    """Offer LLM-written descriptions for my recent cards with short descriptions."""
    console.print(Panel("[bold blue]cardflow enhance[/]", expand=False))

    try:
        settings = load_config()
        settings.trello.ensure()
        board_id = settings.trello.require_board_id()
        llm = None if list_only else get_llm(settings.llm, model)
        cache = DecisionCache(cache_file or Path(settings.paths.cache_dir) / CACHE_FILENAME).load()
    except (ConfigError, CacheError) as e:
        print_error(e)
        return EXIT_CONFIG_ERROR

    applied = 0
    try:
        with TrelloClient(config=settings.trello) as client:
            me = client.get_me()
            cards = client.get_board_cards(board_id, ENHANCE_CARD_FIELDS)
            list_names = {lst.id: lst.name for lst in client.get_board_lists(board_id)}

            recent, used_fallback = find_recent_cards(client, board_id, me, cards, hours=hours)
            candidates = recent[:max_cards]

            if list_only:
                suffix = " (fallback by membership and id time)" if used_fallback else ""
                console.print(
                    f"Found {len(candidates)} candidate cards created by you "
                    f"in the last {hours:g}h{suffix}\n"
                )
                _print_candidates(candidates, list_names, min_desc_chars)
                return 0

            for card in candidates:
                desc_hash = content_hash(card.desc)
                list_name = list_names.get(card.list_id or "", "Unknown")

                if not force and cache.should_skip(card.id, desc_hash):
                    console.print(f"[dim]Skipping {card.name} (cached)[/]")
                    continue
                if len(card.desc) >= min_desc_chars:
                    cache.record(card.id, "sufficient", desc_hash)
                    continue

                console.print(f"\n[bold]{card.name}[/] [dim]({list_name})[/]")
                console.print(f"  Link: {card.link}")
                console.print(f"  Current description ({len(card.desc)} chars):")
                console.print(Text(card.desc or "(none)"))

                if not confirm("Generate an enhanced description?", console=console):
                    cache.record(card.id, "skipped", desc_hash)
                    continue

                try:
                    suggestion = generate_description(llm, card.name, list_name, card.desc)
                except Exception as e:
                    logger.error("Description generation failed for %s: %s", card.id, e)
                    console.print(f"[red]Generation failed:[/] {e}")
                    cache.record(card.id, "error", desc_hash, error=str(e))
                    continue

                console.print(Panel(Text(suggestion), title="Suggested description", expand=False))

                new_title = card.name
                if title and confirm("Also suggest a better title?", console=console):
                    try:
                        new_title = generate_title(llm, card.name, suggestion)
                        console.print(f"Suggested title: [bold]{new_title}[/]")
                    except Exception as e:
                        logger.warning("Title generation failed for %s: %s", card.id, e)
                        console.print(f"[yellow]Title generation failed:[/] {e}")

                question = (
                    "Apply these changes now?"
                    if apply
                    else "Apply (dry run; nothing is updated without --apply)?"
                )
                if not confirm(question, console=console):
                    cache.record(card.id, "skipped", desc_hash)
                    continue

                final_desc = merge_description(card.desc, suggestion, merge)
                if not apply:
                    changed = " and title" if new_title != card.name else ""
                    console.print(f"[yellow]Dry run:[/] would update description{changed}")
                    cache.record(card.id, "dry-run", desc_hash)
                else:
                    try:
                        updated = client.update_card(
                            card.id,
                            name=new_title if new_title != card.name else None,
                            desc=final_desc,
                        )
                    except httpx.HTTPError as e:
                        logger.error("Update failed for %s: %s", card.id, e)
                        print_error(e)
                        cache.record(card.id, "error", desc_hash, error=str(e))
                    else:
                        console.print(f"[green]✓[/] Updated card: {updated.link or card.link}")
                        cache.record(card.id, "applied", content_hash(updated.desc))
                        applied += 1

                time.sleep(CARD_DELAY_SECONDS)
    except (ConfigError, httpx.HTTPError) as e:
        print_error(e)
        return 1
    finally:
        cache.save()

    console.print(f"\nConsidered {len(candidates)} cards. Applied updates: {applied}.")
    return 0
