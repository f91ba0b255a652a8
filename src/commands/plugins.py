"""Inspect and watch Power-Up plugin data and custom fields on cards.

Useful for working out which values a time-tracking Power-Up changes when
a card is marked complete or moved.
"""

import hashlib
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import httpx
from rich.panel import Panel
from rich.pretty import Pretty
from rich.table import Table

from src.commands import console, print_error
from src.config import ConfigError, load_config
from src.trello.client import TrelloClient
from src.trello.filters import sort_by_timestamp
from src.utils.text import extract_card_id

logger = logging.getLogger(__name__)

OUTPUT_DIR = "planyway-inspect-outputs"
INSPECT_CARD_FIELDS = (
    "id", "name", "desc", "url", "shortUrl", "due", "dueComplete", "idList", "idMembers"
)
WATCH_CARD_FIELDS = ("id", "name", "url", "shortUrl", "due", "dueComplete", "idList")


def decode_value(value):
    """Plugin values are usually JSON strings; decode them when possible."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def plugin_groups(plugin_data: list[dict]) -> list[dict]:
    """Group entries by plugin id, most frequent first, with sample value keys."""
    groups: dict[str, list[dict]] = {}
    for entry in plugin_data:
        groups.setdefault(entry.get("idPlugin", ""), []).append(entry)

    hints = []
    for plugin_id, entries in groups.items():
        sample = decode_value(entries[0].get("value"))
        keys = list(sample.keys())[:10] if isinstance(sample, dict) else []
        hints.append({"idPlugin": plugin_id, "count": len(entries), "sampleKeys": keys})
    return sorted(hints, key=lambda h: h["count"], reverse=True)


def _fetch_plugin_data(client: TrelloClient, card) -> list[dict]:
    """Plugin data from the card payload, preferring the dedicated endpoint when it has more."""
    try:
        direct = client.get_card_plugin_data(card.id)
    except httpx.HTTPStatusError as e:
        logger.debug("pluginData endpoint failed for %s: %s", card.id, e)
        return card.plugin_data
    return direct or card.plugin_data


def _write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def inspect_card(client: TrelloClient, card_ref: str, output_dir: Path) -> Path:
    card_id = extract_card_id(card_ref)
    card = client.get_card_full(card_id, INSPECT_CARD_FIELDS)
    plugin_data = _fetch_plugin_data(client, card)

    decoded = [
        {
            "id": p.get("id"),
            "idPlugin": p.get("idPlugin"),
            "scope": p.get("scope"),
            "idModel": p.get("idModel"),
            "valueRaw": p.get("value"),
            "value": decode_value(p.get("value")),
        }
        for p in plugin_data
    ]
    summary = {
        "card": {
            "id": card.id,
            "shortUrl": card.link,
            "name": card.name,
            "idList": card.list_id,
            "due": card.raw.get("due"),
            "dueComplete": card.due_complete,
        },
        "pluginDataSummary": plugin_groups(plugin_data),
        "pluginData": decoded,
        "customFieldItems": card.custom_field_items,
    }

    console.print(Panel(Pretty(summary["card"]), title="Card", expand=False))
    console.print(Pretty(summary["pluginDataSummary"]))

    top = summary["pluginDataSummary"][0] if summary["pluginDataSummary"] else None
    if top:
        console.print(
            f"\nTop plugin id {top['idPlugin']} ({top['count']} entries). Sample values:"
        )
        for entry in [d for d in decoded if d["idPlugin"] == top["idPlugin"]][:5]:
            console.print(Pretty(entry["value"]))

    path = output_dir / f"card-{card.id}.json"
    _write_json(path, summary)
    return path


def scan_board(client: TrelloClient, board_id: str, output_dir: Path, limit: int = 50) -> Path:
    cards = client.get_board_cards_with_plugin_data(board_id)
    with_data = sort_by_timestamp(c for c in cards if c.plugin_data)
    picked = with_data[:limit]
    console.print(
        f"Found {len(with_data)}/{len(cards)} cards with plugin data. Showing {len(picked)}."
    )

    table = Table(show_header=True, header_style="bold")
    table.add_column("Card")
    table.add_column("URL", style="cyan")
    table.add_column("Plugin ids", style="dim")
    for card in picked:
        groups = plugin_groups(card.plugin_data)
        hints = ", ".join(f"{h['idPlugin']}({h['count']})" for h in groups)
        table.add_row(card.name, card.link, hints)
    console.print(table)

    outline = [
        {"id": c.id, "shortUrl": c.link, "name": c.name, "pluginDataCount": len(c.plugin_data)}
        for c in picked
    ]
    path = output_dir / f"board-{board_id}-overview.json"
    _write_json(path, outline)
    return path


def cmd_inspect(
    *,
    card: str | None = None,
    board: str | None = None,
    limit: int = 50,
    output_dir: Path | None = None,
) -> int:
    """Print and save a card's plugin data, or an overview for a board."""
    console.print(Panel("[bold blue]cardflow inspect[/]", expand=False))
    out = output_dir or Path(OUTPUT_DIR)

    try:
        config = load_config().trello
        with TrelloClient(config=config) as client:
            if card:
                path = inspect_card(client, card, out)
            else:
                path = scan_board(client, board or config.require_board_id(), out, limit)
    except (ConfigError, httpx.HTTPError) as e:
        print_error(e)
        return 1

    console.print(f"[green]✓[/] Wrote {path}")
    return 0


def stable_digest(data) -> str:
    """sha1 of a key-sorted JSON encoding."""
    encoded = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha1(encoded.encode("utf-8")).hexdigest()


@dataclass
class Snapshot:
    meta: dict
    plugin_data: list[dict]
    custom_field_items: list[dict]

    @property
    def digest(self) -> str:
        return stable_digest(
            {
                "meta": self.meta,
                "pluginData": self.plugin_data,
                "customFieldItems": self.custom_field_items,
            }
        )


def take_snapshot(client: TrelloClient, card_id: str) -> Snapshot:
    card = client.get_card_full(card_id, WATCH_CARD_FIELDS)
    plugin_data = sorted(
        (
            {
                "id": p.get("id"),
                "idPlugin": p.get("idPlugin"),
                "scope": p.get("scope"),
                "idModel": p.get("idModel"),
                "value": p.get("value"),
            }
            for p in _fetch_plugin_data(client, card)
        ),
        key=lambda p: p["id"] or "",
    )
    return Snapshot(
        meta={
            "id": card.id,
            "name": card.name,
            "url": card.link,
            "dueComplete": card.due_complete,
            "idList": card.list_id,
        },
        plugin_data=plugin_data,
        custom_field_items=sorted(card.custom_field_items, key=lambda c: c.get("id") or ""),
    )


@dataclass
class ArrayDiff:
    added: list = field(default_factory=list)
    removed: list = field(default_factory=list)
    changed: list[tuple] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.added or self.removed or self.changed)


def diff_arrays(before: list[dict], after: list[dict], key: Callable[[dict], str]) -> ArrayDiff:
    """Entries added, removed or changed between two keyed lists."""
    prev = {key(x): x for x in before}
    nxt = {key(x): x for x in after}
    diff = ArrayDiff()
    for k, value in nxt.items():
        if k not in prev:
            diff.added.append(value)
        elif stable_digest(prev[k]) != stable_digest(value):
            diff.changed.append((prev[k], value))
    diff.removed = [v for k, v in prev.items() if k not in nxt]
    return diff


def _custom_field_key(item: dict) -> str:
    return item.get("id") or f"{item.get('idCustomField')}:{item.get('idValue')}"


def report_changes(prev: Snapshot, snap: Snapshot) -> None:
    console.print(f"\n[bold yellow]Change detected at {datetime.now():%H:%M:%S}[/]")
    for name in ("dueComplete", "idList"):
        if prev.meta.get(name) != snap.meta.get(name):
            console.print(f"  {name}: {prev.meta.get(name)} -> {snap.meta.get(name)}")

    diffs = (
        ("pluginData", diff_arrays(prev.plugin_data, snap.plugin_data, lambda x: x["id"] or "")),
        (
            "customFieldItems",
            diff_arrays(prev.custom_field_items, snap.custom_field_items, _custom_field_key),
        ),
    )
    for label, diff in diffs:
        if not diff:
            continue
        counts = f"+{len(diff.added)} -{len(diff.removed)} ~{len(diff.changed)}"
        console.print(f"  {label} diff: {counts}")
        if diff.added:
            console.print(Pretty({"added": diff.added}))
        if diff.removed:
            console.print(Pretty({"removed": diff.removed}))
        if diff.changed:
            changed = [{"before": b, "after": a} for b, a in diff.changed]
            console.print(Pretty({"changed": changed}))


def cmd_watch(card: str, *, interval: int = 5, max_polls: int | None = None) -> int:
    """Poll a card and print plugin-data and custom-field changes until interrupted."""
    interval = max(1, interval)
    card_id = extract_card_id(card)
    console.print(f"Watching card {card} -> {card_id}. Press Ctrl+C to stop.")

    try:
        client = TrelloClient()
    except ConfigError as e:
        print_error(e)
        return 1

    prev: Snapshot | None = None
    polls = 0
    with client:
        while max_polls is None or polls < max_polls:
            polls += 1
            try:
                snap = take_snapshot(client, card_id)
            except httpx.HTTPError as e:
                logger.warning("Watch error: %s", e)
                console.print(f"[red]Watch error:[/] {e}")
            else:
                if prev is None:
                    console.print(Pretty(snap.meta))
                    console.print(
                        f"pluginData entries: {len(snap.plugin_data)}, "
                        f"customFieldItems: {len(snap.custom_field_items)}"
                    )
                    prev = snap
                elif snap.digest != prev.digest:
                    report_changes(prev, snap)
                    prev = snap

            if max_polls is None or polls < max_polls:
                time.sleep(interval)
    return 0
