"""Export a card to a local folder as markdown plus downloaded screenshots."""

import logging
from pathlib import Path
from urllib.parse import quote

import httpx
from rich.panel import Panel

from src.commands import console, print_error
from src.config import ConfigError
from src.trello.client import TrelloClient
from src.trello.models import Action, Attachment, Card, Checklist
from src.utils.text import extract_card_id, sanitize_filename

logger = logging.getLogger(__name__)

SCREENSHOTS_DIR = "screenshots"
DEV_CHECKLIST_NOTE = (
    "> **🎯 Priority Focus:** These are the core development tasks to complete.\n\n"
)


def screenshot_filename(attachment: Attachment, index: int) -> str:
    """Local file name for the ``index``-th (1-based) image attachment."""
    if attachment.file_name:
        return sanitize_filename(attachment.file_name)
    return f"screenshot_{index}{attachment.extension or '.png'}"


def format_comments(comments: list[Action]) -> str:
    if not comments:
        return ""
    out = "## Comments\n\n"
    for index, comment in enumerate(comments, start=1):
        when = "unknown date"
        if comment.date:
            when = comment.date.astimezone().strftime("%Y-%m-%d %H:%M")
        out += f"### Comment {index} by {comment.author} ({when})\n\n"
        out += f"{comment.text}\n\n"
    return out


def format_checklist(checklist: Checklist, dev: bool = False) -> str:
    out = f"### {checklist.name}\n\n"
    if checklist.items:
        out += f"**Progress:** {checklist.completed_count}/{len(checklist.items)} completed\n\n"
        for item in checklist.items:
            if dev:
                mark = "✅" if item.complete else "⏳"
            else:
                mark = "☑️" if item.complete else "☐"
            out += f"- {mark} {item.name}\n"
    else:
        out += "*No items in this checklist*\n"
    return out + "\n"


def format_checklists(checklists: list[Checklist]) -> str:
    """Dev checklists (name contains "dev") first, under their own heading."""
    dev = [c for c in checklists if "dev" in c.name.lower()]
    other = [c for c in checklists if "dev" not in c.name.lower()]

    out = ""
    if dev:
        out += "## Developer Tasks (Dev Checklists)\n\n" + DEV_CHECKLIST_NOTE
        out += "".join(format_checklist(c, dev=True) for c in dev)
    if other:
        out += "## Other Checklists\n\n" if dev else "## Checklists\n\n"
        out += "".join(format_checklist(c) for c in other)
    return out


def render_card_markdown(
    card: Card,
    comments: list[Action],
    checklists: list[Checklist],
    images: list[Attachment],
) -> str:
    """Markdown document for an exported card."""
    md = f"# {card.name}\n\n"
    if card.desc:
        md += f"## Description\n\n{card.desc}\n\n"

    md += "## Metadata\n\n"
    md += f"- **URL**: {card.url}\n"
    if card.due:
        md += f"- **Due Date**: {card.due.astimezone():%Y-%m-%d %H:%M}\n"
    if card.due_complete:
        md += "- **Due Complete**: Yes\n"
    if card.labels:
        md += f"- **Labels**: {', '.join(card.labels)}\n"
    md += "\n"

    if images:
        md += "## Screenshots\n\n"
        for index, attachment in enumerate(images, start=1):
            alt = attachment.name or f"Screenshot {index}"
            md += f"![{alt}]({SCREENSHOTS_DIR}/{screenshot_filename(attachment, index)})\n\n"

    md += format_comments(comments)
    md += format_checklists(checklists)
    return md


def cmd_export(url: str, *, output_dir: Path | None = None) -> int:
    """Export a card's description, metadata, comments, checklists and images."""
    card_id = extract_card_id(url)
    console.print(Panel(f"[bold blue]cardflow export[/] {card_id}", expand=False))

    try:
        with TrelloClient() as client:
            card = client.get_card(card_id)
            console.print(f"[green]✓[/] Found card: {card.name}")
            comments = client.get_card_comments(card_id)
            attachments = client.get_card_attachments(card_id)
            images = [a for a in attachments if a.is_image]
            checklists = client.get_card_checklists(card_id)
            console.print(
                f"[dim]{len(comments)} comments, {len(attachments)} attachments "
                f"({len(images)} images), {len(checklists)} checklists[/]"
            )

            folder = (output_dir or Path.cwd()) / sanitize_filename(card.name)
            folder.mkdir(parents=True, exist_ok=True)

            if images:
                shots = folder / SCREENSHOTS_DIR
                shots.mkdir(exist_ok=True)
                for index, attachment in enumerate(images, start=1):
                    filename = screenshot_filename(attachment, index)
                    remote_name = quote(attachment.file_name or filename, safe="")
                    console.print(f"  Downloading {filename}...")
                    try:
                        client.download_attachment(
                            card.id, attachment.id, remote_name, shots / filename
                        )
                    except httpx.HTTPError as e:
                        logger.warning("Failed to download %s: %s", filename, e)
                        console.print(f"[yellow]Warning:[/] Failed to download {filename}: {e}")
    except (ConfigError, httpx.HTTPError) as e:
        print_error(e)
        return 1

    markdown_path = folder / "card.md"
    markdown = render_card_markdown(card, comments, checklists, images)
    markdown_path.write_text(markdown, encoding="utf-8")

    console.print(f"[green]✓[/] Exported to {folder}")
    console.print(f"  Markdown: {markdown_path}")
    if images:
        console.print(f"  Screenshots: {folder / SCREENSHOTS_DIR} ({len(images)} files)")
    return 0
