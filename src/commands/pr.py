"""Pull request workflows: PR testing notes to card comments, rejected-card sync."""

import logging
from dataclasses import dataclass, field

import httpx
from rich.panel import Panel
from rich.text import Text

from src.commands import console, print_error
from src.commands.cards import resolve_list_id
from src.config import ConfigError, load_config
from src.github.client import GitHubClient, PullRequest
from src.trello.client import TrelloClient
from src.trello.models import Card, to_trello_datetime
from src.utils.github import PullRequestRef, extract_pr_links
from src.utils.prompt import confirm
from src.utils.text import (
    extract_card_id,
    extract_card_url,
    format_pr_comment,
    parse_pr_description,
    replace_localhost_urls,
    sanitize_testing_info,
)

logger = logging.getLogger(__name__)

REJECTED_CARD_FIELDS = ("id", "name", "shortUrl", "idMembers", "dateLastActivity")


def build_pr_comment(
    pr: PullRequest,
    *,
    staging_base_url: str | None = None,
    include_testing: bool = True,
    inline_images: bool = False,
) -> str | None:
    """Card comment for a PR, or None when the PR has no testing notes or screenshots."""
    parsed = parse_pr_description(pr.body)
    testing_info = replace_localhost_urls(parsed.testing_info, staging_base_url)
    for shot in parsed.screenshots:
        shot.url = replace_localhost_urls(shot.url, staging_base_url)
    testing_info = sanitize_testing_info(testing_info)

    if not testing_info and not parsed.screenshots:
        return None

    return format_pr_comment(
        pr,
        testing_info,
        parsed.screenshots,
        include_testing=include_testing,
        links_only=not inline_images,
    )


def cmd_pr_to_card(
    ref: PullRequestRef,
    *,
    include_testing: bool = True,
    inline_images: bool = False,
    yes: bool = False,
    review: bool = False,
) -> int:
    """Post a PR's testing notes and screenshots as a comment on its linked card.

    Afterwards the card can be moved to the review list and marked complete:
    ``review`` does so without asking; otherwise the user is asked unless
    running non-interactively with ``yes``.
    """
    console.print(Panel(f"[bold blue]cardflow pr-to-card[/] {ref.key}", expand=False))

    try:
        settings = load_config()
        with GitHubClient(config=settings.github) as github:
            try:
                pr = github.get_pull_request(ref.owner, ref.repo, ref.number)
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 404:
                    console.print(f"[red]Error:[/] PR #{ref.number} not found in {ref.repo_slug}")
                    return 1
                raise
        console.print(f"[green]✓[/] Found PR: {pr.title}")

        card_url = extract_card_url(pr.body)
        if not card_url:
            console.print("[red]Error:[/] No card URL found in PR description")
            return 1
        card_id = extract_card_id(card_url)
        console.print(f"[green]✓[/] Card: {card_url}")

        comment = build_pr_comment(
            pr,
            staging_base_url=settings.github.staging_base_url,
            include_testing=include_testing,
            inline_images=inline_images,
        )
        if comment is None:
            console.print(
                "[yellow]Warning:[/] No testing information or screenshots found in PR description"
            )
            return 0

        if not yes:
            console.print(Panel(Text(comment), title="Comment preview", expand=False))
            if not confirm("Post this comment to the card?", console=console):
                console.print("Aborted. Nothing was posted.")
                return 0

        with TrelloClient(config=settings.trello) as trello:
            try:
                trello.add_comment(card_id, comment)
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 404:
                    console.print(f"[red]Error:[/] Card not found: {card_id}")
                    return 1
                raise
            console.print("[green]✓[/] Added testing information to the card")

            question = f'Move card to "{settings.trello.review_list_name}" and mark complete?'
            if review or (not yes and confirm(question, console=console)):
                try:
                    list_id = resolve_list_id(
                        trello,
                        settings.trello,
                        list_id=settings.trello.review_list_id,
                        list_name=settings.trello.review_list_name,
                        what="review",
                    )
                    trello.move_card_to_list(card_id, list_id)
                    trello.set_card_due_complete(card_id, True)
                    console.print("[green]✓[/] Moved to review and marked complete")
                except (ConfigError, httpx.HTTPError) as e:
                    logger.warning("Could not move card %s to review: %s", card_id, e)
                    console.print(f"[red]Failed:[/] {e}")
                    return 1
            else:
                console.print("[dim]No state changes made.[/]")
    except (ConfigError, httpx.HTTPError) as e:
        print_error(e)
        return 1

    return 0


@dataclass
class LinkedPR:
    """A pull request referenced from one or more rejected cards."""

    ref: PullRequestRef
    cards: list[Card] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)


def rejection_message(cards: list[Card]) -> str:
    parts = []
    for card in cards:
        if card.date_last_activity:
            activity = f"last activity {to_trello_datetime(card.date_last_activity)}"
        else:
            activity = "last activity unknown"
        parts.append(f"{card.name} ({card.link}) [{activity}]")
    return f"Marked as rejected per Trello card(s): {', '.join(parts)}"


def collect_linked_prs(trello: TrelloClient, cards: list[Card]) -> list[LinkedPR]:
    """Map PR links found in card comments to the cards that mention them."""
    linked: dict[str, LinkedPR] = {}
    for card in cards:
        text = "\n".join(action.text for action in trello.get_card_comments(card.id))
        for ref in extract_pr_links(text):
            linked.setdefault(ref.key, LinkedPR(ref=ref)).cards.append(card)
    return list(linked.values())


def cmd_sync_rejected(*, dry_run: bool = False) -> int:
    """Label and comment my PRs that are linked from my cards in rejected lists."""
    console.print(Panel("[bold blue]cardflow sync-rejected[/]", expand=False))
    failures = 0

    try:
        settings = load_config()
        board_id = settings.trello.require_board_id()
        label = settings.github.rejected_label

        with (
            TrelloClient(config=settings.trello) as trello,
            GitHubClient(config=settings.github) as github,
        ):
            me = trello.get_me()
            console.print(f"[dim]Board user: {me.username or me.display_name}[/]")

            lists = [
                lst for lst in trello.get_board_lists(board_id) if "rejected" in lst.name.lower()
            ]
            cards = [
                c
                for c in trello.get_cards_in_lists((lst.id for lst in lists), REJECTED_CARD_FIELDS)
                if me.id in c.member_ids
            ]
            if not cards:
                console.print("No cards assigned to you found in rejected lists.")
                return 0

            login = github.get_authenticated_user()
            console.print(f"[dim]GitHub user: {login}[/]")

            mine: list[LinkedPR] = []
            for linked in collect_linked_prs(trello, cards):
                ref = linked.ref
                try:
                    pr = github.get_pull_request(ref.owner, ref.repo, ref.number)
                except httpx.HTTPError as e:
                    logger.warning("Could not fetch PR %s: %s", ref.key, e)
                    console.print(f"[yellow]Warning:[/] Could not fetch PR {ref.key}: {e}")
                    continue
                if pr.author == login:
                    linked.labels = pr.labels
                    mine.append(linked)

            if not mine:
                console.print("No pull requests authored by you linked from rejected cards.")
                return 0

            console.print("\nFound PRs to mark as rejected:")
            for linked in mine:
                summaries = ", ".join(f"{c.name} ({c.link})" for c in linked.cards)
                console.print(f"  {linked.ref.key} <= {summaries}")

            if dry_run:
                console.print("\n[yellow]Dry run - no changes made[/]")
                return 0

            for linked in mine:
                ref = linked.ref
                message = rejection_message(linked.cards)
                try:
                    label_added = False
                    if label not in linked.labels:
                        github.add_labels(ref.owner, ref.repo, ref.number, [label])
                        label_added = True

                    existing = github.list_issue_comments(ref.owner, ref.repo, ref.number)
                    comment_added = False
                    if not any(c.get("body") == message for c in existing):
                        github.create_issue_comment(ref.owner, ref.repo, ref.number, message)
                        comment_added = True
                except httpx.HTTPError as e:
                    failures += 1
                    logger.error("Failed to mark %s as rejected: %s", ref.key, e)
                    print_error(e)
                    continue

                console.print(
                    f"[green]✓[/] {ref.key}: "
                    f"{f'label {label!r} added' if label_added else 'label already present'}; "
                    f"{'comment posted' if comment_added else 'comment already present'}"
                )
    except (ConfigError, httpx.HTTPError) as e:
        print_error(e)
        return 1

    return 1 if failures else 0
