"""CLI entry point for cardflow.

Usage:
    python -m src due-today --dry-run
    python -m src pr-to-card https://github.com/acme/web/pull/42

Or via the installed command:
    cardflow due-today                     # Move my overdue Doing cards to today
    cardflow review-week --week            # Close out this week's cards
    cardflow create-card "Fix login" -d @notes.md
    cardflow pr-to-card 42 acme/web --review
    cardflow enhance --list                # Show recent cards with short descriptions
    cardflow daily-report && cardflow post-report
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

# Set default log level to WARNING before importing SDK (reduces verbose output)
# Users can override with LOG_LEVEL=INFO or LOG_LEVEL=DEBUG
if "LOG_LEVEL" not in os.environ:
    os.environ["LOG_LEVEL"] = "WARNING"

from dotenv import load_dotenv
from rich.logging import RichHandler

from src._version import get_full_version_string
from src.commands import console
from src.commands.cards import (
    cmd_branch_name,
    cmd_create_card,
    cmd_due_today,
    cmd_review_week,
    cmd_set_state,
)
from src.commands.configure import cmd_config
from src.commands.enhance import cmd_enhance
from src.commands.export import cmd_export
from src.commands.plugins import cmd_inspect, cmd_watch
from src.commands.pr import cmd_pr_to_card, cmd_sync_rejected
from src.commands.reports import cmd_activity_report, cmd_daily_report, cmd_post_report
from src.llm import MERGE_MODES
from src.utils.github import parse_pr_reference

EXIT_INTERRUPTED = 130


def configure_logging() -> None:
    level = os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def _bool_arg(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("true", "yes", "1", "on"):
        return True
    if lowered in ("false", "no", "0", "off"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cardflow",
        description="cardflow - Trello workflow automation for developers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Configuration:
  Credentials come from the environment or a .env file:
    TRELLO_API_KEY, TRELLO_TOKEN, TRELLO_BOARD_ID
    GITHUB_TOKEN, MATTERMOST_URL, MATTERMOST_TOKEN, OPENROUTER_API_KEY
  Other settings can be persisted in ~/.cardflow/config.toml:
    cardflow config set trello.review_list_name "Code Review"
""",
    )
    parser.add_argument("--version", "-V", action="store_true", help="Show version and exit")

    subparsers = parser.add_subparsers(dest="command")

    due_parser = subparsers.add_parser(
        "due-today",
        help="Move overdue due dates of my Doing cards to today",
    )
    due_parser.add_argument("--dry-run", "-n", action="store_true", help="Preview only")
    due_parser.add_argument("--yes", "-y", action="store_true", help="Confirm every card")

    review_parser = subparsers.add_parser(
        "review-week",
        help="Mark my recently due cards complete",
    )
    review_parser.add_argument(
        "--days",
        type=int,
        default=4,
        help="Look back this many days, including today (default: 4)",
    )
    review_parser.add_argument(
        "--week",
        action="store_true",
        help="Use the current Monday-Sunday week instead of --days",
    )
    review_parser.add_argument(
        "--all",
        dest="include_all",
        action="store_true",
        help="Include cards assigned to any member",
    )
    review_parser.add_argument("--dry-run", "-n", action="store_true", help="Preview only")
    review_parser.add_argument("--yes", "-y", action="store_true", help="Confirm every card")

    create_parser = subparsers.add_parser("create-card", help="Create a card due today at noon")
    create_parser.add_argument("title", help="Card title")
    create_parser.add_argument(
        "--description",
        "-d",
        default=None,
        help="Markdown description, or @path to read it from a file",
    )
    create_parser.add_argument("--list-id", default=None, help="Target list id")
    create_parser.add_argument("--list-name", default=None, help="Target list name")
    create_parser.add_argument("--dry-run", "-n", action="store_true", help="Preview only")
    create_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")

    state_parser = subparsers.add_parser(
        "set-state",
        help="Move a card to review/rejected and/or set its due-complete flag",
    )
    state_parser.add_argument("card", help="Card URL or id")
    state_parser.add_argument("--to", choices=["review", "rejected"], default=None)
    state_parser.add_argument("--complete", type=_bool_arg, default=None, metavar="true|false")
    state_parser.add_argument("--dry-run", "-n", action="store_true", help="Preview only")
    state_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")

    branch_parser = subparsers.add_parser("branch-name", help="Print a git branch name for a card")
    branch_parser.add_argument("url", help="Card URL")

    pr_parser = subparsers.add_parser(
        "pr-to-card",
        help="Post a PR's testing notes to its linked card",
    )
    pr_parser.add_argument(
        "pr",
        nargs="+",
        help="PR URL, or PR number followed by owner/repo",
    )
    pr_parser.add_argument(
        "--no-test",
        dest="include_testing",
        action="store_false",
        help="Leave the testing notes out of the comment",
    )
    pr_parser.add_argument(
        "--inline",
        action="store_true",
        help="Embed screenshots as images instead of links",
    )
    pr_parser.add_argument("--yes", "-y", action="store_true", help="Post without previewing")
    pr_parser.add_argument(
        "--review",
        action="store_true",
        help="Move the card to review and mark it complete without asking",
    )

    rejected_parser = subparsers.add_parser(
        "sync-rejected",
        help="Label my PRs linked from rejected cards",
    )
    rejected_parser.add_argument("--dry-run", "-n", action="store_true", help="Preview only")

    export_parser = subparsers.add_parser("export", help="Export a card to a local folder")
    export_parser.add_argument("url", help="Card URL or id")
    export_parser.add_argument(
        "--output-dir",
        "-o",
        type=Path,
        default=None,
        help="Parent directory for the export (default: current directory)",
    )

    enhance_parser = subparsers.add_parser(
        "enhance",
        help="Suggest better descriptions for my recent cards",
    )
    enhance_parser.add_argument(
        "--hours", type=float, default=48, help="Look-back window (default: 48)"
    )
    enhance_parser.add_argument(
        "--min-desc-chars",
        type=int,
        default=60,
        help="Descriptions at least this long are left alone (default: 60)",
    )
    enhance_parser.add_argument("--model", default=None, help="LLM model (default: LLM_MODEL)")
    enhance_parser.add_argument(
        "--max-cards", type=int, default=15, help="Cap on cards (default: 15)"
    )
    enhance_parser.add_argument("--apply", action="store_true", help="Write accepted changes")
    enhance_parser.add_argument(
        "--no-title",
        dest="title",
        action="store_false",
        help="Do not offer title suggestions",
    )
    enhance_parser.add_argument("--force", action="store_true", help="Ignore cached decisions")
    enhance_parser.add_argument(
        "--list",
        dest="list_only",
        action="store_true",
        help="Only list candidate cards",
    )
    enhance_parser.add_argument(
        "--merge",
        choices=MERGE_MODES,
        default="prepend",
        help="How the suggestion is combined with the current description",
    )
    enhance_parser.add_argument("--cache-file", type=Path, default=None, help="Decision cache path")

    activity_parser = subparsers.add_parser(
        "activity-report",
        help="Report my card interactions in a rolling window",
    )
    activity_parser.add_argument(
        "--hours", type=float, default=30, help="Window size (default: 30)"
    )

    daily_parser = subparsers.add_parser(
        "daily-report",
        help="Build the markdown time-tracking report",
    )
    daily_parser.add_argument(
        "--entries",
        dest="entries_file",
        type=Path,
        default=None,
        help="Exported time entries JSON (default: today.json)",
    )
    daily_parser.add_argument("--hours", type=float, default=30, help="Window size (default: 30)")

    post_parser = subparsers.add_parser(
        "post-report", help="Post a daily report to the chat channel"
    )
    post_parser.add_argument(
        "report_file",
        type=Path,
        nargs="?",
        default=None,
        help="Report markdown (default: this hour's daily report)",
    )
    post_parser.add_argument(
        "--channel", default=None, help="Channel id (default: MATTERMOST_CHANNEL_ID)"
    )
    post_parser.add_argument("--dry-run", "-n", action="store_true", help="Preview only")
    post_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")

    inspect_parser = subparsers.add_parser("inspect", help="Dump plugin data for a card or board")
    target = inspect_parser.add_mutually_exclusive_group()
    target.add_argument("--card", default=None, help="Card URL or id")
    target.add_argument(
        "--board",
        nargs="?",
        const="",
        default=None,
        help="Board id (default: TRELLO_BOARD_ID)",
    )
    inspect_parser.add_argument(
        "--limit", type=int, default=50, help="Board cards to show (default: 50)"
    )
    inspect_parser.add_argument(
        "--output-dir", type=Path, default=None, help="Where JSON is written"
    )

    watch_parser = subparsers.add_parser("watch", help="Poll a card and print plugin-data changes")
    watch_parser.add_argument("--card", required=True, help="Card URL or id")
    watch_parser.add_argument(
        "--interval", type=int, default=5, help="Seconds between polls (default: 5)"
    )

    config_parser = subparsers.add_parser("config", help="Show or change configuration")
    config_parser.add_argument(
        "action",
        nargs="?",
        choices=["set", "clear-api-logs"],
        default=None,
        help="Show configuration when omitted",
    )
    config_parser.add_argument("key", nargs="?", default=None, help="SECTION.KEY for set")
    config_parser.add_argument("value", nargs="?", default=None, help="Value for set")

    return parser


def dispatch(args: argparse.Namespace) -> int:
    if args.command == "due-today":
        return cmd_due_today(dry_run=args.dry_run, yes=args.yes)

    if args.command == "review-week":
        return cmd_review_week(
            days=args.days,
            week=args.week,
            include_all=args.include_all,
            dry_run=args.dry_run,
            yes=args.yes,
        )

    if args.command == "create-card":
        return cmd_create_card(
            args.title,
            args.description,
            list_id=args.list_id,
            list_name=args.list_name,
            dry_run=args.dry_run,
            yes=args.yes,
        )

    if args.command == "set-state":
        return cmd_set_state(
            args.card,
            to=args.to,
            complete=args.complete,
            dry_run=args.dry_run,
            yes=args.yes,
        )

    if args.command == "branch-name":
        return cmd_branch_name(args.url)

    if args.command == "pr-to-card":
        ref = parse_pr_reference(args.pr)
        if ref is None:
            console.print("[red]Error:[/] Expected a PR URL, or a PR number followed by owner/repo")
            return 1
        return cmd_pr_to_card(
            ref,
            include_testing=args.include_testing,
            inline_images=args.inline,
            yes=args.yes,
            review=args.review,
        )

    if args.command == "sync-rejected":
        return cmd_sync_rejected(dry_run=args.dry_run)

    if args.command == "export":
        return cmd_export(args.url, output_dir=args.output_dir)

    if args.command == "enhance":
        return cmd_enhance(
            hours=args.hours,
            min_desc_chars=args.min_desc_chars,
            model=args.model,
            max_cards=args.max_cards,
            apply=args.apply,
            title=args.title,
            force=args.force,
            list_only=args.list_only,
            merge=args.merge,
            cache_file=args.cache_file,
        )

    if args.command == "activity-report":
        return cmd_activity_report(hours=args.hours)

    if args.command == "daily-report":
        return cmd_daily_report(entries_file=args.entries_file, hours=args.hours)

    if args.command == "post-report":
        return cmd_post_report(
            args.report_file,
            channel=args.channel,
            dry_run=args.dry_run,
            yes=args.yes,
        )

    if args.command == "inspect":
        return cmd_inspect(
            card=args.card,
            board=args.board or None,
            limit=args.limit,
            output_dir=args.output_dir,
        )

    if args.command == "watch":
        return cmd_watch(args.card, interval=args.interval)

    if args.command == "config":
        return cmd_config(action=args.action, key=args.key, value=args.value)

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    load_dotenv()
    configure_logging()

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(get_full_version_string())
        return 0
    if not args.command:
        parser.print_usage(sys.stderr)
        console.print("[red]Error:[/] a command is required")
        return 2

    try:
        return dispatch(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/]")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
