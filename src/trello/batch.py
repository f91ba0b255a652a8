"""Confirm-then-mutate loop shared by the card update commands.

Items are processed one at a time. A failed remote mutation is logged and
recorded, and the loop moves on to the next item.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import TypeVar

import httpx
from rich.console import Console

from src.utils.prompt import confirm

logger = logging.getLogger(__name__)

T = TypeVar("T")

SLOT_START = time(9, 0)
SLOT_STEP = timedelta(minutes=15)


@dataclass
class BatchResult:
    """Outcome counts of a batch run."""

    confirmed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def summary(self) -> str:
        return f"Updated: {self.confirmed}  Skipped: {self.skipped}  Failed: {self.failed}"


def run_batch(
    items: Iterable[T],
    *,
    question: Callable[[T], str],
    apply: Callable[[T], object],
    label: Callable[[T], str] = str,
    assume_yes: bool = False,
    console: Console | None = None,
) -> BatchResult:
    """Prompt for and apply a mutation to each item in turn.

    Args:
        items: Items to process, in order
        question: Builds the confirmation question for an item
        apply: Performs the mutation for a confirmed item
        label: Short description of an item for error messages
        assume_yes: Confirm every item without prompting
        console: Console used for prompting and progress output

    Returns:
        BatchResult with confirmed/skipped/failed counts
    """
    result = BatchResult()
    for item in items:
        if not confirm(question(item), assume_yes=assume_yes, console=console):
            result.skipped += 1
            continue

        try:
            apply(item)
        except httpx.HTTPError as e:
            logger.error("Failed to update %s: %s", label(item), e)
            result.failed += 1
            result.errors.append(f"{label(item)}: {e}")
            if console is not None:
                console.print(f"[red]Failed:[/] {label(item)}: {e}")
            continue

        result.confirmed += 1
        if console is not None:
            console.print(f"[green]✓[/] {label(item)}")

    return result


def first_due_slot(now: datetime, start: time = SLOT_START) -> datetime:
    """Today at ``start``, or the next 5-minute boundary if that time has passed."""
    slot = now.replace(hour=start.hour, minute=start.minute, second=0, microsecond=0)
    if slot >= now:
        return slot

    minutes = now.minute + (1 if now.second or now.microsecond else 0)
    rounded = -(-minutes // 5) * 5
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(minutes=rounded)


class DueSlotClock:
    """Hands out staggered due times, one step apart, starting at the first slot."""

    def __init__(self, now: datetime, step: timedelta = SLOT_STEP):
        self.current = first_due_slot(now)
        self.step = step

    def advance(self) -> datetime:
        self.current = self.current + self.step
        return self.current
