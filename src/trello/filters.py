"""Card selection and time-window helpers.

Two kinds of window are used on purpose: card review works on calendar
days (local time), while the activity reports use a rolling number of
hours back from now.
"""

from collections.abc import Iterable
from datetime import datetime, time, timedelta

from src.trello.models import Card


def _local(value: datetime) -> datetime:
    """Convert to local time; naive values are assumed to be local already."""
    return value.astimezone()


def is_past_due_but_not_today(due: datetime | None, now: datetime) -> bool:
    """True when ``due`` falls on a calendar day strictly before today."""
    if due is None:
        return False
    return _local(due).date() < _local(now).date()


def is_older_than(due: datetime | None, now: datetime, days: int) -> bool:
    """True when ``due`` is more than ``days`` calendar days before today."""
    if due is None:
        return False
    return (_local(now).date() - _local(due).date()).days > days


def start_of_day(value: datetime) -> datetime:
    local = _local(value)
    return datetime.combine(local.date(), time.min, tzinfo=local.tzinfo)


def end_of_day(value: datetime) -> datetime:
    local = _local(value)
    return datetime.combine(local.date(), time.max, tzinfo=local.tzinfo)


def last_n_days_window(now: datetime, days: int) -> tuple[datetime, datetime]:
    """Start of the day ``days`` ago (at least one) through the end of today."""
    return start_of_day(now - timedelta(days=max(1, days))), end_of_day(now)


def week_range(now: datetime) -> tuple[datetime, datetime]:
    """Monday 00:00 through Sunday 23:59:59.999999 of the current week."""
    monday = start_of_day(now) - timedelta(days=_local(now).weekday())
    sunday = end_of_day(monday + timedelta(days=6))
    return monday, sunday


def rolling_cutoff(now: datetime, hours: float) -> datetime:
    return now - timedelta(hours=hours)


def in_window(ts: datetime | None, start: datetime, end: datetime) -> bool:
    """Inclusive bounds check; a missing timestamp is never in the window."""
    if ts is None:
        return False
    return start <= ts <= end


def is_assigned_to(card: Card, member_id: str) -> bool:
    return member_id in card.member_ids or any(m.id == member_id for m in card.members)


def _matches_any(value: str, patterns: Iterable[str]) -> bool:
    lowered = (value or "").lower()
    return any(p.lower() in lowered for p in patterns if p)


def is_blacklisted(name: str, patterns: Iterable[str]) -> bool:
    """True when the card name contains any pattern (case-insensitive)."""
    return _matches_any(name, patterns)


def is_done_list(name: str, patterns: Iterable[str]) -> bool:
    """True when the list name contains any of the "done" patterns."""
    return _matches_any(name, patterns)


def sort_by_timestamp(
    cards: Iterable[Card], attr: str = "date_last_activity", *, newest_first: bool = True
) -> list[Card]:
    """Stable sort by a datetime attribute; cards without one go last."""
    items = list(cards)
    dated = [c for c in items if getattr(c, attr) is not None]
    undated = [c for c in items if getattr(c, attr) is None]
    dated.sort(key=lambda c: getattr(c, attr), reverse=newest_first)
    return dated + undated
