"""Parsing and grouping of tracked-time entries."""

import re
from dataclasses import dataclass

_NON_DURATION = re.compile(r"[^0-9hm]")
_HOURS = re.compile(r"(\d+)h")
_MINUTES = re.compile(r"(\d+)m")


@dataclass
class TimeEntry:
    """Total tracked minutes for one card name."""

    name: str
    minutes: int


def parse_duration(value) -> int:
    """Parse "1h 22m" style durations into minutes.

    Anything other than digits, ``h`` and ``m`` is dropped first, so
    invisible characters from copied text do not matter. Empty or non-string
    input yields 0.
    """
    if not isinstance(value, str) or not value:
        return 0
    cleaned = _NON_DURATION.sub("", value.lower())
    hours = _HOURS.search(cleaned)
    minutes = _MINUTES.search(cleaned)
    total = 0
    if hours:
        total += int(hours.group(1)) * 60
    if minutes:
        total += int(minutes.group(1))
    return total


def format_minutes(total: int) -> str:
    """Format minutes as "Xh Ym"."""
    hours, minutes = divmod(int(total), 60)
    return f"{hours}h {minutes}m"


def group_time_entries(entries: list[dict]) -> list[TimeEntry]:
    """Sum durations per unique name, keeping first-seen order."""
    grouped: dict[str, TimeEntry] = {}
    for entry in entries:
        name = (entry.get("name") or "").strip()
        if not name:
            continue
        minutes = parse_duration(entry.get("time"))
        if name in grouped:
            grouped[name].minutes += minutes
        else:
            grouped[name] = TimeEntry(name=name, minutes=minutes)
    return list(grouped.values())
