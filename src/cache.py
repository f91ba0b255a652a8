"""JSON file caches.

- SnapshotCache: board lists and cards fetched within the same hour, so
  repeated report runs do not refetch the whole board.
- DecisionCache: per-card outcome of the description enhancer, keyed by
  card id, so unchanged cards are not offered again.

Both are written atomically and never evicted.
"""

import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

from src.config import atomic_write

logger = logging.getLogger(__name__)

DECISION_STATUSES = ("sufficient", "skipped", "applied", "dry-run", "error")


class CacheError(Exception):
    """Raised when a cache file exists but cannot be parsed."""


def content_hash(text: str | None) -> str:
    """Stable hash of a description, used to detect edits."""
    return hashlib.sha1((text or "").encode("utf-8")).hexdigest()


def _read_json(path: Path):
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise CacheError(f"Malformed cache file {path}: {e}") from e


def _write_json(path: Path, data) -> None:
    atomic_write(path, json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8"))


def _has_id(item) -> bool:
    return isinstance(item, dict) and bool(item.get("id"))


class SnapshotCache:
    """Hourly snapshot of a board's lists and cards."""

    def __init__(self, cache_dir: Path, now: datetime | None = None):
        stamp = (now or datetime.now()).strftime("%Y-%m-%d-%H")
        self.path = Path(cache_dir) / f"trello-summary-{stamp}.json"

    def load(self) -> dict | None:
        """Return ``{"lists": [...], "cards": [...]}`` or None when absent."""
        if not self.path.exists():
            return None
        data = _read_json(self.path)
        if not isinstance(data, dict) or "lists" not in data or "cards" not in data:
            raise CacheError(f"Unexpected snapshot format in {self.path}")
        for name in ("lists", "cards"):
            items = data[name]
            if not isinstance(items, list) or not all(_has_id(item) for item in items):
                raise CacheError(f"Unexpected {name} entries in snapshot {self.path}")
        logger.debug("Loaded snapshot from %s", self.path)
        return data

    def save(self, lists: list[dict], cards: list[dict]) -> None:
        _write_json(self.path, {"lists": lists, "cards": cards})
        logger.debug("Saved snapshot to %s", self.path)


@dataclass
class Decision:
    """Recorded enhancer outcome for one card."""

    status: str
    desc_hash: str
    updated_at: str
    error: str | None = None


class DecisionCache:
    """Per-card enhancer decisions persisted as a JSON object."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._entries: dict[str, Decision] = {}

    def load(self) -> "DecisionCache":
        if self.path.exists():
            data = _read_json(self.path)
            if not isinstance(data, dict) or not all(isinstance(e, dict) for e in data.values()):
                raise CacheError(f"Unexpected decision cache format in {self.path}")
            self._entries = {
                card_id: Decision(
                    status=entry.get("status", ""),
                    desc_hash=entry.get("desc_hash", ""),
                    updated_at=entry.get("updated_at", ""),
                    error=entry.get("error"),
                )
                for card_id, entry in data.items()
            }
        return self

    def save(self) -> None:
        data = {}
        for card_id, decision in self._entries.items():
            entry = asdict(decision)
            if entry["error"] is None:
                del entry["error"]
            data[card_id] = entry
        _write_json(self.path, data)

    def get(self, card_id: str) -> Decision | None:
        return self._entries.get(card_id)

    def record(self, card_id: str, status: str, desc_hash: str, error: str | None = None) -> None:
        if status not in DECISION_STATUSES:
            raise ValueError(f"Unknown decision status: {status}")
        self._entries[card_id] = Decision(
            status=status,
            desc_hash=desc_hash,
            updated_at=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            error=error,
        )

    def should_skip(self, card_id: str, desc_hash: str) -> bool:
        """True when the card was already applied or skipped and is unchanged."""
        decision = self.get(card_id)
        return (
            decision is not None
            and decision.status in ("applied", "skipped")
            and decision.desc_hash == desc_hash
        )
