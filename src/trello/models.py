"""Data models for the board service."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import PurePosixPath
from urllib.parse import urlparse

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".svg"}


def parse_trello_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp as returned by the API ("2024-08-05T12:00:00.000Z")."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def to_trello_datetime(value: datetime) -> str:
    """Format a datetime the way the API returns them (UTC, milliseconds, Z suffix)."""
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def id_to_datetime(object_id: str | None) -> datetime | None:
    """Decode the creation time embedded in an object id.

    Ids are Mongo-style: the first 8 hex digits are seconds since the epoch.
    """
    if not object_id or len(object_id) < 8:
        return None
    try:
        seconds = int(object_id[:8], 16)
    except ValueError:
        return None
    return datetime.fromtimestamp(seconds, tz=UTC)


@dataclass
class Member:
    """A board member (usually the authenticated user)."""

    id: str
    username: str = ""
    full_name: str = ""

    @property
    def display_name(self) -> str:
        return self.full_name or self.username or self.id

    @classmethod
    def from_api(cls, data: dict) -> "Member":
        return cls(
            id=data["id"],
            username=data.get("username") or "",
            full_name=data.get("fullName") or "",
        )


@dataclass
class TrelloList:
    """A named column of cards on a board."""

    id: str
    name: str
    closed: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "TrelloList":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            closed=bool(data.get("closed", False)),
        )


@dataclass
class Card:
    """A unit of work on the board.

    Only the fields present in the requested projection are populated; the
    full payload is kept in ``raw``.
    """

    id: str
    name: str = ""
    desc: str = ""
    url: str = ""
    short_url: str = ""
    due: datetime | None = None
    due_complete: bool = False
    closed: bool = False
    list_id: str | None = None
    member_ids: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)
    date_last_activity: datetime | None = None
    id_short: int | None = None
    plugin_data: list[dict] = field(default_factory=list)
    custom_field_items: list[dict] = field(default_factory=list)
    members: list[Member] = field(default_factory=list)
    raw: dict = field(default_factory=dict, repr=False)

    @property
    def link(self) -> str:
        """Short URL when available, falling back to the full URL."""
        return self.short_url or self.url

    @property
    def created_at(self) -> datetime | None:
        return id_to_datetime(self.id)

    @classmethod
    def from_api(cls, data: dict) -> "Card":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            desc=data.get("desc") or "",
            url=data.get("url") or "",
            short_url=data.get("shortUrl") or "",
            due=parse_trello_datetime(data.get("due")),
            due_complete=bool(data.get("dueComplete", False)),
            closed=bool(data.get("closed", False)),
            list_id=data.get("idList"),
            member_ids=list(data.get("idMembers") or []),
            labels=[
                lbl.get("name", "") for lbl in data.get("labels") or [] if isinstance(lbl, dict)
            ],
            date_last_activity=parse_trello_datetime(data.get("dateLastActivity")),
            id_short=data.get("idShort"),
            plugin_data=list(data.get("pluginData") or []),
            custom_field_items=list(data.get("customFieldItems") or []),
            members=[Member.from_api(m) for m in data.get("members") or []],
            raw=data,
        )


@dataclass
class Attachment:
    """A file or link attached to a card."""

    id: str
    name: str = ""
    url: str = ""
    file_name: str | None = None
    mime_type: str | None = None
    preview_urls: list[str] = field(default_factory=list)

    @property
    def source_url(self) -> str:
        return self.url or (self.preview_urls[0] if self.preview_urls else "")

    @property
    def extension(self) -> str:
        return PurePosixPath(urlparse(self.source_url.lower()).path).suffix

    @property
    def is_image(self) -> bool:
        if self.extension in IMAGE_EXTENSIONS:
            return True
        return bool(self.mime_type and self.mime_type.startswith("image/"))

    @classmethod
    def from_api(cls, data: dict) -> "Attachment":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            url=data.get("url") or "",
            file_name=data.get("fileName"),
            mime_type=data.get("mimeType"),
            preview_urls=[p["url"] for p in data.get("previews") or [] if p.get("url")],
        )


@dataclass
class CheckItem:
    name: str
    complete: bool = False


@dataclass
class Checklist:
    """A named checklist on a card."""

    id: str
    name: str
    items: list[CheckItem] = field(default_factory=list)

    @property
    def completed_count(self) -> int:
        return sum(1 for item in self.items if item.complete)

    @classmethod
    def from_api(cls, data: dict) -> "Checklist":
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            items=[
                CheckItem(name=item.get("name", ""), complete=item.get("state") == "complete")
                for item in data.get("checkItems") or []
            ],
        )


@dataclass
class Action:
    """An entry in a card's or board's history (comments are ``commentCard`` actions)."""

    id: str
    type: str
    date: datetime | None = None
    member_creator_id: str | None = None
    author: str = "Unknown"
    data: dict = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.data.get("text") or ""

    @property
    def card_id(self) -> str | None:
        return (self.data.get("card") or {}).get("id")

    @classmethod
    def from_api(cls, data: dict) -> "Action":
        creator = data.get("memberCreator") or {}
        return cls(
            id=data.get("id", ""),
            type=data.get("type", ""),
            date=parse_trello_datetime(data.get("date")),
            member_creator_id=data.get("idMemberCreator") or creator.get("id"),
            author=creator.get("fullName") or creator.get("username") or "Unknown",
            data=data.get("data") or {},
        )
