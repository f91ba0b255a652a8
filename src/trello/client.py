"""Trello REST API client.

Every request carries the API key and token as query parameters. Errors
from the service are not translated: ``raise_for_status`` lets
``httpx.HTTPStatusError`` (with status and body) reach the caller.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path

import httpx

from src.config import TrelloConfig, load_config
from src.trello.api_logging import create_logging_client
from src.trello.models import (
    Action,
    Attachment,
    Card,
    Checklist,
    Member,
    TrelloList,
    to_trello_datetime,
)

logger = logging.getLogger(__name__)

LIST_CARD_FIELDS = ("name", "url", "due", "dueComplete", "closed", "idList", "idMembers")
BOARD_CARD_FIELDS = ("id", "name", "shortUrl", "dateLastActivity", "idMembers", "idList")
CARD_FIELDS = ("id", "name", "desc", "url", "due", "dueComplete", "idList", "idMembers", "labels")
PLUGIN_CARD_FIELDS = ("id", "name", "shortUrl", "idList", "dateLastActivity")


class TrelloClient:
    """Client for the Trello REST API."""

    BASE_URL = "https://api.trello.com/1"

    def __init__(
        self,
        api_key: str | None = None,
        token: str | None = None,
        *,
        config: TrelloConfig | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Credentials default to the loaded configuration (environment first).

        Raises:
            ConfigError: If the API key or token is missing.
        """
        if api_key is None or token is None:
            config = config or load_config().trello
            api_key = api_key or config.api_key
            token = token or config.token

        TrelloConfig(api_key=api_key, token=token).ensure()

        self._client = create_logging_client(
            base_url=self.BASE_URL,
            params={"key": api_key, "token": token},
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "TrelloClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _get(self, path: str, params: dict | None = None):
        resp = self._client.get(path, params=params)
        resp.raise_for_status()
        return resp.json()

    def _put(self, path: str, params: dict) -> dict:
        resp = self._client.put(path, params=params)
        resp.raise_for_status()
        return resp.json()

    def _post(self, path: str, params: dict) -> dict:
        resp = self._client.post(path, params=params)
        resp.raise_for_status()
        return resp.json()

    # Members

    def get_me(self) -> Member:
        """Get the authenticated member."""
        return Member.from_api(self._get("/members/me"))

    # Lists

    def get_board_lists(self, board_id: str, *, include_closed: bool = False) -> list[TrelloList]:
        """Get a board's lists, skipping closed ones unless requested."""
        data = self._get(f"/boards/{board_id}/lists", params={"cards": "none"})
        lists = [TrelloList.from_api(item) for item in data]
        if include_closed:
            return lists
        return [lst for lst in lists if not lst.closed]

    def get_list(self, list_id: str) -> TrelloList:
        return TrelloList.from_api(self._get(f"/lists/{list_id}"))

    def get_list_by_name(self, board_id: str, name: str) -> TrelloList | None:
        """Find an open list on a board by exact, case-insensitive name."""
        wanted = (name or "").lower()
        for lst in self.get_board_lists(board_id):
            if lst.name.lower() == wanted:
                return lst
        return None

    def get_list_name(self, board_id: str, list_id: str) -> str:
        """Resolve a list id to its name, or "Unknown"."""
        names = {lst.id: lst.name for lst in self.get_board_lists(board_id)}
        return names.get(list_id, "Unknown")

    # Cards

    def get_list_cards(self, list_id: str, fields: Sequence[str] = LIST_CARD_FIELDS) -> list[Card]:
        """Get the cards in a list with the given field projection."""
        data = self._get(f"/lists/{list_id}/cards", params={"fields": ",".join(fields)})
        return [Card.from_api(item) for item in data]

    def get_cards_in_lists(
        self, list_ids: Iterable[str], fields: Sequence[str] = LIST_CARD_FIELDS
    ) -> list[Card]:
        """Get cards from several lists, one request per list."""
        cards: list[Card] = []
        for list_id in list_ids:
            cards.extend(self.get_list_cards(list_id, fields))
        return cards

    def get_board_cards(
        self,
        board_id: str,
        fields: Sequence[str] = BOARD_CARD_FIELDS,
        extra_params: dict | None = None,
    ) -> list[Card]:
        """Get all open cards on a board.

        Args:
            board_id: Board id
            fields: Card field projection
            extra_params: Additional query parameters, e.g.
                ``{"members": "true", "member_fields": "id,fullName,username"}``
        """
        params = {"fields": ",".join(fields), **(extra_params or {})}
        data = self._get(f"/boards/{board_id}/cards", params=params)
        return [Card.from_api(item) for item in data]

    def get_board_cards_with_plugin_data(
        self, board_id: str, fields: Sequence[str] = PLUGIN_CARD_FIELDS
    ) -> list[Card]:
        """Get board cards including Power-Up plugin data and custom field items."""
        return self.get_board_cards(
            board_id,
            fields,
            {"pluginData": "true", "customFieldItems": "true"},
        )

    def get_board_actions(
        self,
        board_id: str,
        *,
        filter: str = "createCard",
        since: datetime | None = None,
        limit: int = 1000,
    ) -> list[Action]:
        """Get board history entries, optionally only those after ``since``."""
        params: dict = {"filter": filter, "limit": limit}
        if since:
            params["since"] = to_trello_datetime(since)
        data = self._get(f"/boards/{board_id}/actions", params=params)
        return [Action.from_api(item) for item in data]

    def get_card(self, card_id: str, fields: Sequence[str] = CARD_FIELDS) -> Card:
        """Get a single card with the given field projection."""
        return Card.from_api(self._get(f"/cards/{card_id}", params={"fields": ",".join(fields)}))

    def get_card_full(self, card_id: str, fields: Sequence[str] = ("all",)) -> Card:
        """Get a card including plugin data and custom field items."""
        params = {
            "fields": ",".join(fields),
            "pluginData": "true",
            "customFieldItems": "true",
        }
        return Card.from_api(self._get(f"/cards/{card_id}", params=params))

    def get_card_plugin_data(self, card_id: str) -> list[dict]:
        return list(self._get(f"/cards/{card_id}/pluginData"))

    def get_card_comments(self, card_id: str) -> list[Action]:
        return self.get_card_actions(card_id, filter="commentCard")

    def get_card_actions(
        self, card_id: str, *, filter: str = "all", limit: int = 1000
    ) -> list[Action]:
        data = self._get(f"/cards/{card_id}/actions", params={"filter": filter, "limit": limit})
        return [Action.from_api(item) for item in data]

    def get_card_attachments(self, card_id: str) -> list[Attachment]:
        return [Attachment.from_api(item) for item in self._get(f"/cards/{card_id}/attachments")]

    def get_card_checklists(self, card_id: str) -> list[Checklist]:
        return [Checklist.from_api(item) for item in self._get(f"/cards/{card_id}/checklists")]

    # Mutations

    def move_card_to_list(self, card_id: str, list_id: str) -> Card:
        return Card.from_api(self._put(f"/cards/{card_id}", {"idList": list_id}))

    def set_card_due_complete(self, card_id: str, due_complete: bool) -> Card:
        return Card.from_api(self._put(f"/cards/{card_id}", {"dueComplete": due_complete}))

    def update_card_due(self, card_id: str, due: datetime) -> Card:
        return Card.from_api(self._put(f"/cards/{card_id}", {"due": to_trello_datetime(due)}))

    def update_card(
        self, card_id: str, *, name: str | None = None, desc: str | None = None
    ) -> Card:
        """Update a card's title and/or description."""
        params = {}
        if name is not None:
            params["name"] = name
        if desc is not None:
            params["desc"] = desc
        return Card.from_api(self._put(f"/cards/{card_id}", params))

    def add_comment(self, card_id: str, text: str) -> Action:
        return Action.from_api(self._post(f"/cards/{card_id}/actions/comments", {"text": text}))

    def create_card(
        self,
        list_id: str,
        name: str,
        *,
        desc: str = "",
        due: datetime | None = None,
        member_ids: Sequence[str] = (),
    ) -> Card:
        """Create a card in a list."""
        params: dict = {"idList": list_id, "name": name, "desc": desc}
        if due:
            params["due"] = to_trello_datetime(due)
        if member_ids:
            params["idMembers"] = ",".join(member_ids)
        return Card.from_api(self._post("/cards", params))

    def add_attachment(self, card_id: str, url: str, name: str | None = None) -> Attachment:
        """Attach a URL to a card."""
        if not url:
            raise ValueError("Attachment url is required")
        params = {"url": url}
        if name:
            params["name"] = name
        return Attachment.from_api(self._post(f"/cards/{card_id}/attachments", params))

    def download_attachment(
        self, card_id: str, attachment_id: str, file_name: str, dest: Path
    ) -> Path:
        """Download an uploaded attachment through the API download endpoint.

        Using the API endpoint avoids trello.com cookie authentication.
        """
        path = f"/cards/{card_id}/attachments/{attachment_id}/download/{file_name}"
        with self._client.stream("GET", path, follow_redirects=True) as resp:
            resp.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in resp.iter_bytes():
                    f.write(chunk)
        logger.debug("Downloaded attachment %s to %s", attachment_id, dest)
        return dest
