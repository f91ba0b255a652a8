"""Mattermost REST API client for posting reports to a channel.

API reference:
  - POST /api/v4/posts  create a post (up to 16,383 chars)
  - POST /api/v4/files  upload files for attaching to a post
  - Authorization: Bearer TOKEN
"""

import logging
from pathlib import Path

import httpx

from src.config import ConfigError, MattermostConfig, load_config
from src.trello.api_logging import create_logging_client

logger = logging.getLogger(__name__)

MAX_MESSAGE_CHARS = 16383
CLIP_SUFFIX = "... (message clipped)"


def clip_message(text: str, limit: int = MAX_MESSAGE_CHARS) -> str:
    """Shorten a message to fit the post size limit, marking the cut."""
    if len(text) <= limit:
        return text
    return text[: limit - len(CLIP_SUFFIX) - 1] + CLIP_SUFFIX


class MattermostClient:
    """Posts messages and files to one channel."""

    TIMEOUT = 30.0

    def __init__(
        self,
        url: str | None = None,
        token: str | None = None,
        channel_id: str | None = None,
        *,
        config: MattermostConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Raises:
            ConfigError: If the server URL, token or channel is missing.
        """
        config = config or load_config().mattermost
        url = url or config.url
        token = token or config.token
        MattermostConfig(url=url, token=token).ensure()

        self.channel_id = channel_id or config.channel_id
        if not self.channel_id:
            raise ConfigError(
                "No chat channel configured. Set MATTERMOST_CHANNEL_ID or pass --channel."
            )

        self.base_url = url.rstrip("/")
        self._client = create_logging_client(
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.TIMEOUT,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "MattermostClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def post_message(self, text: str, file_ids: list[str] | None = None) -> dict:
        """Create a post in the channel, clipping overly long text."""
        payload: dict = {"channel_id": self.channel_id, "message": clip_message(text)}
        if file_ids:
            payload["file_ids"] = file_ids

        resp = self._client.post(f"{self.base_url}/api/v4/posts", json=payload)
        resp.raise_for_status()
        logger.info("Posted message to channel %s", self.channel_id)
        return resp.json()

    def upload_file(self, path: Path) -> str:
        """Upload a file to the channel and return its file id.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found for upload: {path}")

        with open(path, "rb") as f:
            resp = self._client.post(
                f"{self.base_url}/api/v4/files",
                files={"files": (path.name, f)},
                data={"channel_id": self.channel_id},
                timeout=120.0,
            )
        resp.raise_for_status()
        file_id = resp.json()["file_infos"][0]["id"]
        logger.info("Uploaded %s as %s", path.name, file_id)
        return file_id
