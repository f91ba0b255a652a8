"""GitHub REST API interactions for pull requests."""

import logging
from dataclasses import dataclass, field

import httpx

from src.config import GitHubConfig, load_config
from src.trello.api_logging import create_logging_client

logger = logging.getLogger(__name__)


@dataclass
class PullRequest:
    """Pull request fields used by the card workflows."""

    number: int
    title: str
    body: str
    html_url: str
    author: str
    labels: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "PullRequest":
        return cls(
            number=data["number"],
            title=data.get("title") or "",
            body=data.get("body") or "",
            html_url=data.get("html_url") or "",
            author=(data.get("user") or {}).get("login", ""),
            labels=[lbl.get("name", "") for lbl in data.get("labels") or []],
        )


class GitHubClient:
    """Client for GitHub API interactions."""

    REST_BASE = "https://api.github.com"

    def __init__(
        self,
        token: str | None = None,
        *,
        config: GitHubConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize client with a GitHub token.

        Raises:
            ConfigError: If no token is given or configured.
        """
        self.token = token or (config or load_config().github).require_token()
        self._client = create_logging_client(
            headers={
                "Authorization": f"Bearer {self.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=30.0,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def get_authenticated_user(self) -> str:
        """Get the authenticated user's login."""
        resp = self._client.get(f"{self.REST_BASE}/user")
        resp.raise_for_status()
        return resp.json()["login"]

    def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        """Fetch a pull request."""
        resp = self._client.get(f"{self.REST_BASE}/repos/{owner}/{repo}/pulls/{number}")
        resp.raise_for_status()
        return PullRequest.from_api(resp.json())

    def add_labels(self, owner: str, repo: str, number: int, labels: list[str]) -> list[str]:
        """Add labels to an issue or PR, returning the resulting label names."""
        resp = self._client.post(
            f"{self.REST_BASE}/repos/{owner}/{repo}/issues/{number}/labels",
            json={"labels": labels},
        )
        resp.raise_for_status()
        return [lbl.get("name", "") for lbl in resp.json()]

    def list_issue_comments(
        self, owner: str, repo: str, number: int, per_page: int = 100
    ) -> list[dict]:
        """Get the first page of comments on an issue or PR."""
        resp = self._client.get(
            f"{self.REST_BASE}/repos/{owner}/{repo}/issues/{number}/comments",
            params={"per_page": per_page},
        )
        resp.raise_for_status()
        return resp.json()

    def create_issue_comment(self, owner: str, repo: str, number: int, body: str) -> dict:
        """Post a comment on an issue or PR."""
        resp = self._client.post(
            f"{self.REST_BASE}/repos/{owner}/{repo}/issues/{number}/comments",
            json={"body": body},
        )
        resp.raise_for_status()
        logger.debug("Commented on %s/%s#%d", owner, repo, number)
        return resp.json()
