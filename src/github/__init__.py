"""Source-control (GitHub) API client."""

from src.github.client import GitHubClient, PullRequest

__all__ = ["GitHubClient", "PullRequest"]
