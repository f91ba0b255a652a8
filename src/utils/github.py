"""GitHub utility functions."""

import re
from dataclasses import dataclass

PR_URL_PATTERN = re.compile(r"^https?://github\.com/([^/]+)/([^/]+)/pull/(\d+)", re.IGNORECASE)
PR_LINK_PATTERN = re.compile(r"https?://github\.com/([^\s/]+)/([^\s/]+)/pull/(\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class PullRequestRef:
    """A pull request identified by repository and number."""

    owner: str
    repo: str
    number: int

    @property
    def repo_slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/pull/{self.number}"


def parse_pr_url(pr_url: str) -> PullRequestRef | None:
    """Parse a GitHub PR URL.

    Args:
        pr_url: GitHub PR URL (e.g., "https://github.com/owner/repo/pull/42")

    Returns:
        PullRequestRef, or None if the URL is not a PR URL
    """
    match = PR_URL_PATTERN.match((pr_url or "").strip())
    if not match:
        return None
    return PullRequestRef(match.group(1), match.group(2), int(match.group(3)))


def parse_pr_reference(args: list[str]) -> PullRequestRef | None:
    """Parse either ``[url]`` or ``[number, "owner/repo"]`` command arguments."""
    if len(args) == 1:
        return parse_pr_url(args[0])
    if len(args) == 2 and args[0].isdigit() and args[1].count("/") == 1:
        owner, repo = args[1].split("/")
        if owner and repo:
            return PullRequestRef(owner, repo, int(args[0]))
    return None


def extract_pr_links(text: str) -> list[PullRequestRef]:
    """Find every PR link in free text, deduplicated, in order of appearance."""
    refs: dict[str, PullRequestRef] = {}
    for match in PR_LINK_PATTERN.finditer(text or ""):
        ref = PullRequestRef(match.group(1), match.group(2), int(match.group(3)))
        refs.setdefault(ref.key, ref)
    return list(refs.values())
