"""Text extraction and formatting helpers for cards and pull requests.

The pull request description parsing is heuristic. It recognises the
usual "How to test" / "Notes" headings but makes no promises about
nested headings or unusual layouts.
"""

import re
import unicodedata
from dataclasses import dataclass, field

CARD_URL_PATTERN = re.compile(r"https?://(?:www\.)?trello\.com/c/[a-zA-Z0-9]+(?:/[^)\s]*)?")
CARD_ID_PATTERN = re.compile(r"/(?:c|cards?)/([a-zA-Z0-9]+)")

MARKDOWN_IMAGE = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
HTML_IMAGE = re.compile(
    r"<img[^>]+src=[\"']([^\"']+)[\"'][^>]*(?:alt=[\"']([^\"']*)[\"'])?[^>]*>",
    re.IGNORECASE,
)

TESTING_MARKERS = ("how to test", "testing", "test instructions", "to test")
NOTES_MARKERS = ("notes for me", "notes:")

STAGING_3002_BASE = "https://artlogic.m.staging.squidweb.org"

_URL_TAIL = r"((?:/[^(\s)\"]*)?[^\s)]*)?"
_LOCAL_3002_SCHEME = re.compile(
    r"(https?://)(localhost|127\.0\.0\.1):3002(?!\d)" + _URL_TAIL, re.IGNORECASE
)
_LOCAL_3002_BARE = re.compile(
    r"\b(localhost|127\.0\.0\.1):3002(?!\d)" + _URL_TAIL, re.IGNORECASE
)
_LOCAL_APP_SCHEME = re.compile(
    r"(https?://)(localhost|127\.0\.0\.1):(3000|8080)(?!\d)" + _URL_TAIL, re.IGNORECASE
)
_LOCAL_APP_BARE = re.compile(
    r"\b(localhost|127\.0\.0\.1):(3000|8080)(?!\d)" + _URL_TAIL, re.IGNORECASE
)


@dataclass
class Screenshot:
    url: str
    alt: str = "Screenshot"


@dataclass
class PRDescription:
    """What was extracted from a pull request body."""

    testing_info: str = ""
    screenshots: list[Screenshot] = field(default_factory=list)


def extract_card_url(text: str) -> str | None:
    """Return the first card URL in the text, if any."""
    match = CARD_URL_PATTERN.search(text or "")
    return match.group(0) if match else None


def extract_card_id(url_or_id: str) -> str:
    """Get the card id (or short link) from a card URL.

    Accepts ``/c/<id>``, ``/card/<id>`` and ``/cards/<id>`` forms. Anything
    else is assumed to already be an id and returned stripped.
    """
    value = (url_or_id or "").strip()
    match = CARD_ID_PATTERN.search(value)
    return match.group(1) if match else value


def _find_images(line: str) -> list[Screenshot]:
    images = [
        Screenshot(url=m.group(2), alt=m.group(1) or "Screenshot")
        for m in MARKDOWN_IMAGE.finditer(line)
    ]
    images.extend(
        Screenshot(url=m.group(1), alt=m.group(2) or "Screenshot")
        for m in HTML_IMAGE.finditer(line)
    )
    return images


def parse_pr_description(body: str | None) -> PRDescription:
    """Pull the testing instructions and screenshots out of a PR body.

    A line mentioning one of the testing markers opens the testing section
    (the heading itself is dropped). The section ends at the next ``#``
    heading that does not mention "test". Lines in a notes section are
    ignored entirely, images included.
    """
    testing: list[str] = []
    screenshots: list[Screenshot] = []
    in_testing = False
    in_notes = False

    for raw in (body or "").split("\n"):
        line = raw.strip()
        lower = line.lower()

        if any(marker in lower for marker in NOTES_MARKERS):
            in_notes = True
            in_testing = False
            continue

        if any(marker in lower for marker in TESTING_MARKERS):
            in_testing = True
            in_notes = False
            continue

        if line.startswith("#") and in_testing and "test" not in lower:
            in_testing = False

        if in_notes:
            continue

        if in_testing and line:
            testing.append(line)

        screenshots.extend(_find_images(line))

    return PRDescription(testing_info="\n".join(testing).strip(), screenshots=screenshots)


def sanitize_testing_info(text: str) -> str:
    """Strip HTML and markdown images from testing notes and tidy blank lines."""
    if not text:
        return text
    out = re.sub(r"<img[^>]*>", "", text, flags=re.IGNORECASE)
    out = re.sub(r"<[^>]+>", "", out)
    out = re.sub(r"!\[[^\]]*\]\([^)]+\)", "", out)

    lines: list[str] = []
    for line in out.split("\n"):
        line = line.rstrip()
        if not line.strip() and lines and not lines[-1].strip():
            continue
        lines.append(line)
    return "\n".join(lines).strip()


def replace_localhost_urls(text: str, base_url: str | None) -> str:
    """Point local development links at a deployed environment.

    Port 3002 always maps to the fixed staging host. Ports 3000 and 8080
    map to ``base_url`` when one is given. Paths and query strings are kept;
    other ports are left alone.
    """
    if not text:
        return text

    text = _LOCAL_3002_SCHEME.sub(lambda m: STAGING_3002_BASE + (m.group(3) or ""), text)
    text = _LOCAL_3002_BARE.sub(lambda m: STAGING_3002_BASE + (m.group(2) or ""), text)

    if not base_url:
        return text

    base = base_url.rstrip("/")
    text = _LOCAL_APP_SCHEME.sub(lambda m: base + (m.group(4) or ""), text)
    text = _LOCAL_APP_BARE.sub(lambda m: base + (m.group(3) or ""), text)
    return text


def format_pr_comment(
    pr,
    testing_info: str,
    screenshots: list[Screenshot],
    *,
    include_testing: bool = True,
    links_only: bool = True,
) -> str:
    """Build the card comment for a pull request.

    Args:
        pr: Object with ``number``, ``title`` and ``html_url``
        testing_info: Sanitized testing instructions
        screenshots: Images found in the description
        include_testing: Add the "How to test" block when there is one
        links_only: List screenshot URLs instead of inline images
    """
    comment = "Converted from GitHub PR (autogenerated)\n\n"
    comment += f"PR #{pr.number}: {pr.title}\n"
    comment += f"PR: {pr.html_url}\n\n"

    if include_testing and testing_info:
        comment += f"How to test:\n{testing_info}\n\n"

    if screenshots:
        comment += "Screenshots:\n"
        for shot in screenshots:
            if links_only:
                comment += f"- {shot.url}\n"
            else:
                comment += f"![{shot.alt or 'Screenshot'}]({shot.url})\n"
                comment += f"<{shot.url}>\n"
        comment += "\n"

    comment += f"---\nAutomatically added from GitHub PR #{pr.number}"
    return comment


def slugify(name: str) -> str:
    """Lowercase, ASCII-only, dash-separated form of a card name."""
    text = unicodedata.normalize("NFKD", (name or "").lower())
    text = re.sub(r"[^a-z0-9\s-]", "", text).strip()
    text = re.sub(r"[\s_-]+", "-", text)
    return text.strip("-")


def sanitize_filename(name: str, max_length: int = 100) -> str:
    """Make a card name safe to use as a directory or file name."""
    out = re.sub(r'[<>:"/\\|?*]', "_", name or "")
    out = re.sub(r"\s+", "_", out)
    out = re.sub(r"_+", "_", out)
    return out[:max_length]
