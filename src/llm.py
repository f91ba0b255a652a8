"""Card description and title suggestions via an LLM.

Uses the OpenHands SDK LLM wrapper, so any model LiteLLM can route works.
The default is a free OpenRouter model.
"""

import logging

from openhands.sdk import LLM
from openhands.sdk.llm import Message, TextContent
from pydantic import SecretStr

from src.config import ConfigError, LLMConfig, load_config

logger = logging.getLogger(__name__)

DESCRIPTION_SYSTEM_PROMPT = (
    "You write clear, concise Trello card descriptions for software tasks. "
    "Keep it factual, actionable, and concise (120-220 words). "
    "Use markdown with short sections and bullet points when helpful."
)

DESCRIPTION_USER_PROMPT = """Title: {title}
List: {list_name}
Existing description (may be empty):
{description}

Rewrite or generate a better description. Include:
- Purpose / context
- Scope / acceptance criteria
- Implementation hints (brief)
- Risks / dependencies
Avoid fluff. No backticks in the output."""

TITLE_SYSTEM_PROMPT = (
    "You improve Trello card titles: keep them brief (max ~12 words), specific, "
    "action-oriented, and without punctuation noise. Return only the title."
)

TITLE_USER_PROMPT = """Current title: {title}
Description:
{description}

Return an improved, concise title."""

MERGE_DELIMITER = "\n\n---\nAI Description (proposed)\n\n"
MERGE_MODES = ("prepend", "append", "replace")


def get_llm(config: LLMConfig | None = None, model: str | None = None) -> LLM:
    """Create the LLM client from configuration.

    Raises:
        ConfigError: If no API key is configured
    """
    config = config or load_config().llm
    if not config.api_key:
        raise ConfigError("Missing LLM API key. Set OPENROUTER_API_KEY or LLM_API_KEY in your .env")

    return LLM(
        model=model or config.model,
        api_key=SecretStr(config.api_key),
        base_url=config.base_url,
        temperature=0.2,
        max_output_tokens=450,
    )


def _response_text(response) -> str:
    """Extract text from a completion response message."""
    if response.message and response.message.content:
        content = response.message.content
        if isinstance(content, str):
            return content.strip()
        text_parts = []
        for block in content:
            if isinstance(block, str):
                text_parts.append(block)
            elif isinstance(block, TextContent):
                text_parts.append(block.text)
        return "\n".join(text_parts).strip()
    return ""


def _complete(llm: LLM, system: str, user: str) -> str:
    messages = [
        Message(role="system", content=[TextContent(text=system)]),
        Message(role="user", content=[TextContent(text=user)]),
    ]
    response = llm.completion(messages=messages)
    return _response_text(response)


def generate_description(llm: LLM, title: str, list_name: str, description: str) -> str:
    """Ask the model for an improved card description."""
    prompt = DESCRIPTION_USER_PROMPT.format(
        title=title,
        list_name=list_name or "Unknown",
        description=description or "(none)",
    )
    text = _complete(llm, DESCRIPTION_SYSTEM_PROMPT, prompt)
    if not text:
        raise ValueError("LLM returned an empty description")
    return text


def generate_title(llm: LLM, title: str, description: str) -> str:
    """Ask the model for a shorter, clearer card title.

    Falls back to the current title when the model returns nothing.
    """
    prompt = TITLE_USER_PROMPT.format(title=title, description=description or "(none)")
    text = _complete(llm, TITLE_SYSTEM_PROMPT, prompt)
    text = text.splitlines()[0].strip().strip("\"'") if text else ""
    return text or title


def merge_description(existing: str, proposed: str, mode: str = "prepend") -> str:
    """Combine the current description with a proposed one.

    ``replace`` discards the existing text. A description that already
    carries a proposal is not merged again.
    """
    if mode not in MERGE_MODES:
        raise ValueError(f"Unknown merge mode: {mode}")

    existing = (existing or "").strip()
    if mode == "replace" or not existing:
        return proposed
    if MERGE_DELIMITER.strip() in existing:
        return existing
    if mode == "append":
        return existing + MERGE_DELIMITER + proposed
    return proposed + MERGE_DELIMITER + existing
