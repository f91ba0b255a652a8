"""cardflow configuration management.

Settings are resolved in this order (highest priority first):
1. Environment variables (a .env file is loaded by the CLI at startup)
2. User-level config (~/.cardflow/config.toml)
3. Defaults

Secrets (API keys and tokens) are only ever read from the environment or the
config file; ``save_config`` never writes them back.
"""

import io
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[import-not-found]

import tomli_w

CARDFLOW_HOME = Path.home() / ".cardflow"
CONFIG_FILE = CARDFLOW_HOME / "config.toml"

DEFAULT_INCLUDE_LIST_NAMES = ["doing", "review", "code review", "in review"]
DEFAULT_LLM_MODEL = "openrouter/mistralai/mistral-small-3.2-24b-instruct:free"


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


def atomic_write(path: Path, content: bytes) -> None:
    """Write content to a file atomically using temp file + rename.

    Args:
        path: Target file path
        content: Bytes to write
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    # Temp file must live in the same directory for the rename to be atomic
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=".tmp_",
        suffix=path.suffix,
    )
    try:
        os.write(fd, content)
        os.close(fd)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.close(fd)
        except OSError:
            pass
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def _split_names(value: str | list[str] | None) -> list[str]:
    """Split a comma-separated value into trimmed, lowercased names."""
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else value
    return [item.strip().lower() for item in items if item and item.strip()]


@dataclass
class TrelloConfig:
    """Board service credentials and list lookups."""

    api_key: str | None = None
    token: str | None = None
    board_id: str | None = None

    doing_list_id: str | None = None
    doing_list_name: str = "Doing"
    done_list_id: str | None = None
    done_list_name: str | None = None
    review_list_id: str | None = None
    review_list_name: str = "Review"
    rejected_list_id: str | None = None
    rejected_list_name: str = "Rejected"

    # Lists considered by review-week when no explicit list names are configured
    include_list_names: list[str] = field(
        default_factory=lambda: list(DEFAULT_INCLUDE_LIST_NAMES)
    )

    # Card names containing any of these (case-insensitive) are left out of reports
    blacklist_patterns: list[str] = field(default_factory=lambda: ["sprint"])

    # List names matching any of these count as "done" in reports
    done_list_patterns: list[str] = field(default_factory=lambda: ["done", "review"])

    def ensure(self) -> None:
        """Fail fast when credentials are missing."""
        if not self.api_key or not self.token:
            raise ConfigError(
                "Missing Trello configuration. "
                "Please set TRELLO_API_KEY and TRELLO_TOKEN in your .env"
            )

    def require_board_id(self) -> str:
        """Return the configured board id or raise ConfigError."""
        if not self.board_id:
            raise ConfigError("Missing TRELLO_BOARD_ID in your .env")
        return self.board_id


@dataclass
class GitHubConfig:
    """Source-control API settings."""

    token: str | None = None
    rejected_label: str = "rejected"

    # Base URL substituted for localhost:3000/8080 links in PR testing notes
    staging_base_url: str | None = None

    def require_token(self) -> str:
        if not self.token:
            raise ConfigError("Missing GitHub configuration. Please set GITHUB_TOKEN in your .env")
        return self.token


@dataclass
class MattermostConfig:
    """Chat API settings."""

    url: str | None = None
    token: str | None = None
    channel_id: str | None = None

    def ensure(self) -> None:
        if not self.url or not self.token:
            raise ConfigError(
                "MATTERMOST_URL and MATTERMOST_TOKEN must be set as environment variables."
            )


@dataclass
class LLMConfig:
    """Language-model settings."""

    api_key: str | None = None
    model: str = DEFAULT_LLM_MODEL
    base_url: str | None = None


@dataclass
class PathsConfig:
    """Local artifact locations, relative to the working directory unless absolute."""

    cache_dir: str = ".cache"
    reports_dir: str = "."
    time_entries_file: str = "today.json"


@dataclass
class Settings:
    """Complete cardflow configuration."""

    trello: TrelloConfig = field(default_factory=TrelloConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    mattermost: MattermostConfig = field(default_factory=MattermostConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)


# Environment variable -> (section, key)
ENV_VARS: dict[str, tuple[str, str]] = {
    "TRELLO_API_KEY": ("trello", "api_key"),
    "TRELLO_TOKEN": ("trello", "token"),
    "TRELLO_BOARD_ID": ("trello", "board_id"),
    "TRELLO_DOING_LIST_ID": ("trello", "doing_list_id"),
    "DOING_LIST_NAME": ("trello", "doing_list_name"),
    "DONE_LIST_ID": ("trello", "done_list_id"),
    "DONE_LIST_NAME": ("trello", "done_list_name"),
    "REVIEW_LIST_ID": ("trello", "review_list_id"),
    "REVIEW_LIST_NAME": ("trello", "review_list_name"),
    "REJECTED_LIST_ID": ("trello", "rejected_list_id"),
    "REJECTED_LIST_NAME": ("trello", "rejected_list_name"),
    "INCLUDE_LIST_NAMES": ("trello", "include_list_names"),
    "BLACKLIST_PATTERNS": ("trello", "blacklist_patterns"),
    "GITHUB_TOKEN": ("github", "token"),
    "REJECTED_LABEL_NAME": ("github", "rejected_label"),
    "UR_STAGING_BASE_URL": ("github", "staging_base_url"),
    "MATTERMOST_URL": ("mattermost", "url"),
    "MATTERMOST_TOKEN": ("mattermost", "token"),
    "MATTERMOST_CHANNEL_ID": ("mattermost", "channel_id"),
    "OPENROUTER_API_KEY": ("llm", "api_key"),
    "LLM_API_KEY": ("llm", "api_key"),
    "LLM_MODEL": ("llm", "model"),
    "LLM_BASE_URL": ("llm", "base_url"),
    "CARDFLOW_CACHE_DIR": ("paths", "cache_dir"),
    "CARDFLOW_REPORTS_DIR": ("paths", "reports_dir"),
}

LIST_KEYS = {"include_list_names", "blacklist_patterns", "done_list_patterns"}
SECRET_KEYS = {"api_key", "token"}


def _apply(settings: Settings, section: str, key: str, value) -> None:
    target = getattr(settings, section)
    if key in LIST_KEYS:
        names = _split_names(value)
        if names:
            setattr(target, key, names)
        return
    setattr(target, key, value)


def _read_toml(path: Path) -> dict:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid config file {path}: {e}") from e


def load_config(
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from the config file and the environment.

    Args:
        config_file: Path to the TOML file (default: ~/.cardflow/config.toml)
        environ: Environment mapping (default: os.environ)

    Returns:
        Settings with environment values overriding file values.
    """
    path = config_file or CONFIG_FILE
    env = os.environ if environ is None else environ
    settings = Settings()

    if path.exists():
        data = _read_toml(path)
        for section in ("trello", "github", "mattermost", "llm", "paths"):
            for key, value in data.get(section, {}).items():
                if hasattr(getattr(settings, section), key):
                    _apply(settings, section, key, value)

    for var, (section, key) in ENV_VARS.items():
        value = env.get(var)
        if value:
            _apply(settings, section, key, value)

    return settings


def save_config(settings: Settings, config_file: Path | None = None) -> None:
    """Persist non-secret settings to the config file.

    Preserves unknown sections. Uses atomic write to prevent partial writes.
    """
    path = config_file or CONFIG_FILE

    existing: dict = {}
    if path.exists():
        existing = _read_toml(path)

    defaults = Settings()
    for section in ("trello", "github", "mattermost", "llm", "paths"):
        current = getattr(settings, section)
        default = getattr(defaults, section)
        section_data: dict = {}
        for key, value in vars(current).items():
            if key in SECRET_KEYS or value is None:
                continue
            if value == getattr(default, key):
                continue
            section_data[key] = value
        if section_data:
            existing[section] = section_data
        else:
            existing.pop(section, None)

    buffer = io.BytesIO()
    tomli_w.dump(existing, buffer)
    atomic_write(path, buffer.getvalue())


def set_config_value(key: str, value: str, config_file: Path | None = None) -> None:
    """Set a single ``section.key`` value in the config file.

    Raises:
        ConfigError: If the key is unknown or refers to a secret.
    """
    section, _, name = key.partition(".")
    settings = load_config(config_file, environ={})
    target = getattr(settings, section, None)
    if target is None or not name or not hasattr(target, name):
        raise ConfigError(f"Unknown config key: {key}")
    if name in SECRET_KEYS:
        raise ConfigError(f"{key} is a secret; set it in your environment or .env instead")
    _apply(settings, section, name, value)
    save_config(settings, config_file)
