"""Version information for cardflow.

Installed builds report the static version; running from a checkout also
shows the commit and whether the working tree has local changes.
"""

import subprocess
from functools import lru_cache

__version__ = "0.1.0"

DIRTY_SUFFIX = "-dirty"


@lru_cache(maxsize=1)
def get_git_info() -> dict[str, str | None]:
    """Describe the checkout this module was loaded from.

    Returns:
        Dict with 'sha' (abbreviated commit) and 'dirty' ("true"/"false"),
        both None outside a git checkout.
    """
    try:
        described = subprocess.run(
            ["git", "describe", "--always", "--dirty", "--abbrev=7"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (subprocess.SubprocessError, OSError):
        return {"sha": None, "dirty": None}

    if described.returncode != 0 or not described.stdout.strip():
        return {"sha": None, "dirty": None}

    label = described.stdout.strip()
    dirty = label.endswith(DIRTY_SUFFIX)
    if dirty:
        label = label[: -len(DIRTY_SUFFIX)]
    # Tagged checkouts describe as "v0.1.0-3-gabc1234"
    sha = label.rsplit("-g", 1)[-1]
    return {"sha": sha, "dirty": "true" if dirty else "false"}


def get_version() -> str:
    return __version__


def get_full_version_string() -> str:
    """Human-readable version, e.g. "cardflow 0.1.0 (abc1234, dirty)"."""
    info = get_git_info()
    version = f"cardflow {__version__}"
    if not info["sha"]:
        return version
    build = info["sha"] + (", dirty" if info["dirty"] == "true" else "")
    return f"{version} ({build})"
