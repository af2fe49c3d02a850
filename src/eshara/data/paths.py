"""Helpers for resolving data file locations."""
from __future__ import annotations

import os
import sys
from pathlib import Path

STORY_FILENAME = "story.json"
STORY_ENV_VAR = "ESHARA_STORY"


def get_package_root() -> Path:
    """Return the directory of the installed eshara package."""
    return Path(__file__).resolve().parents[1]


def get_definitions_path(base_path: Path | str | None = None) -> Path:
    """Return the directory containing the bundled JSON definition files."""
    if base_path is not None:
        return Path(base_path)
    if getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"):
        return Path(sys._MEIPASS) / "eshara" / "data" / "definitions"
    return get_package_root() / "data" / "definitions"


def get_story_override_path() -> Path | None:
    """Return an external story file that should replace the bundled one.

    ESHARA_STORY wins when set; otherwise ``data/story.json`` under the
    working directory is used when it exists.
    """
    env_value = os.environ.get(STORY_ENV_VAR)
    if env_value:
        return Path(env_value)
    local = Path.cwd() / "data" / STORY_FILENAME
    if local.is_file():
        return local
    return None
