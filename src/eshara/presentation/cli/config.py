"""CLI configuration helpers for options persistence and logging."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict

from eshara.core.debug import debug_enabled
from eshara.core.types import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES

HOME_ENV_VAR = "ESHARA_HOME"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_user_data_dir() -> Path:
    """Return the per-user data directory."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override)
    if os.name == "nt":
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / "Eshara"
        return Path.home() / "Eshara"
    return Path.home() / ".config" / "eshara"


def get_default_config_path() -> Path:
    return get_user_data_dir() / "config.json"


def get_save_path() -> Path:
    return get_user_data_dir() / "save.json"


def get_log_path() -> Path:
    return get_user_data_dir() / "eshara.log"


def _normalize_language(value: object) -> str:
    return value if value in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def load_config(path: Path | None = None) -> Dict[str, str]:
    """Load config from disk or return defaults."""
    config_path = path or get_default_config_path()
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {"language": DEFAULT_LANGUAGE}
    if not isinstance(raw, dict):
        return {"language": DEFAULT_LANGUAGE}
    return {"language": _normalize_language(raw.get("language"))}


def save_config(config: Dict[str, str], path: Path | None = None) -> None:
    """Persist config to disk."""
    config_path = path or get_default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"language": _normalize_language(config.get("language"))}
    config_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")


def configure_logging(log_path: Path | None = None, *, debug: bool | None = None) -> Path:
    """Send log records to a file, and warnings to stderr.

    Safe to call more than once: handlers from a previous call are replaced.
    """
    if debug is None:
        debug = debug_enabled()
    path = log_path or get_log_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger("eshara")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    root.addHandler(file_handler)

    console = logging.StreamHandler()
    console.setLevel(logging.WARNING)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    root.addHandler(console)
    root.propagate = False
    return path
