"""File-system storage for the single persisted game."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

from eshara.data.json_loader import write_json_atomic
from eshara.services.errors import SaveLoadError, SaveWriteError

logger = logging.getLogger(__name__)


class SaveFileStore:
    """Reads and atomically writes the save file.

    A missing file means "no saved game". A file that cannot be parsed
    raises SaveLoadError so the caller can decide to start fresh.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def read(self) -> Dict[str, Any]:
        """Load and parse the stored payload."""
        try:
            text = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SaveLoadError(f"Unable to read save file {self._path}: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise SaveLoadError(f"Save file {self._path} is not valid UTF-8: {exc}") from exc
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SaveLoadError(f"Save file {self._path} is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise SaveLoadError(f"Save file {self._path} must contain a JSON object.")
        return payload

    def write(self, payload: Dict[str, Any]) -> None:
        """Persist the payload; the previous save survives any failure."""
        try:
            write_json_atomic(self._path, payload)
        except OSError as exc:
            raise SaveWriteError(f"Unable to write save file {self._path}: {exc}") from exc
        logger.debug("Saved game to %s", self._path)

    def delete(self) -> bool:
        """Delete the save if present; return True when a file was removed."""
        try:
            self._path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Deleted save file %s", self._path)
        return True
