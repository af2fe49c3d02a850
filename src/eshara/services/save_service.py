"""Serialization helpers for the persisted game."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Set

from eshara.core.types import SUPPORTED_LANGUAGES, Language
from eshara.data.repositories import StoryRepository
from eshara.domain.state import LogEntry, PlayerState
from eshara.domain.stats import Stats
from eshara.services.errors import SaveLoadError

SavePayload = Dict[str, Any]
_VALID_SENDERS = ("narrator", "player", "system")


class SaveService:
    """Converts player state to/from a validated, versioned payload."""

    SAVE_VERSION = 1

    def __init__(self, *, story_repo: StoryRepository | None = None) -> None:
        self._story_repo = story_repo

    def serialize(self, state: PlayerState) -> SavePayload:
        """Return a JSON-serializable payload for disk persistence."""
        return {
            "save_version": self.SAVE_VERSION,
            "metadata": self._build_metadata(state),
            "state": self._serialize_state(state),
        }

    def deserialize(self, payload: Mapping[str, Any]) -> PlayerState:
        """Rehydrate a PlayerState from a persisted payload."""
        if not isinstance(payload, Mapping):
            raise SaveLoadError("Save data must be a JSON object.")
        version = payload.get("save_version")
        if version != self.SAVE_VERSION:
            raise SaveLoadError(f"Unsupported save version: {version!r}.")
        state_payload = payload.get("state")
        if not isinstance(state_payload, Mapping):
            raise SaveLoadError("Save data is missing required sections.")

        current_node = self._require_str(state_payload.get("current_node"), "state.current_node")
        self._validate_story_node(current_node)
        entered_node = self._coerce_optional_str(state_payload.get("entered_node"), "state.entered_node")
        if entered_node is not None:
            self._validate_story_node(entered_node)

        day = self._require_int(state_payload.get("day", 1), "state.day")
        if day < 1:
            raise SaveLoadError("state.day must be at least 1.")

        return PlayerState(
            current_node=current_node,
            flags=self._coerce_flag_set(state_payload.get("flags"), "state.flags"),
            stats=Stats.from_dict(self._coerce_int_dict(state_payload.get("stats"), "state.stats")),
            message_log=self._coerce_log(state_payload.get("message_log")),
            resume_at=self._coerce_optional_datetime(state_payload.get("resume_at"), "state.resume_at"),
            ending=self._coerce_optional_str(state_payload.get("ending"), "state.ending"),
            day=day,
            language=self._require_language(state_payload.get("language", "en")),
            entered_node=entered_node,
        )

    def _build_metadata(self, state: PlayerState) -> Dict[str, Any]:
        return {
            "current_node": state.current_node,
            "day": state.day,
            "ending": state.ending,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }

    def _serialize_state(self, state: PlayerState) -> Dict[str, Any]:
        return {
            "current_node": state.current_node,
            "flags": sorted(state.flags),
            "stats": state.stats.as_dict(),
            "message_log": [
                {
                    "sender": entry.sender,
                    "text": entry.text,
                    "timestamp": entry.timestamp.isoformat(),
                }
                for entry in state.message_log
            ],
            "resume_at": state.resume_at.isoformat() if state.resume_at is not None else None,
            "ending": state.ending,
            "day": state.day,
            "language": state.language,
            "entered_node": state.entered_node,
        }

    def _validate_story_node(self, node_id: str) -> None:
        if self._story_repo is None:
            return
        try:
            self._story_repo.get(node_id)
        except KeyError as exc:
            raise SaveLoadError(
                f"Save incompatible with current definitions: story node '{node_id}' missing."
            ) from exc

    def _coerce_log(self, value: Any) -> List[LogEntry]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise SaveLoadError("state.message_log must be a list.")
        entries: List[LogEntry] = []
        for index, raw_entry in enumerate(value):
            context = f"state.message_log[{index}]"
            entry = self._require_dict(raw_entry, context)
            sender = entry.get("sender")
            if sender not in _VALID_SENDERS:
                raise SaveLoadError(f"{context}.sender has invalid value {sender!r}.")
            timestamp = self._coerce_optional_datetime(entry.get("timestamp"), f"{context}.timestamp")
            if timestamp is None:
                raise SaveLoadError(f"{context}.timestamp is required.")
            entries.append(
                LogEntry(
                    sender=sender,
                    text=self._require_str(entry.get("text"), f"{context}.text"),
                    timestamp=timestamp,
                )
            )
        return entries

    def _coerce_flag_set(self, value: Any, context: str) -> Set[str]:
        if value is None:
            return set()
        if not isinstance(value, list):
            raise SaveLoadError(f"{context} must be a list.")
        flags: Set[str] = set()
        for entry in value:
            if not isinstance(entry, str):
                raise SaveLoadError(f"{context} entries must be strings.")
            flags.add(entry)
        return flags

    def _coerce_int_dict(self, value: Any, context: str) -> Dict[str, int]:
        if value is None:
            return {}
        mapping = self._require_dict(value, context)
        result: Dict[str, int] = {}
        for key, entry in mapping.items():
            result[key] = self._require_int(entry, f"{context}.{key}")
        return result

    def _coerce_optional_datetime(self, value: Any, context: str) -> datetime | None:
        if value is None:
            return None
        text = self._require_str(value, context)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise SaveLoadError(f"{context} is not an ISO-8601 timestamp.") from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def _coerce_optional_str(self, value: Any, context: str) -> str | None:
        if value is None:
            return None
        return self._require_str(value, context)

    @staticmethod
    def _require_language(value: Any) -> Language:
        if value not in SUPPORTED_LANGUAGES:
            raise SaveLoadError(f"Invalid language value: {value}")
        return value

    @staticmethod
    def _require_str(value: Any, context: str) -> str:
        if not isinstance(value, str):
            raise SaveLoadError(f"{context} must be a string.")
        return value

    @staticmethod
    def _require_int(value: Any, context: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise SaveLoadError(f"{context} must be an integer.")
        return value

    @staticmethod
    def _require_dict(value: Any, context: str) -> Dict[str, Any]:
        if not isinstance(value, Mapping):
            raise SaveLoadError(f"{context} must be an object.")
        return dict(value)
