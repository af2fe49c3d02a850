import json
from datetime import datetime, timedelta, timezone

import pytest

from eshara.domain.state import PlayerState
from eshara.domain.stats import Stats
from eshara.services.errors import SaveLoadError
from eshara.services.save_service import SaveService
from tests.helpers.story_builders import make_repo

_NODES = {
    "start": {"choices": [{"label": "Go", "next_node": "end"}]},
    "end": {"ending": "done"},
}
_NOW = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)


def _populated_state() -> PlayerState:
    state = PlayerState(
        current_node="start",
        stats=Stats.from_dict({"trust": 4, "health": 9, "courage": 2}),
        resume_at=_NOW + timedelta(minutes=5),
        day=2,
        language="fr",
        entered_node="start",
    )
    state.set_flag("met_elara")
    state.set_flag("found_radio_parts")
    state.append_log("system", "SESSION:2024-03-01 12:30", _NOW)
    state.append_log("narrator", "Allô ?", _NOW)
    state.append_log("player", "Je vous entends.", _NOW + timedelta(seconds=3))
    return state


def test_round_trip_preserves_every_field() -> None:
    service = SaveService(story_repo=make_repo(_NODES))
    state = _populated_state()
    payload = json.loads(json.dumps(service.serialize(state)))
    restored = service.deserialize(payload)
    assert restored == state


def test_round_trip_empty_state() -> None:
    service = SaveService()
    state = PlayerState(current_node="start")
    assert service.deserialize(service.serialize(state)) == state


def test_payload_shape() -> None:
    payload = SaveService().serialize(_populated_state())
    assert payload["save_version"] == SaveService.SAVE_VERSION
    assert payload["metadata"]["current_node"] == "start"
    assert payload["state"]["flags"] == ["found_radio_parts", "met_elara"]
    assert payload["state"]["stats"] == {"trust": 4, "health": 9, "courage": 2}


def test_rejects_unknown_version() -> None:
    payload = SaveService().serialize(PlayerState(current_node="start"))
    payload["save_version"] = 99
    with pytest.raises(SaveLoadError, match="Unsupported save version"):
        SaveService().deserialize(payload)


def test_rejects_node_missing_from_story() -> None:
    service = SaveService(story_repo=make_repo(_NODES))
    payload = service.serialize(PlayerState(current_node="start"))
    payload["state"]["current_node"] = "removed_node"
    with pytest.raises(SaveLoadError, match="story node 'removed_node' missing"):
        service.deserialize(payload)


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("flags", "not-a-list"),
        ("stats", {"trust": "high"}),
        ("message_log", [{"sender": "ghost", "text": "hi", "timestamp": _NOW.isoformat()}]),
        ("resume_at", "yesterday"),
        ("language", "de"),
        ("day", 0),
    ],
)
def test_rejects_malformed_fields(field: str, value: object) -> None:
    service = SaveService()
    payload = service.serialize(PlayerState(current_node="start"))
    payload["state"][field] = value
    with pytest.raises(SaveLoadError):
        service.deserialize(payload)


def test_rejects_non_mapping_payload() -> None:
    with pytest.raises(SaveLoadError):
        SaveService().deserialize(["not", "a", "dict"])
