import json
from pathlib import Path

import pytest

from eshara.data.paths import get_definitions_path
from eshara.data.errors import DataLoadError, DataValidationError, StoryGraphError
from eshara.data.repositories import StoryRepository
from tests.helpers.story_builders import make_document, make_repo


def _write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_bundled_story_loads() -> None:
    repo = StoryRepository(base_path=get_definitions_path())
    graph = repo.graph()
    assert graph.start_node_id == "intro"
    assert graph.get("intro").messages
    assert graph.stat_bounds("trust").default == 3


def test_localized_text_accepts_plain_strings_and_mappings() -> None:
    repo = make_repo(
        {
            "start": {
                "messages": ["Plain", {"en": "Hello", "fr": "Bonjour"}, {"en": "Only English"}],
                "next_node": "end",
            },
            "end": {"ending": "done"},
        }
    )
    messages = repo.get("start").messages
    assert [message.get("fr") for message in messages] == ["Plain", "Bonjour", "Only English"]
    assert messages[1].get("en") == "Hello"


def test_delay_accepts_bare_seconds_and_mapping() -> None:
    repo = make_repo(
        {
            "start": {"delay": 60, "next_node": "mid"},
            "mid": {"delay": {"seconds": 5, "message": "Busy."}, "next_node": "end"},
            "end": {"ending": "done"},
        }
    )
    assert repo.get("start").delay.seconds == 60
    assert repo.get("start").delay.message.get("en")
    assert repo.get("mid").delay.message.get("en") == "Busy."


def test_conditions_parse_flattened_stat_bounds() -> None:
    repo = make_repo(
        {
            "start": {
                "branches": [
                    {
                        "condition": {"flags": ["a"], "flags_absent": ["b"], "min_trust": 2, "max_health": 4},
                        "next_node": "end",
                    },
                    {"condition": {"default": True}, "next_node": "end"},
                ]
            },
            "end": {"ending": "done"},
        }
    )
    condition = repo.get("start").branches[0].condition
    assert condition.flags == ("a",)
    assert condition.flags_absent == ("b",)
    assert dict(condition.min_stats) == {"trust": 2}
    assert dict(condition.max_stats) == {"health": 4}
    assert repo.get("start").branches[1].condition.default is True


def test_unknown_condition_key_is_rejected() -> None:
    with pytest.raises(DataValidationError, match="unknown key 'trust'"):
        make_repo(
            {
                "start": {"branches": [{"condition": {"trust": 2}, "next_node": "start"}]},
            }
        )


def test_unknown_node_key_is_rejected() -> None:
    with pytest.raises(DataValidationError, match="unknown keys: next"):
        make_repo({"start": {"next": "end"}, "end": {"ending": "done"}})


def test_choice_label_must_be_text() -> None:
    with pytest.raises(DataValidationError, match=r"choices\[0\] label"):
        make_repo({"start": {"choices": [{"label": 3, "next_node": "start"}]}})


def test_negative_delay_is_rejected() -> None:
    with pytest.raises(DataValidationError):
        make_repo({"start": {"delay": -1, "next_node": "start"}})


def test_graph_is_read_only() -> None:
    graph = make_repo({"start": {"ending": "done"}}).graph()
    with pytest.raises(TypeError):
        graph.nodes["extra"] = graph.nodes["start"]
    with pytest.raises(AttributeError):
        graph.get("start").ending = "other"


def test_missing_story_file(tmp_path: Path) -> None:
    repo = StoryRepository(story_path=tmp_path / "missing.json")
    with pytest.raises(DataLoadError, match="not found"):
        repo.graph()


def test_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "story.json"
    path.write_text("{ not json", encoding="utf-8")
    with pytest.raises(DataLoadError, match="Invalid JSON"):
        StoryRepository(story_path=path).graph()


def test_invalid_utf8_story(tmp_path: Path) -> None:
    path = tmp_path / "story.json"
    path.write_bytes(b'{"nodes": "\xff"}')
    with pytest.raises(DataLoadError, match="not valid UTF-8"):
        StoryRepository(story_path=path).graph()


def test_parse_errors_are_reported_together() -> None:
    with pytest.raises(DataValidationError) as excinfo:
        make_repo(
            {
                "start": {"next": "end"},
                "middle": {"delay": -1, "next_node": "end"},
                "end": {"ending": "done"},
            }
        )
    message = str(excinfo.value)
    assert "2 invalid definition(s)" in message
    assert "story node 'start'" in message
    assert "story node 'middle'" in message


def test_override_file_preferred_over_bundled(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "custom.json"
    _write_json(path, make_document({"start": {"ending": "done"}}))
    monkeypatch.setenv("ESHARA_STORY", str(path))
    repo = StoryRepository()
    assert repo.source_path == path
    assert repo.graph().start_node_id == "start"


def test_load_validated_graph_raises_with_all_issues(tmp_path: Path) -> None:
    path = tmp_path / "story.json"
    _write_json(
        path,
        make_document(
            {
                "start": {"choices": [{"label": "Go", "next_node": "ghost"}]},
                "orphan": {"next_node": "start"},
            }
        ),
    )
    with pytest.raises(StoryGraphError) as excinfo:
        StoryRepository(story_path=path).load_validated_graph()
    codes = {issue.code for issue in excinfo.value.issues}
    assert {"MISSING_NODE_REF", "UNREACHABLE_NODE", "NO_ENDINGS"} <= codes


def test_repository_caches_graph(tmp_path: Path) -> None:
    path = tmp_path / "story.json"
    _write_json(path, make_document({"start": {"ending": "done"}}))
    repo = StoryRepository(story_path=path)
    first = repo.graph()
    path.unlink()
    assert repo.graph() is first
