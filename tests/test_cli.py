import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from eshara.domain.state import LogEntry
from eshara.presentation.cli import app, config, render
from tests.helpers.story_builders import make_document


@pytest.fixture
def eshara_home(monkeypatch, tmp_path: Path) -> Path:
    home = tmp_path / "home"
    monkeypatch.setenv(config.HOME_ENV_VAR, str(home))
    monkeypatch.delenv("ESHARA_STORY", raising=False)
    monkeypatch.delenv("ESHARA_DEBUG", raising=False)
    monkeypatch.chdir(tmp_path)
    yield home
    logger = logging.getLogger("eshara")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True


def _scripted_input(monkeypatch, answers: list[str]) -> None:
    replies = iter(answers)
    monkeypatch.setattr("builtins.input", lambda prompt="": next(replies))


def _write_story(path: Path, nodes: dict) -> Path:
    path.write_text(json.dumps(make_document(nodes)), encoding="utf-8")
    return path


def test_user_data_dir_honours_home_override(eshara_home: Path) -> None:
    assert config.get_user_data_dir() == eshara_home
    assert config.get_save_path() == eshara_home / "save.json"


def test_load_config_defaults_on_bad_file(eshara_home: Path) -> None:
    assert config.load_config() == {"language": "en"}
    path = config.get_default_config_path()
    path.parent.mkdir(parents=True)
    path.write_text("not json", encoding="utf-8")
    assert config.load_config() == {"language": "en"}


def test_save_and_load_config(eshara_home: Path) -> None:
    config.save_config({"language": "fr"})
    assert config.load_config() == {"language": "fr"}
    config.save_config({"language": "klingon"})
    assert config.load_config() == {"language": "en"}


def test_configure_logging_writes_file(eshara_home: Path) -> None:
    log_path = config.configure_logging(debug=True)
    logging.getLogger("eshara.test").debug("hello log")
    for handler in logging.getLogger("eshara").handlers:
        handler.flush()
    assert "hello log" in log_path.read_text(encoding="utf-8")


def test_format_log_entry() -> None:
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert render.format_log_entry(LogEntry("system", "SESSION:2024-01-01 09:00", now)) == (
        "---- 2024-01-01 09:00 ----"
    )
    assert render.format_log_entry(LogEntry("player", "Yes", now)) == "> Yes"
    assert render.format_log_entry(LogEntry("narrator", "Hi", now)) == "Hi"


def test_text_is_localized() -> None:
    assert render.text("fr", "range", count=3) == "Veuillez entrer une valeur entre 1 et 3."
    assert render.text("en", "days", day=2) == "Days survived: 2"


def test_reset_without_save(eshara_home: Path, capsys) -> None:
    assert app.main(["--reset"]) == app.EXIT_OK
    assert "No saved game" in capsys.readouterr().out


def test_reset_deletes_save(eshara_home: Path) -> None:
    save = config.get_save_path()
    save.parent.mkdir(parents=True, exist_ok=True)
    save.write_text("{}", encoding="utf-8")
    assert app.main(["--reset"]) == app.EXIT_OK
    assert not save.exists()


def test_invalid_story_reports_every_issue(eshara_home: Path, tmp_path: Path, capsys) -> None:
    story = _write_story(
        tmp_path / "bad.json",
        {"start": {"choices": [{"label": "Go", "next_node": "ghost"}]}, "orphan": {"next_node": "start"}},
    )
    assert app.main(["--story", str(story)]) == app.EXIT_BAD_STORY
    err = capsys.readouterr().err
    assert "MISSING_NODE_REF" in err
    assert "UNREACHABLE_NODE" in err


def test_play_through_to_ending(eshara_home: Path, tmp_path: Path, monkeypatch, capsys) -> None:
    story = _write_story(
        tmp_path / "story.json",
        {
            "start": {"messages": ["Are you there?"], "choices": [{"label": "Yes", "next_node": "end"}]},
            "end": {"messages": ["Thank you."], "ending": "done"},
        },
    )
    _scripted_input(monkeypatch, ["abc", "1", "n"])
    assert app.main(["--story", str(story), "--lang", "en"]) == app.EXIT_OK
    out = capsys.readouterr().out
    assert "Are you there?" in out
    assert "Please enter a number." in out
    assert "ENDING: Done" in out
    assert "Days survived: 1" in out
    assert not config.get_save_path().exists()


def test_quit_during_wait_keeps_save(eshara_home: Path, tmp_path: Path, monkeypatch, capsys) -> None:
    story = _write_story(
        tmp_path / "story.json",
        {
            "start": {"messages": ["Hold on."], "delay": 600, "next_node": "end"},
            "end": {"ending": "done"},
        },
    )
    _scripted_input(monkeypatch, ["2"])
    assert app.main(["--story", str(story), "--lang", "en"]) == app.EXIT_OK
    assert "Progress saved." in capsys.readouterr().out
    saved = json.loads(config.get_save_path().read_text(encoding="utf-8"))
    assert saved["state"]["current_node"] == "end"
    assert saved["state"]["resume_at"] is not None


def test_interrupt_saves_and_exits(eshara_home: Path, tmp_path: Path, monkeypatch) -> None:
    story = _write_story(
        tmp_path / "story.json",
        {
            "start": {"choices": [{"label": "Go", "next_node": "end"}]},
            "end": {"ending": "done"},
        },
    )

    def interrupt(prompt: str = "") -> str:
        raise KeyboardInterrupt

    monkeypatch.setattr("builtins.input", interrupt)
    assert app.main(["--story", str(story), "--lang", "en"]) == app.EXIT_INTERRUPTED
    assert config.get_save_path().exists()


def test_story_with_invalid_encoding_is_rejected(eshara_home: Path, tmp_path: Path, capsys) -> None:
    story = tmp_path / "story.json"
    story.write_bytes(b'{"metadata": "\xff"}')
    assert app.main(["--story", str(story)]) == app.EXIT_BAD_STORY
    assert "not valid UTF-8" in capsys.readouterr().err


def test_blocked_save_path_reports_and_exits(eshara_home: Path, tmp_path: Path, capsys) -> None:
    story = _write_story(
        tmp_path / "story.json",
        {
            "start": {"choices": [{"label": "Go", "next_node": "end"}]},
            "end": {"ending": "done"},
        },
    )
    config.get_save_path().mkdir(parents=True)
    assert app.main(["--story", str(story), "--lang", "en"]) == app.EXIT_SAVE_FAILED
    assert "Unable to save your progress" in capsys.readouterr().err
    assert config.get_save_path().is_dir()
