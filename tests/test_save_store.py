import json
from pathlib import Path

import pytest

from eshara.services.errors import SaveLoadError, SaveWriteError
from eshara.services.save_store import SaveFileStore


def test_missing_file_means_no_save(tmp_path: Path) -> None:
    store = SaveFileStore(tmp_path / "save.json")
    assert not store.exists()
    assert store.delete() is False


def test_write_then_read(tmp_path: Path) -> None:
    store = SaveFileStore(tmp_path / "nested" / "save.json")
    store.write({"save_version": 1, "state": {"current_node": "start"}})
    assert store.exists()
    assert store.read()["state"]["current_node"] == "start"


def test_write_leaves_no_temp_files(tmp_path: Path) -> None:
    store = SaveFileStore(tmp_path / "save.json")
    store.write({"a": 1})
    store.write({"a": 2})
    assert [path.name for path in tmp_path.iterdir()] == ["save.json"]
    assert json.loads((tmp_path / "save.json").read_text(encoding="utf-8")) == {"a": 2}


def test_failed_write_keeps_previous_save(tmp_path: Path) -> None:
    store = SaveFileStore(tmp_path / "save.json")
    store.write({"a": 1})
    with pytest.raises(TypeError):
        store.write({"a": object()})
    assert store.read() == {"a": 1}


def test_corrupt_file_raises_save_load_error(tmp_path: Path) -> None:
    path = tmp_path / "save.json"
    path.write_text("{ truncated", encoding="utf-8")
    with pytest.raises(SaveLoadError, match="not valid JSON"):
        SaveFileStore(path).read()


def test_invalid_utf8_raises_save_load_error(tmp_path: Path) -> None:
    path = tmp_path / "save.json"
    path.write_bytes(b'{"save_version": 1, "state": "\xff\xfe"}')
    with pytest.raises(SaveLoadError, match="not valid UTF-8"):
        SaveFileStore(path).read()


def test_non_object_payload_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "save.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(SaveLoadError):
        SaveFileStore(path).read()


def test_unwritable_location_raises_write_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    store = SaveFileStore(blocker / "save.json")
    with pytest.raises(SaveWriteError):
        store.write({"a": 1})
    assert isinstance(SaveWriteError("x"), OSError)


def test_delete_removes_file(tmp_path: Path) -> None:
    store = SaveFileStore(tmp_path / "save.json")
    store.write({"a": 1})
    assert store.delete() is True
    assert not store.exists()
