from __future__ import annotations

import json
import time

from persistence.preferences import DEFAULTS, Preferences


def test_missing_file_uses_defaults(tmp_path):
    prefs = Preferences(tmp_path / "preferences.json")
    assert prefs.values == DEFAULTS
    assert prefs.get("autoload_last_board") is False
    assert prefs.get("last_board_path", "fallback") == "fallback"


def test_save_and_reload(tmp_path):
    path = tmp_path / "preferences.json"
    prefs = Preferences(path)
    prefs.set("last_board_path", "/shows/monday.bin")
    prefs.save()

    assert json.loads(path.read_text(encoding="utf-8"))["last_board_path"] == "/shows/monday.bin"
    assert Preferences(path).get("last_board_path") == "/shows/monday.bin"
    assert not path.with_suffix(".json.tmp").exists()


def test_autosave_is_debounced(tmp_path):
    path = tmp_path / "preferences.json"
    prefs = Preferences(path, autosave=True, debounce_seconds=0.1)
    prefs.set("window_geometry", "a")
    prefs.set("window_geometry", "b")
    assert not path.exists(), "nothing is written before the debounce window"

    deadline = time.monotonic() + 2.0
    while not path.exists() and time.monotonic() < deadline:
        time.sleep(0.02)
    assert json.loads(path.read_text(encoding="utf-8"))["window_geometry"] == "b"


def test_close_flushes_pending_save(tmp_path):
    path = tmp_path / "preferences.json"
    prefs = Preferences(path, autosave=True, debounce_seconds=30.0)
    prefs.set("autoload_last_board", True)
    prefs.close()
    assert json.loads(path.read_text(encoding="utf-8"))["autoload_last_board"] is True


def test_corrupt_file_is_moved_aside(tmp_path):
    path = tmp_path / "preferences.json"
    path.write_text("{broken", encoding="utf-8")

    prefs = Preferences(path)

    assert prefs.values == DEFAULTS
    assert not path.exists()
    assert (tmp_path / "preferences.json.corrupt").read_text(encoding="utf-8") == "{broken"
