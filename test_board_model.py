from __future__ import annotations

import pytest

from ui.models.board import (
    DEFAULT_BUTTON_COLOR,
    BoardModel,
    BoardTab,
    Clip,
    Color32,
    SoundButton,
    Vec2,
)


def test_new_board_has_one_tab():
    model = BoardModel()
    assert [t.name for t in model.tabs] == ["Tab 1"]
    assert model.active_tab_index == 0
    assert model.edit_mode is False


def test_board_without_tabs_is_invalid():
    with pytest.raises(ValueError):
        BoardModel(tabs=[])


def test_active_index_is_clamped():
    model = BoardModel(tabs=[BoardTab("A"), BoardTab("B")], active_tab_index=9)
    assert model.active_tab_index == 1
    model.select_tab(-3)
    assert model.active_tab_index == 0


def test_add_tab_names_and_activates():
    model = BoardModel()
    index = model.add_tab()
    assert index == 1
    assert model.tabs[1].name == "Tab 2"
    assert model.active_tab is model.tabs[1]


def test_rename_tab_trims_and_ignores_blank():
    model = BoardModel()
    assert model.rename_tab(0, "  Morning Show  ")
    assert model.tabs[0].name == "Morning Show"
    assert not model.rename_tab(0, "   ")
    assert model.tabs[0].name == "Morning Show"
    assert not model.rename_tab(5, "Nope")


def test_remove_tab_keeps_active_tab_selected():
    model = BoardModel(tabs=[BoardTab("A"), BoardTab("B"), BoardTab("C")], active_tab_index=2)
    model.remove_tab(0)
    assert model.active_tab.name == "C"
    model.remove_tab(1)
    assert model.active_tab.name == "B"
    with pytest.raises(ValueError):
        model.remove_tab(0)


def test_ensure_slot_grows_with_empty_buttons():
    tab = BoardTab("Tab 1")
    button = tab.ensure_slot(3)
    assert len(tab.buttons) == 4
    assert all(b.is_empty for b in tab.buttons)
    assert button.color == DEFAULT_BUTTON_COLOR
    assert tab.button_at(4) is None
    with pytest.raises(IndexError):
        tab.ensure_slot(-1)


def test_clip_from_path_uses_file_name():
    clip = Clip.from_path("/shows/monday/Theme Song.mp3", [0.25, 0.5], 61.0)
    assert clip.display_name == "Theme Song.mp3"
    assert clip.envelope == (0.25, 0.5)
    assert clip.duration_known
    assert not Clip.from_path("/x.wav", [], 0.0).duration_known


def test_clip_requires_a_source_path():
    with pytest.raises(ValueError):
        Clip(source_path="", envelope=(0.5,), duration_seconds=1.0)
    assert Clip(source_path="C:/radio/bed.mp3").display_name == "bed.mp3"


def test_color_validation_and_overlay():
    with pytest.raises(ValueError):
        Color32(256, 0, 0)
    c = Color32(100, 100, 255)
    assert c.gamma_multiply(0.5) == Color32(100, 100, 255, 128)


def test_floats_are_stored_at_single_precision():
    v = Vec2(0.1, 0.2)
    assert v.x == pytest.approx(0.1, abs=1e-7)
    assert Vec2(v.x, v.y) == v
    assert SoundButton().position == Vec2(0.0, 0.0)
