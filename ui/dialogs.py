"""File dialogs that remember the last-used directory.

Audio clips and board files keep separate "last directory" entries so picking
music does not move the board dialog away from the save folder.

QSettings is created with an explicit organization/app name so it persists
even if the QApplication names aren't set elsewhere.
"""

from __future__ import annotations

import os
from typing import Optional, Tuple

from PySide6.QtCore import QSettings
from PySide6.QtWidgets import QFileDialog, QWidget

from persistence.board_file import DEFAULT_BOARD_FILENAME


_SETTINGS_ORG = "RadioConductor"
_SETTINGS_APP = "RadioConductor"

AUDIO_FILTER = "Audio (*.wav *.mp3 *.flac *.ogg *.m4a *.aac);;All files (*)"
BOARD_FILTER = "Radio Conductor board (*.bin);;All files (*)"


def _settings() -> QSettings:
    return QSettings(_SETTINGS_ORG, _SETTINGS_APP)


def _norm_dir(path: Optional[str]) -> str:
    if not path:
        return ""
    return os.path.abspath(os.path.expanduser(str(path)))


def _remember(settings_key: str, filename: str) -> None:
    if filename:
        _settings().setValue(settings_key, _norm_dir(os.path.dirname(filename)))


def get_open_file_name(
    parent: Optional[QWidget],
    caption: str,
    default_dir: str = "",
    file_filter: str = "",
    *,
    settings_key: str = "last_dir",
) -> Tuple[str, str]:
    """Like QFileDialog.getOpenFileName, but remembers last folder."""
    start_dir = _norm_dir(_settings().value(settings_key, "")) or _norm_dir(default_dir)
    filename, selected_filter = QFileDialog.getOpenFileName(parent, caption, start_dir, file_filter)
    _remember(settings_key, filename)
    return filename, selected_filter


def get_save_file_name(
    parent: Optional[QWidget],
    caption: str,
    default_name: str = "",
    file_filter: str = "",
    *,
    settings_key: str = "last_dir",
) -> Tuple[str, str]:
    """Like QFileDialog.getSaveFileName, but remembers last folder.

    ``default_name`` is pre-filled inside the remembered folder.
    """
    start_dir = _norm_dir(_settings().value(settings_key, ""))
    start = os.path.join(start_dir, default_name) if start_dir else default_name
    filename, selected_filter = QFileDialog.getSaveFileName(parent, caption, start, file_filter)
    _remember(settings_key, filename)
    return filename, selected_filter


def pick_audio_file(parent: Optional[QWidget]) -> Optional[str]:
    filename, _ = get_open_file_name(parent, "Choose music", file_filter=AUDIO_FILTER, settings_key="last_audio_dir")
    return filename or None


def pick_board_to_open(parent: Optional[QWidget]) -> Optional[str]:
    filename, _ = get_open_file_name(parent, "Import board", file_filter=BOARD_FILTER, settings_key="last_board_dir")
    return filename or None


def pick_board_to_save(parent: Optional[QWidget]) -> Optional[str]:
    filename, _ = get_save_file_name(
        parent,
        "Save board",
        DEFAULT_BOARD_FILENAME,
        BOARD_FILTER,
        settings_key="last_board_dir",
    )
    return filename or None
