"""
Soundboard controller: the application logic behind the window.

Owns the BoardModel, the AudioEngine and the pending file-picker request. Has
no Qt dependency so it can be driven from tests or another front end.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional

from engine.audio_engine import AudioEngine
from engine.errors import SoundboardError
from engine.session import PlaybackSession
from engine.waveform import extract
from log.log_manager import LogManager
from persistence.board_file import load_board, save_board
from ui.models.board import BoardModel, Clip, Color32, SoundButton
from ui.models.requests import NO_REQUEST, AddToSlot, PickerRequest, ReplaceClipOf

FilePicker = Callable[[], Optional[str]]


def format_time(seconds: float) -> str:
    """MM:SS, or HH:MM:SS from one hour up. Negative values show as 00:00."""
    secs = int(max(0.0, float(seconds)))
    h, rem = divmod(secs, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return f"{h:02d}:{m:02d}:{s:02d}"
    return f"{m:02d}:{s:02d}"


class Soundboard:
    def __init__(
        self,
        *,
        engine_factory: Callable[[], AudioEngine] = AudioEngine,
        extractor: Callable[[str], tuple] = extract,
        log: Optional[LogManager] = None,
        model: Optional[BoardModel] = None,
    ) -> None:
        self.log = log or LogManager("app")
        self._engine_factory = engine_factory
        self._extractor = extractor
        self.model = model or BoardModel()
        self.engine = engine_factory()
        self.pending: PickerRequest = NO_REQUEST

    # -------------------------------------------------
    # Tabs
    # -------------------------------------------------

    def add_tab(self) -> int:
        return self.model.add_tab()

    def rename_tab(self, index: int, name: str) -> bool:
        return self.model.rename_tab(index, name)

    def select_tab(self, index: int) -> None:
        self.model.select_tab(index)

    def remove_tab(self, index: int) -> None:
        key = self.engine.current_key
        self.model.remove_tab(index)
        # Keys of later tabs shifted; nothing there can keep playing by identity.
        if key is not None and key[0] >= index:
            self.engine.stop()

    # -------------------------------------------------
    # Buttons
    # -------------------------------------------------

    def _key(self, index: int, tab_index: Optional[int] = None) -> tuple[int, int]:
        return (self.model.active_tab_index if tab_index is None else tab_index, index)

    def _load_clip(self, path: str | os.PathLike[str]) -> Clip:
        try:
            envelope, duration = self._extractor(str(path))
        except SoundboardError as e:
            self.log.error(source="import", message=f"cannot import clip: {e}", metadata={"path": str(path)})
            raise
        return Clip.from_path(path, envelope, duration)

    def import_clip(self, slot: int, path: str | os.PathLike[str]) -> SoundButton:
        """Put ``path`` into ``slot`` of the active tab, growing the grid as needed.

        Extraction happens before the model is touched, so a failure leaves the
        slot as it was.
        """
        clip = self._load_clip(path)
        tab = self.model.active_tab
        tab.ensure_slot(slot)
        key = self._key(slot)
        if self.engine.is_playing(key):
            self.engine.stop()
        button = SoundButton(label=clip.display_name, clip=clip)
        tab.buttons[slot] = button
        self.log.info(source="import", message=f"added {clip.display_name}", slot=key, metadata={"duration": clip.duration_seconds, "points": len(clip.envelope)})
        return button

    def change_clip(self, index: int, path: str | os.PathLike[str]) -> SoundButton:
        """Replace the clip of an existing button; label follows the new file name."""
        button = self.model.active_tab.button_at(index)
        if button is None:
            raise IndexError(f"No button at slot {index}")
        clip = self._load_clip(path)
        key = self._key(index)
        session = self.engine.session
        if session is not None and session.key == key:
            self.engine.stop()
        button.clip = clip
        button.label = clip.display_name
        self.log.info(source="import", message=f"changed clip to {clip.display_name}", slot=key)
        return button

    def edit_button(self, index: int, *, label: Optional[str] = None, color: Optional[Color32] = None) -> SoundButton:
        button = self.model.active_tab.button_at(index)
        if button is None:
            raise IndexError(f"No button at slot {index}")
        if label is not None:
            button.label = label
        if color is not None:
            button.color = color
        return button

    # -------------------------------------------------
    # Deferred picker requests
    # -------------------------------------------------

    def request_add(self, slot: int) -> None:
        self.pending = AddToSlot(slot)

    def request_change(self, index: int) -> None:
        self.pending = ReplaceClipOf(index)

    def resolve_pending(self, picker: FilePicker) -> Optional[SoundButton]:
        """Run the picker for the pending request, if any.

        The request is consumed even when the picker is cancelled or the import
        fails; import errors propagate to the caller.
        """
        request, self.pending = self.pending, NO_REQUEST
        if not isinstance(request, (AddToSlot, ReplaceClipOf)):
            return None
        path = picker()
        if not path:
            return None
        if isinstance(request, AddToSlot):
            return self.import_clip(request.index, path)
        return self.change_clip(request.index, path)

    # -------------------------------------------------
    # Playback
    # -------------------------------------------------

    def is_playing(self, index: int, tab_index: Optional[int] = None) -> bool:
        return self.engine.is_playing(self._key(index, tab_index))

    def press(self, index: int) -> Optional[PlaybackSession]:
        """Normal-mode click: toggle the button, fading out whatever else plays."""
        if self.model.edit_mode:
            return None
        button = self.model.active_tab.button_at(index)
        if button is None or button.clip is None:
            return None
        key = self._key(index)
        if self.engine.is_playing(key):
            self.engine.fade_out()
            return None
        if self.engine.current_key is not None:
            self.engine.fade_out()
        return self.engine.play(button.clip.source_path, button.clip.duration_seconds, key=key)

    def tick(self) -> bool:
        """Per-frame housekeeping; returns True when a finished clip was cleared."""
        session = self.engine.session
        if session is None or session.fading or session.duration_seconds <= 0.0:
            return False
        if self.engine.elapsed() < session.duration_seconds:
            return False
        self.engine.stop(reason="eof")
        return True

    def remaining(self, index: int) -> float:
        button = self.model.active_tab.button_at(index)
        if button is None or button.clip is None:
            return 0.0
        duration = button.clip.duration_seconds
        if self.is_playing(index):
            return max(0.0, duration - self.engine.elapsed())
        return duration

    def progress(self, index: int) -> Optional[float]:
        """Fraction played (0..1) for the playing button with a known duration."""
        button = self.model.active_tab.button_at(index)
        if button is None or button.clip is None or not self.is_playing(index):
            return None
        duration = button.clip.duration_seconds
        if duration <= 0.0:
            return None
        return min(1.0, self.engine.elapsed() / duration)

    # -------------------------------------------------
    # Persistence
    # -------------------------------------------------

    def save(self, path: str | os.PathLike[str]) -> Path:
        try:
            written = save_board(self.model, path)
        except SoundboardError as e:
            self.log.error(source="persistence", message=f"save failed: {e}")
            raise
        self.log.info(source="persistence", message=f"saved board to {written}", metadata={"tabs": len(self.model.tabs)})
        return written

    def load(self, path: str | os.PathLike[str]) -> BoardModel:
        """Replace the board with the file's contents, all or nothing.

        The engine is always rebuilt idle: the old one is closed first so only
        one output stream is ever open.
        """
        try:
            staged = load_board(path)
        except SoundboardError as e:
            self.log.error(source="persistence", message=f"load failed, board unchanged: {e}")
            raise
        self.model = staged
        self.pending = NO_REQUEST
        self.engine.close()
        self.engine = self._engine_factory()
        self.log.info(source="persistence", message=f"loaded board from {path}", metadata={"tabs": len(staged.tabs)})
        return staged

    def close(self) -> None:
        self.engine.close()
