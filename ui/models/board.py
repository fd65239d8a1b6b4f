from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Optional, Sequence

import numpy as np

DEFAULT_TAB_NAME = "Tab 1"


def _f32(value: float) -> float:
    # Model floats are kept at the precision they are stored with.
    return float(np.float32(value))


@dataclass(frozen=True, slots=True)
class Vec2:
    x: float = 0.0
    y: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", _f32(self.x))
        object.__setattr__(self, "y", _f32(self.y))


@dataclass(frozen=True, slots=True)
class Color32:
    """Straight (non-premultiplied) 8-bit RGBA."""
    r: int
    g: int
    b: int
    a: int = 255

    def __post_init__(self) -> None:
        for name in ("r", "g", "b", "a"):
            v = getattr(self, name)
            if not isinstance(v, int) or not 0 <= v <= 255:
                raise ValueError(f"Color channel {name}={v!r} out of range 0..255")

    def rgba(self) -> tuple[int, int, int, int]:
        return (self.r, self.g, self.b, self.a)

    def gamma_multiply(self, factor: float) -> "Color32":
        """Same color with alpha scaled by ``factor`` (for translucent overlays)."""
        factor = min(1.0, max(0.0, float(factor)))
        return Color32(self.r, self.g, self.b, int(round(self.a * factor)))


DEFAULT_BUTTON_COLOR = Color32(100, 100, 255, 255)
WHITE = Color32(255, 255, 255, 255)


@dataclass(frozen=True, slots=True)
class Clip:
    """Audio bound to a button. Replaced as a whole, never edited in place.

    The display name is always the file name of ``source_path``; an empty
    path is not a clip (that is an empty slot).
    """
    source_path: str
    envelope: tuple[float, ...] = ()
    duration_seconds: float = 0.0

    def __post_init__(self) -> None:
        path = str(self.source_path)
        if not path:
            raise ValueError("A clip needs a non-empty source path")
        object.__setattr__(self, "source_path", path)
        env = np.asarray(self.envelope, dtype=np.float32).reshape(-1)
        object.__setattr__(self, "envelope", tuple(float(v) for v in env))
        object.__setattr__(self, "duration_seconds", _f32(self.duration_seconds))

    @classmethod
    def from_path(cls, path: str | Path, envelope: Sequence[float], duration_seconds: float) -> "Clip":
        return cls(source_path=str(path), envelope=tuple(envelope), duration_seconds=duration_seconds)

    @property
    def display_name(self) -> str:
        return PurePath(self.source_path).name

    @property
    def duration_known(self) -> bool:
        return self.duration_seconds > 0.0


@dataclass(slots=True)
class SoundButton:
    label: str = ""
    position: Vec2 = field(default_factory=Vec2)
    color: Color32 = DEFAULT_BUTTON_COLOR
    clip: Optional[Clip] = None

    @property
    def is_empty(self) -> bool:
        return self.clip is None


@dataclass(slots=True)
class BoardTab:
    name: str
    buttons: list[SoundButton] = field(default_factory=list)

    def button_at(self, index: int) -> Optional[SoundButton]:
        if 0 <= index < len(self.buttons):
            return self.buttons[index]
        return None

    def ensure_slot(self, index: int) -> SoundButton:
        """Grow the button list with empty slots so ``index`` exists."""
        if index < 0:
            raise IndexError(f"Negative slot index {index}")
        while len(self.buttons) <= index:
            self.buttons.append(SoundButton())
        return self.buttons[index]


@dataclass(slots=True)
class BoardModel:
    """Tabs of buttons plus the active tab.

    Invariant: at least one tab and 0 <= active_tab_index < len(tabs), kept by
    clamping after every tab-list change.
    """
    tabs: list[BoardTab] = field(default_factory=lambda: [BoardTab(DEFAULT_TAB_NAME)])
    active_tab_index: int = 0
    edit_mode: bool = False

    def __post_init__(self) -> None:
        if not self.tabs:
            raise ValueError("A board needs at least one tab")
        self._clamp()

    def _clamp(self) -> None:
        self.active_tab_index = max(0, min(len(self.tabs) - 1, int(self.active_tab_index)))

    @property
    def active_tab(self) -> BoardTab:
        return self.tabs[self.active_tab_index]

    def select_tab(self, index: int) -> None:
        self.active_tab_index = index
        self._clamp()

    def add_tab(self, name: Optional[str] = None) -> int:
        self.tabs.append(BoardTab(name or f"Tab {len(self.tabs) + 1}"))
        self.active_tab_index = len(self.tabs) - 1
        self._clamp()
        return self.active_tab_index

    def rename_tab(self, index: int, name: str) -> bool:
        name = (name or "").strip()
        if not name or not 0 <= index < len(self.tabs):
            return False
        self.tabs[index].name = name
        return True

    def remove_tab(self, index: int) -> BoardTab:
        if len(self.tabs) <= 1:
            raise ValueError("Cannot remove the last tab")
        removed = self.tabs.pop(index)
        if index < self.active_tab_index:
            self.active_tab_index -= 1
        self._clamp()
        return removed

