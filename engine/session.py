from __future__ import annotations
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from engine.sink import Sink


class PlaybackState(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    FADING_OUT = "fading_out"


@dataclass(slots=True, eq=False)
class PlaybackSession:
    """The one clip an AudioEngine is currently sounding.

    Compared by identity: a fade worker checks whether *its* session is still
    the engine's current one before releasing it.
    """
    file_path: str
    sink: Sink
    started_at: float  # time.monotonic()
    duration_seconds: float = 0.0
    # (tab_index, button_index) of the button that started it
    key: Optional[tuple[int, int]] = None
    tod_start: datetime = field(default_factory=datetime.now)
    # In-flight fade worker; at most one per session.
    fade_task: Optional[threading.Thread] = None

    @property
    def fading(self) -> bool:
        return self.fade_task is not None

    def elapsed(self, now: Optional[float] = None) -> float:
        if now is None:
            now = time.monotonic()
        return max(0.0, now - self.started_at)
