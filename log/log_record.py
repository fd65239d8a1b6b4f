from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

@dataclass(frozen=True, slots=True)
class LogRecord:
    source: str
    message: str
    timestamp: datetime
    # (tab_index, button_index) of the button involved, if any
    slot: Optional[tuple[int, int]]
    metadata: Dict[str, Any]


@dataclass(frozen=True, slots=True)
class PlaybackLogRecord:
    """One finished (faded, stopped or replaced) playback."""
    slot: Optional[tuple[int, int]]
    file_path: str
    started_at: datetime
    stopped_at: datetime
    duration_seconds: float  # clip duration, 0.0 if unknown
    played_seconds: float
    reason: str  # "fade", "stopped", "replaced", "eof"
