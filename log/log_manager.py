from __future__ import annotations
from datetime import datetime
import logging
import os
import threading
from typing import Any, Callable, Dict, Optional
from log.log_record import LogRecord, PlaybackLogRecord


class LogManager:
    """Structured log front end shared by the engine and the controller.

    Every call builds a LogRecord and writes it to the ``radio.<component>``
    logger. Finished playbacks are also handed to registered listeners (the UI
    status bar, tests).
    """

    def __init__(self, component: str = "engine", *, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(f"radio.{component}")
        self._debug_enabled = self._env_truthy("RADIO_LOG_DEBUG", default=False)
        self._listeners: list[Callable[[PlaybackLogRecord], None]] = []
        self._lock = threading.Lock()

    @staticmethod
    def _env_truthy(name: str, *, default: bool = False) -> bool:
        v = os.environ.get(name)
        if v is None:
            return default
        return v.strip().lower() in ("1", "true", "yes", "on")

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def debug(self, *, source: str, message: str, slot: Optional[tuple[int, int]] = None, metadata: Optional[Dict[str, Any]] = None) -> None:
        if not self._debug_enabled:
            return
        self._emit(logging.DEBUG, source=source, message=message, slot=slot, metadata=metadata)

    def info(self, *, source: str, message: str, slot: Optional[tuple[int, int]] = None, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._emit(logging.INFO, source=source, message=message, slot=slot, metadata=metadata)

    def warning(self, *, source: str, message: str, slot: Optional[tuple[int, int]] = None, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._emit(logging.WARNING, source=source, message=message, slot=slot, metadata=metadata)

    def error(self, *, source: str, message: str, slot: Optional[tuple[int, int]] = None, metadata: Optional[Dict[str, Any]] = None) -> None:
        self._emit(logging.ERROR, source=source, message=message, slot=slot, metadata=metadata)

    def _emit(self, level: int, *, source: str, message: str, slot: Optional[tuple[int, int]], metadata: Optional[Dict[str, Any]]) -> LogRecord:
        rec = LogRecord(source=source, message=message, timestamp=datetime.now(), slot=slot, metadata=dict(metadata or {}))
        slot_text = f"{rec.slot[0]}:{rec.slot[1]}" if rec.slot else "-"
        self._logger.log(level, "[%s] slot=%s %s %s", rec.source, slot_text, rec.message, rec.metadata)
        return rec

    def add_listener(self, listener: Callable[[PlaybackLogRecord], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[PlaybackLogRecord], None]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def log_playback(self, record: PlaybackLogRecord) -> None:
        """Log a finished playback and notify listeners."""
        self.debug(
            source="playback_finished",
            message=f"file={record.file_path} reason={record.reason} played={record.played_seconds:.2f}s",
            slot=record.slot,
        )
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(record)
            except Exception:
                self._logger.exception("Playback log listener failed")
