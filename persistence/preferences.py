import json
import os
import threading
from pathlib import Path
from typing import Any, Optional

from log.log_manager import LogManager

DEFAULTS: dict[str, Any] = {
    "last_board_path": None,
    "autoload_last_board": False,
    "window_geometry": None,
}


class Preferences:
    """Small JSON preference store for the application window.

    Writes are atomic (temp file + os.replace). With autosave enabled,
    set() schedules a debounced save so rapid edits collapse into one write.
    """

    def __init__(
        self,
        file_path: str | os.PathLike[str],
        *,
        autosave: bool = False,
        debounce_seconds: float = 0.5,
        log: Optional[LogManager] = None,
    ):
        self.file_path = Path(file_path)
        self.log = log or LogManager("app")
        self.values: dict[str, Any] = dict(DEFAULTS)

        self._lock = threading.Lock()
        self._autosave = bool(autosave)
        self._debounce_seconds = float(debounce_seconds)
        self._save_timer: Optional[threading.Timer] = None

        self.load()

    def load(self) -> None:
        with self._lock:
            self.values = dict(DEFAULTS)
            if not self.file_path.exists():
                return
            try:
                with self.file_path.open("r", encoding="utf-8") as file:
                    loaded = json.load(file)
            except json.JSONDecodeError as e:
                # Crash mid-write: keep the broken file for inspection, start fresh.
                corrupt = self.file_path.with_suffix(self.file_path.suffix + ".corrupt")
                self.log.warning(source="preferences", message=f"corrupt preferences moved to {corrupt.name}: {e}")
                try:
                    os.replace(self.file_path, corrupt)
                except OSError as move_error:
                    self.log.warning(source="preferences", message=f"could not move corrupt file: {move_error}")
                return
            except OSError as e:
                self.log.warning(source="preferences", message=f"cannot read {self.file_path}: {e}")
                return
            if isinstance(loaded, dict):
                self.values.update(loaded)

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        with self._lock:
            value = self.values.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self.values[key] = value
            autosave = self._autosave
        if autosave:
            self.schedule_save()

    def schedule_save(self) -> None:
        """Debounced save; safe to call on every change."""
        with self._lock:
            existing, self._save_timer = self._save_timer, None
            if self._debounce_seconds <= 0:
                timer = None
            else:
                timer = threading.Timer(self._debounce_seconds, self._debounced_save)
                timer.daemon = True
                self._save_timer = timer
        if existing is not None:
            existing.cancel()
        if timer is None:
            self.save()
        else:
            timer.start()

    def _debounced_save(self) -> None:
        with self._lock:
            self._save_timer = None
            self._save_unlocked()

    def save(self) -> None:
        with self._lock:
            timer, self._save_timer = self._save_timer, None
            if timer is not None:
                timer.cancel()
            self._save_unlocked()

    def _save_unlocked(self) -> None:
        tmp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as file:
                json.dump(self.values, file, indent=4, ensure_ascii=False)
                file.flush()
                os.fsync(file.fileno())
            os.replace(tmp_path, self.file_path)
        except OSError as e:
            # Preferences are best-effort; the board file is what matters.
            self.log.error(source="preferences", message=f"failed to save {self.file_path}: {e}")

    def close(self) -> None:
        """Flush any pending debounced save."""
        self.save()
