from __future__ import annotations

import os
from pathlib import Path

from engine.errors import FileAccessError, SerializationError
from persistence.board_codec import deserialize, serialize
from ui.models.board import BoardModel

DEFAULT_BOARD_FILENAME = "radio_conductor_save.bin"


def save_board(model: BoardModel, file_path: str | os.PathLike[str]) -> Path:
    """Write the board atomically (temp file, fsync, replace)."""
    path = Path(file_path)
    data = serialize(model)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp_path.open("wb") as file:
            file.write(data)
            file.flush()
            os.fsync(file.fileno())
        # Atomic replace on Windows and POSIX.
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise FileAccessError(f"Cannot write board file: {e}", path=str(path)) from e
    return path


def load_board(file_path: str | os.PathLike[str]) -> BoardModel:
    """Read and decode a board file into a new model (the caller swaps it in)."""
    path = Path(file_path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise FileAccessError(f"Cannot read board file: {e}", path=str(path)) from e
    try:
        return deserialize(data)
    except SerializationError as e:
        e.path = str(path)
        raise
