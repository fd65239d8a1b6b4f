from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Central defaults (used when env vars and/or engine_tuning.json are absent).
DEFAULT_SAMPLE_RATE = 48000
DEFAULT_CHANNELS = 2
DEFAULT_BLOCK_FRAMES = 1024

# Fade-out ramp: 1 second, stepped at ~60 Hz.
DEFAULT_FADE_SECONDS = 1.0
DEFAULT_FADE_STEP_SECONDS = 0.016

# How far ahead each sink's decoder thread may run.
DEFAULT_DECODE_BUFFER_SECONDS = 4.0


@dataclass(frozen=True, slots=True)
class EngineTuning:
    """Output stream and fade settings for one AudioEngine."""

    sample_rate: int = DEFAULT_SAMPLE_RATE
    channels: int = DEFAULT_CHANNELS
    block_frames: int = DEFAULT_BLOCK_FRAMES
    fade_seconds: float = DEFAULT_FADE_SECONDS
    fade_step_seconds: float = DEFAULT_FADE_STEP_SECONDS
    decode_buffer_seconds: float = DEFAULT_DECODE_BUFFER_SECONDS
    # sounddevice device index or name substring; None = host default
    output_device: Optional[int | str] = None


# env var -> (field, parser)
_ENV_OVERRIDES = {
    "RADIO_SAMPLE_RATE": ("sample_rate", int),
    "RADIO_CHANNELS": ("channels", int),
    "RADIO_BLOCK_FRAMES": ("block_frames", int),
    "RADIO_FADE_SECONDS": ("fade_seconds", float),
    "RADIO_FADE_STEP_SECONDS": ("fade_step_seconds", float),
    "RADIO_DECODE_BUFFER_SECONDS": ("decode_buffer_seconds", float),
}


def _repo_root() -> Path:
    # engine/ is a direct child of repo root.
    return Path(__file__).resolve().parents[1]


def _exe_dir() -> Path | None:
    # PyInstaller sets sys.frozen.
    if not bool(getattr(sys, "frozen", False)):
        return None
    try:
        return Path(sys.executable).resolve().parent
    except OSError:
        return None


def resolve_engine_tuning_path() -> Path:
    """Return the path of the active tuning file (it may not exist)."""
    base = _exe_dir() or _repo_root()
    env = (os.environ.get("RADIO_ENGINE_TUNING_PATH") or "").strip()
    if env:
        p = Path(env)
        if not p.is_absolute():
            p = base / p
        return p
    return base / "engine_tuning.json"


def _read_json(path: Path) -> dict[str, Any] | None:
    try:
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable tuning file %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring tuning file %s: top level is not an object", path)
        return None
    return data


def _coerce(name: str, raw: Any, parser) -> Any:
    try:
        value = parser(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid tuning value %s=%r", name, raw)
        return None
    if value <= 0:
        logger.warning("Ignoring non-positive tuning value %s=%r", name, raw)
        return None
    return value


def _parse_device(raw: Any) -> Optional[int | str]:
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return text


def load_tuning(path: Path | None = None) -> EngineTuning:
    """Defaults < engine_tuning.json < RADIO_* environment variables."""
    tuning = EngineTuning()
    parsers = {name: parser for name, parser in _ENV_OVERRIDES.values()}

    data = _read_json(path or resolve_engine_tuning_path()) or {}
    updates: dict[str, Any] = {}
    known = {f.name for f in fields(EngineTuning)}
    for key, raw in data.items():
        if key not in known:
            logger.warning("Unknown tuning key %r", key)
            continue
        if key == "output_device":
            updates[key] = _parse_device(raw)
            continue
        value = _coerce(key, raw, parsers[key])
        if value is not None:
            updates[key] = value

    for env_key, (name, parser) in _ENV_OVERRIDES.items():
        raw = (os.environ.get(env_key) or "").strip()
        if not raw:
            continue
        value = _coerce(env_key, raw, parser)
        if value is not None:
            updates[name] = value

    if "RADIO_OUTPUT_DEVICE" in os.environ:
        updates["output_device"] = _parse_device(os.environ.get("RADIO_OUTPUT_DEVICE"))

    if updates.get("channels", DEFAULT_CHANNELS) not in (1, 2):
        logger.warning("Only mono or stereo output is supported, ignoring channels=%r", updates["channels"])
        updates.pop("channels")

    if updates:
        tuning = replace(tuning, **updates)
    return tuning
