"""
Waveform extraction for soundboard clips.

extract(path) decodes the whole file once and returns a fixed-resolution peak
envelope (one point per 1024 decoded samples, channels interleaved) plus the
clip duration. The duration is probed separately from the stream metadata
(frames / sample rate) and is 0.0 when the metadata is unavailable; callers
treat 0.0 as "unknown".
"""

from __future__ import annotations

import math
import os
from fractions import Fraction
from pathlib import Path
from typing import Optional

import av
from av.error import FFmpegError
import numpy as np

from engine.errors import DecodeError, FileAccessError, MetadataProbeError
from log.log_manager import LogManager

ENVELOPE_WINDOW = 1024

_log = LogManager("waveform")


def open_audio(path: str):
    """Open ``path`` and return (container, first audio stream).

    Missing/unreadable files raise FileAccessError, anything FFmpeg cannot
    demux (or a file without audio) raises DecodeError.
    """
    p = Path(path)
    if not p.is_file():
        raise FileAccessError("Audio file not found", path=str(path))
    if not os.access(p, os.R_OK):
        raise FileAccessError("Audio file is not readable", path=str(path))
    try:
        container = av.open(str(p))
    except PermissionError as e:
        raise FileAccessError(f"Audio file is not readable: {e}", path=str(path)) from e
    except (FFmpegError, OSError, ValueError) as e:
        raise DecodeError(f"Unsupported or corrupt audio: {e}", path=str(path)) from e

    stream = next((s for s in container.streams if s.type == "audio"), None)
    if stream is None:
        container.close()
        raise DecodeError("No audio stream", path=str(path))
    return container, stream


def decode_samples(path: str) -> np.ndarray:
    """Decode the whole file to a flat float32 array (interleaved, -1..1)."""
    container, stream = open_audio(path)
    try:
        resampler: Optional[av.AudioResampler] = None
        chunks: list[np.ndarray] = []
        for packet in container.demux(stream):
            for frame in packet.decode():
                if resampler is None:
                    # Keep the decoder's own rate and layout, only force packed float.
                    resampler = av.AudioResampler(format="flt", layout=frame.layout.name, rate=frame.sample_rate)
                for out in resampler.resample(frame):
                    chunks.append(out.to_ndarray().reshape(-1))
        if resampler is not None:
            for out in resampler.resample(None):
                if out is not None:
                    chunks.append(out.to_ndarray().reshape(-1))
    except FFmpegError as e:
        raise DecodeError(f"Decoding failed: {e}", path=str(path)) from e
    finally:
        container.close()

    if not chunks:
        return np.zeros(0, dtype=np.float32)
    return np.concatenate(chunks).astype(np.float32, copy=False)


def compute_envelope(samples: np.ndarray, window: int = ENVELOPE_WINDOW) -> np.ndarray:
    """Max absolute value per window; the last window may be shorter."""
    samples = np.asarray(samples, dtype=np.float32).reshape(-1)
    n = int(samples.size)
    if n == 0:
        return np.zeros(0, dtype=np.float32)
    count = math.ceil(n / window)
    # Zero padding never wins a max(abs()) against real samples.
    padded = np.zeros(count * window, dtype=np.float32)
    padded[:n] = np.abs(samples)
    peaks = padded.reshape(count, window).max(axis=1)
    return np.clip(peaks, 0.0, 1.0).astype(np.float32, copy=False)


def probe_duration(path: str) -> float:
    """Duration from stream metadata: total frames / sample rate.

    Raises MetadataProbeError when the file cannot be probed or a field is
    missing.
    """
    try:
        container = av.open(str(path))
    except (FFmpegError, OSError, ValueError) as e:
        raise MetadataProbeError(f"Cannot probe {path}: {e}") from e
    try:
        stream = next((s for s in container.streams if s.type == "audio"), None)
        if stream is None:
            raise MetadataProbeError(f"No audio stream in {path}")
        rate = int(stream.rate or 0)
        if rate <= 0:
            raise MetadataProbeError(f"Sample rate missing for {path}")
        if stream.duration is None or stream.time_base is None:
            raise MetadataProbeError(f"Frame count missing for {path}")
        frames = round(Fraction(stream.duration) * Fraction(stream.time_base) * rate)
    finally:
        container.close()

    duration = frames / float(rate)
    if not math.isfinite(duration) or duration < 0.0:
        raise MetadataProbeError(f"Invalid duration {duration!r} for {path}")
    return duration


def extract(path: str) -> tuple[np.ndarray, float]:
    """Return (envelope, duration_seconds) for an audio file.

    Raises FileAccessError / DecodeError when the file cannot be decoded.
    """
    envelope = compute_envelope(decode_samples(path))
    try:
        duration = probe_duration(path)
    except MetadataProbeError as e:
        _log.debug(source="waveform", message=f"duration unknown: {e}", metadata={"path": str(path)})
        duration = 0.0
    _log.debug(
        source="waveform",
        message="extracted",
        metadata={"path": str(path), "points": int(envelope.size), "duration": duration},
    )
    return envelope, duration


def envelope_index_for_pixel(pixel_x: float, width: float, envelope_len: int) -> int:
    """Map a pixel column to an envelope index by position, not by time."""
    if envelope_len <= 0 or width <= 0:
        return 0
    idx = int(math.floor(pixel_x / width * envelope_len))
    return max(0, min(envelope_len - 1, idx))
