"""Shared pytest fixtures: generated WAV/MP3 clips and a fake output device."""

from __future__ import annotations

import sys
import wave
from pathlib import Path
from types import SimpleNamespace

import av
import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent))

from engine import audio_engine
from engine.tuning import EngineTuning


def write_wav(path: Path, seconds: float, *, rate: int = 44100, channels: int = 1, amplitude: float = 0.5, freq: float = 440.0) -> Path:
    frames = int(round(seconds * rate))
    t = np.arange(frames, dtype=np.float64) / rate
    mono = amplitude * np.sin(2.0 * np.pi * freq * t)
    data = np.repeat(mono[:, None], channels, axis=1)
    pcm = np.clip(np.round(data * 32767.0), -32768, 32767).astype("<i2")
    with wave.open(str(path), "wb") as w:
        w.setnchannels(channels)
        w.setsampwidth(2)
        w.setframerate(rate)
        w.writeframes(pcm.tobytes())
    return path


@pytest.fixture
def make_wav(tmp_path):
    def _make(name: str = "clip.wav", seconds: float = 1.0, **kwargs) -> Path:
        return write_wav(tmp_path / name, seconds, **kwargs)
    return _make


def write_mp3(path: Path, seconds: float, *, rate: int = 44100, amplitude: float = 0.5, freq: float = 440.0) -> Path:
    t = np.arange(int(round(seconds * rate)), dtype=np.float64) / rate
    audio_int16 = np.round(amplitude * np.sin(2.0 * np.pi * freq * t) * 32767.0).astype(np.int16)

    container = av.open(str(path), "w")
    stream = container.add_stream("libmp3lame", rate=rate)
    stream.codec_context.layout = "mono"
    frame = av.AudioFrame.from_ndarray(audio_int16.reshape(1, -1), format="s16", layout="mono")
    frame.sample_rate = rate

    for packet in stream.encode(frame):
        container.mux(packet)
    for packet in stream.encode():
        container.mux(packet)
    container.close()
    return path


@pytest.fixture
def make_mp3(tmp_path):
    def _make(name: str = "clip.mp3", seconds: float = 1.0, **kwargs) -> Path:
        return write_mp3(tmp_path / name, seconds, **kwargs)
    return _make


class FakeOutputStream:
    """Stands in for sounddevice.OutputStream; never calls the callback on its own."""

    instances: list["FakeOutputStream"] = []

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.callback = kwargs.get("callback")
        self.started = False
        self.closed = False
        FakeOutputStream.instances.append(self)

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        self.closed = True

    def pull(self, frames: int) -> np.ndarray:
        """Run one output callback and return the block it produced."""
        channels = int(self.kwargs.get("channels", 2))
        out = np.ones((frames, channels), dtype=np.float32)
        self.callback(out, frames, None, None)
        return out


@pytest.fixture
def fake_sd(monkeypatch):
    FakeOutputStream.instances = []
    fake = SimpleNamespace(OutputStream=FakeOutputStream)
    monkeypatch.setattr(audio_engine, "sd", fake)
    return fake


@pytest.fixture
def fast_tuning():
    return EngineTuning(fade_seconds=0.3, fade_step_seconds=0.01, decode_buffer_seconds=1.0)
