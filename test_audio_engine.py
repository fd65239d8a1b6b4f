"""AudioEngine transport tests against a fake output device.

The fake stream never runs the callback on its own, so sinks only drain when a
test pulls a block explicitly.
"""

from __future__ import annotations

import time
from types import SimpleNamespace

import numpy as np
import pytest

from conftest import FakeOutputStream
from engine import audio_engine
from engine import sink as sink_module
from engine.audio_engine import AudioEngine
from engine.errors import AudioDeviceError, FileAccessError
from engine.session import PlaybackState
from engine.sink import Sink
from log.log_manager import LogManager


def _engine(tuning):
    log = LogManager("test")
    records = []
    log.add_listener(records.append)
    return AudioEngine(tuning, log=log), records


def test_output_stream_opened_with_tuning(fake_sd, fast_tuning):
    engine, _ = _engine(fast_tuning)
    try:
        stream = FakeOutputStream.instances[-1]
        assert stream.started
        assert stream.kwargs["samplerate"] == fast_tuning.sample_rate
        assert stream.kwargs["channels"] == fast_tuning.channels
        assert stream.kwargs["dtype"] == "float32"
        assert engine.state is PlaybackState.IDLE
    finally:
        engine.close()
    assert FakeOutputStream.instances[-1].closed


def test_missing_sounddevice_raises_audio_device_error(monkeypatch, fast_tuning):
    monkeypatch.setattr(audio_engine, "sd", None)
    with pytest.raises(AudioDeviceError):
        AudioEngine(fast_tuning)


def test_play_replaces_previous_clip(fake_sd, fast_tuning, make_wav):
    a = make_wav("a.wav", seconds=3.0)
    b = make_wav("b.wav", seconds=3.0)
    engine, records = _engine(fast_tuning)
    try:
        first = engine.play(a, 3.0, key=(0, 0))
        second = engine.play(b, 3.0, key=(0, 1))

        assert first.sink.stopped, "previous sink must be stopped"
        assert engine.attached_sinks == (second.sink,), "only the new sink may be attached"
        assert engine.current_key == (0, 1)
        assert [r.reason for r in records] == ["replaced"]
    finally:
        engine.close()


def test_fade_does_not_touch_clip_started_after_it(fake_sd, fast_tuning, make_wav):
    a = make_wav("a.wav", seconds=3.0)
    b = make_wav("b.wav", seconds=3.0)
    engine, _ = _engine(fast_tuning)
    try:
        engine.play(a, 3.0, key=(0, 0))
        task = engine.fade_out()
        assert task is not None
        second = engine.play(b, 3.0, key=(0, 1))

        task.join(timeout=fast_tuning.fade_seconds + 2.0)
        assert not task.is_alive()

        assert second.sink.volume == 1.0, "stale fade changed the new clip's volume"
        assert not second.sink.stopped, "stale fade stopped the new clip"
        assert engine.session is second
        assert engine.state is PlaybackState.PLAYING
        assert engine.attached_sinks == (second.sink,)
    finally:
        engine.close()


def test_fade_out_is_single_flight_and_monotonic(fake_sd, fast_tuning, make_wav):
    a = make_wav("a.wav", seconds=3.0)
    engine, records = _engine(fast_tuning)
    try:
        session = engine.play(a, 3.0, key=(0, 0))
        task = engine.fade_out()
        assert engine.fade_out() is None, "second fade of the same session must be ignored"
        assert engine.state is PlaybackState.FADING_OUT
        assert engine.current_key is None, "a fading clip no longer counts as playing"

        volumes = []
        while task.is_alive():
            volumes.append(session.sink.volume)
            time.sleep(0.005)
        task.join()
        volumes.append(session.sink.volume)

        assert all(later <= earlier for earlier, later in zip(volumes, volumes[1:])), "volume must never rise during a fade"
        assert volumes[-1] == 0.0
        assert session.sink.stopped
        assert engine.state is PlaybackState.IDLE
        assert engine.attached_sinks == ()
        assert [r.reason for r in records] == ["fade"], "sink must be stopped exactly once"
    finally:
        engine.close()


def test_fade_out_when_idle_returns_none(fake_sd, fast_tuning):
    engine, _ = _engine(fast_tuning)
    try:
        assert engine.fade_out() is None
    finally:
        engine.close()


def test_stop_during_fade(fake_sd, fast_tuning, make_wav):
    a = make_wav("a.wav", seconds=3.0)
    engine, records = _engine(fast_tuning)
    try:
        session = engine.play(a, 3.0, key=(0, 0))
        task = engine.fade_out()
        engine.stop()

        assert session.sink.stopped
        assert engine.state is PlaybackState.IDLE
        task.join(timeout=fast_tuning.fade_seconds + 2.0)
        assert [r.reason for r in records] == ["stopped"]
    finally:
        engine.close()


def test_stop_reason_is_logged(fake_sd, fast_tuning, make_wav):
    a = make_wav("a.wav", seconds=1.0)
    engine, records = _engine(fast_tuning)
    try:
        engine.play(a, 1.0, key=(0, 2))
        engine.stop(reason="eof")
        engine.stop(reason="eof")

        assert engine.state is PlaybackState.IDLE
        assert [(r.reason, r.slot) for r in records] == [("eof", (0, 2))]
    finally:
        engine.close()


def test_elapsed_is_wall_clock(fake_sd, fast_tuning, make_wav):
    a = make_wav("a.wav", seconds=10.0)
    engine, _ = _engine(fast_tuning)
    try:
        assert engine.elapsed() == 0.0
        engine.play(a, 10.0)
        time.sleep(2.0)
        assert abs(engine.elapsed() - 2.0) < 0.05
    finally:
        engine.close()


def test_failed_play_leaves_engine_usable(fake_sd, fast_tuning, make_wav, tmp_path):
    a = make_wav("a.wav", seconds=2.0)
    engine, _ = _engine(fast_tuning)
    try:
        first = engine.play(a, 2.0, key=(0, 0))
        with pytest.raises(FileAccessError):
            engine.play(tmp_path / "missing.wav", 1.0, key=(0, 1))

        assert first.sink.stopped, "previous clip is stopped before the new one is opened"
        assert engine.state is PlaybackState.IDLE
        assert engine.attached_sinks == ()

        again = engine.play(a, 2.0, key=(0, 2))
        assert engine.session is again
    finally:
        engine.close()


def test_callback_mixes_decoded_audio(fake_sd, fast_tuning, make_wav):
    a = make_wav("a.wav", seconds=2.0, amplitude=0.5)
    engine, _ = _engine(fast_tuning)
    try:
        engine.play(a, 2.0)
        stream = FakeOutputStream.instances[-1]

        peak = 0.0
        deadline = time.monotonic() + 2.0
        while peak < 0.4 and time.monotonic() < deadline:
            block = stream.pull(512)
            peak = max(peak, float(np.max(np.abs(block))))
            time.sleep(0.01)

        assert 0.4 < peak < 0.55, f"expected the tone in the output, got peak {peak}"
    finally:
        engine.close()


def test_mp3_clip_is_audible(fake_sd, fast_tuning, make_mp3):
    a = make_mp3("a.mp3", seconds=2.0, amplitude=0.5)
    engine, _ = _engine(fast_tuning)
    try:
        engine.play(a, 2.0)
        stream = FakeOutputStream.instances[-1]

        peak = 0.0
        deadline = time.monotonic() + 2.0
        while peak < 0.3 and time.monotonic() < deadline:
            block = stream.pull(512)
            peak = max(peak, float(np.max(np.abs(block))))
            time.sleep(0.01)

        assert 0.3 < peak < 0.7, f"expected the decoded MP3 in the output, got peak {peak}"
    finally:
        engine.close()


def test_callback_outputs_silence_when_idle(fake_sd, fast_tuning):
    engine, _ = _engine(fast_tuning)
    try:
        block = FakeOutputStream.instances[-1].pull(256)
        assert np.all(block == 0.0)
    finally:
        engine.close()


def test_closed_engine_refuses_play(fake_sd, fast_tuning, make_wav):
    a = make_wav("a.wav", seconds=1.0)
    engine, _ = _engine(fast_tuning)
    engine.close()
    engine.close()
    with pytest.raises(AudioDeviceError):
        engine.play(a, 1.0)


def test_sink_closes_file_when_setup_fails(monkeypatch, make_wav):
    a = make_wav("a.wav", seconds=1.0)
    closed = []
    real_open = sink_module.open_audio

    def _open(path):
        container, stream = real_open(path)

        def _close():
            closed.append(path)
            container.close()

        return SimpleNamespace(close=_close), stream

    def _no_resampler(**kwargs):
        raise ValueError("unsupported layout")

    monkeypatch.setattr(sink_module, "open_audio", _open)
    monkeypatch.setattr(sink_module.av, "AudioResampler", _no_resampler)

    with pytest.raises(ValueError):
        Sink(str(a), sample_rate=44100, channels=2)
    assert closed == [str(a)], "the opened file must be closed exactly once"
