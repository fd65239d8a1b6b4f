from __future__ import annotations

import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import numpy as np

try:
    import sounddevice as sd
    _sounddevice_import_error = None
except Exception as e:  # PortAudio missing raises OSError at import time
    sd = None
    _sounddevice_import_error = e

from engine.errors import AudioDeviceError, DecodeError
from engine.session import PlaybackSession, PlaybackState
from engine.sink import Sink
from engine.tuning import EngineTuning, load_tuning
from log.log_manager import LogManager
from log.log_record import PlaybackLogRecord


class AudioEngine:
    """Single-slot playback engine.

    Owns one output stream for its whole lifetime and at most one
    PlaybackSession. play() hard-stops whatever is sounding before starting the
    new clip; fade_out() ramps the current clip to silence on a background
    worker that only ever touches the sink it was started for.

    Playback position is wall clock (elapsed()), not decoder position, and the
    engine never reports natural end-of-clip. Callers compare elapsed() with the
    clip duration.
    """

    def __init__(
        self,
        tuning: Optional[EngineTuning] = None,
        *,
        log: Optional[LogManager] = None,
        sink_factory: Callable[..., Sink] = Sink,
    ) -> None:
        self.tuning = tuning or load_tuning()
        self.log = log or LogManager("engine")
        self._sink_factory = sink_factory

        # Control state (play/stop/fade, fade workers).
        self._lock = threading.RLock()
        self._session: Optional[PlaybackSession] = None
        # Sinks attached to the mixer. Guarded separately so the output
        # callback never waits on a file open in play().
        self._mix_lock = threading.Lock()
        self._sinks: list[Sink] = []
        self._closed = False

        self._stream = self._open_stream()

    # -------------------------------------------------
    # Output stream
    # -------------------------------------------------

    def _open_stream(self):
        if sd is None:
            raise AudioDeviceError(f"sounddevice is unavailable: {_sounddevice_import_error}")
        t = self.tuning
        try:
            stream = sd.OutputStream(
                samplerate=t.sample_rate,
                channels=t.channels,
                dtype="float32",
                blocksize=t.block_frames,
                callback=self._callback,
                device=t.output_device,
            )
            stream.start()
        except Exception as e:
            self.log.error(source="engine", message=f"cannot open output stream: {type(e).__name__}: {e}", metadata={"device": t.output_device})
            raise AudioDeviceError(f"Cannot open output device {t.output_device!r}: {e}") from e
        self.log.info(
            source="engine",
            message="output stream opened",
            metadata={"device": t.output_device, "sr": t.sample_rate, "ch": t.channels, "block": t.block_frames},
        )
        return stream

    def _callback(self, outdata, frames, time_info, status) -> None:
        outdata.fill(0.0)
        with self._mix_lock:
            sinks = tuple(self._sinks)
        for sink in sinks:
            sink.mix_into(outdata, frames)
        np.clip(outdata, -1.0, 1.0, out=outdata)
        if any(s.finished for s in sinks):
            with self._mix_lock:
                self._sinks = [s for s in self._sinks if not s.finished]

    def _attach(self, sink: Sink) -> None:
        with self._mix_lock:
            self._sinks.append(sink)

    def _detach(self, sink: Sink) -> None:
        with self._mix_lock:
            self._sinks = [s for s in self._sinks if s is not sink]

    @property
    def attached_sinks(self) -> tuple[Sink, ...]:
        with self._mix_lock:
            return tuple(self._sinks)

    # -------------------------------------------------
    # Session state
    # -------------------------------------------------

    @property
    def session(self) -> Optional[PlaybackSession]:
        with self._lock:
            return self._session

    @property
    def state(self) -> PlaybackState:
        with self._lock:
            if self._session is None:
                return PlaybackState.IDLE
            if self._session.fading:
                return PlaybackState.FADING_OUT
            return PlaybackState.PLAYING

    @property
    def current_key(self) -> Optional[tuple[int, int]]:
        """Key of the session that is audibly playing (not fading)."""
        with self._lock:
            if self._session is None or self._session.fading:
                return None
            return self._session.key

    def is_playing(self, key: tuple[int, int]) -> bool:
        return key is not None and self.current_key == key

    def elapsed(self) -> float:
        with self._lock:
            session = self._session
        if session is None:
            return 0.0
        return session.elapsed()

    # -------------------------------------------------
    # Transport
    # -------------------------------------------------

    def play(self, path: str | Path, duration_seconds: float, key: Optional[tuple[int, int]] = None) -> PlaybackSession:
        """Start ``path`` as the only sounding clip.

        Open/decode errors propagate (FileAccessError / DecodeError); the
        previous clip has already been stopped and the engine stays usable.
        """
        if self._closed:
            raise AudioDeviceError("Audio engine is closed")
        with self._lock:
            previous, self._session = self._session, None
            if previous is not None:
                self._end_session(previous, reason="replaced")

            try:
                sink = self._sink_factory(
                    str(path),
                    sample_rate=self.tuning.sample_rate,
                    channels=self.tuning.channels,
                    buffer_seconds=self.tuning.decode_buffer_seconds,
                    log=self.log,
                )
            except DecodeError as e:
                self.log.error(source="engine", message=f"play failed: {e}", slot=key, metadata={"path": str(path)})
                raise

            session = PlaybackSession(
                file_path=str(path),
                sink=sink,
                started_at=time.monotonic(),
                duration_seconds=float(duration_seconds or 0.0),
                key=key,
            )
            self._attach(sink)
            self._session = session
        self.log.info(source="engine", message="play", slot=key, metadata={"path": str(path), "duration": session.duration_seconds})
        return session

    def stop(self, *, reason: str = "stopped") -> None:
        """Hard-stop the current sink (fading or not) and go idle.

        ``reason`` ends up in the playback log; the controller passes "eof" when
        a clip has played to its end.
        """
        with self._lock:
            session, self._session = self._session, None
            if session is not None:
                self._end_session(session, reason=reason)

    def fade_out(self) -> Optional[threading.Thread]:
        """Fade the current session to silence in the background.

        Returns the fade task, or None when there is nothing to fade or a fade
        of this session is already running.
        """
        with self._lock:
            session = self._session
            if session is None or session.fading:
                return None
            task = threading.Thread(target=self._run_fade, args=(session,), name="fade-out", daemon=True)
            session.fade_task = task
            task.start()
        self.log.debug(source="engine", message="fade_out", slot=session.key)
        return task

    def _run_fade(self, session: PlaybackSession) -> None:
        # Only ever touches this session's sink, even if play() moved on.
        sink = session.sink
        length = max(0.0, float(self.tuning.fade_seconds))
        step = max(0.001, float(self.tuning.fade_step_seconds))
        start = time.monotonic()
        while True:
            progress = (time.monotonic() - start) / length if length > 0 else 1.0
            if progress >= 1.0:
                break
            sink.set_volume(1.0 - progress)
            time.sleep(step)
        sink.set_volume(0.0)

        with self._lock:
            if self._session is session:
                self._session = None
            self._end_session(session, reason="fade")

    def _end_session(self, session: PlaybackSession, *, reason: str) -> None:
        if not session.sink.stop():
            # Already stopped by play()/stop(); a late fade worker lands here.
            return
        self._detach(session.sink)
        self.log.log_playback(
            PlaybackLogRecord(
                slot=session.key,
                file_path=session.file_path,
                started_at=session.tod_start,
                stopped_at=datetime.now(),
                duration_seconds=session.duration_seconds,
                played_seconds=session.elapsed(),
                reason=reason,
            )
        )

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------

    def close(self) -> None:
        """Stop everything and release the output stream."""
        if self._closed:
            return
        self._closed = True
        self.stop()
        with self._mix_lock:
            sinks, self._sinks = self._sinks, []
        for sink in sinks:
            sink.stop()
        try:
            self._stream.stop()
            self._stream.close()
        except Exception as e:
            self.log.warning(source="engine", message=f"closing output stream failed: {e}")
        self.log.info(source="engine", message="output stream closed")
