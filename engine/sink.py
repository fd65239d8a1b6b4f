"""
Sink: one decoded clip attached to the engine's output mixer.

The file is opened on the caller's thread so open/format errors surface from
play(). A daemon decoder thread then resamples to the output format and keeps a
bounded read-ahead buffer that the output callback drains through mix_into().

Every Sink is an independent object. Whoever holds a reference (the engine, a
fade worker) only ever changes that one sink, and calls made after stop() are
no-ops.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Optional

import av
from av.error import FFmpegError
import numpy as np

from engine.waveform import open_audio
from log.log_manager import LogManager


class Sink:
    def __init__(
        self,
        file_path: str,
        *,
        sample_rate: int,
        channels: int,
        buffer_seconds: float = 4.0,
        log: Optional[LogManager] = None,
    ) -> None:
        self.file_path = str(file_path)
        self.sample_rate = int(sample_rate)
        self.channels = int(channels)
        self.log = log or LogManager("engine")

        self._cond = threading.Condition()
        self._chunks: deque[np.ndarray] = deque()
        self._chunk_offset = 0
        self._buffered_frames = 0
        self._max_buffered_frames = max(1, int(buffer_seconds * self.sample_rate))
        self._volume = 1.0
        self._stopped = False
        self._eof = False

        self._container, self._stream = open_audio(self.file_path)
        try:
            self._resampler = av.AudioResampler(
                format="flt",
                layout="mono" if self.channels == 1 else "stereo",
                rate=self.sample_rate,
            )
            self._thread = threading.Thread(target=self._decode_loop, name="sink-decode", daemon=True)
            self._thread.start()
        except Exception:
            # The decoder thread never ran, so nobody else will close the file.
            self._container.close()
            raise

    # ------------------------------------------------------------------
    # Decoder thread
    # ------------------------------------------------------------------

    def _decode_loop(self) -> None:
        decoded_any = False
        try:
            for packet in self._container.demux(self._stream):
                for frame in packet.decode():
                    decoded_any = True
                    for out in self._resampler.resample(frame):
                        if not self._push(out):
                            return
            # A passthrough resampler hands back [None] on flush.
            for out in (self._resampler.resample(None) if decoded_any else ()):
                if out is not None and not self._push(out):
                    return
        except FFmpegError as e:
            self.log.warning(source="sink", message=f"decode stopped early: {e}", metadata={"path": self.file_path})
        finally:
            self._container.close()
            with self._cond:
                self._eof = True
                self._cond.notify_all()

    def _push(self, frame) -> bool:
        pcm = frame.to_ndarray().reshape(-1, self.channels).astype(np.float32, copy=False)
        if pcm.shape[0] == 0:
            return True
        with self._cond:
            while self._buffered_frames >= self._max_buffered_frames and not self._stopped:
                self._cond.wait(0.1)
            if self._stopped:
                return False
            self._chunks.append(pcm)
            self._buffered_frames += int(pcm.shape[0])
        return True

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    @property
    def volume(self) -> float:
        return self._volume

    def set_volume(self, volume: float) -> None:
        if self._stopped:
            return
        self._volume = min(1.0, max(0.0, float(volume)))

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def finished(self) -> bool:
        """True once stopped, or when the decoder hit EOF and the buffer is drained."""
        with self._cond:
            return self._stopped or (self._eof and self._buffered_frames == 0)

    def stop(self) -> bool:
        """Silence the sink and release its buffer.

        Returns True for the call that actually stopped it, False afterwards.
        """
        with self._cond:
            if self._stopped:
                return False
            self._stopped = True
            self._chunks.clear()
            self._chunk_offset = 0
            self._buffered_frames = 0
            self._cond.notify_all()
        return True

    # ------------------------------------------------------------------
    # Output callback side
    # ------------------------------------------------------------------

    def mix_into(self, out: np.ndarray, frames: int) -> int:
        """Add up to ``frames`` volume-scaled frames into ``out``; return frames written."""
        if self._stopped:
            return 0
        volume = self._volume
        written = 0
        with self._cond:
            while written < frames and self._chunks:
                chunk = self._chunks[0]
                available = chunk.shape[0] - self._chunk_offset
                take = min(frames - written, available)
                part = chunk[self._chunk_offset:self._chunk_offset + take]
                out[written:written + take, :] += part * volume
                written += take
                self._chunk_offset += take
                if self._chunk_offset >= chunk.shape[0]:
                    self._chunks.popleft()
                    self._chunk_offset = 0
            self._buffered_frames -= written
            if written:
                self._cond.notify_all()
        return written
