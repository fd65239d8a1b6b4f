"""
Soundboard error taxonomy.

SoundboardError
├── DecodeError            unsupported/corrupt audio, malformed bytes
│   ├── FileAccessError    missing/unreadable file
│   └── SerializationError malformed persisted board bytes
├── MetadataProbeError     duration unavailable (absorbed by the extractor)
└── AudioDeviceError       output stream cannot be opened

Import, change-clip and load failures propagate to the UI. Metadata probe
failures never leave engine/waveform.py.
"""

from __future__ import annotations


class SoundboardError(Exception):
    """Base class for all soundboard failures."""


class DecodeError(SoundboardError):
    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        base = super().__str__()
        if self.path:
            return f"{base} ({self.path})"
        return base


class FileAccessError(DecodeError):
    pass


class SerializationError(DecodeError):
    def __init__(self, message: str, *, offset: int | None = None, path: str | None = None) -> None:
        super().__init__(message, path=path)
        self.offset = offset

    def __str__(self) -> str:
        base = super().__str__()
        if self.offset is not None:
            return f"{base} at byte {self.offset}"
        return base


class MetadataProbeError(SoundboardError):
    pass


class AudioDeviceError(SoundboardError):
    pass
