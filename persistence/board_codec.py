"""
Binary board codec.

Little-endian, fixed-width layout, byte-compatible with the
radio_conductor_save.bin files of earlier Radio Conductor releases:

    u64 tab_count
      tab:    string name, u64 button_count
        button: string label, string source_path, f32 x, f32 y, u32 color,
                u64 n, n*f32 envelope, f32 duration
    u64 active_tab_index
    u8  edit_mode
    option<(u64, u64)> current_playing          always written as None
    option<u64>, string, u32, option<u64>, option<u64>   edit popup state
    option<u64> renaming_tab                      always written as None
    string tab_rename_buf                         always written empty

    string = u64 byte length + UTF-8 bytes
    option = u8 tag (0 None, 1 Some) + value

Colors are packed R | G<<8 | B<<16 | A<<24 from straight RGBA. Nothing about
playback is stored; a loaded board always starts silent.
"""

from __future__ import annotations

import struct

from engine.errors import SerializationError
from ui.models.board import WHITE, BoardModel, BoardTab, Clip, Color32, SoundButton, Vec2

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_F32 = struct.Struct("<f")
_VEC2 = struct.Struct("<ff")


def pack_color(color: Color32) -> int:
    r, g, b, a = color.rgba()
    return (a << 24) | (b << 16) | (g << 8) | r


def unpack_color(value: int) -> Color32:
    return Color32(
        value & 0xFF,
        (value >> 8) & 0xFF,
        (value >> 16) & 0xFF,
        (value >> 24) & 0xFF,
    )


class BoardWriter:
    def __init__(self) -> None:
        self._buf = bytearray()

    def getvalue(self) -> bytes:
        return bytes(self._buf)

    def u8(self, value: int) -> None:
        self._buf += _U8.pack(value)

    def u32(self, value: int) -> None:
        self._buf += _U32.pack(value)

    def u64(self, value: int) -> None:
        self._buf += _U64.pack(value)

    def f32(self, value: float) -> None:
        self._buf += _F32.pack(value)

    def boolean(self, value: bool) -> None:
        self.u8(1 if value else 0)

    def string(self, value: str) -> None:
        raw = value.encode("utf-8")
        self.u64(len(raw))
        self._buf += raw

    def none(self) -> None:
        self.u8(0)

    def vec2(self, value: Vec2) -> None:
        self._buf += _VEC2.pack(value.x, value.y)

    def color(self, value: Color32) -> None:
        self.u32(pack_color(value))

    def f32_seq(self, values) -> None:
        values = tuple(values)
        self.u64(len(values))
        if values:
            self._buf += struct.pack(f"<{len(values)}f", *values)


class BoardReader:
    def __init__(self, data: bytes) -> None:
        self._data = memoryview(bytes(data))
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def _take(self, count: int, what: str) -> memoryview:
        if count > self.remaining:
            raise SerializationError(f"Truncated data reading {what}", offset=self._pos)
        chunk = self._data[self._pos:self._pos + count]
        self._pos += count
        return chunk

    def u8(self, what: str = "u8") -> int:
        return _U8.unpack(self._take(1, what))[0]

    def u32(self, what: str = "u32") -> int:
        return _U32.unpack(self._take(4, what))[0]

    def u64(self, what: str = "u64") -> int:
        return _U64.unpack(self._take(8, what))[0]

    def f32(self, what: str = "f32") -> float:
        return _F32.unpack(self._take(4, what))[0]

    def length(self, item_size: int, what: str) -> int:
        offset = self._pos
        n = self.u64(what)
        # Reject impossible lengths before allocating anything.
        if n * max(1, item_size) > self.remaining:
            raise SerializationError(f"Length {n} for {what} exceeds remaining data", offset=offset)
        return n

    def boolean(self, what: str = "bool") -> bool:
        offset = self._pos
        v = self.u8(what)
        if v not in (0, 1):
            raise SerializationError(f"Invalid bool {v} for {what}", offset=offset)
        return v == 1

    def option_tag(self, what: str) -> bool:
        offset = self._pos
        tag = self.u8(what)
        if tag not in (0, 1):
            raise SerializationError(f"Invalid option tag {tag} for {what}", offset=offset)
        return tag == 1

    def string(self, what: str = "string") -> str:
        n = self.length(1, what)
        offset = self._pos
        raw = self._take(n, what)
        try:
            return bytes(raw).decode("utf-8")
        except UnicodeDecodeError as e:
            raise SerializationError(f"Invalid UTF-8 in {what}: {e.reason}", offset=offset) from e

    def vec2(self, what: str = "vec2") -> Vec2:
        x, y = _VEC2.unpack(self._take(8, what))
        return Vec2(x, y)

    def color(self, what: str = "color") -> Color32:
        return unpack_color(self.u32(what))

    def f32_seq(self, what: str) -> tuple[float, ...]:
        n = self.length(4, what)
        if n == 0:
            return ()
        return struct.unpack(f"<{n}f", self._take(4 * n, what))


# -------------------------------------------------
# Model <-> bytes
# -------------------------------------------------

def _write_button(w: BoardWriter, button: SoundButton) -> None:
    clip = button.clip
    w.string(button.label)
    w.string(clip.source_path if clip else "")
    w.vec2(button.position)
    w.color(button.color)
    w.f32_seq(clip.envelope if clip else ())
    w.f32(clip.duration_seconds if clip else 0.0)


def _read_button(r: BoardReader) -> SoundButton:
    label = r.string("button label")
    path = r.string("button path")
    position = r.vec2("button position")
    color = r.color("button color")
    envelope = r.f32_seq("button envelope")
    duration = r.f32("button duration")
    clip = None
    if path:
        clip = Clip(
            source_path=path,
            envelope=envelope,
            duration_seconds=duration,
        )
    return SoundButton(label=label, position=position, color=color, clip=clip)


def serialize(model: BoardModel) -> bytes:
    w = BoardWriter()
    w.u64(len(model.tabs))
    for tab in model.tabs:
        w.string(tab.name)
        w.u64(len(tab.buttons))
        for button in tab.buttons:
            _write_button(w, button)
    w.u64(model.active_tab_index)
    w.boolean(model.edit_mode)
    # current_playing: the engine is never persisted.
    w.none()
    # Edit popup state (editing, name_buf, color_buf, pending add, pending change).
    w.none()
    w.string("")
    w.color(WHITE)
    w.none()
    w.none()
    # renaming_tab, tab_rename_buf
    w.none()
    w.string("")
    return w.getvalue()


def deserialize(data: bytes) -> BoardModel:
    """Decode a board; raises SerializationError on any malformed input."""
    r = BoardReader(data)

    # Smallest possible tab: empty name + zero buttons = 16 bytes.
    tab_count = r.length(16, "tab count")
    if tab_count == 0:
        raise SerializationError("Board has no tabs", offset=0)
    tabs: list[BoardTab] = []
    for _ in range(tab_count):
        name = r.string("tab name")
        # Smallest possible button: 2 empty strings, vec2, color, empty envelope, duration.
        button_count = r.length(40, "button count")
        buttons = [_read_button(r) for _ in range(button_count)]
        tabs.append(BoardTab(name=name, buttons=buttons))

    active = r.u64("active tab")
    edit_mode = r.boolean("edit mode")

    # UI-transient fields: validated, then dropped.
    if r.option_tag("current playing"):
        r.u64("current playing tab")
        r.u64("current playing index")
    if r.option_tag("editing"):
        r.u64("editing index")
    r.string("name buffer")
    r.u32("color buffer")
    if r.option_tag("pending slot"):
        r.u64("pending slot")
    if r.option_tag("pending change"):
        r.u64("pending change")
    if r.option_tag("renaming tab"):
        r.u64("renaming tab")
    r.string("tab rename buffer")

    if r.remaining:
        raise SerializationError(f"{r.remaining} trailing bytes", offset=len(data) - r.remaining)

    # Out-of-range active index is clamped by the model.
    return BoardModel(tabs=tabs, active_tab_index=min(active, len(tabs) - 1), edit_mode=edit_mode)
