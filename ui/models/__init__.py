"""UI-side models."""

from .board import BoardModel, BoardTab, Clip, Color32, SoundButton, Vec2
from .requests import AddToSlot, NO_REQUEST, NoRequest, PickerRequest, ReplaceClipOf

__all__ = [
    "BoardModel",
    "BoardTab",
    "Clip",
    "Color32",
    "SoundButton",
    "Vec2",
    "AddToSlot",
    "NO_REQUEST",
    "NoRequest",
    "PickerRequest",
    "ReplaceClipOf",
]
