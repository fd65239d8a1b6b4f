"""Deferred file-picker requests, resolved once per UI cycle."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class NoRequest:
    pass


@dataclass(frozen=True, slots=True)
class AddToSlot:
    """Put a newly picked clip into an (possibly not yet created) grid slot."""
    index: int


@dataclass(frozen=True, slots=True)
class ReplaceClipOf:
    """Swap the clip of an existing button."""
    index: int


PickerRequest = Union[NoRequest, AddToSlot, ReplaceClipOf]

NO_REQUEST = NoRequest()
