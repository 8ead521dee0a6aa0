"""Error kinds raised by the streaming search core."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class StreamSearchError(Exception):
    """Base error. `matches` holds whatever was found before the failure."""

    def __init__(self, message: str, matches: Sequence[Any] = ()) -> None:
        super().__init__(message)
        self.matches = tuple(matches)


class SourceReadError(StreamSearchError):
    """The byte source failed before end-of-stream."""


class LookaheadOverflow(StreamSearchError, ValueError):
    """Cursor capacity is too small for the pattern engine's over-read.

    This is a configuration error: raise the cursor capacity or lower the
    engine's `max_length`/`read_size`.
    """


class BroadcastError(StreamSearchError):
    """Writing broadcast bytes to a worker pipe failed."""
