from __future__ import annotations

import io
import logging
from collections.abc import Iterator
from dataclasses import dataclass

from streamfind.core.cursor import DEFAULT_CAPACITY, ByteSource, RewindableCursor
from streamfind.core.errors import LookaheadOverflow, SourceReadError
from streamfind.core.patterns import Pattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Match:
    """One occurrence: matched bytes and the byte offset of their first byte."""

    text: bytes
    offset: int

    @property
    def end(self) -> int:
        return self.offset + len(self.text)

    def to_dict(self) -> dict[str, object]:
        return {
            "offset": self.offset,
            "length": len(self.text),
            "text": self.text.decode("utf-8", errors="replace"),
        }


def as_source(source: ByteSource | bytes | bytearray | memoryview) -> ByteSource:
    """Wrap in-memory bytes in a reader; pass readers through."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(source))
    if not callable(getattr(source, "read", None)):
        raise TypeError(f"expected a readable byte source, got {type(source).__name__}")
    return source


def iter_matches(
    source: ByteSource | bytes,
    pattern: Pattern,
    count: int = 0,
    *,
    capacity: int = DEFAULT_CAPACITY,
) -> Iterator[Match]:
    """Yield successive matches of `pattern` in `source`, in offset order.

    `count == 0` yields every match; `count > 0` stops after `count` matches,
    leaving the rest of `source` unread.
    """
    if count < 0:
        raise ValueError("count must be >= 0 (0 means all matches)")
    lookahead = getattr(pattern, "lookahead", None)
    if lookahead is not None and lookahead > capacity:
        raise LookaheadOverflow(
            f"{pattern!r} may read {lookahead} bytes past a match start; "
            f"cursor capacity is {capacity}"
        )

    cursor = RewindableCursor(as_source(source), capacity)
    found = 0
    while count == 0 or found < count:
        start_cursor = cursor.tell()
        span = pattern.find(cursor)
        if span is None:
            break
        match_start, match_end = span
        end_cursor = cursor.tell()
        overread = (end_cursor - start_cursor) - match_end
        length = match_end - match_start
        cursor.unread(overread)

        yield Match(text=cursor.last_bytes(length), offset=end_cursor - overread - length)
        found += 1

        if length == 0 and cursor.consume() is None:
            # Step over one byte so an empty match is not found again.
            break


def find_all(
    source: ByteSource | bytes,
    pattern: Pattern,
    count: int = 0,
    *,
    capacity: int = DEFAULT_CAPACITY,
) -> list[Match]:
    """Return up to `count` matches (all when `count == 0`).

    On failure the matches found so far travel on the raised error's
    `matches` attribute.
    """
    matches: list[Match] = []
    try:
        for match in iter_matches(source, pattern, count, capacity=capacity):
            matches.append(match)
    except LookaheadOverflow as exc:
        exc.matches = tuple(matches)
        raise
    except OSError as exc:
        logger.debug("source failed after %d matches: %s", len(matches), exc)
        raise SourceReadError(f"source read failed: {exc}", matches) from exc
    return matches
