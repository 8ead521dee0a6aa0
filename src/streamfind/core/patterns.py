"""Pattern engines that search a sequential byte reader.

An engine only needs `find(reader)`: consume `reader` front to back and
return the `(start, end)` of the leftmost match, measured in bytes consumed
during that call, or None once the reader is exhausted. It may read past the
match end; the matcher gives those bytes back through the cursor.
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from streamfind.core.cursor import ByteSource

DEFAULT_MAX_LENGTH = 512
DEFAULT_READ_SIZE = 256


@runtime_checkable
class Pattern(Protocol):
    def find(self, reader: ByteSource) -> tuple[int, int] | None: ...


class RegexPattern:
    """Stdlib `re` search over a byte stream read in small pieces.

    Matches are assumed to be at most `max_length` bytes; a longer one is cut
    at whatever the buffer held when it was accepted. A candidate is accepted
    once the buffer holds `max_length` bytes from its start (or the stream
    ended), so no longer or earlier match can still appear. While there is
    no candidate only the last `max_length` bytes are kept.

    Worst-case over-read is bounded by `lookahead` (`max_length + read_size`).
    """

    def __init__(
        self,
        pattern: str | bytes | re.Pattern[bytes],
        *,
        literal: bool = False,
        ignore_case: bool = False,
        max_length: int = DEFAULT_MAX_LENGTH,
        read_size: int = DEFAULT_READ_SIZE,
    ) -> None:
        if max_length <= 0:
            raise ValueError("max_length must be positive")
        if read_size <= 0:
            raise ValueError("read_size must be positive")

        if isinstance(pattern, re.Pattern):
            if not isinstance(pattern.pattern, bytes):
                raise TypeError("compiled pattern must be a bytes pattern")
            flags = pattern.flags | (re.IGNORECASE if ignore_case else 0)
            source = re.escape(pattern.pattern) if literal else pattern.pattern
            self._regex = re.compile(source, flags)
        else:
            source = pattern.encode("utf-8") if isinstance(pattern, str) else bytes(pattern)
            if literal:
                source = re.escape(source)
            self._regex = re.compile(source, re.IGNORECASE if ignore_case else 0)

        self._max_length = int(max_length)
        self._read_size = int(read_size)

    @property
    def regex(self) -> re.Pattern[bytes]:
        return self._regex

    @property
    def max_length(self) -> int:
        return self._max_length

    @property
    def lookahead(self) -> int:
        """Most bytes consumed from a match start through the confirming read."""
        return self._max_length + self._read_size

    def __repr__(self) -> str:
        return f"RegexPattern({self._regex.pattern!r}, max_length={self._max_length})"

    def find(self, reader: ByteSource) -> tuple[int, int] | None:
        buf = bytearray()
        base = 0  # bytes consumed in this call that precede buf[0]
        eof = False
        while True:
            m = self._regex.search(buf)
            if m is not None:
                if eof or len(buf) - m.start() >= self._max_length:
                    return base + m.start(), base + m.end()
            elif eof:
                return None
            elif len(buf) > self._max_length:
                drop = len(buf) - self._max_length
                del buf[:drop]
                base += drop

            chunk = reader.read(self._read_size)
            if chunk:
                buf += chunk
            else:
                eof = True


def compile_pattern(
    value: Pattern | str | bytes | re.Pattern[bytes],
    **options,
) -> Pattern:
    """Return a pattern engine for `value`.

    Objects that already provide `find` are returned unchanged; strings,
    bytes and compiled bytes regexes become `RegexPattern(value, **options)`.
    """
    if isinstance(value, (str, bytes, bytearray, re.Pattern)):
        return RegexPattern(value, **options)
    if isinstance(value, Pattern):
        if options:
            raise TypeError("options only apply to textual patterns")
        return value
    raise TypeError(f"unsupported pattern type: {type(value).__name__}")
