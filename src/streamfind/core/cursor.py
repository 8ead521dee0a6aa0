from __future__ import annotations

from typing import Protocol

from streamfind.core.errors import LookaheadOverflow

DEFAULT_CAPACITY = 1024


class ByteSource(Protocol):
    def read(self, size: int = -1, /) -> bytes: ...


class RewindableCursor:
    """Sequential reader over a byte source with bounded push-back.

    The last `capacity` consumed bytes are kept in a circular buffer so a
    caller can give back bytes it read too far (`unread`) and fetch the text
    it just consumed (`last_bytes`) without touching the source again.

    Bounded lookback: an engine may read at most `capacity` bytes from the
    start of a match through the read that confirmed it. Beyond that the
    match cannot be recovered and `LookaheadOverflow` is raised.
    """

    def __init__(self, source: ByteSource, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._source = source
        self._capacity = int(capacity)
        self._ring = bytearray(self._capacity)
        self._head = 0  # next write slot
        self._held = 0  # bytes stored in the ring
        self._pending = 0  # trailing held bytes pushed back by unread()
        self._total = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def retained(self) -> int:
        """Consumed bytes still available to `unread`/`last_bytes`."""
        return self._held - self._pending

    def tell(self) -> int:
        """Total bytes consumed so far (position after the last byte read)."""
        return self._total

    def _tail(self, n: int) -> bytes:
        # Last n bytes written to the ring, oldest first.
        if n <= 0:
            return b""
        start = (self._head - n) % self._capacity
        if start + n <= self._capacity:
            return bytes(self._ring[start : start + n])
        return bytes(self._ring[start:]) + bytes(self._ring[: self._head])

    def _remember(self, data: bytes) -> None:
        n = len(data)
        if n >= self._capacity:
            self._ring[:] = data[n - self._capacity :]
            self._head = 0
            self._held = self._capacity
            return
        first = min(n, self._capacity - self._head)
        self._ring[self._head : self._head + first] = data[:first]
        if first < n:
            self._ring[: n - first] = data[first:]
        self._head = (self._head + n) % self._capacity
        self._held = min(self._capacity, self._held + n)

    def read(self, size: int = -1) -> bytes:
        """Read up to `size` bytes; `b""` means end-of-stream.

        Pushed-back bytes are returned first and on their own, so a read
        never blocks on the source while some are pending. A negative
        `size` reads to end-of-stream.
        """
        if size is None or size < 0:
            parts = []
            while chunk := self.read(64 * 1024):
                parts.append(chunk)
            return b"".join(parts)
        if size == 0:
            return b""

        if self._pending:
            take = min(size, self._pending)
            data = self._tail(self._pending)[:take]
            self._pending -= take
            self._total += take
            return data

        data = self._source.read(size)
        if not data:
            return b""
        data = bytes(data)
        self._remember(data)
        self._total += len(data)
        return data

    def consume(self) -> int | None:
        """Return the next byte value, or None at end-of-stream."""
        b = self.read(1)
        return b[0] if b else None

    def unread(self, n: int) -> None:
        """Push back the last `n` consumed bytes so they are read again."""
        if n < 0:
            raise ValueError("unread count must be >= 0")
        if n > self.retained:
            raise LookaheadOverflow(
                f"cannot unread {n} bytes: only {self.retained} retained "
                f"(capacity {self._capacity})"
            )
        self._pending += n
        self._total -= n

    def last_bytes(self, n: int) -> bytes:
        """Return the `n` most recently consumed bytes."""
        if n < 0:
            raise ValueError("length must be >= 0")
        if n > self.retained:
            raise LookaheadOverflow(
                f"cannot recover {n} bytes: only {self.retained} retained "
                f"(capacity {self._capacity})"
            )
        return self._tail(self._pending + n)[:n]
