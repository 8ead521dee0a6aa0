"""In-memory pipes and the one-to-many copy that feeds them."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Sequence
from typing import Protocol

from streamfind.core.cursor import ByteSource
from streamfind.core.errors import BroadcastError, SourceReadError

DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_PIPE_DEPTH = 4


class ByteSink(Protocol):
    def write(self, data: bytes, /) -> int: ...


class Pipe:
    """Bounded pipe between one writer thread and one reader thread.

    `write` blocks while `max_chunks` chunks are queued, so a reader that
    stops reading stalls the writer. Readers that stop early must `drain()`.
    """

    def __init__(self, max_chunks: int = DEFAULT_PIPE_DEPTH) -> None:
        if max_chunks <= 0:
            raise ValueError("max_chunks must be positive")
        self._max_chunks = int(max_chunks)
        self._chunks: deque[bytes] = deque()
        self._cond = threading.Condition()
        self._closed = False
        self._reader_closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> int:
        with self._cond:
            if self._closed:
                raise ValueError("write to closed pipe")
            while len(self._chunks) >= self._max_chunks and not self._reader_closed:
                self._cond.wait()
            if self._reader_closed:
                raise BrokenPipeError("pipe reader closed")
            if data:
                self._chunks.append(bytes(data))
                self._cond.notify_all()
            return len(data)

    def read(self, size: int = -1) -> bytes:
        """Block until data or end-of-stream; return at most `size` bytes."""
        if size == 0:
            return b""
        with self._cond:
            while not self._chunks and not self._closed:
                self._cond.wait()
            if not self._chunks:
                return b""
            head = self._chunks[0]
            if size is None or size < 0 or size >= len(head):
                self._chunks.popleft()
                data = head
            else:
                data = head[:size]
                self._chunks[0] = head[size:]
            self._cond.notify_all()
            return data

    def drain(self) -> int:
        """Discard everything until the writer closes; return bytes discarded."""
        discarded = 0
        while data := self.read():
            discarded += len(data)
        return discarded

    def close(self) -> None:
        """Writer side: signal end-of-stream."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def close_reader(self) -> None:
        """Reader side: drop queued data; later writes raise BrokenPipeError."""
        with self._cond:
            self._reader_closed = True
            self._chunks.clear()
            self._cond.notify_all()


class LimitedReader:
    """Expose only the first `limit` bytes of `reader`."""

    def __init__(self, reader: ByteSource, limit: int) -> None:
        if limit < 0:
            raise ValueError("limit must be >= 0")
        self._reader = reader
        self._remaining = int(limit)

    @property
    def remaining(self) -> int:
        return self._remaining

    def read(self, size: int = -1) -> bytes:
        if self._remaining <= 0:
            return b""
        if size is None or size < 0 or size > self._remaining:
            size = self._remaining
        data = self._reader.read(size)
        self._remaining -= len(data)
        return data


def broadcast(
    source: ByteSource, sinks: Sequence[ByteSink], chunk_size: int = DEFAULT_CHUNK_SIZE
) -> int:
    """Copy `source` once into every sink; return the number of bytes copied.

    Each chunk is written to all sinks before the next one is read.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    total = 0
    while True:
        try:
            chunk = source.read(chunk_size)
        except (OSError, ValueError) as exc:
            # ValueError: the caller closed the source to cancel the search
            raise SourceReadError(f"source read failed after {total} bytes: {exc}") from exc
        if not chunk:
            return total
        chunk = bytes(chunk)
        for i, sink in enumerate(sinks):
            try:
                sink.write(chunk)
            except (OSError, ValueError) as exc:
                raise BroadcastError(
                    f"write to pipe {i} failed after {total} bytes: {exc}"
                ) from exc
        total += len(chunk)
