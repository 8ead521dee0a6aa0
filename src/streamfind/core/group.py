"""Concurrent search of several patterns over one stream.

Every registered matcher gets its own worker thread and pipe. The calling
thread reads the source once and writes each chunk to every pipe. Workers
that stop early (count reached, window exhausted, error) keep draining their
pipe until end-of-stream so the broadcast never blocks on them.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from streamfind.core.cursor import DEFAULT_CAPACITY, ByteSource
from streamfind.core.errors import SourceReadError, StreamSearchError
from streamfind.core.matcher import Match, as_source, iter_matches
from streamfind.core.patterns import Pattern, compile_pattern
from streamfind.core.pipe import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_PIPE_DEPTH,
    LimitedReader,
    Pipe,
    broadcast,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatcherConfig:
    """A pattern plus its match cap (`count`, 0 = all) and `window` (0 = whole stream)."""

    pattern: Pattern
    count: int = 0
    window: int = 0
    name: str | None = None

    def __post_init__(self) -> None:
        if isinstance(self.pattern, (str, bytes, bytearray, re.Pattern)):
            object.__setattr__(self, "pattern", compile_pattern(self.pattern))
        if self.count < 0:
            raise ValueError("count must be >= 0 (0 means all matches)")
        if self.window < 0:
            raise ValueError("window must be >= 0 (0 means no limit)")

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        regex = getattr(self.pattern, "regex", None)
        if regex is not None:
            return regex.pattern.decode("utf-8", errors="replace")
        return repr(self.pattern)


@dataclass
class GroupResult:
    """Outcome of `MatchGroup.run`.

    `matches` has an entry for every registered index, in offset order.
    `errors` holds worker-local failures by index; `error` holds a failure
    of the broadcast itself. Matches found before any failure are kept.
    """

    matches: dict[int, list[Match]]
    errors: dict[int, BaseException] = field(default_factory=dict)
    error: StreamSearchError | None = None
    bytes_read: int = 0

    def __getitem__(self, index: int) -> list[Match]:
        return self.matches[index]

    @property
    def ok(self) -> bool:
        return self.error is None and not self.errors

    @property
    def total(self) -> int:
        return sum(len(v) for v in self.matches.values())

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error
        for index in sorted(self.errors):
            raise self.errors[index]


class _ResultStore:
    """Per-run match lists; workers only get an append callback."""

    def __init__(self, size: int) -> None:
        self._lock = threading.Lock()
        self._matches: dict[int, list[Match]] = {i: [] for i in range(size)}

    def appender(self, index: int) -> Callable[[Match], None]:
        def append(match: Match) -> None:
            with self._lock:
                self._matches[index].append(match)

        return append

    def snapshot(self) -> dict[int, list[Match]]:
        with self._lock:
            return {i: list(v) for i, v in self._matches.items()}


class MatchGroup:
    """Run several `MatcherConfig`s concurrently over a single stream.

    Results are keyed by registration order: the first config is index 0.
    """

    def __init__(
        self,
        *configs: MatcherConfig,
        capacity: int = DEFAULT_CAPACITY,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        pipe_depth: int = DEFAULT_PIPE_DEPTH,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if pipe_depth <= 0:
            raise ValueError("pipe_depth must be positive")
        self._configs: list[MatcherConfig] = []
        self._capacity = int(capacity)
        self._chunk_size = int(chunk_size)
        self._pipe_depth = int(pipe_depth)
        for config in configs:
            self.add_matcher(config)

    def __len__(self) -> int:
        return len(self._configs)

    @property
    def configs(self) -> tuple[MatcherConfig, ...]:
        return tuple(self._configs)

    @property
    def capacity(self) -> int:
        return self._capacity

    def add_matcher(self, config: MatcherConfig) -> int:
        """Register `config` and return its result index."""
        if not isinstance(config, MatcherConfig):
            raise TypeError("expected a MatcherConfig")
        self._configs.append(config)
        return len(self._configs) - 1

    def _work(
        self,
        index: int,
        config: MatcherConfig,
        pipe: Pipe,
        append: Callable[[Match], None],
    ) -> int:
        reader: ByteSource = pipe
        if config.window > 0:
            reader = LimitedReader(pipe, config.window)
        found = 0
        try:
            for match in iter_matches(
                reader, config.pattern, config.count, capacity=self._capacity
            ):
                append(match)
                found += 1
        except OSError as exc:
            raise SourceReadError(f"matcher {index} read failed: {exc}") from exc
        finally:
            try:
                drained = pipe.drain()
            finally:
                pipe.close_reader()
            logger.debug(
                "matcher %d (%s) stopped after %d matches, drained %d bytes",
                index,
                config.label,
                found,
                drained,
            )
        return found

    def run(self, source: ByteSource | bytes) -> GroupResult:
        """Search `source` with every registered config at once."""
        source = as_source(source)
        configs = list(self._configs)
        if not configs:
            return GroupResult(matches={})

        store = _ResultStore(len(configs))
        pipes = [Pipe(self._pipe_depth) for _ in configs]
        error: StreamSearchError | None = None
        bytes_read = 0

        with ThreadPoolExecutor(
            max_workers=len(configs), thread_name_prefix="streamfind-matcher"
        ) as pool:
            futures = [
                pool.submit(self._work, i, config, pipes[i], store.appender(i))
                for i, config in enumerate(configs)
            ]
            try:
                bytes_read = broadcast(source, pipes, self._chunk_size)
                logger.debug("broadcast %d bytes to %d matchers", bytes_read, len(pipes))
            except StreamSearchError as exc:
                logger.warning("broadcast failed: %s", exc)
                error = exc
            finally:
                for pipe in pipes:
                    pipe.close()

            errors: dict[int, BaseException] = {}
            for i, future in enumerate(futures):
                exc = future.exception()
                if exc is not None:
                    logger.warning("matcher %d (%s) failed: %s", i, configs[i].label, exc)
                    errors[i] = exc

        matches = store.snapshot()
        for i, exc in errors.items():
            if isinstance(exc, StreamSearchError):
                exc.matches = tuple(matches[i])
        return GroupResult(matches=matches, errors=errors, error=error, bytes_read=bytes_read)
