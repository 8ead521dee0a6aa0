"""YAML pattern files.

Example:

    capacity: 4096
    matchers:
      - pattern: "starting point"
        count: 1
      - pattern: "matchme"
        literal: true
        count: 4
        window: 83
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from streamfind.core.cursor import DEFAULT_CAPACITY
from streamfind.core.group import MatchGroup, MatcherConfig
from streamfind.core.patterns import DEFAULT_MAX_LENGTH, RegexPattern
from streamfind.core.pipe import DEFAULT_CHUNK_SIZE


class ConfigError(ValueError):
    """Raised when a pattern file or its values are invalid."""


_MATCHER_KEYS = {"pattern", "count", "window", "literal", "ignore_case", "max_length", "name"}
_TOP_KEYS = {"capacity", "chunk_size", "matchers"}


@dataclass(frozen=True)
class PatternSpec:
    """One matcher entry as written in a pattern file or on the command line."""

    pattern: str
    count: int = 0
    window: int = 0
    literal: bool = False
    ignore_case: bool = False
    max_length: int = DEFAULT_MAX_LENGTH
    name: str | None = None

    def to_matcher(self) -> MatcherConfig:
        try:
            engine = RegexPattern(
                self.pattern,
                literal=self.literal,
                ignore_case=self.ignore_case,
                max_length=self.max_length,
            )
        except re.error as e:
            raise ConfigError(f"invalid pattern {self.pattern!r}: {e}") from None
        return MatcherConfig(engine, count=self.count, window=self.window, name=self.name)


@dataclass(frozen=True)
class SearchConfig:
    matchers: tuple[PatternSpec, ...] = field(default_factory=tuple)
    capacity: int = DEFAULT_CAPACITY
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def build_group(self) -> MatchGroup:
        group = MatchGroup(capacity=self.capacity, chunk_size=self.chunk_size)
        for spec in self.matchers:
            group.add_matcher(spec.to_matcher())
        return group


def _int_field(data: dict[str, Any], key: str, default: int, where: str, *, positive: bool = False) -> int:
    value = data.get(key, default)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{where}: '{key}' must be an integer, got {value!r}")
    if value < 0 or (positive and value == 0):
        bound = "positive" if positive else ">= 0"
        raise ConfigError(f"{where}: '{key}' must be {bound}, got {value}")
    return value


def _bool_field(data: dict[str, Any], key: str, where: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ConfigError(f"{where}: '{key}' must be true or false, got {value!r}")
    return value


def _parse_matcher(entry: Any, index: int) -> PatternSpec:
    where = f"matchers[{index}]"
    if isinstance(entry, str):
        entry = {"pattern": entry}
    if not isinstance(entry, dict):
        raise ConfigError(f"{where}: expected a mapping or a pattern string")
    unknown = set(entry) - _MATCHER_KEYS
    if unknown:
        raise ConfigError(f"{where}: unknown keys {sorted(unknown)}")
    pattern = entry.get("pattern")
    if not isinstance(pattern, str) or pattern == "":
        raise ConfigError(f"{where}: 'pattern' must be a non-empty string")
    name = entry.get("name")
    if name is not None and not isinstance(name, str):
        raise ConfigError(f"{where}: 'name' must be a string")
    return PatternSpec(
        pattern=pattern,
        count=_int_field(entry, "count", 0, where),
        window=_int_field(entry, "window", 0, where),
        literal=_bool_field(entry, "literal", where),
        ignore_case=_bool_field(entry, "ignore_case", where),
        max_length=_int_field(entry, "max_length", DEFAULT_MAX_LENGTH, where, positive=True),
        name=name,
    )


def parse_config(text: str) -> SearchConfig:
    """Parse pattern-file YAML into a `SearchConfig`.

    Raises:
        ConfigError: If the YAML is malformed or any value is invalid.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from None

    if data is None:
        data = {}
    if isinstance(data, list):
        data = {"matchers": data}
    if not isinstance(data, dict):
        raise ConfigError("pattern file must be a mapping or a list of matchers")

    unknown = set(data) - _TOP_KEYS
    if unknown:
        raise ConfigError(f"unknown keys {sorted(unknown)}")

    entries = data.get("matchers") or []
    if not isinstance(entries, list):
        raise ConfigError("'matchers' must be a list")

    specs = tuple(_parse_matcher(entry, i) for i, entry in enumerate(entries))
    config = SearchConfig(
        matchers=specs,
        capacity=_int_field(data, "capacity", DEFAULT_CAPACITY, "config", positive=True),
        chunk_size=_int_field(data, "chunk_size", DEFAULT_CHUNK_SIZE, "config", positive=True),
    )
    # Compile now so bad regexes and undersized cursors surface as configuration errors.
    for i, spec in enumerate(specs):
        lookahead = spec.to_matcher().pattern.lookahead
        if lookahead > config.capacity:
            raise ConfigError(
                f"matchers[{i}]: max_length {spec.max_length} needs a capacity of at "
                f"least {lookahead}, got {config.capacity}"
            )
    return config


def load_config(path: str | Path) -> SearchConfig:
    """Load a pattern file from disk."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Pattern file not found: {p}") from None
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read pattern file {p}: {e}") from None
    return parse_config(text)
