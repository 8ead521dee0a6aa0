"""Tests for the regex pattern engine."""

from __future__ import annotations

import io
import re

import pytest

from streamfind.core.patterns import Pattern, RegexPattern, compile_pattern


def test_find_returns_span_relative_to_call() -> None:
    reader = io.BytesIO(b"....needle....")
    p = RegexPattern("needle", max_length=8, read_size=4)
    assert p.find(reader) == (4, 10)


def test_find_over_reads_past_match() -> None:
    data = b"ab" + b"-" * 100
    reader = io.BytesIO(data)
    p = RegexPattern(b"ab", max_length=16, read_size=8)
    assert p.find(reader) == (0, 2)
    # the engine kept reading until max_length bytes followed the match start
    assert reader.tell() == 16


def test_find_no_match_returns_none() -> None:
    p = RegexPattern("zzz", max_length=4, read_size=3)
    assert p.find(io.BytesIO(b"abcdefghijklmnop")) is None


def test_find_after_trimmed_buffer() -> None:
    data = b"x" * 1000 + b"target"
    p = RegexPattern("target", max_length=10, read_size=7)
    assert p.find(io.BytesIO(data)) == (1000, 1006)


def test_match_spanning_reads() -> None:
    p = RegexPattern("abcdefgh", max_length=16, read_size=3)
    assert p.find(io.BytesIO(b"zzabcdefghzz")) == (2, 10)


def test_greedy_match_waits_for_longest() -> None:
    p = RegexPattern(rb"a+", max_length=32, read_size=2)
    assert p.find(io.BytesIO(b"baaaaab")) == (1, 6)


def test_literal_and_ignore_case() -> None:
    p = RegexPattern("a.b", literal=True, ignore_case=True)
    assert p.find(io.BytesIO(b"axb A.B")) == (4, 7)


def test_compiled_bytes_pattern_accepted() -> None:
    p = RegexPattern(re.compile(rb"\d+"))
    assert p.find(io.BytesIO(b"abc 123 def")) == (4, 7)


def test_compiled_str_pattern_rejected() -> None:
    with pytest.raises(TypeError):
        RegexPattern(re.compile(r"\d+"))


@pytest.mark.parametrize("kwargs", [{"max_length": 0}, {"read_size": 0}])
def test_invalid_sizes(kwargs: dict[str, int]) -> None:
    with pytest.raises(ValueError):
        RegexPattern("x", **kwargs)


def test_lookahead_bound() -> None:
    p = RegexPattern("x", max_length=100, read_size=28)
    assert p.lookahead == 128


def test_compile_pattern_passthrough() -> None:
    class Fixed:
        def find(self, reader):
            return None

    engine = Fixed()
    assert compile_pattern(engine) is engine
    assert isinstance(compile_pattern("abc"), RegexPattern)
    assert isinstance(compile_pattern(b"abc", literal=True), Pattern)
    with pytest.raises(TypeError):
        compile_pattern(engine, literal=True)
    with pytest.raises(TypeError):
        compile_pattern(42)  # type: ignore[arg-type]
