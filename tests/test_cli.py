from __future__ import annotations

import json
from pathlib import Path

from streamfind.cli import main


def write(tmp_path: Path, data: bytes, name: str = "input.bin") -> Path:
    p = tmp_path / name
    p.write_bytes(data)
    return p


def json_rows(out: str) -> list[dict]:
    return [json.loads(line) for line in out.splitlines() if line.strip()]


def test_single_positional_pattern(tmp_path: Path, capsys) -> None:
    p = write(tmp_path, b"ababab")
    assert main(["ab", str(p), "--json"]) == 0
    rows = json_rows(capsys.readouterr().out)
    assert [r["offset"] for r in rows] == [0, 2, 4]
    assert {r["index"] for r in rows} == {0}


def test_multiple_patterns_with_count_and_window(tmp_path: Path, capsys) -> None:
    p = write(tmp_path, b"xy starting point xy relative match")
    rc = main(["-e", "xy", "-e", "relative match", "-n", "1", "--json", str(p)])
    assert rc == 0
    rows = json_rows(capsys.readouterr().out)
    assert [(r["index"], r["offset"]) for r in rows] == [(0, 0), (1, 21)]

    assert main(["-e", "xy", "-w", "10", "--json", str(p)]) == 0
    rows = json_rows(capsys.readouterr().out)
    assert [r["offset"] for r in rows] == [0]


def test_pattern_file(tmp_path: Path, capsys) -> None:
    cfg = tmp_path / "patterns.yaml"
    cfg.write_text(
        "matchers:\n"
        "  - {pattern: 'matchme', count: 4, window: 83, name: early}\n"
        "  - {pattern: 'starting point', count: 1}\n",
        encoding="utf-8",
    )
    data = b"matchme " * 20 + b"starting point"
    p = write(tmp_path, data)
    assert main(["-p", str(cfg), "--json", str(p)]) == 0
    rows = json_rows(capsys.readouterr().out)
    early = [r for r in rows if r["index"] == 0]
    assert [r["offset"] for r in early] == [0, 8, 16, 24]
    assert early[0]["matcher"] == "early"
    later = [r for r in rows if r["index"] == 1]
    assert later[0]["offset"] == data.index(b"starting point")


def test_no_match_exit_status(tmp_path: Path, capsys) -> None:
    p = write(tmp_path, b"nothing here")
    assert main(["zebra", str(p)]) == 1


def test_table_output(tmp_path: Path, capsys) -> None:
    p = write(tmp_path, b"\x00\x01KEY\xff")
    assert main(["-F", "KEY", str(p)]) == 0
    out = capsys.readouterr().out
    assert "KEY" in out
    assert "0x2" in out


def test_usage_errors(tmp_path: Path, capsys) -> None:
    assert main([]) == 2
    assert "no pattern" in capsys.readouterr().err
    assert main(["a", "b", "c"]) == 2
    assert main(["-e", "a", "-n", "-1", str(write(tmp_path, b"a"))]) == 2


def test_missing_input_file(tmp_path: Path, capsys) -> None:
    assert main(["abc", str(tmp_path / "missing.bin")]) == 2
    assert "cannot open" in capsys.readouterr().err


def test_bad_pattern_file(tmp_path: Path, capsys) -> None:
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("matchers: [{pattern: '('}]", encoding="utf-8")
    assert main(["-p", str(cfg), str(write(tmp_path, b"x"))]) == 2
    assert "invalid pattern" in capsys.readouterr().err


def test_capacity_too_small_reports_error(tmp_path: Path, capsys) -> None:
    p = write(tmp_path, b"aaa")
    assert main(["a", str(p), "--capacity", "16", "--json"]) == 2
    assert "capacity" in capsys.readouterr().err


def test_unreadable_pattern_file(tmp_path: Path, capsys) -> None:
    data = write(tmp_path, b"abc")
    assert main(["-p", str(tmp_path), str(data)]) == 2
    assert "Cannot read pattern file" in capsys.readouterr().err

    binary = tmp_path / "binary.yaml"
    binary.write_bytes(b"\xff\xfe\x00garbage")
    assert main(["-p", str(binary), str(data)]) == 2
    assert "Cannot read pattern file" in capsys.readouterr().err
