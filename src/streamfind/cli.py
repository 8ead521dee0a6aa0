from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import BinaryIO

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from streamfind.config import ConfigError, PatternSpec, SearchConfig, load_config
from streamfind.core.cursor import DEFAULT_CAPACITY
from streamfind.core.errors import StreamSearchError
from streamfind.core.group import GroupResult, MatchGroup
from streamfind.core.patterns import DEFAULT_MAX_LENGTH

logger = logging.getLogger("streamfind")

PRINTABLE_MIN = 32
PRINTABLE_MAX = 126


def _escape(b: bytes) -> str:
    return "".join(
        chr(c) if PRINTABLE_MIN <= c <= PRINTABLE_MAX else f"\\x{c:02x}" for c in b
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="streamfind",
        description="Search a byte stream for several patterns in a single pass",
    )
    parser.add_argument("args", nargs="*", metavar="PATTERN | FILE",
                        help="pattern (when no -e/-p is given) followed by the input file")
    parser.add_argument("-e", "--regexp", action="append", default=[], dest="patterns",
                        help="pattern to search for (repeatable)")
    parser.add_argument("-p", "--patterns", dest="pattern_file",
                        help="YAML file listing matchers")
    parser.add_argument("-n", "--count", type=int, default=0,
                        help="stop each pattern after this many matches (0 = all)")
    parser.add_argument("-w", "--window", type=int, default=0,
                        help="only search the first BYTES bytes (0 = whole stream)")
    parser.add_argument("-F", "--fixed-strings", action="store_true",
                        help="treat patterns as literal text")
    parser.add_argument("-i", "--ignore-case", action="store_true")
    parser.add_argument("--max-length", type=int, default=DEFAULT_MAX_LENGTH,
                        help="longest match a pattern may produce, in bytes")
    parser.add_argument("--capacity", type=int, default=None,
                        help=f"cursor lookback in bytes (default {DEFAULT_CAPACITY})")
    parser.add_argument("--json", action="store_true", help="print JSON lines")
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser


def _configure_logging(verbosity: int, console: Console) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _search_config(args: argparse.Namespace) -> tuple[SearchConfig, str]:
    positional = list(args.args)
    if args.pattern_file:
        config = load_config(args.pattern_file)
    else:
        config = SearchConfig()

    patterns = list(args.patterns)
    if not patterns and not args.pattern_file:
        if not positional:
            raise ConfigError("no pattern given")
        patterns.append(positional.pop(0))
    if len(positional) > 1:
        raise ConfigError(f"expected one input file, got {len(positional)}")
    path = positional[0] if positional else "-"

    specs = list(config.matchers)
    for pattern in patterns:
        if pattern == "":
            raise ConfigError("pattern must not be empty")
        specs.append(
            PatternSpec(
                pattern=pattern,
                count=args.count,
                window=args.window,
                literal=args.fixed_strings,
                ignore_case=args.ignore_case,
                max_length=args.max_length,
            )
        )
    if not specs:
        raise ConfigError("pattern file has no matchers")
    if args.count < 0 or args.window < 0:
        raise ConfigError("--count and --window must be >= 0")
    if args.max_length <= 0:
        raise ConfigError("--max-length must be positive")

    capacity = args.capacity if args.capacity is not None else config.capacity
    if capacity <= 0:
        raise ConfigError("--capacity must be positive")
    needed = max(spec.to_matcher().pattern.lookahead for spec in specs)
    if args.capacity is None and needed > capacity:
        capacity = needed
    return SearchConfig(matchers=tuple(specs), capacity=capacity, chunk_size=config.chunk_size), path


def _print_table(console: Console, group: MatchGroup, result: GroupResult) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("matcher")
    table.add_column("offset", justify="right")
    table.add_column("hex", justify="right")
    table.add_column("text")
    for index, config in enumerate(group.configs):
        for m in result.matches.get(index, []):
            table.add_row(
                str(index), config.label, str(m.offset), f"{m.offset:#x}", Text(_escape(m.text))
            )
    console.print(table)


def _print_json(group: MatchGroup, result: GroupResult) -> None:
    for index, config in enumerate(group.configs):
        for m in result.matches.get(index, []):
            row = {"index": index, "matcher": config.label, **m.to_dict()}
            sys.stdout.write(json.dumps(row) + "\n")
    sys.stdout.flush()


def _open_input(path: str) -> BinaryIO:
    if path == "-":
        return sys.stdin.buffer
    return open(path, "rb")  # noqa: SIM115


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    err_console = Console(stderr=True)
    _configure_logging(args.verbose, err_console)

    try:
        config, path = _search_config(args)
    except ConfigError as e:
        print(f"streamfind: {e}", file=sys.stderr)
        return 2

    group = config.build_group()
    try:
        fh = _open_input(path)
    except OSError as e:
        print(f"streamfind: cannot open {path}: {e}", file=sys.stderr)
        return 2

    try:
        result = group.run(fh)
    finally:
        if fh is not sys.stdin.buffer:
            fh.close()
    logger.info("read %d bytes, %d matches", result.bytes_read, result.total)

    if args.json:
        _print_json(group, result)
    else:
        _print_table(Console(), group, result)

    if not result.ok:
        problems: list[StreamSearchError | BaseException] = []
        if result.error is not None:
            problems.append(result.error)
        problems.extend(result.errors[i] for i in sorted(result.errors))
        for problem in problems:
            print(f"streamfind: {problem}", file=sys.stderr)
        return 2
    return 0 if result.total else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
