#!/usr/bin/env python3
"""
Terminal front end for the keypad evaluator.

Each input line holds whitespace-separated button labels; the display is
printed after the line is applied.

Usage examples:
  python -m repl
  echo "5 + 3 = + 2 =" | python -m repl
  python -m repl --echo --log-level DEBUG

Commands:
  :keypad   show the button layout
  :state    show every field of the evaluator
  :quit     exit
"""
from __future__ import annotations

import sys
from argparse import ArgumentParser
from typing import Iterable, TextIO

from evaluator import Evaluator
from logging_config import setup_logging
from models import UnknownKeyError, keypad_rows, parse_key


def render_keypad(clear_label: str) -> str:
    rows = keypad_rows(clear_label)
    width = max(len(cell) for row in rows for cell in row)
    return "\n".join(
        " ".join(f"[{cell:^{width}}]" for cell in row) for row in rows
    )


def run(
    lines: Iterable[str],
    out: TextIO,
    err: TextIO,
    evaluator: Evaluator | None = None,
    echo: bool = False,
) -> Evaluator:
    """Feed input lines to an evaluator, writing displays to ``out``."""
    evaluator = evaluator or Evaluator()

    for line in lines:
        line = line.strip()
        if not line:
            continue
        if line == ":quit":
            break
        if line == ":keypad":
            print(render_keypad(evaluator.state.clear_label), file=out)
            continue
        if line == ":state":
            print(evaluator.state.model_dump_json(), file=out)
            continue

        for label in line.split():
            try:
                key = parse_key(label)
            except UnknownKeyError as e:
                print(str(e), file=err)
                continue
            evaluator.handle_input(key)
            if echo:
                print(f"{key.value:>4} -> {evaluator.display}", file=out)
        print(evaluator.display, file=out)

    return evaluator


def main(argv: list[str] | None = None) -> int:
    parser = ArgumentParser(description="Keypad calculator REPL")
    parser.add_argument("--echo", action="store_true", help="Print the display after every key")
    parser.add_argument("--log-level", default="WARNING", help="Logging level name")
    parser.add_argument("--log-file", help="Also write logs to this file")
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_file)

    if sys.stdin.isatty():
        print(render_keypad("AC"))
    run(sys.stdin, sys.stdout, sys.stderr, echo=args.echo)
    return 0


if __name__ == "__main__":
    sys.exit(main())
