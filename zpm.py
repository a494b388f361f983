"""ZPM entry point."""

from __future__ import annotations
import argparse
import os
import sys
from typing import List, Optional

from interpreter import Interpreter, TracebackFormatter, ZPMRuntimeError
from lexer import ZPMArgumentError, ZPMError, ZPMFileError


SCRIPT_EXTENSION = ".zpm"


def split_source_lines(text: str) -> List[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def load_source_lines(path: str) -> List[str]:
    if not path.endswith(SCRIPT_EXTENSION):
        raise ZPMArgumentError(f"Please provide a {SCRIPT_EXTENSION} file as an argument")
    if not os.path.isfile(path):
        raise ZPMFileError(f"File '{path}' does not exist")
    try:
        with open(path, "r", encoding="utf-8") as handle:
            text = handle.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise ZPMFileError(f"Failed to read {path}: {exc}") from exc
    return split_source_lines(text)


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="ZPM script interpreter")
    parser.add_argument("program", help="Path to a .zpm script, or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Emit store snapshots in error reports")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON error report")
    args = parser.parse_args(argv)

    try:
        if args.source_mode:
            lines = split_source_lines(args.program)
            filename = "<string>"
        else:
            lines = load_source_lines(args.program)
            filename = args.program
    except ZPMError as error:
        print(f"{error.kind}: {error.message}", file=sys.stderr)
        return 1

    interpreter = Interpreter(lines, filename=filename, verbose=args.verbose)
    try:
        interpreter.run()
    except ZPMRuntimeError as error:
        formatter = TracebackFormatter(interpreter)
        print(formatter.format_text(error, verbose=args.verbose), file=sys.stderr)
        if args.traceback_json:
            print(formatter.to_json(error), file=sys.stderr)
        return 1
    return 0


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
