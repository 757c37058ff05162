"""Command-line interface: render a flow-graph JSON file to SVG on stdout."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from .errors import InvalidArgument, InvalidInput, LayoutError
from .options import resolve_options
from .sankeysvg import render_sankey

EXIT_INTERNAL = 1
EXIT_ARGS = 2
EXIT_INPUT = 3
EXIT_LAYOUT = 4
EXIT_IO = 5


@dataclass
class CliError(Exception):
    code: str
    message: str
    hint: Optional[str] = None
    exit_code: int = EXIT_INTERNAL
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    retryable: bool = True


class UsageError(Exception):
    pass


class FriendlyArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # pragma: no cover - argparse callback
        raise UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = FriendlyArgumentParser(
        prog="sankey-svg",
        description="Render a flow-graph JSON document to a Sankey diagram SVG on stdout.",
    )
    parser.add_argument("file", nargs="?", help="Input graph .json file (default: stdin)")
    parser.add_argument("-s", "--size", metavar="W[,H]", help="width and height")
    parser.add_argument("-m", "--margins", metavar="N[,...]", help="1, 2 or 4 margin values")
    parser.add_argument(
        "-p",
        "--position",
        metavar="XATTR,YATTR",
        help="node attributes holding manual x and y positions",
    )
    parser.add_argument("-k", "--scale", metavar="K", help="pixels per unit for manual positions")
    parser.add_argument("--font-size", metavar="S", help="base font size in pixels")
    parser.add_argument(
        "--node-values",
        metavar="FMT",
        help="format specification for node value labels, e.g. .1f",
    )
    parser.add_argument("--error-format", choices=["text", "json"], default="text")
    parser.add_argument("--debug", action="store_true")
    return parser


def _read_input(path: Optional[str]) -> tuple[str, str]:
    if path:
        input_path = Path(path)
        if not input_path.exists():
            raise CliError(
                "E_IO_READ",
                f"input file not found: {input_path}",
                exit_code=EXIT_IO,
                file=str(input_path),
            )
        try:
            return input_path.read_text(encoding="utf-8"), str(input_path)
        except (OSError, UnicodeDecodeError) as exc:
            raise CliError(
                "E_IO_READ",
                f"failed to read input file: {input_path}",
                hint=str(exc),
                exit_code=EXIT_IO,
                file=str(input_path),
            )

    if sys.stdin.isatty():
        raise CliError(
            "E_ARGS",
            "no input provided",
            hint="Pass a graph JSON FILE or pipe it into stdin.",
            exit_code=EXIT_ARGS,
        )

    data = sys.stdin.read()
    if not data.strip():
        raise CliError(
            "E_ARGS",
            "stdin was empty",
            hint="Pipe graph JSON into stdin.",
            exit_code=EXIT_ARGS,
        )
    return data, "<stdin>"


def _parse_json(source: str, source_name: str) -> object:
    try:
        return json.loads(source)
    except json.JSONDecodeError as exc:
        raise CliError(
            "E_PARSE_JSON",
            f"failed to parse JSON: {exc.msg}",
            hint="Ensure the input is a well-formed JSON graph document.",
            exit_code=EXIT_INPUT,
            file=source_name,
            line=exc.lineno,
            column=exc.colno,
        )


def _error_from_exception(exc: Exception) -> CliError:
    if isinstance(exc, CliError):
        return exc
    if isinstance(exc, InvalidArgument):
        return CliError(
            exc.code,
            str(exc),
            hint="Check option values; see --help.",
            exit_code=EXIT_ARGS,
        )
    if isinstance(exc, InvalidInput):
        return CliError(
            exc.code,
            str(exc),
            hint="Check nodes, links and their values in the graph JSON.",
            exit_code=EXIT_INPUT,
        )
    if isinstance(exc, LayoutError):
        return CliError(
            exc.code,
            str(exc),
            hint="Check that links, ordering and groups only reference existing node ids.",
            exit_code=EXIT_LAYOUT,
        )
    if isinstance(exc, OSError):
        return CliError(
            "E_IO_READ",
            str(exc),
            exit_code=EXIT_IO,
        )
    return CliError(
        "E_INTERNAL",
        str(exc) or exc.__class__.__name__,
        hint="Re-run with --debug to see traceback.",
        exit_code=EXIT_INTERNAL,
        retryable=False,
    )


def _emit_error(err: CliError, *, error_format: str) -> None:
    if error_format == "json":
        payload = {
            "ok": False,
            "code": err.code,
            "message": err.message,
            "file": err.file,
            "line": err.line,
            "column": err.column,
            "hint": err.hint,
            "retryable": err.retryable,
        }
        sys.stderr.write(json.dumps(payload) + "\n")
        return

    sys.stderr.write(f"error[{err.code}]: {err.message}\n")
    if err.hint:
        sys.stderr.write(f"hint: {err.hint}\n")


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _handle_render(args: argparse.Namespace) -> int:
    config = resolve_options(
        size=args.size,
        margins=args.margins,
        position=args.position,
        scale=args.scale,
        font_size=args.font_size,
        node_values=args.node_values,
    )
    source, source_name = _read_input(args.file)
    payload = _parse_json(source, source_name)
    svg_text = render_sankey(payload, config)

    sys.stdout.write(svg_text)
    if not svg_text.endswith("\n"):
        sys.stdout.write("\n")
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    parser = _build_parser()

    debug_enabled = "--debug" in raw_argv or os.getenv("SANKEYSVG_DEBUG") == "1"
    error_format = "text"
    if "--error-format" in raw_argv:
        idx = raw_argv.index("--error-format")
        if idx + 1 < len(raw_argv):
            error_format = raw_argv[idx + 1]

    try:
        args = parser.parse_args(raw_argv)
        error_format = args.error_format
        _configure_logging(debug_enabled)
        return _handle_render(args)
    except UsageError as exc:
        err = CliError(
            "E_ARGS",
            str(exc),
            hint="Usage: sankey-svg [options] FILE",
            exit_code=EXIT_ARGS,
        )
        _emit_error(err, error_format=error_format)
        return err.exit_code
    except Exception as exc:  # pragma: no cover - exercised in integration tests
        err = _error_from_exception(exc)
        _emit_error(err, error_format=error_format)
        if debug_enabled:
            traceback.print_exc(file=sys.stderr)
        return err.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
