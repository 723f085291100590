#!/usr/bin/env python3
"""treepat/main.py – CLI entry-point for the treepat debugging tools.

Usage examples
--------------
    # Show how a pattern is split into tokens
    python -m treepat tokenize '(send nil? :foo ...)'

    # Pretty-print the parsed pattern tree
    python -m treepat parse '(send nil? {:foo :bar})'

    # Show the generated matcher source (instrumented with --debug)
    python -m treepat compile --debug '(send nil? :foo)'

    # Run a pattern against Python source and color the result
    python -m treepat test '(send nil? :foo)' 'foo()'

    # ... or against a hand-written tree, listing every node's status
    python -m treepat test --sexp --map '(send nil? :foo)' '(send nil :foo)'

Exit codes
----------
    0   Success (for ``test``: the pattern matched).
    1   ``test`` ran but the pattern did not match.
    2   Pattern or source error, or an infrastructure failure.

The module doubles as ``python -m treepat`` via the companion
``treepat/__main__.py`` which simply calls :func:`main`.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import textwrap
from typing import Optional, Sequence, TextIO

from treepat import __version__

_log = logging.getLogger("treepat")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_NO_MATCH: int = 1
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the root ``treepat`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("treepat")
    root.setLevel(level)
    root.addHandler(handler)


class _Colors:
    """ANSI color codes, disabled when not writing to a TTY."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    def _code(self, code: str) -> str:
        return code if self.enabled else ""

    @property
    def RESET(self) -> str:
        return self._code("\033[0m")

    @property
    def BOLD(self) -> str:
        return self._code("\033[1m")

    @property
    def RED(self) -> str:
        return self._code("\033[31m")

    @property
    def GREEN(self) -> str:
        return self._code("\033[32m")

    @property
    def YELLOW(self) -> str:
        return self._code("\033[33m")

    @property
    def CYAN(self) -> str:
        return self._code("\033[36m")

    def scheme(self):
        """The match-status color scheme matching this setting."""
        from treepat.visualizer import ColorScheme

        if not self.enabled:
            return ColorScheme.plain()
        return ColorScheme(
            not_visitable=self.CYAN,
            not_visited=self.YELLOW,
            failed=self.RED,
            matched=self.GREEN,
            reset=self.RESET,
        )


def _get_colors(stream: TextIO = sys.stdout) -> _Colors:
    """Get color codes appropriate for the given stream."""
    try:
        is_tty = hasattr(stream, "isatty") and stream.isatty()
    except (AttributeError, ValueError, OSError):
        is_tty = False
    return _Colors(enabled=is_tty and os.environ.get("NO_COLOR") is None)


def _read_source(value: str) -> str:
    if value == "-":
        return sys.stdin.read()
    return value


# ===========================================================================
# Sub-command implementations
# ===========================================================================

def _cmd_tokenize(args: argparse.Namespace) -> int:
    from treepat.parser import tokenize

    for token in tokenize(args.pattern):
        sys.stdout.write(f"{token.start:4d}  {token.kind:<10s} {token.text}\n")
    return EXIT_OK


def _cmd_parse(args: argparse.Namespace) -> int:
    from treepat.parser import parse_pattern

    sys.stdout.write(parse_pattern(args.pattern).pretty() + "\n")
    return EXIT_OK


def _cmd_compile(args: argparse.Namespace) -> int:
    from treepat.compiler import CompilerConfig, compile_matcher

    config = CompilerConfig(debug=args.debug, function_name=args.name)
    matcher = compile_matcher(args.pattern, config=config)
    sys.stdout.write(matcher.source)
    _log.info("parameters: %s", ", ".join(matcher.parameters))
    return EXIT_OK


def _cmd_test(args: argparse.Namespace) -> int:
    from treepat.visualizer import Colorizer

    source = _read_source(args.source)
    result = Colorizer(args.pattern).test(source, syntax="sexp" if args.sexp else "python")
    colors = _get_colors(sys.stdout)
    sys.stdout.write(result.colorize(colors.scheme()) + "\n")
    if args.map:
        for node, status in result.match_map().items():
            where = f"[{node.loc.begin}, {node.loc.end})" if node.loc is not None else "[?]"
            sys.stdout.write(f"{status.value:<14s} {where:<10s} {node.pretty()}\n")
    sys.stdout.write(f"{colors.BOLD}returned:{colors.RESET} {result.returned!r}\n")
    return EXIT_NO_MATCH if result.returned is None else EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="treepat",
        description="Compile node patterns and visualize how they match.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              treepat parse '(send nil? :foo ...)'
              treepat compile --debug '(send nil? :foo)'
              treepat test '(send nil? :foo)' 'foo()'
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    p = subparsers.add_parser("tokenize", help="Split a pattern into tokens.")
    p.add_argument("pattern", help="Pattern text.")
    p.set_defaults(func=_cmd_tokenize)

    p = subparsers.add_parser("parse", help="Print the parsed pattern tree.")
    p.add_argument("pattern", help="Pattern text.")
    p.set_defaults(func=_cmd_parse)

    p = subparsers.add_parser("compile", help="Print the generated matcher source.")
    p.add_argument("pattern", help="Pattern text.")
    p.add_argument("--debug", action="store_true",
                   help="Instrument the matcher with trace calls.")
    p.add_argument("--name", default="matcher", metavar="IDENT",
                   help="Name of the generated function (default: matcher).")
    p.set_defaults(func=_cmd_compile)

    p = subparsers.add_parser("test", help="Run a pattern and color the source.")
    p.add_argument("pattern", help="Pattern text.")
    p.add_argument("source", help='Source text to match ("-" reads stdin).')
    p.add_argument("--sexp", action="store_true",
                   help="Read the source as an S-expression instead of Python.")
    p.add_argument("--map", action="store_true",
                   help="Also list the status of every analyzed node.")
    p.set_defaults(func=_cmd_test)

    return parser


# ===========================================================================
# Main entry point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the treepat CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    from treepat.errors import TreepatError

    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except TreepatError as exc:
        sys.stderr.write(f"{exc}\n")
        return EXIT_INFRA
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else EXIT_INFRA
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
