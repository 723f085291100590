"""treepat – node-pattern compiler with match tracing and visualization.

A small pattern language for syntax trees, compiled into Python matcher
functions.  In debug mode the matcher records which pattern positions
were reached and which succeeded, and the visualizer paints that record
back onto the source text.

Submodules
----------
grammar / parser
    parsimonious PEG for pattern text; ``parse_pattern`` and ``tokenize``.

ast
    ``PatternNode`` pattern trees and ``SourceRange``.

tree / builder
    Analyzed trees (``Node``) built from Python source or S-expressions.

compiler / codegen / runtime
    Registry-driven compiler, code emission, and ``CompiledMatcher``.

debug
    ``Trace`` and the ``TraceInstrumentation`` overlay.

visualizer
    ``Colorizer`` / ``Result``: per-character match status and ANSI output.

errors
    Structured error codes (``TPAT-XXXX``) and the exception hierarchy.

main
    CLI entry-point with subcommands: ``tokenize``, ``parse``,
    ``compile``, ``test``.

Usage
-----
Command-line::

    python -m treepat test '(send nil? :foo)' 'foo()'

Programmatic::

    from treepat import compile_matcher, parse_python

    matcher = compile_matcher("(send nil? $_ ...)")
    matcher(parse_python("puts(1)"))     # Sym(name='puts')
"""

from __future__ import annotations

__version__: str = "0.1.0"
__all__: list[str] = [
    "__version__",
    "parse_pattern",
    "tokenize",
    "parse_python",
    "parse_sexp",
    "Node",
    "Sym",
    "compile_matcher",
    "CompilerConfig",
    "CompiledMatcher",
    "Trace",
    "Colorizer",
    "MatchStatus",
    "TreepatError",
]

from treepat.builder import parse_python, parse_sexp
from treepat.compiler import CompilerConfig, compile_matcher
from treepat.debug import Trace
from treepat.errors import TreepatError
from treepat.parser import parse_pattern, tokenize
from treepat.runtime import CompiledMatcher
from treepat.tree import Node, Sym
from treepat.visualizer import Colorizer, MatchStatus
