"""treepat/visualizer.py – Paint a match trace back onto source text.

Usage::

    result = Colorizer("(send nil? :foo)").test("foo()")
    result.returned            # True
    result.color_map()         # {0: MatchStatus.MATCHED, ...}
    print(result.colorize())   # ANSI-colored source

Every analyzed node is tied to the outermost pattern position that
examined it.  Two sources are combined:

* the static access path of each instrumented pattern node (child
  indices and parent steps from the matcher's root argument), resolved
  against the analyzed tree;
* the subjects the trace saw at run time, which covers positions that
  have no static path such as repetition elements.

The node's status is the outcome recorded for that (pattern position,
node) pair.  Nodes no pattern position reaches are NOT_VISITABLE, and so
is every character not covered by any node.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from treepat.ast import PatternNode
from treepat.builder import parse_source
from treepat.codegen import PARENT
from treepat.compiler import CompilerConfig, compile_matcher
from treepat.debug import Trace
from treepat.tree import Node, is_node

__all__ = ["MatchStatus", "ColorScheme", "Colorizer", "Result"]

logger = logging.getLogger(__name__)


class MatchStatus(Enum):
    NOT_VISITABLE = "not_visitable"
    NOT_VISITED = "not_visited"
    FAILED = "failed"
    MATCHED = "matched"

    @classmethod
    def from_outcome(cls, outcome: Optional[bool]) -> "MatchStatus":
        if outcome is None:
            return cls.NOT_VISITED
        return cls.MATCHED if outcome else cls.FAILED


@dataclass
class ColorScheme:
    """ANSI escape sequence per :class:`MatchStatus`."""
    not_visitable: str = "\033[36m"
    not_visited: str = "\033[33m"
    failed: str = "\033[31m"
    matched: str = "\033[32m"
    reset: str = "\033[0m"

    def code(self, status: MatchStatus) -> str:
        return getattr(self, status.value)

    @classmethod
    def plain(cls) -> "ColorScheme":
        return cls("", "", "", "", "")


class Colorizer:
    """Compiles a pattern in debug mode and runs it against sources."""

    def __init__(self, pattern: Union[str, PatternNode]) -> None:
        self.pattern = pattern
        self.matcher = compile_matcher(pattern, config=CompilerConfig(debug=True))

    def test(self, source: Union[str, Node], *args: Any, syntax: str = "python",
             **params: Any) -> "Result":
        """Run the matcher against *source* with a fresh trace."""
        ast = parse_source(source, syntax) if isinstance(source, str) else source
        trace = Trace()
        returned = self.matcher(ast, *args, trace=trace, **params)
        logger.debug("pattern %r returned %r (%d trace entries)",
                     self.pattern, returned, len(trace))
        return Result(self, trace, returned, ast)


class Result:
    """One run of a :class:`Colorizer`'s matcher against an analyzed tree."""

    def __init__(self, colorizer: Colorizer, trace: Trace, returned: Any, ast: Node) -> None:
        self.colorizer = colorizer
        self.trace = trace
        self.returned = returned
        self.ast = ast
        self._static = self._resolve_positions()
        self._match_map: Optional[Dict[Node, MatchStatus]] = None
        self._color_map: Optional[Dict[int, MatchStatus]] = None

    def _resolve(self, path: Tuple[Any, ...]) -> Optional[Node]:
        current: Any = self.ast
        for step in path:
            if not is_node(current):
                return None
            if step == PARENT:
                current = current.parent
                continue
            try:
                current = current.children[step]
            except IndexError:
                return None
        return current if is_node(current) else None

    def _resolve_positions(self) -> Dict[int, int]:
        static: Dict[int, int] = {}
        for pattern_id, path in sorted(self.colorizer.matcher.positions.items()):
            node = self._resolve(path)
            if node is not None:
                static.setdefault(id(node), pattern_id)
        return static

    def pattern_id(self, node: Node) -> Optional[int]:
        """The outermost pattern position governing *node*, if any."""
        candidates = list(self.trace.examined_by(node))
        if id(node) in self._static:
            candidates.append(self._static[id(node)])
        return min(candidates) if candidates else None

    def matched(self, node: Node) -> MatchStatus:
        pattern_id = self.pattern_id(node)
        if pattern_id is None:
            return MatchStatus.NOT_VISITABLE
        return MatchStatus.from_outcome(self.trace.outcome(pattern_id, node))

    def match_map(self) -> Dict[Node, MatchStatus]:
        """Status of every analyzed node, self-first depth-first."""
        if self._match_map is None:
            self._match_map = {node: self.matched(node) for node in self.ast.each_node()}
        return self._match_map

    @property
    def source(self) -> str:
        text = self.ast.source_text
        if text is None:
            raise ValueError("analyzed tree carries no source text")
        return text

    def color_map(self) -> Dict[int, MatchStatus]:
        """Status of every character of the source text."""
        if self._color_map is None:
            colors = {i: MatchStatus.NOT_VISITABLE for i in range(len(self.source))}
            for node, status in self.match_map().items():
                if node.loc is None:
                    continue
                for index in node.loc:
                    if index in colors:
                        colors[index] = status
            self._color_map = colors
        return self._color_map

    def colorize(self, scheme: Optional[ColorScheme] = None) -> str:
        """The source text with ANSI colors applied per character."""
        scheme = scheme or ColorScheme()
        color_map = self.color_map()
        out = []
        current: Optional[MatchStatus] = None
        for index, char in enumerate(self.source):
            status = color_map[index]
            if status is not current:
                if current is not None:
                    out.append(scheme.reset)
                out.append(scheme.code(status))
                current = status
            out.append(char)
        if current is not None:
            out.append(scheme.reset)
        return "".join(out)
