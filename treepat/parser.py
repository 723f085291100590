"""treepat/parser.py – Pattern text → pattern tree.

Parses node-pattern source (``(send nil? :foo ...)``) with the PEG in
:mod:`treepat.grammar` and converts the parse tree into
:class:`treepat.ast.PatternNode` objects.

Design principles
-----------------
* **Single grammar, two entry rules** – ``pattern`` builds the tree,
  ``tokens`` only splits the text (useful when debugging a pattern that
  does not parse the way you expect).
* **Fail-fast with location** – grammar failures become
  :class:`~treepat.errors.PatternSyntaxError` carrying the line and
  column of the offending character.
* **Positions everywhere** – every pattern node records the character
  range it was parsed from.

Public API
----------
``parse_pattern(text: str) -> PatternNode``
    Parse a complete pattern string.

``tokenize(text: str) -> list[Token]``
    Split a pattern string into tokens.
"""

from __future__ import annotations

import ast as python_ast
import logging
from typing import Any, List, NamedTuple, Optional

from parsimonious.exceptions import IncompleteParseError, ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import Node as ParseNode, NodeVisitor

from treepat.ast import PatternNode, PatternType, SourceRange
from treepat.errors import ErrorCodes, PatternSyntaxError, SourceSpan
from treepat.grammar import PATTERN_GRAMMAR

__all__ = ["Token", "parse_pattern", "tokenize", "PATTERN_PARSER"]

logger = logging.getLogger(__name__)


class Token(NamedTuple):
    """A lexical token of pattern text."""

    kind: str
    text: str
    start: int


# ═══════════════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════════════

def _items(visited: Any) -> list:
    """Visited children of an optional / repeated expression.

    parsimonious hands back the bare node when nothing matched.
    """
    return visited if isinstance(visited, list) else []


def _range(node: ParseNode) -> SourceRange:
    return SourceRange(node.start, node.end)


def _syntax_error(text: str, exc: ParseError) -> PatternSyntaxError:
    pos = exc.pos
    if isinstance(exc, IncompleteParseError):
        code = ErrorCodes.TRAILING_INPUT
    else:
        code = ErrorCodes.UNEXPECTED_INPUT
    if pos >= len(text):
        message = "unexpected end of pattern"
    else:
        message = f"unexpected {text[pos]!r}"
    return PatternSyntaxError(
        message,
        code=code,
        span=SourceSpan.from_offset(text, pos),
        source=text,
    )


# ═══════════════════════════════════════════════════════════════════════
#  Parse tree → pattern tree
# ═══════════════════════════════════════════════════════════════════════

class PatternBuilder(NodeVisitor):
    """Turns a parsimonious parse tree into :class:`PatternNode` objects."""

    unwrapped_exceptions = (PatternSyntaxError,)

    def __init__(self, text: str) -> None:
        self.text = text

    # --- structure ---------------------------------------------------

    def visit_pattern(self, node, visited_children):
        _, term, _ = visited_children
        return term

    def visit_term(self, node, visited_children):
        return visited_children[0]

    def visit_atom(self, node, visited_children):
        return visited_children[0]

    def visit_literal(self, node, visited_children):
        return visited_children[0]

    def visit_capture(self, node, visited_children):
        _, term = visited_children
        return PatternNode(PatternType.CAPTURE, (term,), _range(node))

    def visit_negation(self, node, visited_children):
        _, term = visited_children
        return PatternNode(PatternType.NEGATION, (term,), _range(node))

    def visit_ascend(self, node, visited_children):
        _, term = visited_children
        return PatternNode(PatternType.ASCEND, (term,), _range(node))

    def visit_repeated(self, node, visited_children):
        atom, op = visited_children
        op = _items(op)
        if not op:
            return atom
        return PatternNode(PatternType.REPETITION, (atom, op[0]), _range(node))

    def visit_repeat_op(self, node, visited_children):
        return node.text

    def _terms(self, visited_children) -> tuple:
        _, _, first, rest, _, _ = visited_children
        return (first,) + tuple(term for _, term in _items(rest))

    def visit_sequence(self, node, visited_children):
        return PatternNode(PatternType.SEQUENCE, self._terms(visited_children), _range(node))

    def visit_union(self, node, visited_children):
        return PatternNode(PatternType.UNION, self._terms(visited_children), _range(node))

    def visit_intersection(self, node, visited_children):
        return PatternNode(PatternType.INTERSECTION, self._terms(visited_children), _range(node))

    # --- leaves ------------------------------------------------------

    def visit_rest(self, node, visited_children):
        return PatternNode(PatternType.REST, (), _range(node))

    def visit_wildcard(self, node, visited_children):
        name = node.text[1:]
        return PatternNode(PatternType.WILDCARD, (name,) if name else (), _range(node))

    def visit_nil(self, node, visited_children):
        return PatternNode(PatternType.NIL, (), _range(node))

    def visit_symbol(self, node, visited_children):
        return PatternNode(PatternType.SYMBOL, (node.text[1:],), _range(node))

    def visit_number(self, node, visited_children):
        text = node.text
        value = float(text) if "." in text else int(text)
        return PatternNode(PatternType.NUMBER, (value,), _range(node))

    def visit_string(self, node, visited_children):
        try:
            value = python_ast.literal_eval(node.text)
        except (ValueError, SyntaxError) as exc:
            raise PatternSyntaxError(
                f"invalid string literal {node.text}: {exc}",
                code=ErrorCodes.INVALID_LITERAL,
                span=SourceSpan.from_offset(self.text, node.start, node.end),
                source=self.text,
            ) from exc
        return PatternNode(PatternType.STRING, (value,), _range(node))

    def visit_param(self, node, visited_children):
        name = node.text[1:]
        key = int(name) if name.isdigit() else name
        return PatternNode(PatternType.PARAM, (key,), _range(node))

    def visit_predicate(self, node, visited_children):
        return PatternNode(PatternType.PREDICATE, (node.text,), _range(node))

    def visit_node_type(self, node, visited_children):
        return PatternNode(PatternType.NODE_TYPE, (node.text,), _range(node))

    def visit_ws(self, node, visited_children):
        return None

    def generic_visit(self, node, visited_children):
        return visited_children or node


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

#: The compiled pattern grammar (default rule: ``pattern``).
PATTERN_PARSER = Grammar(PATTERN_GRAMMAR)


def parse_pattern(text: str) -> PatternNode:
    """Parse *text* into a pattern tree.

    >>> parse_pattern("(send nil? :foo)").type
    <PatternType.SEQUENCE: 'sequence'>
    """
    try:
        tree = PATTERN_PARSER.parse(text)
    except ParseError as exc:
        raise _syntax_error(text, exc) from None
    pattern = PatternBuilder(text).visit(tree)
    logger.debug("parsed pattern %r -> %s", text, pattern)
    return pattern


def tokenize(text: str) -> List[Token]:
    """Split pattern *text* into tokens (whitespace and comments dropped)."""
    try:
        tree = PATTERN_PARSER["tokens"].parse(text)
    except ParseError as exc:
        raise _syntax_error(text, exc) from None
    tokens: List[Token] = []
    _collect_tokens(tree, tokens)
    return tokens


def _collect_tokens(node: ParseNode, out: List[Token]) -> None:
    if node.expr_name == "token":
        inner: Optional[ParseNode] = node.children[0] if node.children else None
        if inner is not None:
            out.append(Token(inner.expr_name, inner.text, inner.start))
        return
    for child in node.children:
        _collect_tokens(child, out)
