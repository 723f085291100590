"""treepat/ast.py – Pattern tree definitions.

A pattern such as ``(send nil? :foo ...)`` is parsed into a tree of
:class:`PatternNode` objects.  Each node has a *type tag* naming the
syntactic construct and an ordered tuple of children.  Children are
either nested pattern nodes or atom payloads (the name of a node type,
a literal value, a repetition operator, ...).

Design invariants
-----------------
* Every pattern node is a frozen dataclass (immutable after parsing).
* Equality is structural; the compiler's node-identity map therefore
  keys on object identity, never on ``==``.
* Nodes record the character range they were parsed from so that
  compile errors can point back into the pattern text.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional, Tuple

__all__ = [
    "PatternType",
    "SourceRange",
    "PatternNode",
    "VARIADIC_TYPES",
    "format_atom",
]


class PatternType(str, Enum):
    """Type tags produced by the pattern parser.

    Members are ``str`` subclasses so they key the compiler registry
    interchangeably with plain strings.
    """

    SEQUENCE = "sequence"
    NODE_TYPE = "node_type"
    WILDCARD = "wildcard"
    REST = "rest"
    REPETITION = "repetition"
    CAPTURE = "capture"
    NEGATION = "negation"
    ASCEND = "ascend"
    UNION = "union"
    INTERSECTION = "intersection"
    SYMBOL = "symbol"
    NUMBER = "number"
    STRING = "string"
    NIL = "nil"
    PREDICATE = "predicate"
    PARAM = "param"

    def __str__(self) -> str:
        return self.value


#: Tags whose terms may match a variable number of sequence elements.
VARIADIC_TYPES = frozenset({PatternType.REST, PatternType.REPETITION})


def format_atom(value: Any) -> str:
    """S-expression text for a non-node child."""
    if value is None:
        return "nil"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


@dataclass(frozen=True, slots=True)
class SourceRange:
    """Half-open character range ``[begin, end)`` into a source text."""

    begin: int
    end: int

    def __post_init__(self) -> None:
        if self.begin < 0 or self.end < self.begin:
            raise ValueError(f"invalid source range [{self.begin}, {self.end})")

    def __iter__(self) -> Iterator[int]:
        return iter(range(self.begin, self.end))

    def __len__(self) -> int:
        return self.end - self.begin

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and self.begin <= index < self.end

    def source(self, text: str) -> str:
        return text[self.begin:self.end]


@dataclass(frozen=True, slots=True)
class PatternNode:
    """One element of a parsed pattern."""

    type: str
    children: Tuple[Any, ...] = ()
    loc: Optional[SourceRange] = field(default=None, compare=False)

    @property
    def child_nodes(self) -> Tuple["PatternNode", ...]:
        """Children that are themselves pattern nodes."""
        return tuple(c for c in self.children if isinstance(c, PatternNode))

    @property
    def value(self) -> Any:
        """Payload of a leaf node (the first child)."""
        return self.children[0] if self.children else None

    def walk(self) -> Iterator["PatternNode"]:
        """Yield this node and every nested pattern node, pre-order."""
        yield self
        for child in self.child_nodes:
            yield from child.walk()

    def pretty(self) -> str:
        """Render as an S-expression, e.g. ``(sequence (node_type "send"))``."""
        parts = [str(self.type)]
        for child in self.children:
            parts.append(child.pretty() if isinstance(child, PatternNode) else format_atom(child))
        return "(" + " ".join(parts) + ")"

    def __str__(self) -> str:
        return self.pretty()
