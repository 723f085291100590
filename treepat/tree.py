"""treepat/tree.py – Analyzed trees.

The data a compiled matcher runs against: a tree of :class:`Node`
objects in the RuboCop AST vocabulary (``send``, ``lvar``, ``int``, ...).
Children are nested nodes or atoms:

* ``None`` – the absent receiver of a call, an omitted value
* :class:`Sym` – a symbol such as the method name ``:foo``
* ``int`` / ``float`` / ``str`` – literal payloads

Each node may carry a :class:`~treepat.ast.SourceRange` pointing at the
characters of the source text it was built from; the visualizer colors
exactly those characters.

Nodes compare by identity.  Two calls to ``foo`` at different places in a
file are different nodes even though they look alike.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Optional, Tuple

from treepat.ast import SourceRange, format_atom

__all__ = ["Sym", "Node", "is_node"]


@dataclass(frozen=True, slots=True)
class Sym:
    """A symbol atom (``:foo``)."""

    name: str

    def __str__(self) -> str:
        return f":{self.name}"


class Node:
    """A node of an analyzed tree."""

    __slots__ = ("type", "children", "loc", "parent", "source")

    def __init__(
        self,
        type: str,
        children: Iterable[Any] = (),
        loc: Optional[SourceRange] = None,
        source: Optional[str] = None,
    ) -> None:
        self.type = type
        self.children: Tuple[Any, ...] = tuple(children)
        self.loc = loc
        self.parent: Optional[Node] = None
        self.source = source
        for child in self.children:
            if isinstance(child, Node):
                child.parent = self

    # --- traversal ---------------------------------------------------

    @property
    def child_nodes(self) -> Tuple["Node", ...]:
        return tuple(c for c in self.children if isinstance(c, Node))

    def each_descendant(self) -> Iterator["Node"]:
        """Yield every descendant node, depth-first, pre-order."""
        for child in self.child_nodes:
            yield child
            yield from child.each_descendant()

    def each_node(self) -> Iterator["Node"]:
        """Yield this node followed by all of its descendants."""
        yield self
        yield from self.each_descendant()

    @property
    def root(self) -> "Node":
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    # --- source ------------------------------------------------------

    @property
    def source_text(self) -> Optional[str]:
        """Full text of the source buffer this tree was built from."""
        return self.root.source

    @property
    def text(self) -> Optional[str]:
        """The characters covered by this node, if known."""
        buffer = self.source_text
        if buffer is None or self.loc is None:
            return None
        return self.loc.source(buffer)

    # --- rendering ---------------------------------------------------

    def to_sexp(self) -> list:
        """Nested-list form: ``[type, child, ...]`` with nodes expanded."""
        return [self.type] + [c.to_sexp() if isinstance(c, Node) else c for c in self.children]

    def pretty(self) -> str:
        """Render as an S-expression, e.g. ``(send nil :foo)``."""
        parts = [self.type]
        for child in self.children:
            parts.append(child.pretty() if isinstance(child, Node) else format_atom(child))
        return "(" + " ".join(parts) + ")"

    def __str__(self) -> str:
        return self.pretty()

    def __repr__(self) -> str:
        return f"Node({self.pretty()})"


def is_node(value: Any) -> bool:
    return isinstance(value, Node)
