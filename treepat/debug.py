"""treepat/debug.py – Trace instrumentation for compiled matchers.

A debug matcher records, for every pattern node, whether matching ever
reached it and whether it succeeded.  The compiler stays unaware of
this: it hands each compiled fragment to an :class:`Instrumentation`
object, and :class:`TraceInstrumentation` wraps the fragment ``F`` as::

    (trace.enter(ID, SUBJECT) and F and trace.success(ID, SUBJECT))

Both record calls return ``True``, so the wrapped expression evaluates
exactly like ``F``.  ``ID`` comes from a :class:`NodeIds` map assigned in
the order nodes are compiled (pre-order); ``SUBJECT`` is the analyzed
value the fragment examines at run time.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

from treepat.codegen import Access
from treepat.tree import Node, is_node

__all__ = ["Instrumentation", "TraceInstrumentation", "NodeIds", "Trace"]


class NodeIds:
    """Object identity → small sequential integer.

    Structurally equal pattern nodes at different positions get
    different ids.  Looking up an unknown node assigns the next id.
    """

    def __init__(self) -> None:
        self._ids: Dict[int, int] = {}
        self._nodes: List[Any] = []

    def __getitem__(self, node: Any) -> int:
        key = id(node)
        if key not in self._ids:
            self._ids[key] = len(self._nodes)
            self._nodes.append(node)
        return self._ids[key]

    def get(self, node: Any, default: Optional[int] = None) -> Optional[int]:
        return self._ids.get(id(node), default)

    def node(self, node_id: int) -> Any:
        """The node that was assigned *node_id*."""
        return self._nodes[node_id]

    def __contains__(self, node: Any) -> bool:
        return id(node) in self._ids

    def __len__(self) -> int:
        return len(self._nodes)


class Trace:
    """Record of one matcher execution.

    ``matched(id)`` answers ``None`` (never entered), ``False`` (entered,
    not succeeded) or ``True``.  Per analyzed node the same three-state
    outcome is kept for every pattern id that examined it.
    """

    def __init__(self) -> None:
        self._visit: Dict[int, bool] = {}
        self._outcomes: Dict[Tuple[int, int], bool] = {}
        self._subjects: Dict[int, Node] = {}
        self._examined: Dict[int, List[int]] = {}

    def _record(self, node_id: int, subject: Any, value: bool) -> None:
        self._visit[node_id] = value
        if not is_node(subject):
            return
        key = id(subject)
        self._subjects[key] = subject
        examined = self._examined.setdefault(key, [])
        if node_id not in examined:
            examined.append(node_id)
        self._outcomes[(node_id, key)] = value

    def enter(self, node_id: int, subject: Any = None) -> bool:
        self._record(node_id, subject, False)
        return True

    def success(self, node_id: int, subject: Any = None) -> bool:
        self._record(node_id, subject, True)
        return True

    def matched(self, node_id: int) -> Optional[bool]:
        return self._visit.get(node_id)

    def outcome(self, node_id: int, subject: Node) -> Optional[bool]:
        """Outcome of pattern *node_id* for the analyzed *subject*."""
        return self._outcomes.get((node_id, id(subject)))

    def examined_by(self, subject: Node) -> Tuple[int, ...]:
        """Pattern ids that were entered with *subject*, in first-seen order."""
        return tuple(self._examined.get(id(subject), ()))

    def entries(self) -> Dict[int, bool]:
        return dict(self._visit)

    def __len__(self) -> int:
        return len(self._visit)

    def __repr__(self) -> str:
        return f"Trace({self._visit!r})"


class Instrumentation:
    """Plain compilation: fragments pass through unchanged."""

    #: Extra keyword parameters the generated matcher requires.
    parameters: Tuple[str, ...] = ()

    def __init__(self) -> None:
        self.node_ids: Optional[NodeIds] = None
        self.positions: Dict[int, Tuple[Any, ...]] = {}

    def around(self, node: Any, access: Access, compile_fragment: Callable[[], str]) -> str:
        return compile_fragment()


class TraceInstrumentation(Instrumentation):
    """Wraps every fragment in ``trace.enter`` / ``trace.success`` calls."""

    parameters = ("trace",)

    def __init__(self) -> None:
        super().__init__()
        self.node_ids = NodeIds()

    def around(self, node: Any, access: Access, compile_fragment: Callable[[], str]) -> str:
        node_id = self.node_ids[node]
        if access.path is not None:
            self.positions[node_id] = access.path
        fragment = compile_fragment()
        return (
            f"(trace.enter({node_id}, {access.expr}) and {fragment} "
            f"and trace.success({node_id}, {access.expr}))"
        )
