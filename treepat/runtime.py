"""
treepat/runtime.py
==================

Run-time support for compiled matchers.

Generated matcher source refers to the helpers below by name; they are
injected into the namespace the source is executed in
(:data:`RUNTIME_NAMESPACE`).  :class:`CompiledMatcher` wraps the
resulting function and checks the parameter contract on every call.

Parameter semantics (``%1`` / ``%name`` in a pattern):

* a callable is called with the subject and must return a truthy value;
* a ``set`` / ``frozenset`` matches when the subject is a member;
* anything else is compared with ``==``.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from treepat.ast import PatternNode
from treepat.errors import ErrorCodes, MatcherArgumentError
from treepat.tree import Sym, is_node

__all__ = [
    "CompiledMatcher",
    "RUNTIME_NAMESPACE",
]


# ===================================================================== #
#  Helpers referenced by generated code                                  #
# ===================================================================== #

def _eq(value: Any, expected: Any) -> bool:
    """Literal equality without ``True == 1`` style coercions."""
    return type(value) is type(expected) and value == expected


def _capture(captures: List[Any], index: int, value: Any) -> bool:
    captures[index] = value
    return True


def _param_match(value: Any, param: Any) -> bool:
    if callable(param):
        return bool(param(value))
    if isinstance(param, (set, frozenset)):
        try:
            return value in param
        except TypeError:
            return False
    return value == param


def _result(captures: List[Any]) -> Any:
    if not captures:
        return True
    if len(captures) == 1:
        return captures[0]
    return tuple(captures)


#: Globals visible to generated matcher source.
RUNTIME_NAMESPACE: Dict[str, Any] = {
    "_is_node": is_node,
    "_eq": _eq,
    "_capture": _capture,
    "_param_match": _param_match,
    "_result": _result,
    "Sym": Sym,
}


# ===================================================================== #
#  CompiledMatcher                                                       #
# ===================================================================== #

class CompiledMatcher:
    """An executable matcher produced by :func:`treepat.compiler.compile_matcher`.

    Call it with the analyzed node, then one positional argument per
    ``%N`` parameter, then the named parameters as keywords::

        m = compile_matcher("(send nil? %method)")
        m(tree, method=Sym("foo"))

    Returns ``None`` when the node does not match, ``True`` when it
    matches a pattern without captures, the captured value when there is
    exactly one capture, and a tuple of captured values otherwise.
    """

    def __init__(
        self,
        fn: Callable[..., Any],
        source: str,
        pattern: PatternNode,
        text: str = "",
        positional: Sequence[str] = (),
        named: Sequence[str] = (),
        instrumented: Sequence[str] = (),
        node_ids: Any = None,
        positions: Optional[Dict[int, Tuple[Any, ...]]] = None,
    ) -> None:
        self.fn = fn
        self.source = source
        self.pattern = pattern
        self.text = text
        self.positional = tuple(positional)
        self.named = tuple(named)
        self.instrumented = tuple(instrumented)
        self.node_ids = node_ids
        self.positions = dict(positions or {})

    @property
    def debug(self) -> bool:
        return bool(self.instrumented)

    @property
    def keyword_parameters(self) -> Tuple[str, ...]:
        return self.named + self.instrumented

    @property
    def parameters(self) -> Tuple[str, ...]:
        """Every parameter the matcher requires, in signature order."""
        return ("node",) + self.positional + self.keyword_parameters

    def _check_arguments(self, args: tuple, kwargs: Dict[str, Any]) -> None:
        if len(args) < len(self.positional):
            missing = self.positional[len(args):]
            raise MatcherArgumentError(
                f"missing positional matcher parameter(s): {', '.join(missing)}",
                parameters=missing,
                code=ErrorCodes.MISSING_PARAMETER,
            )
        if len(args) > len(self.positional):
            raise MatcherArgumentError(
                f"matcher takes {len(self.positional)} positional parameter(s) "
                f"after the node, got {len(args)}",
                code=ErrorCodes.UNEXPECTED_PARAMETER,
            )
        missing = [name for name in self.named if name not in kwargs]
        missing += [name for name in self.instrumented if kwargs.get(name) is None]
        if missing:
            raise MatcherArgumentError(
                f"missing matcher parameter(s): {', '.join(missing)}",
                parameters=missing,
                code=ErrorCodes.MISSING_PARAMETER,
            )
        unexpected = sorted(set(kwargs) - set(self.keyword_parameters))
        if unexpected:
            raise MatcherArgumentError(
                f"unexpected matcher parameter(s): {', '.join(unexpected)}",
                parameters=unexpected,
                code=ErrorCodes.UNEXPECTED_PARAMETER,
            )

    def __call__(self, node: Any, *args: Any, **kwargs: Any) -> Any:
        self._check_arguments(args, kwargs)
        return self.fn(node, *args, **kwargs)

    def __repr__(self) -> str:
        return f"CompiledMatcher({self.text or self.pattern.pretty()!r}, parameters={self.parameters})"
