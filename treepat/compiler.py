"""
treepat/compiler.py
===================

Compiles a pattern tree into an executable matcher.

Architecture
------------
Compilation is a single top-down walk.  Each pattern node is dispatched
on its type tag to a handler that returns a Python boolean expression
(a *fragment*) testing the subject described by an :class:`Access`;
handlers compile their children by calling back into
:meth:`BaseCompiler.compile`.  The fragment for the root is placed in a
generated ``def`` and executed with the helpers of
:mod:`treepat.runtime` in scope.

Registry
--------
Handlers are declared with ``@handles(tag)``.  When a compiler class is
defined, its registry starts as a copy of the parent's and the class's
own declarations are added to the copy; the parent never sees them.
:class:`SequenceCompiler` uses this to add the sequence-only constructs
(``...`` and repetition) on top of :class:`NodePatternCompiler`.

Instrumentation
---------------
Every dispatch goes through ``session.instrumentation.around``.  The
default :class:`~treepat.debug.Instrumentation` leaves fragments alone;
:class:`~treepat.debug.TraceInstrumentation` wraps them in trace calls.
Handlers never know which one is active.
"""

from __future__ import annotations

import builtins
import keyword
import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Optional, Union

from treepat.ast import PatternNode, PatternType, VARIADIC_TYPES
from treepat.codegen import Access, CodeEmitter, ROOT_NAME
from treepat.debug import Instrumentation, TraceInstrumentation
from treepat.errors import (
    CompileError,
    ErrorCode,
    ErrorCodes,
    SourceSpan,
    UnsupportedPatternError,
)
from treepat.parser import parse_pattern
from treepat.runtime import CompiledMatcher, RUNTIME_NAMESPACE

__all__ = [
    "handles",
    "Registry",
    "CompileSession",
    "BaseCompiler",
    "NodePatternCompiler",
    "SequenceCompiler",
    "CompilerConfig",
    "compile_matcher",
]

logger = logging.getLogger(__name__)

Handler = Callable[..., str]

#: Names the generated function uses for itself.
RESERVED_NAMES = frozenset({ROOT_NAME, "captures", "trace"})


def _is_shadowing(name: str) -> bool:
    """True when *name* would hide a name the generated matcher relies on."""
    return (name in RESERVED_NAMES or name in RUNTIME_NAMESPACE
            or hasattr(builtins, name))


# ═══════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════════════════

def handles(*tags: Union[str, PatternType]) -> Callable[[Handler], Handler]:
    """Decorator declaring which pattern node types a handler compiles."""

    def decorator(method: Handler) -> Handler:
        method._handles = tuple(str(tag) for tag in tags)  # type: ignore[attr-defined]
        return method

    return decorator


class Registry:
    """Type tag → handler.  Unknown tags resolve to ``fallback``."""

    def __init__(self, handlers: Optional[Dict[str, Handler]] = None,
                 fallback: Optional[Handler] = None) -> None:
        self._handlers: Dict[str, Handler] = dict(handlers or {})
        self.fallback = fallback

    def copy(self) -> "Registry":
        return Registry(self._handlers, self.fallback)

    def register(self, tag: Union[str, PatternType], handler: Handler) -> None:
        self._handlers[str(tag)] = handler

    def resolve(self, tag: Union[str, PatternType]) -> Handler:
        handler = self._handlers.get(str(tag), self.fallback)
        if handler is None:
            raise LookupError(f"no handler for {tag!r} and no fallback")
        return handler

    @property
    def tags(self) -> FrozenSet[str]:
        return frozenset(self._handlers)

    def __contains__(self, tag: object) -> bool:
        return str(tag) in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


# ═══════════════════════════════════════════════════════════════════════════
# COMPILATION SESSION
# ═══════════════════════════════════════════════════════════════════════════

class CompileSession:
    """State shared by every compiler taking part in one compilation."""

    def __init__(self, text: str = "",
                 instrumentation: Optional[Instrumentation] = None) -> None:
        self.text = text
        self.instrumentation = instrumentation or Instrumentation()
        self.named_parameters: List[str] = []
        self.positional_count = 0
        self.captures = 0
        self._vars = 0
        self._stack: List[PatternNode] = []

    @property
    def current(self) -> Optional[PatternNode]:
        """The pattern node being compiled, or ``None`` outside a handler."""
        return self._stack[-1] if self._stack else None

    @contextmanager
    def visiting(self, node: PatternNode) -> Iterator[PatternNode]:
        self._stack.append(node)
        try:
            yield node
        finally:
            self._stack.pop()

    def next_capture(self) -> int:
        index = self.captures
        self.captures += 1
        return index

    def fresh_var(self, prefix: str = "e") -> str:
        self._vars += 1
        return f"_{prefix}{self._vars}"

    def positional(self, index: int) -> str:
        self.positional_count = max(self.positional_count, index)
        return f"_p{index}"

    def named(self, name: str) -> str:
        if name not in self.named_parameters:
            self.named_parameters.append(name)
        return name

    @property
    def positional_names(self) -> List[str]:
        return [f"_p{i}" for i in range(1, self.positional_count + 1)]

    def span_of(self, node: Optional[PatternNode]) -> Optional[SourceSpan]:
        if node is None or node.loc is None or not self.text:
            return None
        return SourceSpan.from_offset(self.text, node.loc.begin, node.loc.end)

    def error(self, message: str, code: ErrorCode,
              node: Optional[PatternNode] = None) -> CompileError:
        return CompileError(message, code=code,
                            span=self.span_of(node or self.current), source=self.text)


# ═══════════════════════════════════════════════════════════════════════════
# COMPILERS
# ═══════════════════════════════════════════════════════════════════════════

class BaseCompiler:
    """Dispatches pattern nodes to the handlers of its class registry."""

    registry: Registry = Registry()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        registry = cls.registry.copy()
        for member in vars(cls).values():
            for tag in getattr(member, "_handles", ()):
                registry.register(tag, member)
        if "on_type_missing" in vars(cls):
            registry.fallback = vars(cls)["on_type_missing"]
        cls.registry = registry

    def __init__(self, session: CompileSession) -> None:
        self.session = session

    def compile(self, node: PatternNode, access: Access) -> str:
        """Compile *node* into a fragment testing the subject at *access*."""
        handler = self.registry.resolve(node.type)
        with self.session.visiting(node):
            return self.session.instrumentation.around(
                node, access, lambda: handler(self, node, access))

    def on_type_missing(self, node: PatternNode, access: Access) -> str:
        raise UnsupportedPatternError(
            str(node.type), span=self.session.span_of(node), source=self.session.text)


BaseCompiler.registry = Registry(fallback=BaseCompiler.on_type_missing)


_PREDICATES: Dict[str, str] = {
    "nil?": "{v} is None",
    "true?": "{v} is True",
    "false?": "{v} is False",
    "sym?": "isinstance({v}, Sym)",
    "int?": "type({v}) is int",
    "float?": "type({v}) is float",
    "str?": "isinstance({v}, str)",
    "node?": "_is_node({v})",
}

_TYPE_PREDICATE = re.compile(r"^([a-z]\w*)_type\?$")


def _unwrap_captures(node: PatternNode) -> PatternNode:
    while node.type == PatternType.CAPTURE:
        node = node.value
    return node


def _is_variadic(node: PatternNode) -> bool:
    return _unwrap_captures(node).type in VARIADIC_TYPES


class NodePatternCompiler(BaseCompiler):
    """Handlers for terms that match exactly one subject."""

    @handles(PatternType.NODE_TYPE)
    def on_node_type(self, node, access):
        v = access.expr
        return f"(_is_node({v}) and {v}.type == {node.value!r})"

    @handles(PatternType.WILDCARD)
    def on_wildcard(self, node, access):
        return "True"

    @handles(PatternType.CAPTURE)
    def on_capture(self, node, access):
        index = self.session.next_capture()
        inner = self.compile(node.value, access)
        value = f"list({access.expr})" if access.is_slice else access.expr
        return f"({inner} and _capture(captures, {index}, {value}))"

    @handles(PatternType.NEGATION)
    def on_negation(self, node, access):
        return f"(not {self.compile(node.value, access)})"

    @handles(PatternType.ASCEND)
    def on_ascend(self, node, access):
        return f"(_is_node({access.expr}) and {self.compile(node.value, access.parent())})"

    @handles(PatternType.UNION)
    def on_union(self, node, access):
        base = self.session.captures
        fragments: List[str] = []
        counts: List[int] = []
        for branch in node.child_nodes:
            self.session.captures = base
            fragments.append(self.compile(branch, access))
            counts.append(self.session.captures - base)
        if len(set(counts)) > 1:
            raise self.session.error(
                f"each branch of a union must capture the same number of values "
                f"(got {', '.join(map(str, counts))})",
                ErrorCodes.UNBALANCED_CAPTURES, node)
        self.session.captures = base + counts[0]
        return "(" + " or ".join(fragments) + ")"

    @handles(PatternType.INTERSECTION)
    def on_intersection(self, node, access):
        return "(" + " and ".join(self.compile(c, access) for c in node.child_nodes) + ")"

    @handles(PatternType.SYMBOL)
    def on_symbol(self, node, access):
        return f"_eq({access.expr}, Sym({node.value!r}))"

    @handles(PatternType.NUMBER, PatternType.STRING)
    def on_literal(self, node, access):
        return f"_eq({access.expr}, {node.value!r})"

    @handles(PatternType.NIL)
    def on_nil(self, node, access):
        return f"({access.expr} is None)"

    @handles(PatternType.PREDICATE)
    def on_predicate(self, node, access):
        name = node.value
        v = access.expr
        if name in _PREDICATES:
            return "(" + _PREDICATES[name].format(v=v) + ")"
        m = _TYPE_PREDICATE.match(name)
        if m:
            return f"(_is_node({v}) and {v}.type == {m.group(1)!r})"
        raise self.session.error(f"unknown predicate '{name}'", ErrorCodes.UNKNOWN_PREDICATE, node)

    @handles(PatternType.PARAM)
    def on_param(self, node, access):
        key = node.value
        if isinstance(key, int):
            if key < 1:
                raise self.session.error(
                    "positional parameters are numbered from %1",
                    ErrorCodes.RESERVED_PARAMETER, node)
            name = self.session.positional(key)
        else:
            if _is_shadowing(key) or key.startswith("_") or keyword.iskeyword(key):
                raise self.session.error(
                    f"'%{key}' cannot be used as a parameter name",
                    ErrorCodes.RESERVED_PARAMETER, node)
            name = self.session.named(key)
        return f"_param_match({access.expr}, {name})"

    @handles(PatternType.SEQUENCE)
    def on_sequence(self, node, access):
        return SequenceCompiler(self.session).compile_sequence(node, access)


class SequenceCompiler(NodePatternCompiler):
    """Compiles the terms of a ``( ... )`` sequence.

    The first term is matched against the node itself, the others
    against its children.  At most one term may be variadic; it receives
    the slice of children left over by the fixed terms around it.
    """

    def compile_sequence(self, node: PatternNode, access: Access) -> str:
        head, *terms = node.child_nodes
        variadic = [i for i, term in enumerate(terms) if _is_variadic(term)]
        if len(variadic) > 1:
            raise self.session.error(
                "a sequence may contain only one variadic term",
                ErrorCodes.MULTIPLE_VARIADIC, terms[variadic[1]])

        v = access.expr
        parts = [f"_is_node({v})", self.compile(head, access)]
        if not variadic:
            parts.append(f"len({v}.children) == {len(terms)}")
            parts.extend(self.compile(term, access.child(i)) for i, term in enumerate(terms))
            return "(" + " and ".join(parts) + ")"

        split = variadic[0]
        before, middle, after = terms[:split], terms[split], terms[split + 1:]
        low, high = self._arity(middle)
        fixed = len(before) + len(after)
        if high is None:
            parts.append(f"len({v}.children) >= {fixed + low}")
        else:
            parts.append(f"{fixed + low} <= len({v}.children) <= {fixed + high}")
        parts.extend(self.compile(term, access.child(i)) for i, term in enumerate(before))
        parts.append(self.compile(middle, access.slice(len(before), len(after))))
        parts.extend(self.compile(term, access.child(i - len(after)))
                     for i, term in enumerate(after))
        return "(" + " and ".join(parts) + ")"

    @staticmethod
    def _arity(node: PatternNode):
        node = _unwrap_captures(node)
        if node.type == PatternType.REST:
            return 0, None
        op = node.children[1]
        return {"*": (0, None), "+": (1, None), "?": (0, 1)}[op]

    def _require_slice(self, node: PatternNode, access: Access) -> None:
        if not access.is_slice:
            label = "..." if node.type == PatternType.REST else f"{node.children[1]} repetition"
            raise self.session.error(
                f"'{label}' is only allowed as a direct term of a sequence",
                ErrorCodes.VARIADIC_OUTSIDE_SEQUENCE, node)

    @handles(PatternType.REST)
    def on_rest(self, node, access):
        self._require_slice(node, access)
        return "True"

    @handles(PatternType.REPETITION)
    def on_repetition(self, node, access):
        self._require_slice(node, access)
        child = node.value
        if any(n.type == PatternType.CAPTURE for n in child.walk()):
            raise self.session.error(
                "captures are not supported inside a repetition",
                ErrorCodes.CAPTURE_IN_REPETITION, node)
        var = self.session.fresh_var()
        inner = self.compile(child, Access.element(var))
        return f"all({inner} for {var} in {access.expr})"


# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURATION & ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════

@dataclass
class CompilerConfig:
    """Options for :func:`compile_matcher`."""
    debug: bool = False
    function_name: str = "matcher"

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if not self.function_name.isidentifier() or keyword.iskeyword(self.function_name):
            warnings.append(f"function_name {self.function_name!r} is not a valid identifier")
        if _is_shadowing(self.function_name):
            warnings.append(f"function_name {self.function_name!r} shadows a name the matcher uses")
        return warnings


def compile_matcher(
    pattern: Union[str, PatternNode],
    *,
    debug: bool = False,
    config: Optional[CompilerConfig] = None,
    compiler_class: type = NodePatternCompiler,
) -> CompiledMatcher:
    """Compile *pattern* (text or a parsed tree) into a :class:`CompiledMatcher`.

    With ``debug=True`` the matcher is instrumented and requires a
    ``trace`` keyword argument (a :class:`treepat.debug.Trace`).
    """
    config = config or CompilerConfig(debug=debug)
    for warning in config.validate():
        logger.warning("%s", warning)
    function_name = CodeEmitter.make_identifier(config.function_name)
    if _is_shadowing(function_name):
        function_name = "matcher"

    if isinstance(pattern, PatternNode):
        text, tree = "", pattern
    else:
        text, tree = pattern, parse_pattern(pattern)

    instrumentation = TraceInstrumentation() if config.debug else Instrumentation()
    session = CompileSession(text, instrumentation)
    expression = compiler_class(session).compile(tree, Access.root())

    signature = [ROOT_NAME] + session.positional_names
    keywords = session.named_parameters + list(instrumentation.parameters)
    if keywords:
        signature += ["*"] + keywords

    emitter = CodeEmitter()
    with emitter.block(f"def {function_name}({', '.join(signature)}):"):
        emitter.emit_docstring("Generated node-pattern matcher.")
        emitter.emit_comment(f"pattern: {text or tree.pretty()}")
        emitter.emit(f"captures = [None] * {session.captures}")
        with emitter.block(f"if not {expression}:"):
            emitter.emit("return None")
        emitter.emit("return _result(captures)")
    source = emitter.get_code()

    logger.debug("compiled pattern %r (debug=%s):\n%s", text or tree.pretty(), config.debug, source)
    logger.debug("matcher parameters: positional=%s named=%s",
                 session.positional_names, keywords)

    namespace = dict(RUNTIME_NAMESPACE)
    exec(compile(source, f"<treepat:{function_name}>", "exec"), namespace)

    return CompiledMatcher(
        namespace[function_name],
        source,
        tree,
        text=text,
        positional=session.positional_names,
        named=session.named_parameters,
        instrumented=instrumentation.parameters,
        node_ids=instrumentation.node_ids,
        positions=instrumentation.positions,
    )
