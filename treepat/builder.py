"""treepat/builder.py – Source text → analyzed tree.

Two front ends produce :class:`treepat.tree.Node` trees whose nodes
carry character ranges into the text they came from:

``parse_python(source)``
    Python source, via the standard-library :mod:`ast` module, mapped
    onto the RuboCop AST vocabulary so that patterns such as
    ``(send nil? :foo)`` read naturally::

        foo()           (send nil :foo)
        obj.bar(1)      (send (lvar :obj) :bar (int 1))
        x = "s"         (lvasgn :x (str "s"))
        a + b           (send (lvar :a) :+ (lvar :b))

    Constructs without a dedicated mapping fall back to a generic node
    named after the Python class (``while``, ``listcomp``, ...).

``parse_sexp(text)``
    A hand-written S-expression such as ``(send nil :foo)``; every list
    becomes a node whose range is its parenthesised text.

Design principles
-----------------
* **Class dispatch** – every Python AST class with a dedicated mapping
  is registered in ``_PY_DISPATCH`` by the ``@_register`` decorator.
* **Character offsets** – Python reports UTF-8 byte columns; ranges
  are converted to character offsets so they index the ``str`` source.
"""

from __future__ import annotations

import ast as python_ast
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from treepat.ast import SourceRange
from treepat.errors import SourceParseError, SourceSpan
from treepat.grammar import SEXP_GRAMMAR
from treepat.tree import Node, Sym

__all__ = ["parse_python", "parse_sexp", "parse_source"]

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
#  Character offsets
# ═══════════════════════════════════════════════════════════════════════

#: One physical line as Python counts them: only \n, \r\n and \r end a line.
_LINE = re.compile(r"[^\r\n]*(?:\r\n|\r|\n)|[^\r\n]+")


class _LineIndex:
    """Maps (line, UTF-8 byte column) positions to character offsets."""

    def __init__(self, source: str) -> None:
        self.lines = _LINE.findall(source)
        self.starts: List[int] = []
        offset = 0
        for line in self.lines:
            self.starts.append(offset)
            offset += len(line)
        self.length = offset

    def offset(self, lineno: int, col_offset: int) -> int:
        if lineno < 1 or lineno > len(self.lines):
            return self.length
        line = self.lines[lineno - 1]
        prefix = line.encode("utf-8")[:col_offset].decode("utf-8", errors="ignore")
        return self.starts[lineno - 1] + len(prefix)

    def range_of(self, node: python_ast.AST) -> Optional[SourceRange]:
        lineno = getattr(node, "lineno", None)
        end_lineno = getattr(node, "end_lineno", None)
        if lineno is None or end_lineno is None:
            return None
        begin = self.offset(lineno, node.col_offset)
        end = self.offset(end_lineno, node.end_col_offset)
        return SourceRange(begin, max(begin, end))


def _span(*ranges: Optional[SourceRange]) -> Optional[SourceRange]:
    known = [r for r in ranges if r is not None]
    if not known:
        return None
    return SourceRange(min(r.begin for r in known), max(r.end for r in known))


# ═══════════════════════════════════════════════════════════════════════
#  Dispatch registry
# ═══════════════════════════════════════════════════════════════════════

# Maps a Python AST class to a converter callable.
# Populated by the ``@_register`` decorator below.

_PY_DISPATCH: Dict[type, Callable[..., Any]] = {}


def _register(table: dict, *classes: type):
    """Decorator: register a converter under each of *classes* in *table*."""
    def deco(fn):
        for cls in classes:
            table[cls] = fn
        return fn
    return deco


_OPERATORS: Dict[type, str] = {
    python_ast.Add: "+", python_ast.Sub: "-", python_ast.Mult: "*",
    python_ast.Div: "/", python_ast.FloorDiv: "//", python_ast.Mod: "%",
    python_ast.Pow: "**", python_ast.LShift: "<<", python_ast.RShift: ">>",
    python_ast.BitOr: "|", python_ast.BitAnd: "&", python_ast.BitXor: "^",
    python_ast.MatMult: "@",
    python_ast.Eq: "==", python_ast.NotEq: "!=", python_ast.Lt: "<",
    python_ast.LtE: "<=", python_ast.Gt: ">", python_ast.GtE: ">=",
    python_ast.Is: "is", python_ast.IsNot: "is not", python_ast.In: "in",
    python_ast.NotIn: "not in",
    python_ast.Not: "!", python_ast.USub: "-@", python_ast.UAdd: "+@",
    python_ast.Invert: "~",
}


class _PythonConverter:
    """Converts one parsed Python module into an analyzed tree."""

    def __init__(self, source: str) -> None:
        self.index = _LineIndex(source)

    def node(self, type: str, children: Sequence[Any], py: Optional[python_ast.AST] = None,
             loc: Optional[SourceRange] = None) -> Node:
        if loc is None and py is not None:
            loc = self.index.range_of(py)
        return Node(type, children, loc=loc)

    def convert(self, py: Any) -> Any:
        if py is None:
            return None
        converter = _PY_DISPATCH.get(type(py))
        if converter is not None:
            return converter(self, py)
        return self.generic(py)

    def body(self, statements: Sequence[python_ast.stmt]) -> Any:
        """A statement list: one statement stands alone, more become ``begin``."""
        converted = [self.convert(s) for s in statements]
        if not converted:
            return None
        if len(converted) == 1:
            return converted[0]
        return self.node("begin", converted,
                         loc=_span(*(getattr(c, "loc", None) for c in converted)))

    def generic(self, py: Any) -> Any:
        if isinstance(py, python_ast.AST):
            if isinstance(py, (python_ast.expr_context, python_ast.operator,
                               python_ast.cmpop, python_ast.unaryop, python_ast.boolop)):
                op = _OPERATORS.get(type(py))
                return Sym(op) if op else None
            children: List[Any] = []
            for field_name in py._fields:
                if field_name in ("ctx", "type_comment", "kind"):
                    continue
                value = getattr(py, field_name, None)
                if isinstance(value, list):
                    children.extend(self.convert(v) for v in value)
                elif isinstance(value, python_ast.AST):
                    children.append(self.convert(value))
                else:
                    children.append(value)
            return self.node(type(py).__name__.lower(), children, py)
        if isinstance(py, list):
            return [self.convert(v) for v in py]
        return py


# --- statements ------------------------------------------------------

@_register(_PY_DISPATCH, python_ast.Module, python_ast.Interactive)
def _conv_module(c: _PythonConverter, py) -> Any:
    return c.body(py.body)


@_register(_PY_DISPATCH, python_ast.Expression)
def _conv_expression(c: _PythonConverter, py) -> Any:
    return c.convert(py.body)


@_register(_PY_DISPATCH, python_ast.Expr)
def _conv_expr_stmt(c: _PythonConverter, py) -> Any:
    return c.convert(py.value)


def _assign_target(c: _PythonConverter, target, value: Any, py) -> Node:
    children_value = [] if value is None else [value]
    if isinstance(target, python_ast.Name):
        return c.node("lvasgn", [Sym(target.id)] + children_value, py)
    if isinstance(target, python_ast.Attribute):
        return c.node("send", [c.convert(target.value), Sym(target.attr + "=")] + children_value, py)
    if isinstance(target, python_ast.Subscript):
        return c.node("send", [c.convert(target.value), Sym("[]="), c.convert(target.slice)]
                      + children_value, py)
    if isinstance(target, (python_ast.Tuple, python_ast.List)):
        mlhs = c.node("mlhs", [_assign_target(c, t, None, t) for t in target.elts], target)
        return c.node("masgn", [mlhs] + children_value, py)
    return c.node("asgn", [c.convert(target)] + children_value, py)


@_register(_PY_DISPATCH, python_ast.Assign)
def _conv_assign(c: _PythonConverter, py) -> Any:
    value = c.convert(py.value)
    if len(py.targets) == 1:
        return _assign_target(c, py.targets[0], value, py)
    # a = b = 1 → nested assignments, innermost first
    for target in reversed(py.targets):
        value = _assign_target(c, target, value, py)
    return value


@_register(_PY_DISPATCH, python_ast.AugAssign)
def _conv_aug_assign(c: _PythonConverter, py) -> Any:
    target = _assign_target(c, py.target, None, py.target)
    return c.node("op_asgn", [target, Sym(_OPERATORS[type(py.op)]), c.convert(py.value)], py)


@_register(_PY_DISPATCH, python_ast.FunctionDef, python_ast.AsyncFunctionDef)
def _conv_def(c: _PythonConverter, py) -> Any:
    params = [c.node("arg", [Sym(a.arg)], a)
              for a in py.args.posonlyargs + py.args.args + py.args.kwonlyargs]
    if py.args.vararg is not None:
        params.append(c.node("restarg", [Sym(py.args.vararg.arg)], py.args.vararg))
    if py.args.kwarg is not None:
        params.append(c.node("kwrestarg", [Sym(py.args.kwarg.arg)], py.args.kwarg))
    args = c.node("args", params, loc=_span(*(p.loc for p in params)))
    return c.node("def", [Sym(py.name), args, c.body(py.body)], py)


@_register(_PY_DISPATCH, python_ast.ClassDef)
def _conv_class(c: _PythonConverter, py) -> Any:
    superclass = c.convert(py.bases[0]) if py.bases else None
    return c.node("class", [c.node("const", [None, Sym(py.name)], py), superclass,
                            c.body(py.body)], py)


@_register(_PY_DISPATCH, python_ast.Return)
def _conv_return(c: _PythonConverter, py) -> Any:
    return c.node("return", [] if py.value is None else [c.convert(py.value)], py)


@_register(_PY_DISPATCH, python_ast.If)
def _conv_if(c: _PythonConverter, py) -> Any:
    return c.node("if", [c.convert(py.test), c.body(py.body), c.body(py.orelse)], py)


@_register(_PY_DISPATCH, python_ast.While)
def _conv_while(c: _PythonConverter, py) -> Any:
    return c.node("while", [c.convert(py.test), c.body(py.body)], py)


@_register(_PY_DISPATCH, python_ast.For)
def _conv_for(c: _PythonConverter, py) -> Any:
    target = _assign_target(c, py.target, None, py.target)
    return c.node("for", [target, c.convert(py.iter), c.body(py.body)], py)


# --- expressions -----------------------------------------------------

def _call_args(c: _PythonConverter, py: python_ast.Call) -> List[Any]:
    args: List[Any] = []
    for arg in py.args:
        if isinstance(arg, python_ast.Starred):
            args.append(c.node("splat", [c.convert(arg.value)], arg))
        else:
            args.append(c.convert(arg))
    if py.keywords:
        pairs = []
        for kw in py.keywords:
            if kw.arg is None:
                pairs.append(c.node("kwsplat", [c.convert(kw.value)], kw))
            else:
                key = c.node("sym", [Sym(kw.arg)], kw)
                pairs.append(c.node("pair", [key, c.convert(kw.value)], kw))
        args.append(c.node("hash", pairs, loc=_span(*(p.loc for p in pairs))))
    return args


@_register(_PY_DISPATCH, python_ast.Call)
def _conv_call(c: _PythonConverter, py) -> Any:
    func = py.func
    if isinstance(func, python_ast.Name):
        head = [None, Sym(func.id)]
    elif isinstance(func, python_ast.Attribute):
        head = [c.convert(func.value), Sym(func.attr)]
    else:
        head = [c.convert(func), Sym("call")]
    return c.node("send", head + _call_args(c, py), py)


@_register(_PY_DISPATCH, python_ast.Attribute)
def _conv_attribute(c: _PythonConverter, py) -> Any:
    return c.node("send", [c.convert(py.value), Sym(py.attr)], py)


@_register(_PY_DISPATCH, python_ast.Subscript)
def _conv_subscript(c: _PythonConverter, py) -> Any:
    return c.node("send", [c.convert(py.value), Sym("[]"), c.convert(py.slice)], py)


@_register(_PY_DISPATCH, python_ast.Name)
def _conv_name(c: _PythonConverter, py) -> Any:
    if isinstance(py.ctx, python_ast.Load):
        return c.node("lvar", [Sym(py.id)], py)
    return _assign_target(c, py, None, py)


@_register(_PY_DISPATCH, python_ast.Constant)
def _conv_constant(c: _PythonConverter, py) -> Any:
    value = py.value
    if value is None:
        return c.node("nil", [], py)
    if value is True:
        return c.node("true", [], py)
    if value is False:
        return c.node("false", [], py)
    if isinstance(value, int):
        return c.node("int", [value], py)
    if isinstance(value, float):
        return c.node("float", [value], py)
    if isinstance(value, str):
        return c.node("str", [value], py)
    return c.node(type(value).__name__.lower(), [repr(value)], py)


@_register(_PY_DISPATCH, python_ast.BinOp)
def _conv_binop(c: _PythonConverter, py) -> Any:
    return c.node("send", [c.convert(py.left), Sym(_OPERATORS[type(py.op)]),
                           c.convert(py.right)], py)


@_register(_PY_DISPATCH, python_ast.Compare)
def _conv_compare(c: _PythonConverter, py) -> Any:
    if len(py.ops) == 1:
        return c.node("send", [c.convert(py.left), Sym(_OPERATORS[type(py.ops[0])]),
                               c.convert(py.comparators[0])], py)
    return c.generic(py)


@_register(_PY_DISPATCH, python_ast.BoolOp)
def _conv_boolop(c: _PythonConverter, py) -> Any:
    name = "and" if isinstance(py.op, python_ast.And) else "or"
    return c.node(name, [c.convert(v) for v in py.values], py)


@_register(_PY_DISPATCH, python_ast.UnaryOp)
def _conv_unaryop(c: _PythonConverter, py) -> Any:
    operand = py.operand
    if (isinstance(py.op, python_ast.USub) and isinstance(operand, python_ast.Constant)
            and type(operand.value) in (int, float)):
        return c.node("int" if type(operand.value) is int else "float", [-operand.value], py)
    if isinstance(py.op, python_ast.Not):
        return c.node("send", [c.convert(operand), Sym("!")], py)
    return c.node("send", [c.convert(operand), Sym(_OPERATORS[type(py.op)])], py)


@_register(_PY_DISPATCH, python_ast.List, python_ast.Tuple)
def _conv_sequence(c: _PythonConverter, py) -> Any:
    if not isinstance(py.ctx, python_ast.Load):
        return _assign_target(c, py, None, py)
    return c.node("array", [c.convert(e) for e in py.elts], py)


@_register(_PY_DISPATCH, python_ast.Dict)
def _conv_dict(c: _PythonConverter, py) -> Any:
    pairs = []
    for key, value in zip(py.keys, py.values):
        converted = c.convert(value)
        if key is None:
            pairs.append(c.node("kwsplat", [converted], loc=getattr(converted, "loc", None)))
            continue
        converted_key = c.convert(key)
        pairs.append(c.node("pair", [converted_key, converted],
                            loc=_span(getattr(converted_key, "loc", None),
                                      getattr(converted, "loc", None))))
    return c.node("hash", pairs, py)


# ═══════════════════════════════════════════════════════════════════════
#  Public API: Python source
# ═══════════════════════════════════════════════════════════════════════

def parse_python(source: str, filename: str = "<source>") -> Node:
    """Parse Python *source* into an analyzed tree.

    A module with a single statement yields that statement's node; a
    module with several yields a ``begin`` node.
    """
    try:
        module = python_ast.parse(source, filename=filename)
    except SyntaxError as exc:
        raise SourceParseError(
            f"cannot parse source: {exc.msg}",
            span=SourceSpan(file=filename, line=exc.lineno or 0, column=exc.offset or 0),
            source=source,
        ) from exc
    root = _PythonConverter(source).convert(module)
    if not isinstance(root, Node):
        root = Node("begin", [], loc=None)
    root.source = source
    logger.debug("built analyzed tree %s", root)
    return root


# ═══════════════════════════════════════════════════════════════════════
#  Public API: S-expressions
# ═══════════════════════════════════════════════════════════════════════

_SEXP_PARSER = Grammar(SEXP_GRAMMAR)


class _SexpBuilder(NodeVisitor):

    def visit_document(self, node, visited_children):
        _, expr, _ = visited_children
        return expr

    def visit_expr(self, node, visited_children):
        return visited_children[0]

    def visit_atom(self, node, visited_children):
        return visited_children[0]

    def visit_list(self, node, visited_children):
        _, _, head, rest, _, _ = visited_children
        children = [item for _, item in rest] if isinstance(rest, list) else []
        return Node(head, children, loc=SourceRange(node.start, node.end))

    def visit_head(self, node, visited_children):
        return node.text

    def visit_nil(self, node, visited_children):
        return None

    def visit_true(self, node, visited_children):
        return True

    def visit_false(self, node, visited_children):
        return False

    def visit_symbol(self, node, visited_children):
        return Sym(node.text[1:])

    def visit_float(self, node, visited_children):
        return float(node.text)

    def visit_integer(self, node, visited_children):
        return int(node.text)

    def visit_string(self, node, visited_children):
        return python_ast.literal_eval(node.text)

    def visit_ws(self, node, visited_children):
        return None

    def generic_visit(self, node, visited_children):
        return visited_children or node


def parse_sexp(text: str) -> Node:
    """Build an analyzed tree from an S-expression such as ``(send nil :foo)``."""
    try:
        tree = _SEXP_PARSER.parse(text)
    except ParseError as exc:
        raise SourceParseError(
            "cannot parse S-expression",
            span=SourceSpan.from_offset(text, exc.pos),
            source=text,
        ) from exc
    root = _SexpBuilder().visit(tree)
    if not isinstance(root, Node):
        raise SourceParseError("S-expression must be a list", source=text)
    root.source = text
    return root


def parse_source(text: str, syntax: str = "python") -> Node:
    """Dispatch to :func:`parse_python` or :func:`parse_sexp`."""
    if syntax == "sexp":
        return parse_sexp(text)
    if syntax == "python":
        return parse_python(text)
    raise ValueError(f"unknown source syntax: {syntax!r}")
