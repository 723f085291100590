"""
treepat/codegen.py
==================

Low-level support for generating matcher source code.

:class:`CodeEmitter` writes indented Python lines; :class:`Access`
describes *where* in the analyzed tree a pattern fragment looks.  An
access carries two things:

* ``expr`` – the Python expression that evaluates to the subject at
  match time (``node.children[2]``, ``node.parent``, a loop variable);
* ``path`` – the same location as a tuple of steps from the matcher's
  root argument (child indices and :data:`PARENT`), or ``None`` when the
  location depends on the data (repetition elements, slices).

The static path is what lets the visualizer map a pattern position back
onto a node of the analyzed tree after the fact.
"""

from __future__ import annotations

import keyword
import re
from io import StringIO
from typing import Any, Optional, Tuple, Union

__all__ = ["CodeEmitter", "Access", "PARENT", "ROOT_NAME"]

#: Path step meaning "go to the parent node".
PARENT = "^"

#: Name of the analyzed-tree argument of every generated matcher.
ROOT_NAME = "node"

Step = Union[int, str]


# ═══════════════════════════════════════════════════════════════════════════
# CODE EMITTER
# ═══════════════════════════════════════════════════════════════════════════

class CodeEmitter:
    """Line-oriented code emission with indentation management."""

    def __init__(self, indent_str: str = "    ") -> None:
        self._buffer = StringIO()
        self._indent_str = indent_str
        self._indent_level = 0

    def emit(self, code: str) -> None:
        """Emit a line of code at the current indentation."""
        if code.strip():
            self._buffer.write(self._indent_str * self._indent_level)
            self._buffer.write(code)
        self._buffer.write("\n")

    def emit_comment(self, text: str) -> None:
        for line in text.split("\n"):
            self.emit(f"# {line}")

    def emit_docstring(self, text: str) -> None:
        lines = text.strip().split("\n")
        if len(lines) == 1:
            self.emit(f'"""{lines[0]}"""')
        else:
            self.emit('"""')
            for line in lines:
                self.emit(line)
            self.emit('"""')

    def indent(self) -> None:
        self._indent_level += 1

    def dedent(self) -> None:
        self._indent_level = max(0, self._indent_level - 1)

    def block(self, header: str) -> "CodeEmitter._BlockContext":
        """Context manager for indented blocks."""
        return self._BlockContext(self, header)

    class _BlockContext:

        def __init__(self, emitter: "CodeEmitter", header: str) -> None:
            self._emitter = emitter
            self._header = header

        def __enter__(self) -> "CodeEmitter":
            self._emitter.emit(self._header)
            self._emitter.indent()
            return self._emitter

        def __exit__(self, *args: Any) -> None:
            self._emitter.dedent()

    def get_code(self) -> str:
        return self._buffer.getvalue()

    @staticmethod
    def make_identifier(name: str) -> str:
        """Convert a name to a valid Python identifier."""
        result = name.replace("-", "_")
        result = re.sub(r"[^a-zA-Z0-9_]", "", result)
        if result and result[0].isdigit():
            result = "_" + result
        if keyword.iskeyword(result):
            result = result + "_"
        return result or "_unnamed"


# ═══════════════════════════════════════════════════════════════════════════
# SUBJECT ACCESS
# ═══════════════════════════════════════════════════════════════════════════

class Access:
    """Where a pattern fragment finds its subject."""

    __slots__ = ("expr", "path", "is_slice")

    def __init__(self, expr: str, path: Optional[Tuple[Step, ...]] = (),
                 is_slice: bool = False) -> None:
        self.expr = expr
        self.path = path
        self.is_slice = is_slice

    @classmethod
    def root(cls) -> "Access":
        return cls(ROOT_NAME, ())

    def _extend(self, step: Step) -> Optional[Tuple[Step, ...]]:
        if self.path is None:
            return None
        return self.path + (step,)

    def child(self, index: int) -> "Access":
        """The *index*-th child; negative indices count from the end."""
        return Access(f"{self.expr}.children[{index}]", self._extend(index))

    def parent(self) -> "Access":
        return Access(f"{self.expr}.parent", self._extend(PARENT))

    def slice(self, start: int, stop_from_end: int = 0) -> "Access":
        """Children ``[start:len-stop_from_end]`` as one variadic subject."""
        stop = f"-{stop_from_end}" if stop_from_end else ""
        return Access(f"{self.expr}.children[{start}:{stop}]", None, is_slice=True)

    @staticmethod
    def element(var: str) -> "Access":
        """A loop variable bound to one element of a slice."""
        return Access(var, None)

    def __repr__(self) -> str:
        return f"Access({self.expr!r}, path={self.path!r})"
