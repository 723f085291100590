# treepat/errors.py
"""
treepat Error Types

Error handling infrastructure for the pattern compiler pipeline: parsing
pattern text, compiling pattern trees into matchers, and invoking the
compiled matchers.

Architecture Overview:
─────────────────────
┌─────────────────────────────────────────────────────────────────────────────┐
│                          Error Hierarchy                                    │
├─────────────────────────────────────────────────────────────────────────────┤
│  TreepatError (base)                                                        │
│  ├── PatternSyntaxError       - Pattern text does not match the grammar     │
│  ├── SourceParseError         - Analyzed source text does not parse         │
│  ├── CompileError             - Pattern tree cannot be compiled             │
│  │   └── UnsupportedPatternError - No handler registered for a node type    │
│  └── MatcherArgumentError     - Matcher called with the wrong parameters    │
└─────────────────────────────────────────────────────────────────────────────┘

Error Codes:
────────────
Each error has a unique code following the pattern TPAT-XXXX where XXXX is
a 4-digit number in ranges:
  - 1000-1999: Syntax errors
  - 2000-2999: Compilation errors
  - 5000-5999: Matcher invocation errors

Example Usage:
──────────────
    from treepat.errors import CompileError, ErrorCodes, SourceSpan

    raise CompileError(
        "captures are not supported inside a repetition",
        code=ErrorCodes.CAPTURE_IN_REPETITION,
        span=SourceSpan.from_offset(pattern_text, 4, 9),
        source=pattern_text,
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Dict, List, Optional, Sequence

__all__ = [
    "ErrorPhase",
    "ErrorCode",
    "ErrorCodes",
    "SourceSpan",
    "ErrorMessage",
    "TreepatError",
    "PatternSyntaxError",
    "SourceParseError",
    "CompileError",
    "UnsupportedPatternError",
    "MatcherArgumentError",
]


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

@unique
class ErrorPhase(Enum):
    """Pipeline phase in which an error was raised."""

    PARSE = "parse"
    COMPILE = "compile"
    MATCH = "match"


class ErrorCode:
    """
    Structured error code.

    Codes follow the pattern PREFIX-NNNN; the prefix is always ``TPAT``.
    """

    __slots__ = ("prefix", "number", "phase", "summary")

    def __init__(self, number: int, phase: ErrorPhase, summary: str,
                 prefix: str = "TPAT") -> None:
        self.prefix = prefix
        self.number = number
        self.phase = phase
        self.summary = summary

    @property
    def code(self) -> str:
        """Get the full error code string."""
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"ErrorCode({self.code!r}, {self.phase.name})"

    def __hash__(self) -> int:
        return hash((self.prefix, self.number))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ErrorCode):
            return self.prefix == other.prefix and self.number == other.number
        if isinstance(other, str):
            return self.code == other
        return False


class ErrorCodes:
    """Predefined error codes."""

    # ═══════════════════════════════════════════════════════════════════════════
    # SYNTAX ERRORS (1000-1999)
    # ═══════════════════════════════════════════════════════════════════════════

    UNEXPECTED_INPUT = ErrorCode(1001, ErrorPhase.PARSE, "unexpected input")
    TRAILING_INPUT = ErrorCode(1002, ErrorPhase.PARSE, "trailing input")
    INVALID_LITERAL = ErrorCode(1003, ErrorPhase.PARSE, "invalid literal")
    INVALID_SOURCE = ErrorCode(1004, ErrorPhase.PARSE, "analyzed source does not parse")

    # ═══════════════════════════════════════════════════════════════════════════
    # COMPILATION ERRORS (2000-2999)
    # ═══════════════════════════════════════════════════════════════════════════

    UNSUPPORTED_NODE = ErrorCode(2001, ErrorPhase.COMPILE, "unsupported pattern node")
    MULTIPLE_VARIADIC = ErrorCode(2002, ErrorPhase.COMPILE, "more than one variadic term")
    CAPTURE_IN_REPETITION = ErrorCode(2003, ErrorPhase.COMPILE, "capture inside repetition")
    UNBALANCED_CAPTURES = ErrorCode(2004, ErrorPhase.COMPILE, "unbalanced union captures")
    UNKNOWN_PREDICATE = ErrorCode(2005, ErrorPhase.COMPILE, "unknown predicate")
    VARIADIC_OUTSIDE_SEQUENCE = ErrorCode(2006, ErrorPhase.COMPILE, "variadic term outside a sequence")
    RESERVED_PARAMETER = ErrorCode(2007, ErrorPhase.COMPILE, "reserved parameter name")

    # ═══════════════════════════════════════════════════════════════════════════
    # MATCHER INVOCATION ERRORS (5000-5999)
    # ═══════════════════════════════════════════════════════════════════════════

    MISSING_PARAMETER = ErrorCode(5001, ErrorPhase.MATCH, "missing matcher parameter")
    UNEXPECTED_PARAMETER = ErrorCode(5002, ErrorPhase.MATCH, "unexpected matcher parameter")


# ═══════════════════════════════════════════════════════════════════════════════
# SOURCE LOCATION
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SourceSpan:
    """
    A span of pattern text with 1-based line/column start and end positions.

    Pattern nodes carry character offsets; this is the human-facing view
    used in diagnostics.
    """

    file: str = ""
    line: int = 0
    column: int = 0
    end_line: int = 0
    end_column: int = 0

    def __post_init__(self) -> None:
        # Normalize: if end not specified, use start
        if self.end_line == 0:
            object.__setattr__(self, "end_line", self.line)
        if self.end_column == 0:
            object.__setattr__(self, "end_column", self.column)

    @staticmethod
    def _line_col(text: str, offset: int) -> tuple:
        offset = max(0, min(offset, len(text)))
        line = text.count("\n", 0, offset) + 1
        column = offset - (text.rfind("\n", 0, offset) + 1) + 1
        return line, column

    @classmethod
    def from_offset(cls, text: str, begin: int, end: Optional[int] = None,
                    file: str = "") -> "SourceSpan":
        """Create a SourceSpan from character offsets into *text*."""
        line, column = cls._line_col(text, begin)
        if end is None or end <= begin:
            return cls(file=file, line=line, column=column)
        end_line, end_column = cls._line_col(text, end)
        return cls(file=file, line=line, column=column,
                   end_line=end_line, end_column=end_column)

    def __str__(self) -> str:
        if not self.file and self.line == 0:
            return "<unknown location>"

        parts = []
        if self.file:
            parts.append(self.file)
        if self.line > 0:
            parts.append(str(self.line))
            if self.column > 0:
                parts.append(str(self.column))

        return ":".join(parts)


# ═══════════════════════════════════════════════════════════════════════════════
# ERROR MESSAGE FORMATTING
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ErrorMessage:
    """A complete error message with all context."""

    code: ErrorCode
    message: str
    span: SourceSpan = field(default_factory=SourceSpan)
    hint: str = ""
    source_line: str = ""  # The pattern text line, if available

    def to_gcc_format(self) -> str:
        """Format as a GCC-style error message."""
        lines = [f"{self.span}: error: {self.message} [{self.code}]"]

        # Add source line with caret if available
        if self.source_line:
            lines.append(f"    {self.source_line}")
            if self.span.column > 0:
                caret_pos = self.span.column - 1
                caret_len = 1
                if self.span.end_line == self.span.line:
                    caret_len = max(1, self.span.end_column - self.span.column)
                lines.append(f"    {' ' * caret_pos}{'^' * caret_len}")

        if self.hint:
            lines.append(f"hint: {self.hint}")

        return "\n".join(lines)

    def to_json(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "code": self.code.code,
            "message": self.message,
            "phase": self.code.phase.value,
            "location": {
                "line": self.span.line,
                "column": self.span.column,
                "end_line": self.span.end_line,
                "end_column": self.span.end_column,
            },
            "hint": self.hint,
        }

    def __str__(self) -> str:
        return self.to_gcc_format()


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class TreepatError(Exception):
    """
    Base exception for all treepat errors.

    Carries a structured :class:`ErrorMessage`; ``str()`` yields the
    GCC-style rendering.
    """

    default_code: ErrorCode = ErrorCodes.UNEXPECTED_INPUT

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        source: str = "",
        hint: str = "",
    ) -> None:
        super().__init__(message)
        span = span or SourceSpan()
        source_line = ""
        if source and span.line > 0:
            source_lines = source.splitlines()
            if span.line <= len(source_lines):
                source_line = source_lines[span.line - 1]
        self.error_message = ErrorMessage(
            code=code or self.default_code,
            message=message,
            span=span,
            hint=hint,
            source_line=source_line,
        )

    @property
    def code(self) -> ErrorCode:
        return self.error_message.code

    @property
    def span(self) -> SourceSpan:
        return self.error_message.span

    @property
    def message(self) -> str:
        return self.error_message.message

    def with_hint(self, hint: str) -> "TreepatError":
        """Add a hint to this error."""
        self.error_message.hint = hint
        return self

    def to_gcc_format(self) -> str:
        return self.error_message.to_gcc_format()

    def __str__(self) -> str:
        return self.to_gcc_format()


class PatternSyntaxError(TreepatError):
    """Pattern text does not conform to the pattern grammar."""

    default_code = ErrorCodes.UNEXPECTED_INPUT

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        span: Optional[SourceSpan] = None,
        source: str = "",
        expected: Optional[Sequence[str]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, code=code, span=span, source=source, **kwargs)
        self.expected: List[str] = list(expected) if expected else []

        # Auto-generate hint if expected constructs provided
        if self.expected and not self.error_message.hint:
            if len(self.expected) == 1:
                self.error_message.hint = f"Expected {self.expected[0]}"
            else:
                self.error_message.hint = f"Expected one of: {', '.join(self.expected[:3])}"


class SourceParseError(TreepatError):
    """The analyzed source text could not be turned into a tree."""

    default_code = ErrorCodes.INVALID_SOURCE


class CompileError(TreepatError):
    """A pattern tree cannot be turned into a matcher."""

    default_code = ErrorCodes.UNSUPPORTED_NODE


class UnsupportedPatternError(CompileError):
    """No handler is registered for a pattern node's type tag."""

    default_code = ErrorCodes.UNSUPPORTED_NODE

    def __init__(self, node_type: str, **kwargs: Any) -> None:
        super().__init__(f"unsupported pattern construct '{node_type}'", **kwargs)
        self.node_type = node_type


class MatcherArgumentError(TreepatError):
    """A compiled matcher was called with the wrong set of parameters."""

    default_code = ErrorCodes.MISSING_PARAMETER

    def __init__(self, message: str, parameters: Sequence[str] = (),
                 **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.parameters = tuple(parameters)
