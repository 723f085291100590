# tests/conftest.py
"""
Shared fixtures and pattern / source constants for the treepat test suite.
"""

import pytest

from treepat.builder import parse_python, parse_sexp
from treepat.compiler import compile_matcher


# ─────────────────────────────────────────────────────────────────────────
#  Patterns
# ─────────────────────────────────────────────────────────────────────────

FOO_CALL = "(send nil? :foo)"
ANY_CALL_CAPTURE = "(send nil? $_ ...)"
METHOD_ON_LVAR = "(send (lvar :x) :foo)"
SKIPPED_ARGUMENT = "(send _ :bar (lvar :x))"
INT_ARRAY = "(array int_type?*)"
TWO_CAPTURES = "(send $_ $_)"
UNION_CAPTURE = "(send nil? :foo {(int $_) (str $_)})"
PARAM_PATTERN = "(send nil? %1 %name)"

#: Patterns exercised by the instrumentation-transparency tests.
TRANSPARENCY_PATTERNS = [
    FOO_CALL,
    ANY_CALL_CAPTURE,
    METHOD_ON_LVAR,
    INT_ARRAY,
    TWO_CAPTURES,
    UNION_CAPTURE,
    "(send nil? :foo $...)",
    "(send nil? _ !(int 1))",
    "(send nil? _ [int_type? !(int 2)])",
    "(array (int $_) ... (int 3))",
    "(array int_type?+ (str _))",
    "{send lvar}",
]

#: Python sources exercised by the transparency tests.
TRANSPARENCY_SOURCES = [
    "foo()",
    "bar()",
    "foo(1)",
    "foo(2)",
    "foo('s')",
    "x.foo()",
    "y.foo()",
    "[1, 2, 3]",
    "[1, 'a']",
    "[1, 2, 'z']",
    "x",
]


# ─────────────────────────────────────────────────────────────────────────
#  Fixtures
# ─────────────────────────────────────────────────────────────────────────

@pytest.fixture
def foo_call():
    """The analyzed tree of ``foo()``."""
    return parse_python("foo()")


@pytest.fixture
def bar_call():
    return parse_python("bar()")


@pytest.fixture
def sexp_tree():
    return parse_sexp("(send (lvar :x) :foo (int 1))")


@pytest.fixture
def foo_matcher():
    return compile_matcher(FOO_CALL)


@pytest.fixture
def foo_debug_matcher():
    return compile_matcher(FOO_CALL, debug=True)
