# tests/test_visualizer.py
"""
Tests for correlating a trace with the analyzed tree and rendering the
per-character match status.
"""

import pytest

from treepat.tree import Node, Sym
from treepat.visualizer import ColorScheme, Colorizer, MatchStatus
from tests.conftest import FOO_CALL, INT_ARRAY, METHOD_ON_LVAR, SKIPPED_ARGUMENT

S = MatchStatus


def _statuses(result):
    text = result.source
    return "".join(
        {S.NOT_VISITABLE: ".", S.NOT_VISITED: "?", S.FAILED: "x", S.MATCHED: "+"}[
            result.color_map()[i]]
        for i in range(len(text))
    )


class TestMatchStatus:

    def test_from_outcome(self):
        assert S.from_outcome(None) is S.NOT_VISITED
        assert S.from_outcome(False) is S.FAILED
        assert S.from_outcome(True) is S.MATCHED


class TestColorMap:

    def test_matched_call(self):
        result = Colorizer(FOO_CALL).test("foo()")
        assert result.returned is True
        assert result.matched(result.ast) is S.MATCHED
        assert set(result.color_map().values()) == {S.MATCHED}

    def test_failed_call(self):
        result = Colorizer(FOO_CALL).test("bar()")
        assert result.returned is None
        assert _statuses(result) == "xxxxx"

    def test_uncovered_characters(self):
        result = Colorizer(FOO_CALL).test("(foo())  ")
        assert _statuses(result) == ".+++++..."

    def test_inner_node_overrides_parent(self):
        result = Colorizer(METHOD_ON_LVAR).test("y.foo()")
        assert _statuses(result) == "xxxxxxx"
        lvar = result.ast.children[0]
        assert result.matched(lvar) is S.FAILED

    def test_not_visited_node(self):
        result = Colorizer(SKIPPED_ARGUMENT).test("y.foo(x)")
        assert result.returned is None
        assert _statuses(result) == "+xxxxx?x"

    def test_node_out_of_pattern_reach(self):
        result = Colorizer(FOO_CALL).test("foo(x)")
        arg = result.ast.children[2]
        assert result.matched(arg) is S.NOT_VISITABLE
        assert _statuses(result) == "xxxx.x"

    def test_repetition_elements_use_trace_subjects(self):
        result = Colorizer(INT_ARRAY).test("[1, 'a', 2]")
        assert result.returned is None
        assert _statuses(result) == "x+xxxxxxx.x"

    def test_outermost_position_wins(self):
        result = Colorizer(FOO_CALL).test("foo()")
        assert result.pattern_id(result.ast) == 0

    def test_match_map_is_preorder(self):
        result = Colorizer(METHOD_ON_LVAR).test("x.foo()")
        nodes = list(result.match_map())
        assert nodes == list(result.ast.each_node())
        assert set(result.match_map().values()) == {S.MATCHED}

    def test_nodes_without_range_are_skipped(self):
        tree = Node("send", [Node("lvar", [Sym("x")]), Sym("foo")])
        tree.source = "x.foo"
        result = Colorizer(METHOD_ON_LVAR).test(tree)
        assert result.returned is True
        assert set(result.color_map().values()) == {S.NOT_VISITABLE}

    def test_sexp_source(self):
        result = Colorizer(FOO_CALL).test("(send nil :foo)", syntax="sexp")
        assert result.returned is True
        assert _statuses(result) == "+" * len("(send nil :foo)")

    def test_without_source_text(self):
        result = Colorizer(FOO_CALL).test(Node("send", [None, Sym("foo")]))
        with pytest.raises(ValueError):
            result.color_map()


class TestColorize:

    def test_plain_scheme_reproduces_source(self):
        result = Colorizer(FOO_CALL).test("(foo())")
        assert result.colorize(ColorScheme.plain()) == "(foo())"

    def test_ansi_runs(self):
        result = Colorizer(FOO_CALL).test("(foo())")
        scheme = ColorScheme()
        expected = (
            scheme.not_visitable + "(" + scheme.reset
            + scheme.matched + "foo()" + scheme.reset
            + scheme.not_visitable + ")" + scheme.reset
        )
        assert result.colorize() == expected

    def test_scheme_codes(self):
        scheme = ColorScheme()
        assert scheme.code(S.FAILED) == "\033[31m"
        assert scheme.code(S.MATCHED) == "\033[32m"
        assert scheme.code(S.NOT_VISITED) == "\033[33m"
        assert scheme.code(S.NOT_VISITABLE) == "\033[36m"
