# tests/test_compiler.py
"""
Tests for the registry-driven compiler: dispatch, registry inheritance,
generated source, matching semantics and compile-time errors.
"""

import pytest

from treepat.ast import PatternNode, PatternType
from treepat.builder import parse_python, parse_sexp
from treepat.codegen import Access
from treepat.compiler import (
    BaseCompiler,
    CompileSession,
    CompilerConfig,
    NodePatternCompiler,
    Registry,
    SequenceCompiler,
    compile_matcher,
    handles,
)
from treepat.errors import (
    CompileError,
    ErrorCodes,
    MatcherArgumentError,
    UnsupportedPatternError,
)
from treepat.tree import Sym
from tests.conftest import (
    ANY_CALL_CAPTURE, FOO_CALL, PARAM_PATTERN, TWO_CAPTURES, UNION_CAPTURE,
)


def _match(pattern, source, *args, **kwargs):
    return compile_matcher(pattern)(parse_python(source), *args, **kwargs)


class TestRegistry:

    def test_resolve_and_fallback(self):
        registry = Registry({"a": len}, fallback=print)
        assert registry.resolve("a") is len
        assert registry.resolve("missing") is print

    def test_copy_is_independent(self):
        registry = Registry({"a": len})
        clone = registry.copy()
        clone.register("b", len)
        assert "b" in clone
        assert "b" not in registry

    def test_sequence_compiler_extends_node_compiler(self):
        assert PatternType.REST in SequenceCompiler.registry
        assert PatternType.REPETITION in SequenceCompiler.registry
        assert PatternType.REST not in NodePatternCompiler.registry
        assert NodePatternCompiler.registry.tags < SequenceCompiler.registry.tags

    def test_subclass_additions_do_not_leak(self):
        class Extended(NodePatternCompiler):
            @handles("custom")
            def on_custom(self, node, access):
                return "True"

        assert "custom" in Extended.registry
        assert "custom" not in NodePatternCompiler.registry
        assert "custom" not in BaseCompiler.registry

    def test_subclass_override_does_not_change_base(self):
        class Strict(NodePatternCompiler):
            @handles(PatternType.WILDCARD)
            def on_wildcard(self, node, access):
                return "False"

        tree = parse_python("foo()")
        assert compile_matcher("_", compiler_class=Strict)(tree) is None
        assert compile_matcher("_")(tree) is True

    def test_registry_is_snapshot_at_definition(self):
        class Parent(BaseCompiler):
            @handles("x")
            def on_x(self, node, access):
                return "True"

        class Child(Parent):
            pass

        Parent.registry.register("late", Parent.on_x)
        assert "x" in Child.registry
        assert "late" not in Child.registry

    def test_dispatch_depends_only_on_tag(self):
        session = CompileSession()
        compiler = NodePatternCompiler(session)
        first = compiler.compile(PatternNode(PatternType.WILDCARD), Access.root())
        second = compiler.compile(PatternNode(PatternType.WILDCARD, ("x",)), Access.root())
        assert first == second == "True"


class TestUnknownTypes:

    def test_unregistered_tag_raises(self):
        with pytest.raises(UnsupportedPatternError) as info:
            compile_matcher(PatternNode("bogus"))
        assert info.value.node_type == "bogus"
        assert info.value.code == ErrorCodes.UNSUPPORTED_NODE
        assert "'bogus'" in str(info.value)

    def test_error_points_into_pattern_text(self):
        with pytest.raises(UnsupportedPatternError) as info:
            compile_matcher("...")
        assert info.value.node_type == "rest"
        assert info.value.span.line == 1
        assert info.value.span.column == 1

    def test_current_node_restored_after_failure(self):
        session = CompileSession()
        compiler = NodePatternCompiler(session)
        with pytest.raises(UnsupportedPatternError):
            compiler.compile(PatternNode("bogus"), Access.root())
        assert session.current is None

    def test_current_node_restored_after_nested_failure(self):
        session = CompileSession()
        compiler = NodePatternCompiler(session)
        tree = PatternNode(PatternType.NEGATION, (PatternNode("bogus"),))
        with pytest.raises(UnsupportedPatternError):
            compiler.compile(tree, Access.root())
        assert session.current is None

    def test_current_node_during_handler(self):
        seen = []

        class Spy(NodePatternCompiler):
            @handles(PatternType.WILDCARD)
            def on_wildcard(self, node, access):
                seen.append(self.session.current)
                return "True"

        node = PatternNode(PatternType.WILDCARD)
        session = CompileSession()
        Spy(session).compile(node, Access.root())
        assert seen == [node]
        assert session.current is None


class TestGeneratedSource:

    def test_plain_matcher_signature(self, foo_matcher):
        assert foo_matcher.source.startswith("def matcher(node):")
        assert "trace" not in foo_matcher.source

    def test_parameters(self):
        assert compile_matcher(FOO_CALL).parameters == ("node",)
        assert compile_matcher(PARAM_PATTERN).parameters == ("node", "_p1", "name")
        assert compile_matcher(PARAM_PATTERN, debug=True).parameters == (
            "node", "_p1", "name", "trace")

    def test_function_name(self):
        matcher = compile_matcher(FOO_CALL, config=CompilerConfig(function_name="is_foo"))
        assert matcher.source.startswith("def is_foo(node):")

    def test_config_validation(self):
        assert CompilerConfig().validate() == []
        assert CompilerConfig(function_name="not valid").validate()
        assert CompilerConfig(function_name="node").validate()
        assert CompilerConfig(function_name="_is_node").validate()
        assert CompilerConfig(function_name="len").validate()

    @pytest.mark.parametrize("name", ["_is_node", "_result", "Sym", "len", "all"])
    def test_function_name_cannot_hide_helpers(self, name, foo_call):
        matcher = compile_matcher(FOO_CALL, config=CompilerConfig(function_name=name))
        assert matcher.source.startswith("def matcher(node):")
        assert matcher(foo_call) is True


class TestMatching:

    def test_simple_call(self, foo_matcher, foo_call, bar_call):
        assert foo_matcher(foo_call) is True
        assert foo_matcher(bar_call) is None

    def test_arity_is_exact_without_variadic(self):
        assert _match(FOO_CALL, "foo(1)") is None

    def test_rest(self):
        assert _match("(send nil? :foo ...)", "foo()") is True
        assert _match("(send nil? :foo ...)", "foo(1, 2)") is True

    def test_single_capture(self):
        assert _match(ANY_CALL_CAPTURE, "puts(1)") == Sym("puts")

    def test_multiple_captures(self):
        tree = parse_python("obj.bar")
        receiver, name = compile_matcher(TWO_CAPTURES)(tree)
        assert receiver is tree.children[0]
        assert name == Sym("bar")

    def test_variadic_capture_is_list(self):
        tree = parse_python("foo(1, 2)")
        args = compile_matcher("(send nil? :foo $...)")(tree)
        assert args == [tree.children[2], tree.children[3]]

    def test_captured_repetition_is_list(self):
        tree = parse_python("[1, 2]")
        assert compile_matcher("(array $int_type?*)")(tree) == list(tree.children)

    def test_terms_after_rest(self):
        assert _match("(array (int 1) ... (int 3))", "[1, 2, 3]") is True
        assert _match("(array (int 1) ... (int 3))", "[1, 3]") is True
        assert _match("(array (int 1) ... (int 3))", "[1, 2]") is None

    def test_repetition(self):
        assert _match("(array int_type?*)", "[]") is True
        assert _match("(array int_type?*)", "[1, 2]") is True
        assert _match("(array int_type?*)", "[1, 'a']") is None
        assert _match("(array int_type?+)", "[]") is None
        assert _match("(array (int _)? (str _))", "['a']") is True
        assert _match("(array (int _)? (str _))", "[1, 'a']") is True
        assert _match("(array (int _)? (str _))", "[1, 2, 'a']") is None

    def test_negation(self):
        assert _match("(send nil? !:foo)", "bar()") is True
        assert _match("(send nil? !:foo)", "foo()") is None

    def test_union_and_intersection(self):
        assert _match("(send nil? {:foo :bar})", "bar()") is True
        assert _match("{lvar send}", "x") is True
        assert _match("[send_type? (send nil? _)]", "foo()") is True
        assert _match("[send_type? (send nil? _)]", "x.foo()") is None

    def test_union_captures_share_slots(self):
        assert _match(UNION_CAPTURE, "foo(1)") == 1
        assert _match(UNION_CAPTURE, "foo('s')") == "s"
        assert _match(UNION_CAPTURE, "foo(1.5)") is None

    def test_ascend(self):
        tree = parse_python("x.foo()")
        lvar = tree.children[0]
        matcher = compile_matcher("^send")
        assert matcher(lvar) is True
        assert matcher(tree) is None

    def test_literals_are_type_exact(self):
        assert _match("(int 1)", "1") is True
        assert _match("(int 1)", "2") is None
        assert _match("(float 1.5)", "1.5") is True
        assert _match('(str "a")', "'a'") is True
        assert compile_matcher("(x 1)")(parse_sexp("(x true)")) is None

    def test_nil_and_predicates(self):
        tree = parse_sexp('(x nil true false :s 1 1.5 "s" (y))')
        pattern = "(x nil true? false? sym? int? float? str? node?)"
        assert compile_matcher(pattern)(tree) is True
        assert compile_matcher("(x nil? _ _ _ _ _ _ y_type?)")(tree) is True

    def test_positional_and_named_parameters(self):
        matcher = compile_matcher(PARAM_PATTERN)
        tree = parse_python("foo(1)")
        int_node = tree.children[2]
        assert matcher(tree, Sym("foo"), name=int_node) is True
        assert matcher(tree, Sym("bar"), name=int_node) is None
        assert matcher(tree, {Sym("foo"), Sym("bar")}, name=lambda n: n.type == "str") is None
        assert matcher(tree, {Sym("foo"), Sym("bar")}, name=lambda n: n.type == "int") is True

    def test_missing_parameters(self):
        matcher = compile_matcher(PARAM_PATTERN)
        tree = parse_python("foo(1)")
        with pytest.raises(MatcherArgumentError) as info:
            matcher(tree, name=1)
        assert info.value.code == ErrorCodes.MISSING_PARAMETER
        with pytest.raises(MatcherArgumentError):
            matcher(tree, Sym("foo"))

    def test_unexpected_parameters(self, foo_matcher, foo_call):
        with pytest.raises(MatcherArgumentError) as info:
            foo_matcher(foo_call, extra=1)
        assert info.value.code == ErrorCodes.UNEXPECTED_PARAMETER
        with pytest.raises(MatcherArgumentError):
            foo_matcher(foo_call, 1)


class TestCompileErrors:

    @pytest.mark.parametrize("pattern, code", [
        ("(send ... ...)", ErrorCodes.MULTIPLE_VARIADIC),
        ("(array (int $_)*)", ErrorCodes.CAPTURE_IN_REPETITION),
        ("(send {(int $_) _})", ErrorCodes.UNBALANCED_CAPTURES),
        ("(send bogus?)", ErrorCodes.UNKNOWN_PREDICATE),
        ("(send {... _})", ErrorCodes.VARIADIC_OUTSIDE_SEQUENCE),
        ("(send !...)", ErrorCodes.VARIADIC_OUTSIDE_SEQUENCE),
        ("(send %trace)", ErrorCodes.RESERVED_PARAMETER),
        ("(send %0)", ErrorCodes.RESERVED_PARAMETER),
        ("(send nil? %len)", ErrorCodes.RESERVED_PARAMETER),
        ("(send nil? %type int?)", ErrorCodes.RESERVED_PARAMETER),
        ("(send %_is_node)", ErrorCodes.RESERVED_PARAMETER),
    ], ids=[
        "two_variadics", "capture_in_repetition", "unbalanced_union",
        "unknown_predicate", "rest_in_union", "negated_rest",
        "reserved_name", "param_zero", "builtin_len", "builtin_type",
        "runtime_helper",
    ])
    def test_compile_error(self, pattern, code):
        with pytest.raises(CompileError) as info:
            compile_matcher(pattern)
        assert info.value.code == code
        assert info.value.span.line == 1
