# tests/test_main.py
"""
Tests for the ``treepat`` command-line interface.
"""

import io

import pytest

from treepat.main import (
    EXIT_INFRA, EXIT_NO_MATCH, EXIT_OK, _Colors, _get_colors, _read_source, main,
)


class TestCommands:

    def test_tokenize(self, capsys):
        assert main(["tokenize", "(send nil? :foo)"]) == EXIT_OK
        out = capsys.readouterr().out
        assert ":foo" in out
        assert out.splitlines()[0].split()[0] == "0"

    def test_parse(self, capsys):
        assert main(["parse", "(send _)"]) == EXIT_OK
        assert capsys.readouterr().out == '(sequence (node_type "send") (wildcard))\n'

    def test_compile(self, capsys):
        assert main(["compile", "(send nil? :foo)"]) == EXIT_OK
        out = capsys.readouterr().out
        assert out.startswith("def matcher(node):")
        assert "trace" not in out

    def test_compile_debug(self, capsys):
        assert main(["compile", "--debug", "--name", "is_foo", "(send nil? :foo)"]) == EXIT_OK
        out = capsys.readouterr().out
        assert out.startswith("def is_foo(node, *, trace):")
        assert "trace.enter(0, node)" in out

    def test_match(self, capsys):
        assert main(["test", "(send nil? :foo)", "foo()"]) == EXIT_OK
        assert capsys.readouterr().out == "foo()\nreturned: True\n"

    def test_no_match(self, capsys):
        assert main(["test", "(send nil? :foo)", "bar()"]) == EXIT_NO_MATCH
        assert capsys.readouterr().out.endswith("returned: None\n")

    def test_sexp_map(self, capsys):
        code = main(["test", "--sexp", "--map", "(send $_ :foo)", "(send (lvar :x) :foo)"])
        assert code == EXIT_OK
        lines = capsys.readouterr().out.splitlines()
        assert lines[1].startswith("matched")
        assert lines[1].endswith("(send (lvar :x) :foo)")
        assert lines[2].split()[:3] == ["matched", "[6,", "15)"]
        assert lines[-1] == "returned: Node((lvar :x))"

    def test_source_from_stdin(self, capsys, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("foo()"))
        assert main(["test", "(send nil? :foo)", "-"]) == EXIT_OK


class TestErrors:

    def test_pattern_syntax_error(self, capsys):
        assert main(["parse", "(send"]) == EXIT_INFRA
        err = capsys.readouterr().err
        assert "error: unexpected" in err
        assert "[TPAT-1001]" in err

    def test_compile_error(self, capsys):
        assert main(["compile", "(send ... ...)"]) == EXIT_INFRA
        assert "[TPAT-2002]" in capsys.readouterr().err

    def test_source_error(self, capsys):
        assert main(["test", "_", "foo("]) == EXIT_INFRA
        assert "[TPAT-1004]" in capsys.readouterr().err

    def test_no_command(self, capsys):
        assert main([]) == EXIT_INFRA

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            main(["--version"])
        assert "treepat" in capsys.readouterr().out


class TestHelpers:

    def test_colors_disabled(self):
        colors = _Colors(enabled=False)
        assert colors.RED == ""
        assert colors.scheme().matched == ""

    def test_colors_enabled(self):
        scheme = _Colors(enabled=True).scheme()
        assert scheme.matched == "\033[32m"
        assert scheme.reset == "\033[0m"

    def test_non_tty_stream(self):
        assert _get_colors(io.StringIO()).enabled is False

    def test_read_source_literal(self):
        assert _read_source("x") == "x"
