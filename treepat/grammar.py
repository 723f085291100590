"""treepat/grammar.py – PEG grammars (parsimonious syntax).

``PATTERN_GRAMMAR``
    The node-pattern language.  ``pattern`` is the default rule;
    ``tokens`` splits pattern text into lexical tokens for debugging.

``SEXP_GRAMMAR``
    S-expression literals used to write analyzed trees by hand, e.g.
    ``(send (lvar :x) :foo (int 1))``.

Ordered choice matters in both grammars: ``nil`` and predicates
(``nil?``) must be tried before bare node types, and wildcards before
predicates so that ``_?`` reads as an optional wildcard.
"""

from __future__ import annotations

__all__ = ["PATTERN_GRAMMAR", "SEXP_GRAMMAR"]


PATTERN_GRAMMAR = r"""
    pattern       = ws term ws

    term          = capture / negation / ascend / repeated
    capture       = "$" term
    negation      = "!" term
    ascend        = "^" term
    repeated      = atom repeat_op?
    repeat_op     = ~r"[*+?]"

    atom          = sequence / union / intersection / rest / wildcard /
                    literal / param / predicate / node_type
    sequence      = "(" ws term (ws term)* ws ")"
    union         = "{" ws term (ws term)* ws "}"
    intersection  = "[" ws term (ws term)* ws "]"

    literal       = symbol / number / string / nil
    rest          = "..."
    wildcard      = ~r"_\w*"
    nil           = ~r"nil(?![\w?])"
    symbol        = ~r":(?:[A-Za-z_]\w*[?!=]?|[-+*/%<>=!&|^~]+|\[\]=?)"
    number        = ~r"-?\d+(?:\.\d+)?(?![\w.])"
    string        = ~r"\"(?:[^\"\\]|\\.)*\""
    param         = ~r"%(?:\d+|[A-Za-z_]\w*)"
    predicate     = ~r"[A-Za-z]\w*\?"
    node_type     = ~r"[a-z]\w*(?![?\w])"

    tokens        = ws (token ws)*
    token         = rest / symbol / number / string / param / wildcard /
                    nil / predicate / node_type / punct
    punct         = ~r"[()\[\]{}$!^*+?]"

    ws            = ~r"(?:\s+|\#[^\n]*)*"
"""


SEXP_GRAMMAR = r"""
    document      = ws expr ws
    expr          = list / atom
    list          = "(" ws head (ws expr)* ws ")"
    head          = ~r"[A-Za-z_][\w-]*"
    atom          = nil / true / false / symbol / float / integer / string
    nil           = ~r"nil(?![\w?])"
    true          = ~r"true(?![\w?])"
    false         = ~r"false(?![\w?])"
    symbol        = ~r":(?:[A-Za-z_]\w*[?!=]?|[-+*/%<>=!&|^~]+|\[\]=?)"
    float         = ~r"-?\d+\.\d+"
    integer       = ~r"-?\d+"
    string        = ~r"\"(?:[^\"\\]|\\.)*\""

    ws            = ~r"(?:\s+|;[^\n]*)*"
"""
