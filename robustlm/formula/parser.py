"""
Formula grammar parser.

Turns ``"y ~ x1 + C(group) + I(x2^3) + x1*x3 - 1"`` into an immutable
:class:`~robustlm.formula.terms.Formula`. The grammar is small enough for a
regex tokenizer and a hand-written recursive-descent parser::

    formula  := NAME '~' rhs
    rhs      := ['-'] item (('+' | '-') item)*
    item     := product ('*' product)*
    product  := atom (':' atom)*
    atom     := NAME | '0' | '1'
              | 'C' '(' NAME ')'
              | 'I' '(' NAME ('^' | '**') INT ')'

The parser is purely syntactic: it never looks at data.
"""

import re
from typing import List, NamedTuple, Optional, Union

from ..exceptions import ParseError
from .terms import Formula, Term

_TOKEN_RE = re.compile(
    r"(?P<number>\d+(?:\.\d*)?)"
    r"|(?P<name>[A-Za-z_][A-Za-z0-9_.]*)"
    r"|(?P<op>\*\*|[~+\-*:^()])"
)


class _Token(NamedTuple):
    kind: str   # 'number', 'name' or 'op'
    value: str
    pos: int


def _tokenize(text: str, offset: int = 0, source: str = "") -> List[_Token]:
    tokens = []
    pos = 0
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise ParseError(f"unexpected character '{text[pos]}'", source, offset + pos)
        tokens.append(_Token(m.lastgroup, m.group(), offset + pos))
        pos = m.end()
    return tokens


class _RhsParser:
    """Recursive-descent parser over the right-hand side tokens."""

    def __init__(self, tokens: List[_Token], source: str):
        self.tokens = tokens
        self.source = source
        self.i = 0

    # -- token helpers -----------------------------------------------------

    def _peek(self) -> Optional[_Token]:
        return self.tokens[self.i] if self.i < len(self.tokens) else None

    def _at_op(self, *ops: str) -> bool:
        tok = self._peek()
        return tok is not None and tok.kind == "op" and tok.value in ops

    def _advance(self, expected: str = "a term") -> _Token:
        tok = self._peek()
        if tok is None:
            raise ParseError(f"expected {expected} but the formula ended",
                             self.source, len(self.source))
        self.i += 1
        return tok

    def _expect_op(self, op: str, reason: str) -> _Token:
        tok = self._peek()
        if tok is None or tok.kind != "op" or tok.value != op:
            pos = tok.pos if tok is not None else len(self.source)
            raise ParseError(reason, self.source, pos)
        self.i += 1
        return tok

    def _error(self, reason: str, tok: _Token) -> ParseError:
        return ParseError(reason, self.source, tok.pos)

    # -- grammar -------------------------------------------------------------

    def parse(self):
        intercept = True
        terms = []

        if self._peek() is None:
            raise ParseError("empty right-hand side", self.source, len(self.source))

        sign = "+"
        if self._at_op("-"):
            sign = self._advance().value

        while True:
            item = self._item()
            if isinstance(item, int):
                # '+ 1' / '- 0' keep the intercept, '+ 0' / '- 1' drop it
                intercept = (item == 1) == (sign == "+")
            else:
                terms.append(item if sign == "+" else item.excluded())

            tok = self._peek()
            if tok is None:
                break
            if tok.kind != "op" or tok.value not in "+-":
                raise self._error(f"unexpected '{tok.value}'", tok)
            self.i += 1
            sign = tok.value
            if self._peek() is None:
                raise self._error(f"operator '{sign}' is missing its right operand", tok)

        return tuple(terms), intercept

    def _item(self) -> Union[Term, int]:
        left = self._product()
        while self._at_op("*"):
            star = self._advance()
            right = self._product()
            if isinstance(left, int) or isinstance(right, int):
                raise self._error("numeric literal inside an interaction", star)
            left = Term.interaction(left, right, full=True)
        return left

    def _product(self) -> Union[Term, int]:
        left = self._atom()
        while self._at_op(":"):
            colon = self._advance()
            right = self._atom()
            if isinstance(left, int) or isinstance(right, int):
                raise self._error("numeric literal inside an interaction", colon)
            left = Term.interaction(left, right)
        return left

    def _atom(self) -> Union[Term, int]:
        tok = self._advance()
        if tok.kind == "number":
            if tok.value not in ("0", "1"):
                raise self._error(f"unsupported numeric term '{tok.value}'", tok)
            return int(tok.value)
        if tok.kind == "name":
            if self._at_op("("):
                return self._wrapper(tok)
            return Term.variable(tok.value)
        if tok.value == "(":
            raise self._error("parentheses are only supported in C() and I()", tok)
        raise self._error(f"operator '{tok.value}' is missing its left operand", tok)

    def _wrapper(self, func: _Token) -> Term:
        if func.value not in ("C", "I"):
            raise self._error(f"unknown function '{func.value}'", func)
        self._advance()  # '('
        var = self._advance("a variable name")
        if var.kind != "name":
            raise self._error(f"{func.value}() expects a variable name", var)

        if func.value == "C":
            self._expect_op(")", "unbalanced parentheses in C()")
            return Term.categorical(var.value)

        if not self._at_op("^", "**"):
            tok = self._peek()
            raise ParseError("I() expects 'var^n' or 'var**n'", self.source,
                             tok.pos if tok is not None else len(self.source))
        self._advance()
        degree = self._advance("a polynomial degree")
        if degree.kind != "number" or "." in degree.value:
            raise self._error("polynomial degree must be an integer", degree)
        n = int(degree.value)
        if n < 2:
            raise self._error(f"polynomial degree must be at least 2, got {n}", degree)
        self._expect_op(")", "unbalanced parentheses in I()")
        return Term.polynomial(var.value, n)


def compile_formula(formula: str) -> Formula:
    """
    Parse a formula string.

    Parameters
    ----------
    formula : str
        Model description such as ``"y ~ x1 + C(g) + I(x2^2) + x1:x3"``.

    Returns
    -------
    Formula
        Immutable compiled formula.

    Raises
    ------
    ParseError
        When ``~`` is missing or duplicated, a term is empty or malformed,
        or an operator lacks an operand.

    Examples
    --------
    >>> f = compile_formula("y ~ x1 + x2 - 1")
    >>> f.response, [t.label for t in f.terms], f.intercept
    ('y', ['x1', 'x2'], False)
    """
    if not isinstance(formula, str):
        raise ParseError(f"formula must be a string, got {type(formula).__name__}")

    tilde = [i for i, ch in enumerate(formula) if ch == "~"]
    if not tilde:
        raise ParseError("missing '~' between response and predictors", formula)
    if len(tilde) > 1:
        raise ParseError("more than one '~'", formula, tilde[1])

    split = tilde[0]
    lhs = _tokenize(formula[:split], 0, formula)
    if not lhs:
        raise ParseError("empty response", formula, 0)
    if len(lhs) != 1 or lhs[0].kind != "name":
        bad = lhs[1] if len(lhs) > 1 else lhs[0]
        raise ParseError("response must be a single variable name", formula, bad.pos)

    rhs = _tokenize(formula[split + 1:], split + 1, formula)
    terms, intercept = _RhsParser(rhs, formula).parse()
    return Formula(lhs[0].value, terms, intercept, formula)
