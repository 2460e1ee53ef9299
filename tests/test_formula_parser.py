"""
Test the formula grammar parser.

Parsing is purely syntactic, so none of these tests touch data.
"""

import pytest

from robustlm.exceptions import ParseError
from robustlm.formula import Term, TermKind, compile_formula


def labels(formula):
    return [t.label for t in formula.terms]


class TestBasicFormulas:
    """Response, terms and intercept handling."""

    def test_simple(self):
        f = compile_formula("y ~ x1 + x2")
        assert f.response == "y"
        assert labels(f) == ["x1", "x2"]
        assert f.intercept is True
        assert f.source == "y ~ x1 + x2"

    def test_whitespace_is_ignored(self):
        compact = compile_formula("y~x1+x2")
        spaced = compile_formula("  y ~  x1 +   x2 ")
        assert compact.response == spaced.response
        assert compact.terms == spaced.terms

    def test_dotted_and_underscored_names(self):
        f = compile_formula("log_wage ~ educ.years + _x")
        assert f.response == "log_wage"
        assert labels(f) == ["educ.years", "_x"]

    @pytest.mark.parametrize("text, intercept", [
        ("y ~ x", True),
        ("y ~ 1 + x", True),
        ("y ~ x + 1", True),
        ("y ~ x - 1", False),
        ("y ~ 0 + x", False),
        ("y ~ x + 0", False),
        ("y ~ x - 0", True),
        ("y ~ -1 + x", False),
    ])
    def test_intercept_toggles(self, text, intercept):
        f = compile_formula(text)
        assert f.intercept is intercept
        assert labels(f) == ["x"]

    def test_intercept_only(self):
        f = compile_formula("y ~ 1")
        assert f.terms == ()
        assert f.intercept is True

    def test_variables_response_first_without_repeats(self):
        f = compile_formula("y ~ a + b + a:b + C(g)")
        assert f.variables == ("y", "a", "b", "g")

    def test_str_roundtrip_is_readable(self):
        assert str(compile_formula("y ~ x1 + C(g) - 1")) == "y ~ 0 + x1 + C(g)"


class TestTermKinds:
    """Wrappers and interaction operators."""

    def test_categorical(self):
        (term,) = compile_formula("y ~ C(region)").terms
        assert term.kind is TermKind.CATEGORICAL
        assert term.variables == ("region",)
        assert term.label == "C(region)"

    @pytest.mark.parametrize("text", ["y ~ I(x^3)", "y ~ I(x**3)", "y ~ I( x ^ 3 )"])
    def test_polynomial(self, text):
        (term,) = compile_formula(text).terms
        assert term.kind is TermKind.POLYNOMIAL
        assert term.degree == 3
        assert term.label == "I(x^3)"

    def test_product_interaction(self):
        (term,) = compile_formula("y ~ a:b").terms
        assert term.kind is TermKind.INTERACTION
        assert term.left == Term.variable("a")
        assert term.right == Term.variable("b")

    def test_full_interaction_is_a_single_marker(self):
        f = compile_formula("y ~ a*b")
        assert len(f.terms) == 1
        assert f.terms[0].kind is TermKind.FULL_INTERACTION
        assert f.terms[0].label == "a*b"

    def test_colon_binds_tighter_than_star(self):
        (term,) = compile_formula("y ~ a:b*c").terms
        assert term.kind is TermKind.FULL_INTERACTION
        assert term.left.label == "a:b"
        assert term.right.label == "c"

    def test_interaction_of_wrappers(self):
        (term,) = compile_formula("y ~ C(g):I(x^2)").terms
        assert term.label == "C(g):I(x^2)"
        assert term.variables == ("g", "x")

    def test_commuted_interactions_share_a_key(self):
        ab, ba = compile_formula("y ~ a:b + b:a").terms
        assert ab.key == ba.key
        assert ab.label != ba.label

    def test_subtracted_term(self):
        f = compile_formula("y ~ a*b - a:b")
        assert [t.included for t in f.terms] == [True, False]
        assert str(f.terms[1]) == "-a:b"

    def test_formula_is_immutable(self):
        f = compile_formula("y ~ x")
        with pytest.raises(AttributeError):
            f.response = "z"


class TestParseErrors:
    """Malformed formulas raise ParseError with a position."""

    def test_missing_tilde(self):
        with pytest.raises(ParseError, match="missing '~'"):
            compile_formula("y x1 + x2")

    def test_duplicated_tilde_points_at_second(self):
        with pytest.raises(ParseError) as err:
            compile_formula("y ~ x ~ z")
        assert err.value.position == 6

    def test_empty_response(self):
        with pytest.raises(ParseError, match="empty response"):
            compile_formula(" ~ x")

    def test_response_must_be_single_name(self):
        with pytest.raises(ParseError, match="single variable name"):
            compile_formula("y1 + y2 ~ x")

    def test_empty_rhs(self):
        with pytest.raises(ParseError, match="empty right-hand side"):
            compile_formula("y ~ ")

    def test_dangling_operator(self):
        with pytest.raises(ParseError) as err:
            compile_formula("y ~ x +")
        assert err.value.position == 6
        assert "right operand" in err.value.reason

    def test_missing_left_operand(self):
        with pytest.raises(ParseError, match="left operand"):
            compile_formula("y ~ x + * z")

    def test_adjacent_names(self):
        with pytest.raises(ParseError, match="unexpected 'z'") as err:
            compile_formula("y ~ x z")
        assert err.value.position == 6

    @pytest.mark.parametrize("text", ["y ~ C(g", "y ~ I(x^2"])
    def test_unbalanced_wrapper(self, text):
        with pytest.raises(ParseError, match="unbalanced"):
            compile_formula(text)

    def test_non_integer_degree(self):
        with pytest.raises(ParseError, match="integer"):
            compile_formula("y ~ I(x^2.5)")

    @pytest.mark.parametrize("degree", ["0", "1"])
    def test_degree_below_two(self, degree):
        with pytest.raises(ParseError, match="at least 2"):
            compile_formula(f"y ~ I(x^{degree})")

    def test_unknown_function(self):
        with pytest.raises(ParseError, match="unknown function 'log'"):
            compile_formula("y ~ log(x)")

    def test_bare_parentheses(self):
        with pytest.raises(ParseError, match="parentheses"):
            compile_formula("y ~ (a + b)")

    def test_other_numeric_literal(self):
        with pytest.raises(ParseError, match="unsupported numeric term"):
            compile_formula("y ~ x + 2")

    def test_literal_inside_interaction(self):
        with pytest.raises(ParseError, match="numeric literal"):
            compile_formula("y ~ x:1")

    def test_unexpected_character(self):
        with pytest.raises(ParseError, match="unexpected character"):
            compile_formula("y ~ x + $z")

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            compile_formula("no tilde here")

    def test_message_shows_caret(self):
        with pytest.raises(ParseError) as err:
            compile_formula("y ~ x +")
        assert "^" in str(err.value)
