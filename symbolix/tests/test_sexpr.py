"""Tests for s-expression parsing, formatting and the E builder."""

import pytest
from symbolix import (
    E, Expression, Number, Symbol,
    Num, Sym, Constant, Add, Mul, Pow, Wild,
    parse_sexpr, format_sexpr,
)


class TestParseAtoms:
    """Tests for parsing leaves."""

    def test_integer(self):
        """Integers parse to exact numbers."""
        assert parse_sexpr("42") == Num(Number.integer(42))
        assert parse_sexpr("-7") == Num(Number.integer(-7))

    def test_rational(self):
        """p/q parses to an exact rational."""
        assert parse_sexpr("3/4") == Num(Number.rational(3, 4))

    def test_float(self):
        """Decimal and exponent forms parse to floats."""
        assert parse_sexpr("1.5") == Num(Number.from_float(1.5))
        assert parse_sexpr("2e3") == Num(Number.from_float(2000.0))

    def test_symbol_and_constant(self):
        """Known constant names parse to constants, others to symbols."""
        assert isinstance(parse_sexpr("pi"), Constant)
        assert isinstance(parse_sexpr("theta"), Sym)

    def test_rational_zero_denominator(self):
        """1/0 parses to an unevaluated division."""
        assert str(E("1/0")) == "(^ 0 -1)"


class TestParseCompound:
    """Tests for parsing compound forms."""

    def test_raw_tree(self):
        """parse_sexpr keeps the tree as written."""
        expr = parse_sexpr("(+ x x)")
        assert isinstance(expr, Add)
        assert len(expr.terms) == 2

    def test_negation_and_subtraction(self):
        """- with one operand negates, with more subtracts."""
        assert str(E("(- x)")) == "(* -1 x)"
        assert str(E("(- x y)")) == "(+ x (* -1 y))"

    def test_division(self):
        """/ multiplies by the reciprocal."""
        raw = parse_sexpr("(/ x 2)")
        assert isinstance(raw, Mul)
        assert isinstance(raw.factors[1], Pow)
        assert str(E("(/ x 2)")) == "(* 1/2 x)"

    def test_function(self):
        """Other heads are function applications."""
        assert str(parse_sexpr("(f x y)")) == "(f x y)"

    @pytest.mark.parametrize("text", [
        "",
        "(+ x",
        ")",
        "(+ x) y",
        "()",
        "(^ x)",
        "(/ x)",
        "((f) x)",
        "(complex 1)",
        "(matrix 1 2)",
    ])
    def test_malformed(self, text):
        """Malformed input raises ValueError."""
        with pytest.raises(ValueError):
            parse_sexpr(text)


class TestPatterns:
    """Tests for pattern and skeleton syntax."""

    def test_pattern_variables(self):
        """?x forms parse to pattern wildcards."""
        assert parse_sexpr("?x") == Wild("x")
        assert parse_sexpr("?n:const") == Wild("n", "const")
        assert parse_sexpr("?v:var") == Wild("v", "var")
        assert parse_sexpr("?c:free(x)") == Wild("c", "free", "x")
        assert parse_sexpr("?xs...") == Wild("xs", rest=True)

    def test_skeleton_variables(self):
        """:x forms parse to skeleton wildcards."""
        assert parse_sexpr(":x") == Wild("x", role="skeleton")
        assert parse_sexpr(":xs...") == Wild("xs", rest=True, role="skeleton")

    def test_unknown_constraint(self):
        """Unknown constraints are rejected."""
        with pytest.raises(ValueError):
            parse_sexpr("?x:bogus")

    @pytest.mark.parametrize("text", ["?x", "?n:const", "?c:free(y)", "?xs...", ":x", ":xs..."])
    def test_format(self, text):
        """Wildcards print back as written."""
        assert format_sexpr(parse_sexpr(text)) == text


class TestFormat:
    """Tests for format_sexpr."""

    @pytest.mark.parametrize("text", [
        "(+ 1 x)",
        "(sin (* 1/2 pi))",
        "(complex 1 2)",
        "(matrix (1 2) (3 4))",
        "(f x y)",
        "1.5",
        "-3/4",
    ])
    def test_round_trip(self, text):
        """Formatting a parsed tree gives the same text."""
        assert format_sexpr(parse_sexpr(text)) == text

    def test_str_uses_format(self):
        """str() of an expression is its s-expression."""
        assert str(E("(+ x x)")) == "(* 2 x)"
        assert str(E("(/ 6 4)")) == "3/2"

    def test_symbol_named_like_constant(self):
        """A symbol spelled like a constant reads back as the constant."""
        text = format_sexpr(Sym(Symbol("pi")))
        assert text == "pi"
        assert parse_sexpr(text) == Constant("pi")


class TestExprBuilder:
    """Tests for the E builder."""

    def test_call_simplifies(self):
        """E() parses and simplifies."""
        assert str(E("(+ x (* 2 x))")) == "(* 3 x)"

    def test_raw(self):
        """E.raw() parses without simplifying."""
        assert str(E.raw("(+ x x)")) == "(+ x x)"

    def test_op(self):
        """E.op builds canonical compound expressions."""
        assert str(E.op("+", "x", 1)) == "(+ 1 x)"
        assert str(E.op("-", "x")) == "(* -1 x)"
        assert str(E.op("-", "x", "y")) == "(+ x (* -1 y))"
        assert E.op("sin", E.const("pi")) == Expression.integer(0)

    def test_vars(self):
        """E.vars creates several symbols."""
        x, y = E.vars("x", "y")
        assert x == E.var("x")
        assert y == Expression.symbol("y")

    def test_const(self):
        """E.const builds numbers and named constants."""
        assert E.const(3) == Expression.integer(3)
        assert isinstance(E.const("e"), Constant)
