"""Tests for the Number type."""

from fractions import Fraction

import pytest
from symbolix import Number, DivisionByZero, NumericOverflow, Undefined, MathError


class TestConstruction:
    """Tests for Number constructors and kind normalization."""

    def test_small_integer_kind(self):
        """Integers in the 64-bit range are plain integers."""
        n = Number.integer(5)
        assert n.kind == "integer"
        assert n.value == 5
        assert n.is_integer
        assert n.is_exact

    def test_big_integer_kind(self):
        """Integers outside the 64-bit range are big integers."""
        assert Number.integer(2 ** 63).kind == "big_integer"
        assert Number.integer(-(2 ** 63) - 1).kind == "big_integer"
        assert Number.integer(-(2 ** 63)).kind == "integer"

    def test_rational_reduced(self):
        """Rationals are stored in lowest terms."""
        assert Number.rational(6, 4) == Number.rational(3, 2)
        assert str(Number.rational(6, 4)) == "3/2"

    def test_rational_with_unit_denominator_is_integer(self):
        """A rational with denominator 1 collapses to an integer."""
        n = Number.rational(4, 2)
        assert n.kind == "integer"
        assert n.value == 2

    def test_rational_sign_in_numerator(self):
        """The denominator is always positive."""
        n = Number.rational(1, -2)
        assert str(n) == "-1/2"
        assert n.denominator == 2
        assert n.numerator == -1

    def test_rational_zero_denominator(self):
        """A zero denominator raises DivisionByZero."""
        with pytest.raises(DivisionByZero):
            Number.rational(1, 0)

    def test_float_rejects_non_finite(self):
        """Infinity and NaN are not valid floats."""
        with pytest.raises(NumericOverflow):
            Number.from_float(float("inf"))
        with pytest.raises(NumericOverflow):
            Number.from_float(float("nan"))

    def test_float_alias(self):
        """Number.float is the same constructor as from_float."""
        assert Number.float(1.5) == Number.from_float(1.5)
        assert Number.float(1.5).is_float

    def test_from_value(self):
        """from_value accepts int, Fraction, float and Number."""
        assert Number.from_value(3) == Number.integer(3)
        assert Number.from_value(Fraction(1, 3)) == Number.rational(1, 3)
        assert Number.from_value(0.25).is_float
        n = Number.integer(7)
        assert Number.from_value(n) is n

    def test_bool_rejected(self):
        """Booleans are not numbers."""
        with pytest.raises(TypeError):
            Number.integer(True)
        with pytest.raises(TypeError):
            Number.from_value(False)

    def test_immutable(self):
        """Numbers cannot be modified."""
        n = Number.integer(1)
        with pytest.raises(AttributeError):
            n.value = 2


class TestArithmetic:
    """Tests for exact and inexact arithmetic."""

    def test_integer_overflow_promotes(self):
        """Adding past the 64-bit range gives a big integer instead of wrapping."""
        result = Number.integer(2 ** 63 - 1).add(Number.integer(1))
        assert result.kind == "big_integer"
        assert result.value == 2 ** 63

    def test_big_integer_demotes(self):
        """A big integer result back in range is a plain integer."""
        result = Number.integer(2 ** 63).sub(Number.integer(1))
        assert result.kind == "integer"

    def test_exact_division(self):
        """Dividing integers gives an exact rational."""
        assert Number.integer(6).div(Number.integer(4)) == Number.rational(3, 2)
        assert Number.integer(6).div(Number.integer(3)) == Number.integer(2)

    def test_rational_arithmetic(self):
        """Rational arithmetic stays exact."""
        half = Number.rational(1, 2)
        third = Number.rational(1, 3)
        assert half.add(third) == Number.rational(5, 6)
        assert half.mul(third) == Number.rational(1, 6)
        assert half.sub(half) == Number.integer(0)

    def test_division_by_zero(self):
        """Division by exact or float zero raises DivisionByZero."""
        with pytest.raises(DivisionByZero):
            Number.integer(1).div(Number.integer(0))
        with pytest.raises(DivisionByZero):
            Number.from_float(1.0).div(Number.from_float(0.0))

    def test_division_by_zero_is_zero_division_error(self):
        """DivisionByZero can be caught as ZeroDivisionError."""
        with pytest.raises(ZeroDivisionError):
            Number.integer(1) / 0

    def test_float_contaminates(self):
        """Mixing exact and float operands gives a float."""
        result = Number.integer(1).add(Number.from_float(0.5))
        assert result.is_float
        assert result.value == 1.5

    def test_float_overflow(self):
        """A float result that overflows raises NumericOverflow."""
        with pytest.raises(NumericOverflow):
            Number.from_float(1e308).mul(Number.integer(10))

    def test_negation_and_abs(self):
        """neg and abs keep the kind."""
        assert Number.rational(-1, 2).neg() == Number.rational(1, 2)
        assert abs(Number.integer(-3)) == Number.integer(3)
        assert Number.from_float(-2.5).abs().value == 2.5

    def test_operators(self):
        """Python operators mirror the named methods."""
        assert Number.integer(2) * 3 == Number.integer(6)
        assert 1 / Number.integer(4) == Number.rational(1, 4)
        assert 10 - Number.integer(4) == Number.integer(6)
        assert -Number.integer(3) == Number.integer(-3)

    def test_big_integer_to_float_overflows(self):
        """Converting a huge integer to float raises NumericOverflow."""
        with pytest.raises(NumericOverflow):
            Number.integer(10 ** 400).to_float()


class TestPower:
    """Tests for Number.pow."""

    def test_integer_power(self):
        """Integer powers of exact numbers are exact."""
        assert Number.integer(2).pow(Number.integer(10)) == Number.integer(1024)
        assert Number.rational(2, 3).pow(Number.integer(2)) == Number.rational(4, 9)

    def test_negative_exponent(self):
        """Negative integer exponents give exact reciprocals."""
        assert Number.integer(2).pow(Number.integer(-2)) == Number.rational(1, 4)

    def test_zero_to_zero(self):
        """0^0 is undefined."""
        with pytest.raises(Undefined):
            Number.integer(0).pow(Number.integer(0))

    def test_zero_to_negative(self):
        """0 to a negative power is a division by zero."""
        with pytest.raises(DivisionByZero):
            Number.integer(0).pow(Number.integer(-1))

    def test_unit_base_with_huge_exponent(self):
        """Powers of 1 and -1 never hit the size limit."""
        assert Number.integer(-1).pow(Number.integer(10 ** 12)) == Number.integer(1)
        assert Number.integer(1).pow(Number.integer(10 ** 12)) == Number.integer(1)

    def test_result_too_large(self):
        """An exact result beyond MAX_POWER_BITS raises NumericOverflow."""
        with pytest.raises(NumericOverflow):
            Number.integer(2).pow(Number.integer(100_000_000))

    def test_float_exponent(self):
        """Non-integer exponents go through float."""
        result = Number.integer(4).pow(Number.from_float(0.5))
        assert result.is_float
        assert result.value == 2.0

    def test_negative_base_fractional_float_exponent(self):
        """A non-real float power is reported as NumericOverflow."""
        with pytest.raises(NumericOverflow):
            Number.integer(-8).pow(Number.from_float(0.5))

    def test_math_errors_share_base(self):
        """Every arithmetic failure is a MathError."""
        with pytest.raises(MathError):
            Number.integer(0).pow(Number.integer(0))


class TestExactRoot:
    """Tests for Number.exact_root."""

    def test_perfect_powers(self):
        """Perfect powers have exact roots."""
        assert Number.integer(27).exact_root(3) == Number.integer(3)
        assert Number.rational(4, 9).exact_root(2) == Number.rational(2, 3)

    def test_odd_root_of_negative(self):
        """Odd roots of negative numbers are negative."""
        assert Number.integer(-8).exact_root(3) == Number.integer(-2)

    def test_no_exact_root(self):
        """Non-perfect powers and even roots of negatives give None."""
        assert Number.integer(2).exact_root(2) is None
        assert Number.integer(-4).exact_root(2) is None
        assert Number.from_float(4.0).exact_root(2) is None


class TestComparison:
    """Tests for equality, hashing and ordering."""

    def test_exact_and_float_differ(self):
        """An exact number is not equal to the float with the same value."""
        assert Number.integer(1) != Number.from_float(1.0)

    def test_hash_consistent(self):
        """Equal numbers hash the same."""
        assert len({Number.rational(2, 4), Number.rational(1, 2)}) == 1

    def test_ordering(self):
        """Numbers order by value."""
        values = [Number.integer(3), Number.rational(1, 2), Number.from_float(-1.0)]
        assert sorted(values) == [Number.from_float(-1.0), Number.rational(1, 2), Number.integer(3)]

    def test_sort_key_exact_first(self):
        """On equal values the exact number sorts before the float."""
        assert Number.integer(1).sort_key() < Number.from_float(1.0).sort_key()

    def test_str(self):
        """Numbers print in s-expression form."""
        assert str(Number.integer(-7)) == "-7"
        assert str(Number.rational(3, 4)) == "3/4"
        assert str(Number.from_float(1.5)) == "1.5"
        assert repr(Number.rational(3, 4)) == "Number(3/4)"
