"""
Numeric tower for symbolix.

A Number is one of four kinds:

    integer      - exact integer that fits in a signed 64-bit word
    big_integer  - exact integer outside the 64-bit range
    rational     - exact fraction in lowest terms, positive denominator,
                   denominator never 1
    float        - finite double precision value

Numbers are immutable and always stored in their minimal exact kind:
a rational with denominator 1 is an integer, a big integer that fits in
64 bits is an integer. Arithmetic never wraps or silently loses
exactness; a float result that is infinite or NaN raises NumericOverflow.

Examples:
    Number.integer(6) / Number.integer(4)    # => Number(3/2)
    Number.integer(2**63 - 1) + 1            # => Number(9223372036854775808), big_integer
    Number.integer(1) / Number.integer(0)    # raises DivisionByZero
"""

import math
from fractions import Fraction
from typing import Callable, Optional, Tuple, Union

from .errors import DivisionByZero, NumericOverflow, Undefined

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

# Largest exact power result (in bits) computed eagerly.
MAX_POWER_BITS = 10_000_000

INTEGER = "integer"
BIG_INTEGER = "big_integer"
RATIONAL = "rational"
FLOAT = "float"

ExactType = Union[int, Fraction]
NumericType = Union[int, Fraction, float]


def _exact_kind(value: ExactType) -> Tuple[str, ExactType]:
    """Return the minimal (kind, value) for an exact value."""
    if isinstance(value, Fraction):
        if value.denominator != 1:
            return RATIONAL, value
        value = value.numerator
    if INT64_MIN <= value <= INT64_MAX:
        return INTEGER, value
    return BIG_INTEGER, value


def integer_root(n: int, k: int) -> Optional[int]:
    """Exact k-th root of a non-negative integer, or None if n is not a perfect power."""
    if n < 0 or k < 1:
        return None
    if n < 2 or k == 1:
        return n
    if k == 2:
        r = math.isqrt(n)
        return r if r * r == n else None
    # Newton iteration on integers, starting above the root.
    x = 1 << ((n.bit_length() + k - 1) // k)
    while True:
        y = ((k - 1) * x + n // x ** (k - 1)) // k
        if y >= x:
            break
        x = y
    return x if x ** k == n else None


class Number:
    """
    Immutable exact or inexact number.

    Use the classmethods (integer, rational, float, from_value) to build
    Numbers. Arithmetic is available both as named methods (add, sub, mul,
    div, neg, pow) and through Python operators; either form raises a
    MathError subclass on failure.
    """

    __slots__ = ('kind', 'value')

    def __init__(self, kind: str, value: NumericType):
        object.__setattr__(self, 'kind', kind)
        object.__setattr__(self, 'value', value)

    def __setattr__(self, name, value):
        raise AttributeError("Number is immutable")

    # ============================================================
    # Construction
    # ============================================================

    @classmethod
    def integer(cls, value: int) -> 'Number':
        """Exact integer; promoted to big_integer outside the 64-bit range."""
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"integer requires an int, got {type(value).__name__}")
        return cls(*_exact_kind(value))

    @classmethod
    def rational(cls, numerator: int, denominator: int = 1) -> 'Number':
        """Exact rational reduced to lowest terms.

        Raises:
            DivisionByZero: If denominator is zero
        """
        if denominator == 0:
            raise DivisionByZero(f"rational {numerator}/0 has a zero denominator")
        return cls(*_exact_kind(Fraction(numerator, denominator)))

    @classmethod
    def from_float(cls, value: float) -> 'Number':
        """Finite float.

        Raises:
            NumericOverflow: If value is infinite or NaN
        """
        value = float(value)
        if math.isinf(value) or math.isnan(value):
            raise NumericOverflow("float", f"non-finite float {value!r}")
        return cls(FLOAT, value)

    @classmethod
    def from_value(cls, value: Union['Number', NumericType]) -> 'Number':
        """Convert a Python int, Fraction or float (or a Number) to a Number."""
        if isinstance(value, Number):
            return value
        if isinstance(value, bool):
            raise TypeError("bool is not a number")
        if isinstance(value, int):
            return cls.integer(value)
        if isinstance(value, Fraction):
            return cls(*_exact_kind(value))
        if isinstance(value, float):
            return cls.from_float(value)
        raise TypeError(f"cannot convert {type(value).__name__} to Number")

    # ============================================================
    # Queries
    # ============================================================

    @property
    def is_float(self) -> bool:
        return self.kind == FLOAT

    @property
    def is_exact(self) -> bool:
        return self.kind != FLOAT

    @property
    def is_integer(self) -> bool:
        """True for exact integers of either width."""
        return self.kind == INTEGER or self.kind == BIG_INTEGER

    @property
    def is_rational(self) -> bool:
        """True for exact non-integer fractions."""
        return self.kind == RATIONAL

    @property
    def is_zero(self) -> bool:
        return self.value == 0

    @property
    def is_one(self) -> bool:
        return self.value == 1

    @property
    def is_negative_one(self) -> bool:
        return self.value == -1

    @property
    def is_negative(self) -> bool:
        return self.value < 0

    @property
    def is_positive(self) -> bool:
        return self.value > 0

    @property
    def numerator(self) -> int:
        if self.is_float:
            raise TypeError("float has no exact numerator")
        return Fraction(self.value).numerator

    @property
    def denominator(self) -> int:
        if self.is_float:
            raise TypeError("float has no exact denominator")
        return Fraction(self.value).denominator

    def to_float(self) -> float:
        """Convert to a Python float.

        Raises:
            NumericOverflow: If the exact value is too large for a float
        """
        if self.is_float:
            return self.value
        try:
            return float(self.value)
        except OverflowError:
            raise NumericOverflow("float conversion",
                                  "integer too large to convert to float") from None

    def to_exact(self) -> ExactType:
        """Exact Python value (int or Fraction); floats convert exactly."""
        if self.is_float:
            return Fraction(self.value)
        return self.value

    # ============================================================
    # Arithmetic
    # ============================================================

    @staticmethod
    def _checked_float(operation: str, compute: Callable[[], float]) -> 'Number':
        try:
            result = compute()
        except OverflowError:
            raise NumericOverflow(operation) from None
        if isinstance(result, complex) or math.isinf(result) or math.isnan(result):
            raise NumericOverflow(operation, f"{operation} produced a non-finite result")
        return Number(FLOAT, float(result))

    def _binary(self, other: 'Number', operation: str,
                op: Callable[[NumericType, NumericType], NumericType]) -> 'Number':
        other = Number.from_value(other)
        if self.is_float or other.is_float:
            a, b = self.to_float(), other.to_float()
            return Number._checked_float(operation, lambda: op(a, b))
        return Number(*_exact_kind(op(self.value, other.value)))

    def add(self, other: 'Number') -> 'Number':
        return self._binary(other, "addition", lambda a, b: a + b)

    def sub(self, other: 'Number') -> 'Number':
        return self._binary(other, "subtraction", lambda a, b: a - b)

    def mul(self, other: 'Number') -> 'Number':
        return self._binary(other, "multiplication", lambda a, b: a * b)

    def div(self, other: 'Number') -> 'Number':
        """Divide; exact operands give an exact reduced rational.

        Raises:
            DivisionByZero: If other is zero (exact or float)
        """
        other = Number.from_value(other)
        if other.is_zero:
            raise DivisionByZero(f"division of {self} by zero")
        if self.is_float or other.is_float:
            a, b = self.to_float(), other.to_float()
            return Number._checked_float("division", lambda: a / b)
        return Number(*_exact_kind(Fraction(self.value) / Fraction(other.value)))

    def neg(self) -> 'Number':
        if self.is_float:
            return Number(FLOAT, -self.value)
        return Number(*_exact_kind(-self.value))

    def abs(self) -> 'Number':
        return self.neg() if self.is_negative else self

    def pow(self, exponent: 'Number') -> 'Number':
        """
        Raise to a power.

        Integer exponents on exact bases are computed exactly (negative
        exponents give the exact reciprocal). Any other combination goes
        through float and is checked for overflow and NaN.

        Raises:
            Undefined: For 0^0
            DivisionByZero: For 0 raised to a negative power
            NumericOverflow: If the exact result would exceed MAX_POWER_BITS,
                or the float result is infinite or NaN
        """
        exponent = Number.from_value(exponent)
        if self.is_zero:
            if exponent.is_zero:
                raise Undefined("0^0")
            if exponent.is_negative:
                raise DivisionByZero(f"0 raised to negative power {exponent}")

        if exponent.is_integer and self.is_exact:
            n = exponent.value
            if self.is_zero or self.value in (1, -1):
                return Number(*_exact_kind(Fraction(self.value) ** n))
            base = Fraction(self.value)
            bits = max(base.numerator.bit_length(), base.denominator.bit_length())
            if bits * abs(n) > MAX_POWER_BITS:
                raise NumericOverflow("exponentiation",
                                      f"exact result of {self}^{n} is too large")
            return Number(*_exact_kind(base ** n))

        a, b = self.to_float(), exponent.to_float()
        return Number._checked_float("exponentiation", lambda: a ** b)

    def exact_root(self, k: int) -> Optional['Number']:
        """Exact k-th root if one exists among the rationals, otherwise None."""
        if self.is_float or k < 1:
            return None
        value = Fraction(self.value)
        sign = 1
        if value < 0:
            if k % 2 == 0:
                return None
            sign, value = -1, -value
        num = integer_root(value.numerator, k)
        den = integer_root(value.denominator, k)
        if num is None or den is None:
            return None
        return Number(*_exact_kind(Fraction(sign * num, den)))

    # ============================================================
    # Python protocol
    # ============================================================

    def __add__(self, other):
        if not isinstance(other, (Number, int, float, Fraction)):
            return NotImplemented
        return self.add(other)

    def __radd__(self, other):
        return Number.from_value(other).add(self)

    def __sub__(self, other):
        if not isinstance(other, (Number, int, float, Fraction)):
            return NotImplemented
        return self.sub(other)

    def __rsub__(self, other):
        return Number.from_value(other).sub(self)

    def __mul__(self, other):
        if not isinstance(other, (Number, int, float, Fraction)):
            return NotImplemented
        return self.mul(other)

    def __rmul__(self, other):
        return Number.from_value(other).mul(self)

    def __truediv__(self, other):
        if not isinstance(other, (Number, int, float, Fraction)):
            return NotImplemented
        return self.div(other)

    def __rtruediv__(self, other):
        return Number.from_value(other).div(self)

    def __pow__(self, other):
        if not isinstance(other, (Number, int, float, Fraction)):
            return NotImplemented
        return self.pow(other)

    def __neg__(self):
        return self.neg()

    def __abs__(self):
        return self.abs()

    def __eq__(self, other):
        if not isinstance(other, Number):
            return NotImplemented
        return self.is_float == other.is_float and self.value == other.value

    def __hash__(self):
        return hash((self.is_float, self.value))

    def __lt__(self, other):
        if not isinstance(other, Number):
            return NotImplemented
        return self.value < other.value

    def __le__(self, other):
        if not isinstance(other, Number):
            return NotImplemented
        return self.value <= other.value

    def __gt__(self, other):
        if not isinstance(other, Number):
            return NotImplemented
        return self.value > other.value

    def __ge__(self, other):
        if not isinstance(other, Number):
            return NotImplemented
        return self.value >= other.value

    def sort_key(self) -> Tuple:
        """Total order: by value, exact before float on ties."""
        return (self.value, self.is_float)

    def __str__(self) -> str:
        if self.kind == RATIONAL:
            return f"{self.value.numerator}/{self.value.denominator}"
        if self.is_float:
            return repr(self.value)
        return str(self.value)

    def __repr__(self) -> str:
        return f"Number({self})"

    # Bound last so the annotations above still refer to the builtin.
    float = from_float
