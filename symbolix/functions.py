"""
Function properties registry.

Every named function known to symbolix is described by a
FunctionProperties entry:

    numeric   float implementation, used for float arguments and in
              numeric evaluation
    special   exact special values, e.g. sin(pi/6) = 1/2, log(1) = 0
    domain    predicate that raises a MathError for a concrete argument
              outside the real domain, e.g. sqrt(-1), log(0), tan(pi/2)

The default registry (REGISTRY) is populated at import time. A different
registry can be passed to Expression.function and evaluate:

    from symbolix.functions import FunctionRegistry, unary, REGISTRY

    registry = REGISTRY.copy()
    registry.register(unary("sigmoid", lambda x: 1 / (1 + math.exp(-x))))
    Expression.function("sigmoid", [0.0], registry=registry)  # => 0.5
"""

import logging
import math
import threading
from fractions import Fraction
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .errors import BranchCut, DomainError, MathError, NumericOverflow, Pole
from .expression import Add, Constant, Expression, Function, Mul, Num, Pow
from .number import Number

logger = logging.getLogger(__name__)

# Distance from a pole under which a float argument counts as on the pole.
POLE_TOLERANCE = 1e-10

SpecialHandler = Callable[[Sequence[Expression]], Optional[Expression]]
DomainCheck = Callable[[str, Sequence[Expression], 'FunctionRegistry'], None]


class FunctionProperties:
    """Numeric, exact and domain behavior of one named function."""

    __slots__ = ('name', 'arity', 'numeric', 'special', 'domain')

    def __init__(self, name: str, numeric: Optional[Callable[..., float]] = None,
                 special: Optional[SpecialHandler] = None,
                 domain: Optional[DomainCheck] = None, arity: int = 1):
        self.name = name
        self.arity = arity
        self.numeric = numeric
        self.special = special
        self.domain = domain

    def accepts(self, nargs: int) -> bool:
        return nargs == self.arity

    def check_domain(self, name: str, args: Sequence[Expression],
                     registry: 'FunctionRegistry') -> None:
        """Raise a MathError if the concrete arguments are outside the domain."""
        if self.domain is not None:
            self.domain(name, args, registry)

    def special_value(self, args: Sequence[Expression]) -> Optional[Expression]:
        if self.special is None:
            return None
        return self.special(args)

    def evaluate_numeric(self, name: str, args: Sequence[Expression],
                         registry: 'FunctionRegistry') -> Number:
        """
        Float value for concrete arguments.

        Raises:
            DomainError: If the float implementation rejects the input
            NumericOverflow: If the result is infinite or NaN
        """
        values = [approximate(a, registry) for a in args]
        if self.numeric is None or any(v is None for v in values):
            raise DomainError(name, args, "has no numeric value for these arguments")
        try:
            result = self.numeric(*values)
        except ValueError:
            raise DomainError(name, values[0] if len(values) == 1 else values,
                              "is undefined for this input") from None
        except ZeroDivisionError:
            raise Pole(name, values[0] if len(values) == 1 else values) from None
        except OverflowError:
            raise NumericOverflow(name) from None
        return Number.from_float(result)

    def __repr__(self) -> str:
        return f"FunctionProperties({self.name!r}, arity={self.arity})"


class FunctionRegistry:
    """
    Thread-safe name -> FunctionProperties table.

    Registration replaces any existing entry of the same name.
    """

    def __init__(self, functions: Iterable[FunctionProperties] = (),
                 aliases: Optional[Dict[str, str]] = None):
        self._lock = threading.Lock()
        self._functions: Dict[str, FunctionProperties] = {}
        for props in functions:
            self._functions[props.name] = props
        for alias, target in (aliases or {}).items():
            self._functions[alias] = self._functions[target]

    def register(self, props: FunctionProperties, *aliases: str) -> 'FunctionRegistry':
        """Add a function under its name and any aliases. Returns self for chaining."""
        with self._lock:
            self._functions[props.name] = props
            for alias in aliases:
                self._functions[alias] = props
        return self

    def get(self, name: str) -> Optional[FunctionProperties]:
        with self._lock:
            return self._functions.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._functions)

    def copy(self) -> 'FunctionRegistry':
        with self._lock:
            clone = FunctionRegistry()
            clone._functions = dict(self._functions)
        return clone

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._functions

    def __len__(self) -> int:
        with self._lock:
            return len(self._functions)

    def __repr__(self) -> str:
        return f"FunctionRegistry({len(self)} functions)"


# ============================================================
# Concrete values
# ============================================================

def approximate(expr: Expression, registry: Optional[FunctionRegistry] = None) -> Optional[float]:
    """
    Float value of a symbol-free expression, or None if it has none.

    Handles numbers, constants, sums, products, real powers and registered
    functions. Anything symbolic, complex, or failing numerically gives None.
    """
    registry = registry if registry is not None else REGISTRY
    if isinstance(expr, Num):
        try:
            return expr.number.to_float()
        except MathError:
            return None
    if isinstance(expr, Constant):
        return expr.value
    if isinstance(expr, (Add, Mul)):
        values = [approximate(c, registry) for c in expr.children]
        if any(v is None for v in values):
            return None
        result = math.fsum(values) if isinstance(expr, Add) else math.prod(values)
        return result if math.isfinite(result) else None
    if isinstance(expr, Pow):
        base, exp = approximate(expr.base, registry), approximate(expr.exp, registry)
        if base is None or exp is None:
            return None
        try:
            result = base ** exp
        except (OverflowError, ZeroDivisionError):
            return None
        if isinstance(result, complex) or not math.isfinite(result):
            return None
        return result
    if isinstance(expr, Function):
        props = registry.get(expr.name)
        if props is None or props.numeric is None or not props.accepts(len(expr.args)):
            return None
        values = [approximate(a, registry) for a in expr.args]
        if any(v is None for v in values):
            return None
        try:
            result = props.numeric(*values)
        except (ValueError, OverflowError, ZeroDivisionError):
            return None
        return result if math.isfinite(result) else None
    return None


def pi_ratio(expr: Expression) -> Optional[Fraction]:
    """Exact q with expr == q*pi, for 0, pi and (* q pi); otherwise None."""
    if isinstance(expr, Num):
        return Fraction(0) if expr.number.is_exact and expr.number.is_zero else None
    if isinstance(expr, Constant) and expr.name == "pi":
        return Fraction(1)
    if (isinstance(expr, Mul) and len(expr.factors) == 2
            and isinstance(expr.factors[0], Num) and expr.factors[0].number.is_exact
            and expr.factors[1] == Constant("pi")):
        return Fraction(expr.factors[0].number.value)
    return None


def _exact(expr: Expression) -> Optional[Number]:
    if isinstance(expr, Num) and expr.number.is_exact:
        return expr.number
    return None


def _pi_times(q: Fraction) -> Expression:
    return Expression.mul([Expression.number(q), Constant("pi")])


def _on_pi_grid(arg: Expression, offset: Fraction, registry: FunctionRegistry) -> bool:
    """True if arg is (k + offset)*pi for some integer k."""
    ratio = pi_ratio(arg)
    if ratio is not None:
        return (ratio - offset).denominator == 1
    value = approximate(arg, registry)
    if value is None:
        return False
    k = round(value / math.pi - float(offset))
    return abs(value - (k + float(offset)) * math.pi) < POLE_TOLERANCE


# ============================================================
# Domain checks
# ============================================================

def _real_value(arg: Expression, registry: FunctionRegistry):
    """Exact value of an exact number, else its float approximation."""
    number = _exact(arg)
    if number is not None:
        return number.value
    return approximate(arg, registry)


def _nonnegative(name, args, registry):
    value = _real_value(args[0], registry)
    if value is not None and value < 0:
        raise DomainError(name, args[0], "requires non-negative input in the real domain")


def _positive_log(name, args, registry):
    value = _real_value(args[0], registry)
    if value is None:
        return
    if value == 0:
        raise Pole(name, args[0])
    if value < 0:
        raise BranchCut(name, args[0])


def _half_pi_poles(name, args, registry):
    if _on_pi_grid(args[0], Fraction(1, 2), registry):
        raise Pole(name, args[0])


def _pi_poles(name, args, registry):
    if _on_pi_grid(args[0], Fraction(0), registry):
        raise Pole(name, args[0])


def _unit_interval(name, args, registry):
    value = _real_value(args[0], registry)
    if value is not None and not -1 <= value <= 1:
        raise DomainError(name, args[0], "requires input in [-1, 1]")


# ============================================================
# Exact special values
# ============================================================

def _half_root(n: int) -> Expression:
    """sqrt(n)/2 as (* 1/2 (^ n 1/2))."""
    return Expression.mul([Expression.rational(1, 2),
                           Expression.pow(Expression.integer(n), Expression.rational(1, 2))])


# sin(k*pi/12) for k in the first quadrant, where the value is a simple radical
_SIN_TWELFTHS: Dict[int, Callable[[], Expression]] = {
    0: lambda: Expression.integer(0),
    2: lambda: Expression.rational(1, 2),
    3: lambda: _half_root(2),
    4: lambda: _half_root(3),
    6: lambda: Expression.integer(1),
}


def _sin_of_ratio(ratio: Fraction) -> Optional[Expression]:
    twelfths = ratio * 12
    if twelfths.denominator != 1:
        return None
    k = twelfths.numerator % 24
    negate = k >= 12
    if negate:
        k -= 12
    if k > 6:
        k = 12 - k
    builder = _SIN_TWELFTHS.get(k)
    if builder is None:
        return None
    value = builder()
    return Expression.neg(value) if negate else value


def in_domain(func: Function, registry: Optional[FunctionRegistry] = None) -> bool:
    """
    False if func has concrete arguments its domain check rejects.

    An unevaluated asin(2) or sqrt(-4) must survive construction so that
    evaluate() can report it; identities that would drop such a node
    consult this first.
    """
    if not all(a.is_concrete() for a in func.args):
        return True
    registry = registry if registry is not None else REGISTRY
    props = registry.get(func.name)
    if props is None or not props.accepts(len(func.args)):
        return True
    try:
        props.check_domain(func.name, func.args, registry)
    except MathError:
        return False
    return True


def _inverse_of(arg: Expression, *names: str) -> Optional[Expression]:
    if (isinstance(arg, Function) and arg.name in names and len(arg.args) == 1
            and in_domain(arg)):
        return arg.args[0]
    return None


def _sin_special(args):
    inner = _inverse_of(args[0], "asin", "arcsin")
    if inner is not None:
        return inner
    ratio = pi_ratio(args[0])
    return None if ratio is None else _sin_of_ratio(ratio)


def _cos_special(args):
    inner = _inverse_of(args[0], "acos", "arccos")
    if inner is not None:
        return inner
    ratio = pi_ratio(args[0])
    return None if ratio is None else _sin_of_ratio(ratio + Fraction(1, 2))


def _tan_special(args):
    inner = _inverse_of(args[0], "atan", "arctan")
    if inner is not None:
        return inner
    ratio = pi_ratio(args[0])
    if ratio is None:
        return None
    s, c = _sin_of_ratio(ratio), _sin_of_ratio(ratio + Fraction(1, 2))
    if s is None or c is None or c.is_zero():
        return None
    return Expression.div(s, c)


def _reciprocal_special(of: Callable):
    def handler(args):
        value = of(args)
        if value is None or value.is_zero():
            return None
        return Expression.div(Expression.integer(1), value)
    return handler


def _cot_special(args):
    ratio = pi_ratio(args[0])
    if ratio is None:
        return None
    s, c = _sin_of_ratio(ratio), _sin_of_ratio(ratio + Fraction(1, 2))
    if s is None or c is None or s.is_zero():
        return None
    return Expression.div(c, s)


def _table_special(table: Dict[Fraction, Callable[[], Expression]]):
    def handler(args):
        value = _exact(args[0])
        if value is None:
            return None
        builder = table.get(Fraction(value.value))
        return builder() if builder else None
    return handler


_asin_special = _table_special({
    Fraction(0): lambda: Expression.integer(0),
    Fraction(1, 2): lambda: _pi_times(Fraction(1, 6)),
    Fraction(-1, 2): lambda: _pi_times(Fraction(-1, 6)),
    Fraction(1): lambda: _pi_times(Fraction(1, 2)),
    Fraction(-1): lambda: _pi_times(Fraction(-1, 2)),
})

_acos_special = _table_special({
    Fraction(1): lambda: Expression.integer(0),
    Fraction(1, 2): lambda: _pi_times(Fraction(1, 3)),
    Fraction(0): lambda: _pi_times(Fraction(1, 2)),
    Fraction(-1, 2): lambda: _pi_times(Fraction(2, 3)),
    Fraction(-1): lambda: Constant("pi"),
})

_atan_special = _table_special({
    Fraction(0): lambda: Expression.integer(0),
    Fraction(1): lambda: _pi_times(Fraction(1, 4)),
    Fraction(-1): lambda: _pi_times(Fraction(-1, 4)),
})


def _at_zero(value: int):
    """Special value only at exact zero: sinh(0) = 0, cosh(0) = 1, ..."""
    def handler(args):
        number = _exact(args[0])
        if number is not None and number.is_zero:
            return Expression.integer(value)
        return None
    return handler


def _exp_special(args):
    inner = _inverse_of(args[0], "log", "ln")
    if inner is not None:
        return inner
    number = _exact(args[0])
    if number is not None and number.is_zero:
        return Expression.integer(1)
    if number is not None and number.is_one:
        return Constant("e")
    return None


def _log_special(args):
    arg = args[0]
    inner = _inverse_of(arg, "exp")
    if inner is not None:
        return inner
    if arg == Constant("e"):
        return Expression.integer(1)
    if isinstance(arg, Pow) and arg.base == Constant("e"):
        return arg.exp
    number = _exact(arg)
    if number is not None and number.is_one:
        return Expression.integer(0)
    return None


def _exact_log(base: int):
    """log_base(x) for x an exact power of base, e.g. log10(1000) = 3, log2(1/8) = -3."""
    def handler(args):
        number = _exact(args[0])
        if number is None or not number.is_positive:
            return None
        value = Fraction(number.value)
        sign = 1
        if value.numerator == 1 and value.denominator != 1:
            sign, value = -1, Fraction(value.denominator)
        if value.denominator != 1:
            return None
        n, k = value.numerator, 0
        while n % base == 0:
            n //= base
            k += 1
        return Expression.integer(sign * k) if n == 1 else None
    return handler


def _sqrt_special(args):
    number = _exact(args[0])
    if number is None or number.is_negative:
        return None
    root = number.exact_root(2)
    return Num(root) if root is not None else None


def _abs_special(args):
    arg = args[0]
    if isinstance(arg, Num):
        return Num(arg.number.abs())
    if isinstance(arg, Function) and arg.name == "abs":
        return arg
    return None


def _rounding(op: Callable[[Fraction], int]):
    def handler(args):
        number = _exact(args[0])
        if number is None:
            return None
        return Expression.integer(op(Fraction(number.value)))
    return handler


def _sign_special(args):
    number = _exact(args[0])
    if number is None:
        return None
    return Expression.integer((number.value > 0) - (number.value < 0))


# ============================================================
# Default registry
# ============================================================

def unary(name: str, numeric: Callable[[float], float],
          special: Optional[SpecialHandler] = None,
          domain: Optional[DomainCheck] = None) -> FunctionProperties:
    """Properties for a one-argument function."""
    return FunctionProperties(name, numeric=numeric, special=special, domain=domain, arity=1)


def _sign(x: float) -> float:
    return math.copysign(1.0, x) if x != 0 else 0.0


MATH_FUNCTIONS: List[FunctionProperties] = [
    unary("sin", math.sin, _sin_special),
    unary("cos", math.cos, _cos_special),
    unary("tan", math.tan, _tan_special, _half_pi_poles),
    unary("sec", lambda x: 1 / math.cos(x), _reciprocal_special(_cos_special), _half_pi_poles),
    unary("csc", lambda x: 1 / math.sin(x), _reciprocal_special(_sin_special), _pi_poles),
    unary("cot", lambda x: math.cos(x) / math.sin(x), _cot_special, _pi_poles),
    unary("asin", math.asin, _asin_special, _unit_interval),
    unary("acos", math.acos, _acos_special, _unit_interval),
    unary("atan", math.atan, _atan_special),
    unary("sinh", math.sinh, _at_zero(0)),
    unary("cosh", math.cosh, _at_zero(1)),
    unary("tanh", math.tanh, _at_zero(0)),
    unary("exp", math.exp, _exp_special),
    unary("log", math.log, _log_special, _positive_log),
    unary("log10", math.log10, _exact_log(10), _positive_log),
    unary("log2", math.log2, _exact_log(2), _positive_log),
    unary("sqrt", math.sqrt, _sqrt_special, _nonnegative),
    unary("abs", math.fabs, _abs_special),
    unary("floor", lambda x: float(math.floor(x)), _rounding(math.floor)),
    unary("ceil", lambda x: float(math.ceil(x)), _rounding(math.ceil)),
    unary("sign", _sign, _sign_special),
]

ALIASES: Dict[str, str] = {
    "ln": "log",
    "arcsin": "asin",
    "arccos": "acos",
    "arctan": "atan",
}

REGISTRY = FunctionRegistry(MATH_FUNCTIONS, ALIASES)


def register_function(props: FunctionProperties, *aliases: str) -> FunctionProperties:
    """Register a function in the default registry."""
    REGISTRY.register(props, *aliases)
    return props


# ============================================================
# Canonical function construction
# ============================================================

def apply_function(name: str, args: List[Expression],
                   registry: Optional[FunctionRegistry] = None) -> Expression:
    """
    Canonical function application; never raises.

    With all-concrete arguments inside the domain, an exact special value
    is returned if one is known, and a float argument triggers float
    evaluation. Symbolic arguments only get exact identities such as
    log(exp(x)) = x. Everything else, including arguments outside the
    domain, stays an unevaluated Function node for evaluate() to judge.
    """
    registry = registry if registry is not None else REGISTRY
    props = registry.get(name)
    if props is None or not props.accepts(len(args)):
        return Function(name, args)
    # aliases such as ln share one canonical node with their target
    name = props.name
    node = Function(name, args)

    if all(a.is_concrete() for a in args):
        try:
            props.check_domain(name, args, registry)
        except MathError as e:
            logger.debug("leaving %s unevaluated: %s", node, e)
            return node
        special = props.special_value(args)
        if special is not None:
            return special
        if any(isinstance(a, Num) and a.number.is_float for a in args):
            try:
                return Num(props.evaluate_numeric(name, args, registry))
            except MathError as e:
                logger.debug("leaving %s unevaluated: %s", node, e)
        return node

    special = props.special_value(args)
    return special if special is not None else node
