"""
Simplification engine.

These functions implement the canonical constructors for Add, Mul and Pow,
and simplify() re-applies them bottom-up to an arbitrary tree (for example
one produced by parse_sexpr or by rule instantiation).

All of them are total: a numeric step that fails (float overflow, an
exact power that would be too large, 0^0, 0^-1) is deferred by leaving
the offending operands unevaluated, to be reported by evaluate().
"""

import logging
from typing import Dict, List, Sequence, Tuple

from .errors import MathError
from .expression import Add, Expression, Function, Mul, Num, Pow
from .number import Number

logger = logging.getLogger(__name__)

ZERO = Num(Number.integer(0))
ONE = Num(Number.integer(1))


# ============================================================
# Helpers
# ============================================================

def _flatten(operands: Sequence[Expression], kind: type) -> List[Expression]:
    """Splice nested nodes of the same kind into one operand list."""
    flat = []
    for op in operands:
        if isinstance(op, kind):
            flat.extend(_flatten(op.children, kind))
        else:
            flat.append(op)
    return flat


def _fold(numbers: List[Number], op_name: str) -> List[Number]:
    """
    Combine numbers with Number.add or Number.mul.

    Normally returns a single Number. If a step raises, the failing operand
    is kept separate and folding continues with the rest.
    """
    if not numbers:
        return []
    kept: List[Number] = []
    acc = numbers[0]
    for n in numbers[1:]:
        try:
            acc = getattr(acc, op_name)(n)
        except MathError as e:
            logger.debug("deferring numeric %s of %s and %s: %s", op_name, acc, n, e)
            kept.append(acc)
            acc = n
    kept.append(acc)
    return kept


def _is_exact(expr: Expression, value: int) -> bool:
    return (isinstance(expr, Num) and expr.number.is_exact
            and expr.number.value == value)


def split_coefficient(term: Expression) -> Tuple[Number, Expression]:
    """
    Split a canonical non-numeric term into (coefficient, base).

    Examples:
        (* 3 x y) -> (3, (* x y))
        (^ x 2)   -> (1, (^ x 2))
    """
    if isinstance(term, Mul) and isinstance(term.factors[0], Num):
        rest = term.factors[1:]
        base = rest[0] if len(rest) == 1 else Mul(rest)
        return term.factors[0].number, base
    return Number.integer(1), term


def split_power(factor: Expression) -> Tuple[Expression, Expression]:
    """Split a canonical factor into (base, exponent)."""
    if isinstance(factor, Pow):
        return factor.base, factor.exp
    return factor, ONE


def _with_coefficient(coeff: Number, base: Expression) -> Expression:
    if coeff.is_exact and coeff.is_one:
        return base
    if isinstance(base, Mul):
        return Mul((Num(coeff),) + base.factors)
    return Mul((Num(coeff), base))


def _add_order(term: Expression) -> Tuple:
    coeff, base = split_coefficient(term)
    return (base.sort_key(), coeff.sort_key())


def _mul_order(factor: Expression) -> Tuple:
    base, exp = split_power(factor)
    return (base.sort_key(), exp.sort_key())


def _is_zero_division(factor: Expression) -> bool:
    """0^n with n <= 0: an unevaluated division by zero or 0^0."""
    return (isinstance(factor, Pow) and factor.base.is_zero()
            and isinstance(factor.exp, Num) and not factor.exp.number.is_positive)


# ============================================================
# Addition
# ============================================================

def simplify_addition(terms: Sequence[Expression]) -> Expression:
    """
    Canonical sum of canonical terms.

    Flattens nested sums, folds numbers into one, collects like terms by
    coefficient (2x + 3x -> 5x), drops exact zeros, sorts, and collapses
    to 0 or the single remaining term.
    """
    numbers: List[Number] = []
    collected: Dict[Expression, List[Number]] = {}
    for term in _flatten(terms, Add):
        if isinstance(term, Num):
            numbers.append(term.number)
            continue
        coeff, base = split_coefficient(term)
        collected.setdefault(base, []).append(coeff)

    result: List[Expression] = []
    for base, coeffs in collected.items():
        for coeff in _fold(coeffs, "add"):
            if coeff.is_exact and coeff.is_zero:
                continue
            result.append(_with_coefficient(coeff, base))
    result.sort(key=_add_order)

    constants = [Num(n) for n in _fold(numbers, "add")
                 if not (n.is_exact and n.is_zero)]
    result = constants + result

    if not result:
        return ZERO
    if len(result) == 1:
        return result[0]
    return Add(result)


# ============================================================
# Multiplication
# ============================================================

def simplify_multiplication(factors: Sequence[Expression]) -> Expression:
    """
    Canonical product of canonical factors.

    Flattens nested products, folds numbers into one coefficient, returns 0
    for an exact zero factor (unless another factor is an unevaluated
    division by zero), collects like bases (x * x^2 -> x^3), drops exact
    ones, sorts, and collapses to 1 or the single remaining factor.
    """
    flat = _flatten(factors, Mul)
    numbers = [f.number for f in flat if isinstance(f, Num)]
    others = [f for f in flat if not isinstance(f, Num)]

    if any(n.is_exact and n.is_zero for n in numbers):
        if not any(_is_zero_division(f) for f in others):
            return ZERO

    coefficients = _fold(numbers, "mul")

    collected: Dict[Expression, List[Expression]] = {}
    originals: Dict[Expression, Expression] = {}
    for factor in others:
        base, exp = split_power(factor)
        collected.setdefault(base, []).append(exp)
        originals.setdefault(base, factor)

    result: List[Expression] = []
    merged = False
    for base, exps in collected.items():
        if len(exps) == 1:
            result.append(originals[base])
            continue
        combined = simplify_power(base, simplify_addition(exps))
        if isinstance(combined, (Num, Mul)):
            merged = True
        result.append(combined)

    if merged:
        # A merge produced a number or a product (x^(1/2) * x^(1/2) -> x);
        # fold it back in with the coefficients.
        return simplify_multiplication([Num(c) for c in coefficients] + result)

    result = [f for f in result if not _is_exact(f, 1)]
    result.sort(key=_mul_order)
    constants = [Num(c) for c in coefficients if not (c.is_exact and c.is_one)]
    result = constants + result

    if not result:
        return ONE
    if len(result) == 1:
        return result[0]
    return Mul(result)


# ============================================================
# Power
# ============================================================

def _numeric_power(base: Number, exp: Number) -> Expression:
    """Power of two numbers, or an unevaluated Pow if not exactly representable."""
    node = Pow(Num(base), Num(exp))
    if base.is_zero:
        if exp.is_positive:
            return Num(base.pow(exp)) if (base.is_float or exp.is_float) else ZERO
        return node
    if exp.is_integer or base.is_float or exp.is_float:
        try:
            return Num(base.pow(exp))
        except MathError as e:
            logger.debug("leaving %s^%s unevaluated: %s", base, exp, e)
            return node
    # exact base, exact non-integer exponent: p/q power via an exact q-th root
    root = base.exact_root(exp.denominator)
    if root is None:
        return node
    try:
        return Num(root.pow(Number.integer(exp.numerator)))
    except MathError as e:
        logger.debug("leaving %s^%s unevaluated: %s", base, exp, e)
        return node


def simplify_power(base: Expression, exp: Expression) -> Expression:
    """
    Canonical power of canonical operands.

    Rules, in order:
        x^0 -> 1          (0^0 is left unevaluated)
        x^1 -> x
        1^x -> 1
        number^number     evaluated when exact or float, else left as Pow
        (x^a)^b -> x^(a*b)  unless x^a is a division by zero
        (a*b)^n -> a^n * b^n    for integer n
        sqrt(x)^2 -> x      unless x is concrete and negative
    """
    if _is_exact(exp, 0):
        if base.is_zero():
            return Pow(base, exp)
        return ONE
    if _is_exact(exp, 1):
        return base
    if _is_exact(base, 1):
        return ONE

    if isinstance(base, Num) and isinstance(exp, Num):
        return _numeric_power(base.number, exp.number)

    if isinstance(base, Pow) and not _is_zero_division(base):
        return simplify_power(base.base, simplify_multiplication([base.exp, exp]))

    if isinstance(base, Mul) and isinstance(exp, Num) and exp.number.is_integer:
        return simplify_multiplication([simplify_power(f, exp) for f in base.factors])

    from .functions import in_domain

    if (isinstance(base, Function) and base.name == "sqrt" and len(base.args) == 1
            and isinstance(exp, Num) and exp.number.is_integer
            and exp.number.value % 2 == 0
            and in_domain(base)):
        return simplify_power(base.args[0], Num(Number.integer(exp.number.value // 2)))

    return Pow(base, exp)


# ============================================================
# Whole-tree simplification
# ============================================================

def simplify(expr: Expression) -> Expression:
    """
    Bring an arbitrary expression tree into canonical form.

    Rebuilds every node bottom-up through the canonical constructors.
    Total and idempotent: simplify(simplify(e)) == simplify(e).

    Example:
        simplify(parse_sexpr("(+ x (* 2 x) 0)"))  # => (* 3 x)
    """
    children = expr.children
    if not children:
        return expr
    return expr.rebuild([simplify(child) for child in children])
