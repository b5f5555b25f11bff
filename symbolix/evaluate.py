"""
Domain-checked evaluation.

Unlike construction, evaluation can fail. evaluate() walks the tree
depth-first, left to right, and raises the first MathError it meets:

    evaluate(E("(sqrt -1)"))       # raises DomainError
    evaluate(E("(log 0)"))         # raises Pole
    evaluate(E("(log -2)"))        # raises BranchCut
    evaluate(E("(/ 1 0)"))         # raises DivisionByZero
    evaluate(E("(^ 0 0)"))         # raises Undefined
    evaluate(E("(sqrt x)"))        # => (sqrt x), symbolic arguments never fail

Domain checks only apply to arguments that are already concrete
(symbol-free). By default results stay exact; EvalContext(numeric=True)
turns numbers and constants into floats.
"""

import logging
from typing import Any, Mapping, Optional

from .errors import DivisionByZero, MathError, NonNumericalResult, Undefined
from .expression import (
    Add, Complex, Constant, Expression, Function, Matrix, Mul, Num, Pow, as_expression,
)
from .functions import REGISTRY, FunctionRegistry, approximate
from .number import Number
from .simplify import simplify

logger = logging.getLogger(__name__)


class EvalContext:
    """
    Options for evaluate().

    Args:
        variables: Mapping of symbol (Symbol, Sym or name) to value,
            substituted before evaluation
        numeric: If True, reduce numbers and constants to floats
        simplify_first: If True, bring the input to canonical form first
    """

    def __init__(self, variables: Optional[Mapping[Any, Any]] = None,
                 numeric: bool = False, simplify_first: bool = True):
        self.variables = dict(variables or {})
        self.numeric = numeric
        self.simplify_first = simplify_first

    @classmethod
    def numerical(cls, variables: Optional[Mapping[Any, Any]] = None) -> 'EvalContext':
        return cls(variables, numeric=True)

    def with_variables(self, **variables) -> 'EvalContext':
        """Copy with additional variable bindings."""
        merged = dict(self.variables)
        merged.update(variables)
        return EvalContext(merged, self.numeric, self.simplify_first)

    def __repr__(self) -> str:
        return (f"EvalContext(variables={self.variables!r}, numeric={self.numeric}, "
                f"simplify_first={self.simplify_first})")


class _Evaluator:
    """Recursive evaluator bound to one context and registry."""

    def __init__(self, context: EvalContext, registry: FunctionRegistry):
        self.context = context
        self.registry = registry

    def evaluate(self, expr: Expression) -> Expression:
        if isinstance(expr, Num):
            if self.context.numeric and expr.number.is_exact:
                return Num(Number.from_float(expr.number.to_float()))
            return expr
        if isinstance(expr, Constant):
            if self.context.numeric:
                return Num(Number.from_float(expr.value))
            return expr
        if isinstance(expr, Add):
            return self._sum([self.evaluate(t) for t in expr.terms])
        if isinstance(expr, Mul):
            return self._product([self.evaluate(f) for f in expr.factors])
        if isinstance(expr, Pow):
            base = self.evaluate(expr.base)
            exp = self.evaluate(expr.exp)
            return self._power(base, exp)
        if isinstance(expr, Function):
            return self._function(expr.name, [self.evaluate(a) for a in expr.args])
        if isinstance(expr, Complex):
            return Expression.complex(self.evaluate(expr.real), self.evaluate(expr.imag))
        if isinstance(expr, Matrix):
            return expr.rebuild([self.evaluate(e) for e in expr.children])
        # Sym and Wild
        return expr

    def _sum(self, terms):
        total = None
        others = []
        for term in terms:
            if isinstance(term, Num):
                total = term.number if total is None else total.add(term.number)
            else:
                others.append(term)
        if total is not None:
            others.insert(0, Num(total))
        return Expression.add(others)

    def _product(self, factors):
        total = None
        others = []
        for factor in factors:
            if isinstance(factor, Num):
                total = factor.number if total is None else total.mul(factor.number)
            else:
                others.append(factor)
        if total is not None:
            others.insert(0, Num(total))
        return Expression.mul(others)

    def _power(self, base: Expression, exp: Expression) -> Expression:
        if base.is_zero() and exp.is_concrete():
            if isinstance(exp, Num) and exp.number.is_exact:
                value = exp.number.value
            else:
                value = approximate(exp, self.registry)
            if value is not None and value == 0:
                raise Undefined(f"(^ {base} {exp})")
            if value is not None and value < 0:
                raise DivisionByZero(f"0 raised to negative power {exp}")
        if isinstance(base, Num) and isinstance(exp, Num):
            b, e = base.number, exp.number
            if e.is_integer or b.is_float or e.is_float:
                return Num(b.pow(e))
        return Expression.pow(base, exp)

    def _function(self, name, args):
        props = self.registry.get(name)
        if props is None or not props.accepts(len(args)):
            return Expression.function(name, args, self.registry)
        if not all(a.is_concrete() for a in args):
            return Expression.function(name, args, self.registry)

        try:
            props.check_domain(name, args, self.registry)
        except MathError as e:
            logger.debug("domain check failed for %s: %s", name, e)
            raise

        special = props.special_value(args)
        if special is not None:
            return self.evaluate(special)
        if self.context.numeric or any(isinstance(a, Num) and a.number.is_float for a in args):
            return Num(props.evaluate_numeric(name, args, self.registry))
        return Expression.function(name, args, self.registry)


def evaluate(expr: Expression, context: Optional[EvalContext] = None,
             registry: Optional[FunctionRegistry] = None) -> Expression:
    """
    Evaluate an expression with domain checking.

    Args:
        expr: Expression to evaluate
        context: Evaluation options (defaults to exact evaluation, no variables)
        registry: Function registry (defaults to the built-in one)

    Returns:
        The reduced expression; a Num when everything was concrete and
        reducible, otherwise a (partially) symbolic expression.

    Raises:
        DomainError, Pole, BranchCut, DivisionByZero, Undefined,
        NumericOverflow: for the first violation found, left to right
    """
    context = context if context is not None else EvalContext()
    registry = registry if registry is not None else REGISTRY
    if context.variables:
        expr = expr.substitute(context.variables)
    if context.simplify_first:
        expr = simplify(expr)
    return _Evaluator(context, registry).evaluate(expr)


def evaluate_with_context(expr: Expression, context: EvalContext,
                          registry: Optional[FunctionRegistry] = None) -> Expression:
    """Evaluate under an explicit context."""
    return evaluate(expr, context, registry)


def evaluate_to_float(expr: Any, variables: Optional[Mapping[Any, Any]] = None,
                      registry: Optional[FunctionRegistry] = None) -> float:
    """
    Evaluate numerically to a Python float.

    Raises:
        NonNumericalResult: If the result still contains symbols or
            unevaluated functions
        MathError: Any domain error raised during evaluation

    Example:
        evaluate_to_float(E("(* 2 pi)"))  # => 6.283185307179586
    """
    expr = as_expression(expr)
    result = evaluate(expr, EvalContext.numerical(variables), registry)
    if isinstance(result, Num):
        return result.number.to_float()
    raise NonNumericalResult(expr)
