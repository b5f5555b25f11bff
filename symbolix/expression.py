"""
Expression trees for symbolix.

An expression is an immutable tree of nodes:

    Num(Number)               numeric leaf
    Sym(Symbol)               variable leaf
    Constant(name)            pi, e, golden_ratio, euler_gamma
    Add(terms)                n-ary sum
    Mul(factors)              n-ary product
    Pow(base, exp)            power
    Function(name, args)      named function application
    Complex(real, imag)       real + imag*i
    Matrix(rows)              rectangular matrix of expressions
    Wild(name, ...)           pattern placeholder for the rule rewriter

Calling a node class directly builds the node as given, with no
normalization; that is what deserialization and pattern instantiation use.
Everything else should go through the Expression constructors, which
always return canonical form and never raise:

    x, y = Expression.symbol("x"), Expression.symbol("y")
    Expression.add([x, y, x])              # => (+ (* 2 x) y)
    Expression.mul([x, x])                 # => (^ x 2)
    Expression.pow(Expression.pow(x, 2), 3)  # => (^ x 6)
    2 * x + 3 * x - 5 * x                  # => 0

Canonical Add/Mul nodes hold at least two operands, no nested node of the
same kind, at most one numeric operand (placed first) and the remaining
operands in sort_key() order.
"""

import math
from fractions import Fraction
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from .number import Number
from .symbol import Symbol

# Numeric values of the named constants.
CONSTANTS: Dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
    "golden_ratio": (1 + math.sqrt(5)) / 2,
    "euler_gamma": 0.5772156649015329,
}

# Ranks used by sort_key(); lower ranks sort first.
RANK_NUMBER = 0
RANK_CONSTANT = 1
RANK_SYMBOL = 2
RANK_MUL = 4
RANK_ADD = 5
RANK_FUNCTION = 6
RANK_COMPLEX = 7
RANK_MATRIX = 8
RANK_WILD = 9

ExprLike = Union['Expression', Number, Symbol, int, float, Fraction, str]


def as_expression(value: ExprLike) -> 'Expression':
    """
    Convert a Python value to an Expression.

    Numbers (int, Fraction, float, Number) become Num, Symbol and str
    become Sym. Expressions are returned unchanged.
    """
    if isinstance(value, Expression):
        return value
    if isinstance(value, Symbol):
        return Sym(value)
    if isinstance(value, str):
        return Sym(Symbol(value))
    if isinstance(value, (Number, int, float, Fraction)) and not isinstance(value, bool):
        return Num(Number.from_value(value))
    raise TypeError(f"cannot convert {type(value).__name__} to Expression")


class Expression:
    """
    Base class for all expression nodes.

    Nodes compare structurally and hash consistently with equality. Since
    canonical construction sorts commutative operands, structurally equal
    canonical expressions are also mathematically equal.
    """

    __slots__ = ('_hash',)

    head = None

    def _finish(self):
        object.__setattr__(self, '_hash', hash((type(self).__name__,) + self._key()))

    def _key(self) -> Tuple:
        raise NotImplementedError

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __eq__(self, other):
        if not isinstance(other, Expression):
            return NotImplemented
        if self is other:
            return True
        return (type(self) is type(other) and self._hash == other._hash
                and self._key() == other._key())

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return self._hash

    def __lt__(self, other):
        if not isinstance(other, Expression):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        from .sexpr import format_sexpr
        return format_sexpr(self)

    def __repr__(self) -> str:
        return f'E("{self}")'

    # ============================================================
    # Structure
    # ============================================================

    @property
    def children(self) -> Tuple['Expression', ...]:
        """Child expressions in deterministic left-to-right order."""
        return ()

    def with_children(self, children: Iterable['Expression']) -> 'Expression':
        """Same node kind with new children, without normalization."""
        return self

    def rebuild(self, children: Iterable['Expression']) -> 'Expression':
        """Same node kind with new children, through the canonical constructors."""
        return self

    def sort_key(self) -> Tuple:
        """Key of the fixed total order used for canonical operand order."""
        raise NotImplementedError

    # ============================================================
    # Queries
    # ============================================================

    def is_zero(self) -> bool:
        return False

    def is_one(self) -> bool:
        return False

    def is_number(self) -> bool:
        return False

    def is_symbol(self) -> bool:
        return False

    def as_number(self) -> Optional[Number]:
        return None

    def as_symbol(self) -> Optional[Symbol]:
        return None

    def free_symbols(self) -> FrozenSet[Symbol]:
        """All symbols appearing anywhere in the expression."""
        found = set()
        stack = [self]
        while stack:
            node = stack.pop()
            if isinstance(node, Sym):
                found.add(node.symbol)
            else:
                stack.extend(node.children)
        return frozenset(found)

    def has(self, target: ExprLike) -> bool:
        """True if target occurs as a subexpression."""
        target = as_expression(target)
        if self == target:
            return True
        return any(child.has(target) for child in self.children)

    def is_concrete(self) -> bool:
        """True if the expression contains no symbols or pattern variables."""
        if isinstance(self, (Sym, Wild)):
            return False
        return all(child.is_concrete() for child in self.children)

    # ============================================================
    # Transformations
    # ============================================================

    def simplify(self) -> 'Expression':
        """Canonical form of this expression (total, idempotent)."""
        from .simplify import simplify
        return simplify(self)

    def evaluate(self, context=None, registry=None) -> 'Expression':
        """Domain-checked evaluation; see symbolix.evaluate.evaluate."""
        from .evaluate import evaluate
        return evaluate(self, context, registry)

    def substitute(self, mapping: Mapping[Any, ExprLike]) -> 'Expression':
        """
        Replace symbols simultaneously and rebuild in canonical form.

        Keys may be Symbol, Sym or str; values anything as_expression accepts.

        Example:
            E("(+ x y)").substitute({"x": 1, "y": 2})  # => 3
        """
        table = {}
        for key, value in mapping.items():
            if isinstance(key, Sym):
                key = key.symbol
            elif isinstance(key, str):
                key = Symbol(key)
            table[key] = as_expression(value)
        return _substitute(self, table)

    # ============================================================
    # Canonical constructors
    # ============================================================

    @staticmethod
    def number(value: Union[Number, int, float, Fraction]) -> 'Expression':
        return Num(Number.from_value(value))

    @staticmethod
    def integer(value: int) -> 'Expression':
        return Num(Number.integer(value))

    @staticmethod
    def rational(numerator: int, denominator: int = 1) -> 'Expression':
        """Exact rational p/q; a zero denominator gives an unevaluated division."""
        if denominator == 0:
            return Expression.div(Expression.integer(numerator), Expression.integer(0))
        return Num(Number.rational(numerator, denominator))

    @staticmethod
    def from_float(value: float) -> 'Expression':
        return Num(Number.from_float(value))

    @staticmethod
    def symbol(name: Union[str, Symbol]) -> 'Expression':
        return Sym(name if isinstance(name, Symbol) else Symbol(name))

    @staticmethod
    def constant(name: str) -> 'Expression':
        return Constant(name)

    @staticmethod
    def add(terms: Iterable[ExprLike]) -> 'Expression':
        from .simplify import simplify_addition
        return simplify_addition([as_expression(t) for t in terms])

    @staticmethod
    def mul(factors: Iterable[ExprLike]) -> 'Expression':
        from .simplify import simplify_multiplication
        return simplify_multiplication([as_expression(f) for f in factors])

    @staticmethod
    def pow(base: ExprLike, exp: ExprLike) -> 'Expression':
        from .simplify import simplify_power
        return simplify_power(as_expression(base), as_expression(exp))

    @staticmethod
    def function(name: str, args: Iterable[ExprLike], registry=None) -> 'Expression':
        """Function application; exact special values are applied eagerly."""
        from .functions import apply_function
        return apply_function(name, [as_expression(a) for a in args], registry)

    @staticmethod
    def neg(value: ExprLike) -> 'Expression':
        return Expression.mul([Num(Number.integer(-1)), value])

    @staticmethod
    def sub(left: ExprLike, right: ExprLike) -> 'Expression':
        return Expression.add([left, Expression.neg(right)])

    @staticmethod
    def div(left: ExprLike, right: ExprLike) -> 'Expression':
        return Expression.mul([left, Expression.pow(right, Num(Number.integer(-1)))])

    @staticmethod
    def complex(real: ExprLike, imag: ExprLike) -> 'Expression':
        """real + imag*i; collapses to real when imag is exactly zero."""
        real, imag = as_expression(real), as_expression(imag)
        if isinstance(imag, Num) and imag.number.is_exact and imag.number.is_zero:
            return real
        return Complex(real, imag)

    @staticmethod
    def matrix(rows: Iterable[Iterable[ExprLike]]) -> 'Expression':
        return Matrix([[as_expression(e) for e in row] for row in rows])

    # ============================================================
    # Operators
    # ============================================================

    def __add__(self, other):
        return Expression.add([self, other])

    def __radd__(self, other):
        return Expression.add([other, self])

    def __sub__(self, other):
        return Expression.sub(self, other)

    def __rsub__(self, other):
        return Expression.sub(other, self)

    def __mul__(self, other):
        return Expression.mul([self, other])

    def __rmul__(self, other):
        return Expression.mul([other, self])

    def __truediv__(self, other):
        return Expression.div(self, other)

    def __rtruediv__(self, other):
        return Expression.div(other, self)

    def __pow__(self, other):
        return Expression.pow(self, other)

    def __rpow__(self, other):
        return Expression.pow(other, self)

    def __neg__(self):
        return Expression.neg(self)

    def __pos__(self):
        return self

    # Bound last so the annotations above still refer to the builtin.
    float = from_float


# ============================================================
# Leaves
# ============================================================

class Num(Expression):
    """Numeric leaf."""

    __slots__ = ('number',)

    def __init__(self, number: Union[Number, int, float, Fraction]):
        object.__setattr__(self, 'number', Number.from_value(number))
        self._finish()

    def _key(self):
        return (self.number,)

    def sort_key(self):
        return (RANK_NUMBER, self.number.sort_key())

    def is_zero(self):
        return self.number.is_zero

    def is_one(self):
        return self.number.is_one

    def is_number(self):
        return True

    def as_number(self):
        return self.number


class Sym(Expression):
    """Symbol leaf."""

    __slots__ = ('symbol',)

    def __init__(self, symbol: Union[Symbol, str]):
        if isinstance(symbol, str):
            symbol = Symbol(symbol)
        object.__setattr__(self, 'symbol', symbol)
        self._finish()

    @property
    def name(self) -> str:
        return self.symbol.name

    def _key(self):
        return (self.symbol,)

    def sort_key(self):
        return (RANK_SYMBOL, self.symbol.name)

    def is_symbol(self):
        return True

    def as_symbol(self):
        return self.symbol


class Constant(Expression):
    """Named mathematical constant."""

    __slots__ = ('name',)

    def __init__(self, name: str):
        if name not in CONSTANTS:
            raise ValueError(f"unknown constant: {name!r}")
        object.__setattr__(self, 'name', name)
        self._finish()

    @property
    def value(self) -> float:
        return CONSTANTS[self.name]

    def _key(self):
        return (self.name,)

    def sort_key(self):
        return (RANK_CONSTANT, self.name)


class Wild(Expression):
    """
    Pattern placeholder used by the rule rewriter.

    role is "pattern" for ?x forms and "skeleton" for :x forms.
    constraint is None, "const", "var" or "free" (with arg naming the
    excluded variable). rest marks a variadic ?xs... placeholder.
    """

    __slots__ = ('name', 'constraint', 'arg', 'rest', 'role')

    def __init__(self, name: str, constraint: Optional[str] = None,
                 arg: Optional[str] = None, rest: bool = False, role: str = "pattern"):
        object.__setattr__(self, 'name', name)
        object.__setattr__(self, 'constraint', constraint)
        object.__setattr__(self, 'arg', arg)
        object.__setattr__(self, 'rest', rest)
        object.__setattr__(self, 'role', role)
        self._finish()

    def _key(self):
        return (self.name, self.constraint, self.arg, self.rest, self.role)

    def sort_key(self):
        return (RANK_WILD, self.name)


# ============================================================
# Compound nodes
# ============================================================

class Add(Expression):
    """Sum of terms."""

    __slots__ = ('terms',)

    head = "+"

    def __init__(self, terms: Iterable[Expression]):
        object.__setattr__(self, 'terms', tuple(terms))
        self._finish()

    def _key(self):
        return self.terms

    @property
    def children(self):
        return self.terms

    def with_children(self, children):
        return Add(children)

    def rebuild(self, children):
        return Expression.add(children)

    def sort_key(self):
        return (RANK_ADD, tuple(t.sort_key() for t in self.terms))


class Mul(Expression):
    """Product of factors."""

    __slots__ = ('factors',)

    head = "*"

    def __init__(self, factors: Iterable[Expression]):
        object.__setattr__(self, 'factors', tuple(factors))
        self._finish()

    def _key(self):
        return self.factors

    @property
    def children(self):
        return self.factors

    def with_children(self, children):
        return Mul(children)

    def rebuild(self, children):
        return Expression.mul(children)

    def sort_key(self):
        return (RANK_MUL, tuple(f.sort_key() for f in self.factors))


class Pow(Expression):
    """base ^ exp"""

    __slots__ = ('base', 'exp')

    head = "^"

    def __init__(self, base: Expression, exp: Expression):
        object.__setattr__(self, 'base', base)
        object.__setattr__(self, 'exp', exp)
        self._finish()

    def _key(self):
        return (self.base, self.exp)

    @property
    def children(self):
        return (self.base, self.exp)

    def with_children(self, children):
        return Pow(*children)

    def rebuild(self, children):
        return Expression.pow(*children)

    def sort_key(self):
        # x^2 sorts right after x and before y
        return self.base.sort_key() + (self.exp.sort_key(),)


class Function(Expression):
    """Application of a named function to arguments."""

    __slots__ = ('name', 'args')

    def __init__(self, name: str, args: Iterable[Expression]):
        object.__setattr__(self, 'name', name)
        object.__setattr__(self, 'args', tuple(args))
        self._finish()

    @property
    def head(self):
        return self.name

    def _key(self):
        return (self.name,) + self.args

    @property
    def children(self):
        return self.args

    def with_children(self, children):
        return Function(self.name, children)

    def rebuild(self, children):
        return Expression.function(self.name, children)

    def sort_key(self):
        return (RANK_FUNCTION, self.name, tuple(a.sort_key() for a in self.args))


class Complex(Expression):
    """real + imag*i with arbitrary expression parts."""

    __slots__ = ('real', 'imag')

    head = "complex"

    def __init__(self, real: Expression, imag: Expression):
        object.__setattr__(self, 'real', real)
        object.__setattr__(self, 'imag', imag)
        self._finish()

    def _key(self):
        return (self.real, self.imag)

    @property
    def children(self):
        return (self.real, self.imag)

    def with_children(self, children):
        return Complex(*children)

    def rebuild(self, children):
        return Expression.complex(*children)

    def sort_key(self):
        return (RANK_COMPLEX, self.real.sort_key(), self.imag.sort_key())


class Matrix(Expression):
    """Rectangular matrix; children are the entries in row-major order."""

    __slots__ = ('rows',)

    head = "matrix"

    def __init__(self, rows: Iterable[Iterable[Expression]]):
        rows = tuple(tuple(row) for row in rows)
        if rows and any(len(row) != len(rows[0]) for row in rows):
            raise ValueError("matrix rows must all have the same length")
        object.__setattr__(self, 'rows', rows)
        self._finish()

    @property
    def shape(self) -> Tuple[int, int]:
        return (len(self.rows), len(self.rows[0]) if self.rows else 0)

    def _key(self):
        return self.rows

    @property
    def children(self):
        return tuple(entry for row in self.rows for entry in row)

    def _reshape(self, children) -> List[List[Expression]]:
        children = list(children)
        ncols = self.shape[1]
        return [children[i:i + ncols] for i in range(0, len(children), ncols)] if ncols else []

    def with_children(self, children):
        return Matrix(self._reshape(children))

    def rebuild(self, children):
        return Expression.matrix(self._reshape(children))

    def sort_key(self):
        return (RANK_MATRIX, tuple(tuple(e.sort_key() for e in row) for row in self.rows))


def _substitute(expr: Expression, table: Dict[Symbol, Expression]) -> Expression:
    if isinstance(expr, Sym):
        return table.get(expr.symbol, expr)
    children = expr.children
    if not children:
        return expr
    return expr.rebuild([_substitute(c, table) for c in children])
