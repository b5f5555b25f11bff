"""
S-expression reading and writing.

parse_sexpr() builds the tree exactly as written, with no normalization;
E() parses and then simplifies to canonical form.

Syntax:
    42  -7  3/4  1.5  2e10         numbers (3/4 is an exact rational)
    x  theta                       symbols
    pi  e  golden_ratio  euler_gamma   constants
    (+ a b ...)  (* a b ...)       sum, product
    (- a)  (- a b ...)             negation, subtraction
    (/ a b)  (^ a b)               division, power
    (sin x)  (log x)  (f x y)      function application
    (complex re im)                complex number
    (matrix (a b) (c d))           matrix, one list per row

Pattern syntax (used by rule files):
    ?x  ?x:expr                    match any expression
    ?x:const                       match a number
    ?x:var                         match a symbol
    ?x:free(v)                     match an expression not containing v
    ?xs...                         match the remaining operands
    :x  :xs...                     substitute (or splice) a binding
"""

import re
from typing import List, Tuple, Union

from .expression import (
    CONSTANTS, Add, Complex, Constant, Expression, Function, Matrix, Mul, Num, Pow, Sym, Wild,
)
from .number import Number
from .simplify import simplify
from .symbol import Symbol

# ?x:free(v) is a single token despite its parentheses
_TOKEN = re.compile(r'\?[^\s()]*\([^\s()]*\)(?:\.\.\.)?|\(|\)|[^\s()]+')
_INTEGER = re.compile(r'^[+-]?\d+$')
_RATIONAL = re.compile(r'^([+-]?\d+)/(\d+)$')
_FLOAT = re.compile(r'^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$')

RawTree = Union[str, List['RawTree']]


# ============================================================
# Reading
# ============================================================

def _read(tokens: List[str], pos: int) -> Tuple[RawTree, int]:
    token = tokens[pos]
    if token == ')':
        raise ValueError("unexpected ')'")
    if token != '(':
        return token, pos + 1
    items = []
    pos += 1
    while pos < len(tokens) and tokens[pos] != ')':
        item, pos = _read(tokens, pos)
        items.append(item)
    if pos >= len(tokens):
        raise ValueError("missing ')'")
    return items, pos + 1


def _atom(token: str) -> Expression:
    if _INTEGER.match(token):
        return Num(Number.integer(int(token)))
    m = _RATIONAL.match(token)
    if m:
        numerator, denominator = int(m.group(1)), int(m.group(2))
        if denominator == 0:
            return Mul((Num(Number.integer(numerator)),
                        Pow(Num(Number.integer(0)), Num(Number.integer(-1)))))
        return Num(Number.rational(numerator, denominator))
    if _FLOAT.match(token):
        return Num(Number.from_float(float(token)))
    if token in CONSTANTS:
        return Constant(token)
    if token.startswith('?'):
        return _pattern_variable(token[1:])
    if token.startswith(':') and len(token) > 1:
        rest = token[1:]
        if rest.endswith('...'):
            return Wild(rest[:-3], rest=True, role="skeleton")
        return Wild(rest, role="skeleton")
    return Sym(Symbol(token))


def _pattern_variable(text: str) -> Wild:
    rest = text.endswith('...')
    if rest:
        text = text[:-3]
    name, _, kind = text.partition(':')
    name = name or 'x'
    if kind in ('', 'expr'):
        return Wild(name, rest=rest)
    if kind in ('const', 'var'):
        return Wild(name, kind, rest=rest)
    if kind.startswith('free(') and kind.endswith(')'):
        return Wild(name, 'free', kind[5:-1].strip(), rest=rest)
    raise ValueError(f"unknown pattern constraint: ?{text}")


def _negate(expr: Expression) -> Expression:
    return Mul((Num(Number.integer(-1)), expr))


def _build(tree: RawTree) -> Expression:
    if isinstance(tree, str):
        return _atom(tree)
    if not tree:
        raise ValueError("empty list '()' is not an expression")
    head, rest = tree[0], tree[1:]
    if not isinstance(head, str):
        raise ValueError(f"operator must be a name, got a list: {head}")

    if head == 'matrix':
        rows = []
        for row in rest:
            if not isinstance(row, list):
                raise ValueError("matrix rows must be lists")
            rows.append([_build(entry) for entry in row])
        return Matrix(rows)

    args = [_build(item) for item in rest]
    if head == '+':
        return Add(args)
    if head == '*':
        return Mul(args)
    if head == '^':
        if len(args) != 2:
            raise ValueError(f"^ takes 2 arguments, got {len(args)}")
        return Pow(args[0], args[1])
    if head == '-':
        if not args:
            raise ValueError("- takes at least 1 argument")
        if len(args) == 1:
            return _negate(args[0])
        return Add([args[0]] + [_negate(a) for a in args[1:]])
    if head == '/':
        if len(args) != 2:
            raise ValueError(f"/ takes 2 arguments, got {len(args)}")
        return Mul((args[0], Pow(args[1], Num(Number.integer(-1)))))
    if head == 'complex':
        if len(args) != 2:
            raise ValueError(f"complex takes 2 arguments, got {len(args)}")
        return Complex(args[0], args[1])
    return Function(head, args)


def parse_sexpr(text: str) -> Expression:
    """
    Parse an s-expression into an Expression tree, as written.

    Raises:
        ValueError: On empty input, unbalanced parentheses or malformed forms

    Examples:
        parse_sexpr("(+ x 1)")        # => Add((Sym x, Num 1))
        parse_sexpr("(+ x x)")        # stays (+ x x); E() would give (* 2 x)
    """
    tokens = _TOKEN.findall(text)
    if not tokens:
        raise ValueError("empty expression")
    tree, pos = _read(tokens, 0)
    if pos != len(tokens):
        raise ValueError(f"unexpected trailing input: {' '.join(tokens[pos:])}")
    return _build(tree)


# ============================================================
# Writing
# ============================================================

def _format_wild(w: Wild) -> str:
    if w.role == "skeleton":
        return f":{w.name}..." if w.rest else f":{w.name}"
    if w.constraint == 'free':
        text = f"?{w.name}:free({w.arg})"
    elif w.constraint:
        text = f"?{w.name}:{w.constraint}"
    else:
        text = f"?{w.name}"
    return text + "..." if w.rest else text


def format_sexpr(expr: Expression) -> str:
    """
    Format an expression as an s-expression string.

    parse_sexpr(format_sexpr(e)) == e for any tree parse_sexpr can produce.
    A symbol spelled like a constant (Symbol("pi")) reads back as the
    constant, since the text cannot tell them apart.

    Examples:
        format_sexpr(E("(+ x x)"))    # => "(* 2 x)"
        format_sexpr(E("(/ 6 4)"))    # => "3/2"
    """
    if isinstance(expr, Num):
        return str(expr.number)
    if isinstance(expr, Sym):
        return expr.name
    if isinstance(expr, Constant):
        return expr.name
    if isinstance(expr, Wild):
        return _format_wild(expr)
    if isinstance(expr, Matrix):
        rows = ["(" + " ".join(format_sexpr(e) for e in row) + ")" for row in expr.rows]
        return "(matrix" + "".join(" " + r for r in rows) + ")"
    parts = [expr.head] + [format_sexpr(c) for c in expr.children]
    return "(" + " ".join(parts) + ")"


# ============================================================
# Expression Builder
# ============================================================

class _ExprBuilder:
    """
    Expression builder.

    Examples:
        from symbolix import E

        # Parse and simplify
        expr = E("(+ x (* 2 x))")        # => (* 3 x)

        # Build with operators
        x, y = E.vars("x", "y")
        expr = E.op("+", x, E.op("*", 2, y))

        # Parse without simplifying
        E.raw("(+ x x)")                 # => (+ x x)
    """

    def __call__(self, text: str) -> Expression:
        """Parse an s-expression and bring it to canonical form."""
        return simplify(parse_sexpr(text))

    def raw(self, text: str) -> Expression:
        """Parse an s-expression without simplifying."""
        return parse_sexpr(text)

    def op(self, name: str, *args) -> Expression:
        """
        Build a canonical compound expression.

        Examples:
            E.op("+", "x", 1)       # => (+ 1 x)
            E.op("-", "x")          # => (* -1 x)
            E.op("sin", E.const("pi"))  # => 0
        """
        if name == '+':
            return Expression.add(args)
        if name == '*':
            return Expression.mul(args)
        if name == '^':
            return Expression.pow(*args)
        if name == '-':
            if len(args) == 1:
                return Expression.neg(args[0])
            return Expression.add([args[0]] + [Expression.neg(a) for a in args[1:]])
        if name == '/':
            return Expression.div(*args)
        if name == 'complex':
            return Expression.complex(*args)
        return Expression.function(name, args)

    def var(self, name: str) -> Expression:
        return Expression.symbol(name)

    def vars(self, *names: str) -> Tuple[Expression, ...]:
        """
        Create several symbols for unpacking.

        Example:
            x, y, z = E.vars("x", "y", "z")
        """
        return tuple(Expression.symbol(n) for n in names)

    def const(self, value) -> Expression:
        """A number, or a named constant such as "pi"."""
        if isinstance(value, str):
            return Expression.constant(value)
        return Expression.number(value)

    def __repr__(self) -> str:
        return "E (expression builder)"


# Singleton instance
E = _ExprBuilder()
