"""
symbolix - symbolic expressions with canonical simplification

A small computer algebra core: exact numbers, interned symbols, immutable
expression trees that are always kept in canonical form, and a
domain-checked evaluate().

Quick Start:
    from symbolix import E, Expression

    E("(+ x x (* 3 x))")            # => (* 5 x)
    E("(/ 6 4)")                    # => 3/2
    E("(sin (* 1/6 pi))")           # => 1/2

    x = Expression.symbol("x")
    2 * x + 3 * x - 5 * x           # => 0

    E("(log 0)").evaluate()         # raises Pole
    E("(sqrt y)").evaluate()        # => (sqrt y), symbolic input never fails

Construction never fails; anything questionable (0^0, 1/0, sqrt(-1)) stays
an unevaluated node until evaluate() is called.

S-expression Syntax:
    (+ a b)  (* a b)  (- a b)  (/ a b)  (^ a b)
    (sin x)  (log x)  (sqrt x) ...  pi  e  3/4  1.5

Rewrite Rules:
    from symbolix import RuleSet

    rules = RuleSet.from_dsl('''
        @log-prod: (log (* ?a ?b)) => (+ (log :a) (log :b))
    ''')
    rules(E("(log (* x y))"))       # => (+ (log x) (log y))
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    MathError,
    DomainError,
    Pole,
    BranchCut,
    DivisionByZero,
    Undefined,
    NumericOverflow,
    MathNotImplementedError,
    NonNumericalResult,
)

# Numbers and symbols
from .number import Number, MAX_POWER_BITS
from .symbol import Symbol, symbols

# Expressions
from .expression import (
    Expression,
    Num,
    Sym,
    Constant,
    Add,
    Mul,
    Pow,
    Function,
    Complex,
    Matrix,
    Wild,
    as_expression,
)

# Simplification
from .simplify import (
    simplify,
    simplify_addition,
    simplify_multiplication,
    simplify_power,
)

# Function registry
from .functions import (
    FunctionProperties,
    FunctionRegistry,
    REGISTRY,
    register_function,
    unary,
    approximate,
)

# Evaluation
from .evaluate import (
    EvalContext,
    evaluate,
    evaluate_with_context,
    evaluate_to_float,
)

# S-expressions
from .sexpr import E, parse_sexpr, format_sexpr

# Rewriting
from .rewriter import (
    RuleSet,
    Rule,
    RewriteStep,
    Bindings,
    NoMatch,
    match,
    instantiate,
    parse_rule_line,
    load_rules_from_dsl,
    load_rules_from_file,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Errors
    "MathError",
    "DomainError",
    "Pole",
    "BranchCut",
    "DivisionByZero",
    "Undefined",
    "NumericOverflow",
    "MathNotImplementedError",
    "NonNumericalResult",
    # Numbers and symbols
    "Number",
    "MAX_POWER_BITS",
    "Symbol",
    "symbols",
    # Expressions
    "Expression",
    "Num",
    "Sym",
    "Constant",
    "Add",
    "Mul",
    "Pow",
    "Function",
    "Complex",
    "Matrix",
    "Wild",
    "as_expression",
    # Simplification
    "simplify",
    "simplify_addition",
    "simplify_multiplication",
    "simplify_power",
    # Function registry
    "FunctionProperties",
    "FunctionRegistry",
    "REGISTRY",
    "register_function",
    "unary",
    "approximate",
    # Evaluation
    "EvalContext",
    "evaluate",
    "evaluate_with_context",
    "evaluate_to_float",
    # S-expressions
    "E",
    "parse_sexpr",
    "format_sexpr",
    # Rewriting
    "RuleSet",
    "Rule",
    "RewriteStep",
    "Bindings",
    "NoMatch",
    "match",
    "instantiate",
    "parse_rule_line",
    "load_rules_from_dsl",
    "load_rules_from_file",
]
