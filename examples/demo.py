#!/usr/bin/env python3
"""
symbolix Feature Demonstration

Canonical construction, exact special values, domain-checked evaluation
and rule rewriting.
"""

import math
from pathlib import Path

from symbolix import (
    E, Expression, RuleSet, EvalContext,
    MathError, FunctionRegistry, REGISTRY, unary,
    evaluate, evaluate_to_float, format_sexpr,
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_canonical_form():
    """Construction always yields canonical form."""
    section("Canonical Form")

    examples = [
        "(+ x x (* 3 x))",
        "(- (* 2 x) (* 2 x))",
        "(* x (^ x 2) y)",
        "(/ 6 4)",
        "(^ (^ x 2) 3)",
        "(+ y 1 x 2)",
    ]
    for expr_str in examples:
        print(f"  {expr_str} => {format_sexpr(E(expr_str))}")

    x = Expression.symbol("x")
    print(f"  2*x + 3*x - 5*x => {2 * x + 3 * x - 5 * x}")


def demo_special_values():
    """Exact values of elementary functions."""
    section("Exact Special Values")

    examples = [
        "(sin (/ pi 6))",
        "(cos pi)",
        "(sin (/ pi 4))",
        "(tan (/ pi 4))",
        "(log (^ e 3))",
        "(sqrt 16/9)",
        "(log10 1000)",
        "(sin 1)",
    ]
    for expr_str in examples:
        print(f"  {expr_str} => {format_sexpr(E(expr_str))}")


def demo_evaluation():
    """Domain errors surface only on evaluate()."""
    section("Domain-Checked Evaluation")

    examples = [
        "(sqrt x)",
        "(sqrt -1)",
        "(log 0)",
        "(log -2)",
        "(tan (/ pi 2))",
        "(/ 1 0)",
        "(^ 0 0)",
    ]
    for expr_str in examples:
        expr = E(expr_str)
        try:
            result = format_sexpr(evaluate(expr))
        except MathError as e:
            result = f"{type(e).__name__}: {e}"
        print(f"  {expr_str:<18} built as {format_sexpr(expr):<18} evaluates to {result}")

    print("\n  Numeric evaluation:")
    print(f"    (* 2 pi)          => {evaluate_to_float(E('(* 2 pi)'))}")
    context = EvalContext.numerical({"x": 0.5})
    print(f"    (sin x), x = 0.5  => {format_sexpr(evaluate(E('(sin x)'), context))}")


def demo_custom_functions():
    """A private registry with an extra function."""
    section("Custom Functions")

    registry: FunctionRegistry = REGISTRY.copy()
    registry.register(unary("sigmoid", lambda v: 1 / (1 + math.exp(-v))))

    print(f"  sigmoid(0.0) => {Expression.function('sigmoid', [0.0], registry=registry)}")
    print(f"  sigmoid(x)   => {Expression.function('sigmoid', ['x'], registry=registry)}")
    print(f"  {len(registry)} functions, {len(REGISTRY)} in the default registry")


def demo_rewriting():
    """Rule-based rewriting from a rules file."""
    section("Rule Rewriting")

    rules_path = Path(__file__).parent / "trig.rules"
    rules = RuleSet.from_file(rules_path)
    print(f"  Loaded {len(rules)} rules from {rules_path.name}")

    examples = [
        "(+ (^ (sin y) 2) (^ (cos y) 2))",
        "(* 2 (sin t) (cos t))",
        "(/ (sin t) (cos t))",
        "(log (* a (^ b 3)))",
    ]
    for expr_str in examples:
        result, steps = rules.rewrite(E(expr_str), trace=True)
        print(f"  {expr_str} => {format_sexpr(result)}")
        for step in steps:
            print(f"      {step}")


def main():
    """Run all demonstrations."""
    print("symbolix - symbolic expressions with canonical simplification")
    print("Feature Demonstration")

    demo_canonical_form()
    demo_special_values()
    demo_evaluation()
    demo_custom_functions()
    demo_rewriting()

    print("\n" + "="*60)
    print(" Demo complete!")
    print("="*60)


if __name__ == "__main__":
    main()
