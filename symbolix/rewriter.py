"""
Rule-based rewriting over canonical expressions.

Rules are written in a small DSL, one per line:

    # Comment
    @rule-name: pattern => skeleton
    @rule-name "Description text": pattern => skeleton
    pattern => skeleton

    @sin-sq "Pythagorean identity": (+ (^ (cos ?x) 2) (^ (sin ?x) 2)) => 1
    @log-prod: (log (* ?a ?b)) => (+ (log :a) (log :b))

Patterns are matched structurally against canonical trees, operand by
operand, so a pattern for a sum or product must list operands in
canonical order (numbers first, then by sort_key). Every rewrite result is
simplified back to canonical form.

    rules = RuleSet.from_dsl('''
        @log-prod: (log (* ?a ?b)) => (+ (log :a) (log :b))
    ''')
    rules(E("(log (* x y))"))     # => (+ (log x) (log y))
"""

import logging
import re
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .expression import Expression, Matrix, Num, Sym, Wild
from .sexpr import format_sexpr, parse_sexpr
from .simplify import simplify
from .symbol import Symbol

logger = logging.getLogger(__name__)

BindingValue = Union[Expression, Tuple[Expression, ...]]


# ============================================================
# Bindings - dict-like match results
# ============================================================

class Bindings:
    """
    Dict-like wrapper for pattern matching bindings.

    Bindings objects are truthy when a match succeeded; a failed match
    returns NoMatch, which is falsy:

        if bindings := match(parse_sexpr("(sin ?a)"), expr):
            print(bindings["a"])

    Rest wildcards (?xs...) bind a tuple of expressions.
    """

    __slots__ = ('_dict',)

    def __init__(self, mapping: Optional[Dict[str, BindingValue]] = None):
        self._dict = dict(mapping or {})

    def __bool__(self) -> bool:
        return True

    def __getitem__(self, key: str) -> BindingValue:
        return self._dict[key]

    def get(self, key: str, default=None):
        return self._dict.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self._dict

    def keys(self):
        return self._dict.keys()

    def values(self):
        return self._dict.values()

    def items(self):
        return self._dict.items()

    def __iter__(self):
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}: {_format_value(v)}" for k, v in self._dict.items())
        return f"Bindings({{{inner}}})"

    def __eq__(self, other):
        if isinstance(other, Bindings):
            return self._dict == other._dict
        return False

    def to_dict(self) -> Dict[str, BindingValue]:
        return self._dict.copy()


class _NoMatch:
    """Singleton representing a failed pattern match. NoMatch is falsy."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoMatch"

    def __getitem__(self, key: str):
        raise KeyError(f"NoMatch has no binding for '{key}'")

    def get(self, key: str, default=None):
        return default

    def __contains__(self, key: str) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __iter__(self):
        return iter([])


NoMatch = _NoMatch()


def _format_value(value: BindingValue) -> str:
    if isinstance(value, tuple):
        return "[" + " ".join(format_sexpr(v) for v in value) + "]"
    return format_sexpr(value)


# ============================================================
# Matching
# ============================================================

def _bind(name: str, value: BindingValue,
          bindings: Dict[str, BindingValue]) -> Optional[Dict[str, BindingValue]]:
    """Extend bindings; a name already bound must bind the same value."""
    if name in bindings:
        return bindings if bindings[name] == value else None
    extended = dict(bindings)
    extended[name] = value
    return extended


def _satisfies(wild: Wild, expr: Expression, bindings: Dict[str, BindingValue]) -> bool:
    if wild.constraint == 'const':
        return isinstance(expr, Num)
    if wild.constraint == 'var':
        return isinstance(expr, Sym)
    if wild.constraint == 'free':
        excluded = bindings.get(wild.arg)
        symbol = excluded.symbol if isinstance(excluded, Sym) else Symbol(wild.arg)
        return symbol not in expr.free_symbols()
    return True


def _match(pat: Expression, expr: Expression,
           bindings: Dict[str, BindingValue]) -> Optional[Dict[str, BindingValue]]:
    if isinstance(pat, Wild):
        if pat.rest:
            raise ValueError(f"rest pattern {format_sexpr(pat)} must be the last operand")
        if not _satisfies(pat, expr, bindings):
            return None
        return _bind(pat.name, expr, bindings)

    pat_children = pat.children
    if not pat_children:
        return bindings if pat == expr else None

    if type(pat) is not type(expr) or pat.head != expr.head:
        return None
    if isinstance(pat, Matrix) and pat.shape != expr.shape:
        return None
    return _match_sequence(pat_children, expr.children, bindings)


def _match_sequence(pats, exprs, bindings):
    for i, pat in enumerate(pats):
        if bindings is None:
            return None
        if isinstance(pat, Wild) and pat.rest:
            if i != len(pats) - 1:
                raise ValueError(f"rest pattern {format_sexpr(pat)} must be the last operand")
            remaining = tuple(exprs[i:])
            if not all(_satisfies(pat, e, bindings) for e in remaining):
                return None
            return _bind(pat.name, remaining, bindings)
        if i >= len(exprs):
            return None
        bindings = _match(pat, exprs[i], bindings)
    if bindings is None or len(exprs) != len(pats):
        return None
    return bindings


def match(pattern: Union[str, Expression], expr: Expression) -> Union[Bindings, _NoMatch]:
    """
    Match a pattern against an expression.

    Args:
        pattern: Pattern tree, or s-expression text parsed with parse_sexpr
        expr: Expression to match

    Returns:
        Bindings if matched, NoMatch (falsy) otherwise

    Example:
        match("(^ ?b ?n:const)", E("(^ x 3)"))   # => Bindings({b: x, n: 3})
    """
    if isinstance(pattern, str):
        pattern = parse_sexpr(pattern)
    result = _match(pattern, expr, {})
    return NoMatch if result is None else Bindings(result)


# ============================================================
# Instantiation
# ============================================================

def instantiate(skeleton: Expression, bindings: Union[Bindings, Dict[str, BindingValue]]) -> Expression:
    """
    Substitute bindings into a skeleton.

    :x is replaced by the bound expression; :xs... splices a bound tuple
    into the enclosing operand list. The result is built as written; pass
    it through simplify() for canonical form.
    """
    if isinstance(skeleton, Wild):
        value = bindings.get(skeleton.name)
        if value is None:
            return skeleton
        if isinstance(value, tuple):
            raise ValueError(f"{format_sexpr(skeleton)} is bound to several operands; "
                             f"splice it with :{skeleton.name}...")
        return value

    children = skeleton.children
    if not children:
        return skeleton
    new_children: List[Expression] = []
    for child in children:
        if isinstance(child, Wild) and child.rest:
            value = bindings.get(child.name, ())
            new_children.extend(value if isinstance(value, tuple) else (value,))
        else:
            new_children.append(instantiate(child, bindings))
    return skeleton.with_children(new_children)


# ============================================================
# Rules
# ============================================================

class Rule:
    """A named pattern => skeleton rewrite."""

    __slots__ = ('pattern', 'skeleton', 'name', 'description')

    def __init__(self, pattern: Expression, skeleton: Expression,
                 name: Optional[str] = None, description: Optional[str] = None):
        self.pattern = pattern
        self.skeleton = skeleton
        self.name = name
        self.description = description

    def apply(self, expr: Expression) -> Optional[Expression]:
        """Rewrite expr at the top level, or None if the pattern does not match."""
        bindings = _match(self.pattern, expr, {})
        if bindings is None:
            return None
        return simplify(instantiate(self.skeleton, bindings))

    def __repr__(self) -> str:
        label = f"@{self.name}" if self.name else "<anonymous>"
        if self.description:
            label += f" \"{self.description}\""
        return f"{label}: {format_sexpr(self.pattern)} => {format_sexpr(self.skeleton)}"


_RULE_HEADER = re.compile(r'@([\w-]+)(?:\s+"([^"]*)")?:\s*(.+)')


def parse_rule_line(line: str) -> Optional[Rule]:
    """
    Parse a single rule line.

    Formats:
        @name: pattern => skeleton
        @name "description": pattern => skeleton
        pattern => skeleton

    Returns:
        The Rule, or None for blank and comment lines

    Raises:
        ValueError: If the line is not a valid rule
    """
    line = line.strip()
    if not line or line.startswith('#'):
        return None

    name = description = None
    if line.startswith('@'):
        header = _RULE_HEADER.match(line)
        if not header:
            raise ValueError(f"malformed rule header: {line}")
        name, description, line = header.group(1), header.group(2), header.group(3)

    if '=>' not in line:
        raise ValueError(f"rule is missing '=>': {line}")
    pattern_text, skeleton_text = line.split('=>', 1)
    return Rule(parse_sexpr(pattern_text), parse_sexpr(skeleton_text), name, description)


def load_rules_from_dsl(text: str) -> List[Rule]:
    """Parse every rule in a block of DSL text."""
    rules = []
    for number, line in enumerate(text.splitlines(), 1):
        try:
            rule = parse_rule_line(line)
        except ValueError as e:
            raise ValueError(f"line {number}: {e}") from None
        if rule is not None:
            rules.append(rule)
    return rules


def load_rules_from_file(path: Union[str, Path]) -> List[Rule]:
    """Parse a .rules file."""
    return load_rules_from_dsl(Path(path).read_text())


class RewriteStep:
    """A single rule application recorded by RuleSet.rewrite(trace=True)."""

    __slots__ = ('rule', 'before', 'after')

    def __init__(self, rule: Rule, before: Expression, after: Expression):
        self.rule = rule
        self.before = before
        self.after = after

    def __repr__(self) -> str:
        name = self.rule.name or "<anonymous>"
        return f"{name}: {format_sexpr(self.before)} -> {format_sexpr(self.after)}"


class RuleSet:
    """
    An ordered collection of rewrite rules.

    Example:
        rules = RuleSet.from_dsl('''
            @exp-log: (exp (* ?n:const (log ?x))) => (^ :x :n)
        ''')
        rules(E("(exp (* 2 (log y)))"))    # => (^ y 2)
    """

    def __init__(self, rules: Optional[List[Rule]] = None):
        self._rules: List[Rule] = list(rules or [])

    @classmethod
    def from_dsl(cls, text: str) -> 'RuleSet':
        return cls().load_dsl(text)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'RuleSet':
        return cls().load_file(path)

    def load_dsl(self, text: str) -> 'RuleSet':
        self._rules.extend(load_rules_from_dsl(text))
        return self

    def load_file(self, path: Union[str, Path]) -> 'RuleSet':
        self._rules.extend(load_rules_from_file(path))
        return self

    def add_rule(self, pattern: Union[str, Expression], skeleton: Union[str, Expression],
                 name: Optional[str] = None, description: Optional[str] = None) -> 'RuleSet':
        """Add a single rule; string arguments are parsed as s-expressions."""
        if isinstance(pattern, str):
            pattern = parse_sexpr(pattern)
        if isinstance(skeleton, str):
            skeleton = parse_sexpr(skeleton)
        self._rules.append(Rule(pattern, skeleton, name, description))
        return self

    @property
    def rules(self) -> List[Rule]:
        return list(self._rules)

    def apply_once(self, expr: Expression) -> Tuple[Expression, Optional[Rule]]:
        """
        Apply the first matching rule at the top level only.

        Returns:
            (result, rule) where rule is None if nothing applied
        """
        for rule in self._rules:
            result = rule.apply(expr)
            if result is not None and result != expr:
                return result, rule
        return expr, None

    def rules_matching(self, expr: Expression) -> List[Tuple[Rule, Bindings]]:
        """All rules whose pattern matches expr at the top level, with their bindings."""
        found = []
        for rule in self._rules:
            bindings = _match(rule.pattern, expr, {})
            if bindings is not None:
                found.append((rule, Bindings(bindings)))
        return found

    def _pass(self, expr: Expression, steps: Optional[List[RewriteStep]]) -> Expression:
        """One bottom-up pass: rewrite children, then try rules at this node."""
        children = expr.children
        if children:
            expr = expr.rebuild([self._pass(c, steps) for c in children])
        result, rule = self.apply_once(expr)
        if rule is not None:
            logger.debug("%r rewrote %s to %s", rule.name, expr, result)
            if steps is not None:
                steps.append(RewriteStep(rule, expr, result))
        return result

    def rewrite(self, expr: Expression, max_steps: int = 1000, trace: bool = False):
        """
        Rewrite bottom-up until no rule applies.

        Args:
            expr: Expression to rewrite (simplified first)
            max_steps: Maximum number of passes
            trace: If True, return (result, steps)

        Returns:
            The rewritten expression, or (expression, steps) if trace=True
        """
        steps: Optional[List[RewriteStep]] = [] if trace else None
        current = simplify(expr)
        for _ in range(max_steps):
            new = self._pass(current, steps)
            if new == current:
                break
            current = new
        else:
            logger.debug("rewrite stopped after %d passes", max_steps)
        return (current, steps) if trace else current

    def __call__(self, expr: Expression) -> Expression:
        return self.rewrite(expr)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __contains__(self, name: str) -> bool:
        return any(rule.name == name for rule in self._rules)

    def __getitem__(self, name: str) -> Rule:
        for rule in self._rules:
            if rule.name == name:
                return rule
        raise KeyError(name)

    def __repr__(self) -> str:
        return f"RuleSet({len(self._rules)} rules)"
