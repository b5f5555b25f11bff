"""Tests for pattern matching and rule-based rewriting."""

from pathlib import Path

import pytest
from symbolix import (
    E, Expression,
    Bindings, NoMatch, RuleSet, Rule, RewriteStep,
    match, instantiate, parse_sexpr, parse_rule_line,
    load_rules_from_dsl, load_rules_from_file,
)


x, y, z = E.vars("x", "y", "z")


class TestMatch:
    """Tests for match()."""

    def test_simple(self):
        """A pattern variable binds the matched subexpression."""
        bindings = match("(sin ?a)", E("(sin x)"))
        assert bindings
        assert bindings["a"] == x

    def test_no_match(self):
        """A failed match returns the falsy NoMatch singleton."""
        result = match("(cos ?a)", E("(sin x)"))
        assert result is NoMatch
        assert not result

    def test_const_constraint(self):
        """?n:const only matches numbers."""
        bindings = match("(^ ?b ?n:const)", E("(^ x 3)"))
        assert bindings["b"] == x
        assert bindings["n"] == Expression.integer(3)
        assert not match("(^ ?b ?n:const)", E("(^ x y)"))

    def test_var_constraint(self):
        """?v:var only matches symbols."""
        assert match("(sin ?v:var)", E("(sin x)"))
        assert not match("(sin ?v:var)", E("(sin 2)"))

    def test_free_constraint(self):
        """?c:free(x) only matches expressions not containing x."""
        assert match("(* ?c:free(x) x)", E("(* 3 x)"))
        assert not match("(* ?c:free(x) x)", E("(* (sin x) x)"))

    def test_repeated_variable(self):
        """A repeated variable must bind the same value."""
        assert match("(+ ?a ?a)", parse_sexpr("(+ x x)"))
        assert not match("(+ ?a ?a)", parse_sexpr("(+ x y)"))

    def test_rest_variable(self):
        """?xs... binds the remaining operands as a tuple."""
        bindings = match("(+ ?first ?rest...)", E("(+ x y z)"))
        assert bindings["first"] == x
        assert bindings["rest"] == (y, z)

    def test_operand_count(self):
        """Without a rest variable the operand counts must agree."""
        assert not match("(+ ?a ?b)", E("(+ x y z)"))

    def test_literal_leaves(self):
        """Leaves in a pattern match only themselves."""
        assert match("(log e)", parse_sexpr("(log e)"))
        assert not match("(log 2)", parse_sexpr("(log 3)"))


class TestBindings:
    """Tests for Bindings and NoMatch."""

    def test_dict_access(self):
        """Bindings support dict-style access."""
        bindings = Bindings({"a": x})
        assert bindings["a"] == x
        assert bindings.get("b") is None
        assert "a" in bindings
        assert len(bindings) == 1
        assert bindings.to_dict() == {"a": x}

    def test_empty_bindings_truthy(self):
        """An empty successful match is still truthy."""
        assert Bindings()
        assert match("x", x)

    def test_repr(self):
        """repr shows bindings in s-expression form."""
        assert repr(Bindings({"a": E("(+ x 1)")})) == "Bindings({a: (+ 1 x)})"

    def test_no_match(self):
        """NoMatch behaves like an empty, falsy mapping."""
        assert len(NoMatch) == 0
        assert NoMatch.get("a", 42) == 42
        assert "a" not in NoMatch
        with pytest.raises(KeyError):
            NoMatch["a"]


class TestInstantiate:
    """Tests for instantiate()."""

    def test_substitution(self):
        """:x is replaced by its binding."""
        result = instantiate(parse_sexpr("(f :a :b)"), {"a": x, "b": y})
        assert result == parse_sexpr("(f x y)")

    def test_splice(self):
        """:xs... splices a tuple of operands."""
        result = instantiate(parse_sexpr("(f :a :rest...)"), {"a": x, "rest": (y, z)})
        assert result == parse_sexpr("(f x y z)")

    def test_tuple_without_splice(self):
        """A tuple binding used without ... is an error."""
        with pytest.raises(ValueError):
            instantiate(parse_sexpr("(f :rest)"), {"rest": (y, z)})

    def test_unbound_left_in_place(self):
        """Unbound skeleton variables stay as they are."""
        result = instantiate(parse_sexpr("(f :missing)"), {})
        assert str(result) == "(f :missing)"


class TestRuleParsing:
    """Tests for the rule DSL."""

    def test_named_rule(self):
        """@name: pattern => skeleton."""
        rule = parse_rule_line("@double: (f ?a) => (+ :a :a)")
        assert rule.name == "double"
        assert rule.description is None
        assert str(rule.pattern) == "(f ?a)"

    def test_described_rule(self):
        """@name "description": pattern => skeleton."""
        rule = parse_rule_line('@sq "square it": (sq ?a) => (^ :a 2)')
        assert rule.name == "sq"
        assert rule.description == "square it"

    def test_anonymous_rule(self):
        """A bare pattern => skeleton line has no name."""
        rule = parse_rule_line("(g ?a) => :a")
        assert rule.name is None

    def test_blank_and_comment(self):
        """Blank lines and comments give None."""
        assert parse_rule_line("") is None
        assert parse_rule_line("   # a comment") is None

    def test_malformed(self):
        """Malformed lines raise ValueError."""
        with pytest.raises(ValueError):
            parse_rule_line("(f ?a) (g :a)")
        with pytest.raises(ValueError):
            parse_rule_line("@: (f ?a) => :a")

    def test_error_line_number(self):
        """DSL errors report the offending line."""
        with pytest.raises(ValueError, match="line 2"):
            load_rules_from_dsl("(f ?a) => :a\n(g ?a) :a\n")

    def test_repr(self):
        """Rules print in DSL form."""
        rule = parse_rule_line('@sq "square it": (sq ?a) => (^ :a 2)')
        assert repr(rule) == '@sq "square it": (sq ?a) => (^ :a 2)'


class TestRuleSet:
    """Tests for RuleSet."""

    LOG_RULES = """
        # logarithm laws
        @log-prod: (log (* ?a ?b)) => (+ (log :a) (log :b))
        @log-pow: (log (^ ?b ?n:const)) => (* :n (log :b))
    """

    def test_from_dsl(self):
        """Rules load from DSL text in order."""
        rules = RuleSet.from_dsl(self.LOG_RULES)
        assert len(rules) == 2
        assert "log-prod" in rules
        assert rules["log-pow"].name == "log-pow"
        assert [r.name for r in rules] == ["log-prod", "log-pow"]

    def test_missing_rule(self):
        """Unknown rule names raise KeyError."""
        with pytest.raises(KeyError):
            RuleSet()["nope"]

    def test_rewrite(self):
        """A rule rewrites a matching expression."""
        rules = RuleSet.from_dsl(self.LOG_RULES)
        assert str(rules(E("(log (* x y))"))) == "(+ (log x) (log y))"

    def test_rewrite_result_simplified(self):
        """Rewrite results are brought to canonical form."""
        rules = RuleSet().add_rule("(f ?a)", "(+ :a :a)", "double")
        assert rules(E("(f x)")) == E("(* 2 x)")

    def test_rewrite_bottom_up(self):
        """Rules apply inside subexpressions."""
        rules = RuleSet.from_dsl(self.LOG_RULES)
        assert str(rules(E("(sin (log (* x y)))"))) == "(sin (+ (log x) (log y)))"

    def test_rewrite_to_fixpoint(self):
        """Rewriting repeats until nothing changes."""
        rules = RuleSet.from_dsl(self.LOG_RULES)
        assert str(rules(E("(log (* x (^ y 2)))"))) == "(+ (log x) (* 2 (log y)))"

    def test_max_steps(self):
        """A non-terminating rule set stops after max_steps passes."""
        rules = RuleSet().add_rule("(f ?a)", "(f (g :a))")
        result = rules.rewrite(E("(f x)"), max_steps=3)
        assert result == parse_sexpr("(f (g (g (g x))))")

    def test_trace(self):
        """trace=True also returns the applied steps."""
        rules = RuleSet.from_dsl(self.LOG_RULES)
        result, steps = rules.rewrite(E("(log (* x y))"), trace=True)
        assert str(result) == "(+ (log x) (log y))"
        assert len(steps) == 1
        assert isinstance(steps[0], RewriteStep)
        assert steps[0].rule.name == "log-prod"
        assert repr(steps[0]) == "log-prod: (log (* x y)) -> (+ (log x) (log y))"

    def test_apply_once(self):
        """apply_once reports the rule that fired, or None."""
        rules = RuleSet.from_dsl(self.LOG_RULES)
        result, rule = rules.apply_once(E("(log (* x y))"))
        assert rule.name == "log-prod"
        unchanged, none = rules.apply_once(x)
        assert unchanged is x
        assert none is None

    def test_rules_matching(self):
        """rules_matching lists every matching rule with its bindings."""
        rules = RuleSet.from_dsl(self.LOG_RULES)
        found = rules.rules_matching(E("(log (* x y))"))
        assert len(found) == 1
        rule, bindings = found[0]
        assert rule.name == "log-prod"
        assert bindings["a"] == x

    def test_rule_object(self):
        """Rule.apply rewrites at the top level only."""
        rule = Rule(parse_sexpr("(g ?a)"), parse_sexpr(":a"), "unwrap")
        assert rule.apply(E("(g y)")) == y
        assert rule.apply(E("(h (g y))")) is None

    def test_load_file(self, tmp_path):
        """Rules load from a file."""
        path = tmp_path / "logs.rules"
        path.write_text(self.LOG_RULES)
        assert len(RuleSet.from_file(path)) == 2
        assert len(load_rules_from_file(str(path))) == 2


class TestExampleRules:
    """Tests for the bundled examples/trig.rules file."""

    RULES_FILE = Path(__file__).resolve().parents[2] / "examples" / "trig.rules"

    @pytest.fixture
    def rules(self):
        if not self.RULES_FILE.exists():
            pytest.skip("examples directory not available")
        return RuleSet.from_file(self.RULES_FILE)

    def test_pythagoras(self, rules):
        """sin^2 + cos^2 rewrites to 1."""
        assert rules(E("(+ (^ (sin y) 2) (^ (cos y) 2))")) == Expression.integer(1)

    def test_tan_definition(self, rules):
        """sin/cos rewrites to tan."""
        assert rules(E("(/ (sin t) (cos t))")) == E("(tan t)")

    def test_double_angle(self, rules):
        """2 sin cos rewrites to sin of the doubled angle."""
        assert rules(E("(* 2 (sin t) (cos t))")) == E("(sin (* 2 t))")
