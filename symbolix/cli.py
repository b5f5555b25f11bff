#!/usr/bin/env python3
"""
symbolix Command-Line Interface

Provides interactive REPL, script execution, and pipe/filter modes.

Usage:
    symbolix                              # Start REPL
    symbolix script.sym                   # Run script
    symbolix -e "(+ x x)"                 # Simplify expression
    symbolix --evaluate -e "(sqrt -1)"    # Evaluate (reports domain errors)
    symbolix --numeric -e "(* 2 pi)"      # Evaluate to a float
    symbolix --let x=3 -e "(^ x 2)"       # Substitute before simplifying
    symbolix -r trig.rules                # REPL with rules preloaded
    echo "(+ x x)" | symbolix             # Filter mode

Script Format (.sym files):
    #!/usr/bin/env symbolix
    :load trig.rules
    :let a 2

    @log-prod: (log (* ?a ?b)) => (+ (log :a) (log :b))

    (log (* a x))
    (* a a)

REPL Commands:
    :help              Show help
    :load FILE         Load rules from file
    :rules             List loaded rules
    :clear             Clear all rules
    :eval on|off       Toggle evaluation (domain-checked)
    :numeric on|off    Toggle numeric (float) evaluation
    :let NAME VALUE    Bind a variable
    :unlet NAME        Remove a variable binding
    :vars              List variable bindings
    :trace on|off      Toggle rule tracing
    :quit              Exit
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from . import __version__
from .errors import MathError
from .evaluate import EvalContext, evaluate
from .expression import Expression
from .rewriter import RuleSet, load_rules_from_dsl
from .sexpr import E, format_sexpr

# readline is unavailable on some platforms; the REPL works without it
try:
    import readline
    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

ON_VALUES = ("on", "true", "1")
OFF_VALUES = ("off", "false", "0")


class SymbolixCompleter:
    """Tab completer for the symbolix REPL."""

    COMMANDS = [
        ":help", ":quit", ":exit", ":q",
        ":load", ":rules", ":clear",
        ":eval", ":numeric", ":trace",
        ":let", ":unlet", ":vars",
    ]

    TOGGLE_OPTIONS = ["on", "off"]

    def __init__(self, repl: 'SymbolixREPL'):
        self.repl = repl
        self.matches: List[str] = []

    def complete(self, text: str, state: int) -> Optional[str]:
        """Return the next possible completion for 'text'."""
        if state == 0:
            line = readline.get_line_buffer() if HAS_READLINE else ""
            self.matches = self._get_matches(text, line)
        try:
            return self.matches[state]
        except IndexError:
            return None

    def _get_matches(self, text: str, line: str) -> List[str]:
        line = line.lstrip()

        if line.startswith((":eval ", ":numeric ", ":trace ")):
            return [t for t in self.TOGGLE_OPTIONS if t.startswith(text)]

        if line.startswith(":unlet "):
            return [v for v in self.repl.variables if v.startswith(text)]

        if line.startswith(":load "):
            return self._complete_path(text)

        if text.startswith(":") or (line.startswith(":") and " " not in line):
            return [c for c in self.COMMANDS if c.startswith(text)]

        return []

    def _complete_path(self, text: str) -> List[str]:
        import glob

        pattern = (text or "./") + "*"
        matches = []
        for path in glob.glob(pattern):
            matches.append(path + "/" if Path(path).is_dir() else path)
        return matches


def count_parens(text: str) -> int:
    """Count unbalanced parentheses. Returns >0 if more open than close."""
    depth = 0
    for c in text:
        if c == '(':
            depth += 1
        elif c == ')':
            depth -= 1
    return depth


def _toggle(current: bool, arg: str) -> bool:
    arg = arg.lower()
    if arg in ON_VALUES:
        return True
    if arg in OFF_VALUES:
        return False
    return not current


class SymbolixREPL:
    """Interactive REPL for symbolix."""

    def __init__(self, use_readline: bool = True):
        self.rules = RuleSet()
        self.variables: Dict[str, Expression] = {}
        self.evaluating = False
        self.numeric = False
        self.trace = False
        self.running = True
        self.multi_line_buffer = ""
        self.use_readline = use_readline and HAS_READLINE

        if self.use_readline:
            self.history_file = Path.home() / ".symbolix_history"
            try:
                readline.read_history_file(self.history_file)
            except FileNotFoundError:
                pass
            readline.set_history_length(1000)

            self.completer = SymbolixCompleter(self)
            readline.set_completer(self.completer.complete)
            readline.parse_and_bind("tab: complete")
            readline.set_completer_delims(" \t\n")

    def save_history(self):
        """Save readline history."""
        if self.use_readline:
            try:
                readline.write_history_file(self.history_file)
            except OSError as e:
                print(f"Could not save history: {e}", file=sys.stderr)

    def set_variable(self, name: str, value: str) -> Expression:
        """Bind name to the simplified value of an s-expression."""
        expr = E(value)
        self.variables[name] = expr
        return expr

    def handle_command(self, line: str) -> Optional[str]:
        """
        Handle a REPL command (starts with :).

        Returns a message to print, or None.
        """
        parts = line[1:].split(None, 1)
        if not parts:
            return "Unknown command. Type :help for help."

        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd == "help":
            return self.help_text()

        elif cmd in ("quit", "exit", "q"):
            self.running = False
            return None

        elif cmd == "load":
            if not arg:
                return "Usage: :load FILENAME"
            try:
                before = len(self.rules)
                self.rules.load_file(Path(arg))
                return f"Loaded {len(self.rules) - before} rules from {arg}"
            except (OSError, ValueError) as e:
                return f"Error loading {arg}: {e}"

        elif cmd == "rules":
            if not len(self.rules):
                return "No rules loaded"
            return "\n".join(repr(rule) for rule in self.rules)

        elif cmd == "clear":
            self.rules = RuleSet()
            return "Cleared all rules"

        elif cmd == "eval":
            self.evaluating = _toggle(self.evaluating, arg)
            return f"Evaluation {'enabled' if self.evaluating else 'disabled'}"

        elif cmd == "numeric":
            self.numeric = _toggle(self.numeric, arg)
            return f"Numeric mode {'enabled' if self.numeric else 'disabled'}"

        elif cmd == "trace":
            self.trace = _toggle(self.trace, arg)
            return f"Tracing {'enabled' if self.trace else 'disabled'}"

        elif cmd == "let":
            pieces = arg.split(None, 1)
            if len(pieces) != 2:
                return "Usage: :let NAME VALUE"
            try:
                value = self.set_variable(pieces[0], pieces[1])
            except ValueError as e:
                return f"Error: {e}"
            return f"{pieces[0]} = {format_sexpr(value)}"

        elif cmd == "unlet":
            if arg not in self.variables:
                return f"Unknown variable: {arg}"
            del self.variables[arg]
            return f"Removed {arg}"

        elif cmd == "vars":
            if not self.variables:
                return "No variables bound"
            return "\n".join(f"{name} = {format_sexpr(value)}"
                             for name, value in sorted(self.variables.items()))

        else:
            return f"Unknown command: {cmd}. Type :help for help."

    def help_text(self) -> str:
        """Return help text."""
        return """symbolix REPL Commands:
  :help              Show this help
  :load FILE         Load rules from a .rules file
  :rules             List all loaded rules
  :clear             Clear all rules
  :eval on|off       Toggle domain-checked evaluation
  :numeric on|off    Toggle numeric (float) evaluation
  :let NAME VALUE    Bind a variable, e.g. :let x 3
  :unlet NAME        Remove a variable binding
  :vars              List variable bindings
  :trace on|off      Show which rules were applied
  :quit              Exit

Syntax:
  @name: (pattern) => (skeleton)           Define a rule
  (expression)                             Simplify an expression
"""

    def compute(self, text: str):
        """
        Simplify, rewrite and optionally evaluate one expression.

        Returns:
            (result, steps) where steps lists rule applications when tracing

        Raises:
            ValueError: If the text does not parse
            MathError: If evaluation hits a domain error
        """
        expr = E(text)
        if self.variables:
            expr = expr.substitute(self.variables)
        steps = []
        if len(self.rules):
            if self.trace:
                expr, steps = self.rules.rewrite(expr, trace=True)
            else:
                expr = self.rules.rewrite(expr)
        if self.evaluating or self.numeric:
            expr = evaluate(expr, EvalContext(numeric=self.numeric))
        return expr, steps

    def process_line(self, line: str) -> Optional[str]:
        """
        Process a single line of input.

        Returns the result to print, or None.
        """
        line = line.strip()

        if not line or line.startswith("#"):
            return None

        if line.startswith(":"):
            return self.handle_command(line)

        if "=>" in line:
            try:
                parsed = load_rules_from_dsl(line)
            except ValueError as e:
                return f"Error: {e}"
            for rule in parsed:
                self.rules.add_rule(rule.pattern, rule.skeleton, rule.name, rule.description)
            return f"Added {len(parsed)} rule(s)"

        try:
            result, steps = self.compute(line)
        except (MathError, ValueError) as e:
            return f"Error: {e}"

        output = format_sexpr(result)
        if steps:
            return output + "\n" + "\n".join(f"  {step}" for step in steps)
        return output

    def run(self):
        """Run the REPL loop."""
        print("symbolix - symbolic expressions, simplification and evaluation")
        print("Type :help for help, :quit to exit")
        print()

        while self.running:
            try:
                prompt = "...... " if self.multi_line_buffer else "symbolix> "
                line = input(prompt)

                if self.multi_line_buffer:
                    self.multi_line_buffer += "\n" + line
                else:
                    self.multi_line_buffer = line

                paren_count = count_parens(self.multi_line_buffer)
                if paren_count > 0:
                    continue
                elif paren_count < 0:
                    print("Error: Unbalanced parentheses (too many closing)")
                    self.multi_line_buffer = ""
                    continue

                complete_input = self.multi_line_buffer
                self.multi_line_buffer = ""

                result = self.process_line(complete_input)
                if result:
                    print(result)

            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                if self.multi_line_buffer:
                    print("\nInput cancelled")
                    self.multi_line_buffer = ""
                else:
                    print()
                continue

        self.save_history()


class ScriptRunner:
    """Runs symbolix scripts, single expressions and stdin filters."""

    def __init__(self, use_readline: bool = False):
        self.repl = SymbolixREPL(use_readline=use_readline)

    def run_script(self, path: Path) -> int:
        """
        Run a script file.

        Returns:
            Exit code (0 for success)
        """
        try:
            lines = path.read_text().splitlines()
        except OSError as e:
            print(f"Error reading {path}: {e}", file=sys.stderr)
            return 1

        for lineno, line in enumerate(lines, 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            result = self.repl.process_line(line)
            if not result:
                continue
            if result.startswith(("Error", "Unknown", "Usage")):
                print(f"{path}:{lineno}: {result}", file=sys.stderr)
                return 1
            if not line.startswith(":") and "=>" not in line:
                print(result)

        return 0

    def run_expression(self, expr_str: str) -> int:
        """
        Process a single expression.

        Returns:
            Exit code (0 for success)
        """
        result = self.repl.process_line(expr_str)
        if result:
            if result.startswith("Error"):
                print(result, file=sys.stderr)
                return 1
            print(result)
        return 0

    def run_stdin(self) -> int:
        """
        Read expressions from stdin, one per line.

        Returns:
            Exit code (0 for success, 1 if any line failed)
        """
        status = 0
        for line in sys.stdin:
            result = self.repl.process_line(line)
            if not result:
                continue
            if result.startswith("Error"):
                print(result, file=sys.stderr)
                status = 1
            else:
                print(result)
        return status


def parse_let(binding: str):
    """Split a NAME=VALUE command-line binding."""
    name, sep, value = binding.partition("=")
    if not sep or not name.strip() or not value.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {binding!r}")
    return name.strip(), value.strip()


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="symbolix",
        description="symbolix - symbolic expressions, simplification and evaluation",
        epilog="Examples:\n"
               "  symbolix                              Start REPL\n"
               "  symbolix script.sym                   Run script\n"
               "  symbolix -e '(+ x x)'                 Simplify expression\n"
               "  symbolix --evaluate -e '(log 0)'      Evaluate with domain checks\n"
               "  symbolix --numeric -e '(sqrt 2)'      Evaluate to a float\n"
               "  echo '(+ x x)' | symbolix             Filter mode\n",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "script",
        nargs="?",
        help="Script file to run (.sym)"
    )

    parser.add_argument(
        "-r", "--rules",
        action="append",
        default=[],
        help="Load rules from file (can be specified multiple times)"
    )

    parser.add_argument(
        "-e", "--expr",
        help="Process a single expression"
    )

    parser.add_argument(
        "--evaluate",
        action="store_true",
        help="Evaluate results with domain checking"
    )

    parser.add_argument(
        "--numeric",
        action="store_true",
        help="Evaluate results to floats"
    )

    parser.add_argument(
        "--let",
        action="append",
        default=[],
        type=parse_let,
        metavar="NAME=VALUE",
        help="Bind a variable (can be specified multiple times)"
    )

    parser.add_argument(
        "-t", "--trace",
        action="store_true",
        help="Show rule applications"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug messages to stderr"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr,
                            format="%(name)s: %(message)s")

    interactive = not args.script and not args.expr and sys.stdin.isatty()
    runner = ScriptRunner(use_readline=interactive)
    repl = runner.repl
    repl.evaluating = args.evaluate
    repl.numeric = args.numeric
    repl.trace = args.trace

    for name, value in args.let:
        try:
            repl.set_variable(name, value)
        except ValueError as e:
            print(f"Error in --let {name}: {e}", file=sys.stderr)
            sys.exit(1)

    for rules_file in args.rules:
        try:
            repl.rules.load_file(Path(rules_file))
        except (OSError, ValueError) as e:
            print(f"Error loading {rules_file}: {e}", file=sys.stderr)
            sys.exit(1)

    if args.script:
        sys.exit(runner.run_script(Path(args.script)))
    elif args.expr:
        sys.exit(runner.run_expression(args.expr))
    elif not sys.stdin.isatty():
        sys.exit(runner.run_stdin())
    else:
        repl.run()


if __name__ == "__main__":
    main()
