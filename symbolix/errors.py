"""
Error taxonomy for symbolix.

Construction of expressions never raises: anything mathematically
questionable is left as an unevaluated node. These exceptions are raised
by Number arithmetic and by evaluate() when a concrete value falls outside
a function's domain.

All errors derive from MathError, which is an ArithmeticError. Several
kinds also derive from the closest builtin so callers can catch either:

    try:
        E("(sqrt -1)").evaluate()
    except DomainError as e:
        print(e)           # sqrt requires non-negative input in the real domain
    except ValueError:
        ...                # DomainError is also a ValueError
"""

from typing import Any, Optional


class MathError(ArithmeticError):
    """Base class for all mathematical errors raised by symbolix."""

    kind = "math error"

    def __init__(self, message: Optional[str] = None, **fields: Any):
        self.fields = fields
        for key, value in fields.items():
            setattr(self, key, value)
        super().__init__(message or self.default_message())

    def default_message(self) -> str:
        return self.kind

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else self.kind


class DomainError(MathError, ValueError):
    """Operation is undefined for the given real input.

    Fields: operation, value, reason
    """

    kind = "domain error"

    def __init__(self, operation: str, value: Any = None, reason: Optional[str] = None):
        self.operation = operation
        self.value = value
        self.reason = reason
        super().__init__(None, operation=operation, value=value, reason=reason)

    def default_message(self) -> str:
        if self.reason:
            return f"{self.operation} {self.reason}"
        return f"{self.operation} is undefined at {self.value}"


class Pole(MathError):
    """Function has an infinite singularity at the given point.

    Fields: function, at
    """

    kind = "pole"

    def __init__(self, function: str, at: Any = None):
        self.function = function
        self.at = at
        super().__init__(None, function=function, at=at)

    def default_message(self) -> str:
        return f"{self.function} has a pole at {self.at}"


class BranchCut(MathError):
    """Multi-valued function evaluated on its branch cut in the real domain.

    Fields: function, value
    """

    kind = "branch cut"

    def __init__(self, function: str, value: Any = None):
        self.function = function
        self.value = value
        super().__init__(None, function=function, value=value)

    def default_message(self) -> str:
        return (f"{self.function} is on its branch cut at {self.value} "
                f"(no real value)")


class DivisionByZero(MathError, ZeroDivisionError):
    """Division by a concrete zero, including 0 raised to a negative power."""

    kind = "division by zero"


class Undefined(MathError):
    """Indeterminate form such as 0^0.

    Fields: expression
    """

    kind = "undefined"

    def __init__(self, expression: Any = None, message: Optional[str] = None):
        self.expression = expression
        super().__init__(message, expression=expression)

    def default_message(self) -> str:
        if self.expression is not None:
            return f"{self.expression} is undefined (indeterminate form)"
        return "indeterminate form"


class NumericOverflow(MathError, OverflowError):
    """Float operation produced infinity or NaN, or a conversion overflowed.

    Fields: operation
    """

    kind = "numeric overflow"

    def __init__(self, operation: str = "", message: Optional[str] = None):
        self.operation = operation
        super().__init__(message, operation=operation)

    def default_message(self) -> str:
        if self.operation:
            return f"numeric overflow in {self.operation}"
        return "numeric overflow"


class MathNotImplementedError(MathError, NotImplementedError):
    """Feature deliberately unsupported."""

    kind = "not implemented"


class NonNumericalResult(MathError):
    """Expression could not be reduced to a plain number.

    Fields: expression
    """

    kind = "non-numerical result"

    def __init__(self, expression: Any = None):
        self.expression = expression
        super().__init__(None, expression=expression)

    def default_message(self) -> str:
        return f"expression does not evaluate to a number: {self.expression}"
