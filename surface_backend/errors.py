from typing import Iterable, List


class ExpressionError(ValueError):
    """Base class for every error raised while preparing an expression."""

    error_type = "ExpressionError"

    def __init__(self, message: str):
        super().__init__(f"Failed to parse expression: {message}")
        self.detail = message


class EmptyExpressionError(ExpressionError):
    error_type = "EmptyExpression"

    def __init__(self):
        super().__init__("Expression cannot be empty")


class EmptyRightHandSideError(ExpressionError):
    error_type = "EmptyRightHandSide"

    def __init__(self):
        super().__init__('Empty expression after "="')


class ExpressionSyntaxError(ExpressionError):
    """The normalized text could not be parsed or compiled."""

    error_type = "SyntaxError"


class InvalidVariablesError(ExpressionError):
    error_type = "InvalidVariables"

    def __init__(self, names: Iterable[str], allowed: Iterable[str]):
        self.names: List[str] = sorted(set(names))
        self.allowed: List[str] = sorted(set(allowed))
        allowed_str = ", ".join(f"'{a}'" for a in self.allowed)
        super().__init__(
            f"Invalid variables: {', '.join(self.names)}. Only {allowed_str} are allowed."
        )
