"""cio diagnostics — the exception taxonomy shared by every stage."""

from __future__ import annotations


class CioError(Exception):
    """Base error for template parsing, evaluation and typed input."""

    def __init__(self, msg: str, pos: int | None = None):
        if pos is None:
            super().__init__(msg)
        else:
            super().__init__(f"{msg} at col {pos}")
        self.msg = msg
        self.pos = pos


class MalformedTemplateError(CioError):
    """Unbalanced braces, empty placeholder or invalid format spec."""


class ExpressionSyntaxError(CioError):
    """Placeholder expression text does not parse."""


class EvaluationError(CioError):
    """Base for failures while evaluating a placeholder expression."""


class UnresolvedNameError(EvaluationError, NameError):
    """Identifier not bound in the environment or an enclosing closure."""


class UnsupportedOperationError(EvaluationError):
    """Operator, method or cast target outside the supported set."""


class TypeMismatchError(EvaluationError, TypeError):
    """Operand kinds incompatible with the operator or method."""


class IndexLookupError(EvaluationError, IndexError):
    """Index out of bounds, missing key or field, or unwrap of a missing value."""


class DivisionByZeroError(EvaluationError, ZeroDivisionError):
    """Integer or float division/remainder by zero."""


class InputClosedError(CioError, EOFError):
    """The input stream ended while a typed read was still prompting."""
