from __future__ import annotations

from pipeline_studio.exceptions.base import PipelineStudioError


class ExpressionError(PipelineStudioError):
    """Base exception for `${{ }}` expression errors.

    Expression errors are internal to the evaluator: a syntactically invalid
    expression degrades to literal text or an unresolved path and is never
    raised out of an expansion.

    Attributes:
        message: Human-readable error message.
        expression: The expression that caused the error (if known).
    """

    def __init__(
        self,
        message: str,
        expression: str | None = None,
    ) -> None:
        """Initialize the ExpressionError.

        Args:
            message: Human-readable error message.
            expression: The expression that caused the error.
        """
        self.expression = expression
        super().__init__(message)


class ExpressionSyntaxError(ExpressionError):
    """Exception raised when expression text cannot be parsed.

    Attributes:
        message: Human-readable error message.
        expression: The expression that failed to parse.
        position: Character position in the expression where the error occurred.
    """

    def __init__(
        self,
        message: str,
        expression: str,
        position: int = 0,
    ) -> None:
        """Initialize the ExpressionSyntaxError.

        Args:
            message: Human-readable error message.
            expression: The expression that failed to parse.
            position: Character position where the error occurred.
        """
        self.position = position
        if position > 0 and expression:
            error_line = f"{expression}\n{' ' * position}^"
            full_message = f"{message} at position {position}:\n{error_line}"
        else:
            full_message = f"{message}: {expression}"
        super().__init__(full_message, expression=expression)
