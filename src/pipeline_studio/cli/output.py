"""Output formatting for CLI messages."""

from __future__ import annotations

from pipeline_studio.exceptions import ConfigError

__all__ = [
    "format_error",
    "format_config_error",
]


def format_error(
    message: str, details: list[str] | None = None, suggestion: str | None = None
) -> str:
    """Format an error message with optional details and suggestion.

    Args:
        message: Primary error message.
        details: Optional list of detail lines to include.
        suggestion: Optional suggestion for resolving the error.

    Returns:
        Formatted error string with details and suggestion if provided.

    Example:
        >>> print(format_error(
        ...     "Template file not found: steps/build.yml",
        ...     suggestion="Check the path relative to the including file",
        ... ))
        Error: Template file not found: steps/build.yml
        Suggestion: Check the path relative to the including file
    """
    lines = [f"Error: {message}"]

    if details:
        for detail in details:
            lines.append(f"  {detail}")

    if suggestion:
        lines.append(f"Suggestion: {suggestion}")

    return "\n".join(lines)


def format_config_error(error: ConfigError) -> str:
    return format_error(error.message, error.detail_lines())
