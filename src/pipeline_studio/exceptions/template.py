"""Template inclusion errors.

Parameter contract violations are collected as typed records and carried on
a single ParameterValidationError; the human-readable message is rendered
from those records by render_validation_message().
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pipeline_studio.exceptions.base import PipelineStudioError

__all__ = [
    "TemplateError",
    "TemplateNotFoundError",
    "RepositoryResolutionError",
    "ParameterValidationError",
    "ViolationKind",
    "ParameterViolation",
    "render_call_stack",
    "render_validation_message",
]


class TemplateError(PipelineStudioError):
    """Base exception for template inclusion failures.

    Attributes:
        message: Human-readable error message.
        template: The template reference being expanded (if known).
    """

    def __init__(self, message: str, template: str | None = None) -> None:
        """Initialize the TemplateError.

        Args:
            message: Human-readable error message.
            template: Optional template reference as written at the call site.
        """
        self.template = template
        super().__init__(message)


class TemplateNotFoundError(TemplateError):
    """Raised when no candidate file exists for a template reference.

    Also raised when a repository alias is known but has no usable local
    location.

    Attributes:
        message: Human-readable error message.
        template: The template reference as written.
        searched: Candidate paths that were tried, in order.
    """

    def __init__(
        self,
        message: str,
        template: str | None = None,
        searched: Sequence[str] = (),
    ) -> None:
        """Initialize the TemplateNotFoundError.

        Args:
            message: Human-readable error message.
            template: Optional template reference as written.
            searched: Candidate paths that were tried.
        """
        self.searched = tuple(searched)
        super().__init__(message, template=template)


class RepositoryResolutionError(TemplateError):
    """Raised when a `path@alias` reference names an unknown repository.

    Attributes:
        message: Human-readable error message.
        alias: The repository alias that could not be found.
        template: The template reference as written.
    """

    def __init__(self, alias: str, template: str | None = None) -> None:
        """Initialize the RepositoryResolutionError.

        Args:
            alias: The repository alias that could not be found.
            template: Optional template reference as written.
        """
        self.alias = alias
        super().__init__(
            f"Repository resource '{alias}' is not defined for template "
            f"'{template}'.",
            template=template,
        )


class ViolationKind(str, Enum):
    """Category of a parameter contract violation."""

    MISSING = "missing"
    TYPE = "type"
    ALLOWED_VALUE = "allowed_value"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ParameterViolation:
    """One parameter contract violation.

    Attributes:
        kind: Violation category.
        name: Parameter name.
        expected_type: Declared type (type violations only).
        value: Supplied value (type and allowed-value violations).
        allowed: Declared allow-list (allowed-value violations only).
    """

    kind: ViolationKind
    name: str
    expected_type: str | None = None
    value: Any = None
    allowed: tuple[Any, ...] = ()


def _describe_value(value: Any) -> str:
    if isinstance(value, str):
        return f"string '{value}'"
    if isinstance(value, bool):
        return f"boolean {value}"
    if isinstance(value, int | float):
        return f"number {value}"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    if value is None:
        return "null"
    return type(value).__name__


def _quote(value: Any) -> str:
    return f"'{value}'"


def render_call_stack(call_stack: Sequence[str]) -> str:
    """Render a template call stack as an indented tree.

    Args:
        call_stack: Template identifiers, outermost first.

    Returns:
        One line per frame, each nested two spaces deeper than its caller.

    Example:
        >>> print(render_call_stack(["pipeline.yml", "steps/build.yml"]))
          pipeline.yml
            steps/build.yml
    """
    return "\n".join(
        f"{'  ' * (depth + 1)}{frame}" for depth, frame in enumerate(call_stack)
    )


def render_validation_message(
    template: str,
    violations: Sequence[ParameterViolation],
    call_stack: Sequence[str] = (),
) -> str:
    """Render violation records as a multi-paragraph message.

    One paragraph per violation category, followed by the call stack.

    Args:
        template: Template identifier the parameters were supplied to.
        violations: Collected violations.
        call_stack: Active template call stack, outermost first.

    Returns:
        The formatted message.
    """
    paragraphs = [f"Template parameter validation failed for '{template}'."]

    def of_kind(kind: ViolationKind) -> list[ParameterViolation]:
        return [v for v in violations if v.kind is kind]

    missing = of_kind(ViolationKind.MISSING)
    if missing:
        names = ", ".join(_quote(v.name) for v in missing)
        paragraphs.append(f"Missing required parameter(s): {names}")

    wrong_type = of_kind(ViolationKind.TYPE)
    if wrong_type:
        lines = ["Invalid parameter type(s):"]
        lines.extend(
            f"  - '{v.name}': expected type '{v.expected_type}', "
            f"got {_describe_value(v.value)}"
            for v in wrong_type
        )
        paragraphs.append("\n".join(lines))

    not_allowed = of_kind(ViolationKind.ALLOWED_VALUE)
    if not_allowed:
        lines = ["Invalid parameter value(s) (not in allowed values):"]
        lines.extend(
            f"  - '{v.name}': {_quote(v.value)} is not one of the allowed values: "
            + ", ".join(_quote(a) for a in v.allowed)
            for v in not_allowed
        )
        paragraphs.append("\n".join(lines))

    unknown = of_kind(ViolationKind.UNKNOWN)
    if unknown:
        names = ", ".join(_quote(v.name) for v in unknown)
        paragraphs.append(f"Unknown parameter(s): {names}")

    if call_stack:
        paragraphs.append("Template call stack:\n" + render_call_stack(call_stack))

    return "\n\n".join(paragraphs)


class ParameterValidationError(TemplateError):
    """Aggregated parameter contract violations for one template inclusion.

    Attributes:
        message: Rendered multi-paragraph message.
        template: Template identifier the parameters were supplied to.
        violations: Every violation found, in declaration order.
        call_stack: Active template call stack, outermost first.
    """

    def __init__(
        self,
        template: str,
        violations: Sequence[ParameterViolation],
        call_stack: Sequence[str] = (),
    ) -> None:
        """Initialize the ParameterValidationError.

        Args:
            template: Template identifier the parameters were supplied to.
            violations: Collected violations (must not be empty).
            call_stack: Active template call stack, outermost first.
        """
        self.violations = tuple(violations)
        self.call_stack = tuple(call_stack)
        super().__init__(
            render_validation_message(template, self.violations, self.call_stack),
            template=template,
        )
