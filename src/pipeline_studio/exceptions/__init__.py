"""Pipeline Studio exception hierarchy.

All exceptions can be imported from this package:
    from pipeline_studio.exceptions import ParameterValidationError
"""

from __future__ import annotations

# Base exception
from pipeline_studio.exceptions.base import PipelineStudioError

# Configuration exceptions
from pipeline_studio.exceptions.config import ConfigError

# Expression exceptions
from pipeline_studio.exceptions.expression import (
    ExpressionError,
    ExpressionSyntaxError,
)

# Parse exceptions
from pipeline_studio.exceptions.parse import PipelineParseError

# Template exceptions
from pipeline_studio.exceptions.template import (
    ParameterValidationError,
    ParameterViolation,
    RepositoryResolutionError,
    TemplateError,
    TemplateNotFoundError,
    ViolationKind,
    render_call_stack,
    render_validation_message,
)

__all__ = [
    # Base
    "PipelineStudioError",
    # Config
    "ConfigError",
    # Expressions
    "ExpressionError",
    "ExpressionSyntaxError",
    # Parse
    "PipelineParseError",
    # Templates
    "ParameterValidationError",
    "ParameterViolation",
    "RepositoryResolutionError",
    "TemplateError",
    "TemplateNotFoundError",
    "ViolationKind",
    "render_call_stack",
    "render_validation_message",
]
