"""Compile-time expression language (`${{ ... }}`).

This package provides:
- parse_expression(): Lark-based parser producing an ExpressionNode tree
- CompilationSession: parse cache and counter() state
- ExpressionEvaluator: evaluation and string interpolation against a context
- Value helpers: UNDEFINED, ExpressionBool, compare_values, to_boolean
"""

from __future__ import annotations

from pipeline_studio.expressions.evaluator import (
    ExpressionEvaluator,
    is_full_expression,
    strip_expression_delimiters,
)
from pipeline_studio.expressions.functions import call_builtin, is_builtin
from pipeline_studio.expressions.parser import ExpressionNode, parse_expression
from pipeline_studio.expressions.session import CompilationSession
from pipeline_studio.expressions.values import (
    UNDEFINED,
    AliasedList,
    ExpressionBool,
    compare_values,
    to_boolean,
    to_display_string,
)

__all__ = [
    "UNDEFINED",
    "AliasedList",
    "CompilationSession",
    "ExpressionBool",
    "ExpressionEvaluator",
    "ExpressionNode",
    "call_builtin",
    "compare_values",
    "is_builtin",
    "is_full_expression",
    "parse_expression",
    "strip_expression_delimiters",
    "to_boolean",
    "to_display_string",
]
