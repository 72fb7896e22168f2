"""Document expansion: directives, template inclusion and normalization.

This package provides:
- ExecutionContext: scoped parameters, variables, resources and locals
- DocumentExpander: recursive expansion of a parsed pipeline tree
- TemplateResolver: `template:` reference lookup and inclusion
- validate_template_parameters(): parameter contract checking
"""

from __future__ import annotations

from pipeline_studio.expansion.context import ExecutionContext
from pipeline_studio.expansion.directives import (
    Directive,
    Each,
    Else,
    ElseIf,
    If,
    Insert,
    classify_directive,
)
from pipeline_studio.expansion.expander import DocumentExpander, normalize_collection
from pipeline_studio.expansion.parameters import (
    extract_parameters,
    extract_variables,
    validate_template_parameters,
)
from pipeline_studio.expansion.repositories import (
    RepositoryList,
    merge_repository_configs,
    merge_resources,
)
from pipeline_studio.expansion.templates import (
    MAX_TEMPLATE_DEPTH,
    TemplateLocation,
    TemplateResolver,
    extract_template_body,
    is_template_reference,
    parse_repository_reference,
)

__all__ = [
    "MAX_TEMPLATE_DEPTH",
    "Directive",
    "DocumentExpander",
    "Each",
    "Else",
    "ElseIf",
    "ExecutionContext",
    "If",
    "Insert",
    "RepositoryList",
    "TemplateLocation",
    "TemplateResolver",
    "classify_directive",
    "extract_parameters",
    "extract_template_body",
    "extract_variables",
    "is_template_reference",
    "merge_repository_configs",
    "merge_resources",
    "normalize_collection",
    "parse_repository_reference",
    "validate_template_parameters",
]
