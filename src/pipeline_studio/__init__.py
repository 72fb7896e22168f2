"""Pipeline Studio - compile-time expansion for YAML pipeline definitions.

Expands `${{ }}` expressions, conditional and loop directives, inserts and
cross-file template references into a literal pipeline document, then
re-serializes it with the original quoting and block-scalar choices.

Usage:
    from pipeline_studio import expand_pipeline_to_string

    print(expand_pipeline_to_string(source, {"fileName": "azure-pipelines.yml"}))
"""

from __future__ import annotations

from pipeline_studio.pipeline import (
    ExpansionResult,
    PipelineExpander,
    expand_pipeline_from_file,
    expand_pipeline_to_string,
    validate_template_parameters,
)

__version__ = "0.4.0"

__all__ = [
    "__version__",
    "ExpansionResult",
    "PipelineExpander",
    "expand_pipeline_from_file",
    "expand_pipeline_to_string",
    "validate_template_parameters",
]
