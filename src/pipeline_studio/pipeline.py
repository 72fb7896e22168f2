"""Pipeline expansion entry points.

PipelineExpander ties the pieces together: load the YAML (recording quote
styles), build the root ExecutionContext from document declarations and
caller overrides, expand, then restore formatting and render.

Example:
    ```python
    from pipeline_studio import PipelineExpander

    expander = PipelineExpander()
    text = expander.expand_pipeline_to_string(
        source,
        {"parameters": {"env": "prod"}, "resourceLocations": {"templates": "../templates"}},
    )
    ```

The module-level helpers use a fresh CompilationSession per call, so
`counter()` sequences and parse caches never leak between calls.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pipeline_studio.config import ExpansionOptions, parse_options
from pipeline_studio.expansion.context import ExecutionContext
from pipeline_studio.expansion.expander import DocumentExpander
from pipeline_studio.expansion.parameters import extract_parameters, extract_variables
from pipeline_studio.expansion.parameters import (
    validate_template_parameters as _validate_template_parameters,
)
from pipeline_studio.expansion.repositories import merge_resources
from pipeline_studio.expressions.evaluator import ExpressionEvaluator
from pipeline_studio.expressions.session import CompilationSession
from pipeline_studio.logging import get_logger
from pipeline_studio.serialization.fidelity import BlockScalarHints, QuoteStyleTracker
from pipeline_studio.serialization.loader import load_pipeline
from pipeline_studio.serialization.writer import dump_pipeline

__all__ = [
    "ExpansionResult",
    "PipelineExpander",
    "build_execution_context",
    "expand_pipeline_from_file",
    "expand_pipeline_to_string",
    "validate_template_parameters",
]

logger = get_logger(__name__)

Overrides = ExpansionOptions | Mapping[str, Any] | None


@dataclass(frozen=True, slots=True)
class ExpansionResult:
    """Outcome of one expansion.

    Attributes:
        document: Expanded tree (plain values, styles not yet applied).
        context: Root context, including the multi-line block bookkeeping.
        formatting: Quote styles recorded from the document and templates.
    """

    document: Any
    context: ExecutionContext
    formatting: QuoteStyleTracker

    def styled_document(self) -> Any:
        return self.formatting.restore(self.document)

    def block_hints(self) -> BlockScalarHints:
        return BlockScalarHints.from_context(self.context)

    def to_yaml(self) -> str:
        return dump_pipeline(self.styled_document(), self.block_hints())


def build_execution_context(
    document: Any,
    options: ExpansionOptions,
    tracker: QuoteStyleTracker | None = None,
) -> ExecutionContext:
    """Root context: document declarations merged with caller overrides."""
    declared_resources = document.get("resources") if isinstance(document, Mapping) else None

    file_dir = Path(options.file_name).parent if options.file_name else None
    base_dir = (options.base_dir or file_dir or Path.cwd()).resolve()
    repository_base_dir = (
        options.repository_base_dir.resolve() if options.repository_base_dir else base_dir
    )

    if isinstance(options.template_stack, str):
        template_stack: tuple[str, ...] = (options.template_stack,)
    elif options.template_stack:
        template_stack = tuple(options.template_stack)
    else:
        template_stack = (options.file_name or "inline",)

    return ExecutionContext(
        parameters={**extract_parameters(document), **options.parameters},
        variables={**extract_variables(document), **options.variables},
        resources=merge_resources(declared_resources, options.resources),
        locals=dict(options.locals),
        base_dir=base_dir,
        repository_base_dir=repository_base_dir,
        resource_locations=dict(options.resource_locations),
        template_stack=template_stack,
        formatting=tracker,
        azure_compatible=options.azure_compatible,
    )


class PipelineExpander:
    """Expands pipeline documents.

    Args:
        session: Compilation session to use. Its parse cache and `counter()`
            state persist across every call on this expander.
    """

    def __init__(self, session: CompilationSession | None = None) -> None:
        self.session = session or CompilationSession()
        self.expander = DocumentExpander(ExpressionEvaluator(self.session))

    def expand_pipeline(self, source_text: str, overrides: Overrides = None) -> ExpansionResult:
        """Expand pipeline YAML text.

        Raises:
            PipelineParseError: The text (or an included template) is not YAML.
            TemplateError: A template reference could not be expanded.
            ConfigError: The overrides are malformed.
        """
        options = parse_options(overrides)
        tracker = QuoteStyleTracker()
        document = load_pipeline(source_text, tracker=tracker, file_path=options.file_name)
        context = build_execution_context(document, options, tracker)

        logger.debug(
            "pipeline_expansion_started",
            file=options.file_name,
            base_dir=str(context.base_dir),
            parameters=sorted(context.parameters),
        )
        expanded = self.expander.expand(document, context)
        return ExpansionResult(document=expanded, context=context, formatting=tracker)

    def expand_pipeline_to_string(self, source_text: str, overrides: Overrides = None) -> str:
        return self.expand_pipeline(source_text, overrides).to_yaml()

    def expand_pipeline_from_file(self, file_path: str | Path, overrides: Overrides = None) -> Any:
        """Expand a pipeline file.

        The file's folder becomes the base directory for relative templates.

        Returns:
            The expanded tree with recorded quote styles applied.
        """
        return self._expand_file(file_path, overrides).styled_document()

    def expand_file_to_string(self, file_path: str | Path, overrides: Overrides = None) -> str:
        return self._expand_file(file_path, overrides).to_yaml()

    def _expand_file(self, file_path: str | Path, overrides: Overrides) -> ExpansionResult:
        path = Path(file_path)
        options = parse_options(overrides).model_copy(
            update={"file_name": str(path), "base_dir": path.parent}
        )
        return self.expand_pipeline(path.read_text(encoding="utf-8"), options)

    def validate_template_parameters(
        self,
        template_document: Any,
        provided: Mapping[str, Any],
        template_path: str,
        context: ExecutionContext | None = None,
    ) -> None:
        _validate_template_parameters(template_document, provided, template_path, context)

    def resolve_template_path(self, template: str, context: ExecutionContext) -> Path:
        """File a template identifier points to (which may not exist)."""
        return self.expander.templates.locate(template, context).path

    def resolve_repository_entry(
        self, alias: str, context: ExecutionContext
    ) -> dict[str, Any] | None:
        return self.expander.templates.resolve_repository_entry(alias, context)


def expand_pipeline_from_file(file_path: str | Path, overrides: Overrides = None) -> Any:
    return PipelineExpander().expand_pipeline_from_file(file_path, overrides)


def expand_pipeline_to_string(source_text: str, overrides: Overrides = None) -> str:
    return PipelineExpander().expand_pipeline_to_string(source_text, overrides)


def validate_template_parameters(
    template_document: Any,
    provided: Mapping[str, Any],
    template_path: str,
    context: ExecutionContext | None = None,
) -> None:
    """Check call-site parameters against a template's declared contract.

    Raises:
        ParameterValidationError: With every violation found.
    """
    _validate_template_parameters(template_document, provided, template_path, context)
