"""Execution context for document expansion.

Contexts form a tree. A loop iteration gets a child that adds locals; a
template inclusion gets a frame with its own parameters and base directory.
Both share the parent's `variables` map, `resources` and the formatting
bookkeeping by reference, so variables declared mid-walk stay visible to
everything expanded afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pipeline_studio.serialization.fidelity import QuoteStyleTracker

__all__ = ["ExecutionContext"]


@dataclass(slots=True)
class ExecutionContext:
    """Scoped lookup environment for expressions and directives.

    Attributes:
        parameters: Parameter values of the current template frame.
        variables: Variable values, shared by every frame of one expansion.
        resources: Declared resources; `repositories` is a RepositoryList.
        locals: Loop-bound names, shadowing parameters and variables.
        base_dir: Directory relative template paths resolve against.
        repository_base_dir: Root of the active external repository, if any.
        resource_locations: Caller-supplied repository alias to path map.
        template_stack: Template identifiers being expanded, outermost first.
        multiline_expression_blocks: Trimmed expanded text of multi-line
            values that originally held an expression.
        multiline_last_line_blocks: Same, restricted to values whose last
            non-blank line held the expression.
        formatting: Quote-style tracker fed by template loads.
        azure_compatible: Render blocks the way the pipeline service does.
    """

    parameters: dict[str, Any] = field(default_factory=dict)
    variables: dict[str, Any] = field(default_factory=dict)
    resources: dict[str, Any] = field(default_factory=dict)
    locals: dict[str, Any] = field(default_factory=dict)
    base_dir: Path = field(default_factory=Path.cwd)
    repository_base_dir: Path | None = None
    resource_locations: dict[str, str] = field(default_factory=dict)
    template_stack: tuple[str, ...] = ()
    multiline_expression_blocks: set[str] = field(default_factory=set)
    multiline_last_line_blocks: set[str] = field(default_factory=set)
    formatting: QuoteStyleTracker | None = None
    azure_compatible: bool = False

    def child(self, **bindings: Any) -> ExecutionContext:
        """Context for one loop iteration, adding `bindings` to locals."""
        return replace(self, locals={**self.locals, **bindings})

    def for_template(
        self,
        parameters: dict[str, Any],
        *,
        template: str,
        base_dir: Path,
        repository_base_dir: Path | None,
    ) -> ExecutionContext:
        """Frame for an included template.

        Parameters are replaced, locals are copied, the template identifier
        is pushed onto the call stack.
        """
        return replace(
            self,
            parameters=parameters,
            locals=dict(self.locals),
            base_dir=base_dir,
            repository_base_dir=repository_base_dir,
            template_stack=(*self.template_stack, template),
        )
