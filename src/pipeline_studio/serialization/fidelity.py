"""Formatting fidelity across the parse/expand/serialize cycle.

Parsing discards how scalars were written. QuoteStyleTracker remembers which
string scalars were quoted, and restores those styles on the expanded tree
so that `key: "42"` is still written as `"42"` rather than `'42'`.

A quoted scalar is recorded under three kinds of key:

    a.steps.2.displayName               exact document path
    ctx:Build app:script:make all       nearest displayName/task/name, key, value
    empty-string / glob:*.yml           universal fallbacks (first writer wins)

Lookups try them in that order. Paths only exist for the top-level
document; scalars loaded from templates are matched by context or fallback.

BlockScalarHints turns what the expander observed about multi-line values
into block-scalar styles, and insert_heredoc_separators() prepares here-doc
bodies for folded rendering.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pipeline_studio.expansion.context import ExecutionContext

__all__ = [
    "QUOTE_STYLES",
    "SEQUENCE_ITEM_KEY",
    "BlockScalarHints",
    "QuoteStyleTracker",
    "StyledScalar",
    "context_name",
    "insert_heredoc_separators",
]

QUOTE_STYLES = ('"', "'")
SEQUENCE_ITEM_KEY = "-"

_CONTEXT_KEYS = ("displayName", "task", "name")
_EMPTY_STRING = "empty-string"
_HEREDOC_START = re.compile(r"(?<!<)<<(?!<)-?\s*(['\"]?)([A-Za-z_][A-Za-z0-9_]*)\1")


class StyledScalar(str):
    """A string that carries the quote style it should be written with."""

    style: str

    def __new__(cls, value: str, style: str) -> StyledScalar:
        scalar = super().__new__(cls, value)
        scalar.style = style
        return scalar

    def __reduce__(self) -> tuple[Any, ...]:
        return (StyledScalar, (str(self), self.style))


def context_name(mapping: Mapping[Any, Any], inherited: str | None = None) -> str | None:
    """Context label for scalars inside `mapping`.

    The mapping's own `displayName` wins over `task`, which wins over `name`;
    without any of them the enclosing context is kept.
    """
    for key in _CONTEXT_KEYS:
        value = mapping.get(key)
        if isinstance(value, str) and value:
            return value
    return inherited


def _join(path: str, segment: Any) -> str:
    return f"{path}.{segment}" if path else str(segment)


class QuoteStyleTracker:
    """Records quote styles of parsed scalars and restores them later.

    Example:
        ```python
        tracker = QuoteStyleTracker()
        document = load_pipeline(text, tracker=tracker)
        expanded = expander.expand(document, context)
        restored = tracker.restore(expanded)
        ```
    """

    def __init__(self) -> None:
        self._by_path: dict[str, str] = {}
        self._by_context: dict[str, str] = {}
        self._fallbacks: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._by_path) + len(self._by_context) + len(self._fallbacks)

    @staticmethod
    def context_key(context: str | None, key: Any, value: str) -> str:
        return f"ctx:{context or ''}:{key}:{value}"

    @staticmethod
    def fallback_key(value: str) -> str | None:
        if value == "":
            return _EMPTY_STRING
        if "*" in value:
            return f"glob:{value}"
        return None

    def record(
        self,
        path: str,
        context: str | None,
        key: Any,
        value: str,
        style: str,
        *,
        record_path: bool = True,
    ) -> None:
        """Remember the style of one quoted scalar.

        Args:
            path: Dotted document path of the scalar.
            context: Context label of the enclosing mapping.
            key: Mapping key holding the scalar (`-` for sequence items).
            value: Scalar text.
            style: `"` or `'`.
            record_path: False for template files, whose paths do not
                correspond to positions in the expanded document.
        """
        if style not in QUOTE_STYLES:
            return
        if record_path:
            self._by_path[path] = style
        self._by_context[self.context_key(context, key, value)] = style
        fallback = self.fallback_key(value)
        if fallback is not None:
            self._fallbacks.setdefault(fallback, style)

    def style_for(self, path: str, context: str | None, key: Any, value: str) -> str | None:
        style = self._by_path.get(path)
        if style is None:
            style = self._by_context.get(self.context_key(context, key, value))
        if style is None:
            fallback = self.fallback_key(value)
            if fallback is not None:
                style = self._fallbacks.get(fallback)
        return style

    def restore(self, tree: Any) -> Any:
        """Copy of `tree` with recorded styles applied to string scalars."""
        return self._restore(tree, "", None, None)

    def _restore(self, node: Any, path: str, context: str | None, key: Any) -> Any:
        if isinstance(node, Mapping):
            inner = context_name(node, context)
            return {
                k: self._restore(v, _join(path, k), inner, k) for k, v in node.items()
            }
        if isinstance(node, list):
            return [
                self._restore(item, _join(path, index), context, SEQUENCE_ITEM_KEY)
                for index, item in enumerate(node)
            ]
        if isinstance(node, str) and not isinstance(node, StyledScalar):
            style = self.style_for(path, context, key, node)
            if style is not None:
                return StyledScalar(node, style)
        return node


@dataclass(frozen=True, slots=True)
class BlockScalarHints:
    """Block-scalar rendering choices for multi-line strings.

    Attributes:
        azure_compatible: Render blocks the way the pipeline service does.
        expression_blocks: Trimmed text of blocks that held expressions.
        last_line_blocks: Subset whose last non-blank line held one.
    """

    azure_compatible: bool = False
    expression_blocks: frozenset[str] = field(default_factory=frozenset)
    last_line_blocks: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_context(cls, context: ExecutionContext) -> BlockScalarHints:
        return cls(
            azure_compatible=context.azure_compatible,
            expression_blocks=frozenset(context.multiline_expression_blocks),
            last_line_blocks=frozenset(context.multiline_last_line_blocks),
        )

    def render(self, text: str) -> tuple[str, str]:
        """Choose a block style for a multi-line string.

        Returns:
            (style, text): `|` or `>`, and the text to write. Blocks whose
            last line held an expression lose their trailing newlines in
            azure-compatible mode, which the emitter writes as `-` chomping.
        """
        if not self.azure_compatible:
            return "|", text
        key = text.strip()
        style = ">" if key in self.expression_blocks else "|"
        if key in self.last_line_blocks:
            text = text.rstrip("\n")
        return style, text


def _separate(body: list[str]) -> list[str]:
    if len(body) < 2 or any(not line.strip() for line in body):
        return body
    separated: list[str] = []
    for index, line in enumerate(body):
        if index:
            separated.append("")
        separated.append(line)
    return separated


def insert_heredoc_separators(text: str) -> str:
    """Put a blank line between here-doc body lines.

    Folded block scalars join adjacent lines with a space; a blank line
    between them keeps the break. Bodies that already contain a blank line
    are left alone, so applying this twice changes nothing. Unterminated
    here-docs are left alone.

    Example:
        >>> print(insert_heredoc_separators("cat <<EOF\\na\\nb\\nEOF"))
        cat <<EOF
        a
        <BLANKLINE>
        b
        EOF
    """
    lines = text.split("\n")
    output: list[str] = []
    body: list[str] = []
    terminator: str | None = None

    for line in lines:
        if terminator is None:
            output.append(line)
            start = _HEREDOC_START.search(line)
            if start:
                terminator = start.group(2)
                body = []
        elif line.strip() == terminator:
            output.extend(_separate(body))
            output.append(line)
            terminator = None
        else:
            body.append(line)

    if terminator is not None:
        output.extend(body)
    return "\n".join(output)
