"""Pipeline YAML loading.

Loading happens in three steps:

1. `${{` and `}}` are replaced by placeholder tokens so the YAML parser
   never sees expression text as flow-collection syntax.
2. The text is composed into a node graph with PyYAML and converted into
   plain dicts, lists and scalars. Quoted scalar styles are recorded on a
   QuoteStyleTracker along the way.
3. Placeholders are turned back into expression delimiters in keys and
   values.

Repeated directive keys (two `${{ insert }}` entries in one mapping) are all
kept: later duplicates get extra padding before the closing `}}`.
"""

from __future__ import annotations

import re
from typing import Any

import yaml
from yaml.nodes import MappingNode, Node, ScalarNode, SequenceNode

from pipeline_studio.exceptions import PipelineParseError
from pipeline_studio.serialization.fidelity import (
    QUOTE_STYLES,
    SEQUENCE_ITEM_KEY,
    QuoteStyleTracker,
)
from pipeline_studio.serialization.schema import use_core_schema

__all__ = [
    "PipelineLoader",
    "EXPRESSION_OPEN_TOKEN",
    "EXPRESSION_CLOSE_TOKEN",
    "protect_expressions",
    "restore_expressions",
    "load_pipeline",
]

EXPRESSION_OPEN_TOKEN = "__PIPELINE_EXPR_OPEN__"
EXPRESSION_CLOSE_TOKEN = "__PIPELINE_EXPR_CLOSE__"

_EXPRESSION = re.compile(r"\$\{\{[\s\S]*?\}\}")
_CONTEXT_KEYS = ("displayName", "task", "name")


@use_core_schema
class PipelineLoader(yaml.SafeLoader):
    """SafeLoader with YAML 1.2 core-schema scalar resolution."""


def protect_expressions(text: str) -> str:
    """Hide expression delimiters from the YAML parser."""
    return _EXPRESSION.sub(
        lambda match: match.group(0)
        .replace("${{", EXPRESSION_OPEN_TOKEN)
        .replace("}}", EXPRESSION_CLOSE_TOKEN),
        text,
    )


def restore_expressions(value: Any) -> Any:
    if isinstance(value, str):
        return value.replace(EXPRESSION_OPEN_TOKEN, "${{").replace(
            EXPRESSION_CLOSE_TOKEN, "}}"
        )
    return value


def _join(path: str, segment: Any) -> str:
    return f"{path}.{segment}" if path else str(segment)


class _TreeBuilder:
    """Converts composed nodes into plain Python values."""

    def __init__(
        self,
        loader: PipelineLoader,
        tracker: QuoteStyleTracker | None,
        record_paths: bool,
    ) -> None:
        self.loader = loader
        self.tracker = tracker
        self.record_paths = record_paths
        self._active: set[int] = set()

    def build(self, node: Node, path: str = "", context: str | None = None, key: Any = None) -> Any:
        if isinstance(node, ScalarNode):
            return self._scalar(node, path, context, key)

        if id(node) in self._active:
            raise yaml.constructor.ConstructorError(
                None, None, "found a recursive alias", node.start_mark
            )
        self._active.add(id(node))
        try:
            if isinstance(node, SequenceNode):
                return [
                    self.build(item, _join(path, index), context, SEQUENCE_ITEM_KEY)
                    for index, item in enumerate(node.value)
                ]
            if isinstance(node, MappingNode):
                return self._mapping(node, path, context)
        finally:
            self._active.discard(id(node))
        return self.loader.construct_object(node, deep=True)

    def _scalar(self, node: ScalarNode, path: str, context: str | None, key: Any) -> Any:
        value = restore_expressions(self.loader.construct_object(node, deep=True))
        if (
            self.tracker is not None
            and isinstance(value, str)
            and node.style in QUOTE_STYLES
        ):
            self.tracker.record(
                path, context, key, value, node.style, record_path=self.record_paths
            )
        return value

    def _key(self, node: Node) -> Any:
        if not isinstance(node, ScalarNode):
            raise yaml.constructor.ConstructorError(
                "while constructing a mapping",
                None,
                "found a non-scalar key",
                node.start_mark,
            )
        return restore_expressions(self.loader.construct_object(node, deep=True))

    def _mapping(self, node: MappingNode, path: str, inherited: str | None) -> dict[Any, Any]:
        self.loader.flatten_mapping(node)
        pairs = [(self._key(key_node), value_node) for key_node, value_node in node.value]

        context = inherited
        for name in _CONTEXT_KEYS:
            value_node = next(
                (v for k, v in pairs if k == name and isinstance(v, ScalarNode)), None
            )
            if value_node is None:
                continue
            label = restore_expressions(self.loader.construct_object(value_node))
            if isinstance(label, str) and label:
                context = label
                break

        result: dict[Any, Any] = {}
        for key, value_node in pairs:
            if isinstance(key, str) and key.startswith("${{") and key.endswith("}}"):
                while key in result:
                    key = key[:-2] + " }}"
            result[key] = self.build(value_node, _join(path, key), context, key)
        return result


def load_pipeline(
    text: str,
    *,
    tracker: QuoteStyleTracker | None = None,
    record_paths: bool = True,
    file_path: str | None = None,
) -> Any:
    """Parse pipeline YAML into plain Python values.

    Args:
        text: YAML source.
        tracker: Receives the quote style of every quoted string scalar.
        record_paths: Record exact document paths (top-level documents only).
        file_path: Source file, for error messages.

    Returns:
        The document; an empty document loads as `{}`.

    Raises:
        PipelineParseError: If the text is not valid YAML.
    """
    loader = PipelineLoader(protect_expressions(text))
    try:
        node = loader.get_single_node()
        if node is None:
            return {}
        document = _TreeBuilder(loader, tracker, record_paths).build(node)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        line_number = mark.line + 1 if mark is not None else None
        location = f" in {file_path}" if file_path else ""
        raise PipelineParseError(
            f"YAML syntax error{location}: {restore_expressions(str(e))}",
            file_path=file_path,
            line_number=line_number,
            parse_error=e,
        ) from e
    finally:
        loader.dispose()

    return {} if document is None else document
