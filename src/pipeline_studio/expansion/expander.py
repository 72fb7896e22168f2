"""Recursive document expansion.

DocumentExpander walks a parsed pipeline tree and produces the literal tree
the pipeline service would see:

- `${{ if }}` / `${{ elseif }}` / `${{ else }}` chains keep one branch
- `${{ each x in ... }}` repeats its body per item, binding `x` and `xIndex`;
  in a mapping, a `--` key from the body is re-keyed per item
- `${{ insert }}` merges a mapping into its parent
- `template:` references are replaced by the included template's items
- embedded `${{ }}` expressions are evaluated

Sibling entries are processed in order. Entries of a `variables:` block
are published to the shared variable map as soon as they are expanded, so
later entries can refer to earlier ones.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from typing import Any

from pipeline_studio.expansion.context import ExecutionContext
from pipeline_studio.expansion.directives import (
    Directive,
    Each,
    Else,
    Insert,
    classify_directive,
    is_conditional,
)
from pipeline_studio.expansion.normalize import normalize_mapping, normalize_step
from pipeline_studio.expansion.templates import TemplateResolver, is_template_reference
from pipeline_studio.expressions.evaluator import (
    ExpressionEvaluator,
    is_full_expression,
    strip_expression_delimiters,
)
from pipeline_studio.expressions.values import (
    UNDEFINED,
    is_boolean,
    is_number,
    js_string,
    to_boolean,
)
from pipeline_studio.logging import get_logger

__all__ = ["DocumentExpander", "ITERATION_KEY", "iteration_key", "normalize_collection"]

logger = get_logger(__name__)

_VARIABLES = "variables"
_UNNORMALIZED_PARENTS = {"parameters", "variables"}

ITERATION_KEY = "--"
_ITERATION_KEY_FIELDS = ("key", "name", "matrixKey", "label", "id", "value")


def normalize_collection(value: Any) -> list[Any]:
    """Items an each-loop iterates: lists as-is, mappings as key/value pairs."""
    if isinstance(value, list):
        return value
    if isinstance(value, Mapping):
        return [{"key": key, "value": item} for key, item in value.items()]
    return []


def _scalar_key(value: Any) -> str | None:
    if isinstance(value, str) or is_boolean(value) or is_number(value):
        return js_string(value)
    return None


def iteration_key(item: Any, position: int) -> str:
    """Key that replaces `--` in the mapping one each-iteration produced.

    A scalar item is its own key. A mapping item is keyed by the first
    scalar among its `key`, `name`, `matrixKey`, `label`, `id` and `value`
    fields. Anything else falls back to the iteration index.
    """
    if item is None or item is UNDEFINED:
        return str(position)
    simple = _scalar_key(item)
    if simple is not None:
        return simple
    if isinstance(item, Mapping):
        for field in _ITERATION_KEY_FIELDS:
            if field in item:
                candidate = _scalar_key(item[field])
                if candidate is not None:
                    return candidate
    return str(position)


def _single_key_directive(element: Any) -> tuple[Directive | None, Any]:
    if not isinstance(element, Mapping) or len(element) != 1:
        return None, None
    ((key, body),) = element.items()
    return classify_directive(key), body


def _last_content_line(text: str) -> str:
    for line in reversed(text.splitlines()):
        if line.strip():
            return line
    return ""


class DocumentExpander:
    """Expands directives, expressions and template references in a tree.

    Attributes:
        evaluator: Expression evaluator (owns the compilation session).
        templates: Template resolver bound to this expander.

    Example:
        ```python
        expander = DocumentExpander(ExpressionEvaluator())
        expanded = expander.expand(document, ExecutionContext(parameters={"env": "dev"}))
        ```
    """

    def __init__(self, evaluator: ExpressionEvaluator | None = None) -> None:
        self.evaluator = evaluator or ExpressionEvaluator()
        self.templates = TemplateResolver(self)

    def expand(
        self,
        node: Any,
        context: ExecutionContext,
        parent_key: str | None = None,
        *,
        resolve_templates: bool = True,
    ) -> Any:
        """Expand a node of any shape.

        Args:
            node: Mapping, sequence or scalar.
            context: Lookup environment.
            parent_key: Key the node is stored under, if any.
            resolve_templates: When False, template references are kept in
                place (path and parameters expanded) instead of inlined.

        Returns:
            The expanded node, or UNDEFINED for a scalar expression that
            resolved to nothing.
        """
        if isinstance(node, list):
            return self._expand_sequence(node, context, parent_key, resolve_templates)
        if isinstance(node, Mapping):
            if not resolve_templates and is_template_reference(node):
                return self._preserve_reference(node, context)
            return self._expand_mapping(node, context, parent_key, resolve_templates)
        return self._expand_scalar(node, context, parent_key, resolve_templates)

    # Sequences

    def _expand_sequence(
        self,
        items: list[Any],
        context: ExecutionContext,
        parent_key: str | None,
        resolve: bool,
    ) -> list[Any]:
        result: list[Any] = []
        index = 0
        while index < len(items):
            element = items[index]

            if is_template_reference(element):
                if resolve:
                    for item in self.templates.resolve(element, context):
                        self._append(result, item, context, parent_key, resolve)
                else:
                    result.append(self._preserve_reference(element, context))
                index += 1
                continue

            directive, body = _single_key_directive(element)
            if isinstance(directive, Each):
                for _item, _position, iteration in self._iterations(directive, context):
                    for item in self._flatten_branch(body, iteration, parent_key, resolve):
                        self._append(result, item, context, parent_key, resolve)
                index += 1
                continue

            if is_conditional(directive):
                produced, index = self._take_sequence_chain(
                    items, index, context, parent_key, resolve
                )
                for item in produced:
                    self._append(result, item, context, parent_key, resolve)
                continue

            expanded = self.expand(element, context, resolve_templates=resolve)
            index += 1
            if expanded is UNDEFINED:
                continue
            if isinstance(expanded, list) and not isinstance(element, list):
                for item in expanded:
                    if resolve and is_template_reference(item):
                        for resolved in self.templates.resolve(item, context):
                            self._append(result, resolved, context, parent_key, resolve)
                    else:
                        self._append(result, item, context, parent_key, resolve)
            else:
                self._append(result, expanded, context, parent_key, resolve)
        return result

    def _append(
        self,
        result: list[Any],
        item: Any,
        context: ExecutionContext,
        parent_key: str | None,
        resolve: bool,
    ) -> None:
        if resolve and isinstance(item, dict) and parent_key not in _UNNORMALIZED_PARENTS:
            item = normalize_step(item)
        if parent_key == _VARIABLES and isinstance(item, Mapping):
            name = item.get("name")
            if isinstance(name, str) and name and "value" in item:
                context.variables[name] = item["value"]
        result.append(item)

    def _take_sequence_chain(
        self,
        items: list[Any],
        start: int,
        context: ExecutionContext,
        parent_key: str | None,
        resolve: bool,
    ) -> tuple[list[Any], int]:
        """Consume a conditional chain starting at `start`.

        Returns:
            The taken branch's items and the index after the chain.
        """
        produced: list[Any] = []
        taken = False
        index = start
        while index < len(items):
            directive, body = _single_key_directive(items[index])
            if not is_conditional(directive):
                break
            index += 1
            if isinstance(directive, Else):
                if not taken:
                    produced = self._flatten_branch(body, context, parent_key, resolve)
                break
            if not taken and self._condition_holds(directive, context):
                produced = self._flatten_branch(body, context, parent_key, resolve)
                taken = True
        return produced, index

    def _flatten_branch(
        self,
        body: Any,
        context: ExecutionContext,
        parent_key: str | None,
        resolve: bool,
    ) -> list[Any]:
        if isinstance(body, list):
            return self._expand_sequence(body, context, parent_key, resolve)
        if isinstance(body, Mapping):
            if is_template_reference(body):
                if resolve:
                    return self.templates.resolve(body, context)
                return [self._preserve_reference(body, context)]
            return [self._expand_mapping(body, context, None, resolve)]
        value = self._expand_scalar(body, context, parent_key, resolve)
        return [] if value is UNDEFINED else [value]

    # Mappings

    def _expand_mapping(
        self,
        node: Mapping[Any, Any],
        context: ExecutionContext,
        parent_key: str | None,
        resolve: bool,
    ) -> dict[Any, Any]:
        entries = list(node.items())
        result: dict[Any, Any] = {}
        index = 0
        while index < len(entries):
            raw_key, value = entries[index]
            directive = classify_directive(raw_key)

            if isinstance(directive, Each):
                for item, position, iteration in self._iterations(directive, context):
                    branch = self._mapping_branch(value, iteration, parent_key, resolve)
                    if ITERATION_KEY in branch:
                        keyed = branch.pop(ITERATION_KEY)
                        result[iteration_key(item, position)] = keyed
                    result.update(branch)
                index += 1
                continue

            if is_conditional(directive):
                merged, index = self._take_mapping_chain(
                    entries, index, context, parent_key, resolve
                )
                result.update(merged)
                continue

            index += 1
            if isinstance(directive, Insert):
                inserted = self.expand(value, context, parent_key, resolve_templates=False)
                if isinstance(inserted, Mapping):
                    self._merge(result, inserted, context, parent_key)
                    continue

            key = (
                self.evaluator.interpolate(raw_key, context)
                if isinstance(raw_key, str)
                else raw_key
            )
            expanded = self.expand(
                value,
                context,
                key if isinstance(key, str) else None,
                resolve_templates=resolve,
            )
            if expanded is UNDEFINED:
                continue
            self._merge(result, {key: expanded}, context, parent_key)

        if resolve:
            normalize_mapping(result, parent_key)
        return result

    def _merge(
        self,
        result: dict[Any, Any],
        entries: Mapping[Any, Any],
        context: ExecutionContext,
        parent_key: str | None,
    ) -> None:
        for key, value in entries.items():
            result[key] = value
            if parent_key == _VARIABLES and isinstance(key, str) and key:
                if isinstance(value, Mapping) and "value" in value:
                    value = value["value"]
                context.variables[key] = value

    def _take_mapping_chain(
        self,
        entries: list[tuple[Any, Any]],
        start: int,
        context: ExecutionContext,
        parent_key: str | None,
        resolve: bool,
    ) -> tuple[dict[Any, Any], int]:
        merged: dict[Any, Any] = {}
        taken = False
        index = start
        while index < len(entries):
            raw_key, body = entries[index]
            directive = classify_directive(raw_key)
            if not is_conditional(directive):
                break
            index += 1
            if isinstance(directive, Else):
                if not taken:
                    merged = self._mapping_branch(body, context, parent_key, resolve)
                break
            if not taken and self._condition_holds(directive, context):
                merged = self._mapping_branch(body, context, parent_key, resolve)
                taken = True
        return merged, index

    def _mapping_branch(
        self,
        body: Any,
        context: ExecutionContext,
        parent_key: str | None,
        resolve: bool,
    ) -> dict[Any, Any]:
        """Mapping contributed by a branch or loop body placed in a mapping."""
        if isinstance(body, list):
            merged: dict[Any, Any] = {}
            for item in self._expand_sequence(body, context, None, resolve):
                if isinstance(item, Mapping):
                    self._merge(merged, item, context, parent_key)
            return merged
        if isinstance(body, Mapping):
            return self._expand_mapping(body, context, parent_key, resolve)
        value = self._expand_scalar(body, context, parent_key, resolve)
        return {} if value is UNDEFINED else {"value": value}

    # Scalars

    def _expand_scalar(
        self,
        value: Any,
        context: ExecutionContext,
        parent_key: str | None,
        resolve: bool,
    ) -> Any:
        if not isinstance(value, str):
            return value

        trimmed = value.strip()
        if is_full_expression(trimmed):
            result = self.evaluator.evaluate(strip_expression_delimiters(trimmed), context)
            if is_template_reference(result):
                if not resolve:
                    return self._preserve_reference(result, context)
                items = self.templates.resolve(result, context)
                return items[0] if len(items) == 1 else items
            if resolve and isinstance(result, list):
                return self._expand_sequence(copy.deepcopy(result), context, parent_key, resolve)
            if isinstance(result, list | dict):
                return copy.deepcopy(result)
            return result

        expanded = self.evaluator.interpolate(value, context)
        if "\n" in value.strip() and "${{" in value:
            self._record_block(value, expanded, context)
        return expanded

    @staticmethod
    def _record_block(original: str, expanded: str, context: ExecutionContext) -> None:
        block = expanded.strip()
        context.multiline_expression_blocks.add(block)
        if "${{" in _last_content_line(original):
            context.multiline_last_line_blocks.add(block)

    # Helpers

    def _condition_holds(self, directive: Directive, context: ExecutionContext) -> bool:
        condition = getattr(directive, "condition", "")
        result = self.evaluator.evaluate(condition, context)
        holds = to_boolean(result)
        logger.debug(
            "conditional_evaluated",
            directive=type(directive).__name__.lower(),
            condition=condition,
            result=holds,
        )
        return holds

    def _iterations(
        self, directive: Each, context: ExecutionContext
    ) -> Iterator[tuple[Any, int, ExecutionContext]]:
        """Yield `(item, position, child context)` for each loop iteration."""
        if directive.variable is None:
            return
        collection = normalize_collection(
            self.evaluator.evaluate(directive.collection, context)
        )
        logger.debug(
            "each_expanded",
            variable=directive.variable,
            collection=directive.collection,
            count=len(collection),
        )
        for position, item in enumerate(collection):
            yield item, position, context.child(
                **{directive.variable: item, f"{directive.variable}Index": position}
            )

    def _preserve_reference(
        self, node: Mapping[str, Any], context: ExecutionContext
    ) -> dict[str, Any]:
        """Keep a template reference, expanding its path and parameters only."""
        preserved: dict[str, Any] = {}
        for key, value in node.items():
            if key == "template" and isinstance(value, str):
                preserved[key] = self.evaluator.interpolate(value, context)
            elif key == "parameters":
                preserved[key] = self.expand(
                    value, context, "parameters", resolve_templates=False
                )
            else:
                preserved[key] = value
        return preserved
