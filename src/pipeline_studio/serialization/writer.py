"""YAML rendering of expanded pipelines.

PipelineDumper is a SafeDumper that:

- writes StyledScalar values with their recorded quote style
- writes boolean markers as `True` / `False`
- writes multi-line strings as block scalars, styled by BlockScalarHints
- never emits anchors or aliases
- quotes strings by YAML 1.2 core-schema rules
"""

from __future__ import annotations

import functools
from typing import Any

import yaml

from pipeline_studio.expressions.values import UNDEFINED, AliasedList, ExpressionBool
from pipeline_studio.serialization.fidelity import BlockScalarHints, StyledScalar
from pipeline_studio.serialization.schema import use_core_schema

__all__ = ["PipelineDumper", "dump_pipeline"]

_STR_TAG = "tag:yaml.org,2002:str"
_BOOL_TAG = "tag:yaml.org,2002:bool"


@use_core_schema
class PipelineDumper(yaml.SafeDumper):
    """SafeDumper honoring recorded quote styles and block-scalar hints."""

    def __init__(
        self, stream: Any, *, block_hints: BlockScalarHints | None = None, **kwargs: Any
    ) -> None:
        super().__init__(stream, **kwargs)
        self.block_hints = block_hints or BlockScalarHints()

    def ignore_aliases(self, data: Any) -> bool:
        return True


def _represent_str(dumper: PipelineDumper, data: str) -> yaml.ScalarNode:
    if "\n" in data:
        style, text = dumper.block_hints.render(data)
        return dumper.represent_scalar(_STR_TAG, text, style=style)
    return dumper.represent_scalar(_STR_TAG, data)


def _represent_styled(dumper: PipelineDumper, data: StyledScalar) -> yaml.ScalarNode:
    if "\n" in data:
        return _represent_str(dumper, str(data))
    return dumper.represent_scalar(_STR_TAG, str(data), style=data.style)


def _represent_marker(dumper: PipelineDumper, data: ExpressionBool) -> yaml.ScalarNode:
    return dumper.represent_scalar(_BOOL_TAG, str(data))


def _represent_undefined(dumper: PipelineDumper, data: Any) -> yaml.ScalarNode:
    return dumper.represent_none(None)


PipelineDumper.add_representer(str, _represent_str)
PipelineDumper.add_representer(StyledScalar, _represent_styled)
PipelineDumper.add_representer(ExpressionBool, _represent_marker)
PipelineDumper.add_representer(type(UNDEFINED), _represent_undefined)
PipelineDumper.add_multi_representer(AliasedList, yaml.SafeDumper.represent_list)


def dump_pipeline(tree: Any, hints: BlockScalarHints | None = None) -> str:
    """Render an expanded pipeline tree as YAML text.

    Args:
        tree: Expanded (and optionally style-restored) document.
        hints: Block-scalar choices; literal blocks everywhere when omitted.

    Returns:
        YAML text. Key order is preserved and lines are never wrapped.
    """
    return yaml.dump(
        tree,
        Dumper=functools.partial(PipelineDumper, block_hints=hints),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=float("inf"),
        indent=2,
    )
