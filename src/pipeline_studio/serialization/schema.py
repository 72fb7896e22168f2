"""YAML 1.2 core-schema scalar resolution for PyYAML.

PyYAML resolves plain scalars with YAML 1.1 rules: `yes`, `on` and `off`
become booleans, `2024-01-01` becomes a date and `0755` an octal number.
Pipeline files follow YAML 1.2, so those stay strings here and round-trip
unchanged. Integers with leading zeros also stay strings.
"""

from __future__ import annotations

import re

import yaml

__all__ = ["use_core_schema"]

_REPLACED_TAGS = {
    "tag:yaml.org,2002:bool",
    "tag:yaml.org,2002:int",
    "tag:yaml.org,2002:float",
    "tag:yaml.org,2002:timestamp",
    "tag:yaml.org,2002:value",
}

_CORE_RESOLVERS = (
    (
        "tag:yaml.org,2002:bool",
        re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
        "tTfF",
    ),
    (
        "tag:yaml.org,2002:int",
        re.compile(r"^(?:[-+]?(?:0|[1-9][0-9]*)|0x[0-9a-fA-F]+)$"),
        "-+0123456789",
    ),
    (
        "tag:yaml.org,2002:float",
        re.compile(
            r"""^(?:[-+]?(?:[0-9]+\.[0-9]*|\.[0-9]+)(?:[eE][-+]?[0-9]+)?
            |[-+]?[0-9]+[eE][-+]?[0-9]+
            |[-+]?\.(?:inf|Inf|INF)
            |\.(?:nan|NaN|NAN))$""",
            re.X,
        ),
        "-+0123456789.",
    ),
)


def use_core_schema(cls: type[yaml.resolver.BaseResolver]) -> type[yaml.resolver.BaseResolver]:
    """Class decorator replacing YAML 1.1 implicit resolvers with core ones.

    Works for loaders and dumpers alike, so a dumper quotes exactly the
    strings its loader would otherwise read back as something else.
    """
    cls.yaml_implicit_resolvers = {
        first: [(tag, regexp) for tag, regexp in resolvers if tag not in _REPLACED_TAGS]
        for first, resolvers in cls.yaml_implicit_resolvers.items()
    }
    for tag, regexp, first in _CORE_RESOLVERS:
        cls.add_implicit_resolver(tag, regexp, list(first))
    return cls
