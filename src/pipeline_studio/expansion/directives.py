"""Lexical classification of directive keys.

Directive keys are recognised purely by their spelling, before any
structural walking; the expander only ever sees Directive values.

    ${{ if <condition> }}       -> If
    ${{ elseif <condition> }}   -> ElseIf
    ${{ else }}                 -> Else
    ${{ each <name> in <expr> }} -> Each
    ${{ insert }}               -> Insert
"""

from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = [
    "If",
    "ElseIf",
    "Else",
    "Each",
    "Insert",
    "Directive",
    "classify_directive",
    "is_conditional",
]

_IF_PREFIX = re.compile(r"^\$\{\{\s*if\s+")
_ELSEIF_PREFIX = re.compile(r"^\$\{\{\s*elseif\s+")
_ELSE = re.compile(r"^\$\{\{\s*else\s*\}\}$")
_EACH_PREFIX = re.compile(r"^\$\{\{\s*each\s+")
_INSERT = re.compile(r"^\$\{\{\s*insert\s*\}\}$")

_IF = re.compile(r"^\$\{\{\s*if\s+(.+?)\s*\}\}$", re.DOTALL)
_ELSEIF = re.compile(r"^\$\{\{\s*elseif\s+(.+?)\s*\}\}$", re.DOTALL)
_EACH = re.compile(r"^\$\{\{\s*each\s+([a-zA-Z_]\w*)\s+in\s+(.+?)\s*\}\}$", re.DOTALL)


@dataclass(frozen=True, slots=True)
class If:
    condition: str


@dataclass(frozen=True, slots=True)
class ElseIf:
    condition: str


@dataclass(frozen=True, slots=True)
class Else:
    pass


@dataclass(frozen=True, slots=True)
class Each:
    """Loop directive.

    A key that starts like `${{ each` but is malformed classifies with
    variable=None; such loops produce nothing.
    """

    variable: str | None
    collection: str = ""


@dataclass(frozen=True, slots=True)
class Insert:
    pass


Directive = If | ElseIf | Else | Each | Insert


def classify_directive(key: object) -> Directive | None:
    """Turn a raw mapping key into a Directive, or None for ordinary keys.

    Examples:
        >>> classify_directive("${{ if eq(parameters.env, 'prod') }}")
        If(condition="eq(parameters.env, 'prod')")
        >>> classify_directive("${{ each step in parameters.steps }}")
        Each(variable='step', collection='parameters.steps')
        >>> classify_directive("displayName") is None
        True
    """
    if not isinstance(key, str):
        return None
    text = key.strip()
    if not text.startswith("${{"):
        return None

    if _IF_PREFIX.match(text):
        match = _IF.match(text)
        return If(match.group(1) if match else "")
    if _ELSEIF_PREFIX.match(text):
        match = _ELSEIF.match(text)
        return ElseIf(match.group(1) if match else "")
    if _ELSE.match(text):
        return Else()
    if _EACH_PREFIX.match(text):
        match = _EACH.match(text)
        if match is None:
            return Each(variable=None)
        return Each(variable=match.group(1), collection=match.group(2))
    if _INSERT.match(text):
        return Insert()
    return None


def is_conditional(directive: Directive | None) -> bool:
    return isinstance(directive, If | ElseIf | Else)
