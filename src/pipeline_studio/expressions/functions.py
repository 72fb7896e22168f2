"""Builtin function table for the expression language.

Names are matched case-insensitively. Every builtin receives its already
evaluated arguments; missing arguments read as UNDEFINED. Stateful builtins
(`counter`) additionally receive the CompilationSession.

The job-status functions are constants: no run state exists at expansion
time, so `always()`/`succeeded()`/`succeededOrFailed()` are true and
`canceled()`/`failed()` are false.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from pipeline_studio.expressions.session import CompilationSession
from pipeline_studio.expressions.values import (
    UNDEFINED,
    ExpressionBool,
    compare_values,
    is_boolean,
    js_string,
    to_boolean,
    to_display_string,
)

__all__ = ["call_builtin", "is_builtin", "format_string", "convert_to_json"]

Builtin = Callable[[Sequence[Any]], Any]
StatefulBuiltin = Callable[[Sequence[Any], CompilationSession], Any]

_BUILTINS: dict[str, Builtin] = {}
_STATEFUL_BUILTINS: dict[str, StatefulBuiltin] = {}

_NUMERIC_STRING = re.compile(r"^-?\d+(?:\.\d+)?$")
_PLACEHOLDER = re.compile(r"\{(\d+)(?::([^}]+))?\}")
_DATE_TOKEN = re.compile(r"yyyy|yy|MM|M|dd|d|HH|H|mm|m|ss|s|ffff|ff|f")


def _builtin(*names: str) -> Callable[[Builtin], Builtin]:
    def register(fn: Builtin) -> Builtin:
        for name in names:
            _BUILTINS[name.lower()] = fn
        return fn

    return register


def _arg(args: Sequence[Any], index: int) -> Any:
    return args[index] if index < len(args) else UNDEFINED


def _bool(value: Any) -> ExpressionBool:
    return ExpressionBool.of(value)


# Comparison


@_builtin("eq")
def _eq(args: Sequence[Any]) -> Any:
    return _bool(compare_values(_arg(args, 0), _arg(args, 1)) == 0)


@_builtin("ne")
def _ne(args: Sequence[Any]) -> Any:
    return _bool(compare_values(_arg(args, 0), _arg(args, 1)) != 0)


@_builtin("gt")
def _gt(args: Sequence[Any]) -> Any:
    return _bool(compare_values(_arg(args, 0), _arg(args, 1)) > 0)


@_builtin("ge")
def _ge(args: Sequence[Any]) -> Any:
    return _bool(compare_values(_arg(args, 0), _arg(args, 1)) >= 0)


@_builtin("lt")
def _lt(args: Sequence[Any]) -> Any:
    return _bool(compare_values(_arg(args, 0), _arg(args, 1)) < 0)


@_builtin("le")
def _le(args: Sequence[Any]) -> Any:
    return _bool(compare_values(_arg(args, 0), _arg(args, 1)) <= 0)


# Logical


@_builtin("and")
def _and(args: Sequence[Any]) -> Any:
    return _bool(all(to_boolean(arg) for arg in args))


@_builtin("or")
def _or(args: Sequence[Any]) -> Any:
    return _bool(any(to_boolean(arg) for arg in args))


@_builtin("not")
def _not(args: Sequence[Any]) -> Any:
    return _bool(not to_boolean(_arg(args, 0)))


@_builtin("xor")
def _xor(args: Sequence[Any]) -> Any:
    return _bool(to_boolean(_arg(args, 0)) != to_boolean(_arg(args, 1)))


@_builtin("iif")
def _iif(args: Sequence[Any]) -> Any:
    return _arg(args, 1) if to_boolean(_arg(args, 0)) else _arg(args, 2)


# Containment


@_builtin("coalesce")
def _coalesce(args: Sequence[Any]) -> Any:
    for arg in args:
        if arg is not None and arg is not UNDEFINED and arg != "":
            return arg
    return UNDEFINED


@_builtin("contains")
def _contains(args: Sequence[Any]) -> Any:
    container, value = _arg(args, 0), _arg(args, 1)
    if isinstance(container, str):
        return _bool(isinstance(value, str) and value in container)
    if isinstance(container, list):
        return _bool(any(compare_values(item, value) == 0 for item in container))
    if isinstance(container, dict):
        return _bool(isinstance(value, str) and value in container)
    return ExpressionBool.FALSE


@_builtin("containsValue")
def _contains_value(args: Sequence[Any]) -> Any:
    container, value = _arg(args, 0), _arg(args, 1)
    if isinstance(container, dict):
        container = list(container.values())
    if isinstance(container, list):
        return _bool(any(compare_values(item, value) == 0 for item in container))
    return ExpressionBool.FALSE


@_builtin("in")
def _in(args: Sequence[Any]) -> Any:
    needle = _arg(args, 0)
    return _bool(any(compare_values(needle, c) == 0 for c in args[1:]))


@_builtin("notIn")
def _not_in(args: Sequence[Any]) -> Any:
    needle = _arg(args, 0)
    return _bool(not any(compare_values(needle, c) == 0 for c in args[1:]))


# Strings


@_builtin("lower")
def _lower(args: Sequence[Any]) -> Any:
    value = _arg(args, 0)
    return value.lower() if isinstance(value, str) else value


@_builtin("upper")
def _upper(args: Sequence[Any]) -> Any:
    value = _arg(args, 0)
    return value.upper() if isinstance(value, str) else value


@_builtin("trim")
def _trim(args: Sequence[Any]) -> Any:
    value = _arg(args, 0)
    return value.strip() if isinstance(value, str) else value


@_builtin("startsWith")
def _starts_with(args: Sequence[Any]) -> Any:
    text, prefix = _arg(args, 0), _arg(args, 1)
    if not isinstance(text, str) or not isinstance(prefix, str):
        return ExpressionBool.FALSE
    return _bool(text.lower().startswith(prefix.lower()))


@_builtin("endsWith")
def _ends_with(args: Sequence[Any]) -> Any:
    text, suffix = _arg(args, 0), _arg(args, 1)
    if not isinstance(text, str) or not isinstance(suffix, str):
        return ExpressionBool.FALSE
    return _bool(text.lower().endswith(suffix.lower()))


@_builtin("replace")
def _replace(args: Sequence[Any]) -> Any:
    text = _arg(args, 0)
    if not isinstance(text, str):
        return text
    search = js_string(_arg(args, 1))
    replacement = js_string(_arg(args, 2))
    if not search:
        return text
    return text.replace(search, replacement)


@_builtin("split")
def _split(args: Sequence[Any]) -> Any:
    text = _arg(args, 0)
    if not isinstance(text, str):
        return [text]
    delimiter = js_string(_arg(args, 1))
    if not delimiter:
        return list(text)
    return text.split(delimiter)


@_builtin("join")
def _join(args: Sequence[Any]) -> Any:
    separator, items = _arg(args, 0), _arg(args, 1)
    if not isinstance(items, list):
        return items if isinstance(items, str) else js_string(items)
    if not isinstance(separator, str):
        separator = js_string(separator)
    return separator.join(
        "" if isinstance(item, list | dict) else to_display_string(item)
        for item in items
    )


def _format_datetime(value: datetime, spec: str) -> str:
    tokens = {
        "yyyy": f"{value.year:04d}",
        "yy": f"{value.year % 100:02d}",
        "MM": f"{value.month:02d}",
        "M": str(value.month),
        "dd": f"{value.day:02d}",
        "d": str(value.day),
        "HH": f"{value.hour:02d}",
        "H": str(value.hour),
        "mm": f"{value.minute:02d}",
        "m": str(value.minute),
        "ss": f"{value.second:02d}",
        "s": str(value.second),
        "ffff": f"{value.microsecond // 100:04d}",
        "ff": f"{value.microsecond // 10000:02d}",
        "f": str(value.microsecond // 100000),
    }
    return _DATE_TOKEN.sub(lambda m: tokens[m.group(0)], spec)


def format_string(args: Sequence[Any]) -> str:
    """Positional `{n}` / `{n:spec}` substitution.

    Placeholders beyond the supplied arguments are left untouched; `{{` and
    `}}` unescape to literal braces. A spec is only honoured for datetime
    arguments, using .NET-style tokens (`yyyy`, `MM`, `dd`, `HH`, ...).

    Example:
        >>> format_string(["{0}-{1}", "build", 42])
        'build-42'
    """
    if not args:
        return ""

    template = to_display_string(args[0])
    values = list(args[1:])

    def substitute(match: re.Match[str]) -> str:
        index = int(match.group(1))
        if index >= len(values):
            return match.group(0)
        value = values[index]
        spec = match.group(2)
        if spec and isinstance(value, datetime):
            return _format_datetime(value, spec)
        return to_display_string(value)

    result = _PLACEHOLDER.sub(substitute, template)
    return result.replace("{{", "{").replace("}}", "}")


_builtin("format")(format_string)


@_builtin("length")
def _length(args: Sequence[Any]) -> Any:
    value = _arg(args, 0)
    if isinstance(value, str | list | dict):
        return len(value)
    return 0


def _prepare_for_json(value: Any) -> Any:
    if is_boolean(value):
        return "True" if value else "False"
    if value is UNDEFINED:
        return None
    if isinstance(value, str) and _NUMERIC_STRING.match(value.strip()):
        text = value.strip()
        return float(text) if "." in text else int(text)
    if isinstance(value, list):
        return [_prepare_for_json(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _prepare_for_json(v) for k, v in value.items()}
    return value


def convert_to_json(value: Any) -> str:
    """Pretty JSON with `True`/`False` strings and numeric-looking strings as numbers."""
    if value is UNDEFINED:
        return "null"
    return json.dumps(_prepare_for_json(value), indent=2, default=str)


@_builtin("convertToJson")
def _convert_to_json(args: Sequence[Any]) -> Any:
    return convert_to_json(_arg(args, 0))


# Job status (no run state at expansion time)


@_builtin("always", "succeeded", "succeededOrFailed")
def _status_true(args: Sequence[Any]) -> Any:
    return ExpressionBool.TRUE


@_builtin("canceled", "failed")
def _status_false(args: Sequence[Any]) -> Any:
    return ExpressionBool.FALSE


# Stateful


def _counter(args: Sequence[Any], session: CompilationSession) -> Any:
    prefix = _arg(args, 0)
    key = "" if prefix is None or prefix is UNDEFINED else js_string(prefix)
    seed = _arg(args, 1)
    if isinstance(seed, bool) or not isinstance(seed, int):
        try:
            seed = int(str(seed).strip())
        except ValueError:
            seed = 0
    return session.next_counter(key, seed)


_STATEFUL_BUILTINS["counter"] = _counter


def is_builtin(name: str) -> bool:
    lowered = name.lower()
    return lowered in _BUILTINS or lowered in _STATEFUL_BUILTINS


def call_builtin(
    name: str,
    args: Sequence[Any],
    session: CompilationSession,
) -> Any:
    """Invoke a builtin by name.

    Args:
        name: Function name, any case.
        args: Evaluated arguments.
        session: Session owning stateful function state.

    Returns:
        The function result, or UNDEFINED for unknown names.
    """
    lowered = name.lower()
    if lowered in _STATEFUL_BUILTINS:
        return _STATEFUL_BUILTINS[lowered](args, session)
    fn = _BUILTINS.get(lowered)
    if fn is None:
        return UNDEFINED
    return fn(args)
