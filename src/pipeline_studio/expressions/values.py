"""Value model shared by the expression evaluator and the serializer.

The expression language distinguishes three things a host boolean or None
cannot express on their own:

- UNDEFINED: "resolved to nothing" (absent key, unknown identifier). Mapping
  entries whose value is UNDEFINED are dropped; in string interpolation it
  renders as the empty string.
- ExpressionBool: a boolean produced by evaluation. It renders with the DSL's
  capitalized spelling (`True`/`False`) both in interpolated strings and in
  the serialized document.
- Numbers, strings, lists and mappings are plain Python values.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

__all__ = [
    "UNDEFINED",
    "AliasedList",
    "ExpressionBool",
    "is_number",
    "is_boolean",
    "to_boolean",
    "to_number",
    "normalize_number",
    "compare_values",
    "js_string",
    "to_display_string",
    "to_json",
]

_NUMERIC_PATTERN = re.compile(r"^-?\d+(?:\.\d+)?$")


class _Undefined:
    """Singleton sentinel for values that resolved to nothing."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __copy__(self) -> _Undefined:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Undefined:
        return self

    def __reduce__(self) -> str:
        return "UNDEFINED"


UNDEFINED: Any = _Undefined()


class ExpressionBool:
    """Boolean produced by expression evaluation.

    Behaves like a bool in conditions and equality checks but renders as
    `True`/`False`. Use ExpressionBool.of() to obtain one of the two shared
    instances.
    """

    __slots__ = ("value",)

    TRUE: ExpressionBool
    FALSE: ExpressionBool

    def __init__(self, value: bool) -> None:
        self.value = bool(value)

    @classmethod
    def of(cls, value: Any) -> ExpressionBool:
        return cls.TRUE if value else cls.FALSE

    def __bool__(self) -> bool:
        return self.value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ExpressionBool):
            return self.value == other.value
        if isinstance(other, bool):
            return self.value == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value)

    def __str__(self) -> str:
        return "True" if self.value else "False"

    def __repr__(self) -> str:
        return f"ExpressionBool({self.value})"

    def __copy__(self) -> ExpressionBool:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> ExpressionBool:
        return self


ExpressionBool.TRUE = ExpressionBool(True)
ExpressionBool.FALSE = ExpressionBool(False)


def is_boolean(value: Any) -> bool:
    return isinstance(value, bool | ExpressionBool)


def is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def normalize_number(value: float) -> int | float:
    """Collapse integral floats to int so `6 / 3` renders as `2`."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def to_number(value: Any) -> float:
    """Numeric conversion with JavaScript `Number()` semantics.

    Returns NaN for values with no numeric reading.
    """
    if is_boolean(value):
        return 1.0 if value else 0.0
    if is_number(value):
        return float(value)
    if value is None:
        return 0.0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    if isinstance(value, list) and len(value) <= 1:
        return to_number(value[0]) if value else 0.0
    return math.nan


def to_boolean(value: Any) -> bool:
    """Permissive truthiness used by conditions and logical functions.

    Strings are false when empty or reading `false` (any case). Lists and
    mappings are always true, including empty ones.
    """
    if is_boolean(value):
        return bool(value)
    if is_number(value):
        return value != 0
    if isinstance(value, str):
        lowered = value.lower()
        if lowered == "true":
            return True
        if lowered in ("false", ""):
            return False
        return True
    if value is None or value is UNDEFINED:
        return False
    return True


def _normalize_for_comparison(value: Any) -> Any:
    if value is None or value is UNDEFINED:
        return ""
    if isinstance(value, ExpressionBool):
        return value.value
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return ""
        lowered = trimmed.lower()
        if lowered in ("true", "false"):
            return lowered == "true"
        if _NUMERIC_PATTERN.match(trimmed):
            return float(trimmed) if "." in trimmed else int(trimmed)
        return trimmed
    return value


def _strictly_equal(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return left is right


def compare_values(left: Any, right: Any) -> int:
    """Three-way comparison after DSL value normalization.

    Both sides are normalized first: None and UNDEFINED become `''`, strings
    are trimmed and read as booleans or numbers when they look like one.
    Same-typed numbers or booleans compare by value; everything else compares
    by its string rendering.

    Returns:
        0 when equal, 1 when left sorts after right, -1 otherwise.

    Examples:
        >>> compare_values(1, "1")
        0
        >>> compare_values("True", True)
        0
    """
    a = _normalize_for_comparison(left)
    b = _normalize_for_comparison(right)

    if _strictly_equal(a, b):
        return 0

    if (is_number(a) and is_number(b)) or (
        isinstance(a, bool) and isinstance(b, bool)
    ):
        return 1 if a > b else -1

    a_string = js_string(a)
    b_string = js_string(b)
    if a_string == b_string:
        return 0
    return 1 if a_string > b_string else -1


def _number_string(value: int | float) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def js_string(value: Any) -> str:
    """String conversion with JavaScript `String()` semantics."""
    if value is UNDEFINED:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, ExpressionBool):
        return str(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return _number_string(value)
    if isinstance(value, list):
        return ",".join(
            "" if item is None or item is UNDEFINED else js_string(item)
            for item in value
        )
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, ExpressionBool):
        return value.value
    if value is UNDEFINED:
        return None
    return str(value)


def to_json(value: Any, indent: int | None = None) -> str:
    """Serialize a value to JSON, compact unless an indent is given."""
    separators = (",", ":") if indent is None else (",", ": ")
    return json.dumps(
        value, default=_json_default, indent=indent, separators=separators
    )


def to_display_string(value: Any) -> str:
    """Render a value for embedding into a larger string.

    UNDEFINED and None collapse to `''`, booleans use `True`/`False`, lists
    and mappings are JSON-encoded.
    """
    if value is None or value is UNDEFINED:
        return ""
    if is_boolean(value):
        return "True" if value else "False"
    if isinstance(value, list | dict):
        return to_json(value)
    if is_number(value):
        return _number_string(value)
    return str(value)


class AliasedList(list[Any]):
    """List whose entries can also be looked up by a name.

    Subclasses decide which field names an entry; member access in
    expressions (`resources.repositories.templates`) uses lookup() for any
    non-numeric key.
    """

    def entry_name(self, entry: Any) -> str | None:
        raise NotImplementedError

    def lookup(self, name: str) -> Any:
        for entry in self:
            if self.entry_name(entry) == name:
                return entry
        return None
