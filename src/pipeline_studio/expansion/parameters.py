"""Parameter and variable declarations, and template parameter contracts.

Parameters may be declared as a list (`- name: env, type: string,
default: dev`) or as a mapping (`env: {type: string, default: dev}` or
`env: dev`). A declaration's value comes from `default`, then `value`,
then `values`.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pipeline_studio.exceptions import (
    ParameterValidationError,
    ParameterViolation,
    ViolationKind,
)
from pipeline_studio.expressions.values import (
    UNDEFINED,
    ExpressionBool,
    compare_values,
    is_number,
)

if TYPE_CHECKING:
    from pipeline_studio.expansion.context import ExecutionContext

__all__ = [
    "ParameterDeclaration",
    "declared_parameters",
    "extract_parameters",
    "extract_variables",
    "collect_call_parameters",
    "check_parameters",
    "validate_template_parameters",
]

_VALUE_KEYS = ("default", "value", "values")
_RUNTIME_VARIABLE = re.compile(r"^\s*\$\(.+\)\s*$", re.DOTALL)
_NUMERIC_STRING = re.compile(r"^-?\d+(?:\.\d+)?$")

_LIST_TYPES = {"steplist", "joblist", "deploymentlist", "stagelist"}
_ITEM_TYPES = {"step", "job", "deployment", "stage"}


class ParameterDeclaration(dict[str, Any]):
    """One declared parameter, normalized to the list-form mapping."""

    @property
    def name(self) -> str:
        return str(self["name"])

    @property
    def has_default(self) -> bool:
        return any(key in self for key in _VALUE_KEYS)

    @property
    def default(self) -> Any:
        for key in _VALUE_KEYS:
            if key in self:
                return self[key]
        return None


def declared_parameters(document: Any) -> list[ParameterDeclaration]:
    """Normalize a document's `parameters:` declaration block."""
    if not isinstance(document, Mapping):
        return []
    declarations = document.get("parameters")
    result: list[ParameterDeclaration] = []

    if isinstance(declarations, list):
        for item in declarations:
            if isinstance(item, Mapping) and item.get("name"):
                result.append(ParameterDeclaration(item))
    elif isinstance(declarations, Mapping):
        for name, spec in declarations.items():
            if isinstance(spec, Mapping):
                result.append(ParameterDeclaration({**spec, "name": name}))
            else:
                result.append(ParameterDeclaration(name=name, default=spec))
    return result


def extract_parameters(document: Any) -> dict[str, Any]:
    """Declared parameter defaults; parameters without one map to None."""
    return {decl.name: decl.default for decl in declared_parameters(document)}


def extract_variables(document: Any) -> dict[str, Any]:
    """Initial variable values from a document's `variables:` block."""
    if not isinstance(document, Mapping):
        return {}
    variables = document.get("variables")
    result: dict[str, Any] = {}

    if isinstance(variables, list):
        for item in variables:
            if isinstance(item, Mapping) and item.get("name"):
                value = item.get("value", item.get("default"))
                result[str(item["name"])] = value
    elif isinstance(variables, Mapping):
        for name, value in variables.items():
            if isinstance(value, Mapping) and "value" in value:
                value = value["value"]
            result[str(name)] = value
    return result


def collect_call_parameters(parameters: Any) -> dict[str, Any]:
    """Call-site `parameters:` (mapping or sequence form) as a mapping.

    Sequence items carrying `name` contribute their value/default/values;
    other mapping items are merged key by key.
    """
    if isinstance(parameters, Mapping):
        return dict(parameters)
    if not isinstance(parameters, list):
        return {}

    result: dict[str, Any] = {}
    for item in parameters:
        if not isinstance(item, Mapping):
            continue
        if "name" in item:
            key = item["name"]
            if isinstance(key, str) and key.strip():
                value = UNDEFINED
                for value_key in ("value", "default", "values"):
                    if value_key in item:
                        value = item[value_key]
                        break
                result[key.strip()] = value
            continue
        for key, value in item.items():
            if isinstance(key, str) and key.strip():
                result[key.strip()] = value
    return result


def _is_runtime_variable(value: Any) -> bool:
    return isinstance(value, str) and bool(_RUNTIME_VARIABLE.match(value))


def _matches_type(declared_type: str, value: Any) -> bool | None:
    """Check a value against a declared type.

    Returns:
        True/False, or None when the declared type is not checked.
    """
    kind = declared_type.strip().lower()
    if value is None:
        return True
    if kind == "string":
        return isinstance(value, str | int | float | bool | ExpressionBool)
    if kind == "number":
        if is_number(value):
            return True
        return isinstance(value, str) and bool(_NUMERIC_STRING.match(value.strip()))
    if kind == "boolean":
        if isinstance(value, bool | ExpressionBool):
            return True
        return isinstance(value, str) and value.strip().lower() in ("true", "false")
    if kind == "object":
        return True
    if kind in _LIST_TYPES:
        return isinstance(value, list)
    if kind in _ITEM_TYPES:
        return isinstance(value, Mapping)
    return None


def _is_allowed(value: Any, allowed: list[Any]) -> bool:
    candidates = value if isinstance(value, list) else [value]
    return all(
        any(compare_values(candidate, option) == 0 for option in allowed)
        for candidate in candidates
    )


def check_parameters(
    template_document: Any,
    provided: Mapping[str, Any] | None,
) -> list[ParameterViolation]:
    """Collect every contract violation without raising.

    Runtime-variable placeholders (`$(name)`) and UNDEFINED values skip the
    type and allowed-value checks. The empty-string name produced by a
    non-mapping `${{ insert }}` is never reported as unknown.
    """
    provided = provided or {}
    declarations = declared_parameters(template_document)
    declared_names = {decl.name for decl in declarations}
    violations: list[ParameterViolation] = []

    for decl in declarations:
        name = decl.name
        if name not in provided:
            if not decl.has_default:
                violations.append(ParameterViolation(ViolationKind.MISSING, name))
            continue

        value = provided[name]
        if value is UNDEFINED or _is_runtime_variable(value):
            continue

        declared_type = decl.get("type")
        if isinstance(declared_type, str) and _matches_type(declared_type, value) is False:
            violations.append(
                ParameterViolation(
                    ViolationKind.TYPE, name, expected_type=declared_type, value=value
                )
            )

        allowed = decl.get("values")
        if isinstance(allowed, list) and allowed and not _is_allowed(value, allowed):
            violations.append(
                ParameterViolation(
                    ViolationKind.ALLOWED_VALUE,
                    name,
                    value=value,
                    allowed=tuple(allowed),
                )
            )

    for name in provided:
        if name != "" and name not in declared_names:
            violations.append(ParameterViolation(ViolationKind.UNKNOWN, str(name)))

    return violations


def validate_template_parameters(
    template_document: Any,
    provided: Mapping[str, Any] | None,
    template_path: str,
    context: ExecutionContext | None = None,
) -> None:
    """Validate call-site parameters against a template's declarations.

    Args:
        template_document: Parsed template (its `parameters:` block is read).
        provided: Call-site parameter values.
        template_path: Template identifier used in the message.
        context: Caller context; its template stack is reported.

    Raises:
        ParameterValidationError: If any violation exists. All violations
            are reported together.
    """
    violations = check_parameters(template_document, provided)
    if not violations:
        return
    call_stack = (*context.template_stack, template_path) if context else (template_path,)
    raise ParameterValidationError(template_path, violations, call_stack)
