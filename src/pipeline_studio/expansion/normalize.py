"""Canonical shapes for step shorthands, pools and dependencies.

Step shorthands are rewritten into task form:

    - bash: make test              - task: Bash@3
      workingDirectory: src    ->    inputs:
                                       targetType: inline
                                       script: make test
                                       workingDirectory: src
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

__all__ = [
    "STEP_SHORTHANDS",
    "CHECKOUT_TASK",
    "normalize_step",
    "normalize_mapping",
]

CHECKOUT_TASK = "6d15af64-176c-496d-b583-fd2ae21d4df4@1"

# shorthand key -> (task identifier, fixed inputs)
STEP_SHORTHANDS: dict[str, tuple[str, dict[str, Any]]] = {
    "bash": ("Bash@3", {"targetType": "inline"}),
    "script": ("CmdLine@2", {}),
    "pwsh": ("PowerShell@2", {"targetType": "inline", "pwsh": True}),
    "powershell": ("PowerShell@2", {"targetType": "inline"}),
}

_CHECKOUT_INPUTS = (
    "clean",
    "fetchDepth",
    "fetchTags",
    "lfs",
    "path",
    "persistCredentials",
    "submodules",
)

_SKIPPED_PARENTS = {"parameters", "variables"}


def _shorthand_key(step: Mapping[str, Any]) -> str | None:
    if "task" in step:
        return None
    for key in step:
        if key in STEP_SHORTHANDS or key == "checkout":
            return key
    return None


def _script_inputs(key: str, step: Mapping[str, Any]) -> tuple[str, dict[str, Any]]:
    task, fixed = STEP_SHORTHANDS[key]
    inputs: dict[str, Any] = {}
    if "targetType" in fixed:
        inputs["targetType"] = fixed["targetType"]
    inputs["script"] = step[key]
    for name, value in fixed.items():
        if name != "targetType":
            inputs[name] = value
    if "workingDirectory" in step:
        inputs["workingDirectory"] = step["workingDirectory"]
    return task, inputs


def normalize_step(step: dict[str, Any]) -> dict[str, Any]:
    """Rewrite a shorthand step into `{task, inputs}` form.

    The task and inputs take the shorthand key's position; every other key
    keeps its place. Steps already in task form are returned unchanged.
    """
    key = _shorthand_key(step)
    if key is None:
        return step

    moved: set[str] = {key, "workingDirectory"}
    if key == "checkout":
        task = CHECKOUT_TASK
        inputs: dict[str, Any] = {"repository": step[key]}
        for name in _CHECKOUT_INPUTS:
            if name in step:
                inputs[name] = step[name]
                moved.add(name)
        if "workingDirectory" in step:
            inputs["workingDirectory"] = step["workingDirectory"]
    else:
        task, inputs = _script_inputs(key, step)

    result: dict[str, Any] = {}
    for name, value in step.items():
        if name == key:
            result["task"] = task
            result["inputs"] = inputs
        elif name not in moved:
            result[name] = value

    if key == "checkout" and step[key] == "none" and "condition" not in step:
        result["condition"] = False
    return result


def normalize_mapping(node: dict[str, Any], parent_key: str | None) -> dict[str, Any]:
    """Apply `pool` and `dependsOn` normalization to an expanded mapping."""
    if parent_key in _SKIPPED_PARENTS:
        return node
    pool = node.get("pool")
    if isinstance(pool, str):
        node["pool"] = {"name": pool}
    depends_on = node.get("dependsOn")
    if isinstance(depends_on, str):
        node["dependsOn"] = [depends_on]
    return node
