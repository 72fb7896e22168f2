"""Repository resources: normalization, override merging and lookup.

Repositories may be declared as a list (`- repository: templates`) or as a
mapping keyed by alias (`templates: {type: git, name: org/repo}`). Both
forms normalize to a RepositoryList, an ordered list that also answers
lookups by alias. The alias of an entry is its `repository`, `alias` or
`name` field, in that order.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping
from typing import Any

from pipeline_studio.expressions.values import AliasedList

__all__ = [
    "RepositoryList",
    "LOCATION_FIELDS",
    "repository_alias",
    "normalize_repository_list",
    "merge_repository_configs",
    "normalize_resources",
    "merge_resources",
    "matches_criteria",
]

LOCATION_FIELDS = ("location", "path", "directory", "localPath")

_MATCH_KEYS = ("matchCriteria", "__match")
_NUMERIC = re.compile(r"^\d+$")


def repository_alias(entry: Any) -> str | None:
    if not isinstance(entry, Mapping):
        return None
    for key in ("repository", "alias", "name"):
        value = entry.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _is_positional(alias: str | None) -> bool:
    return alias is None or bool(_NUMERIC.match(alias))


class RepositoryList(AliasedList):
    """Ordered repository entries, addressable by alias or position."""

    def entry_name(self, entry: Any) -> str | None:
        return repository_alias(entry)

    def find(self, alias: str) -> dict[str, Any] | None:
        """Entry by alias, falling back to position for numeric aliases."""
        entry = self.lookup(alias)
        if entry is None and _NUMERIC.match(alias):
            index = int(alias)
            if index < len(self):
                entry = self[index]
        return entry


def normalize_repository_list(value: Any) -> RepositoryList:
    """Normalize list or mapping form into a RepositoryList of copies.

    Non-mapping entries are dropped. In mapping form the key becomes the
    entry's `repository` unless the entry already names one.
    """
    entries = RepositoryList()
    if isinstance(value, list):
        entries.extend(copy.deepcopy(e) for e in value if isinstance(e, Mapping))
    elif isinstance(value, Mapping):
        for key, entry in value.items():
            if not isinstance(entry, Mapping):
                continue
            cloned = copy.deepcopy(dict(entry))
            if not cloned.get("repository") and key:
                cloned["repository"] = str(key)
            entries.append(cloned)
    return entries


def matches_criteria(existing: Mapping[str, Any], criteria: Mapping[str, Any]) -> bool:
    """True when every non-empty criterion equals the existing field."""
    for key, expected in criteria.items():
        if expected is None or expected == "":
            continue
        if key not in existing or existing[key] != expected:
            return False
    return True


def merge_repository_configs(base: Any, override: Any) -> RepositoryList:
    """Merge override repository entries into base entries by alias.

    An override entry may carry `matchCriteria` (or `__match`); it then only
    applies when the existing entry's fields match. An override `location`
    only fills in a location the existing entry lacks. Entries without a
    usable alias are kept positionally.
    """
    base_list = normalize_repository_list(base)
    override_list = normalize_repository_list(override)
    if not override_list:
        return base_list

    merged: dict[str, dict[str, Any]] = {}

    def add(entry: dict[str, Any], from_override: bool) -> None:
        clone = copy.deepcopy(entry)
        criteria = None
        for match_key in _MATCH_KEYS:
            candidate = clone.pop(match_key, None)
            if isinstance(candidate, Mapping):
                criteria = candidate

        alias = repository_alias(clone)
        key = alias if not _is_positional(alias) else f"__index_{len(merged)}"
        if alias and not _is_positional(alias) and not clone.get("repository"):
            clone["repository"] = alias

        existing = merged.get(key)
        if existing is None:
            merged[key] = clone
            return
        if from_override and criteria and not matches_criteria(existing, criteria):
            return
        if from_override and any(existing.get(f) for f in LOCATION_FIELDS):
            for location_field in LOCATION_FIELDS:
                clone.pop(location_field, None)
        merged[key] = {**existing, **clone}

    for entry in base_list:
        add(entry, from_override=False)
    for entry in override_list:
        add(entry, from_override=True)

    return RepositoryList(copy.deepcopy(list(merged.values())))


def normalize_resources(resources: Any) -> dict[str, Any]:
    if not isinstance(resources, Mapping):
        return {}
    normalized: dict[str, Any] = {}
    for key, value in resources.items():
        if key == "repositories":
            normalized[key] = normalize_repository_list(value)
        else:
            normalized[key] = copy.deepcopy(value)
    return normalized


def merge_resources(base: Any, override: Any) -> dict[str, Any]:
    """Merge override resources over base resources.

    `repositories` is list-merged by alias; every other key is replaced.
    """
    base_resources = normalize_resources(base)
    override_resources = normalize_resources(override)

    merged = {k: v for k, v in base_resources.items() if k != "repositories"}
    merged["repositories"] = merge_repository_configs(
        base_resources.get("repositories"),
        override_resources.get("repositories"),
    )
    merged.update(
        (k, v) for k, v in override_resources.items() if k != "repositories"
    )
    return merged
