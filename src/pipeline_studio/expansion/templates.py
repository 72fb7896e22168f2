"""Template inclusion: locating files, binding parameters, extracting bodies.

A template reference is any mapping carrying a `template` key. Its path is
either relative (`steps/build.yml`) or repository-qualified
(`steps/build.yml@templates`), in which case the alias is looked up in the
document's `resources.repositories` and in caller-supplied locations.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pipeline_studio.exceptions import (
    PipelineParseError,
    RepositoryResolutionError,
    TemplateError,
    TemplateNotFoundError,
    render_call_stack,
)
from pipeline_studio.expansion.parameters import (
    collect_call_parameters,
    extract_parameters,
    validate_template_parameters,
)
from pipeline_studio.expansion.repositories import LOCATION_FIELDS, RepositoryList
from pipeline_studio.logging import get_logger
from pipeline_studio.serialization.loader import load_pipeline

if TYPE_CHECKING:
    from pipeline_studio.expansion.context import ExecutionContext
    from pipeline_studio.expansion.expander import DocumentExpander

__all__ = [
    "MAX_TEMPLATE_DEPTH",
    "TEMPLATE_BODY_KEYS",
    "TemplateLocation",
    "TemplateResolver",
    "extract_template_body",
    "is_template_reference",
    "parse_repository_reference",
]

logger = get_logger(__name__)

MAX_TEMPLATE_DEPTH = 100

TEMPLATE_BODY_KEYS = (
    "stages",
    "jobs",
    "steps",
    "variables",
    "stage",
    "job",
    "deployment",
    "deployments",
)

_SEPARATORS = re.compile(r"[\\/]+")


def is_template_reference(value: Any) -> bool:
    return isinstance(value, Mapping) and "template" in value


def parse_repository_reference(value: str) -> tuple[str, str] | None:
    """Split `path@alias` on the last `@`.

    Returns:
        (template_path, alias), or None when the value carries no alias.
    """
    at = value.rfind("@")
    if at <= 0 or at == len(value) - 1:
        return None
    template_path = value[:at].strip()
    alias = value[at + 1 :].strip()
    if not template_path or not alias:
        return None
    return template_path, alias


def extract_template_body(expanded: Any) -> list[Any]:
    """Pick the items an expanded template contributes to its call site."""
    if isinstance(expanded, list):
        return expanded
    if not isinstance(expanded, Mapping):
        return []

    body = {key: value for key, value in expanded.items() if key != "parameters"}
    for key in TEMPLATE_BODY_KEYS:
        if key in body:
            value = body[key]
            return value if isinstance(value, list) else [value]
    return [body] if body else []


@dataclass(frozen=True, slots=True)
class TemplateLocation:
    """Where a template reference points.

    Attributes:
        path: Template file (may not exist when nothing matched).
        repository_base_dir: Repository root active inside the template.
        alias: Repository alias, for alias-qualified references.
        searched: Candidate files that were tried, in order.
    """

    path: Path
    repository_base_dir: Path | None = None
    alias: str | None = None
    searched: tuple[Path, ...] = ()


def _has_location(entry: Mapping[str, Any]) -> bool:
    return any(entry.get(name) for name in LOCATION_FIELDS)


def _relative_parts(template_path: str) -> list[str]:
    return [part for part in _SEPARATORS.split(template_path.lstrip("\\/")) if part]


def _candidates(template_path: str, bases: list[Path]) -> list[Path]:
    parts = _relative_parts(template_path)
    unique: list[Path] = []
    for base in bases:
        if base not in unique:
            unique.append(base)
    return [base.joinpath(*parts) for base in unique]


class TemplateResolver:
    """Expands template references into the items they contribute.

    Args:
        expander: Document expander used for call-site parameters and for
            the included body.
    """

    def __init__(self, expander: DocumentExpander) -> None:
        self.expander = expander

    def resolve(self, reference: Mapping[str, Any], context: ExecutionContext) -> list[Any]:
        """Expand one template reference.

        Args:
            reference: Mapping with a `template` key and optional `parameters`.
            context: Caller context.

        Returns:
            The included template's body items.

        Raises:
            TemplateNotFoundError: No file exists for the reference.
            RepositoryResolutionError: The repository alias is unknown.
            ParameterValidationError: Supplied parameters break the contract.
            PipelineParseError: The template is not valid YAML.
            TemplateError: Inclusion is nested too deeply.
        """
        identifier = self._identifier(reference.get("template"), context)
        if not identifier:
            return []

        if len(context.template_stack) >= MAX_TEMPLATE_DEPTH:
            raise TemplateError(
                f"Template '{identifier}' exceeds the maximum inclusion depth of "
                f"{MAX_TEMPLATE_DEPTH}.\n\nTemplate call stack:\n"
                + render_call_stack(context.template_stack),
                template=identifier,
            )

        location = self.locate(identifier, context)
        if not location.path.is_file():
            raise TemplateNotFoundError(
                f"Template file not found: {identifier}",
                template=identifier,
                searched=[str(p) for p in location.searched or (location.path,)],
            )

        document = self._load(location.path, identifier, context)
        provided: dict[str, Any] = {}
        if reference.get("parameters") is not None:
            provided = collect_call_parameters(
                self.expander.expand(
                    reference["parameters"],
                    context,
                    "parameters",
                    resolve_templates=False,
                )
            )
        validate_template_parameters(document, provided, identifier, context)

        frame = context.for_template(
            {**extract_parameters(document), **provided},
            template=identifier,
            base_dir=location.path.parent,
            repository_base_dir=location.repository_base_dir,
        )
        if isinstance(document, Mapping):
            document = {k: v for k, v in document.items() if k != "parameters"}
        expanded = self.expander.expand(document, frame)

        logger.debug(
            "template_resolved",
            template=identifier,
            path=str(location.path),
            repository=location.alias,
            depth=len(frame.template_stack),
        )
        return extract_template_body(expanded)

    def _identifier(self, raw: Any, context: ExecutionContext) -> str:
        if isinstance(raw, str):
            value: Any = self.expander.evaluator.interpolate(raw, context)
        else:
            value = self.expander.expand(raw, context)
        return value.strip() if isinstance(value, str) else ""

    def _load(self, path: Path, identifier: str, context: ExecutionContext) -> Any:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise TemplateNotFoundError(
                f"Template file could not be read: {identifier} ({e.strerror})",
                template=identifier,
                searched=[str(path)],
            ) from e

        try:
            return load_pipeline(
                text,
                tracker=context.formatting,
                record_paths=False,
                file_path=str(path),
            )
        except PipelineParseError as e:
            raise PipelineParseError(
                f"Failed to parse template '{identifier}': {e.message}",
                file_path=str(path),
                line_number=e.line_number,
                parse_error=e.parse_error,
            ) from e

    def locate(self, identifier: str, context: ExecutionContext) -> TemplateLocation:
        """Find the file a template identifier refers to.

        Alias-qualified paths are searched under the repository root, then
        under the caller's directory. Plain paths are searched under the
        caller's directory, then under the inherited repository root, and
        finally resolved as an ordinary relative or absolute path. A leading
        slash addresses the search base rather than the filesystem root.

        Raises:
            RepositoryResolutionError: The alias is unknown.
            TemplateNotFoundError: The alias has no usable local location.
        """
        reference = parse_repository_reference(identifier)
        if reference is not None:
            template_path, alias = reference
            entry = self.resolve_repository_entry(alias, context)
            if entry is None:
                raise RepositoryResolutionError(alias, identifier)

            location = self.resolve_repository_location(entry, context)
            if not location:
                raise TemplateNotFoundError(
                    f"Repository resource '{alias}' does not define a local "
                    f"location. Set a 'location' for this resource (for example "
                    f"with 'resource_locations' in pipeline-studio.yaml or "
                    f"--resource-location {alias}=PATH).",
                    template=identifier,
                )

            repository_root = self.resolve_repository_base_directory(location, context)
            candidates = _candidates(template_path, [repository_root, context.base_dir])
            found = next((c for c in candidates if c.is_file()), candidates[0])
            return TemplateLocation(found, repository_root, alias, tuple(candidates))

        bases = [context.base_dir]
        if context.repository_base_dir is not None:
            bases.append(context.repository_base_dir)
        candidates = _candidates(identifier, bases)
        for candidate in candidates:
            if candidate.is_file():
                return TemplateLocation(
                    candidate, context.repository_base_dir, searched=tuple(candidates)
                )

        plain = Path(identifier)
        if not plain.is_absolute():
            plain = context.base_dir / plain
        return TemplateLocation(
            plain,
            context.repository_base_dir,
            searched=(*candidates, plain),
        )

    def resolve_repository_entry(
        self, alias: str, context: ExecutionContext
    ) -> dict[str, Any] | None:
        """Repository entry for an alias, or None.

        Document-declared entries win. A caller-supplied location only fills
        in an entry without one, or stands in for an alias the document never
        declares. The returned entry is a copy.
        """
        repositories = context.resources.get("repositories")
        entry: dict[str, Any] | None = None
        if isinstance(repositories, RepositoryList):
            found = repositories.find(alias)
            entry = dict(found) if found is not None else None
        elif isinstance(repositories, Mapping) and isinstance(repositories.get(alias), Mapping):
            entry = dict(repositories[alias])

        external = context.resource_locations.get(alias)
        if entry is not None:
            if external and not _has_location(entry):
                entry["location"] = external
            return entry
        if external:
            return {"repository": alias, "location": external}
        return None

    def resolve_repository_location(
        self, entry: Mapping[str, Any], context: ExecutionContext
    ) -> str | None:
        """First usable location field, interpolated and `~`-expanded."""
        raw = next(
            (
                entry[name]
                for name in LOCATION_FIELDS
                if isinstance(entry.get(name), str) and entry[name].strip()
            ),
            None,
        )
        if raw is None:
            return None
        location = self.expander.evaluator.interpolate(raw, context).strip()
        if not location:
            return None
        return str(Path(location).expanduser())

    def resolve_repository_base_directory(
        self, location: str, context: ExecutionContext
    ) -> Path:
        """Repository root for a location; a file location yields its folder."""
        root = Path(location)
        if not root.is_absolute():
            root = context.base_dir / root
        if root.is_file():
            return root.parent
        return root
