from __future__ import annotations

from pathlib import Path
from typing import Any

import click
import yaml

from pipeline_studio.cli.context import CLIContext, ExitCode
from pipeline_studio.cli.output import format_error
from pipeline_studio.config import ExpansionOptions, StudioConfig
from pipeline_studio.exceptions import PipelineStudioError
from pipeline_studio.logging import bind_context, clear_context, get_logger
from pipeline_studio.pipeline import PipelineExpander
from pipeline_studio.serialization.loader import PipelineLoader
from pipeline_studio.utils.paths import resolve_configured_path

__all__ = ["expand", "parse_assignment", "parse_parameter_value"]

DOCUMENT_SEPARATOR = "---\n"


def parse_assignment(entry: str, option: str) -> tuple[str, str]:
    """Split a `NAME=VALUE` option value.

    Raises:
        click.BadParameter: If there is no `=` or the name is empty.
    """
    name, separator, value = entry.partition("=")
    if not separator or not name.strip():
        raise click.BadParameter(
            f"expected {option}, got '{entry}'",
            param_hint=f"'{option.split('=')[0]}'",
        )
    return name.strip(), value.strip()


def parse_parameter_value(value: str) -> Any:
    """Read a parameter value the way YAML would (`3` is a number)."""
    if not value:
        return ""
    try:
        parsed = yaml.load(value, Loader=PipelineLoader)  # noqa: S506
    except yaml.YAMLError:
        return value
    return "" if parsed is None else parsed


def _resource_locations(
    config: StudioConfig, entries: tuple[str, ...]
) -> dict[str, str]:
    logger = get_logger(__name__)
    configured = dict(config.resource_locations)
    for entry in entries:
        alias, raw_path = parse_assignment(entry, "ALIAS=PATH")
        configured[alias] = raw_path

    locations: dict[str, str] = {}
    for alias, raw_path in configured.items():
        resolved = resolve_configured_path(raw_path, Path.cwd())
        if resolved is None:
            logger.warning("resource_location_skipped", alias=alias, path=raw_path)
            continue
        locations[alias] = str(resolved)
    return locations


@click.command()
@click.argument(
    "files",
    nargs=-1,
    required=True,
    type=click.Path(dir_okay=False, path_type=Path),
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    default=None,
    help="Write the expanded pipeline to this file (single input only).",
)
@click.option(
    "-r",
    "--resource-location",
    "resource_locations",
    multiple=True,
    metavar="ALIAS=PATH",
    help="Local checkout of a repository resource. Repeatable.",
)
@click.option(
    "-p",
    "--parameter",
    "parameters",
    multiple=True,
    metavar="NAME=VALUE",
    help="Override a pipeline parameter. Values are read as YAML. Repeatable.",
)
@click.option(
    "--azure-compatible/--literal",
    "azure_compatible",
    default=None,
    help="Render multi-line values the way the pipeline service does.",
)
@click.pass_context
def expand(
    ctx: click.Context,
    files: tuple[Path, ...],
    output: Path | None,
    resource_locations: tuple[str, ...],
    parameters: tuple[str, ...],
    azure_compatible: bool | None,
) -> None:
    """Expand templates, expressions and directives in pipeline files.

    Each FILE is expanded independently and written to stdout, separated by
    `---` when there are several.

    Examples:
        pipeline-studio expand azure-pipelines.yml
        pipeline-studio expand ci.yml -r templates=../pipeline-templates
        pipeline-studio expand ci.yml -p environment=prod -o rendered.yml
    """
    logger = get_logger(__name__)
    cli_ctx: CLIContext | None = (ctx.obj or {}).get("cli_ctx")
    config = cli_ctx.config if cli_ctx else StudioConfig()

    if output is not None and len(files) > 1:
        click.echo(
            format_error(
                "--output can only be used with a single input file",
                suggestion="Expand files one at a time or write to stdout",
            ),
            err=True,
        )
        raise SystemExit(ExitCode.FAILURE)

    try:
        overrides = ExpansionOptions(
            parameters={
                name: parse_parameter_value(value)
                for name, value in (parse_assignment(p, "NAME=VALUE") for p in parameters)
            },
            resource_locations=_resource_locations(config, resource_locations),
            azure_compatible=(
                config.azure_compatible if azure_compatible is None else azure_compatible
            ),
        )
    except click.BadParameter as e:
        click.echo(format_error(e.format_message()), err=True)
        raise SystemExit(ExitCode.FAILURE) from e

    failed = False
    rendered: list[str] = []
    try:
        for path in files:
            bind_context(file=str(path))
            try:
                rendered.append(
                    PipelineExpander().expand_file_to_string(path, overrides)
                )
                logger.info("pipeline_expanded", output=str(output) if output else "-")
            except PipelineStudioError as e:
                failed = True
                click.echo(format_error(e.message, details=[f"File: {path}"]), err=True)
            except OSError as e:
                failed = True
                click.echo(
                    format_error(f"Cannot read {path}: {e.strerror or e}"), err=True
                )
            finally:
                clear_context()
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user.", err=True)
        raise SystemExit(ExitCode.INTERRUPTED) from None

    text = DOCUMENT_SEPARATOR.join(rendered)
    if output is not None:
        if rendered:
            output.write_text(text, encoding="utf-8")
    else:
        click.echo(text, nl=False)

    if failed:
        raise SystemExit(ExitCode.FAILURE)
