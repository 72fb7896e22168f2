"""Command-line entry point.

`pipeline-studio` is a click group; configuration and logging are set up once
here before any subcommand runs.
"""

from __future__ import annotations

from pathlib import Path

import click

from pipeline_studio import __version__
from pipeline_studio.cli.commands.expand import expand
from pipeline_studio.cli.context import CLIContext, ExitCode
from pipeline_studio.cli.output import format_config_error
from pipeline_studio.config import load_config
from pipeline_studio.exceptions import ConfigError
from pipeline_studio.logging import configure_logging


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="pipeline-studio")
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Settings file to use instead of the project and user config.",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Log more (-v for INFO, -vv for DEBUG).",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    default=False,
    help="Log errors only.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Path | None,
    verbose: int,
    quiet: bool,
) -> None:
    """Pipeline Studio - expand YAML pipeline templates locally."""
    ctx.ensure_object(dict)

    try:
        config = load_config(config_file)
    except ConfigError as e:
        click.echo(format_config_error(e), err=True)
        ctx.exit(ExitCode.FAILURE)

    cli_ctx = CLIContext(
        config=config,
        config_path=config_file,
        verbosity=verbose,
        quiet=quiet,
    )
    ctx.obj["cli_ctx"] = cli_ctx
    configure_logging(level=cli_ctx.log_level)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(expand)
