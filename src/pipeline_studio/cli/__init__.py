"""Command-line interface for Pipeline Studio."""

from __future__ import annotations

from pipeline_studio.cli.context import CLIContext, ExitCode
from pipeline_studio.cli.output import format_error

__all__ = ["CLIContext", "ExitCode", "format_error"]
