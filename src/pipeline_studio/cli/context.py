"""Shared state for CLI commands.

The top-level group loads configuration once and stores a `CLIContext` in
`ctx.obj["cli_ctx"]`; subcommands read settings from there instead of
reloading them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path

from pipeline_studio.config import StudioConfig

__all__ = [
    "ExitCode",
    "CLIContext",
    "LOG_LEVELS",
]

LOG_LEVELS: dict[str, int] = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class ExitCode(IntEnum):
    """Process exit status.

    FAILURE is returned when any input file failed to expand, even if the
    others were written. INTERRUPTED follows the shell's 128 + SIGINT.
    """

    SUCCESS = 0
    FAILURE = 1
    INTERRUPTED = 130


@dataclass(frozen=True, slots=True)
class CLIContext:
    """Global options plus the settings they were resolved against."""

    config: StudioConfig = field(default_factory=StudioConfig)
    config_path: Path | None = None
    verbosity: int = 0
    quiet: bool = False

    @property
    def log_level(self) -> int:
        """Level for the root logger.

        `--quiet` wins over `-v`, and either wins over the configured
        `verbosity` setting.
        """
        if self.quiet:
            return logging.ERROR
        if self.verbosity >= 2:
            return logging.DEBUG
        if self.verbosity == 1:
            return logging.INFO
        return LOG_LEVELS.get(self.config.verbosity, logging.WARNING)
