"""CLI commands for Pipeline Studio."""

from __future__ import annotations

from pipeline_studio.cli.commands.expand import expand

__all__ = ["expand"]
