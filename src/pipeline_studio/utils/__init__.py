"""Utility modules for Pipeline Studio."""

from __future__ import annotations

from pipeline_studio.utils.paths import resolve_configured_path

__all__ = ["resolve_configured_path"]
