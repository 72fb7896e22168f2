from __future__ import annotations

from typing import Any

from pipeline_studio.exceptions.base import PipelineStudioError


class ConfigError(PipelineStudioError):
    """A settings file, expansion option or CLI mapping could not be used.

    Attributes:
        field: Setting that was rejected, e.g. `"resourceLocations"`.
        value: The rejected value, kept for the error report.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
    ) -> None:
        self.field = field
        self.value = value
        super().__init__(message)

    def detail_lines(self) -> list[str]:
        """`Field:` and `Value:` lines for whichever of the two are set."""
        lines = []
        if self.field:
            lines.append(f"Field: {self.field}")
        if self.value is not None:
            lines.append(f"Value: {self.value}")
        return lines
