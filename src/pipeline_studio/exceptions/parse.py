from __future__ import annotations

from pipeline_studio.exceptions.base import PipelineStudioError


class PipelineParseError(PipelineStudioError):
    """Exception raised when pipeline or template YAML cannot be parsed.

    Expansion aborts; no partial document is produced.

    Attributes:
        message: Human-readable error message.
        file_path: Path of the file being parsed (if known).
        line_number: 1-based line where the parse error occurred (if known).
        parse_error: The underlying error raised by the YAML library.
    """

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        line_number: int | None = None,
        parse_error: Exception | None = None,
    ) -> None:
        """Initialize the PipelineParseError.

        Args:
            message: Human-readable error message.
            file_path: Optional path to the file that failed to parse.
            line_number: Optional 1-based line number of the error.
            parse_error: Optional underlying YAML error.
        """
        self.file_path = file_path
        self.line_number = line_number
        self.parse_error = parse_error
        super().__init__(message)
