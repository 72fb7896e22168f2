from __future__ import annotations


class PipelineStudioError(Exception):
    """Root of every error the expansion engine raises on purpose.

    The CLI reports these as `Error: <message>` and moves on to the next
    input file. Anything else (OSError, KeyboardInterrupt) is handled
    separately or allowed to propagate.

    Attributes:
        message: Text shown to the user, also used as `str(error)`.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)
