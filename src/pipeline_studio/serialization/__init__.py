"""YAML loading and rendering with formatting fidelity.

This package provides:
- load_pipeline(): parse YAML, protecting `${{ }}` and recording quote styles
- QuoteStyleTracker: quote-style bookkeeping and restoration
- BlockScalarHints: block-scalar style choices for multi-line strings
- dump_pipeline(): render an expanded tree as YAML
"""

from __future__ import annotations

from pipeline_studio.serialization.fidelity import (
    BlockScalarHints,
    QuoteStyleTracker,
    StyledScalar,
    insert_heredoc_separators,
)
from pipeline_studio.serialization.loader import (
    load_pipeline,
    protect_expressions,
    restore_expressions,
)
from pipeline_studio.serialization.writer import PipelineDumper, dump_pipeline

__all__ = [
    "BlockScalarHints",
    "PipelineDumper",
    "QuoteStyleTracker",
    "StyledScalar",
    "dump_pipeline",
    "insert_heredoc_separators",
    "load_pipeline",
    "protect_expressions",
    "restore_expressions",
]
