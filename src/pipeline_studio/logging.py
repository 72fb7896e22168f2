"""Structured logging for Pipeline Studio.

Log records go through structlog and the standard library so that messages
from third-party loggers share one format. Everything is written to stderr
because stdout carries the expanded YAML.

Environment:
    PIPELINE_STUDIO_LOG_FORMAT: `json` for one JSON object per line,
        anything else for the console renderer.
    PIPELINE_STUDIO_LOG_LEVEL: Level name used when `configure_logging` is
        called without an explicit level. Unknown names mean INFO.

Usage:
    from pipeline_studio.logging import configure_logging, get_logger

    configure_logging()
    log = get_logger(__name__)
    log.debug("template_resolved", template="steps/build.yml")
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

__all__ = [
    "get_logger",
    "configure_logging",
    "bind_context",
    "clear_context",
]

LOG_FORMAT_ENV_VAR = "PIPELINE_STUDIO_LOG_FORMAT"
LOG_LEVEL_ENV_VAR = "PIPELINE_STUDIO_LOG_LEVEL"

_PACKAGE_PREFIX = "pipeline_studio."


def _level_from_env() -> int:
    name = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _add_component(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    """Tag records from this package with their subpackage.

    `pipeline_studio.expansion.templates` becomes `component=expansion`.
    """
    name = event_dict.get("logger") or ""
    if name.startswith(_PACKAGE_PREFIX):
        event_dict.setdefault("component", name[len(_PACKAGE_PREFIX) :].split(".")[0])
    return event_dict


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_component,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _stderr_handler(level: int, use_json: bool) -> logging.Handler:
    renderer: Processor
    if use_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_pre_chain(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    return handler


def configure_logging(*, force_json: bool = False, level: int | None = None) -> None:
    """Route structlog and stdlib logging to a single stderr handler.

    Calling this again replaces the previous handler, which the CLI relies on
    after it has read `--verbose` and the settings file.

    Args:
        force_json: Render JSON even when PIPELINE_STUDIO_LOG_FORMAT is unset.
        level: Root level. Defaults to PIPELINE_STUDIO_LOG_LEVEL.
    """
    use_json = force_json or os.environ.get(LOG_FORMAT_ENV_VAR, "").lower() == "json"
    log_level = _level_from_env() if level is None else level

    structlog.configure(
        processors=[
            *_pre_chain(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(_stderr_handler(log_level, use_json))
    root.setLevel(log_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, usually `get_logger(__name__)`."""
    log: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return log


def bind_context(**context: Any) -> None:
    """Attach key-value pairs to every record logged from this context.

    The CLI binds `file=` while it expands each input so that template and
    expression events can be traced back to the pipeline that caused them.
    """
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
