# src/streamplan/core/logging.py
"""Structured logging setup for StreamPlan.

Modules log through ``structlog.get_logger(__name__)``. Until logging is
configured, structlog's defaults apply and nothing here is needed; a
pipeline opts in with the ``log_level`` and ``log_json`` options, which
PipelineRunner applies through ``apply_logging_options``.

Both structlog and stdlib records go through one ProcessorFormatter, so
library loggers (httpx, when submitting to a cluster) render the same way
as StreamPlan's own lines.

Job identifiers bound with ``job_log_context`` are merged into every line
logged inside the block, including lines from local engine worker threads
running jobs submitted there.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

if TYPE_CHECKING:
    from streamplan.core.config import PipelineOptions

# The cluster client's HTTP stack logs every request at DEBUG.
_HTTP_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")


def _drop_formatter_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """ProcessorFormatter bookkeeping never reaches the rendered line."""
    event_dict.pop("_record", None)
    event_dict.pop("_from_structlog", None)
    return event_dict


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]


def _render_processors(json_output: bool) -> list[Any]:
    if json_output:
        return [_drop_formatter_fields, structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [_drop_formatter_fields, structlog.dev.ConsoleRenderer(colors=False)]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Route structlog and stdlib logging to one handler on the root logger.

    Calling it again replaces the handler, so the last call wins.

    Args:
        json_output: One JSON object per line instead of console key=value output
        level: DEBUG, INFO, WARNING or ERROR
        stream: Destination of log lines (default: sys.stderr)
    """
    log_level = logging.getLevelNamesMapping()[level.upper()]
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Not cached: loggers created before a reconfiguration must follow it
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(ProcessorFormatter(processors=_render_processors(json_output), foreign_pre_chain=shared))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    # HTTP request lines only show at WARNING or above, never below the root level
    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def apply_logging_options(options: PipelineOptions) -> bool:
    """Configure logging from ``options.log_level`` and ``options.log_json``.

    Leaves logging untouched when ``log_level`` is unset, so applications
    that configure logging themselves keep their setup.

    Returns:
        Whether logging was configured
    """
    if options.log_level is None:
        return False
    configure_logging(json_output=options.log_json, level=options.log_level)
    return True


@contextmanager
def job_log_context(**identifiers: str) -> Iterator[None]:
    """Bind job identifiers (``job_name``, ``job_id``) to lines logged in the block."""
    with structlog.contextvars.bound_contextvars(**identifiers):
        yield
