"""Logging for the feed, sync, ticket, and API jobs.

Every record, whether it comes from ``logging.getLogger(__name__)`` or from
structlog, is rendered by one structlog ``ProcessorFormatter`` on stderr:
coloured console lines for ``text``, one JSON object per line for ``json``.

The running job travels in structlog's context variables. A CLI command binds
it once through :func:`configure_logging`; an API request binds it for its
own duration with :func:`job_scope`, so cron and ticket records served by the
same process stay distinguishable.
"""

from __future__ import annotations

import logging
import re
import sys
from enum import StrEnum

import structlog
from opentelemetry import trace


class Job(StrEnum):
    calendar = "calendar"
    global_id_sync = "global-id-sync"
    tickets = "tickets"
    api = "api"


QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

REDACTED = "[REDACTED]"

_SECRET_PATTERNS = (
    (re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9._\-]+"), rf"\1 {REDACTED}"),
    (re.compile(r"\b(?:secret|ntn)_[A-Za-z0-9]{8,}"), REDACTED),
)


def redact_tokens(text: str) -> str:
    """Replace bearer tokens and Notion integration secrets in *text*."""
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def redact_secrets(logger, method_name: str, event_dict: dict) -> dict:  # noqa: ARG001
    """Processor: scrub credentials from every string value of the event."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = redact_tokens(value)
    return event_dict


def add_trace_context(logger, method_name: str, event_dict: dict) -> dict:  # noqa: ARG001
    """Processor: attach ``trace_id``/``span_id`` while an OTel span is active."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = trace.format_trace_id(ctx.trace_id)
        event_dict["span_id"] = trace.format_span_id(ctx.span_id)
    return event_dict


def bind_job(job: Job | str) -> None:
    structlog.contextvars.bind_contextvars(job=str(job))


def job_scope(job: Job | str, **fields: object):
    """Context manager binding *job* and *fields* to records emitted inside it."""
    return structlog.contextvars.bound_contextvars(job=str(job), **fields)


def _shared_processors(fmt: str) -> list[structlog.types.Processor]:
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso" if fmt == "json" else "%H:%M:%S"),
        add_trace_context,
        structlog.stdlib.ExtraAdder(),
    ]
    if fmt == "json":
        # Tracebacks become a string so they are redacted and serialized too.
        processors.append(structlog.processors.format_exc_info)
    processors.append(redact_secrets)
    return processors


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    job: Job | str | None = None,
) -> None:
    """Route all logging through structlog on stderr.

    Safe to call again; the root handler is replaced, not duplicated.
    """
    shared = _shared_processors(fmt)
    renderer = (
        structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer()
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    if job:
        bind_job(job)
