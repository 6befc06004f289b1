"""Structured logging for agent runs.

Engine modules log through the standard library; this module routes those
records through structlog, rendering JSON for services and colored console
output locally, and tags every record emitted during a run with its run id.
"""

import logging
import sys
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar

import structlog

# Identifier of the run being executed; propagates into tool tasks
run_id_ctx: ContextVar[str | None] = ContextVar("run_id", default=None)

# Model backend and session driver loggers that are chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "LiteLLM", "LiteLLM Router", "aiosqlite")


def add_run_id(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Processor that adds run_id to every log entry."""
    run_id = run_id_ctx.get()
    if run_id:
        event_dict["run_id"] = run_id
    return event_dict


@contextmanager
def run_logging_context(run_id: str) -> Iterator[None]:
    """Tag every record logged inside the block with ``run_id``."""
    token = run_id_ctx.set(run_id)
    try:
        yield
    finally:
        run_id_ctx.reset(token)


def configure_logging(
    log_level: str,
    json_output: bool = True,
    quiet_loggers: Iterable[str] = QUIET_LOGGERS,
) -> None:
    """Configure structlog with the run id processor and a renderer.

    Args:
        log_level: Logging level (INFO, DEBUG, etc.)
        json_output: True for JSON output, False for console
        quiet_loggers: Loggers capped at WARNING
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_run_id,
    ]

    if json_output:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging_from_settings(settings) -> None:
    """Configure logging from a Settings instance.

    JSON output is used unless ``log_json`` says otherwise or stdout is a terminal.
    """
    json_output = settings.logging.log_json
    if json_output is None:
        json_output = not sys.stdout.isatty()
    configure_logging(settings.logging.log_level, json_output=json_output)
