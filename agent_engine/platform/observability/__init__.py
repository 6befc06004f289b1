"""Observability infrastructure module.

This module provides monitoring for agent runs:
- Structured logging with run ids
- Prometheus metrics
- OpenTelemetry spans
"""

from agent_engine.platform.observability.logging import (
    configure_logging,
    configure_logging_from_settings,
    run_id_ctx,
    run_logging_context,
)
from agent_engine.platform.observability.metrics import BUCKETS
from agent_engine.platform.observability.tracing import span

__all__ = [
    "BUCKETS",
    "configure_logging",
    "configure_logging_from_settings",
    "run_id_ctx",
    "run_logging_context",
    "span",
]
