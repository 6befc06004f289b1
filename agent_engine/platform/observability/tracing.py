"""OpenTelemetry span helpers.

Tracing is switched on or off per run through RunConfig, never through
process-wide state. Exporters are configured by the host application.
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager, nullcontext
from typing import Any

from openinference.instrumentation import using_session
from opentelemetry import trace

tracer = trace.get_tracer("agent_engine")

# OpenInference attribute names
INPUT_VALUE = "input.value"
OUTPUT_VALUE = "output.value"


@contextmanager
def span(name: str, enabled: bool = True, **attributes: Any) -> Iterator[trace.Span | None]:
    """Open a span when tracing is enabled, otherwise do nothing.

    Attributes with a None value are skipped.
    """
    if not enabled:
        yield None
        return
    with tracer.start_as_current_span(name) as current:
        for key, value in attributes.items():
            if value is not None:
                current.set_attribute(key, value)
        yield current


def set_payload(current: trace.Span | None, key: str, value: Any, include: bool) -> None:
    """Attach a JSON rendering of run data to a span.

    Skipped when there is no span or the run excludes sensitive data.
    """
    if current is None or not include:
        return
    current.set_attribute(key, json.dumps(value, default=str))


def session_scope(session_id: str | None, enabled: bool = True):
    """Group spans under a conversation session when one is in use."""
    if not enabled or session_id is None:
        return nullcontext()
    return using_session(session_id)
