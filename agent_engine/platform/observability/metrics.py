"""Prometheus metrics for agent runs.

Counters and histograms for runs, turns, tool calls, token usage and
guardrail tripwires, registered on the default registry.
"""

from time import monotonic
from typing import NamedTuple

import prometheus_client


class AgentMetricsLabels(NamedTuple):
    agent: str


class ToolMetricsLabels(NamedTuple):
    agent: str
    tool_name: str


BUCKETS = (
    # log spaced with 1 sig-fig rounding, 3 per decade
    0.0002,  # 200 μs
    0.0005,
    0.001,  # 1 ms
    0.002,
    0.005,
    0.01,
    0.02,
    0.05,
    0.1,
    0.2,
    0.5,
    1,
    2,
    5,
    10,
    20,
    50,
    100,  # long multi-turn runs
    float("inf"),
)


def setup_metrics_factory(registry, name, documentation, labelnames):
    """Create a Prometheus histogram with standard bucket configuration.

    Args:
        registry: Prometheus registry to register the metric with
        name: Metric name (e.g., "agent_run_duration_seconds")
        documentation: Human-readable metric description
        labelnames: Tuple of label names for the histogram

    Returns:
        Configured Prometheus Histogram instance
    """
    return prometheus_client.Histogram(
        name=name,
        documentation=documentation,
        labelnames=labelnames,
        registry=registry,
        buckets=BUCKETS,
    )


run_histogram = setup_metrics_factory(
    prometheus_client.REGISTRY,
    name="agent_run_duration_seconds",
    documentation="Agent run duration (seconds)",
    labelnames=AgentMetricsLabels._fields,
)
tool_call_histogram = setup_metrics_factory(
    prometheus_client.REGISTRY,
    name="agent_tool_call_duration_seconds",
    documentation="Tool call duration (seconds)",
    labelnames=ToolMetricsLabels._fields,
)
runs_counter = prometheus_client.Counter(
    "agent_runs",
    "Agent runs by terminal status",
    labelnames=("agent", "status"),
)
turns_counter = prometheus_client.Counter(
    "agent_turns",
    "Model turns executed",
    labelnames=("agent",),
)
tool_calls_counter = prometheus_client.Counter(
    "agent_tool_calls",
    "Tool calls by status",
    labelnames=("agent", "tool_name", "status"),
)
tokens_counter = prometheus_client.Counter(
    "agent_tokens",
    "Model tokens consumed",
    labelnames=("agent", "model", "direction"),
)
guardrail_tripwires_counter = prometheus_client.Counter(
    "agent_guardrail_tripwires",
    "Guardrail tripwires by checkpoint",
    labelnames=("guardrail", "stage"),
)


class collect_agent_metrics:
    """Async context manager timing a run and counting its outcome.

    Usage:
        ```
        async with collect_agent_metrics(AgentMetricsLabels("triage")):
            ...
        ```

    A run that ends without raising is counted as ``status``, which the
    caller may change (for example to "interrupted") before the block exits.
    """

    def __init__(self, labels: AgentMetricsLabels):
        self.labels = labels
        self.status = "success"
        self._start = 0.0

    async def __aenter__(self) -> "collect_agent_metrics":
        self._start = monotonic()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        run_histogram.labels(*self.labels).observe(monotonic() - self._start)
        status = self.status if exc_type is None else exc_type.__name__
        runs_counter.labels(self.labels.agent, status).inc()
        return False


def record_turn(agent: str) -> None:
    turns_counter.labels(agent).inc()


def record_tool_call(labels: ToolMetricsLabels, duration: float, error: bool = False) -> None:
    tool_call_histogram.labels(*labels).observe(duration)
    tool_calls_counter.labels(*labels, "error" if error else "success").inc()


def record_agent_tokens(agent: str, model: str, input_tokens: int, output_tokens: int) -> None:
    """Count tokens for a model call; zero counts are skipped."""
    if input_tokens > 0:
        tokens_counter.labels(agent, model, "input").inc(input_tokens)
    if output_tokens > 0:
        tokens_counter.labels(agent, model, "output").inc(output_tokens)


def record_guardrail_tripwire(guardrail: str, stage: str) -> None:
    guardrail_tripwires_counter.labels(guardrail, stage).inc()
