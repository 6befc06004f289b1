"""Unit tests for agent metrics collection.

This module tests the metrics NamedTuples, helper functions, and context managers.
"""

import prometheus_client
import pytest

from agent_engine.platform.observability.metrics import (
    AgentMetricsLabels,
    ToolMetricsLabels,
    collect_agent_metrics,
    record_agent_tokens,
    record_guardrail_tripwire,
    record_tool_call,
    record_turn,
)


def sample(name: str, **labels) -> float:
    return prometheus_client.REGISTRY.get_sample_value(name, labels) or 0.0


class TestMetricsLabels:
    """Tests for the label NamedTuples."""

    def test_agent_labels(self):
        """AgentMetricsLabels carries the agent name."""
        labels = AgentMetricsLabels(agent="my-agent")
        assert labels.agent == "my-agent"
        assert labels._fields == ("agent",)

    def test_tool_labels(self):
        """ToolMetricsLabels carries agent and tool names."""
        labels = ToolMetricsLabels(agent="my-agent", tool_name="search")
        assert labels._fields == ("agent", "tool_name")

    def test_immutable(self):
        """Labels are immutable."""
        labels = AgentMetricsLabels(agent="test")
        with pytest.raises(AttributeError):
            labels.agent = "other"  # type: ignore


class TestRecordToolCall:
    """Tests for record_tool_call helper function."""

    def test_records_success_status(self):
        """Calling with error=False increments the success counter."""
        labels = ToolMetricsLabels(agent="metrics-agent", tool_name="ok-tool")
        before = sample("agent_tool_calls_total", agent="metrics-agent", tool_name="ok-tool", status="success")
        record_tool_call(labels, duration=1.5)
        after = sample("agent_tool_calls_total", agent="metrics-agent", tool_name="ok-tool", status="success")
        assert after == before + 1

    def test_records_error_status(self):
        """Calling with error=True increments the error counter."""
        labels = ToolMetricsLabels(agent="metrics-agent", tool_name="bad-tool")
        before = sample("agent_tool_calls_total", agent="metrics-agent", tool_name="bad-tool", status="error")
        record_tool_call(labels, duration=0.5, error=True)
        after = sample("agent_tool_calls_total", agent="metrics-agent", tool_name="bad-tool", status="error")
        assert after == before + 1

    def test_accepts_zero_duration(self):
        """Zero duration is valid."""
        record_tool_call(ToolMetricsLabels(agent="metrics-agent", tool_name="t"), duration=0.0)


class TestRecordAgentTokens:
    """Tests for record_agent_tokens helper function."""

    def test_records_both_directions(self):
        """Input and output tokens are counted separately."""
        before_in = sample("agent_tokens_total", agent="tok-agent", model="m", direction="input")
        before_out = sample("agent_tokens_total", agent="tok-agent", model="m", direction="output")
        record_agent_tokens(agent="tok-agent", model="m", input_tokens=200, output_tokens=100)
        assert sample("agent_tokens_total", agent="tok-agent", model="m", direction="input") == before_in + 200
        assert sample("agent_tokens_total", agent="tok-agent", model="m", direction="output") == before_out + 100

    def test_skips_zero_counts(self):
        """Zero counts are not recorded."""
        record_agent_tokens(agent="zero-agent", model="m", input_tokens=0, output_tokens=0)
        assert sample("agent_tokens_total", agent="zero-agent", model="m", direction="input") == 0.0


class TestCounters:
    """Tests for turn and tripwire counters."""

    def test_record_turn(self):
        """record_turn increments the turn counter."""
        before = sample("agent_turns_total", agent="turn-agent")
        record_turn("turn-agent")
        assert sample("agent_turns_total", agent="turn-agent") == before + 1

    def test_record_guardrail_tripwire(self):
        """Tripwires are counted per guardrail and stage."""
        before = sample("agent_guardrail_tripwires_total", guardrail="g", stage="input")
        record_guardrail_tripwire("g", "input")
        assert sample("agent_guardrail_tripwires_total", guardrail="g", stage="input") == before + 1


class TestCollectAgentMetrics:
    """Tests for collect_agent_metrics async context manager."""

    def test_stores_labels(self):
        """Context manager stores labels."""
        labels = AgentMetricsLabels(agent="my-agent")
        assert collect_agent_metrics(labels).labels == labels

    async def test_context_manager_success(self):
        """Records success when no exception."""
        before = sample("agent_runs_total", agent="cm-agent", status="success")
        async with collect_agent_metrics(AgentMetricsLabels(agent="cm-agent")):
            pass
        assert sample("agent_runs_total", agent="cm-agent", status="success") == before + 1

    async def test_context_manager_error(self):
        """Records the error class and re-raises."""
        before = sample("agent_runs_total", agent="cm-agent", status="ValueError")
        with pytest.raises(ValueError):
            async with collect_agent_metrics(AgentMetricsLabels(agent="cm-agent")):
                raise ValueError("test error")
        assert sample("agent_runs_total", agent="cm-agent", status="ValueError") == before + 1

    async def test_context_manager_custom_status(self):
        """A status set inside the block replaces success."""
        before = sample("agent_runs_total", agent="cm-agent", status="interrupted")
        async with collect_agent_metrics(AgentMetricsLabels(agent="cm-agent")) as metrics:
            metrics.status = "interrupted"
        assert sample("agent_runs_total", agent="cm-agent", status="interrupted") == before + 1
