"""Engine infrastructure module.

This module provides the building blocks for running agents:
- Agent and run configuration
- The turn-loop runner and its streaming adapter
- Tools, guardrails and handoffs
- Session storage
- Settings and observability utilities
"""

from agent_engine.platform.agent import (
    AgentConfig,
    RunConfig,
    RunContext,
    RunResult,
    Runner,
    StreamedRunResult,
    function_tool,
    handoff,
)
from agent_engine.platform.settings import Settings

__all__ = [
    # Configuration
    "AgentConfig",
    "RunConfig",
    "Settings",
    # Execution
    "Runner",
    "RunContext",
    "RunResult",
    "StreamedRunResult",
    # Building blocks
    "function_tool",
    "handoff",
]
