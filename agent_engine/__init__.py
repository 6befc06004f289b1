"""agent-engine - A turn-loop execution engine for tool-using, multi-agent LLM conversations."""

from .platform import (
    AgentConfig,
    RunConfig,
    RunContext,
    RunResult,
    Runner,
    Settings,
    StreamedRunResult,
    function_tool,
    handoff,
)

__all__ = [
    "AgentConfig",
    "RunConfig",
    "RunContext",
    "RunResult",
    "Runner",
    "Settings",
    "StreamedRunResult",
    "function_tool",
    "handoff",
]
