"""Agent execution module.

This module provides the execution engine and its components:
- Conversation items and usage accounting
- Response interpretation
- Tool invocation with approvals and error translation
- Guardrail pipeline
- Handoff resolution
- The turn-loop Runner and streaming adapter
- LiteLLM model backend adapter
"""

from agent_engine.platform.agent.config import AgentConfig, RunConfig
from agent_engine.platform.agent.context import ApprovalStatus, RunContext
from agent_engine.platform.agent.exceptions import (
    AgentsError,
    GuardrailExecutionError,
    GuardrailTripwireTriggered,
    InputGuardrailTripwireTriggered,
    MaxTurnsExceededError,
    ModelBackendError,
    ModelBehaviorError,
    ModelTimeoutError,
    NotImplementedCapabilityError,
    OutputGuardrailTripwireTriggered,
    RunTimeoutError,
    ToolExecutionError,
    ToolGuardrailTripwireTriggered,
    UserError,
)
from agent_engine.platform.agent.guardrails import (
    GuardrailResult,
    InputGuardrail,
    OutputGuardrail,
    ToolGuardrailResult,
    ToolInputGuardrail,
    ToolOutputGuardrail,
    blocked_terms_guardrail,
    input_guardrail,
    output_guardrail,
    pii_redaction_guardrail,
)
from agent_engine.platform.agent.handoffs import Handoff, handoff
from agent_engine.platform.agent.llm_client import LiteLLMProvider, LlmClient
from agent_engine.platform.agent.messages import (
    ApprovalRequestItem,
    HandoffCallItem,
    HandoffOutputItem,
    MessageInputItem,
    MessageOutputItem,
    RunItem,
    StreamEvent,
    ToolCallItem,
    ToolCallOutputItem,
)
from agent_engine.platform.agent.protocol import (
    FunctionCall,
    HostedToolCall,
    Model,
    ModelProvider,
    ModelRequest,
    ModelResponse,
    ModelSettings,
    OutputText,
)
from agent_engine.platform.agent.results import RunResult
from agent_engine.platform.agent.runner import Runner
from agent_engine.platform.agent.state import RunState
from agent_engine.platform.agent.streaming import StreamedRunResult
from agent_engine.platform.agent.tools import FunctionTool, HostedTool, function_tool
from agent_engine.platform.agent.usage import Usage

__all__ = [
    # Configuration
    "AgentConfig",
    "RunConfig",
    "ModelSettings",
    # Execution
    "Runner",
    "RunContext",
    "RunResult",
    "RunState",
    "StreamedRunResult",
    "ApprovalStatus",
    "Usage",
    # Conversation items
    "ApprovalRequestItem",
    "HandoffCallItem",
    "HandoffOutputItem",
    "MessageInputItem",
    "MessageOutputItem",
    "RunItem",
    "StreamEvent",
    "ToolCallItem",
    "ToolCallOutputItem",
    # Model backend
    "FunctionCall",
    "HostedToolCall",
    "LiteLLMProvider",
    "LlmClient",
    "Model",
    "ModelProvider",
    "ModelRequest",
    "ModelResponse",
    "OutputText",
    # Tools, guardrails, handoffs
    "FunctionTool",
    "HostedTool",
    "function_tool",
    "GuardrailResult",
    "InputGuardrail",
    "OutputGuardrail",
    "ToolGuardrailResult",
    "ToolInputGuardrail",
    "ToolOutputGuardrail",
    "blocked_terms_guardrail",
    "input_guardrail",
    "output_guardrail",
    "pii_redaction_guardrail",
    "Handoff",
    "handoff",
    # Errors
    "AgentsError",
    "GuardrailExecutionError",
    "GuardrailTripwireTriggered",
    "InputGuardrailTripwireTriggered",
    "MaxTurnsExceededError",
    "ModelBackendError",
    "ModelBehaviorError",
    "ModelTimeoutError",
    "NotImplementedCapabilityError",
    "OutputGuardrailTripwireTriggered",
    "RunTimeoutError",
    "ToolExecutionError",
    "ToolGuardrailTripwireTriggered",
    "UserError",
]
