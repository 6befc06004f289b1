"""Tool invocation.

Resolves a tool call against the active agent's tools, applies the
enable and approval checks, runs the tool under its timeout and tool
guardrails, and converts every tool failure into an error result. Only
guardrail aborts and failures of the surrounding checks escape, as typed
errors; a failing tool never ends the run.
"""

import asyncio
import logging
from time import monotonic
from typing import Any

from agent_engine.platform.agent.config import AgentConfig
from agent_engine.platform.agent.context import ApprovalStatus, RunContext
from agent_engine.platform.agent.exceptions import AgentsError, ToolExecutionError, ToolTimeoutError
from agent_engine.platform.agent.guardrails import (
    ToolGuardrailAction,
    run_tool_input_guardrails,
    run_tool_output_guardrails,
)
from agent_engine.platform.agent.messages import ApprovalRequestItem, ToolCallItem, ToolCallOutputItem
from agent_engine.platform.agent.tools import FunctionTool
from agent_engine.platform.constants import TOOL_NOT_FOUND_MESSAGE, TOOL_REJECTED_MESSAGE
from agent_engine.platform.observability.metrics import ToolMetricsLabels, record_tool_call
from agent_engine.platform.observability.tracing import INPUT_VALUE, OUTPUT_VALUE, set_payload, span

logger = logging.getLogger(__name__)

type ToolResolution = ToolCallOutputItem | ApprovalRequestItem


class ToolInvoker:
    """Turns tool calls into results for one agent within one run."""

    def __init__(
        self,
        agent: AgentConfig,
        context: RunContext,
        tool_timeout: float | None = None,
        tracing_enabled: bool = True,
        include_sensitive_data: bool = True,
    ) -> None:
        """Initialize the invoker.

        Args:
            agent: Active agent whose tools form the registry
            context: Run context carrying the approval table
            tool_timeout: Default per-call timeout; a tool's own timeout wins
            tracing_enabled: Whether to open a span per call
            include_sensitive_data: Whether to attach call parameters and output to the span
        """
        self._agent = agent
        self._context = context
        self._tool_timeout = tool_timeout
        self._tracing_enabled = tracing_enabled
        self._include_sensitive_data = include_sensitive_data

    def _not_found(self, call: ToolCallItem) -> ToolCallOutputItem:
        logger.warning(f"Agent '{self._agent.name}' requested unknown tool '{call.tool_name}'")
        return ToolCallOutputItem(
            tool_call_id=call.id,
            error=TOOL_NOT_FOUND_MESSAGE.format(tool_name=call.tool_name),
            tool_name=call.tool_name,
        )

    async def _lookup(self, call: ToolCallItem) -> FunctionTool | None:
        tool = self._agent.get_tool(call.tool_name)
        if not isinstance(tool, FunctionTool):
            return None
        if not await tool.check_enabled(self._context):
            logger.debug(f"Tool '{tool.name}' is disabled for this run")
            return None
        return tool

    async def invoke(self, call: ToolCallItem) -> ToolResolution:
        """Resolve one tool call.

        Returns:
            A ToolCallOutputItem, or an ApprovalRequestItem when the call is
            waiting for an approval decision

        Raises:
            ToolGuardrailTripwireTriggered: If a tool guardrail aborts the run
            GuardrailExecutionError: If a tool guardrail itself fails
            UserError: If the tool's is_enabled predicate fails
            ToolExecutionError: On any other failure outside the tool's own code
        """
        try:
            return await self._resolve(call)
        except AgentsError:
            raise
        except Exception as e:
            logger.exception(f"Resolving call '{call.id}' to '{call.tool_name}' failed")
            raise ToolExecutionError(call.tool_name, call.id, e) from e

    async def _resolve(self, call: ToolCallItem) -> ToolResolution:
        tool = await self._lookup(call)
        if tool is None:
            return self._not_found(call)

        with span(
            "tool_call",
            self._tracing_enabled,
            tool_name=tool.name,
            tool_call_id=call.id,
            agent=self._agent.name,
        ) as current:
            set_payload(current, INPUT_VALUE, call.parameters, self._include_sensitive_data)
            labels = ToolMetricsLabels(self._agent.name, tool.name)
            start_time = monotonic()

            try:
                needs_approval = await tool.check_needs_approval(self._context, call.parameters)
            except Exception as e:
                record_tool_call(labels, duration=monotonic() - start_time, error=True)
                return self._error(tool, call, e)

            if needs_approval:
                status = self._context.approval_status(tool.name, call.id)
                if status is ApprovalStatus.UNKNOWN:
                    logger.info(f"Tool call '{call.id}' to '{tool.name}' is waiting for approval")
                    return ApprovalRequestItem(
                        tool_name=tool.name,
                        tool_call_id=call.id,
                        parameters=call.parameters,
                        agent_name=self._agent.name,
                    )
                if status is ApprovalStatus.REJECTED:
                    logger.warning(f"Tool call '{call.id}' to '{tool.name}' was rejected")
                    return ToolCallOutputItem(
                        tool_call_id=call.id,
                        error=TOOL_REJECTED_MESSAGE.format(tool_name=tool.name),
                        tool_name=tool.name,
                    )

            guard = await run_tool_input_guardrails(
                self._agent.tool_input_guardrails, self._context, call
            )
            if guard.action is ToolGuardrailAction.REPLACE:
                output = guard.replacement
            else:
                try:
                    output = await self._run(tool, call)
                except Exception as e:
                    record_tool_call(labels, duration=monotonic() - start_time, error=True)
                    return self._error(tool, call, e)
                record_tool_call(labels, duration=monotonic() - start_time)

            output = await run_tool_output_guardrails(
                self._agent.tool_output_guardrails, self._context, call, output
            )
            set_payload(current, OUTPUT_VALUE, output, self._include_sensitive_data)
        return ToolCallOutputItem(tool_call_id=call.id, result=output, tool_name=tool.name)

    async def _run(self, tool: FunctionTool, call: ToolCallItem) -> Any:
        timeout = tool.timeout if tool.timeout is not None else self._tool_timeout
        if timeout is None:
            return await tool.invoke(self._context, call.parameters)
        try:
            async with asyncio.timeout(timeout):
                return await tool.invoke(self._context, call.parameters)
        except TimeoutError as e:
            raise ToolTimeoutError(tool.name, timeout) from e

    def _error(self, tool: FunctionTool, call: ToolCallItem, error: Exception) -> ToolCallOutputItem:
        logger.warning(f"Tool '{tool.name}' failed for call '{call.id}': {error!r}")
        return ToolCallOutputItem(
            tool_call_id=call.id,
            error=tool.format_error(self._context, error),
            tool_name=tool.name,
        )
