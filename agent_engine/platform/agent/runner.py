"""Execution engine.

The Runner drives the turn loop: compose a request from the accumulated
conversation and the active agent, call the model, interpret the response,
resolve tool calls and handoffs, and repeat until the model produces a
final answer or a limit is hit.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from agent_engine.platform.agent.config import AgentConfig, RunConfig
from agent_engine.platform.agent.context import RunContext
from agent_engine.platform.agent.exceptions import (
    AgentsError,
    MaxTurnsExceededError,
    ModelBackendError,
    ModelBehaviorError,
    ModelTimeoutError,
    RunTimeoutError,
)
from agent_engine.platform.agent.guardrails import run_input_guardrails, run_output_guardrails
from agent_engine.platform.agent.handoffs import (
    classify_handoff_calls,
    handoff_map,
    handoff_output_as_tool_result,
    resolve_handoffs,
)
from agent_engine.platform.agent.invoker import ToolInvoker
from agent_engine.platform.agent.llm_client import LiteLLMProvider
from agent_engine.platform.agent.messages import (
    ApprovalRequestItem,
    CallItem,
    HandoffCallItem,
    HandoffOutputItem,
    MessageOutputItem,
    RunItem,
    StreamEvent,
    ToolCallItem,
    item_to_dict,
    stream_event_for,
)
from agent_engine.platform.agent.parser import extract_final_output, parse_response_items
from agent_engine.platform.agent.protocol import Model, ModelRequest, ModelResponse, ToolSpec
from agent_engine.platform.agent.results import RunResult
from agent_engine.platform.agent.state import RunState
from agent_engine.platform.agent.streaming import StreamedRunResult
from agent_engine.platform.agent.tools import FunctionTool
from agent_engine.platform.observability.logging import run_logging_context
from agent_engine.platform.observability.metrics import (
    AgentMetricsLabels,
    collect_agent_metrics,
    record_agent_tokens,
    record_turn,
)
from agent_engine.platform.observability.tracing import (
    INPUT_VALUE,
    OUTPUT_VALUE,
    session_scope,
    set_payload,
    span,
)
from agent_engine.platform.sessions.protocol import Session

logger = logging.getLogger(__name__)

type EventSink = Callable[[StreamEvent], None]


def build_request_input(items: list[RunItem]) -> list[RunItem]:
    """Items to send to the model.

    The model's own prior messages and pending approval markers are left
    out; handoff records are sent as the tool calls and results they answer.
    """
    request_items: list[RunItem] = []
    for item in items:
        if isinstance(item, (MessageOutputItem, ApprovalRequestItem)):
            continue
        if isinstance(item, HandoffCallItem):
            request_items.append(
                ToolCallItem(id=item.id, tool_name=item.tool_name, parameters=item.parameters)
            )
        elif isinstance(item, HandoffOutputItem):
            request_items.append(handoff_output_as_tool_result(item))
        else:
            request_items.append(item)
    return request_items


class _RunLoop:
    """One execution of the turn loop over a RunState."""

    def __init__(
        self,
        state: RunState,
        run_config: RunConfig,
        session: Session | None = None,
        emit: EventSink | None = None,
    ) -> None:
        self.state = state
        self.run_config = run_config
        self.session = session
        self._emit = emit
        self._tracing = not run_config.tracing_disabled
        self._sensitive = run_config.trace_include_sensitive_data
        self._provider = run_config.model_provider or LiteLLMProvider()

    def _append(self, item: RunItem, turn_index: int) -> None:
        self.state.generated_items.append(item)
        if self._emit is not None:
            self._emit(stream_event_for(item, turn_index))

    def _emit_agent_updated(self, agent: AgentConfig, turn_index: int) -> None:
        if self._emit is not None:
            self._emit(
                StreamEvent(
                    event_type="agent_updated",
                    item=None,
                    turn_index=turn_index,
                    data={"agent": agent.name},
                )
            )

    async def execute(self) -> RunResult:
        state = self.state
        if self.session is not None and not state.input_guardrails_done and not state.history_items:
            state.history_items = list(await self.session.get_items())

        if not state.input_guardrails_done:
            state.original_input = await run_input_guardrails(
                state.starting_agent.input_guardrails,
                state.context,
                state.original_input,
                tracing_enabled=self._tracing,
            )
            state.input_guardrails_done = True

        while True:
            pending = state.pending_calls()
            if pending:
                await self._resume_pending(pending)
                if state.interruptions:
                    return self._result(final_output=None)
                continue

            if state.current_turn >= state.max_turns:
                logger.warning(f"Run {state.run_id} hit the turn limit of {state.max_turns}")
                raise MaxTurnsExceededError(state.max_turns, state.current_turn)

            finished = await self._run_turn()
            if state.interruptions:
                return self._result(final_output=None)
            if finished:
                break

        agent = state.current_agent
        final_output = self._process_final_output(agent, extract_final_output(state.generated_items))
        final_output = await run_output_guardrails(
            agent.output_guardrails,
            state.context,
            final_output,
            usage=state.usage,
            tracing_enabled=self._tracing,
        )

        if self.session is not None:
            await self.session.add_items([*state.input_items, *state.generated_items])

        logger.info(
            f"Run {state.run_id} finished after {state.current_turn} turn(s) "
            f"with agent '{agent.name}'"
        )
        return self._result(final_output=final_output)

    def _result(self, final_output: Any) -> RunResult:
        state = self.state
        if state.interruptions:
            logger.info(
                f"Run {state.run_id} paused with {len(state.interruptions)} approval request(s)"
            )
        return RunResult(
            input=state.original_input,
            new_items=list(state.generated_items),
            final_output=final_output,
            raw_responses=list(state.raw_responses),
            usage=state.usage,
            last_response_id=state.last_response_id,
            last_agent=state.current_agent,
            context=state.context,
            interruptions=list(state.interruptions),
            _state=state,
        )

    async def _run_turn(self) -> bool:
        """Run one model turn; return True when the run reached its final output."""
        state = self.state
        agent = state.current_agent
        state.current_turn += 1
        turn_index = state.current_turn - 1

        with span("agent_turn", self._tracing, agent=agent.name, turn=state.current_turn) as current:
            response = await self._call_model(agent, current)
            set_payload(current, OUTPUT_VALUE, response.output, self._sensitive)
            record_turn(agent.name)
            state.raw_responses.append(response)
            state.last_response_id = response.response_id
            state.add_usage(response.usage)

            items = classify_handoff_calls(parse_response_items(response.output, agent.name), agent)
            if not items:
                raise ModelBehaviorError(f"Model returned no output for agent '{agent.name}'")
            for item in items:
                self._append(item, turn_index)

            calls = [
                item
                for item in items
                if isinstance(item, HandoffCallItem) or (isinstance(item, ToolCallItem) and not item.hosted)
            ]
            if calls:
                logger.debug(f"Turn {state.current_turn}: resolving {len(calls)} call(s)")
                await self._resolve_calls(calls, agent, turn_index)
                return False

        produced_message = any(isinstance(item, MessageOutputItem) for item in items)
        return produced_message and not state.pending_calls()

    async def _call_model(self, agent: AgentConfig, current: Any = None) -> ModelResponse:
        model, model_name = self._resolve_model(agent)
        request = ModelRequest(
            model=model_name,
            instructions=await agent.get_instructions(self.state.context),
            input=build_request_input(self.state.all_items()),
            tools=await self._tool_specs(agent),
            output_schema=agent.output_schema(),
            settings=agent.model_settings.merged_with(self.run_config.model_settings),
            previous_response_id=self.state.last_response_id,
            max_tool_calls=agent.max_tool_calls,
        )
        set_payload(
            current, INPUT_VALUE, [item_to_dict(item) for item in request.input], self._sensitive
        )
        timeout = self.run_config.model_timeout
        try:
            async with asyncio.timeout(timeout):
                response = await model.get_response(request)
        except TimeoutError as e:
            if timeout is None:
                raise ModelBackendError(str(e) or type(e).__name__, cause=e) from e
            raise ModelTimeoutError(timeout) from e
        except AgentsError:
            raise
        except Exception as e:
            raise ModelBackendError(str(e) or type(e).__name__, cause=e) from e

        record_agent_tokens(
            agent.name,
            model_name,
            response.usage.input_tokens,
            response.usage.output_tokens,
        )
        return response

    def _resolve_model(self, agent: AgentConfig) -> tuple[Model, str]:
        choice = self.run_config.model if self.run_config.model is not None else agent.model
        if choice is None or isinstance(choice, str):
            model = self._provider.get_model(choice)
            return model, choice or getattr(model, "model_name", "default")
        return choice, getattr(choice, "model_name", type(choice).__name__)

    async def _tool_specs(self, agent: AgentConfig) -> list[ToolSpec]:
        specs: list[ToolSpec] = []
        for tool in agent.tools:
            if isinstance(tool, FunctionTool) and not await tool.check_enabled(self.state.context):
                continue
            specs.append(tool.to_spec())
        specs.extend(h.to_spec() for h in handoff_map(agent).values())
        return specs

    async def _invoke_all(self, calls: list[ToolCallItem], agent: AgentConfig) -> list[Any]:
        """Invoke tool calls concurrently and return their resolutions in call order."""
        invoker = ToolInvoker(
            agent,
            self.state.context,
            tool_timeout=self.run_config.tool_timeout,
            tracing_enabled=self._tracing,
            include_sensitive_data=self._sensitive,
        )
        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(invoker.invoke(call)) for call in calls]
        except* AgentsError as eg:
            raise eg.exceptions[0] from None
        return [task.result() for task in tasks]

    async def _resolve_calls(self, calls: list[CallItem], agent: AgentConfig, turn_index: int) -> None:
        """Resolve a turn's calls and append one result per call, in source order."""
        tool_calls = [call for call in calls if isinstance(call, ToolCallItem)]
        handoff_calls = [call for call in calls if isinstance(call, HandoffCallItem)]

        resolutions = dict(zip((c.id for c in tool_calls), await self._invoke_all(tool_calls, agent)))
        handoff = resolve_handoffs(handoff_calls, agent)
        resolutions.update((item.tool_call_id, item) for item in handoff.items)

        for call in calls:
            resolution = resolutions[call.id]
            self._append(resolution, turn_index)
            if isinstance(resolution, ApprovalRequestItem):
                self.state.interruptions.append(resolution)

        if self.state.interruptions:
            self.state.paused_agent = agent
        if handoff.new_agent is not None:
            self.state.current_agent = handoff.new_agent
            self._emit_agent_updated(handoff.new_agent, turn_index)

    async def _resume_pending(self, pending: list[CallItem]) -> None:
        """Re-evaluate calls left pending by an approval pause."""
        state = self.state
        agent = state.paused_agent or state.current_agent
        turn_index = max(state.current_turn - 1, 0)
        previous = {item.tool_call_id for item in state.interruptions}
        state.interruptions = []

        tool_calls = [call for call in pending if isinstance(call, ToolCallItem)]
        resolutions = await self._invoke_all(tool_calls, agent)
        for call, resolution in zip(tool_calls, resolutions):
            if isinstance(resolution, ApprovalRequestItem):
                state.interruptions.append(resolution)
                if call.id in previous:
                    continue
            self._append(resolution, turn_index)

        if not state.interruptions:
            state.paused_agent = None

    def _process_final_output(self, agent: AgentConfig, output: Any) -> Any:
        if agent.output_type is None or output is None:
            return output
        try:
            if isinstance(output, str):
                return agent.output_type.model_validate_json(output)
            return agent.output_type.model_validate(output)
        except ValidationError as e:
            raise ModelBehaviorError(
                f"Final output does not match {agent.output_type.__name__}: {e}"
            ) from e


def _as_context(context: Any) -> RunContext:
    if isinstance(context, RunContext):
        return context
    return RunContext(context=context)


class Runner:
    """Entry point for running agents."""

    @classmethod
    def _prepare(
        cls,
        starting_agent: AgentConfig,
        input: str | list[RunItem] | RunState,
        context: Any,
        run_config: RunConfig | None,
    ) -> tuple[RunState, RunConfig]:
        run_config = run_config or RunConfig()
        if isinstance(input, RunState):
            state = input
            state.max_turns = run_config.max_turns
            if context is not None:
                state.context = _as_context(context)
            return state, run_config
        state = RunState(
            starting_agent=starting_agent,
            current_agent=starting_agent,
            context=_as_context(context),
            original_input=input if isinstance(input, str) else list(input),
            max_turns=run_config.max_turns,
        )
        return state, run_config

    @classmethod
    async def run(
        cls,
        starting_agent: AgentConfig,
        input: str | list[RunItem] | RunState,
        *,
        context: Any = None,
        session: Session | None = None,
        run_config: RunConfig | None = None,
    ) -> RunResult:
        """Run an agent until it produces a final output.

        Args:
            starting_agent: Agent the run starts with
            input: User text, conversation items, or the state of an interrupted run
            context: RunContext or an opaque payload to wrap in one
            session: Optional session supplying history and receiving new items
            run_config: Per-run options

        Returns:
            The run result; check ``interruptions`` for pending approvals

        Raises:
            InputGuardrailTripwireTriggered: Input rejected before any model call
            OutputGuardrailTripwireTriggered: Final output rejected
            ToolGuardrailTripwireTriggered: A tool guardrail aborted the run
            MaxTurnsExceededError: Turn limit reached without a final output
            ModelBackendError: Model call failed or timed out
            ModelBehaviorError: Model output could not be acted on
            RunTimeoutError: Whole run exceeded its timeout
        """
        state, run_config = cls._prepare(starting_agent, input, context, run_config)
        return await cls._execute(state, run_config, session)

    @classmethod
    async def _execute(
        cls,
        state: RunState,
        run_config: RunConfig,
        session: Session | None,
        emit: EventSink | None = None,
    ) -> RunResult:
        loop = _RunLoop(state, run_config, session=session, emit=emit)
        tracing = not run_config.tracing_disabled
        labels = AgentMetricsLabels(state.starting_agent.name)
        with run_logging_context(state.run_id):
            logger.info(f"Run {state.run_id} started with agent '{state.current_agent.name}'")
            with span(
                run_config.workflow_name,
                tracing,
                agent=state.starting_agent.name,
                run_id=state.run_id,
            ):
                with session_scope(session.session_id if session else None, tracing):
                    async with collect_agent_metrics(labels) as metrics:
                        try:
                            async with asyncio.timeout(run_config.run_timeout):
                                result = await loop.execute()
                        except TimeoutError as e:
                            if run_config.run_timeout is None:
                                raise
                            raise RunTimeoutError(run_config.run_timeout) from e
                        if result.interruptions:
                            metrics.status = "interrupted"
                        return result

    @classmethod
    def run_streamed(
        cls,
        starting_agent: AgentConfig,
        input: str | list[RunItem] | RunState,
        *,
        context: Any = None,
        session: Session | None = None,
        run_config: RunConfig | None = None,
    ) -> StreamedRunResult:
        """Start a run in the background and return a handle streaming its events.

        Must be called from a running event loop.
        """
        state, run_config = cls._prepare(starting_agent, input, context, run_config)
        streamed = StreamedRunResult(state)
        streamed.start(cls._execute(state, run_config, session, emit=streamed.push))
        return streamed
