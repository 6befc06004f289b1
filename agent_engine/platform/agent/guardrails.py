"""Guardrail pipeline.

Four checkpoints, each a chain of named checks evaluated sequentially in
registration order so a rewrite by one check is visible to the next:

- input guardrails: once per run, against the caller input
- output guardrails: once per completed run, against the final output
- tool input guardrails: per tool call, before the tool is invoked
- tool output guardrails: per tool call, before the result is appended
"""

import inspect
import logging
import re
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Self

from agent_engine.platform.agent.context import RunContext
from agent_engine.platform.agent.exceptions import (
    AgentsError,
    GuardrailExecutionError,
    InputGuardrailTripwireTriggered,
    OutputGuardrailTripwireTriggered,
    ToolGuardrailTripwireTriggered,
)
from agent_engine.platform.agent.messages import ToolCallItem
from agent_engine.platform.observability.metrics import record_guardrail_tripwire
from agent_engine.platform.observability.tracing import span

logger = logging.getLogger(__name__)

_UNCHANGED = object()


@dataclass(frozen=True)
class GuardrailResult:
    """Outcome of an input or output check.

    Attributes:
        tripwire_triggered: Abort the run
        rewritten_content: Replacement content; unchanged when not set
        message: Optional explanation surfaced with a tripwire
        output_info: Optional structured detail for the caller
    """

    tripwire_triggered: bool = False
    rewritten_content: Any = _UNCHANGED
    message: str | None = None
    output_info: Any = None

    @property
    def is_rewrite(self) -> bool:
        return self.rewritten_content is not _UNCHANGED

    @classmethod
    def safe(cls) -> Self:
        return cls()

    @classmethod
    def rewrite(cls, content: Any) -> Self:
        return cls(rewritten_content=content)

    @classmethod
    def tripwire(cls, message: str | None = None, output_info: Any = None) -> Self:
        return cls(tripwire_triggered=True, message=message, output_info=output_info)


class ToolGuardrailAction(StrEnum):
    ALLOW = "allow"
    REPLACE = "replace"
    ABORT = "abort"


@dataclass(frozen=True)
class ToolGuardrailResult:
    """Outcome of a tool check.

    Attributes:
        action: allow unchanged, replace the content, or abort the run
        replacement: Content used with REPLACE
        message: Optional explanation surfaced with ABORT
        output_info: Optional structured detail for the caller
    """

    action: ToolGuardrailAction = ToolGuardrailAction.ALLOW
    replacement: Any = None
    message: str | None = None
    output_info: Any = None

    @classmethod
    def allow(cls) -> Self:
        return cls()

    @classmethod
    def replace(cls, replacement: Any) -> Self:
        return cls(action=ToolGuardrailAction.REPLACE, replacement=replacement)

    @classmethod
    def abort(cls, message: str | None = None, output_info: Any = None) -> Self:
        return cls(action=ToolGuardrailAction.ABORT, message=message, output_info=output_info)


type GuardrailFunction = Callable[[RunContext, Any], GuardrailResult | Awaitable[GuardrailResult]]
type ToolInputGuardrailFunction = Callable[
    [RunContext, ToolCallItem], ToolGuardrailResult | Awaitable[ToolGuardrailResult]
]
type ToolOutputGuardrailFunction = Callable[
    [RunContext, ToolCallItem, Any], ToolGuardrailResult | Awaitable[ToolGuardrailResult]
]


async def _call(func: Callable[..., Any], *args: Any) -> Any:
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass(frozen=True)
class _NamedGuardrail:
    guardrail_function: Callable[..., Any]
    name: str | None = None

    def get_name(self) -> str:
        return self.name or getattr(self.guardrail_function, "__name__", type(self).__name__)


@dataclass(frozen=True)
class InputGuardrail(_NamedGuardrail):
    """Check run against the caller input: (context, content) -> GuardrailResult."""

    async def run(self, context: RunContext, content: Any) -> GuardrailResult:
        return await _call(self.guardrail_function, context, content)


@dataclass(frozen=True)
class OutputGuardrail(_NamedGuardrail):
    """Check run against the final output: (context, output) -> GuardrailResult."""

    async def run(self, context: RunContext, output: Any) -> GuardrailResult:
        return await _call(self.guardrail_function, context, output)


@dataclass(frozen=True)
class ToolInputGuardrail(_NamedGuardrail):
    """Check run before a tool call: (context, call) -> ToolGuardrailResult."""

    async def run(self, context: RunContext, call: ToolCallItem) -> ToolGuardrailResult:
        return await _call(self.guardrail_function, context, call)


@dataclass(frozen=True)
class ToolOutputGuardrail(_NamedGuardrail):
    """Check run against a tool's output: (context, call, output) -> ToolGuardrailResult."""

    async def run(self, context: RunContext, call: ToolCallItem, output: Any) -> ToolGuardrailResult:
        return await _call(self.guardrail_function, context, call, output)


async def _evaluate(
    guardrail: _NamedGuardrail, stage: str, *args: Any, tool_name: str | None = None
) -> Any:
    """Run one guardrail, turning a failure of the check itself into GuardrailExecutionError."""
    try:
        return await guardrail.run(*args)
    except AgentsError:
        raise
    except Exception as e:
        logger.exception(f"{stage} guardrail '{guardrail.get_name()}' failed")
        raise GuardrailExecutionError(guardrail.get_name(), stage, e, tool_name=tool_name) from e


def input_guardrail(func: GuardrailFunction | None = None, *, name: str | None = None) -> Any:
    """Decorator turning a function into an InputGuardrail."""

    def decorate(fn: GuardrailFunction) -> InputGuardrail:
        return InputGuardrail(guardrail_function=fn, name=name)

    return decorate(func) if func is not None else decorate


def output_guardrail(func: GuardrailFunction | None = None, *, name: str | None = None) -> Any:
    """Decorator turning a function into an OutputGuardrail."""

    def decorate(fn: GuardrailFunction) -> OutputGuardrail:
        return OutputGuardrail(guardrail_function=fn, name=name)

    return decorate(func) if func is not None else decorate


async def run_input_guardrails(
    guardrails: Sequence[InputGuardrail],
    context: RunContext,
    content: Any,
    tracing_enabled: bool = True,
) -> Any:
    """Run input checks in order and return the (possibly rewritten) input.

    Raises:
        InputGuardrailTripwireTriggered: On the first tripwire
        GuardrailExecutionError: If a check itself fails
    """
    for guardrail in guardrails:
        name = guardrail.get_name()
        with span("input_guardrail", tracing_enabled, guardrail=name):
            result = await _evaluate(guardrail, "input", context, content)
        if result.tripwire_triggered:
            logger.info(f"Input guardrail '{name}' triggered tripwire")
            record_guardrail_tripwire(name, "input")
            raise InputGuardrailTripwireTriggered(name, result.message, result.output_info)
        if result.is_rewrite:
            logger.debug(f"Input guardrail '{name}' rewrote the input")
            content = result.rewritten_content
    return content


async def run_output_guardrails(
    guardrails: Sequence[OutputGuardrail],
    context: RunContext,
    output: Any,
    usage: Any = None,
    tracing_enabled: bool = True,
) -> Any:
    """Run output checks in order and return the (possibly rewritten) output.

    Raises:
        OutputGuardrailTripwireTriggered: On the first tripwire, carrying usage so far
        GuardrailExecutionError: If a check itself fails
    """
    for guardrail in guardrails:
        name = guardrail.get_name()
        with span("output_guardrail", tracing_enabled, guardrail=name):
            result = await _evaluate(guardrail, "output", context, output)
        if result.tripwire_triggered:
            logger.info(f"Output guardrail '{name}' triggered tripwire")
            record_guardrail_tripwire(name, "output")
            raise OutputGuardrailTripwireTriggered(
                name,
                result.message,
                result.output_info,
                usage=usage if usage is not None else context.usage,
            )
        if result.is_rewrite:
            logger.debug(f"Output guardrail '{name}' rewrote the final output")
            output = result.rewritten_content
    return output


async def run_tool_input_guardrails(
    guardrails: Sequence[ToolInputGuardrail],
    context: RunContext,
    call: ToolCallItem,
) -> ToolGuardrailResult:
    """Run pre-invocation checks; the first REPLACE short-circuits the call.

    Raises:
        ToolGuardrailTripwireTriggered: On ABORT
        GuardrailExecutionError: If a check itself fails
    """
    for guardrail in guardrails:
        name = guardrail.get_name()
        result = await _evaluate(guardrail, "tool_input", context, call, tool_name=call.tool_name)
        if result.action is ToolGuardrailAction.ABORT:
            record_guardrail_tripwire(name, "tool_input")
            raise ToolGuardrailTripwireTriggered(
                name, call.tool_name, call.id, result.message, result.output_info
            )
        if result.action is ToolGuardrailAction.REPLACE:
            logger.debug(f"Tool input guardrail '{name}' replaced call to '{call.tool_name}'")
            return result
    return ToolGuardrailResult.allow()


async def run_tool_output_guardrails(
    guardrails: Sequence[ToolOutputGuardrail],
    context: RunContext,
    call: ToolCallItem,
    output: Any,
) -> Any:
    """Run post-invocation checks in order and return the (possibly replaced) output.

    Raises:
        ToolGuardrailTripwireTriggered: On ABORT
        GuardrailExecutionError: If a check itself fails
    """
    for guardrail in guardrails:
        name = guardrail.get_name()
        result = await _evaluate(
            guardrail, "tool_output", context, call, output, tool_name=call.tool_name
        )
        if result.action is ToolGuardrailAction.ABORT:
            record_guardrail_tripwire(name, "tool_output")
            raise ToolGuardrailTripwireTriggered(
                name, call.tool_name, call.id, result.message, result.output_info
            )
        if result.action is ToolGuardrailAction.REPLACE:
            logger.debug(f"Tool output guardrail '{name}' replaced output of '{call.tool_name}'")
            output = result.replacement
    return output


_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
_CARD_RE = re.compile(r"\b(?:\d[ -]?){12,15}\d\b")


def _redact(value: Any) -> Any:
    if isinstance(value, str):
        return _CARD_RE.sub("[REDACTED CARD]", _EMAIL_RE.sub("[REDACTED EMAIL]", value))
    if isinstance(value, dict):
        return {key: _redact(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def pii_redaction_guardrail(name: str = "pii_redaction") -> ToolOutputGuardrail:
    """Tool output guardrail that masks e-mail addresses and card-like numbers."""

    def redact(context: RunContext, call: ToolCallItem, output: Any) -> ToolGuardrailResult:
        redacted = _redact(output)
        if redacted == output:
            return ToolGuardrailResult.allow()
        return ToolGuardrailResult.replace(redacted)

    return ToolOutputGuardrail(guardrail_function=redact, name=name)


def blocked_terms_guardrail(terms: Iterable[str], name: str = "blocked_terms") -> InputGuardrail:
    """Input guardrail that trips when the input mentions any blocked term (case-insensitive)."""
    lowered = [term.lower() for term in terms]

    def check(context: RunContext, content: Any) -> GuardrailResult:
        if isinstance(content, list):
            text = " ".join(str(getattr(item, "content", item)) for item in content)
        else:
            text = str(content)
        found = [term for term in lowered if term in text.lower()]
        if found:
            return GuardrailResult.tripwire(
                message=f"input mentions blocked terms: {', '.join(found)}",
                output_info={"terms": found},
            )
        return GuardrailResult.safe()

    return InputGuardrail(guardrail_function=check, name=name)
