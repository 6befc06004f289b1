"""Tool definitions.

A FunctionTool pairs a pydantic parameter model with an async callable.
The ``function_tool`` decorator builds one from a plain (sync or async)
function by deriving the parameter model from its signature, the same way
MCP input schemas are turned into pydantic models elsewhere in the platform.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, get_type_hints

from pydantic import BaseModel, Field, ValidationError, create_model

from agent_engine.platform.agent.context import RunContext
from agent_engine.platform.agent.exceptions import AgentsError, InvalidToolInputError, UserError
from agent_engine.platform.agent.protocol import ToolSpec

logger = logging.getLogger(__name__)

type ToolInvoke = Callable[[RunContext, BaseModel], Awaitable[Any]]
type EnabledCheck = bool | Callable[[RunContext], bool | Awaitable[bool]]
type ApprovalCheck = bool | Callable[[RunContext, Any], bool | Awaitable[bool]]
type ErrorFunction = Callable[[RunContext, Exception], str | None]


async def _resolve_flag(flag: bool | Callable[..., Any], *args: Any) -> bool:
    """Evaluate a static flag or a (possibly async) predicate."""
    if not callable(flag):
        return bool(flag)
    value = flag(*args)
    if inspect.isawaitable(value):
        value = await value
    return bool(value)


def default_tool_error_message(error: Exception) -> str:
    """The error's message, or its class name when the message is empty."""
    return str(error) or type(error).__name__


@dataclass
class FunctionTool:
    """A caller-registered tool backed by an async callable.

    Attributes:
        name: Tool name advertised to the model
        description: Tool description advertised to the model
        params_model: Pydantic model validating the call parameters
        on_invoke: Coroutine called with the run context and validated parameters
        needs_approval: Static flag or predicate (context, parameters) -> bool
        is_enabled: Static flag or predicate (context) -> bool
        error_function: Optional hook turning a failure into a caller-facing message;
            returning None falls back to the raw error message
        timeout: Optional per-call timeout in seconds
    """

    name: str
    description: str
    params_model: type[BaseModel]
    on_invoke: ToolInvoke
    needs_approval: ApprovalCheck = False
    is_enabled: EnabledCheck = True
    error_function: ErrorFunction | None = None
    timeout: float | None = None

    @property
    def params_json_schema(self) -> dict[str, Any]:
        return self.params_model.model_json_schema()

    def to_spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            parameters=self.params_json_schema,
        )

    async def check_enabled(self, context: RunContext) -> bool:
        """Evaluate is_enabled.

        Raises:
            UserError: If the predicate itself fails
        """
        try:
            return await _resolve_flag(self.is_enabled, context)
        except AgentsError:
            raise
        except Exception as e:
            raise UserError(f"is_enabled check for tool '{self.name}' failed: {e!r}") from e

    async def check_needs_approval(self, context: RunContext, parameters: Any) -> bool:
        return await _resolve_flag(self.needs_approval, context, parameters)

    def validate(self, parameters: Any) -> BaseModel:
        """Validate raw parameters against the parameter model.

        Raises:
            InvalidToolInputError: If the parameters are missing or invalid
        """
        if parameters is None:
            raise InvalidToolInputError(self.name, "arguments could not be parsed")
        try:
            return self.params_model.model_validate(parameters)
        except ValidationError as e:
            raise InvalidToolInputError(self.name, str(e)) from e

    async def invoke(self, context: RunContext, parameters: Any) -> Any:
        """Validate the parameters and run the tool."""
        validated = self.validate(parameters)
        return await self.on_invoke(context, validated)

    def format_error(self, context: RunContext, error: Exception) -> str:
        """Build the error message fed back to the model for a failed call."""
        if self.error_function is not None:
            try:
                message = self.error_function(context, error)
            except Exception:
                logger.exception(f"Error function for tool '{self.name}' failed")
                message = None
            if message:
                return message
        return default_tool_error_message(error)


@dataclass
class HostedTool:
    """A vendor-executed capability (web search, code interpreter, ...).

    Hosted tools are advertised to the backend but never invoked locally;
    their results arrive already executed in the model response.
    """

    name: str
    config: dict[str, Any] = field(default_factory=dict)

    def to_spec(self) -> ToolSpec:
        return ToolSpec(name=self.name, description="", parameters=dict(self.config), hosted=True)


type Tool = FunctionTool | HostedTool


def _is_context_param(param: inspect.Parameter, hints: dict[str, Any]) -> bool:
    annotation = hints.get(param.name, param.annotation)
    origin = getattr(annotation, "__origin__", annotation)
    return origin is RunContext


def _build_params_model(func: Callable[..., Any], skip_context: bool) -> type[BaseModel]:
    """Build a pydantic model from a function's parameters.

    Args:
        func: The function whose signature describes the tool input
        skip_context: Whether the first parameter is the run context

    Returns:
        Dynamically created pydantic model class
    """
    signature = inspect.signature(func)
    hints = get_type_hints(func)
    params = list(signature.parameters.values())
    if skip_context:
        params = params[1:]

    fields: dict[str, Any] = {}
    for param in params:
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation = hints.get(param.name, Any)
        if param.default is inspect.Parameter.empty:
            fields[param.name] = (annotation, Field(...))
        else:
            fields[param.name] = (annotation, Field(default=param.default))

    model_name = f"{func.__name__.title().replace('_', '')}Args"
    return create_model(model_name, **fields)  # type: ignore


def _description_from_doc(func: Callable[..., Any]) -> str:
    doc = inspect.getdoc(func) or ""
    return doc.split("\n\n", 1)[0].strip()


def function_tool(
    func: Callable[..., Any] | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
    needs_approval: ApprovalCheck = False,
    is_enabled: EnabledCheck = True,
    error_function: ErrorFunction | None = None,
    timeout: float | None = None,
) -> Any:
    """Turn a function into a FunctionTool.

    Usable bare (``@function_tool``) or with options
    (``@function_tool(needs_approval=True)``). A first parameter annotated
    as RunContext receives the run context and is not part of the schema.
    Sync functions run in a worker thread.
    """

    def decorate(fn: Callable[..., Any]) -> FunctionTool:
        signature = inspect.signature(fn)
        first = next(iter(signature.parameters.values()), None)
        takes_context = first is not None and _is_context_param(first, get_type_hints(fn))
        params_model = _build_params_model(fn, skip_context=takes_context)
        field_names = list(params_model.model_fields)

        async def on_invoke(context: RunContext, parameters: BaseModel) -> Any:
            kwargs = {field_name: getattr(parameters, field_name) for field_name in field_names}
            args = (context,) if takes_context else ()
            if inspect.iscoroutinefunction(fn):
                return await fn(*args, **kwargs)
            return await asyncio.to_thread(fn, *args, **kwargs)

        return FunctionTool(
            name=name or fn.__name__,
            description=description if description is not None else _description_from_doc(fn),
            params_model=params_model,
            on_invoke=on_invoke,
            needs_approval=needs_approval,
            is_enabled=is_enabled,
            error_function=error_function,
            timeout=timeout,
        )

    if func is not None:
        return decorate(func)
    return decorate
