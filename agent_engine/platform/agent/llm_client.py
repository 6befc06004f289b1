"""Model backend adapter using LiteLLM."""

import json
import logging
from typing import Any

import litellm
import tenacity
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_litellm import ChatLiteLLM

from agent_engine.platform.agent.exceptions import ModelBackendError, NotImplementedCapabilityError
from agent_engine.platform.agent.messages import (
    MessageInputItem,
    MessageOutputItem,
    RunItem,
    ToolCallItem,
    ToolCallOutputItem,
)
from agent_engine.platform.agent.protocol import (
    FunctionCall,
    ModelRequest,
    ModelResponse,
    OutputText,
    ToolSpec,
)
from agent_engine.platform.agent.usage import Usage
from agent_engine.platform.settings import LitellmSettings, get_settings

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (
    litellm.RateLimitError,
    litellm.APIConnectionError,
    litellm.ServiceUnavailableError,
)


def _dumps(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def to_langchain_messages(instructions: str | None, items: list[RunItem]) -> list[BaseMessage]:
    """Convert conversation items into LangChain chat messages.

    Consecutive tool calls are grouped into one assistant message. Hosted
    tool calls and their results are dropped; the vendor already ran them.
    """
    messages: list[BaseMessage] = []
    if instructions:
        messages.append(SystemMessage(content=instructions))

    hosted_ids: set[str] = set()
    pending_calls: list[dict[str, Any]] = []

    def flush_calls() -> None:
        if pending_calls:
            messages.append(AIMessage(content="", tool_calls=list(pending_calls)))
            pending_calls.clear()

    for item in items:
        if isinstance(item, ToolCallItem):
            if item.hosted:
                hosted_ids.add(item.id)
                continue
            args = item.parameters if isinstance(item.parameters, dict) else {}
            pending_calls.append({"id": item.id, "name": item.tool_name, "args": args})
            continue

        flush_calls()
        if isinstance(item, ToolCallOutputItem):
            if item.tool_call_id in hosted_ids:
                continue
            if item.is_error:
                messages.append(
                    ToolMessage(content=item.error, tool_call_id=item.tool_call_id, status="error")
                )
            else:
                messages.append(
                    ToolMessage(content=_dumps(item.result), tool_call_id=item.tool_call_id)
                )
        elif isinstance(item, MessageInputItem):
            content = _dumps(item.content)
            if item.role == "system":
                messages.append(SystemMessage(content=content))
            else:
                messages.append(HumanMessage(content=content))
        elif isinstance(item, MessageOutputItem):
            messages.append(AIMessage(content=_dumps(item.content)))
    flush_calls()
    return messages


def tool_schema(spec: ToolSpec) -> dict[str, Any]:
    """OpenAI function-tool schema for a tool spec."""
    return {
        "type": "function",
        "function": {
            "name": spec.name,
            "description": spec.description,
            "parameters": spec.parameters,
        },
    }


class LlmClient:
    """Model implementation backed by ChatLiteLLM.

    Provides:
    - conversion between conversation items and LangChain messages
    - tool and structured-output binding
    - tenacity retries for rate limits and transient connection errors
    - mapping of vendor failures to ModelBackendError
    """

    def __init__(
        self,
        model_name: str,
        api_key: str | None = None,
        api_base: str | None = None,
        temperature: float | None = None,
        llm=None,
    ):
        """Initialize the LLM client.

        Args:
            model_name: Model identifier (e.g. "litellm_proxy/anthropic/claude-sonnet-4-5")
            api_key: API key for authentication
            api_base: Base URL for the LLM proxy
            temperature: Default sampling temperature
            llm: Optional pre-configured chat model (tests inject one)
        """
        self._model_name = model_name
        self._temperature = temperature
        self._llm = llm or ChatLiteLLM(
            model_name=model_name,
            api_key=api_key,
            api_base=api_base,
            temperature=temperature,
        )

    @property
    def model_name(self) -> str:
        """The model name/identifier."""
        return self._model_name

    @staticmethod
    def extract_tokens(message: AIMessage) -> tuple[int, int]:
        """Extract token counts from an AIMessage's usage metadata.

        Args:
            message: AIMessage from LLM response

        Returns:
            Tuple of (input_tokens, output_tokens), defaults to (0, 0) if unavailable
        """
        usage = getattr(message, "usage_metadata", None)
        if not usage:
            return 0, 0
        return usage.get("input_tokens", 0), usage.get("output_tokens", 0)

    @staticmethod
    def _extract_content(message: AIMessage) -> str:
        content = message.content
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            text_parts = [p.get("text", "") if isinstance(p, dict) else str(p) for p in content]
            return "".join(text_parts)
        return str(content)

    @classmethod
    def to_model_response(cls, message: AIMessage) -> ModelResponse:
        """Convert a LangChain AIMessage into a ModelResponse."""
        output: list[Any] = []
        text = cls._extract_content(message)
        if text:
            output.append(OutputText(text=text))
        for call in message.tool_calls:
            output.append(FunctionCall(call_id=call["id"] or "", name=call["name"], arguments=call["args"]))
        for call in getattr(message, "invalid_tool_calls", None) or []:
            output.append(
                FunctionCall(call_id=call.get("id") or "", name=call.get("name") or "", arguments=call.get("args"))
            )
        input_tokens, output_tokens = cls.extract_tokens(message)
        return ModelResponse(
            output=output,
            usage=Usage(requests=1, input_tokens=input_tokens, output_tokens=output_tokens),
            response_id=message.id,
        )

    def _invoke_kwargs(self, request: ModelRequest) -> dict[str, Any]:
        settings = request.settings
        kwargs: dict[str, Any] = dict(settings.extra)
        for name in ("temperature", "top_p", "max_tokens", "parallel_tool_calls"):
            value = getattr(settings, name)
            if value is not None:
                kwargs[name] = value
        if request.output_schema is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "final_output", "schema": request.output_schema},
            }
        return kwargs

    @tenacity.retry(
        wait=tenacity.wait_exponential(multiplier=1, max=10),
        stop=(tenacity.stop_after_attempt(3) | tenacity.stop_after_delay(30)),
        retry=tenacity.retry_if_exception_type(RETRYABLE_ERRORS),
        reraise=True,
    )
    async def _ainvoke(self, llm, messages: list[BaseMessage], **kwargs) -> AIMessage:
        return await llm.ainvoke(messages, **kwargs)

    async def get_response(self, request: ModelRequest) -> ModelResponse:
        """Send a request through LiteLLM.

        Raises:
            NotImplementedCapabilityError: If the request includes hosted tools
            ModelBackendError: On authentication, rate-limit or transport failure
        """
        hosted = [spec.name for spec in request.tools if spec.hosted]
        if hosted:
            raise NotImplementedCapabilityError(f"hosted tool '{hosted[0]}' via LiteLLM")

        llm = self._llm
        if request.tools:
            bind_kwargs: dict[str, Any] = {}
            if request.settings.tool_choice is not None:
                bind_kwargs["tool_choice"] = request.settings.tool_choice
            llm = llm.bind_tools([tool_schema(spec) for spec in request.tools], **bind_kwargs)

        messages = to_langchain_messages(request.instructions, request.input)
        try:
            message = await self._ainvoke(llm, messages, **self._invoke_kwargs(request))
        except litellm.AuthenticationError as e:
            raise ModelBackendError(f"authentication failed for '{self._model_name}'", cause=e) from e
        except RETRYABLE_ERRORS as e:
            raise ModelBackendError(f"'{self._model_name}' unavailable after retries: {e}", cause=e) from e
        except litellm.BadRequestError as e:
            raise ModelBackendError(f"malformed request for '{self._model_name}': {e}", cause=e) from e

        logger.debug(f"Model '{self._model_name}' responded with {len(message.tool_calls)} tool call(s)")
        return self.to_model_response(message)


class LiteLLMProvider:
    """Default ModelProvider resolving names into LlmClients from settings."""

    def __init__(self, settings: LitellmSettings | None = None) -> None:
        self._settings = settings

    def get_model(self, model_name: str | None) -> LlmClient:
        settings = self._settings or get_settings().litellm
        return LlmClient(
            model_name=model_name or settings.default_model,
            api_key=settings.proxy_api_key,
            api_base=settings.proxy_api_base,
            temperature=settings.temperature,
        )
