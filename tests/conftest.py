"""Shared test fixtures.

This module provides a scripted model backend that replays canned
responses and records every request it receives.
"""

from collections import deque
from typing import Any

import pytest

from agent_engine.platform.agent.config import RunConfig
from agent_engine.platform.agent.protocol import ModelRequest, ModelResponse
from agent_engine.platform.agent.usage import Usage


class FakeModel:
    """Model that returns queued responses in order."""

    model_name = "fake-model"

    def __init__(self) -> None:
        self.requests: list[ModelRequest] = []
        self._responses: deque[ModelResponse | BaseException] = deque()
        self._repeat: ModelResponse | None = None

    def add_turn(
        self,
        *output: Any,
        usage: Usage | None = None,
        response_id: str | None = None,
    ) -> "FakeModel":
        self._responses.append(
            ModelResponse(
                output=list(output),
                usage=usage or Usage(requests=1, input_tokens=10, output_tokens=5),
                response_id=response_id or f"resp_{len(self._responses) + 1}",
            )
        )
        return self

    def add_error(self, error: BaseException) -> "FakeModel":
        self._responses.append(error)
        return self

    def repeat_forever(self, *output: Any) -> "FakeModel":
        """Answer every request beyond the queue with the same output."""
        self._repeat = ModelResponse(
            output=list(output),
            usage=Usage(requests=1, input_tokens=10, output_tokens=5),
            response_id="resp_repeat",
        )
        return self

    async def get_response(self, request: ModelRequest) -> ModelResponse:
        self.requests.append(request)
        if self._responses:
            response = self._responses.popleft()
        elif self._repeat is not None:
            response = self._repeat
        else:
            raise AssertionError("FakeModel ran out of scripted responses")
        if isinstance(response, BaseException):
            raise response
        return response


@pytest.fixture
def fake_model() -> FakeModel:
    """Create an empty scripted model."""
    return FakeModel()


@pytest.fixture
def run_config() -> RunConfig:
    """Run config with tracing off and short timeouts."""
    return RunConfig(tracing_disabled=True, model_timeout=5.0)
