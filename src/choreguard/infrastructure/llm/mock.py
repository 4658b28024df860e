"""
Mock provider for testing without an LLM.

Returns predefined responses in sequence.
"""

from collections.abc import Sequence

from choreguard.domain.interfaces import LLMProviderInterface
from choreguard.domain.models import ChatResponse, Message, ToolSpec


class MockProvider(LLMProviderInterface):
    """Returns predefined ChatResponses and records every request."""

    def __init__(self, responses: Sequence[ChatResponse], model: str = "mock"):
        """
        Args:
            responses: Responses to return in sequence
            model: Model name reported to sessions
        """
        self._responses = list(responses)
        self._model = model
        self._call_count = 0
        self.requests: list[tuple[list[Message], list[ToolSpec]]] = []

    @property
    def model(self) -> str:
        return self._model

    def chat(self, messages: Sequence[Message], tools: Sequence[ToolSpec]) -> ChatResponse:
        """Return the next predefined response."""
        if self._call_count >= len(self._responses):
            raise RuntimeError("MockProvider exhausted responses")
        self.requests.append((list(messages), list(tools)))
        response = self._responses[self._call_count]
        self._call_count += 1
        return response

    @property
    def call_count(self) -> int:
        """Number of times chat() has been called."""
        return self._call_count

    def reset(self) -> None:
        """Reset the call counter to reuse responses."""
        self._call_count = 0
        self.requests.clear()
