"""Tests for RetryingProvider and transient error classification."""

from collections.abc import Sequence

import pytest
from support import final_response

from choreguard.domain.models import ChatResponse, Message, ToolSpec
from choreguard.infrastructure.llm import MockProvider, RetryingProvider, is_retryable_error


class StatusError(Exception):
    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class FlakyProvider(MockProvider):
    """Raises the given errors in order before answering."""

    def __init__(self, errors: Sequence[BaseException], response: ChatResponse):
        super().__init__([response], model="flaky")
        self._errors = list(errors)
        self.attempts = 0

    def chat(self, messages: Sequence[Message], tools: Sequence[ToolSpec]) -> ChatResponse:
        self.attempts += 1
        if self._errors:
            raise self._errors.pop(0)
        return super().chat(messages, tools)


@pytest.mark.parametrize(
    "error",
    [
        StatusError("Too many requests", 429),
        StatusError("Bad gateway", 502),
        ConnectionResetError("reset by peer"),
        TimeoutError(),
        RuntimeError("Request timed out."),
        RuntimeError("Overloaded"),
    ],
)
def test_transient_errors_are_retryable(error: BaseException) -> None:
    assert is_retryable_error(error)


@pytest.mark.parametrize(
    "error",
    [
        StatusError("Invalid API key", 401),
        StatusError("Bad request", 400),
        ValueError("malformed tool arguments"),
        RuntimeError("MockProvider exhausted responses"),
    ],
)
def test_permanent_errors_are_not_retryable(error: BaseException) -> None:
    assert not is_retryable_error(error)


class TestRetryingProvider:
    def test_retries_transient_failures(self) -> None:
        delays: list[float] = []
        inner = FlakyProvider(
            [StatusError("rate limit", 429), ConnectionError("refused")], final_response("ok")
        )
        provider = RetryingProvider(inner, max_retries=3, base_delay=0.5, sleep=delays.append)

        response = provider.chat([], [])

        assert response.content == "ok"
        assert inner.attempts == 3
        assert len(delays) == 2
        assert all(0 < d <= 30.0 for d in delays)

    def test_gives_up_after_max_retries(self) -> None:
        delays: list[float] = []
        inner = FlakyProvider([StatusError("unavailable", 503)] * 3, final_response())
        provider = RetryingProvider(inner, max_retries=2, sleep=delays.append)

        with pytest.raises(StatusError, match="unavailable"):
            provider.chat([], [])

        assert inner.attempts == 3
        assert len(delays) == 2

    def test_permanent_failure_is_not_retried(self) -> None:
        delays: list[float] = []
        inner = FlakyProvider([StatusError("Invalid API key", 401)], final_response())
        provider = RetryingProvider(inner, sleep=delays.append)

        with pytest.raises(StatusError):
            provider.chat([], [])

        assert inner.attempts == 1
        assert delays == []

    def test_reports_inner_model(self) -> None:
        inner = MockProvider([], model="gpt-test")

        assert RetryingProvider(inner).model == "gpt-test"
        assert RetryingProvider(inner).provider is inner
