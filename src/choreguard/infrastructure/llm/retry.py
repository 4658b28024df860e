"""
Retrying provider wrapper.

Transient chat failures (rate limits, 5xx responses, dropped connections,
timeouts) are retried with exponential backoff and jitter. Any other error
propagates on the first attempt and ends the session as before.
"""

import logging
import time
from collections.abc import Callable, Sequence

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from choreguard.domain.interfaces import LLMProviderInterface
from choreguard.domain.models import ChatResponse, Message, ToolSpec

logger = logging.getLogger("choreguard.llm")

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

TRANSIENT_MESSAGES = (
    "rate limit",
    "too many requests",
    "timeout",
    "timed out",
    "temporarily unavailable",
    "service unavailable",
    "connection error",
    "connection reset",
    "connection refused",
    "overloaded",
)


def is_retryable_error(error: BaseException) -> bool:
    """True when ``error`` looks transient and another attempt may succeed."""
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if isinstance(status, int) and status in RETRYABLE_STATUS_CODES:
        return True
    if isinstance(error, (ConnectionError, TimeoutError)):
        return True
    message = str(error).lower()
    return any(pattern in message for pattern in TRANSIENT_MESSAGES)


class RetryingProvider(LLMProviderInterface):
    """Retry transient failures of another provider's ``chat``."""

    def __init__(
        self,
        provider: LLMProviderInterface,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            provider: Provider whose calls are retried
            max_retries: Attempts after the first one
            base_delay: Initial backoff in seconds, doubled per attempt
            max_delay: Upper bound for one backoff
            sleep: Called with each backoff (replaced in tests)
        """
        self._provider = provider
        self._retrying = Retrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential_jitter(initial=base_delay, max=max_delay),
            retry=retry_if_exception(is_retryable_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=sleep,
            reraise=True,
        )

    @property
    def model(self) -> str:
        return self._provider.model

    @property
    def provider(self) -> LLMProviderInterface:
        return self._provider

    def chat(self, messages: Sequence[Message], tools: Sequence[ToolSpec]) -> ChatResponse:
        return self._retrying(self._provider.chat, messages, tools)
