"""
Retrying front for ChatCompletionClient.

Every attempt is a fresh call. 429 and 5xx (plus timeouts, connection failures
and malformed bodies) are retried with exponential backoff; a 429 that carries
a Retry-After hint waits that long instead, capped at max_retry_after.
401/403 and other 4xx fail at once.
"""
import logging
import time
from typing import Callable

from robochat.core.config import Settings
from robochat.core.context import DEFAULT_CONTEXT_LIMIT, ensure_language_instruction, trim_messages
from robochat.core.errors import ApiHttpError, ChatApiError, RetryExhaustedError
from robochat.core.llm_client import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    ChatCompletionClient,
)

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds, doubled per attempt
MAX_RETRY_AFTER = 60.0  # longest Retry-After hint we wait out


class RetryPolicy:
    def __init__(
        self,
        client: ChatCompletionClient,
        retries: int = MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY,
        context_limit: int = DEFAULT_CONTEXT_LIMIT,
        model: str = DEFAULT_MODEL,
        max_retry_after: float = MAX_RETRY_AFTER,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if retries < 1:
            raise ValueError("retries must be at least 1")
        self.client = client
        self.retries = retries
        self.base_delay = base_delay
        self.context_limit = context_limit
        self.model = model
        self.max_retry_after = max_retry_after
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings, client: ChatCompletionClient | None = None) -> "RetryPolicy":
        return cls(
            client or ChatCompletionClient.from_settings(settings),
            retries=settings.llm_max_retries,
            base_delay=settings.llm_retry_base_delay,
            context_limit=settings.max_context_messages,
            model=settings.llm_model,
            max_retry_after=settings.llm_timeout_seconds,
        )

    def backoff(self, error: ChatApiError, attempt: int) -> float:
        """Seconds to wait after a failed attempt (0-based)."""
        if isinstance(error, ApiHttpError) and error.status == 429 and error.retry_after is not None:
            return min(error.retry_after, self.max_retry_after)
        return self.base_delay * (2 ** attempt)

    def send(
        self,
        messages: list,
        model: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        retries: int | None = None,
    ) -> str:
        """Return the assistant reply. Raises the ApiHttpError for non-retryable statuses, else RetryExhaustedError."""
        retries = retries or self.retries
        prepared = trim_messages(ensure_language_instruction(messages), self.context_limit)
        last_error: ChatApiError | None = None

        for attempt in range(retries):
            try:
                return self.client.call(
                    prepared,
                    model=model or self.model,
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
            except ChatApiError as e:
                if not e.retryable:
                    logger.warning("Chat API call failed with non-retryable error: %s", e)
                    raise
                last_error = e
                logger.warning("Attempt %s/%s failed: %s", attempt + 1, retries, e)
                if attempt < retries - 1:
                    delay = self.backoff(e, attempt)
                    logger.info("Waiting %.1fs before retry...", delay)
                    self.sleep(delay)

        raise RetryExhaustedError(retries, last_error)
