"""Errors raised by the chat client, the contact form and the submission stores."""


class ChatApiError(Exception):
    """Base class for failures talking to the chat-completion API."""

    retryable = True


class ApiTimeoutError(ChatApiError):
    def __init__(self, timeout: float):
        super().__init__(f"Request timed out after {timeout:g}s, please try again later")
        self.timeout = timeout


class ApiUnreachableError(ChatApiError):
    def __init__(self, reason: str):
        super().__init__(f"Failed to reach chat API: {reason}")
        self.reason = reason


class ApiHttpError(ChatApiError):
    """Non-2xx response. 429 and 5xx may be retried; every other status fails at once."""

    def __init__(self, status: int, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        return self.status == 429 or self.status >= 500


class MalformedResponseError(ChatApiError):
    def __init__(self, message: str = "Invalid API response format"):
        super().__init__(message)


class RetryExhaustedError(ChatApiError):
    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(f"API call failed (retried {attempts} times): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class FieldValidationError(ValueError):
    def __init__(self, field: str, reason: str):
        super().__init__(reason)
        self.field = field
        self.reason = reason


class PersistenceError(Exception):
    """A submission could not be written. stage names the store that failed ("file" or "supabase")."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
