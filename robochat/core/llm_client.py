"""Single chat-completion call over HTTP (OpenAI wire format). No retries here; see retry.py."""
import logging

import requests
from langchain_core.messages import BaseMessage

from robochat.core.config import Settings
from robochat.core.context import to_wire
from robochat.core.errors import (
    ApiHttpError,
    ApiTimeoutError,
    ApiUnreachableError,
    MalformedResponseError,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "deepseek-chat"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000
DEFAULT_TIMEOUT_SECONDS = 60.0


def _error_message(body, status: int) -> str:
    """Provider bodies look like {"error": {"message": ...}}; our own proxy sends {"error": "..."}."""
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err.strip():
            return err
    return f"API request failed: {status}"


def _retry_after(resp: requests.Response, body) -> float | None:
    raw = resp.headers.get("Retry-After")
    if raw is None and isinstance(body, dict):
        raw = body.get("retryAfter")
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        # HTTP-date form is not used by the providers we talk to
        return None
    return value if value >= 0 else None


def extract_content(body: dict) -> str:
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise MalformedResponseError() from e
    if not isinstance(content, str):
        raise MalformedResponseError()
    return content


class ChatCompletionClient:
    """
    POSTs {model, messages, temperature, max_tokens} to a chat-completion endpoint.
    Point api_url at the provider (with api_key) or at this service's /api/chat proxy (no key).
    """

    def __init__(
        self,
        api_url: str,
        api_key: str = "",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http: requests.Session | None = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self._http = http or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatCompletionClient":
        return cls(
            settings.llm_api_url,
            api_key=settings.llm_api_key,
            timeout=settings.llm_timeout_seconds,
        )

    def complete(
        self,
        messages: list,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> dict:
        """Return the raw JSON body of a 2xx response. Raises a ChatApiError subclass otherwise."""
        if not messages:
            raise ValueError("messages must not be empty")
        if isinstance(messages[0], BaseMessage):
            messages = to_wire(messages)
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            resp = self._http.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.Timeout as e:
            raise ApiTimeoutError(self.timeout) from e
        except requests.RequestException as e:
            raise ApiUnreachableError(str(e)) from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        if not 200 <= resp.status_code < 300:
            raise ApiHttpError(resp.status_code, _error_message(body, resp.status_code), _retry_after(resp, body))
        if not isinstance(body, dict):
            raise MalformedResponseError()
        logger.debug("Chat API %s -> %s", model, resp.status_code)
        return body

    def call(
        self,
        messages: list,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        """Return the first choice's message content."""
        return extract_content(self.complete(messages, model, temperature, max_tokens))
