"""
FastAPI routes for the chat widget and the contact form.

Each route is also reachable with a .php suffix so a front end built for the
PHP deployment works unchanged.
"""
import logging

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse

from robochat.core.config import get_settings
from robochat.core.context import from_wire, trim_messages
from robochat.core.errors import (
    ApiHttpError,
    ApiTimeoutError,
    ApiUnreachableError,
    MalformedResponseError,
)
from robochat.core.llm_client import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE
from robochat.core.services import Services
from robochat.models.schemas import (
    ChatProxyRequest,
    ContactBotRequest,
    ContactConfigResponse,
    ContactSubmitRequest,
    ContactSubmitResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["robochat"])

MAX_SESSION_ID_LENGTH = 128


def _services(request: Request) -> Services:
    return request.app.state.services


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.post("/chat")
@router.post("/chat.php", include_in_schema=False)
def chat(req: ChatProxyRequest, request: Request):
    """Relay one chat-completion call to the provider and return its raw body. Retrying is the client's job."""
    if not req.messages:
        return _error(400, "messages array is required")
    services = _services(request)
    if not services.client.api_key:
        return _error(500, "DEEPSEEK_API_KEY is not configured on the server")
    try:
        messages = from_wire([m.model_dump() for m in req.messages])
    except ValueError as e:
        return _error(400, str(e))

    settings = get_settings()
    messages = trim_messages(messages, settings.max_context_messages)
    try:
        return services.client.complete(
            messages,
            model=req.model or settings.llm_model,
            temperature=req.temperature if req.temperature is not None else DEFAULT_TEMPERATURE,
            max_tokens=req.max_tokens if req.max_tokens is not None else DEFAULT_MAX_TOKENS,
        )
    except ApiHttpError as e:
        logger.warning("Chat API error %s: %s", e.status, e.message)
        return _error(e.status, e.message, status=e.status, retryAfter=e.retry_after)
    except ApiTimeoutError:
        return _error(504, "Chat API request timed out")
    except (ApiUnreachableError, MalformedResponseError) as e:
        logger.error("Proxy error: %s", e)
        return _error(502, "Failed to reach chat API")


@router.get("/contact-config", response_model=ContactConfigResponse)
@router.get("/contact-config.php", response_model=ContactConfigResponse, include_in_schema=False)
def contact_config(request: Request):
    return _services(request).contact.public_view()


@router.post("/contact-submit", response_model=ContactSubmitResponse)
@router.post("/contact-submit.php", response_model=ContactSubmitResponse, include_in_schema=False)
def contact_submit(req: ContactSubmitRequest, request: Request):
    """Store widget-collected contact data and email it to the operator."""
    data = req.collected_data
    if not isinstance(data, dict):
        return _error(400, "collectedData object is required")
    collected = {str(k): str(v) for k, v in data.items() if v is not None}

    outcome = _services(request).sink.submit(collected, source_ip=_client_ip(request))
    if not outcome.saved:
        return _error(500, "Failed to process contact submission")
    return ContactSubmitResponse(
        success=outcome.success,
        saved=outcome.saved,
        email_sent=outcome.email_sent,
        message=outcome.message,
    )


@router.post("/contact-bot")
@router.post("/contact-bot.php", include_in_schema=False)
def contact_bot(
    req: ContactBotRequest,
    request: Request,
    x_session_id: str | None = Header(None),
):
    """One step of the contact form conversation. Send the returned sessionId back as X-Session-Id."""
    if x_session_id and len(x_session_id) > MAX_SESSION_ID_LENGTH:
        return _error(400, "Invalid session id")
    reply = _services(request).wizard.handle(
        x_session_id,
        action=req.action,
        message=req.message,
        client_ip=_client_ip(request),
    )
    return reply.to_dict()


@router.get("/health")
def health() -> dict:
    """Health check."""
    return {"status": "ok"}
