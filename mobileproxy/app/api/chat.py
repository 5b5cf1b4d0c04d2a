"""Chat API endpoint for the proxy."""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from mobileproxy.app.api.dependencies import get_caller_origin, get_chat_gateway
from mobileproxy.app.core.logging import get_logger
from mobileproxy.app.services.chat_gateway import ChatGateway

router = APIRouter()
logger = get_logger(__name__)


class ChatRequest(BaseModel):
    """Request body for /chat.

    ``message`` is optional here so that a missing message is reported as
    ``message required`` by the gateway rather than as a schema error.
    """
    message: Optional[str] = None
    userId: Optional[str] = None


class ChatResponse(BaseModel):
    reply: str
    cached: bool


@router.post("/chat", response_model=ChatResponse)
async def chat(
    request: Request,
    body: Optional[ChatRequest] = None,
    gateway: ChatGateway = Depends(get_chat_gateway),
) -> ChatResponse:
    """Answer a chat message through the rate-limited, cached gateway.

    Returns:
        The reply and whether it came from the cache

    Raises:
        ValidationError: 400 when ``message`` is missing
        RateLimitError: 429 when the caller is over its limit
        ConfigurationError / UpstreamError: 500
    """
    body = body or ChatRequest()
    result = await gateway.handle(
        message=body.message,
        user_id=body.userId,
        caller_origin=get_caller_origin(request),
    )
    return ChatResponse(reply=result.reply, cached=result.cached)
