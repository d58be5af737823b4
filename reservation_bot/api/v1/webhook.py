"""
LINE webhook
LINE re-delivers events on any non-200 answer, so every POST answers 200
and failures are reported in the body and the log.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError as PydanticValidationError

from ...schemas.webhook import WebhookAck, WebhookBody
from ...services.message_service import MessageService
from ..dependencies import get_message_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def webhook_status():
    """Liveness probe for the LINE console and browsers"""
    return {
        "ok": True,
        "message": "LINE webhook endpoint is active",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("", response_model=WebhookAck, response_model_exclude_none=True)
async def receive_webhook(request: Request, service: MessageService = Depends(get_message_service)):
    try:
        body = WebhookBody.model_validate(await request.json())
    except (ValueError, PydanticValidationError) as e:
        logger.warning("Unreadable webhook body: %s", e)
        return WebhookAck(skip=True, error="invalid_body")

    if not body.events:
        # LINE sends an empty event list when the webhook URL is verified
        logger.info("LINE webhook verification detected")
        return WebhookAck()

    warning = None if service.client.configured else "token_not_configured"
    try:
        replies = await run_in_threadpool(service.handle_events, body.events)
    except Exception:
        logger.exception("Webhook handling failed")
        return WebhookAck(error="internal", warning=warning)
    return WebhookAck(replies=replies, warning=warning)
