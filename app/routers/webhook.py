from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from starlette.requests import ClientDisconnect

from app.config import settings
from app.dependencies import get_chat_service, get_webhook_receiver
from app.logging_config import get_logger
from app.schemas.webhook import WebhookResponse
from app.services.chat_service import ChatService
from app.services.webhook_service import ReceiveStatus, WebhookReceiver, verify_subscription

logger = get_logger("webhook")

router = APIRouter()


@router.get("/webhooks/whatsapp", response_class=PlainTextResponse)
async def verify_webhook(
    hub_mode: Optional[str] = Query(default=None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
):
    """Subscription handshake: echo the challenge only for the configured token."""
    if verify_subscription(hub_mode, hub_verify_token, settings.whatsapp_verify_token):
        logger.info("Webhook subscription verified")
        return PlainTextResponse(hub_challenge or "")
    logger.warning("Webhook verification failed", extra={"context": {"mode": hub_mode}})
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


@router.post("/webhooks/whatsapp", response_model=WebhookResponse)
async def receive_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    receiver: WebhookReceiver = Depends(get_webhook_receiver),
    chat: ChatService = Depends(get_chat_service),
):
    """Acknowledge fast; the dialogue runs after the response is sent."""
    try:
        raw = await request.body()
    except ClientDisconnect:
        logger.warning("Client disconnected before webhook body was read")
        return WebhookResponse(status="ignored", detail="client_disconnect")

    decision = await receiver.receive(raw)
    if decision.status == ReceiveStatus.REJECT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=decision.reason)
    if decision.status == ReceiveStatus.IGNORE:
        return WebhookResponse(status="ignored", detail=decision.reason)

    background_tasks.add_task(chat.process_event, decision.event)
    return WebhookResponse(status="accepted")
