"""
WhatsApp webhook endpoint.

Twilio posts every inbound WhatsApp message here as form fields. The route
validates the signature and parses the event, then hands it to the
dispatcher in a worker thread (the pipeline blocks on network calls and
thread locks).

Status codes drive Twilio's retries: 2xx stops them, 5xx triggers a
redelivery of the same MessageSid.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from importflow.api.signature import is_valid_signature
from importflow.intake.dispatcher import IntakeDispatcher
from importflow.intake.errors import PersistenceError
from importflow.models.webhook import InboundEvent, WebhookResponse
from importflow.utils.logging import mask_phone

router = APIRouter()
logger = logging.getLogger(__name__)

_dispatcher: IntakeDispatcher | None = None


def get_dispatcher() -> IntakeDispatcher:
    """Process-wide dispatcher; sessions and the dedup cache live in it."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = IntakeDispatcher()
    return _dispatcher


@router.post(
    "/webhooks/whatsapp",
    response_model=WebhookResponse,
    operation_id="receiveWhatsAppMessage",
)
async def receive_whatsapp_message(
    request: Request,
    dispatcher: IntakeDispatcher = Depends(get_dispatcher),
) -> WebhookResponse:
    """
    Receive one inbound WhatsApp event.

    Returns:
        WebhookResponse with the dispatch outcome

    Raises:
        HTTPException: 403 for a bad signature, 400 for a malformed event,
            500 when the order could not be persisted (Twilio retries)
    """
    received_at = datetime.now(timezone.utc)
    form = await request.form()
    params = {key: value for key, value in form.items() if isinstance(value, str)}

    if not is_valid_signature(request, params):
        logger.warning("Rejected webhook with invalid signature")
        raise HTTPException(status_code=403, detail="Invalid signature")

    try:
        event = InboundEvent.from_twilio_form(params, received_at=received_at)
    except ValueError as e:
        logger.error(f"Malformed WhatsApp webhook: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid webhook payload: {e}")

    logger.info(
        f"WhatsApp event from {mask_phone(event.sender)}",
        extra={
            "json_fields": {
                "delivery_id": event.delivery_id,
                "has_text": event.has_text,
                "media_count": len(event.media),
            }
        },
    )

    try:
        result = await run_in_threadpool(dispatcher.handle, event)
    except PersistenceError as e:
        logger.error(f"Failed to persist delivery {event.delivery_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to persist order")

    return WebhookResponse(
        status=result.status.value,
        delivery_id=event.delivery_id,
        order_id=result.order.id if result.order else None,
        package_number=result.order.package_number if result.order else None,
    )
