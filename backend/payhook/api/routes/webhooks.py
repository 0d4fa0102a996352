"""Payhip webhook receiver.

Only sale-completed events are persisted. Every other event is acknowledged
with 200 so the provider does not retry it. Processing failures return 500
and write nothing; the provider's own retry policy takes over from there.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from payhook.api.deps import get_payment_store
from payhook.core.exceptions import WebhookPayloadError
from payhook.schemas.payments import WebhookResponse
from payhook.services.normalizer import is_sale_completed, normalize_payment
from payhook.services.webhook_body import parse_webhook_body
from payhook.store.base import PaymentStore

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "/webhook/payhip",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
)
async def payhip_webhook(
    request: Request,
    store: PaymentStore = Depends(get_payment_store),
):
    """Record a completed Payhip sale."""
    content_type = request.headers.get("content-type")
    body = await request.body()
    try:
        payload = parse_webhook_body(body, content_type)
    except WebhookPayloadError as e:
        raise HTTPException(status_code=400, detail=str(e))

    event = payload.get("event") if isinstance(payload, dict) else None
    logger.info("payhip_webhook_received", payhip_event=event, content_type=content_type)

    if not is_sale_completed(event):
        logger.info("payhip_non_sale_event", payhip_event=event)
        return WebhookResponse(message="Event received but not a sale")

    try:
        record = normalize_payment(payload)
        result = await store.append(record)
    except Exception as e:
        logger.error(
            "payhip_webhook_failed",
            payhip_event=event,
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    transaction_id = record.transaction_id
    if result.duplicate:
        logger.info("payment_duplicate_ignored", transaction_id=transaction_id)
        return WebhookResponse(
            message="Payment already recorded",
            transaction_id=transaction_id,
            duplicate=True,
        )

    logger.info(
        "payment_logged",
        transaction_id=transaction_id,
        amount=result.record.get("amount"),
        currency=result.record.get("currency"),
    )
    return WebhookResponse(message="Payment confirmed", transaction_id=transaction_id)
