"""Read-only payment API: lookup by transaction id, full listing, stats."""

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from payhook.api.deps import get_payment_store
from payhook.schemas.payments import PaymentListResponse, PaymentStatsResponse
from payhook.services.payment_queries import compute_payment_stats, find_payment, list_payments
from payhook.store.base import PaymentStore

logger = structlog.get_logger(__name__)

router = APIRouter()


def _query_failed(query: str, exc: Exception) -> JSONResponse:
    logger.error(
        "payment_query_failed",
        query=query,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return JSONResponse(status_code=500, content={"error": str(exc)})


@router.get("/payment/{transaction_id}")
async def get_payment(
    transaction_id: str,
    store: PaymentStore = Depends(get_payment_store),
):
    """Look up one payment by the provider's transaction id (first match wins)."""
    try:
        payment = await find_payment(store, transaction_id)
    except Exception as e:
        return _query_failed("payment", e)

    if payment is None:
        return JSONResponse(status_code=404, content={"found": False, "message": "Payment not found"})
    return {"found": True, "payment": payment}


@router.get("/payments", response_model=PaymentListResponse)
async def get_payments(store: PaymentStore = Depends(get_payment_store)):
    """Return every recorded payment, newest first."""
    try:
        return await list_payments(store)
    except Exception as e:
        return _query_failed("payments", e)


@router.get("/payment-stats", response_model=PaymentStatsResponse)
async def get_payment_stats(store: PaymentStore = Depends(get_payment_store)):
    """Return revenue totals and a per-product breakdown."""
    try:
        return await compute_payment_stats(store)
    except Exception as e:
        return _query_failed("payment-stats", e)
