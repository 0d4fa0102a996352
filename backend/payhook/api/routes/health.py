from datetime import UTC, datetime

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from payhook.store.log_store import format_timestamp

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint for the load balancer.

    Returns 503 during graceful shutdown so traffic drains before exit.
    """
    timestamp = format_timestamp(datetime.now(UTC))
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(
            status_code=503,
            content={"status": "shutting_down", "timestamp": timestamp},
        )
    return {"status": "ok", "timestamp": timestamp}
