"""Cache-Control policy for the static front-end served next to the API."""

import re

import structlog
from fastapi import FastAPI, Request

logger = structlog.get_logger(__name__)

STYLE_SCRIPT_FONT = "public, max-age=2592000, immutable"  # 30 days
IMAGE_VIDEO = "public, max-age=5184000, immutable"  # 60 days
AUDIO = "public, max-age=7776000, immutable"  # 90 days
NO_CACHE = "no-cache, must-revalidate"
DEFAULT = "public, max-age=3600"  # 1 hour
NO_STORE = "no-store"

# Live payment data; polled by the front-end after checkout
_DYNAMIC_PREFIXES = ("/api/", "/webhook/", "/health")

# Checked in order, first match wins
_POLICIES = [
    (re.compile(r"\.(css|js|woff2|woff|ttf)$"), STYLE_SCRIPT_FONT),
    (re.compile(r"\.(jpg|jpeg|png|gif|webp|mp4|webm)$"), IMAGE_VIDEO),
    (re.compile(r"\.(mp3|wav|ogg)$"), AUDIO),
    (re.compile(r"\.html$"), NO_CACHE),
]


def cache_control_for(path: str) -> str:
    """Return the Cache-Control header value for a request path."""
    if path.startswith(_DYNAMIC_PREFIXES):
        return NO_STORE
    if path == "/":
        return NO_CACHE
    for pattern, policy in _POLICIES:
        if pattern.search(path):
            return policy
    return DEFAULT


def setup_cache_control_middleware(app: FastAPI) -> None:
    """Set Cache-Control on every response according to the request path."""

    @app.middleware("http")
    async def cache_control(request: Request, call_next):
        response = await call_next(request)
        policy = cache_control_for(request.url.path)
        response.headers["Cache-Control"] = policy
        if policy != DEFAULT:
            logger.debug("cache_control_set", path=request.url.path, policy=policy)
        return response


__all__ = ["NO_STORE", "cache_control_for", "setup_cache_control_middleware"]
