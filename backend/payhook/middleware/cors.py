"""CORS middleware with an origin allow-list and a wildcard fallback.

Browsers on a listed origin get their origin reflected back. Everything else
(webhook posts from the provider, curl, unknown sites) gets "*". Preflight
OPTIONS requests are answered directly with 204.
"""

from collections.abc import Iterable

from fastapi import FastAPI, Request, Response

ALLOW_HEADERS = "Content-Type, Authorization"
ALLOW_METHODS = "POST, GET, OPTIONS"


def resolve_allow_origin(origin: str | None, allowed_origins: Iterable[str]) -> str:
    """Return the Access-Control-Allow-Origin value for a request origin."""
    if origin and origin in allowed_origins:
        return origin
    return "*"


def _apply_cors_headers(response: Response, allow_origin: str) -> None:
    response.headers["Access-Control-Allow-Origin"] = allow_origin
    response.headers["Access-Control-Allow-Headers"] = ALLOW_HEADERS
    response.headers["Access-Control-Allow-Methods"] = ALLOW_METHODS
    if allow_origin != "*":
        response.headers["Vary"] = "Origin"


def setup_cors_middleware(app: FastAPI, allowed_origins: Iterable[str]) -> None:
    """Add the allow-list CORS middleware to a FastAPI app."""
    allowed = frozenset(allowed_origins)

    @app.middleware("http")
    async def cors_headers(request: Request, call_next):
        allow_origin = resolve_allow_origin(request.headers.get("origin"), allowed)
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            response = await call_next(request)
        _apply_cors_headers(response, allow_origin)
        return response


__all__ = ["resolve_allow_origin", "setup_cors_middleware"]
