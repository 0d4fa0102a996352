"""Shared FastAPI dependencies."""

from fastapi import Request

from payhook.store.base import PaymentStore


def get_payment_store(request: Request) -> PaymentStore:
    """Return the PaymentStore attached to the app by create_app()."""
    return request.app.state.payment_store
