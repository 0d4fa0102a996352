"""Shared test fixtures for all test groups."""

from datetime import UTC, datetime, timedelta

import pytest

from payhook.store.log_store import PaymentLogStore


class FrozenClock:
    """Deterministic clock for the log store; advance() moves it forward."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **kwargs) -> None:
        self.moment += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock frozen at 2026-10-19 12:00:00 UTC."""
    return FrozenClock(datetime(2026, 10, 19, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def log_dir(tmp_path):
    """Not-yet-created payment log directory inside tmp_path."""
    return tmp_path / "payment-logs"


@pytest.fixture
def store(log_dir, clock):
    """PaymentLogStore writing into log_dir with the frozen clock."""
    return PaymentLogStore(log_dir, clock=clock)


@pytest.fixture
def make_sale():
    """Factory for Payhip sale_completed payloads."""

    def _make(
        transaction_id: str = "txn-001",
        amount="19.99",
        product_name: str = "Blessing Ebook",
        event: str = "sale_completed",
        **extra,
    ) -> dict:
        payload = {
            "event": event,
            "sale": {
                "amount": amount,
                "currency": "USD",
                "transaction_id": transaction_id,
            },
            "product": {"id": "prod-1", "name": product_name},
            "customer": {"email": "buyer@example.com", "name": "Test Buyer"},
        }
        payload.update(extra)
        return payload

    return _make
