"""Read-side queries over a PaymentStore: lookup, listing and revenue stats.

Every query is a full scan of the store. Amounts are coerced on read because
older log files hold them exactly as the provider sent them (often strings).
"""

from datetime import UTC, datetime
from decimal import MAX_PREC, Context, Decimal
from typing import Any

from payhook.schemas.payments import PaymentListResponse, PaymentStatsResponse, ProductStats
from payhook.services.normalizer import coerce_amount
from payhook.store.base import PaymentStore

UNKNOWN_PRODUCT = "Unknown"

_MISSING_TIMESTAMP = datetime.min.replace(tzinfo=UTC)
_CENTS = Decimal("0.01")
# Sums and rounding never lose digits, however large the total
_EXACT = Context(prec=MAX_PREC)


def timestamp_sort_key(record: dict[str, Any]) -> datetime:
    """Parse a record's timestamp for ordering; missing or bad values sort oldest."""
    value = record.get("timestamp")
    if not isinstance(value, str):
        return _MISSING_TIMESTAMP
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return _MISSING_TIMESTAMP
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _amount(record: dict[str, Any]) -> Decimal:
    return Decimal(str(coerce_amount(record.get("amount"))))


def _to_cents(value: Decimal) -> Decimal:
    return _EXACT.quantize(value, _CENTS)


async def find_payment(store: PaymentStore, transaction_id: str) -> dict[str, Any] | None:
    return await store.find_by_transaction_id(transaction_id)


async def list_payments(store: PaymentStore) -> PaymentListResponse:
    """All records, newest first."""
    payments = [record async for record in store.scan_all()]
    payments.sort(key=timestamp_sort_key, reverse=True)
    return PaymentListResponse(total=len(payments), payments=payments)


async def compute_payment_stats(store: PaymentStore) -> PaymentStatsResponse:
    """Total revenue, transaction count, per-product breakdown and the latest payment."""
    total_revenue = Decimal(0)
    total_transactions = 0
    counts: dict[str, int] = {}
    revenue: dict[str, Decimal] = {}
    last_payment: dict[str, Any] | None = None

    async for record in store.scan_all():
        amount = _amount(record)
        total_revenue = _EXACT.add(total_revenue, amount)
        total_transactions += 1

        product_name = record.get("productName") or UNKNOWN_PRODUCT
        if not isinstance(product_name, str):
            product_name = str(product_name)
        counts[product_name] = counts.get(product_name, 0) + 1
        revenue[product_name] = _EXACT.add(revenue.get(product_name, Decimal(0)), amount)

        if last_payment is None or timestamp_sort_key(record) > timestamp_sort_key(last_payment):
            last_payment = record

    by_product = {
        name: ProductStats(count=counts[name], revenue=float(_to_cents(revenue[name])))
        for name in counts
    }
    return PaymentStatsResponse(
        total_revenue=f"{_to_cents(total_revenue)}",
        total_transactions=total_transactions,
        by_product=by_product,
        last_payment=last_payment,
    )
