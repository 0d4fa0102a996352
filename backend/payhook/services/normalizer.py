"""Payment Normalizer: map a raw Payhip webhook payload onto a PaymentRecord.

Payhip sends the same information under different keys depending on the
event flavour (``product.id`` vs ``sale.product_id`` and so on). Each field
is resolved through a fixed fallback chain:

    productId      product.id            -> sale.product_id
    productName    product.name          -> sale.product_name
    amount         sale.amount           -> payload.amount        (coerced, 0 if absent)
    currency       sale.currency         -> "USD"
    customerEmail  customer.email        -> sale.customer_email
    customerName   customer.name         -> sale.customer_name
    transactionId  sale.transaction_id   -> payload.transaction_id

A source falls through when it is missing, null or an empty string. Nothing
is rejected for being absent; the full payload is kept in ``rawData``.
"""

import math
import re
from typing import Any

from payhook.schemas.payments import PaymentRecord

SALE_COMPLETED = "sale_completed"
DEFAULT_CURRENCY = "USD"

# "sale.completed", "Sale-Completed", "SALE COMPLETED" -> "sale_completed"
_EVENT_SEPARATORS_RE = re.compile(r"[.\-\s]+")


def canonical_event(event: Any) -> str | None:
    """Lower-case an event tag and unify its separators to underscores."""
    if not isinstance(event, str):
        return None
    return _EVENT_SEPARATORS_RE.sub("_", event.strip().lower())


def is_sale_completed(event: Any) -> bool:
    """True for every spelling of the provider's sale-completed event."""
    return canonical_event(event) == SALE_COMPLETED


def coerce_amount(value: Any) -> int | float:
    """Coerce a provider amount to a number.

    Numbers pass through, numeric strings are parsed, integral values come
    back as int. Anything else (booleans, NaN, garbage strings) is 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0
    else:
        return 0

    if not math.isfinite(number):
        return 0
    if number.is_integer():
        return int(number)
    return number


def _section(payload: dict, key: str) -> dict:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


def _first(*values: Any) -> Any:
    for value in values:
        if value is None or value == "":
            continue
        return value
    return None


def as_text(value: Any) -> str | None:
    """Scalar payload value as a string; numbers are kept as their text form.

    Numeric ids become strings so lookups by URL path still match.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def normalize_payment(payload: dict) -> PaymentRecord:
    """Build a PaymentRecord (without timestamp) from a sale webhook payload."""
    sale = _section(payload, "sale")
    product = _section(payload, "product")
    customer = _section(payload, "customer")

    return PaymentRecord(
        event=payload.get("event"),
        product_id=as_text(_first(product.get("id"), sale.get("product_id"))),
        product_name=as_text(_first(product.get("name"), sale.get("product_name"))),
        amount=coerce_amount(_first(sale.get("amount"), payload.get("amount"))),
        currency=as_text(_first(sale.get("currency"))) or DEFAULT_CURRENCY,
        customer_email=as_text(_first(customer.get("email"), sale.get("customer_email"))),
        customer_name=as_text(_first(customer.get("name"), sale.get("customer_name"))),
        transaction_id=as_text(_first(sale.get("transaction_id"), payload.get("transaction_id"))),
        status="completed",
        raw_data=payload,
    )
