"""Pydantic schemas for payment records and the payment API responses.

Field names are snake_case in Python and camelCase on disk and on the wire,
matching the records written by earlier versions of the service.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaymentRecord(CamelModel):
    """A single normalized payment confirmation.

    timestamp is None until the log store assigns it at write time.
    """

    timestamp: str | None = None
    event: str
    product_id: str | None = None
    product_name: str | None = None
    amount: int | float = 0
    currency: str = "USD"
    customer_email: str | None = None
    customer_name: str | None = None
    transaction_id: str | None = None
    status: Literal["completed"] = "completed"
    raw_data: Any = None

    def to_log_entry(self) -> dict[str, Any]:
        """Return the JSON object persisted for this record."""
        return self.model_dump(by_alias=True)


class WebhookResponse(CamelModel):
    success: bool = True
    message: str
    transaction_id: str | None = None
    duplicate: bool | None = None


class PaymentListResponse(CamelModel):
    """All recorded payments, newest first."""

    total: int = 0
    payments: list[dict[str, Any]] = Field(default_factory=list)


class ProductStats(CamelModel):
    count: int = 0
    revenue: float = 0.0


class PaymentStatsResponse(CamelModel):
    """Aggregated revenue across every log file.

    total_revenue is a string with exactly two decimals ("NN.NN").
    """

    total_revenue: str = "0.00"
    total_transactions: int = 0
    by_product: dict[str, ProductStats] = Field(default_factory=dict)
    last_payment: dict[str, Any] | None = None
