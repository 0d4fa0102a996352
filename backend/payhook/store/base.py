"""PaymentStore Protocol: the storage seam behind the webhook and query routes.

The routes only depend on this interface, so the file-backed log can later
be replaced by an indexed store without touching them.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from payhook.schemas.payments import PaymentRecord


@dataclass(frozen=True)
class AppendResult:
    """Outcome of an append.

    record is the stored JSON object (timestamp assigned). When duplicate is
    True nothing was written and record is the one already on file.
    """

    record: dict[str, Any]
    duplicate: bool = False


@runtime_checkable
class PaymentStore(Protocol):
    def ensure_ready(self) -> None:
        """Prepare backing storage at startup; raise if it is unusable."""
        ...

    async def append(self, record: PaymentRecord) -> AppendResult:
        """Durably persist a record, assigning its timestamp."""
        ...

    def scan_all(self) -> AsyncIterator[dict[str, Any]]:
        """Yield every stored record in file order, then append order."""
        ...

    async def find_by_transaction_id(self, transaction_id: str) -> dict[str, Any] | None:
        """Return the first stored record with this transaction id, or None."""
        ...
