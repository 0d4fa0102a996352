"""Payment storage: the PaymentStore interface and its file-backed log."""

from payhook.store.base import AppendResult, PaymentStore
from payhook.store.log_store import PaymentLogStore

__all__ = [
    "AppendResult",
    "PaymentLogStore",
    "PaymentStore",
]
