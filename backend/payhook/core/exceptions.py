class PayhookError(Exception):
    """Base exception for the payment webhook service."""

    pass


class LogStoreError(PayhookError):
    """Raised when the payment log directory cannot be used."""

    pass


class LogStoreWriteError(LogStoreError):
    """Raised when a payment record could not be durably appended."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write payment log '{path}': {reason}")


class WebhookPayloadError(PayhookError):
    """Raised when a webhook body cannot be decoded."""

    pass
