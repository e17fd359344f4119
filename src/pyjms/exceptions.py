"""
Exceptions raised by pyjms.

Configuration problems are raised before any broker call is attempted.
Failures from asynchronous delivery never propagate into provider threads;
they are handed to the connection's exception listener instead.
"""

from typing import Any, Optional


class JMSError(Exception):
    """Base class for every error raised by pyjms."""


class ConfigurationError(JMSError):
    """Raised for ambiguous or missing destination or factory addressing."""


class ConnectionError(JMSError):
    """Raised when the factory cannot be built or looked up, or the connect fails."""


class TransactionError(JMSError):
    """Raised for commit/rollback on a non-transacted session, or when commit/rollback fails."""


class DeliveryError(JMSError):
    """Raised (or reported) when a consumer callback fails for a message."""

    def __init__(
        self,
        message: Optional[str] = None,
        delivered: Any = None,
        cause: Optional[BaseException] = None,
    ):
        self.delivered = delivered
        self.cause = cause
        if message is None:
            message = f"Message listener failed: {cause!r}"
        super().__init__(message)
