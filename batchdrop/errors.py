"""
Error taxonomy for batched distributions.

Recipient and batch errors are recovered inside the batch loop and turned
into TransferResults. Only session-level errors reach the caller.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional


class DistributionError(Exception):
    """Base class for every error raised by batchdrop."""


class ConfigurationError(DistributionError, ValueError):
    """Invalid engine configuration (batch size, delays, config file)."""


class InsufficientBalance(DistributionError):
    """The requested total exceeds the available balance."""

    def __init__(self, required: Decimal, available: Decimal, symbol: str = ""):
        self.required = required
        self.available = available
        self.symbol = symbol
        unit = f" {symbol}" if symbol else ""
        super().__init__(
            f"Insufficient balance: {available}{unit} available, "
            f"but {required}{unit} needed."
        )


class RecipientError(DistributionError):
    """A single recipient could not be turned into a transfer instruction."""

    def __init__(self, reason: str, detail: str = ""):
        self.reason = reason
        self.detail = detail
        super().__init__(f"{reason}: {detail}" if detail else reason)


class BatchSubmissionError(DistributionError):
    """Signing, broadcasting or confirming a batch transaction failed."""

    def __init__(self, message: str, reference: Optional[str] = None):
        self.message = message
        # Set when the transaction was broadcast but never confirmed.
        self.reference = reference
        super().__init__(message)


class EngineFault(DistributionError):
    """Unexpected error that terminated the batch loop early."""


class SessionActiveError(DistributionError):
    """A session is already validating or running on this engine."""


class RunCancelled(DistributionError):
    """
    The cancellation token fired at a suspension point.

    ``partial`` holds outcomes already settled for the batch in flight.
    """

    def __init__(self, message: str = "cancelled", partial=()):
        super().__init__(message)
        self.partial = tuple(partial)
