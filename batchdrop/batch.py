"""
Pre-flight balance check and batch planning.

Recipients are split into fixed-size chunks. Each chunk becomes one atomic
ledger transaction: every transfer in it lands together or none do.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_DOWN
from typing import Sequence

from .errors import ConfigurationError, InsufficientBalance
from .models import AssetDescriptor, AmountLike, Recipient, TransferBatch, to_decimal


# Recipients per batch transaction. Kept small so a single transaction
# stays well under the network's size and compute limits.
DEFAULT_BATCH_SIZE = 5

# Pause between batches, in seconds, to stay under RPC rate limits.
DEFAULT_BATCH_DELAY = 2.0


def total_requested(recipients: Sequence[Recipient]) -> Decimal:
    return sum((r.amount for r in recipients), Decimal(0))


def validate_balance(
    asset: AssetDescriptor, recipients: Sequence[Recipient]
) -> Decimal:
    """
    Check that the available balance covers every requested transfer.

    Returns the requested total. Raises InsufficientBalance if the total
    strictly exceeds ``asset.balance``.
    """
    required = total_requested(recipients)
    if required > asset.balance:
        raise InsufficientBalance(required, asset.balance, asset.symbol)
    return required


def plan_batches(
    recipients: Sequence[Recipient], batch_size: int = DEFAULT_BATCH_SIZE
) -> list[TransferBatch]:
    """Split recipients into ordered chunks of ``batch_size``."""
    if batch_size < 1:
        raise ConfigurationError(f"Batch size must be >= 1, got {batch_size}")
    return [
        TransferBatch(index=n, recipients=tuple(recipients[i: i + batch_size]))
        for n, i in enumerate(range(0, len(recipients), batch_size))
    ]


def to_base_units(amount: AmountLike, decimals: int) -> int:
    """
    Convert a human amount to the network's smallest unit.

    Truncates toward zero so a transfer never pays more than requested:
    ``to_base_units("0.125", 2) == 12``.
    """
    scaled = to_decimal(amount).scaleb(decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_base_units(value: int, decimals: int) -> Decimal:
    return Decimal(value).scaleb(-decimals)
