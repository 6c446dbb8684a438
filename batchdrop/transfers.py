"""
Per-recipient transfer construction.

Each AssetKind maps to exactly one builder function. Adding a new kind of
asset means registering one more function in ``_BUILDERS``.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from .batch import to_base_units
from .errors import RecipientError
from .models import AssetDescriptor, AssetKind, Recipient
from .network import NativeTransfer, NetworkClient, TokenTransfer, TransferInstruction

logger = logging.getLogger("batchdrop.transfers")

AddressValidator = Callable[[str], bool]

INVALID_ADDRESS = "invalid address"
INVALID_AMOUNT = "invalid amount"
AMOUNT_TOO_SMALL = "amount below smallest unit"
MISSING_SOURCE_ACCOUNT = "missing source account"
DERIVATION_FAILED = "associated account derivation failed"


def _basic_address_check(address: str) -> bool:
    return bool(address) and not any(c.isspace() for c in address)


class TransferBuilder:
    """Turns one Recipient into one network transfer instruction."""

    def __init__(
        self,
        asset: AssetDescriptor,
        source: str,
        network: NetworkClient,
        is_valid_address: Optional[AddressValidator] = None,
    ):
        self.asset = asset
        self.source = source
        self.network = network
        self.is_valid_address = is_valid_address or _basic_address_check

    async def build(self, recipient: Recipient) -> TransferInstruction:
        if not self.is_valid_address(recipient.address):
            raise RecipientError(INVALID_ADDRESS, recipient.address)
        if recipient.amount <= 0:
            raise RecipientError(INVALID_AMOUNT, str(recipient.amount))

        amount = to_base_units(recipient.amount, self.asset.decimals)
        if amount == 0:
            raise RecipientError(AMOUNT_TOO_SMALL, str(recipient.amount))

        build = _BUILDERS[self.asset.kind]
        return await build(self, recipient, amount)


async def _build_native(
    builder: TransferBuilder, recipient: Recipient, amount: int
) -> TransferInstruction:
    return NativeTransfer(
        source=builder.source,
        destination=recipient.address,
        amount=amount,
    )


async def _build_token(
    builder: TransferBuilder, recipient: Recipient, amount: int
) -> TransferInstruction:
    asset = builder.asset
    if not asset.source_account:
        raise RecipientError(MISSING_SOURCE_ACCOUNT)

    try:
        destination = await builder.network.derive_associated_account(
            asset.asset_id, recipient.address
        )
    except Exception as e:
        logger.warning(
            "Could not derive %s account for %s: %s",
            asset.symbol, recipient.address, e,
        )
        raise RecipientError(DERIVATION_FAILED, str(e)) from e

    return TokenTransfer(
        asset_id=asset.asset_id,
        source_account=asset.source_account,
        destination_account=destination,
        owner=builder.source,
        amount=amount,
    )


_BUILDERS: dict[
    AssetKind,
    Callable[[TransferBuilder, Recipient, int], Awaitable[TransferInstruction]],
] = {
    AssetKind.NATIVE: _build_native,
    AssetKind.TOKEN: _build_token,
}
