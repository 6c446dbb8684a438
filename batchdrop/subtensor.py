"""
Bittensor (Substrate) implementation of the network boundary.

Every batch is wrapped in ``utility.batch_all``, so the transfers in it
succeed together or are all reverted.

Native TAO moves through the Balances pallet. Account-based tokens move
through the Assets pallet, where balances are keyed by (asset id, owner);
the associated account of an owner is therefore the owner itself.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any

import bittensor as bt
from bittensor.utils import is_valid_bittensor_address_or_public_key
from bittensor.utils.balance import Balance

from .batch import from_base_units
from .models import AssetDescriptor
from .network import NativeTransfer, TokenTransfer, Transaction

logger = logging.getLogger("batchdrop.subtensor")

TAO_ASSET_ID = "TAO"
TAO_SYMBOL = "TAO"
TAO_DECIMALS = 9  # 1 TAO = 1e9 RAO


def is_valid_address(address: str) -> bool:
    return bool(address) and is_valid_bittensor_address_or_public_key(address)


def native_tao_descriptor(balance: Balance) -> AssetDescriptor:
    return AssetDescriptor.native(
        asset_id=TAO_ASSET_ID,
        symbol=TAO_SYMBOL,
        decimals=TAO_DECIMALS,
        balance=from_base_units(balance.rao, TAO_DECIMALS),
    )


def _hash_to_str(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return str(value)


class SubtensorNetworkClient:
    """NetworkClient backed by ``bittensor.AsyncSubtensor``."""

    def __init__(
        self,
        subtensor: bt.AsyncSubtensor,
        wait_for_finalization: bool = False,
        token_decimals: int = 0,
    ):
        self.subtensor = subtensor
        self.wait_for_finalization = wait_for_finalization
        self.token_decimals = token_decimals
        self._inclusions: dict[str, asyncio.Future] = {}

    async def get_latest_checkpoint(self) -> str:
        block_hash = await self.subtensor.get_block_hash()
        if not block_hash:
            raise RuntimeError("Node returned no block hash")
        return _hash_to_str(block_hash)

    async def send_transaction(self, signed: Any) -> str:
        """
        Broadcast ``signed`` and return its extrinsic hash without waiting.

        Inclusion is awaited by ``confirm_transaction``, so a slow block
        only ever consumes the confirmation timeout.
        """
        reference = _hash_to_str(signed.extrinsic_hash)
        self._inclusions[reference] = asyncio.ensure_future(
            self.subtensor.substrate.submit_extrinsic(
                signed,
                wait_for_inclusion=True,
                wait_for_finalization=self.wait_for_finalization,
            )
        )
        return reference

    async def confirm_transaction(self, reference: str) -> None:
        inclusion = self._inclusions.pop(reference, None)
        if inclusion is None:
            raise RuntimeError(f"No pending inclusion for extrinsic {reference}")
        try:
            receipt = await inclusion
        except asyncio.CancelledError:
            inclusion.cancel()
            raise
        if not await receipt.is_success:
            error = await receipt.error_message
            raise RuntimeError(f"Extrinsic {reference} failed: {error}")

    async def get_balance(self, address: str, asset_id: str) -> Decimal:
        if asset_id == TAO_ASSET_ID:
            balance = await self.subtensor.get_balance(address)
            return from_base_units(balance.rao, TAO_DECIMALS)

        account = await self.subtensor.substrate.query(
            module="Assets",
            storage_function="Account",
            params=[int(asset_id), address],
        )
        value = getattr(account, "value", account)
        if not value:
            return Decimal(0)
        return from_base_units(int(value["balance"]), self.token_decimals)

    async def derive_associated_account(self, asset_id: str, owner: str) -> str:
        if not is_valid_address(owner):
            raise ValueError(f"Invalid ss58 address: {owner}")
        return owner


class WalletSigner:
    """Signer backed by the coldkey of a ``bittensor.Wallet``."""

    def __init__(
        self,
        wallet: bt.Wallet,
        subtensor: bt.AsyncSubtensor,
        keep_alive: bool = True,
    ):
        self.wallet = wallet
        self.subtensor = subtensor
        self.keep_alive = keep_alive
        self.address = wallet.coldkeypub.ss58_address

    async def _compose(self, instruction) -> Any:
        substrate = self.subtensor.substrate
        if isinstance(instruction, NativeTransfer):
            transfer_fn = (
                "transfer_keep_alive" if self.keep_alive else "transfer_allow_death"
            )
            return await substrate.compose_call(
                call_module="Balances",
                call_function=transfer_fn,
                call_params={
                    "dest": instruction.destination,
                    "value": instruction.amount,
                },
            )
        if isinstance(instruction, TokenTransfer):
            return await substrate.compose_call(
                call_module="Assets",
                call_function="transfer_keep_alive",
                call_params={
                    "id": int(instruction.asset_id),
                    "target": instruction.destination_account,
                    "amount": instruction.amount,
                },
            )
        raise TypeError(f"Unsupported instruction: {type(instruction).__name__}")

    async def sign_transaction(self, transaction: Transaction) -> Any:
        """
        Wrap the instructions in one ``batch_all`` call signed by the coldkey.

        The recent checkpoint is only logged. Substrate extrinsics carry a
        mortal era that ``create_signed_extrinsic`` anchors to the current
        finalized head, which bounds the validity window on its own.
        """
        if transaction.fee_payer != self.address:
            raise ValueError(
                f"Fee payer {transaction.fee_payer} does not match wallet {self.address}"
            )

        calls = [await self._compose(i) for i in transaction.instructions]
        batch_call = await self.subtensor.substrate.compose_call(
            call_module="Utility",
            call_function="batch_all",
            call_params={"calls": calls},
        )
        logger.debug(
            "Signing batch of %d calls at checkpoint %s",
            len(calls), transaction.recent_checkpoint,
        )
        return await self.subtensor.substrate.create_signed_extrinsic(
            call=batch_call,
            keypair=self.wallet.coldkey,
        )
