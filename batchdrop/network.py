"""
Boundary between the engine and the ledger network.

The engine only relies on the success/failure contracts below. A concrete
implementation for Bittensor lives in ``batchdrop.subtensor``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol, Union


@dataclass(frozen=True)
class NativeTransfer:
    """Move base coin directly from source to destination."""

    source: str
    destination: str
    amount: int  # smallest unit


@dataclass(frozen=True)
class TokenTransfer:
    """Move an account-based token between associated accounts."""

    asset_id: str
    source_account: str
    destination_account: str
    owner: str  # authority over source_account
    amount: int  # smallest unit


TransferInstruction = Union[NativeTransfer, TokenTransfer]


@dataclass(frozen=True)
class Transaction:
    """Unsigned composite transaction for one batch."""

    instructions: tuple[TransferInstruction, ...]
    fee_payer: str
    recent_checkpoint: str


class NetworkClient(Protocol):
    async def get_latest_checkpoint(self) -> str:
        ...

    async def send_transaction(self, signed: Any) -> str:
        """Broadcast a signed transaction and return its reference."""
        ...

    async def confirm_transaction(self, reference: str) -> None:
        """Return once confirmed; raise if the network rejects it."""
        ...

    async def get_balance(self, address: str, asset_id: str) -> Decimal:
        ...

    async def derive_associated_account(self, asset_id: str, owner: str) -> str:
        ...


class Signer(Protocol):
    address: str

    async def sign_transaction(self, transaction: Transaction) -> Any:
        """Return the signed transaction, or raise if the holder declines."""
        ...
