"""
Data model for a batched distribution run.

Amounts are kept as Decimal in human units (e.g. 1.5 TAO) until the
transfer builder scales them to the network's smallest unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Iterable, Optional, Union


AmountLike = Union[Decimal, int, float, str]


def to_decimal(value: AmountLike) -> Decimal:
    """
    Coerce an amount to Decimal.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary approximation. NaN and infinities are rejected.
    """
    if isinstance(value, bool):
        raise TypeError("Amount cannot be a boolean")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Invalid amount '{value}'")
    if not amount.is_finite():
        raise ValueError(f"Amount must be finite, got '{value}'")
    return amount


class AssetKind(Enum):
    """How balances of the asset are held on the network."""

    NATIVE = "native"  # base coin, held on the owner's primary account
    TOKEN = "token"  # held in per-owner associated accounts


@dataclass(frozen=True)
class AssetDescriptor:
    """Static facts about the asset being distributed."""

    asset_id: str
    symbol: str
    decimals: int
    balance: Decimal
    source_account: Optional[str] = None
    kind: AssetKind = AssetKind.NATIVE

    def __post_init__(self):
        if self.decimals < 0:
            raise ValueError(f"Decimals must be >= 0, got {self.decimals}")
        object.__setattr__(self, "balance", to_decimal(self.balance))

    @classmethod
    def native(
        cls, asset_id: str, symbol: str, decimals: int, balance: AmountLike
    ) -> "AssetDescriptor":
        return cls(
            asset_id=asset_id,
            symbol=symbol,
            decimals=decimals,
            balance=to_decimal(balance),
            kind=AssetKind.NATIVE,
        )

    @classmethod
    def token(
        cls,
        asset_id: str,
        symbol: str,
        decimals: int,
        balance: AmountLike,
        source_account: Optional[str] = None,
    ) -> "AssetDescriptor":
        return cls(
            asset_id=asset_id,
            symbol=symbol,
            decimals=decimals,
            balance=to_decimal(balance),
            source_account=source_account,
            kind=AssetKind.TOKEN,
        )


@dataclass(frozen=True)
class Recipient:
    """A single payment recipient."""

    address: str
    amount: Decimal  # in human units
    index: int = 0  # position in the original list
    label: str = ""

    def __post_init__(self):
        object.__setattr__(self, "amount", to_decimal(self.amount))

    def short_address(self) -> str:
        if len(self.address) <= 20:
            return self.address
        return f"{self.address[:8]}...{self.address[-8:]}"


def make_recipients(
    entries: Iterable[tuple[str, AmountLike]],
) -> list[Recipient]:
    """Build recipients from (address, amount) pairs, indexed by position."""
    return [
        Recipient(address=address, amount=to_decimal(amount), index=i)
        for i, (address, amount) in enumerate(entries)
    ]


@dataclass(frozen=True)
class TransferBatch:
    """An ordered, non-empty slice of the recipient list."""

    index: int
    recipients: tuple[Recipient, ...]

    def __post_init__(self):
        if not self.recipients:
            raise ValueError("A transfer batch cannot be empty")

    def __len__(self) -> int:
        return len(self.recipients)

    @property
    def total_amount(self) -> Decimal:
        return sum((r.amount for r in self.recipients), Decimal(0))


class Outcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class TransferResult:
    """Outcome of one attempted transfer. Never revised once recorded."""

    recipient: Recipient
    outcome: Outcome
    reference: Optional[str] = None  # transaction reference
    error: Optional[str] = None

    @classmethod
    def success(cls, recipient: Recipient, reference: str) -> "TransferResult":
        return cls(recipient=recipient, outcome=Outcome.SUCCESS, reference=reference)

    @classmethod
    def failure(
        cls,
        recipient: Recipient,
        error: str,
        reference: Optional[str] = None,
    ) -> "TransferResult":
        return cls(
            recipient=recipient,
            outcome=Outcome.FAILURE,
            reference=reference,
            error=error,
        )

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS
