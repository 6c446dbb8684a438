"""Shared fakes for the network and signing boundaries."""

import asyncio
from decimal import Decimal

import pytest

from batchdrop.config import EngineConfig
from batchdrop.engine import ExecutionEngine
from batchdrop.models import AssetDescriptor, make_recipients


SOURCE = "source-wallet"


class FakeNetworkClient:
    """
    In-memory NetworkClient.

    Failures are keyed by 1-based call number, e.g. ``confirm_errors={2: exc}``
    fails the second confirmation. ``hang_on_confirm`` makes a confirmation
    sleep instead of returning.
    """

    def __init__(
        self,
        send_errors=None,
        confirm_errors=None,
        checkpoint_errors=None,
        hang_on_confirm=(),
        derive_error=None,
    ):
        self.send_errors = send_errors or {}
        self.confirm_errors = confirm_errors or {}
        self.checkpoint_errors = checkpoint_errors or {}
        self.hang_on_confirm = set(hang_on_confirm)
        self.derive_error = derive_error
        self.calls = []
        self.sent = []
        self._checkpoints = 0
        self._sends = 0
        self._confirms = 0

    async def get_latest_checkpoint(self):
        self.calls.append("checkpoint")
        self._checkpoints += 1
        if self._checkpoints in self.checkpoint_errors:
            raise self.checkpoint_errors[self._checkpoints]
        return f"block-{self._checkpoints}"

    async def send_transaction(self, signed):
        self.calls.append("send")
        self._sends += 1
        if self._sends in self.send_errors:
            raise self.send_errors[self._sends]
        self.sent.append(signed)
        return f"tx-{self._sends}"

    async def confirm_transaction(self, reference):
        self.calls.append("confirm")
        self._confirms += 1
        if self._confirms in self.hang_on_confirm:
            await asyncio.sleep(10)
        if self._confirms in self.confirm_errors:
            raise self.confirm_errors[self._confirms]

    async def get_balance(self, address, asset_id):
        self.calls.append("balance")
        return Decimal("1000")

    async def derive_associated_account(self, asset_id, owner):
        self.calls.append("derive")
        if self.derive_error is not None:
            raise self.derive_error
        return f"ata:{asset_id}:{owner}"


class FakeSigner:
    def __init__(self, address=SOURCE, decline_on=()):
        self.address = address
        self.decline_on = set(decline_on)
        self.signed = []

    async def sign_transaction(self, transaction):
        number = len(self.signed) + 1
        self.signed.append(transaction)
        if number in self.decline_on:
            raise PermissionError("user rejected the request")
        return {"signed": transaction}


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def network():
    return FakeNetworkClient()


@pytest.fixture
def signer():
    return FakeSigner()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def config():
    return EngineConfig(batch_size=5, batch_delay=2.0, confirm_timeout=1.0)


@pytest.fixture
def engine(network, signer, config, sleeper):
    return ExecutionEngine(network, signer, config, sleep=sleeper)


def recipients_of(count, amount="1"):
    return make_recipients((f"addr{i:03d}", amount) for i in range(count))


def native_asset(balance="1000", decimals=9):
    return AssetDescriptor.native(
        asset_id="TAO", symbol="TAO", decimals=decimals, balance=balance
    )


def token_asset(balance="1000", decimals=6, source_account="src-token-account"):
    return AssetDescriptor.token(
        asset_id="42",
        symbol="TKN",
        decimals=decimals,
        balance=balance,
        source_account=source_account,
    )
