"""
Tests for batchdrop/subtensor.py

The Bittensor objects are replaced by mocks; no node is contacted.
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
from bittensor.utils.balance import Balance

from batchdrop.errors import BatchSubmissionError
from batchdrop.models import AssetKind, TransferBatch, make_recipients
from batchdrop.network import NativeTransfer, TokenTransfer, Transaction
from batchdrop.subtensor import (
    TAO_DECIMALS,
    SubtensorNetworkClient,
    WalletSigner,
    is_valid_address,
    native_tao_descriptor,
)
from batchdrop.submitter import Submitter

ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
BOB = "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty"


async def _value(v):
    return v


def create_mock_subtensor():
    subtensor = MagicMock()
    subtensor.get_block_hash = AsyncMock(return_value="0xblock")
    subtensor.get_balance = AsyncMock(return_value=Balance.from_rao(2_500_000_000))
    subtensor.substrate.compose_call = AsyncMock(
        side_effect=lambda call_module, call_function, call_params: {
            "module": call_module,
            "function": call_function,
            "params": call_params,
        }
    )
    subtensor.substrate.create_signed_extrinsic = AsyncMock(return_value="signed-xt")
    return subtensor


def create_mock_extrinsic(extrinsic_hash=b"\xfe\xed"):
    return Mock(extrinsic_hash=extrinsic_hash)


def create_mock_receipt(success=True, error=None):
    receipt = Mock()
    receipt.is_success = _value(success)
    receipt.error_message = _value(error)
    return receipt


class TestHelpers:

    def test_address_validation(self):
        assert is_valid_address(ALICE)
        assert not is_valid_address("not-an-address")
        assert not is_valid_address("")

    def test_native_descriptor(self):
        asset = native_tao_descriptor(Balance.from_rao(1_500_000_000))
        assert asset.kind is AssetKind.NATIVE
        assert asset.decimals == TAO_DECIMALS
        assert asset.balance == Decimal("1.5")


class TestSubtensorNetworkClient:

    @pytest.mark.asyncio
    async def test_checkpoint(self):
        client = SubtensorNetworkClient(create_mock_subtensor())
        assert await client.get_latest_checkpoint() == "0xblock"

    @pytest.mark.asyncio
    async def test_send_and_confirm(self):
        subtensor = create_mock_subtensor()
        subtensor.substrate.submit_extrinsic = AsyncMock(return_value=create_mock_receipt())
        client = SubtensorNetworkClient(subtensor, wait_for_finalization=True)
        extrinsic = create_mock_extrinsic(b"\xfe\xed")

        reference = await client.send_transaction(extrinsic)
        await client.confirm_transaction(reference)

        assert reference == "0xfeed"
        subtensor.substrate.submit_extrinsic.assert_awaited_once_with(
            extrinsic, wait_for_inclusion=True, wait_for_finalization=True
        )

    @pytest.mark.asyncio
    async def test_send_returns_before_inclusion(self):
        included = asyncio.Event()

        async def slow_inclusion(*args, **kwargs):
            await included.wait()
            return create_mock_receipt()

        subtensor = create_mock_subtensor()
        subtensor.substrate.submit_extrinsic = AsyncMock(side_effect=slow_inclusion)
        client = SubtensorNetworkClient(subtensor)

        reference = await client.send_transaction(create_mock_extrinsic())
        assert reference == "0xfeed"

        included.set()
        await client.confirm_transaction(reference)

    @pytest.mark.asyncio
    async def test_slow_inclusion_hits_confirmation_timeout(self):
        cancelled = []

        async def never_included(*args, **kwargs):
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        subtensor = create_mock_subtensor()
        subtensor.substrate.submit_extrinsic = AsyncMock(side_effect=never_included)
        client = SubtensorNetworkClient(subtensor)
        signer = Mock(address=ALICE)
        signer.sign_transaction = AsyncMock(return_value=create_mock_extrinsic())
        submitter = Submitter(client, signer, confirm_timeout=0.05)
        batch = TransferBatch(index=0, recipients=tuple(make_recipients([(BOB, "1")])))
        instructions = [NativeTransfer(source=ALICE, destination=BOB, amount=1)]

        with pytest.raises(BatchSubmissionError) as exc_info:
            await submitter.submit(batch, instructions)

        assert exc_info.value.message == "confirmation timed out after 0.05s"
        assert exc_info.value.reference == "0xfeed"
        await asyncio.sleep(0)
        assert cancelled == [True]

    @pytest.mark.asyncio
    async def test_confirm_failed_extrinsic(self):
        subtensor = create_mock_subtensor()
        subtensor.substrate.submit_extrinsic = AsyncMock(
            return_value=create_mock_receipt(success=False, error="Balances.InsufficientBalance")
        )
        client = SubtensorNetworkClient(subtensor)

        reference = await client.send_transaction(create_mock_extrinsic())
        with pytest.raises(RuntimeError, match="InsufficientBalance"):
            await client.confirm_transaction(reference)

    @pytest.mark.asyncio
    async def test_confirm_unknown_reference(self):
        client = SubtensorNetworkClient(create_mock_subtensor())
        with pytest.raises(RuntimeError, match="No pending inclusion"):
            await client.confirm_transaction("0xmissing")

    @pytest.mark.asyncio
    async def test_native_balance(self):
        client = SubtensorNetworkClient(create_mock_subtensor())
        assert await client.get_balance(ALICE, "TAO") == Decimal("2.5")

    @pytest.mark.asyncio
    async def test_token_balance(self):
        subtensor = create_mock_subtensor()
        subtensor.substrate.query = AsyncMock(
            return_value=Mock(value={"balance": 1_234_500})
        )
        client = SubtensorNetworkClient(subtensor, token_decimals=4)

        assert await client.get_balance(ALICE, "7") == Decimal("123.45")
        subtensor.substrate.query.assert_awaited_once_with(
            module="Assets", storage_function="Account", params=[7, ALICE]
        )

    @pytest.mark.asyncio
    async def test_associated_account_is_owner(self):
        client = SubtensorNetworkClient(create_mock_subtensor())
        assert await client.derive_associated_account("7", BOB) == BOB
        with pytest.raises(ValueError):
            await client.derive_associated_account("7", "garbage")


class TestWalletSigner:

    def _signer(self, subtensor, keep_alive=True):
        wallet = Mock()
        wallet.coldkeypub.ss58_address = ALICE
        return WalletSigner(wallet, subtensor, keep_alive=keep_alive), wallet

    @pytest.mark.asyncio
    async def test_wraps_transfers_in_batch_all(self):
        subtensor = create_mock_subtensor()
        signer, wallet = self._signer(subtensor)
        transaction = Transaction(
            instructions=(
                NativeTransfer(source=ALICE, destination=BOB, amount=10),
                TokenTransfer(
                    asset_id="7", source_account=ALICE,
                    destination_account=BOB, owner=ALICE, amount=5,
                ),
            ),
            fee_payer=ALICE,
            recent_checkpoint="0xblock",
        )

        signed = await signer.sign_transaction(transaction)

        assert signed == "signed-xt"
        kwargs = subtensor.substrate.create_signed_extrinsic.await_args.kwargs
        assert kwargs["keypair"] is wallet.coldkey
        batch_call = kwargs["call"]
        assert batch_call["module"] == "Utility"
        assert batch_call["function"] == "batch_all"
        native, token = batch_call["params"]["calls"]
        assert native["function"] == "transfer_keep_alive"
        assert native["params"] == {"dest": BOB, "value": 10}
        assert token["module"] == "Assets"
        assert token["params"] == {"id": 7, "target": BOB, "amount": 5}

    @pytest.mark.asyncio
    async def test_allow_death(self):
        subtensor = create_mock_subtensor()
        signer, _ = self._signer(subtensor, keep_alive=False)
        transaction = Transaction(
            instructions=(NativeTransfer(source=ALICE, destination=BOB, amount=1),),
            fee_payer=ALICE,
            recent_checkpoint="0xblock",
        )
        await signer.sign_transaction(transaction)
        call = subtensor.substrate.create_signed_extrinsic.await_args.kwargs["call"]
        assert call["params"]["calls"][0]["function"] == "transfer_allow_death"

    @pytest.mark.asyncio
    async def test_rejects_foreign_fee_payer(self):
        signer, _ = self._signer(create_mock_subtensor())
        transaction = Transaction(instructions=(), fee_payer=BOB, recent_checkpoint="0x")
        with pytest.raises(ValueError, match="Fee payer"):
            await signer.sign_transaction(transaction)
