"""
Batch submission: checkpoint, sign, broadcast, confirm.

All instructions of a batch are packed into one atomic transaction, so a
batch either settles for every included recipient or for none of them.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional, Sequence

from .cancel import CancellationToken
from .errors import BatchSubmissionError
from .models import TransferBatch
from .network import NetworkClient, Signer, Transaction, TransferInstruction

logger = logging.getLogger("batchdrop.submitter")

DEFAULT_CONFIRM_TIMEOUT = 60.0


def _describe(e: BaseException) -> str:
    return str(e) or type(e).__name__


class Submitter:
    """Signs and submits one transaction per batch."""

    def __init__(
        self,
        network: NetworkClient,
        signer: Signer,
        confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT,
    ):
        self.network = network
        self.signer = signer
        self.confirm_timeout = confirm_timeout

    async def submit(
        self,
        batch: TransferBatch,
        instructions: Sequence[TransferInstruction],
        cancel: Optional[CancellationToken] = None,
    ) -> str:
        """
        Submit ``instructions`` for ``batch`` as a single transaction.

        Returns the transaction reference once the network confirms it.
        Raises BatchSubmissionError on any failure, RunCancelled if the
        token fires before the transaction is broadcast.
        """
        start_time = time.time()
        label = f"batch {batch.index + 1}"

        if cancel is not None:
            cancel.raise_if_cancelled()
        try:
            checkpoint = await self.network.get_latest_checkpoint()
        except Exception as e:
            raise BatchSubmissionError(
                f"Could not fetch recent checkpoint: {_describe(e)}"
            ) from e

        transaction = Transaction(
            instructions=tuple(instructions),
            fee_payer=self.signer.address,
            recent_checkpoint=checkpoint,
        )

        if cancel is not None:
            cancel.raise_if_cancelled()
        try:
            signed = await self.signer.sign_transaction(transaction)
        except Exception as e:
            raise BatchSubmissionError(f"Signing declined: {_describe(e)}") from e

        try:
            reference = await self.network.send_transaction(signed)
        except Exception as e:
            raise BatchSubmissionError(f"Broadcast rejected: {_describe(e)}") from e

        logger.info(
            "%s: sent %d transfers as %s, awaiting confirmation",
            label, len(instructions), reference,
        )

        try:
            await asyncio.wait_for(
                self.network.confirm_transaction(reference),
                timeout=self.confirm_timeout,
            )
        except asyncio.TimeoutError as e:
            raise BatchSubmissionError(
                f"confirmation timed out after {self.confirm_timeout:g}s",
                reference=reference,
            ) from e
        except Exception as e:
            raise BatchSubmissionError(_describe(e), reference=reference) from e

        logger.info(
            "%s: confirmed %s in %.1fs", label, reference, time.time() - start_time
        )
        return reference
