"""
Batched distribution engine.

Drives one ExecutionSession at a time through

    IDLE -> VALIDATING -> RUNNING -> FINISHED | CANCELLED

Any validation failure, InsufficientBalance included, returns the session
to IDLE with no results and the error kept on the session. Once RUNNING,
every recipient ends up with exactly one TransferResult: recipient and
batch errors are recorded in place, and an unexpected fault fails every
recipient not yet recorded.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Awaitable, Callable, Optional, Sequence

from .batch import plan_batches, total_requested, validate_balance
from .cancel import CancellationToken
from .config import EngineConfig
from .errors import (
    BatchSubmissionError,
    EngineFault,
    RecipientError,
    RunCancelled,
    SessionActiveError,
)
from .models import AssetDescriptor, Recipient, TransferBatch, TransferResult
from .network import NetworkClient, Signer, TransferInstruction
from .results import ResultAggregator
from .submitter import Submitter
from .transfers import AddressValidator, TransferBuilder

logger = logging.getLogger("batchdrop.engine")

CANCELLED_MESSAGE = "cancelled"


class SessionStatus(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RUNNING = "running"
    FINISHED = "finished"
    CANCELLED = "cancelled"


@dataclass
class ExecutionSession:
    """State of one distribution run, observable while it executes."""

    asset: AssetDescriptor
    recipients: tuple[Recipient, ...]
    results: ResultAggregator = field(default_factory=ResultAggregator)
    status: SessionStatus = SessionStatus.IDLE
    error: Optional[Exception] = None
    batch_count: int = 0
    batches_done: int = 0
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    @property
    def active(self) -> bool:
        return self.status in (SessionStatus.VALIDATING, SessionStatus.RUNNING)

    @property
    def total_amount(self) -> Decimal:
        return total_requested(self.recipients)

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else time.time()
        return end - self.started_at

    def summary(self) -> str:
        """Human-readable summary of the session."""
        lines = [
            f"=== Distribution {self.status.value.upper()} ===",
            f"Asset: {self.asset.symbol} ({self.asset.asset_id})",
            f"Recipients: {len(self.recipients)}",
            f"Total amount: {self.total_amount} {self.asset.symbol}",
            f"Batches: {self.batches_done}/{self.batch_count}",
            f"Successful: {self.results.success_count}",
            f"Failed: {self.results.failure_count}",
            f"Duration: {self.duration_seconds:.1f}s",
        ]
        references = self.results.references()
        if references:
            lines.append(f"Transactions: {', '.join(references)}")
        if self.error is not None:
            lines.append(f"Error: {self.error}")
        return "\n".join(lines)


SessionListener = Callable[[ExecutionSession], None]


class ExecutionEngine:
    """
    Runs distributions batch by batch, strictly sequentially.

    Parameters:
        network: Ledger client used for checkpoints, broadcast and confirmation.
        signer: Holder of the source account key; its address pays fees.
        config: Batch size, inter-batch delay and confirmation timeout.
        is_valid_address: Optional network-specific address check.
        sleep: Coroutine used for the inter-batch pause.
    """

    def __init__(
        self,
        network: NetworkClient,
        signer: Signer,
        config: Optional[EngineConfig] = None,
        is_valid_address: Optional[AddressValidator] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.network = network
        self.signer = signer
        self.config = config or EngineConfig()
        self.is_valid_address = is_valid_address
        self.submitter = Submitter(network, signer, self.config.confirm_timeout)
        self._sleep = sleep
        self._session: Optional[ExecutionSession] = None
        self._listeners: list[SessionListener] = []

    @property
    def session(self) -> Optional[ExecutionSession]:
        return self._session

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call ``listener`` on every status change and recorded batch."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, session: ExecutionSession) -> None:
        for listener in list(self._listeners):
            listener(session)

    def _set_status(self, session: ExecutionSession, status: SessionStatus) -> None:
        logger.debug("Session %s -> %s", session.status.value, status.value)
        session.status = status
        self._notify(session)

    async def start(
        self,
        asset: AssetDescriptor,
        recipients: Sequence[Recipient],
        cancel: Optional[CancellationToken] = None,
    ) -> tuple[TransferResult, ...]:
        """
        Distribute ``asset`` to ``recipients``.

        Returns one TransferResult per recipient, in recipient order.
        Raises SessionActiveError if a run is already in progress and
        InsufficientBalance if the balance does not cover the total. A
        failed validation makes no network call, produces no result and
        leaves the engine IDLE and ready for another start.
        """
        if self._session is not None and self._session.active:
            raise SessionActiveError("A distribution is already running")

        session = ExecutionSession(asset=asset, recipients=tuple(recipients))
        self._session = session
        session.started_at = time.time()

        try:
            self._set_status(session, SessionStatus.VALIDATING)
            required = validate_balance(asset, session.recipients)
            batches = plan_batches(session.recipients, self.config.batch_size)
        except Exception as e:
            logger.error("Aborting distribution: %s", e)
            session.error = e
            session.finished_at = time.time()
            self._set_status(session, SessionStatus.IDLE)
            raise

        session.batch_count = len(batches)
        logger.info(
            "Distributing %s %s to %d recipients in %d batches",
            required, asset.symbol, len(session.recipients), len(batches),
        )

        final_status = SessionStatus.FINISHED
        try:
            self._set_status(session, SessionStatus.RUNNING)
            await self._run_batches(session, batches, cancel)
        except RunCancelled:
            logger.warning(
                "Distribution cancelled after %d/%d batches",
                session.batches_done, session.batch_count,
            )
            session.results.fail_remaining(session.recipients, CANCELLED_MESSAGE)
            final_status = SessionStatus.CANCELLED
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.exception("Distribution aborted by unexpected error")
            session.error = EngineFault(message)
            session.results.fail_remaining(session.recipients, message)

        session.results.freeze()
        session.finished_at = time.time()
        self._set_status(session, final_status)
        logger.info(
            "Distribution %s: %d succeeded, %d failed",
            final_status.value,
            session.results.success_count,
            session.results.failure_count,
        )
        return session.results.results

    async def _run_batches(
        self,
        session: ExecutionSession,
        batches: Sequence[TransferBatch],
        cancel: Optional[CancellationToken],
    ) -> None:
        builder = TransferBuilder(
            session.asset,
            self.signer.address,
            self.network,
            is_valid_address=self.is_valid_address,
        )

        for batch in batches:
            if cancel is not None:
                cancel.raise_if_cancelled()

            logger.info(
                "Processing batch %d of %d (%d recipients)",
                batch.index + 1, len(batches), len(batch),
            )
            try:
                outcomes = await self._run_batch(builder, batch, cancel)
            except RunCancelled as e:
                session.results.extend(e.partial)
                raise
            session.results.extend(outcomes)
            session.batches_done += 1
            self._notify(session)

            if batch.index + 1 < len(batches):
                await self._pause(cancel)

    async def _run_batch(
        self,
        builder: TransferBuilder,
        batch: TransferBatch,
        cancel: Optional[CancellationToken],
    ) -> list[TransferResult]:
        """Build, submit and resolve one batch. Outcomes keep recipient order."""
        outcomes: list[Optional[TransferResult]] = [None] * len(batch)
        included: list[int] = []
        instructions: list[TransferInstruction] = []

        for pos, recipient in enumerate(batch.recipients):
            try:
                instructions.append(await builder.build(recipient))
            except RecipientError as e:
                logger.warning(
                    "Skipping recipient %d (%s): %s",
                    recipient.index, recipient.short_address(), e,
                )
                outcomes[pos] = TransferResult.failure(recipient, str(e))
            else:
                included.append(pos)

        if not included:
            return outcomes

        try:
            reference = await self.submitter.submit(batch, instructions, cancel)
        except RunCancelled:
            for pos in included:
                outcomes[pos] = TransferResult.failure(
                    batch.recipients[pos], CANCELLED_MESSAGE
                )
            raise RunCancelled(partial=outcomes)
        except BatchSubmissionError as e:
            logger.error("Batch %d failed: %s", batch.index + 1, e.message)
            for pos in included:
                outcomes[pos] = TransferResult.failure(
                    batch.recipients[pos], e.message, reference=e.reference
                )
        else:
            for pos in included:
                outcomes[pos] = TransferResult.success(batch.recipients[pos], reference)

        return outcomes

    async def _pause(self, cancel: Optional[CancellationToken]) -> None:
        delay = self.config.batch_delay
        if cancel is None:
            await self._sleep(delay)
        elif await cancel.wait(delay):
            raise RunCancelled()
