"""
batchdrop — batched token and coin distribution for ledger networks.

Splits a recipient list into small groups, sends one atomic transaction per
group, and reports a success or failure for every recipient.
"""

from batchdrop.batch import plan_batches, to_base_units, validate_balance
from batchdrop.cancel import CancellationToken
from batchdrop.config import EngineConfig, load_config
from batchdrop.engine import ExecutionEngine, ExecutionSession, SessionStatus
from batchdrop.errors import (
    BatchSubmissionError,
    ConfigurationError,
    DistributionError,
    EngineFault,
    InsufficientBalance,
    RecipientError,
    SessionActiveError,
)
from batchdrop.models import (
    AssetDescriptor,
    AssetKind,
    Outcome,
    Recipient,
    TransferBatch,
    TransferResult,
    make_recipients,
)

__version__ = "0.2.0"

__all__ = [
    "AssetDescriptor",
    "AssetKind",
    "BatchSubmissionError",
    "CancellationToken",
    "ConfigurationError",
    "DistributionError",
    "EngineConfig",
    "EngineFault",
    "ExecutionEngine",
    "ExecutionSession",
    "InsufficientBalance",
    "Outcome",
    "Recipient",
    "RecipientError",
    "SessionActiveError",
    "SessionStatus",
    "TransferBatch",
    "TransferResult",
    "load_config",
    "make_recipients",
    "plan_batches",
    "to_base_units",
    "validate_balance",
]
