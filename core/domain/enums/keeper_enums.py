from enum import Enum


class StrategyStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    EXECUTING = "executing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class PipelineResult(str, Enum):
    """Terminal result of one run of the withdraw -> swap -> deposit pipeline."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class PipelinePhase(str, Enum):
    PRECONDITION = "precondition"
    WITHDRAW = "withdraw"
    SWAP = "swap"
    DEPOSIT = "deposit"


class RunOutcome(str, Enum):
    """Per-strategy outcome reported back to the trigger."""

    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"


class TxConfirmationState(str, Enum):
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"
    ERRORED = "errored"
    UNKNOWN = "unknown"
