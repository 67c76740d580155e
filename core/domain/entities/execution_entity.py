# core/domain/entities/execution_entity.py
from datetime import datetime
from typing import Optional

from ..enums.keeper_enums import ExecutionStatus
from .base_entity import MongoEntity


class ExecutionEntity(MongoEntity):
    """
    One attempted trade of a strategy. Unique per (strategy_id, trade_number):
    a retried trade overwrites its row instead of adding a new one.
    """

    strategy_id: str
    trade_number: int
    input_amount: float
    output_amount: Optional[float] = None
    tx_signature: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.PENDING
    error_message: Optional[str] = None
    executed_at: Optional[datetime] = None

    withdraw_tx_signature: Optional[str] = None
    deposit_tx_signature: Optional[str] = None
    stranded_mint: Optional[str] = None
    stranded_amount: Optional[float] = None
    claim_token: Optional[str] = None
