# core/domain/entities/strategy_entity.py
from datetime import datetime
from typing import Optional

from pydantic import Field

from ..enums.keeper_enums import StrategyStatus
from .base_entity import MongoEntity


class StrategyEntity(MongoEntity):
    """
    A user's recurring trade plan (DCA): swap `amount_per_trade` of `input_mint`
    into `output_mint` every `frequency_hours`, `total_trades` times.
    """

    user_id: Optional[str] = None
    input_mint: str
    output_mint: str
    amount_per_trade: float = Field(..., gt=0.0)
    frequency_hours: float = Field(..., gt=0.0)
    total_trades: int = Field(..., ge=1)
    completed_trades: int = Field(0, ge=0)
    next_execution_at: Optional[datetime] = None

    # base64 secret key of the session wallet; opaque to the keeper
    execution_credential: Optional[str] = Field(None, repr=False)

    status: StrategyStatus = StrategyStatus.ACTIVE

    # keeper bookkeeping
    claim_token: Optional[str] = None
    claimed_at: Optional[datetime] = None

    @property
    def next_trade_number(self) -> int:
        return self.completed_trades + 1

    @property
    def has_remaining_trades(self) -> bool:
        return self.completed_trades < self.total_trades
