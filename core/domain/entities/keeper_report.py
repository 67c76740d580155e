# core/domain/entities/keeper_report.py
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums.keeper_enums import RunOutcome
from .pipeline_outcome import StrandedFunds


class StrategyRunResult(BaseModel):
    strategy_id: str
    status: RunOutcome
    trade: Optional[int] = None
    tx_signature: Optional[str] = None
    input_amount: Optional[float] = None
    output_amount: Optional[float] = None
    warning: Optional[str] = None
    error: Optional[str] = None
    stranded: Optional[StrandedFunds] = None

    model_config = ConfigDict(use_enum_values=True)


class KeeperReport(BaseModel):
    processed: int = 0
    results: List[StrategyRunResult] = Field(default_factory=list)
    timestamp: str
