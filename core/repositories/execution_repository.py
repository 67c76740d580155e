from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from core.domain.enums.keeper_enums import ExecutionStatus


class ExecutionRepository(ABC):
    """
    Repository contract for execution records (one per attempted trade).
    """

    @abstractmethod
    async def ensure_indexes(self) -> None:
        """Unique index on (strategy_id, trade_number)."""
        raise NotImplementedError

    @abstractmethod
    async def create_pending(
        self,
        strategy_id: str,
        trade_number: int,
        input_amount: float,
        claim_token: str,
        now: datetime,
    ) -> str:
        """
        Create the PENDING row for a trade, or reset the existing row of the
        same (strategy_id, trade_number) back to PENDING.

        Returns:
            The execution id.
        """
        raise NotImplementedError

    @abstractmethod
    async def update_result(
        self,
        execution_id: str,
        claim_token: str,
        status: ExecutionStatus,
        output_amount: Optional[float] = None,
        tx_signature: Optional[str] = None,
        error_message: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Record the terminal status of an attempt, only while the row still
        carries `claim_token` (a stale reclaim resets it for the new attempt).

        Returns:
            False if the row was taken over by another claim (nothing written).
        """
        raise NotImplementedError
