import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel

from core.domain.entities.strategy_entity import StrategyEntity
from core.domain.enums.keeper_enums import StrategyStatus

from ..repositories.execution_repository import ExecutionRepository
from ..repositories.strategy_repository import StrategyRepository


class ClaimTicket(BaseModel):
    """Proof that this pass owns a strategy until settlement."""

    strategy: StrategyEntity
    claim_token: str
    execution_id: str
    trade_number: int
    claimed_at: datetime


class ClaimStrategyUseCase:
    """
    Marks exactly one pass as the executor of a strategy.

    The repository's conditional update is the only concurrency guard: a lost
    race returns None and the caller just moves on. After a won claim the
    PENDING execution row for trade `completed_trades + 1` is created (or the
    failed row of that same trade is reset).
    """

    def __init__(
        self,
        strategy_repo: StrategyRepository,
        execution_repo: ExecutionRepository,
        stale_claim_sec: float = 0.0,
        logger: Optional[logging.Logger] = None,
    ):
        self._strategies = strategy_repo
        self._executions = execution_repo
        self._stale_claim_sec = float(stale_claim_sec)
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    def stale_before(self, now: datetime) -> Optional[datetime]:
        if self._stale_claim_sec <= 0:
            return None
        return now - timedelta(seconds=self._stale_claim_sec)

    async def claim(self, strategy: StrategyEntity, now: datetime) -> Optional[ClaimTicket]:
        token = uuid.uuid4().hex
        claimed = await self._strategies.try_claim(strategy.id, token, now, self.stale_before(now))
        if claimed is None:
            self._logger.info("Strategy %s already being executed or not active, skipping", strategy.id)
            return None

        if strategy.status == StrategyStatus.EXECUTING:
            self._logger.warning(
                "Strategy %s reclaimed from a stale claim (claimed_at=%s)", strategy.id, strategy.claimed_at
            )

        # the candidate may predate a settlement; trade number comes from the claimed document
        trade_number = claimed.next_trade_number
        try:
            execution_id = await self._executions.create_pending(
                claimed.id, trade_number, claimed.amount_per_trade, token, now
            )
        except Exception:
            self._logger.exception("Error creating execution for strategy %s; releasing claim", claimed.id)
            await self._strategies.release_claim(
                claimed.id, token, {"status": StrategyStatus.ACTIVE.value}
            )
            raise

        return ClaimTicket(
            strategy=claimed,
            claim_token=token,
            execution_id=execution_id,
            trade_number=trade_number,
            claimed_at=now,
        )
