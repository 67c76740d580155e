import logging
from datetime import datetime
from typing import List, Optional

from core.common.utils import ensure_aware, to_iso_z, utc_now
from core.domain.entities.keeper_report import KeeperReport, StrategyRunResult
from core.domain.entities.strategy_entity import StrategyEntity
from core.domain.enums.keeper_enums import RunOutcome

from ..repositories.strategy_repository import StrategyRepository
from .claim_strategy_use_case import ClaimStrategyUseCase
from .execute_trade_pipeline_use_case import ExecuteTradePipelineUseCase
from .settle_execution_use_case import SettleExecutionUseCase


class RunDueExecutionsUseCase:
    """
    One keeper pass: find due strategies, then claim -> pipeline -> settle each.

    Strategies are processed one after another and isolated from each other:
    an error on one is reported and the pass moves on. Running two passes at
    the same time is safe because each strategy is claimed atomically.
    """

    def __init__(
        self,
        strategy_repo: StrategyRepository,
        claim_uc: ClaimStrategyUseCase,
        pipeline_uc: ExecuteTradePipelineUseCase,
        settle_uc: SettleExecutionUseCase,
        logger: Optional[logging.Logger] = None,
    ):
        self._strategies = strategy_repo
        self._claim = claim_uc
        self._pipeline = pipeline_uc
        self._settle = settle_uc
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    def _is_runnable(self, strategy: StrategyEntity) -> bool:
        # rows like these should not exist; skip them instead of failing the pass
        if not strategy.has_remaining_trades:
            self._logger.warning(
                "Strategy %s has %s/%s trades done but is still due; skipping",
                strategy.id,
                strategy.completed_trades,
                strategy.total_trades,
            )
            return False
        if not strategy.execution_credential:
            self._logger.warning("Strategy %s has no execution credential; skipping", strategy.id)
            return False
        return True

    async def execute(self, now: Optional[datetime] = None) -> KeeperReport:
        now = ensure_aware(now or utc_now())

        due = await self._strategies.find_due(now, self._claim.stale_before(now))
        candidates = [s for s in due if self._is_runnable(s)]
        self._logger.info("Found %s strategies due for execution", len(candidates))

        results: List[StrategyRunResult] = []
        for strategy in candidates:
            result = await self._run_one(strategy, now)
            if result is not None:
                results.append(result)

        return KeeperReport(processed=len(results), results=results, timestamp=to_iso_z(now))

    async def _run_one(self, strategy: StrategyEntity, now: datetime) -> Optional[StrategyRunResult]:
        ticket = None
        try:
            ticket = await self._claim.claim(strategy, now)
            if ticket is None:
                return None

            outcome = await self._pipeline.run(ticket.strategy)
            return await self._settle.settle(ticket, outcome, now)
        except Exception as exc:
            self._logger.exception("Error executing strategy %s: %s", strategy.id, exc)
            if ticket is not None:
                strategy = ticket.strategy
            return StrategyRunResult(
                strategy_id=strategy.id,
                status=RunOutcome.ERROR,
                trade=strategy.next_trade_number,
                input_amount=strategy.amount_per_trade,
                error=str(exc) or exc.__class__.__name__,
            )
