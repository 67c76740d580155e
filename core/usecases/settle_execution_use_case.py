import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from core.domain.entities.keeper_report import StrategyRunResult
from core.domain.entities.pipeline_outcome import PipelineOutcome
from core.domain.enums.keeper_enums import (
    ExecutionStatus,
    PipelineResult,
    RunOutcome,
    StrategyStatus,
)

from ..repositories.execution_repository import ExecutionRepository
from ..repositories.strategy_repository import StrategyRepository
from .claim_strategy_use_case import ClaimTicket


class SettleExecutionUseCase:
    """
    Persists the outcome of a claimed run.

    - SUCCESS / PARTIAL: execution -> success, completed_trades + 1, then either
      completed (next_execution_at cleared) or active again one cadence later.
    - FAILED: execution -> failed with the error; strategy back to active with
      completed_trades and next_execution_at untouched, so the same trade is
      retried on the next pass.

    Strategy and execution writes only land while the ticket's claim is still held.
    """

    def __init__(
        self,
        strategy_repo: StrategyRepository,
        execution_repo: ExecutionRepository,
        logger: Optional[logging.Logger] = None,
    ):
        self._strategies = strategy_repo
        self._executions = execution_repo
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @staticmethod
    def _stranded_fields(outcome: PipelineOutcome) -> Dict[str, Any]:
        if outcome.stranded is None:
            return {}
        return {
            "stranded_mint": outcome.stranded.mint,
            "stranded_amount": outcome.stranded.amount,
        }

    async def settle(
        self,
        ticket: ClaimTicket,
        outcome: PipelineOutcome,
        now: datetime,
    ) -> StrategyRunResult:
        if outcome.advances_trade:
            return await self._settle_progress(ticket, outcome, now)
        return await self._settle_failure(ticket, outcome)

    async def _settle_progress(
        self,
        ticket: ClaimTicket,
        outcome: PipelineOutcome,
        now: datetime,
    ) -> StrategyRunResult:
        strategy = ticket.strategy
        partial = outcome.result == PipelineResult.PARTIAL

        await self._record(
            ticket,
            ExecutionStatus.SUCCESS,
            output_amount=outcome.output_amount,
            tx_signature=outcome.swap_signature,
            error_message=outcome.advisory if partial else None,
            extra={
                "withdraw_tx_signature": outcome.withdraw_signature,
                "deposit_tx_signature": outcome.deposit_signature,
                **self._stranded_fields(outcome),
            },
        )

        completed = min(strategy.completed_trades + 1, strategy.total_trades)
        is_completed = completed >= strategy.total_trades
        fields: Dict[str, Any] = {
            "completed_trades": completed,
            "status": (StrategyStatus.COMPLETED if is_completed else StrategyStatus.ACTIVE).value,
            "next_execution_at": None
            if is_completed
            else now + timedelta(hours=strategy.frequency_hours),
        }
        await self._release(ticket, fields)

        self._logger.info(
            "Executed trade %s/%s for strategy %s%s",
            completed,
            strategy.total_trades,
            strategy.id,
            " (partial - re-shield failed)" if partial else "",
        )
        return StrategyRunResult(
            strategy_id=strategy.id,
            status=RunOutcome.PARTIAL if partial else RunOutcome.SUCCESS,
            trade=ticket.trade_number,
            tx_signature=outcome.swap_signature,
            input_amount=strategy.amount_per_trade,
            output_amount=outcome.output_amount,
            warning=(
                "Swap succeeded but re-shielding failed. Tokens in session wallet."
                if partial
                else None
            ),
            stranded=outcome.stranded if partial else None,
        )

    async def _settle_failure(self, ticket: ClaimTicket, outcome: PipelineOutcome) -> StrategyRunResult:
        strategy = ticket.strategy
        error = outcome.error or "Unknown error"

        await self._record(
            ticket,
            ExecutionStatus.FAILED,
            error_message=error,
            extra={
                "withdraw_tx_signature": outcome.withdraw_signature,
                **self._stranded_fields(outcome),
            },
        )
        # back to active so the same trade is retried on the next due pass
        await self._release(ticket, {"status": StrategyStatus.ACTIVE.value})

        return StrategyRunResult(
            strategy_id=strategy.id,
            status=RunOutcome.ERROR,
            trade=ticket.trade_number,
            input_amount=strategy.amount_per_trade,
            error=error,
            stranded=outcome.stranded,
        )

    async def _release(self, ticket: ClaimTicket, fields: Dict[str, Any]) -> None:
        released = await self._strategies.release_claim(ticket.strategy.id, ticket.claim_token, fields)
        if not released:
            self._logger.warning(
                "Claim on strategy %s was lost before settlement; strategy left untouched",
                ticket.strategy.id,
            )

    async def _record(self, ticket: ClaimTicket, status: ExecutionStatus, **fields: Any) -> None:
        recorded = await self._executions.update_result(
            ticket.execution_id, ticket.claim_token, status, **fields
        )
        if not recorded:
            self._logger.warning(
                "Execution %s of strategy %s was taken over by another claim; result not recorded",
                ticket.execution_id,
                ticket.strategy.id,
            )
