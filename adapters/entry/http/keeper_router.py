import logging

from fastapi import APIRouter, Depends, HTTPException

from core.domain.entities.keeper_report import KeeperReport
from core.usecases.run_due_executions_use_case import RunDueExecutionsUseCase

from .deps import get_keeper_use_case, verify_keeper_token

router = APIRouter(prefix="/keeper", tags=["keeper"], dependencies=[Depends(verify_keeper_token)])


@router.api_route("/execute", methods=["GET", "POST"], response_model=KeeperReport)
async def execute_due_strategies(
    uc: RunDueExecutionsUseCase = Depends(get_keeper_use_case),
) -> KeeperReport:
    """
    Run every due strategy now (called by cron or manually).

    Safe to call concurrently: each strategy is claimed atomically, so
    overlapping calls never execute the same trade twice.
    """
    logger = logging.getLogger("KeeperExecuteTrigger")
    try:
        report = await uc.execute()
    except Exception:
        # só chega aqui se a busca de estratégias falhar; erros por estratégia vão no report
        logger.exception("Keeper execution error")
        raise HTTPException(status_code=500, detail="Keeper execution failed")

    logger.info("Keeper pass processed %s strategies", report.processed)
    return report

