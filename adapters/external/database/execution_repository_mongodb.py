from datetime import datetime
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from core.common.utils import stamp, utc_now
from core.domain.entities.execution_entity import ExecutionEntity
from core.domain.enums.keeper_enums import ExecutionStatus
from core.repositories.execution_repository import ExecutionRepository

from .mongodb_client import to_mongo_id

# campos de resultado zerados quando um trade é re-tentado
_RESULT_FIELDS = (
    "output_amount",
    "tx_signature",
    "error_message",
    "withdraw_tx_signature",
    "deposit_tx_signature",
    "stranded_mint",
    "stranded_amount",
)


class ExecutionRepositoryMongoDB(ExecutionRepository):
    """
    Mongo implementation for execution records (PENDING -> SUCCESS/FAILED).

    One document per (strategy_id, trade_number); a retried trade is upserted
    over the failed attempt instead of inserting a duplicate.
    """

    COLLECTION = "executions"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[self.COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [("strategy_id", 1), ("trade_number", 1)],
            unique=True,
            name="ux_strategy_trade_number",
        )
        await self._col.create_index(
            [("status", 1), ("executed_at", -1)],
            name="ix_status_executed_at",
        )

    async def create_pending(
        self,
        strategy_id: str,
        trade_number: int,
        input_amount: float,
        claim_token: str,
        now: datetime,
    ) -> str:
        now_ms, now_iso = stamp(now)
        pending = ExecutionEntity(
            strategy_id=strategy_id,
            trade_number=int(trade_number),
            input_amount=float(input_amount),
            status=ExecutionStatus.PENDING,
            executed_at=now,
            claim_token=claim_token,
            updated_at=now_ms,
            updated_at_iso=now_iso,
        )
        doc = await self._col.find_one_and_update(
            {"strategy_id": pending.strategy_id, "trade_number": pending.trade_number},
            {
                # chave natural fica no filtro; o upsert copia de lá
                "$set": pending.model_dump(exclude_none=True, exclude={"id", "strategy_id", "trade_number"}),
                "$unset": {f: "" for f in _RESULT_FIELDS},
                "$setOnInsert": {
                    "created_at": now_ms,
                    "created_at_iso": now_iso,
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
            projection={"_id": 1},
        )
        return str(doc["_id"])

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
        now_ms, now_iso = stamp(utc_now())
        fields: Dict[str, Any] = {
            "status": ExecutionStatus(status).value,
            "updated_at": now_ms,
            "updated_at_iso": now_iso,
        }
        if output_amount is not None:
            fields["output_amount"] = float(output_amount)
        if tx_signature:
            fields["tx_signature"] = tx_signature
        if error_message:
            fields["error_message"] = error_message
        for k, v in (extra or {}).items():
            if v is not None:
                fields[k] = v

        result = await self._col.update_one(
            {"_id": to_mongo_id(execution_id), "claim_token": claim_token},
            {"$set": fields},
        )
        return result.matched_count == 1
