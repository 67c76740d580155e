from datetime import datetime
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from core.common.utils import stamp, utc_now
from core.domain.entities.strategy_entity import StrategyEntity
from core.domain.enums.keeper_enums import StrategyStatus
from core.repositories.strategy_repository import StrategyRepository

from .mongodb_client import to_mongo_id


class StrategyRepositoryMongoDB(StrategyRepository):
    """
    Mongo implementation for DCA strategies.

    The claim is a single find_one_and_update whose filter carries the expected
    status, so two keepers racing on the same document can never both match it.
    The claimed document comes back in the same round trip.
    """

    COLLECTION = "strategies"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._col = db[self.COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [("status", 1), ("next_execution_at", 1)], name="ix_status_next_execution"
        )
        await self._col.create_index(
            [("status", 1), ("claimed_at", 1)], name="ix_status_claimed_at"
        )

    @staticmethod
    def _claimable_filter(now: datetime, stale_before: Optional[datetime]) -> Dict[str, Any]:
        # still due: a pass holding an old candidate list must not re-run a settled trade
        due = {"status": StrategyStatus.ACTIVE.value, "next_execution_at": {"$lte": now}}
        if stale_before is None:
            return due
        return {
            "$or": [
                due,
                {
                    "status": StrategyStatus.EXECUTING.value,
                    "claimed_at": {"$lt": stale_before},
                },
            ]
        }

    async def find_due(
        self,
        now: datetime,
        stale_before: Optional[datetime] = None,
    ) -> List[StrategyEntity]:
        query = self._claimable_filter(now, stale_before)
        cursor = self._col.find(query, sort=[("next_execution_at", 1)])
        docs = await cursor.to_list(length=None)
        return [StrategyEntity.from_mongo(d) for d in docs if d]

    async def try_claim(
        self,
        strategy_id: str,
        claim_token: str,
        now: datetime,
        stale_before: Optional[datetime] = None,
    ) -> Optional[StrategyEntity]:
        now_ms, now_iso = stamp(now)
        query = {"_id": to_mongo_id(strategy_id), **self._claimable_filter(now, stale_before)}
        doc = await self._col.find_one_and_update(
            query,
            {
                "$set": {
                    "status": StrategyStatus.EXECUTING.value,
                    "claim_token": claim_token,
                    "claimed_at": now,
                    "updated_at": now_ms,
                    "updated_at_iso": now_iso,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        return StrategyEntity.from_mongo(doc)

    async def release_claim(
        self,
        strategy_id: str,
        claim_token: str,
        fields: Dict[str, Any],
    ) -> bool:
        now_ms, now_iso = stamp(utc_now())
        result = await self._col.update_one(
            {
                "_id": to_mongo_id(strategy_id),
                "status": StrategyStatus.EXECUTING.value,
                "claim_token": claim_token,
            },
            {
                "$set": {**fields, "updated_at": now_ms, "updated_at_iso": now_iso},
                "$unset": {"claim_token": "", "claimed_at": ""},
            },
        )
        return result.modified_count == 1
