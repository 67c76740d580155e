from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.domain.entities.strategy_entity import StrategyEntity


class StrategyRepository(ABC):
    """
    Repository interface for DCA strategies as seen by the keeper.

    The keeper never caches strategies between passes; every decision is taken
    from what this repository returns, and `try_claim` is the only primitive
    that guards against concurrent execution.
    """

    @abstractmethod
    async def ensure_indexes(self) -> None:
        """Indexes for the due-strategy lookup."""
        raise NotImplementedError

    @abstractmethod
    async def find_due(
        self,
        now: datetime,
        stale_before: Optional[datetime] = None,
    ) -> List[StrategyEntity]:
        """
        Return ACTIVE strategies with next_execution_at <= now.

        If `stale_before` is given, also return EXECUTING strategies whose
        claimed_at is older than it (claims left behind by a crashed pass).
        """
        raise NotImplementedError

    @abstractmethod
    async def try_claim(
        self,
        strategy_id: str,
        claim_token: str,
        now: datetime,
        stale_before: Optional[datetime] = None,
    ) -> Optional[StrategyEntity]:
        """
        Atomically set status=EXECUTING (plus claim_token/claimed_at) only if
        the stored status is ACTIVE with next_execution_at <= now, or EXECUTING
        with claimed_at < stale_before.

        Returns:
            The strategy as stored right after the claim, or None if another
            caller holds it. Callers must work from this document, not from
            the candidate they passed in.
        """
        raise NotImplementedError

    @abstractmethod
    async def release_claim(
        self,
        strategy_id: str,
        claim_token: str,
        fields: Dict[str, Any],
    ) -> bool:
        """
        Write `fields` and clear the claim, only while `claim_token` still owns it.

        Returns:
            False if the claim was lost in the meantime (nothing written).
        """
        raise NotImplementedError
