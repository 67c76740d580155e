# core/domain/entities/transaction_status.py
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from ..enums.keeper_enums import TxConfirmationState


class TransactionStatus(BaseModel):
    state: TxConfirmationState
    error: Optional[Any] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_final(self) -> bool:
        return self.state in (TxConfirmationState.CONFIRMED, TxConfirmationState.FINALIZED)
