# core/domain/entities/pipeline_outcome.py
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ..enums.keeper_enums import PipelinePhase, PipelineResult

RESHIELD_FAILED_NOTE = "Re-shielding failed - tokens in session wallet"


class StrandedFunds(BaseModel):
    """Tokens left unshielded in the session wallet by a failed run."""

    mint: str
    amount: float

    model_config = ConfigDict(frozen=True)


class PipelineOutcome(BaseModel):
    """
    What the trade pipeline reports to settlement.

    - SUCCESS: withdraw, swap and deposit all went through.
    - PARTIAL: swap confirmed but the deposit exhausted its retries;
      `advisory` explains where the output tokens are.
    - FAILED: a phase before the deposit failed; nothing was swapped.
    """

    result: PipelineResult
    output_amount: Optional[float] = None
    swap_signature: Optional[str] = None
    withdraw_signature: Optional[str] = None
    deposit_signature: Optional[str] = None

    failed_phase: Optional[PipelinePhase] = None
    error: Optional[str] = None
    advisory: Optional[str] = None
    stranded: Optional[StrandedFunds] = None

    model_config = ConfigDict(use_enum_values=True)

    @property
    def advances_trade(self) -> bool:
        return self.result in (PipelineResult.SUCCESS, PipelineResult.PARTIAL)
