import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple

from pydantic import BaseModel, Field

from adapters.external.jupiter.jupiter_http_client import JupiterHttpClient
from adapters.external.privacy.privacy_pool_http_client import PrivacyPoolHttpClient
from adapters.external.solana.solana_rpc_client import SolanaRpcClient
from config.settings import settings
from core.domain.assets import AssetDescriptor, AssetRegistry
from core.domain.entities.pipeline_outcome import (
    RESHIELD_FAILED_NOTE,
    PipelineOutcome,
    StrandedFunds,
)
from core.domain.entities.strategy_entity import StrategyEntity
from core.domain.enums.keeper_enums import PipelinePhase, PipelineResult
from core.domain.errors import InsufficientFeeReserveError, PreconditionError

from ..services.backoff_retry_service import retry_with_linear_backoff
from ..services.confirmation_poller_service import ConfirmationPoller
from ..services.session_signer_service import SessionSigner

PrivacyClientFactory = Callable[[str], PrivacyPoolHttpClient]

_PHASE_PREFIX = {
    PipelinePhase.WITHDRAW: "Privacy pool withdrawal failed",
    PipelinePhase.SWAP: "Swap failed",
}


class PipelineConfig(BaseModel):
    slippage_bps: int = Field(100, ge=0, le=10_000)
    min_fee_reserve_lamports: int = Field(5_000_000, ge=0)

    withdraw_confirm_attempts: int = Field(30, ge=1)
    withdraw_confirm_interval_sec: float = Field(1.0, ge=0.0)

    swap_confirm_attempts: int = Field(90, ge=1)
    swap_confirm_interval_sec: float = Field(0.5, ge=0.0)
    swap_send_max_retries: int = Field(5, ge=0)

    deposit_max_attempts: int = Field(3, ge=1)
    deposit_base_delay_sec: float = Field(3.0, ge=0.0)

    @classmethod
    def from_settings(cls) -> "PipelineConfig":
        return cls(
            slippage_bps=settings.SWAP_SLIPPAGE_BPS,
            min_fee_reserve_lamports=settings.MIN_FEE_RESERVE_LAMPORTS,
            withdraw_confirm_attempts=settings.WITHDRAW_CONFIRM_ATTEMPTS,
            withdraw_confirm_interval_sec=settings.WITHDRAW_CONFIRM_INTERVAL_SEC,
            swap_confirm_attempts=settings.SWAP_CONFIRM_ATTEMPTS,
            swap_confirm_interval_sec=settings.SWAP_CONFIRM_INTERVAL_SEC,
            swap_send_max_retries=settings.SWAP_SEND_MAX_RETRIES,
            deposit_max_attempts=settings.DEPOSIT_MAX_ATTEMPTS,
            deposit_base_delay_sec=settings.DEPOSIT_BASE_DELAY_SEC,
        )


class ExecuteTradePipelineUseCase:
    """
    Runs one trade of a claimed strategy: WITHDRAW -> SWAP -> DEPOSIT.

    Rules:
      - Phases run strictly in order; a failed phase stops the run.
      - WITHDRAW and SWAP wait for on-chain confirmation (polling).
      - Failure before the swap confirms -> FAILED (hard failure); if the
        withdraw had already confirmed, the input tokens are reported as
        stranded in the session wallet.
      - DEPOSIT is retried with linear backoff (stale blockhash after the
        first two phases is the usual cause); exhausting it -> PARTIAL,
        since the swap itself went through.
      - Never raises: every error becomes a PipelineOutcome.
    """

    def __init__(
        self,
        chain_client: SolanaRpcClient,
        swap_client: JupiterHttpClient,
        privacy_client_factory: PrivacyClientFactory,
        poller: ConfirmationPoller,
        asset_registry: Optional[AssetRegistry] = None,
        config: Optional[PipelineConfig] = None,
        retry_sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self._chain = chain_client
        self._swap = swap_client
        self._privacy_factory = privacy_client_factory
        self._poller = poller
        self._assets = asset_registry or AssetRegistry()
        self._cfg = config or PipelineConfig()
        self._retry_sleep = retry_sleep_fn
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def run(self, strategy: StrategyEntity) -> PipelineOutcome:
        sid = strategy.id
        phase = PipelinePhase.PRECONDITION
        withdraw_sig: Optional[str] = None
        stranded: Optional[StrandedFunds] = None

        try:
            signer = SessionSigner.from_credential(strategy.execution_credential or "")
            input_asset = self._assets.resolve(strategy.input_mint)
            output_asset = self._assets.resolve(strategy.output_mint)
            input_units = input_asset.to_base_units(strategy.amount_per_trade)
            if input_units <= 0:
                raise PreconditionError(
                    f"amount_per_trade {strategy.amount_per_trade} is below one base unit of {input_asset.symbol}"
                )
            pool = self._privacy_factory(strategy.execution_credential)

            self._logger.info(
                "Strategy %s trade %s: session wallet %s, %s %s -> %s",
                sid,
                strategy.next_trade_number,
                signer.public_key,
                strategy.amount_per_trade,
                input_asset.symbol,
                output_asset.symbol,
            )

            phase = PipelinePhase.WITHDRAW
            withdraw_sig = await self._withdraw(pool, input_asset, input_units, signer.public_key)
            stranded = StrandedFunds(mint=input_asset.mint, amount=strategy.amount_per_trade)

            phase = PipelinePhase.PRECONDITION
            await self._check_fee_reserve(signer.public_key)

            phase = PipelinePhase.SWAP
            output_units, swap_sig = await self._swap_tokens(
                signer, input_asset, output_asset, input_units
            )
        except Exception as exc:
            return self._hard_failure(sid, phase, exc, withdraw_sig, stranded)

        output_amount = output_asset.from_base_units(output_units)

        phase = PipelinePhase.DEPOSIT
        try:
            deposit_sig = await self._deposit(pool, output_asset, output_units)
        except Exception as exc:
            self._logger.error(
                "Strategy %s: swap %s succeeded but re-shielding failed: %s. "
                "Output tokens remain in session wallet.",
                sid,
                swap_sig,
                exc,
            )
            return PipelineOutcome(
                result=PipelineResult.PARTIAL,
                output_amount=output_amount,
                swap_signature=swap_sig,
                withdraw_signature=withdraw_sig,
                failed_phase=phase,
                error=str(exc),
                advisory=RESHIELD_FAILED_NOTE,
                stranded=StrandedFunds(mint=output_asset.mint, amount=output_amount),
            )

        return PipelineOutcome(
            result=PipelineResult.SUCCESS,
            output_amount=output_amount,
            swap_signature=swap_sig,
            withdraw_signature=withdraw_sig,
            deposit_signature=deposit_sig,
        )

    async def _withdraw(
        self,
        pool: PrivacyPoolHttpClient,
        asset: AssetDescriptor,
        base_units: int,
        recipient: str,
    ) -> str:
        self._logger.info("Withdrawing %s %s base units from privacy pool", base_units, asset.symbol)
        sig = await pool.withdraw(asset, base_units, recipient)
        self._logger.info("Withdrawal tx %s; waiting for confirmation...", sig)
        await self._poller.wait_for_confirmation(
            sig,
            max_attempts=self._cfg.withdraw_confirm_attempts,
            interval_sec=self._cfg.withdraw_confirm_interval_sec,
        )
        return sig

    async def _check_fee_reserve(self, address: str) -> None:
        balance = await self._chain.get_balance(address)
        self._logger.info("Session wallet SOL balance: %s SOL", balance / 1e9)
        if balance < self._cfg.min_fee_reserve_lamports:
            raise InsufficientFeeReserveError(balance, self._cfg.min_fee_reserve_lamports)

    async def _swap_tokens(
        self,
        signer: SessionSigner,
        input_asset: AssetDescriptor,
        output_asset: AssetDescriptor,
        input_units: int,
    ) -> Tuple[int, str]:
        quote = await self._swap.get_quote(
            input_asset.mint,
            output_asset.mint,
            input_units,
            slippage_bps=self._cfg.slippage_bps,
        )
        # exact fill is not queried afterwards; the quote's expected output is recorded
        output_units = int(quote["outAmount"])
        self._logger.info("Quote received: %s -> %s", input_units, output_units)

        unsigned_tx = await self._swap.get_swap_transaction(quote, signer.public_key)
        signed_tx = signer.sign_transaction(unsigned_tx)

        # quote/tx already simulated by the aggregator
        sig = await self._chain.submit_transaction(
            signed_tx,
            skip_preflight=True,
            max_retries=self._cfg.swap_send_max_retries,
        )
        self._logger.info("Swap tx sent: %s", sig)
        await self._poller.wait_for_confirmation(
            sig,
            max_attempts=self._cfg.swap_confirm_attempts,
            interval_sec=self._cfg.swap_confirm_interval_sec,
        )
        return output_units, sig

    async def _deposit(
        self,
        pool: PrivacyPoolHttpClient,
        asset: AssetDescriptor,
        base_units: int,
    ) -> str:
        self._logger.info("Depositing %s %s base units to privacy pool", base_units, asset.symbol)
        sig = await retry_with_linear_backoff(
            lambda: pool.deposit(asset, base_units),
            max_attempts=self._cfg.deposit_max_attempts,
            base_delay_sec=self._cfg.deposit_base_delay_sec,
            description="Privacy pool deposit",
            sleep_fn=self._retry_sleep,
            logger=self._logger,
        )
        self._logger.info("Deposit tx: %s", sig)
        return sig

    def _hard_failure(
        self,
        strategy_id: Optional[str],
        phase: PipelinePhase,
        exc: Exception,
        withdraw_sig: Optional[str],
        stranded: Optional[StrandedFunds],
    ) -> PipelineOutcome:
        prefix = _PHASE_PREFIX.get(phase)
        message = f"{prefix}: {exc}" if prefix else str(exc)
        self._logger.error("Strategy %s failed in %s phase: %s", strategy_id, phase.value, message)
        if stranded is not None:
            self._logger.warning(
                "Strategy %s: %s of %s left unshielded in session wallet",
                strategy_id,
                stranded.amount,
                stranded.mint,
            )
        return PipelineOutcome(
            result=PipelineResult.FAILED,
            withdraw_signature=withdraw_sig,
            failed_phase=phase,
            error=message,
            stranded=stranded,
        )
