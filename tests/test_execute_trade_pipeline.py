import asyncio

from core.domain.assets import SOL_MINT, USDC_MINT, USDT_MINT
from core.domain.entities.pipeline_outcome import RESHIELD_FAILED_NOTE
from core.domain.enums.keeper_enums import PipelinePhase, PipelineResult, TxConfirmationState
from core.domain.errors import UpstreamServiceError
from core.services.session_signer_service import SessionSigner
from core.usecases.execute_trade_pipeline_use_case import PipelineConfig
from fakes import (
    FakeChainClient,
    FakePrivacyPool,
    FakeSwapClient,
    KeeperHarness,
    make_strategy,
)


def run(h: KeeperHarness, strategy):
    return asyncio.run(h.pipeline_uc.run(strategy))


def test_full_success_records_all_three_signatures():
    h = KeeperHarness(swap=FakeSwapClient(out_amount=66_000_000))
    strategy = make_strategy(input_mint=USDC_MINT, output_mint=SOL_MINT, amount_per_trade=10.0)

    outcome = run(h, strategy)

    assert outcome.result == PipelineResult.SUCCESS
    assert outcome.withdraw_signature == "withdraw-sig-1"
    assert outcome.swap_signature == "swap-sig-1"
    assert outcome.deposit_signature == "deposit-sig-1"
    assert outcome.output_amount == 0.066
    assert outcome.stranded is None

    session = SessionSigner.from_credential(strategy.execution_credential).public_key
    assert h.pool.withdrawals[0]["base_units"] == 10_000_000
    assert h.pool.withdrawals[0]["recipient"] == session
    assert h.pool.withdrawals[0]["asset"].pool_route == "usdc"
    assert h.pool.deposits[0]["base_units"] == 66_000_000
    assert h.pool.deposits[0]["asset"].pool_route == "sol"
    assert h.swap.signers == [session]
    assert h.credentials == [strategy.execution_credential]


def test_swap_uses_slippage_and_submit_options():
    h = KeeperHarness(config=PipelineConfig(slippage_bps=100, swap_send_max_retries=5))

    run(h, make_strategy())

    assert h.swap.quotes[0]["slippageBps"] == 100
    assert h.swap.quotes[0]["inAmount"] == "10000000"
    assert h.chain.submit_opts == [{"skip_preflight": True, "max_retries": 5}]


def test_spl_output_goes_through_mint_route():
    h = KeeperHarness()

    run(h, make_strategy(input_mint=SOL_MINT, output_mint=USDT_MINT, amount_per_trade=0.05))

    assert h.pool.withdrawals[0]["base_units"] == 50_000_000
    assert h.pool.deposits[0]["asset"].pool_amount_payload(1) == {"mint_address": USDT_MINT, "base_units": 1}


def test_invalid_credential_fails_before_any_remote_call():
    h = KeeperHarness()

    outcome = run(h, make_strategy(execution_credential="%%%"))

    assert outcome.result == PipelineResult.FAILED
    assert outcome.failed_phase == PipelinePhase.PRECONDITION
    assert outcome.error.startswith("Invalid session keypair")
    assert h.pool.withdrawals == []
    assert h.credentials == []


def test_amount_below_one_base_unit_is_a_precondition_failure():
    h = KeeperHarness()

    outcome = run(h, make_strategy(amount_per_trade=0.0000001))

    assert outcome.result == PipelineResult.FAILED
    assert outcome.failed_phase == PipelinePhase.PRECONDITION
    assert h.pool.withdrawals == []


def test_withdraw_request_failure():
    pool = FakePrivacyPool(withdraw_error=UpstreamServiceError("Privacy pool", "insufficient shielded balance", 400))
    h = KeeperHarness(pool=pool)

    outcome = run(h, make_strategy())

    assert outcome.result == PipelineResult.FAILED
    assert outcome.failed_phase == PipelinePhase.WITHDRAW
    assert outcome.error.startswith("Privacy pool withdrawal failed: ")
    assert "insufficient shielded balance" in outcome.error
    assert outcome.stranded is None
    assert h.swap.quotes == []


def test_withdraw_rejected_on_chain():
    chain = FakeChainClient()
    chain.script("withdraw-sig-1", TxConfirmationState.ERRORED, error="custom program error")
    h = KeeperHarness(chain=chain)

    outcome = run(h, make_strategy())

    assert outcome.failed_phase == PipelinePhase.WITHDRAW
    assert outcome.withdraw_signature is None
    assert outcome.stranded is None


def test_low_fee_reserve_stops_before_swap_and_reports_stranded_input():
    h = KeeperHarness(chain=FakeChainClient(balance=1_000_000))
    strategy = make_strategy(amount_per_trade=10.0)

    outcome = run(h, strategy)

    assert outcome.result == PipelineResult.FAILED
    assert outcome.failed_phase == PipelinePhase.PRECONDITION
    assert outcome.error.startswith("Insufficient SOL for transaction fees")
    assert outcome.withdraw_signature == "withdraw-sig-1"
    assert outcome.stranded.mint == USDC_MINT
    assert outcome.stranded.amount == 10.0
    assert h.swap.quotes == []


def test_swap_rejected_on_chain_is_hard_failure():
    chain = FakeChainClient()
    chain.script("swap-sig-1", TxConfirmationState.UNKNOWN, TxConfirmationState.ERRORED, error="SlippageToleranceExceeded")
    h = KeeperHarness(chain=chain)

    outcome = run(h, make_strategy())

    assert outcome.result == PipelineResult.FAILED
    assert outcome.failed_phase == PipelinePhase.SWAP
    assert outcome.error == "Swap failed: Transaction failed: SlippageToleranceExceeded"
    assert outcome.swap_signature is None
    assert outcome.stranded.mint == USDC_MINT
    assert h.pool.deposits == []


def test_swap_confirmation_timeout():
    chain = FakeChainClient()
    chain.script("swap-sig-1", TxConfirmationState.UNKNOWN)
    h = KeeperHarness(chain=chain, config=PipelineConfig(swap_confirm_attempts=3))

    outcome = run(h, make_strategy())

    assert outcome.failed_phase == PipelinePhase.SWAP
    assert "timeout" in outcome.error
    assert chain.status_calls.count("swap-sig-1") == 3


def test_quote_failure_is_swap_failure():
    h = KeeperHarness(swap=FakeSwapClient(quote_error=UpstreamServiceError("Jupiter", "no route", 400)))

    outcome = run(h, make_strategy())

    assert outcome.failed_phase == PipelinePhase.SWAP
    assert outcome.error == "Swap failed: Jupiter error (HTTP 400): no route"


def test_deposit_recovers_within_retry_budget():
    h = KeeperHarness(pool=FakePrivacyPool(deposit_failures=2))

    outcome = run(h, make_strategy())

    assert outcome.result == PipelineResult.SUCCESS
    assert h.pool.deposit_attempts == 3


def test_deposit_exhausted_is_partial_with_stranded_output():
    h = KeeperHarness(pool=FakePrivacyPool(deposit_failures=3), swap=FakeSwapClient(out_amount=50_000_000))

    outcome = run(h, make_strategy(output_mint=SOL_MINT))

    assert outcome.result == PipelineResult.PARTIAL
    assert outcome.advances_trade
    assert outcome.failed_phase == PipelinePhase.DEPOSIT
    assert outcome.advisory == RESHIELD_FAILED_NOTE
    assert outcome.swap_signature == "swap-sig-1"
    assert outcome.deposit_signature is None
    assert outcome.stranded.mint == SOL_MINT
    assert outcome.stranded.amount == 0.05
    assert h.pool.deposit_attempts == 3
