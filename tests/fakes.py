import asyncio
import base64
import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from core.domain.assets import SOL_MINT, USDC_MINT
from core.domain.entities.execution_entity import ExecutionEntity
from core.domain.entities.strategy_entity import StrategyEntity
from core.domain.entities.transaction_status import TransactionStatus
from core.domain.enums.keeper_enums import ExecutionStatus, StrategyStatus, TxConfirmationState
from core.domain.errors import UpstreamServiceError
from core.repositories.execution_repository import ExecutionRepository
from core.repositories.strategy_repository import StrategyRepository
from core.services.confirmation_poller_service import ConfirmationPoller
from core.usecases.claim_strategy_use_case import ClaimStrategyUseCase
from core.usecases.execute_trade_pipeline_use_case import (
    ExecuteTradePipelineUseCase,
    PipelineConfig,
)
from core.usecases.run_due_executions_use_case import RunDueExecutionsUseCase
from core.usecases.settle_execution_use_case import SettleExecutionUseCase

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_credential(keypair: Optional[Keypair] = None) -> str:
    return base64.b64encode(bytes(keypair or Keypair())).decode()


def make_unsigned_tx(payer: Pubkey) -> bytes:
    msg = MessageV0.try_compile(payer, [], [], Hash.default())
    # fee payer slot left with a placeholder signature, as the aggregator returns it
    return bytes(VersionedTransaction.populate(msg, [Signature.default()]))


def make_strategy(**overrides: Any) -> StrategyEntity:
    data: Dict[str, Any] = {
        "id": uuid.uuid4().hex,
        "user_id": "user-1",
        "input_mint": USDC_MINT,
        "output_mint": SOL_MINT,
        "amount_per_trade": 10.0,
        "frequency_hours": 24.0,
        "total_trades": 5,
        "completed_trades": 0,
        "next_execution_at": NOW - timedelta(minutes=1),
        "execution_credential": make_credential(),
        "status": StrategyStatus.ACTIVE.value,
    }
    data.update(overrides)
    return StrategyEntity.model_validate(data)


class InMemoryStrategyRepository(StrategyRepository):
    """
    Dict-backed store. No await between read and write inside try_claim,
    so it is a true compare-and-set under asyncio.
    """

    def __init__(self, strategies: Optional[List[StrategyEntity]] = None):
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.claim_calls = 0
        for s in strategies or []:
            self.add(s)

    def add(self, strategy: StrategyEntity) -> None:
        self.docs[strategy.id] = strategy.model_dump(mode="python")

    def get(self, strategy_id: str) -> StrategyEntity:
        return StrategyEntity.model_validate(copy.deepcopy(self.docs[strategy_id]))

    async def ensure_indexes(self) -> None:
        return None

    @staticmethod
    def _claimable(doc: Dict[str, Any], now: datetime, stale_before: Optional[datetime]) -> bool:
        if doc["status"] == StrategyStatus.ACTIVE.value:
            return doc.get("next_execution_at") is not None and doc["next_execution_at"] <= now
        return (
            stale_before is not None
            and doc["status"] == StrategyStatus.EXECUTING.value
            and doc.get("claimed_at") is not None
            and doc["claimed_at"] < stale_before
        )

    async def find_due(self, now, stale_before=None) -> List[StrategyEntity]:
        # yield so that concurrent passes interleave like real I/O
        await asyncio.sleep(0)
        out = []
        for doc in self.docs.values():
            if self._claimable(doc, now, stale_before):
                out.append(StrategyEntity.model_validate(copy.deepcopy(doc)))
        return out

    async def try_claim(self, strategy_id, claim_token, now, stale_before=None) -> Optional[StrategyEntity]:
        self.claim_calls += 1
        doc = self.docs.get(strategy_id)
        if doc is None or not self._claimable(doc, now, stale_before):
            return None
        doc.update(status=StrategyStatus.EXECUTING.value, claim_token=claim_token, claimed_at=now)
        return StrategyEntity.model_validate(copy.deepcopy(doc))

    async def release_claim(self, strategy_id, claim_token, fields) -> bool:
        doc = self.docs.get(strategy_id)
        if (
            doc is None
            or doc["status"] != StrategyStatus.EXECUTING.value
            or doc.get("claim_token") != claim_token
        ):
            return False
        doc.update(fields)
        doc["claim_token"] = None
        doc["claimed_at"] = None
        return True


class InMemoryExecutionRepository(ExecutionRepository):
    def __init__(self, fail_create: bool = False):
        self.docs: Dict[str, Dict[str, Any]] = {}
        self.fail_create = fail_create

    async def ensure_indexes(self) -> None:
        return None

    async def create_pending(self, strategy_id, trade_number, input_amount, claim_token, now) -> str:
        if self.fail_create:
            raise RuntimeError("insert failed")
        for eid, doc in self.docs.items():
            if doc["strategy_id"] == strategy_id and doc["trade_number"] == trade_number:
                doc.update(
                    input_amount=input_amount,
                    status=ExecutionStatus.PENDING.value,
                    executed_at=now,
                    claim_token=claim_token,
                    output_amount=None,
                    tx_signature=None,
                    error_message=None,
                    stranded_mint=None,
                    stranded_amount=None,
                )
                return eid
        eid = uuid.uuid4().hex
        self.docs[eid] = {
            "id": eid,
            "strategy_id": strategy_id,
            "trade_number": trade_number,
            "input_amount": input_amount,
            "status": ExecutionStatus.PENDING.value,
            "executed_at": now,
            "claim_token": claim_token,
        }
        return eid

    async def update_result(
        self,
        execution_id,
        claim_token,
        status,
        output_amount=None,
        tx_signature=None,
        error_message=None,
        extra=None,
    ) -> bool:
        doc = self.docs.get(execution_id)
        if doc is None or doc.get("claim_token") != claim_token:
            return False
        doc["status"] = ExecutionStatus(status).value
        if output_amount is not None:
            doc["output_amount"] = output_amount
        if tx_signature:
            doc["tx_signature"] = tx_signature
        if error_message:
            doc["error_message"] = error_message
        for k, v in (extra or {}).items():
            if v is not None:
                doc[k] = v
        return True

    def rows_for(self, strategy_id) -> List[ExecutionEntity]:
        """Rows of one strategy, latest trade first."""
        docs = [d for d in self.docs.values() if d["strategy_id"] == strategy_id]
        docs.sort(key=lambda d: d["trade_number"], reverse=True)
        return [ExecutionEntity.model_validate(d) for d in docs]


class FakeChainClient:
    """
    Scripted chain. `statuses[sig]` is a list of states returned one per poll
    (the last one repeats); unknown signatures are confirmed at once.
    """

    def __init__(self, balance: int = 10_000_000):
        self.balance = balance
        self.statuses: Dict[str, List[TransactionStatus]] = {}
        self.status_calls: List[str] = []
        self.submitted: List[bytes] = []
        self.submit_opts: List[Dict[str, Any]] = []
        self.submit_error: Optional[Exception] = None
        self._n = 0

    def script(self, signature: str, *states: TxConfirmationState, error: Any = None) -> None:
        self.statuses[signature] = [
            TransactionStatus(state=s, error=error if s == TxConfirmationState.ERRORED else None)
            for s in states
        ]

    async def get_transaction_status(self, signature: str) -> TransactionStatus:
        self.status_calls.append(signature)
        seq = self.statuses.get(signature)
        if not seq:
            return TransactionStatus(state=TxConfirmationState.CONFIRMED)
        return seq.pop(0) if len(seq) > 1 else seq[0]

    async def get_balance(self, address: str) -> int:
        return self.balance

    async def submit_transaction(self, raw_tx: bytes, skip_preflight: bool = True, max_retries: int = 5) -> str:
        if self.submit_error:
            raise self.submit_error
        self._n += 1
        self.submitted.append(raw_tx)
        self.submit_opts.append({"skip_preflight": skip_preflight, "max_retries": max_retries})
        return f"swap-sig-{self._n}"


class FakeSwapClient:
    def __init__(self, out_amount: int = 50_000_000, quote_error: Optional[Exception] = None):
        self.out_amount = out_amount
        self.quote_error = quote_error
        self.quotes: List[Dict[str, Any]] = []
        self.signers: List[str] = []

    async def get_quote(self, input_mint, output_mint, amount, slippage_bps=50) -> Dict[str, Any]:
        if self.quote_error:
            raise self.quote_error
        q = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "inAmount": str(amount),
            "outAmount": str(self.out_amount),
            "slippageBps": slippage_bps,
        }
        self.quotes.append(q)
        return q

    async def get_swap_transaction(self, quote, user_public_key) -> bytes:
        self.signers.append(user_public_key)
        return make_unsigned_tx(Pubkey.from_string(user_public_key))


class FakePrivacyPool:
    def __init__(self, deposit_failures: int = 0, withdraw_error: Optional[Exception] = None):
        self.deposit_failures = deposit_failures
        self.withdraw_error = withdraw_error
        self.withdrawals: List[Dict[str, Any]] = []
        self.deposits: List[Dict[str, Any]] = []
        self.deposit_attempts = 0

    async def withdraw(self, asset, base_units, recipient_address) -> str:
        if self.withdraw_error:
            raise self.withdraw_error
        self.withdrawals.append({"asset": asset, "base_units": base_units, "recipient": recipient_address})
        return f"withdraw-sig-{len(self.withdrawals)}"

    async def deposit(self, asset, base_units) -> str:
        self.deposit_attempts += 1
        if self.deposit_attempts <= self.deposit_failures:
            raise UpstreamServiceError("Privacy pool", "Blockhash not found")
        self.deposits.append({"asset": asset, "base_units": base_units})
        return f"deposit-sig-{len(self.deposits)}"


async def no_sleep(_seconds: float) -> None:
    return None


class RecordingSleep:
    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class KeeperHarness:
    """Wires the real use cases over the fakes."""

    def __init__(
        self,
        strategies: Optional[List[StrategyEntity]] = None,
        chain: Optional[FakeChainClient] = None,
        swap: Optional[FakeSwapClient] = None,
        pool: Optional[FakePrivacyPool] = None,
        executions: Optional[InMemoryExecutionRepository] = None,
        stale_claim_sec: float = 0.0,
        config: Optional[PipelineConfig] = None,
    ):
        self.strategies = InMemoryStrategyRepository(strategies)
        self.executions = executions or InMemoryExecutionRepository()
        self.chain = chain or FakeChainClient()
        self.swap = swap or FakeSwapClient()
        self.pool = pool or FakePrivacyPool()
        self.credentials: List[str] = []

        def factory(credential: str) -> FakePrivacyPool:
            self.credentials.append(credential)
            return self.pool

        self.claim_uc = ClaimStrategyUseCase(
            self.strategies, self.executions, stale_claim_sec=stale_claim_sec
        )
        self.pipeline_uc = ExecuteTradePipelineUseCase(
            chain_client=self.chain,
            swap_client=self.swap,
            privacy_client_factory=factory,
            poller=ConfirmationPoller(self.chain, sleep_fn=no_sleep),
            config=config or PipelineConfig(),
            retry_sleep_fn=no_sleep,
        )
        self.settle_uc = SettleExecutionUseCase(self.strategies, self.executions)
        self.keeper = RunDueExecutionsUseCase(
            strategy_repo=self.strategies,
            claim_uc=self.claim_uc,
            pipeline_uc=self.pipeline_uc,
            settle_uc=self.settle_uc,
        )

