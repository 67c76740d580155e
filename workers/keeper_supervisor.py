import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from adapters.external.database.execution_repository_mongodb import ExecutionRepositoryMongoDB
from adapters.external.database.mongodb_client import get_mongo_client
from adapters.external.database.strategy_repository_mongodb import StrategyRepositoryMongoDB
from adapters.external.jupiter.jupiter_http_client import JupiterHttpClient
from adapters.external.privacy.privacy_pool_http_client import PrivacyPoolHttpClient
from adapters.external.solana.solana_rpc_client import SolanaRpcClient
from config.settings import settings
from core.domain.assets import AssetRegistry
from core.services.confirmation_poller_service import ConfirmationPoller
from core.usecases.claim_strategy_use_case import ClaimStrategyUseCase
from core.usecases.execute_trade_pipeline_use_case import (
    ExecuteTradePipelineUseCase,
    PipelineConfig,
)
from core.usecases.run_due_executions_use_case import RunDueExecutionsUseCase
from core.usecases.settle_execution_use_case import SettleExecutionUseCase

from .keeper_scheduler import KeeperScheduler


class KeeperSupervisor:
    """
    High-level supervisor for the api-keeper process.

    Responsibilities:
    - Connect to Mongo, ensure indexes.
    - Own the long-lived clients (Solana RPC, Jupiter).
    - Wire repositories, services and use cases into a RunDueExecutionsUseCase.
    - Optionally run the in-process KeeperScheduler.
    """

    def __init__(self, mongo_client: Optional[AsyncIOMotorClient] = None):
        self._logger = logging.getLogger(self.__class__.__name__)
        self._mongo_client = mongo_client
        self._db: Optional[AsyncIOMotorDatabase] = None

        self._chain: Optional[SolanaRpcClient] = None
        self._swap: Optional[JupiterHttpClient] = None
        self._assets = AssetRegistry()
        self._scheduler: Optional[KeeperScheduler] = None

    async def start(self) -> None:
        """
        Create connections, ensure indexes, and start the scheduler if enabled.
        """
        if self._mongo_client is None:
            self._mongo_client = get_mongo_client()
        self._db = self._mongo_client[settings.MONGODB_DB_NAME]

        await self._db.command("ping")
        self._logger.info("MongoDB ping ok.")

        await self.strategy_repository().ensure_indexes()
        await self.execution_repository().ensure_indexes()

        self._chain = SolanaRpcClient(settings.SOLANA_RPC_URL)
        self._swap = JupiterHttpClient(
            base_url=settings.JUPITER_API_BASE_URL,
            api_key=settings.JUPITER_API_KEY,
            priority_fee_max_lamports=settings.PRIORITY_FEE_MAX_LAMPORTS,
        )
        if not settings.JUPITER_API_KEY:
            self._logger.warning("JUPITER_API_KEY is not set; quote/swap requests are unauthenticated")

        if settings.KEEPER_SCHEDULER_ENABLED:
            self._scheduler = KeeperScheduler(
                use_case_factory=self.build_use_case,
                interval_sec=settings.KEEPER_INTERVAL_SEC,
                initial_delay_sec=settings.KEEPER_INITIAL_DELAY_SEC,
            )
            self._scheduler.start()

    def strategy_repository(self) -> StrategyRepositoryMongoDB:
        if self._db is None:
            raise RuntimeError("KeeperSupervisor not started.")
        return StrategyRepositoryMongoDB(self._db)

    def execution_repository(self) -> ExecutionRepositoryMongoDB:
        if self._db is None:
            raise RuntimeError("KeeperSupervisor not started.")
        return ExecutionRepositoryMongoDB(self._db)

    def build_use_case(self) -> RunDueExecutionsUseCase:
        """
        Build a keeper pass over the shared clients. Cheap; called per trigger.
        """
        if self._chain is None or self._swap is None:
            raise RuntimeError("KeeperSupervisor not started.")

        strategy_repo = self.strategy_repository()
        execution_repo = self.execution_repository()

        pool_base_url = settings.PRIVACY_POOL_BASE_URL

        def privacy_client_factory(credential: str) -> PrivacyPoolHttpClient:
            return PrivacyPoolHttpClient(pool_base_url, credential)

        pipeline = ExecuteTradePipelineUseCase(
            chain_client=self._chain,
            swap_client=self._swap,
            privacy_client_factory=privacy_client_factory,
            poller=ConfirmationPoller(self._chain),
            asset_registry=self._assets,
            config=PipelineConfig.from_settings(),
        )
        return RunDueExecutionsUseCase(
            strategy_repo=strategy_repo,
            claim_uc=ClaimStrategyUseCase(
                strategy_repo,
                execution_repo,
                stale_claim_sec=settings.KEEPER_STALE_CLAIM_SEC,
            ),
            pipeline_uc=pipeline,
            settle_uc=SettleExecutionUseCase(strategy_repo, execution_repo),
        )

    async def stop(self) -> None:
        """
        Gracefully stop the scheduler and close clients and DB connections.
        """
        if self._scheduler:
            await self._scheduler.stop()
        if self._chain:
            await self._chain.aclose()
        if self._mongo_client:
            self._mongo_client.close()
            self._logger.info("MongoDB client closed.")
