import asyncio
import logging
from typing import Awaitable, Callable, Optional

from adapters.external.solana.solana_rpc_client import SolanaRpcClient
from core.domain.entities.transaction_status import TransactionStatus
from core.domain.enums.keeper_enums import TxConfirmationState
from core.domain.errors import ConfirmationTimeoutError, OnChainRejectionError


class ConfirmationPoller:
    """
    Polls the chain for a signature until it is confirmed/finalized.

    Polling (instead of websocket subscriptions) keeps the keeper usable from
    short-lived processes. Only the status is inspected, never the contents.
    """

    def __init__(
        self,
        chain_client: SolanaRpcClient,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self._chain = chain_client
        self._sleep = sleep_fn
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def wait_for_confirmation(
        self,
        signature: str,
        max_attempts: int = 30,
        interval_sec: float = 1.0,
    ) -> TransactionStatus:
        """
        :raises OnChainRejectionError: as soon as the chain reports the tx errored.
        :raises ConfirmationTimeoutError: after `max_attempts` polls without a final status.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        for attempt in range(1, max_attempts + 1):
            status = await self._chain.get_transaction_status(signature)

            if status.is_final:
                self._logger.info(
                    "Transaction %s %s after %s poll(s)", signature, status.state.value, attempt
                )
                return status

            if status.state == TxConfirmationState.ERRORED:
                raise OnChainRejectionError(signature, status.error)

            if attempt < max_attempts:
                await self._sleep(interval_sec)

        raise ConfirmationTimeoutError(signature, max_attempts)
