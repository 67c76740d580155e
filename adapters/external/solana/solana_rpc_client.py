import logging
from typing import Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.models import TxOpts
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus

from core.domain.entities.transaction_status import TransactionStatus
from core.domain.enums.keeper_enums import TxConfirmationState
from core.domain.errors import UpstreamServiceError


class SolanaRpcClient:
    """
    Thin async wrapper around solana-py's AsyncClient.

    Only the three calls the keeper needs: signature status, SOL balance and
    raw transaction submission. Every RPC failure surfaces as UpstreamServiceError.
    """

    SERVICE = "Solana RPC"

    def __init__(self, rpc_url: str, client: Optional[AsyncClient] = None):
        self._rpc_url = rpc_url
        self._client = client or AsyncClient(rpc_url, commitment=Confirmed)
        self._logger = logging.getLogger(self.__class__.__name__)

    async def aclose(self) -> None:
        try:
            await self._client.close()
        except Exception as exc:  # noqa: BLE001
            self._logger.warning("Error closing SolanaRpcClient: %s", exc)

    async def get_transaction_status(self, signature: str) -> TransactionStatus:
        try:
            resp = await self._client.get_signature_statuses([Signature.from_string(signature)])
        except Exception as exc:
            raise UpstreamServiceError(self.SERVICE, f"getSignatureStatuses failed: {exc}") from exc

        status = resp.value[0] if resp.value else None
        if status is None:
            return TransactionStatus(state=TxConfirmationState.UNKNOWN)
        if status.err is not None:
            return TransactionStatus(state=TxConfirmationState.ERRORED, error=str(status.err))
        if status.confirmation_status == TransactionConfirmationStatus.Finalized:
            return TransactionStatus(state=TxConfirmationState.FINALIZED)
        if status.confirmation_status == TransactionConfirmationStatus.Confirmed:
            return TransactionStatus(state=TxConfirmationState.CONFIRMED)
        # processed (or no level yet) is not terminal
        return TransactionStatus(state=TxConfirmationState.UNKNOWN)

    async def get_balance(self, address: str) -> int:
        """SOL balance in lamports."""
        try:
            resp = await self._client.get_balance(Pubkey.from_string(address), commitment=Confirmed)
        except Exception as exc:
            raise UpstreamServiceError(self.SERVICE, f"getBalance failed: {exc}") from exc
        return int(resp.value)

    async def submit_transaction(
        self,
        raw_tx: bytes,
        skip_preflight: bool = True,
        max_retries: int = 5,
    ) -> str:
        opts = TxOpts(skip_preflight=skip_preflight, max_retries=max_retries)
        try:
            resp = await self._client.send_raw_transaction(bytes(raw_tx), opts=opts)
        except Exception as exc:
            raise UpstreamServiceError(self.SERVICE, f"sendTransaction failed: {exc}") from exc
        return str(resp.value)
