import logging
from typing import Any, Dict, Optional

import httpx

from core.domain.assets import AssetDescriptor
from core.domain.errors import UpstreamServiceError


class PrivacyPoolHttpClient:
    """
    Async HTTP client for the privacy-pool bridge.

    The bridge hosts the pool SDK (commitments, proofs, relayer) and acts on
    behalf of the session wallet whose secret key is sent with each request.
    One instance per strategy run.

    All URLs are:
      {base_url}/api/pool/{asset.pool_route}/{withdraw|deposit}

    The asset descriptor decides the route and the amount payload, e.g.
      sol  -> {"lamports": n}
      usdc -> {"base_units": n}
      spl  -> {"mint_address": "...", "base_units": n}
    """

    SERVICE = "Privacy pool"

    def __init__(
        self,
        base_url: str,
        session_credential: str,
        timeout_sec: float = 180.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not session_credential:
            raise ValueError("session_credential is required")
        self._base_url = base_url.rstrip("/")
        self._credential = session_credential
        self._timeout = timeout_sec
        self._transport = transport
        self._logger = logging.getLogger(self.__class__.__name__)

    def _build_headers(self) -> dict:
        return {"X-Session-Keypair": self._credential}

    async def _post(self, op: str, asset: AssetDescriptor, payload: Dict[str, Any]) -> str:
        url = f"{self._base_url}/api/pool/{asset.pool_route}/{op}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.post(url, json=payload, headers=self._build_headers())
        except httpx.HTTPError as exc:
            raise UpstreamServiceError(self.SERVICE, f"{op} request failed: {exc}") from exc

        if r.status_code != 200:
            self._logger.warning("%s non-200 %s: %s %s", op, url, r.status_code, r.text)
            raise UpstreamServiceError(
                self.SERVICE, f"{op} {asset.symbol} failed: {r.text}", r.status_code
            )

        data = r.json()
        tx = data.get("tx") if isinstance(data, dict) else None
        if not tx:
            raise UpstreamServiceError(self.SERVICE, f"{op} response without tx signature")
        return str(tx)

    async def withdraw(self, asset: AssetDescriptor, base_units: int, recipient_address: str) -> str:
        """
        Unshield `base_units` of `asset` to `recipient_address`.
        Returns the withdraw transaction signature.
        """
        if base_units <= 0:
            raise ValueError("Withdrawal amount must be greater than 0")
        payload = {**asset.pool_amount_payload(base_units), "recipient_address": recipient_address}
        return await self._post("withdraw", asset, payload)

    async def deposit(self, asset: AssetDescriptor, base_units: int) -> str:
        """
        Shield `base_units` of `asset` from the session wallet.
        Returns the deposit transaction signature.
        """
        if base_units <= 0:
            raise ValueError("Deposit amount must be greater than 0")
        return await self._post("deposit", asset, asset.pool_amount_payload(base_units))
