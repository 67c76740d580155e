import base64
import logging
from typing import Any, Dict, Optional

import httpx

from core.domain.errors import UpstreamServiceError


class JupiterHttpClient:
    """
    Thin async HTTP wrapper around the Jupiter swap API (v1).

    URLs are:
      {base_url}/quote
      {base_url}/swap

    This client does *no* routing or pricing logic; it asks Jupiter for a quote
    and for the prebuilt (unsigned) transaction that executes it.
    """

    SERVICE = "Jupiter"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout_sec: float = 30.0,
        priority_fee_max_lamports: int = 1_000_000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key or ""
        self._timeout = timeout_sec
        self._priority_fee_max_lamports = int(priority_fee_max_lamports)
        self._transport = transport
        self._logger = logging.getLogger(self.__class__.__name__)

    def _build_headers(self) -> dict:
        headers: dict = {"Content-Type": "application/json"}
        if self._api_key:
            headers["x-api-key"] = self._api_key
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 50,
    ) -> Dict[str, Any]:
        """
        GET /quote?inputMint=..&outputMint=..&amount=..&slippageBps=..

        `amount` is in base units of the input mint. The returned quote is passed
        back untouched to get_swap_transaction(); `outAmount` is a base-unit string.
        """
        url = f"{self._base_url}/quote"
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(int(amount)),
            "slippageBps": str(int(slippage_bps)),
        }
        try:
            async with self._client() as client:
                r = await client.get(url, params=params, headers=self._build_headers())
        except httpx.HTTPError as exc:
            raise UpstreamServiceError(self.SERVICE, f"quote request failed: {exc}") from exc

        if r.status_code != 200:
            self._logger.warning("quote non-200 %s: %s %s", url, r.status_code, r.text)
            raise UpstreamServiceError(self.SERVICE, f"quote failed: {r.text}", r.status_code)

        quote = r.json()
        if not isinstance(quote, dict) or "outAmount" not in quote:
            raise UpstreamServiceError(self.SERVICE, "quote response without outAmount")
        return quote

    async def get_swap_transaction(
        self,
        quote: Dict[str, Any],
        user_public_key: str,
        wrap_and_unwrap_sol: bool = True,
        dynamic_compute_unit_limit: bool = True,
    ) -> bytes:
        """
        POST /swap
        body:
        {
          "quoteResponse": {...},
          "userPublicKey": "...",
          "wrapAndUnwrapSol": true,
          "dynamicComputeUnitLimit": true,
          "prioritizationFeeLamports": {"priorityLevelWithMaxLamports": {...}}
        }

        Returns the serialized, unsigned VersionedTransaction.
        """
        url = f"{self._base_url}/swap"
        payload = {
            "quoteResponse": quote,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": wrap_and_unwrap_sol,
            "dynamicComputeUnitLimit": dynamic_compute_unit_limit,
            "prioritizationFeeLamports": {
                "priorityLevelWithMaxLamports": {
                    "maxLamports": self._priority_fee_max_lamports,
                    "priorityLevel": "high",
                },
            },
        }
        try:
            async with self._client() as client:
                r = await client.post(url, json=payload, headers=self._build_headers())
        except httpx.HTTPError as exc:
            raise UpstreamServiceError(self.SERVICE, f"swap request failed: {exc}") from exc

        if r.status_code != 200:
            self._logger.warning("swap non-200 %s: %s %s", url, r.status_code, r.text)
            raise UpstreamServiceError(self.SERVICE, f"swap build failed: {r.text}", r.status_code)

        data = r.json()
        if data.get("simulationError"):
            raise UpstreamServiceError(
                self.SERVICE, f"swap simulation failed: {data['simulationError']}"
            )
        swap_tx = data.get("swapTransaction")
        if not swap_tx:
            raise UpstreamServiceError(self.SERVICE, "swap response without swapTransaction")
        try:
            return base64.b64decode(swap_tx)
        except (ValueError, TypeError) as exc:
            raise UpstreamServiceError(self.SERVICE, f"invalid swapTransaction: {exc}") from exc
