"""
Typed asset descriptors.

Each descriptor knows its own decimals and how the privacy pool expects it
to be addressed (route + amount payload), so callers never branch on mint
addresses.
"""

import logging
from abc import ABC, abstractmethod
from decimal import ROUND_FLOOR, Decimal
from typing import Any, ClassVar, Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDC_DEVNET_MINT = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
CBBTC_MINT = "cbbtcf3aa214zXHbiAZQwf4122FBYbraNdFqgw4iMij"
ZEC_MINT = "A7bdiYdS5GjqGFtxf17ppRHtDKPkkRqbKtR27dxvQXaS"

DEFAULT_SPL_DECIMALS = 6


class AssetDescriptor(BaseModel, ABC):
    symbol: str
    mint: str
    decimals: int = Field(..., ge=0, le=18)

    # privacy pool route segment: /api/pool/{pool_route}/withdraw
    pool_route: ClassVar[str] = ""

    model_config = ConfigDict(frozen=True)

    def to_base_units(self, amount: float) -> int:
        scaled = Decimal(str(amount)) * (Decimal(10) ** self.decimals)
        return int(scaled.to_integral_value(rounding=ROUND_FLOOR))

    def from_base_units(self, base_units: int) -> float:
        return int(base_units) / (10 ** self.decimals)

    @abstractmethod
    def pool_amount_payload(self, base_units: int) -> Dict[str, Any]:
        """Amount fields of the pool withdraw/deposit body."""


class NativeAsset(AssetDescriptor):
    """SOL; the pool takes lamports."""

    pool_route: ClassVar[str] = "sol"

    def pool_amount_payload(self, base_units: int) -> Dict[str, Any]:
        return {"lamports": int(base_units)}


class UsdcAsset(AssetDescriptor):
    """USDC has a dedicated pool; amounts in base units."""

    pool_route: ClassVar[str] = "usdc"

    def pool_amount_payload(self, base_units: int) -> Dict[str, Any]:
        return {"base_units": int(base_units)}


class SplTokenAsset(AssetDescriptor):
    """Any other SPL token, addressed by mint."""

    pool_route: ClassVar[str] = "spl"

    def pool_amount_payload(self, base_units: int) -> Dict[str, Any]:
        return {"mint_address": self.mint, "base_units": int(base_units)}


DEFAULT_ASSETS = (
    NativeAsset(symbol="SOL", mint=SOL_MINT, decimals=9),
    UsdcAsset(symbol="USDC", mint=USDC_MINT, decimals=6),
    UsdcAsset(symbol="USDC", mint=USDC_DEVNET_MINT, decimals=6),
    SplTokenAsset(symbol="USDT", mint=USDT_MINT, decimals=6),
    SplTokenAsset(symbol="cbBTC", mint=CBBTC_MINT, decimals=8),
    SplTokenAsset(symbol="ZEC", mint=ZEC_MINT, decimals=8),
)


class AssetRegistry:
    """
    Resolves a mint address into its descriptor.
    Unknown mints are treated as generic SPL tokens with 6 decimals.
    """

    def __init__(
        self,
        assets: Iterable[AssetDescriptor] = DEFAULT_ASSETS,
        logger: Optional[logging.Logger] = None,
    ):
        self._by_mint: Dict[str, AssetDescriptor] = {a.mint: a for a in assets}
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    def resolve(self, mint: str) -> AssetDescriptor:
        mint = (mint or "").strip()
        if not mint:
            raise ValueError("mint is required")
        asset = self._by_mint.get(mint)
        if asset is not None:
            return asset
        self._logger.warning(
            "Unknown mint %s; assuming SPL token with %s decimals", mint, DEFAULT_SPL_DECIMALS
        )
        asset = SplTokenAsset(symbol=mint[:6], mint=mint, decimals=DEFAULT_SPL_DECIMALS)
        self._by_mint[mint] = asset
        return asset
