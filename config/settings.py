"""
Application configuration for api-keeper.

Centralizes environment variables using python-dotenv.
"""

import os

from dotenv import load_dotenv

# Load variables from .env (if present)
load_dotenv()


class Settings:
    """
    Configuration settings for the api-keeper service.
    """

    # MongoDB
    MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    MONGODB_DB_NAME: str = os.getenv("MONGODB_DB_NAME", "keeper_db")
    MONGODB_MAX_POOL_SIZE: int = int(os.getenv("MONGODB_MAX_POOL_SIZE", "50"))
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = int(
        os.getenv("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "5000")
    )
    MONGODB_CONNECT_TIMEOUT_MS: int = int(
        os.getenv("MONGODB_CONNECT_TIMEOUT_MS", "3000")
    )
    MONGODB_SOCKET_TIMEOUT_MS: int = int(
        os.getenv("MONGODB_SOCKET_TIMEOUT_MS", "10000")
    )

    # Solana RPC
    SOLANA_RPC_URL: str = os.getenv("SOLANA_RPC_URL", "https://api.devnet.solana.com")

    # Jupiter aggregator
    JUPITER_API_BASE_URL: str = os.getenv(
        "JUPITER_API_BASE_URL", "https://api.jup.ag/swap/v1"
    )
    JUPITER_API_KEY: str = os.getenv("JUPITER_API_KEY", "")

    # Privacy pool bridge (wraps the pool SDK behind HTTP)
    PRIVACY_POOL_BASE_URL: str = os.getenv(
        "PRIVACY_POOL_BASE_URL", "http://127.0.0.1:8100"
    )

    # Keeper trigger
    # Se vazio, o endpoint /keeper/execute não exige Authorization
    KEEPER_SECRET: str = os.getenv("KEEPER_SECRET", os.getenv("CRON_SECRET", ""))
    KEEPER_SCHEDULER_ENABLED: bool = (
        os.getenv("KEEPER_SCHEDULER_ENABLED", "false").lower() == "true"
    )
    KEEPER_INTERVAL_SEC: float = float(os.getenv("KEEPER_INTERVAL_SEC", "900"))
    KEEPER_INITIAL_DELAY_SEC: float = float(os.getenv("KEEPER_INITIAL_DELAY_SEC", "10"))
    # Strategies stuck in "executing" longer than this are reclaimable (0 disables)
    KEEPER_STALE_CLAIM_SEC: float = float(os.getenv("KEEPER_STALE_CLAIM_SEC", "3600"))

    # Trade pipeline
    SWAP_SLIPPAGE_BPS: int = int(os.getenv("SWAP_SLIPPAGE_BPS", "100"))
    MIN_FEE_RESERVE_LAMPORTS: int = int(os.getenv("MIN_FEE_RESERVE_LAMPORTS", "5000000"))
    PRIORITY_FEE_MAX_LAMPORTS: int = int(os.getenv("PRIORITY_FEE_MAX_LAMPORTS", "1000000"))

    WITHDRAW_CONFIRM_ATTEMPTS: int = int(os.getenv("WITHDRAW_CONFIRM_ATTEMPTS", "30"))
    WITHDRAW_CONFIRM_INTERVAL_SEC: float = float(
        os.getenv("WITHDRAW_CONFIRM_INTERVAL_SEC", "1.0")
    )
    SWAP_CONFIRM_ATTEMPTS: int = int(os.getenv("SWAP_CONFIRM_ATTEMPTS", "90"))
    SWAP_CONFIRM_INTERVAL_SEC: float = float(os.getenv("SWAP_CONFIRM_INTERVAL_SEC", "0.5"))
    SWAP_SEND_MAX_RETRIES: int = int(os.getenv("SWAP_SEND_MAX_RETRIES", "5"))

    DEPOSIT_MAX_ATTEMPTS: int = int(os.getenv("DEPOSIT_MAX_ATTEMPTS", "3"))
    DEPOSIT_BASE_DELAY_SEC: float = float(os.getenv("DEPOSIT_BASE_DELAY_SEC", "3.0"))

    # Log / app
    APP_NAME: str = os.getenv("APP_NAME", "api-keeper")


settings = Settings()
