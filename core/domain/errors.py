from typing import Any, Optional


class KeeperError(Exception):
    """Base class for every failure the trade pipeline knows how to classify."""


class PreconditionError(KeeperError):
    """A requirement for running the trade is not met (bad credential, no fee reserve)."""


class InsufficientFeeReserveError(PreconditionError):
    def __init__(self, balance_lamports: int, required_lamports: int):
        self.balance_lamports = balance_lamports
        self.required_lamports = required_lamports
        super().__init__(
            "Insufficient SOL for transaction fees. Session wallet has "
            f"{balance_lamports / 1e9} SOL, needs at least {required_lamports / 1e9} SOL"
        )


class ConfirmationTimeoutError(KeeperError):
    def __init__(self, signature: str, attempts: int):
        self.signature = signature
        self.attempts = attempts
        super().__init__(f"Transaction confirmation timeout after {attempts} polls: {signature}")


class OnChainRejectionError(KeeperError):
    """The transaction landed but the chain reports it errored."""

    def __init__(self, signature: str, payload: Any):
        self.signature = signature
        self.payload = payload
        super().__init__(f"Transaction failed: {payload}")


class UpstreamServiceError(KeeperError):
    """A quote, swap-build, pool or RPC request did not return a usable answer."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None):
        self.service = service
        self.status_code = status_code
        detail = f"{service} error"
        if status_code is not None:
            detail += f" (HTTP {status_code})"
        super().__init__(f"{detail}: {message}")
