import base64
import binascii

from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from core.domain.errors import PreconditionError


class SessionSigner:
    """
    Signing material of a strategy's session wallet.

    Built from the strategy's execution credential (base64 of the 64-byte
    secret key). Read-only for the whole pipeline run.
    """

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @classmethod
    def from_credential(cls, credential: str) -> "SessionSigner":
        if not credential:
            raise PreconditionError("No session keypair found")
        try:
            secret = base64.b64decode(credential, validate=True)
            keypair = Keypair.from_bytes(secret)
        except (binascii.Error, ValueError, TypeError) as exc:
            raise PreconditionError(f"Invalid session keypair: {exc}") from exc
        return cls(keypair)

    @property
    def public_key(self) -> str:
        return str(self._keypair.pubkey())

    def sign_transaction(self, raw_tx: bytes) -> bytes:
        """Sign a serialized VersionedTransaction; returns the signed bytes."""
        unsigned = VersionedTransaction.from_bytes(bytes(raw_tx))
        signed = VersionedTransaction(unsigned.message, [self._keypair])
        return bytes(signed)
