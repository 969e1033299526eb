"""nulltrace/execution/signer.py

Signer capability consumed by the pipeline.

- Signer: abstract wallet (address, batch signing, optional message signing)
- KeypairSigner: local keypair, serializes signed versioned transactions
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

import base58
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from nulltrace.errors import InvalidArgument
from nulltrace.execution.models import SignedBundle, TransactionBundle

SECRET_KEY_LENGTH = 64


class Signer(ABC):
    """Abstract wallet.

    Implementations must sign every bundle in one call so hardware and
    browser wallets prompt only once.
    """

    @property
    @abstractmethod
    def address(self) -> str:
        ...

    @abstractmethod
    async def sign_all(self, bundles: Sequence[TransactionBundle]) -> List[SignedBundle]:
        """Sign `bundles` in order and return their signed payloads."""
        ...

    @property
    def can_sign_messages(self) -> bool:
        return False

    async def sign_message(self, message: bytes) -> bytes:
        raise NotImplementedError(f"{type(self).__name__} cannot sign raw messages")


class KeypairSigner(Signer):
    """Signer backed by a local keypair.

    Only signs transactions where the keypair is the sole required signer.
    """

    def __init__(self, keypair: Keypair):
        self._keypair = keypair
        self._address = str(keypair.pubkey())

    @classmethod
    def from_secret_key(cls, secret_key: bytes) -> "KeypairSigner":
        """Build from a 64-byte secret key (seed || public key)."""
        if len(secret_key) != SECRET_KEY_LENGTH:
            raise InvalidArgument(f"expected a 64-byte secret key, got {len(secret_key)} bytes")
        keypair = Keypair.from_seed(bytes(secret_key[:32]))
        if bytes(keypair.pubkey()) != bytes(secret_key[32:]):
            raise InvalidArgument("secret key does not match its public key half")
        return cls(keypair)

    @classmethod
    def from_base58(cls, private_key: str) -> "KeypairSigner":
        """Build from a base58 private key as exported by browser wallets."""
        if not isinstance(private_key, str) or len(private_key) < 32:
            raise InvalidArgument("expected a base58-encoded private key string")
        try:
            decoded = base58.b58decode(private_key.strip())
        except ValueError as e:
            raise InvalidArgument(f"invalid base58 private key: {e}") from e
        return cls.from_secret_key(decoded)

    @property
    def address(self) -> str:
        return self._address

    @property
    def can_sign_messages(self) -> bool:
        return True

    async def sign_message(self, message: bytes) -> bytes:
        return bytes(self._keypair.sign_message(message))

    def _sign_bundle(self, bundle: TransactionBundle) -> SignedBundle:
        if bundle.payer != self._address:
            raise InvalidArgument(f"bundle payer {bundle.payer} is not this signer ({self._address})")
        needed = bundle.message.header.num_required_signatures
        if needed != 1:
            raise InvalidArgument(f"message requires {needed} signatures, keypair signer provides 1")
        tx = VersionedTransaction(bundle.message, [self._keypair])
        return SignedBundle(bundle=bundle, payload=bytes(tx), signature=str(tx.signatures[0]))

    async def sign_all(self, bundles: Sequence[TransactionBundle]) -> List[SignedBundle]:
        return [self._sign_bundle(b) for b in bundles]
