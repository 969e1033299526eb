"""nulltrace/ingestion/ledger.py

Interface to the chain and the compression indexer.

Design goals:
- The orchestrator never touches an SDK object model; everything it needs
  from the network goes through this interface.
- Implementations raise domain errors (nulltrace.errors) on failure.
- Read-only methods may be awaited concurrently.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from nulltrace.ingestion.types import (
    LookupTable,
    MintAccount,
    StateTree,
    TokenHolding,
    ValidityProof,
    ValueRecord,
)


class LedgerClient(ABC):
    """Abstract ledger client.

    Implementations should:
    - query public and compressed balances
    - enumerate compressed records and fetch validity proofs
    - broadcast raw transactions and wait for confirmation
    """

    @abstractmethod
    async def get_balance(self, owner: str) -> int:
        """Public native balance in lamports."""
        ...

    @abstractmethod
    async def get_token_holdings(self, owner: str, program_id: str) -> List[TokenHolding]:
        """Public token accounts of `owner` under one token program."""
        ...

    @abstractmethod
    async def get_mint_account(self, mint: str) -> Optional[MintAccount]:
        """Parsed mint account, or None if the account does not exist."""
        ...

    @abstractmethod
    async def account_exists(self, address: str) -> bool:
        ...

    @abstractmethod
    async def get_compressed_records(self, owner: str) -> List[ValueRecord]:
        """Compressed native (lamport) records of `owner`."""
        ...

    @abstractmethod
    async def get_compressed_token_records(self, owner: str, mint: Optional[str] = None) -> List[ValueRecord]:
        """Compressed token records of `owner`, for one mint or for all mints."""
        ...

    @abstractmethod
    async def get_compressed_balance(self, owner: str) -> int:
        """Total compressed native balance in lamports."""
        ...

    @abstractmethod
    async def get_validity_proof(self, records: Sequence[ValueRecord]) -> ValidityProof:
        """Freshness proof covering exactly `records`."""
        ...

    @abstractmethod
    async def get_state_trees(self) -> List[StateTree]:
        """Active output state trees."""
        ...

    @abstractmethod
    async def get_latest_anchor(self) -> str:
        """Recent blockhash used as the transaction lifetime anchor."""
        ...

    @abstractmethod
    async def get_lookup_table(self, address: str) -> LookupTable:
        ...

    @abstractmethod
    async def send_raw_transaction(self, payload: bytes) -> str:
        """Broadcast a signed transaction and return its signature."""
        ...

    @abstractmethod
    async def confirm_transaction(self, signature: str) -> None:
        """Block until `signature` is confirmed.

        Raises:
            ConfirmationFailure: If the transaction failed or timed out.
        """
        ...
