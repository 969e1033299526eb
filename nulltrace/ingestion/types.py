"""nulltrace/ingestion/types.py

Read-side data types returned by the ledger client.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.pubkey import Pubkey


NATIVE_MINT = "So11111111111111111111111111111111111111112"
NATIVE_DECIMALS = 9
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"


class ProgramKind(Enum):
    """Owning program category of an asset."""
    NATIVE = "native"
    TOKEN = "token"
    TOKEN_2022 = "token_2022"


@dataclass(frozen=True)
class Asset:
    """A resolved mint.

    Attributes:
        mint: Mint address (the native mint for SOL).
        decimals: Decimal precision.
        kind: Program category.
        token_program: Owning token program id.
    """
    mint: str
    decimals: int
    kind: ProgramKind
    token_program: str

    @property
    def is_native(self) -> bool:
        return self.kind is ProgramKind.NATIVE


@dataclass(frozen=True)
class MintAccount:
    """Parsed mint account as returned by an account lookup."""
    address: str
    owner: str
    decimals: int


@dataclass(frozen=True)
class ValueRecord:
    """A compressed account owned by one address.

    Native records carry lamports only; token records also carry the parsed
    token amount and mint.
    """
    hash: str
    tree: str
    queue: str
    lamports: int = 0
    token_amount: Optional[int] = None
    mint: Optional[str] = None
    raw: Any = field(default=None, compare=False, repr=False)

    def value(self, native: bool) -> int:
        if native:
            return self.lamports
        return self.token_amount or 0


@dataclass(frozen=True)
class ValidityProof:
    """Opaque freshness proof for a set of records."""
    compressed_proof: Any
    root_indices: List[int]


@dataclass(frozen=True)
class StateTree:
    """Output state tree that new compressed accounts are appended to."""
    tree: str
    queue: str
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class TokenHolding:
    """A public token account balance."""
    address: str
    mint: str
    amount: int
    decimals: int
    program_id: str


@dataclass(frozen=True)
class LookupTable:
    """Address lookup table account shared by every bundle."""
    address: str
    addresses: List[str]
    raw: Any = field(default=None, compare=False, repr=False)

    def to_account(self) -> AddressLookupTableAccount:
        return AddressLookupTableAccount(
            Pubkey.from_string(self.address),
            [Pubkey.from_string(a) for a in self.addresses],
        )
