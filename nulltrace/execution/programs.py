"""nulltrace/execution/programs.py

Instruction builders for the compression programs.

The orchestrator treats compress, decompress and transfer construction as
opaque: it hands in addresses, amounts, records and proofs and gets back
solders Instructions. Everything else a bundle needs is concrete here:
compute-budget instructions, the token pool and associated account
addresses, associated account creation and V0 message compilation.

This module does NOT handle private keys or signing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence, Tuple

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.message import MessageV0
from solders.pubkey import Pubkey

from nulltrace.ingestion.types import Asset, StateTree, ValidityProof, ValueRecord

COMPRESSED_TOKEN_PROGRAM_ID = Pubkey.from_string("cTokenmWW8bLPjZEBAUgYy3zKxQZW6VKi7bqNFEVv3m")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")
SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
POOL_SEED = b"pool"


class MessageCompileError(ValueError):
    """Raised when instructions cannot be compiled into one message."""
    pass


def token_pool_pda(mint: str) -> Pubkey:
    return Pubkey.find_program_address([POOL_SEED, bytes(Pubkey.from_string(mint))], COMPRESSED_TOKEN_PROGRAM_ID)[0]


def associated_token_address(owner: str, mint: str, token_program: str) -> Pubkey:
    seeds = [
        bytes(Pubkey.from_string(owner)),
        bytes(Pubkey.from_string(token_program)),
        bytes(Pubkey.from_string(mint)),
    ]
    return Pubkey.find_program_address(seeds, ASSOCIATED_TOKEN_PROGRAM_ID)[0]


class CompressionProgram(ABC):
    """Builder for compression program instructions.

    Subclasses supply the compress, decompress, transfer and pool-creation
    builders. Every `amount` is in raw units. Token methods receive the
    resolved Asset so implementations can pick the right token program.
    """

    def compute_budget(self, unit_limit: int, unit_price_micro_lamports: int) -> Tuple[Instruction, Instruction]:
        """Return the (unit limit, unit price) instruction pair."""
        return set_compute_unit_limit(unit_limit), set_compute_unit_price(unit_price_micro_lamports)

    def token_pool_address(self, asset: Asset) -> str:
        """Compression pool PDA for the mint."""
        return str(token_pool_pda(asset.mint))

    def holding_account_address(self, owner: str, asset: Asset) -> str:
        """Associated token account of `owner` for the mint."""
        return str(associated_token_address(owner, asset.mint, asset.token_program))

    def create_holding_account(self, *, payer: str, address: str, owner: str, asset: Asset) -> Instruction:
        accounts = [
            AccountMeta(Pubkey.from_string(payer), is_signer=True, is_writable=True),
            AccountMeta(Pubkey.from_string(address), is_signer=False, is_writable=True),
            AccountMeta(Pubkey.from_string(owner), is_signer=False, is_writable=False),
            AccountMeta(Pubkey.from_string(asset.mint), is_signer=False, is_writable=False),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(Pubkey.from_string(asset.token_program), is_signer=False, is_writable=False),
        ]
        return Instruction(ASSOCIATED_TOKEN_PROGRAM_ID, b"", accounts)

    def compile_message(
        self,
        *,
        payer: str,
        instructions: Sequence[Instruction],
        anchor: str,
        lookup_tables: Sequence[AddressLookupTableAccount],
    ) -> MessageV0:
        """Compile a V0 message.

        Raises:
            MessageCompileError: If the instructions cannot share one message.
        """
        payer_key = Pubkey.from_string(payer)
        blockhash = Hash.from_string(anchor)
        try:
            return MessageV0.try_compile(payer_key, list(instructions), list(lookup_tables), blockhash)
        except Exception as e:  # noqa: BLE001
            raise MessageCompileError(str(e)) from e

    @abstractmethod
    async def compress_native(self, *, payer: str, to: str, lamports: int, tree: StateTree) -> Instruction:
        ...

    @abstractmethod
    async def compress_token(
        self,
        *,
        payer: str,
        owner: str,
        source: str,
        outputs: Sequence[Tuple[str, int]],
        asset: Asset,
        tree: StateTree,
        pool: str,
    ) -> Instruction:
        """Move public tokens from `source` into compressed outputs.

        Args:
            outputs: (recipient, amount) pairs, in order.
            pool: Compression pool address for the mint.
        """
        ...

    @abstractmethod
    async def decompress_native(
        self, *, payer: str, records: Sequence[ValueRecord], to: str, lamports: int, proof: ValidityProof
    ) -> Instruction:
        ...

    @abstractmethod
    async def decompress_token(
        self,
        *,
        payer: str,
        records: Sequence[ValueRecord],
        to: str,
        amount: int,
        proof: ValidityProof,
        asset: Asset,
    ) -> Instruction:
        ...

    @abstractmethod
    async def transfer_native(
        self, *, payer: str, records: Sequence[ValueRecord], to: str, lamports: int, proof: ValidityProof
    ) -> Instruction:
        ...

    @abstractmethod
    async def transfer_token(
        self,
        *,
        payer: str,
        records: Sequence[ValueRecord],
        to: str,
        amount: int,
        proof: ValidityProof,
        asset: Asset,
    ) -> Instruction:
        ...

    @abstractmethod
    async def create_token_pool(self, *, payer: str, asset: Asset) -> Instruction:
        ...
