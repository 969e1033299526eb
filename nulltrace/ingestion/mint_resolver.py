"""nulltrace/ingestion/mint_resolver.py

Resolve a mint address to its decimals and program category.
"""

from __future__ import annotations

import logging
from typing import Dict

from nulltrace.errors import AssetNotFound, InvalidArgument
from nulltrace.ingestion.ledger import LedgerClient
from nulltrace.ingestion.types import (
    NATIVE_DECIMALS,
    NATIVE_MINT,
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    Asset,
    ProgramKind,
)

logger = logging.getLogger(__name__)

NATIVE_ASSET = Asset(
    mint=NATIVE_MINT,
    decimals=NATIVE_DECIMALS,
    kind=ProgramKind.NATIVE,
    token_program=TOKEN_PROGRAM_ID,
)

_PROGRAM_KINDS = {
    TOKEN_PROGRAM_ID: ProgramKind.TOKEN,
    TOKEN_2022_PROGRAM_ID: ProgramKind.TOKEN_2022,
}


class MintResolver:
    """Resolves and caches Asset descriptors for one client instance."""

    def __init__(self, ledger: LedgerClient):
        self._ledger = ledger
        self._cache: Dict[str, Asset] = {NATIVE_MINT: NATIVE_ASSET}

    async def resolve(self, mint: str) -> Asset:
        """Return the Asset for `mint`.

        Raises:
            InvalidArgument: If `mint` is empty.
            AssetNotFound: If the account is missing or not a token mint.
        """
        if not mint:
            raise InvalidArgument("mint is required")
        cached = self._cache.get(mint)
        if cached is not None:
            return cached

        account = await self._ledger.get_mint_account(mint)
        if account is None:
            logger.warning(f"[mint] Mint not found: {mint}")
            raise AssetNotFound(mint)

        kind = _PROGRAM_KINDS.get(account.owner)
        if kind is None:
            logger.warning(f"[mint] {mint} is owned by {account.owner}, not a token program")
            raise AssetNotFound(mint, reason="Not a token mint")

        asset = Asset(mint=mint, decimals=account.decimals, kind=kind, token_program=account.owner)
        self._cache[mint] = asset
        return asset

    def clear(self) -> None:
        self._cache = {NATIVE_MINT: NATIVE_ASSET}
