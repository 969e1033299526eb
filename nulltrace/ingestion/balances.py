"""nulltrace/ingestion/balances.py

Public, private and merged balance views for one wallet.

Amounts are reported in raw units with the asset decimals alongside, so
callers format them as they see fit. Private balances require a signer that
can sign raw messages: the ownership signature is produced once and cached
until clear_signature_cache() is called.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from nulltrace.errors import AssetNotFound, InvalidArgument
from nulltrace.execution.fees import to_ui_amount
from nulltrace.execution.signer import Signer
from nulltrace.ingestion.ledger import LedgerClient
from nulltrace.ingestion.mint_resolver import MintResolver
from nulltrace.ingestion.types import NATIVE_DECIMALS, NATIVE_MINT, TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID, Asset

logger = logging.getLogger(__name__)

OWNERSHIP_MESSAGE = b"Reveal Private Balances"


@dataclass
class TokenBalance:
    """Balance of one asset split into public and private parts."""
    mint: str
    decimals: int
    public: int = 0
    private: int = 0

    @property
    def total(self) -> int:
        return self.public + self.private

    @property
    def ui_total(self) -> str:
        return to_ui_amount(self.total, self.decimals)

    def to_dict(self) -> Dict[str, object]:
        return {
            "mint": self.mint,
            "decimals": self.decimals,
            "public": self.public,
            "private": self.private,
            "publicAmount": to_ui_amount(self.public, self.decimals),
            "privateAmount": to_ui_amount(self.private, self.decimals),
            "amount": self.ui_total,
        }


class BalanceReader:
    """Reads balances for the signer's wallet."""

    def __init__(self, ledger: LedgerClient, signer: Signer, resolver: MintResolver):
        self._ledger = ledger
        self._signer = signer
        self._resolver = resolver
        self._ownership_signature: Optional[bytes] = None

    @property
    def owner(self) -> str:
        return self._signer.address

    async def get_public_balances(self) -> List[TokenBalance]:
        """Native lamports plus non-zero holdings under both token programs."""
        lamports, standard, extended = await asyncio.gather(
            self._ledger.get_balance(self.owner),
            self._ledger.get_token_holdings(self.owner, TOKEN_PROGRAM_ID),
            self._ledger.get_token_holdings(self.owner, TOKEN_2022_PROGRAM_ID),
        )
        balances: Dict[str, TokenBalance] = {}
        if lamports > 0:
            balances[NATIVE_MINT] = TokenBalance(NATIVE_MINT, NATIVE_DECIMALS, public=lamports)

        for holding in standard + extended:
            if holding.amount == 0:
                continue
            entry = balances.get(holding.mint)
            if entry is None:
                entry = balances[holding.mint] = TokenBalance(holding.mint, holding.decimals)
            entry.public += holding.amount

        logger.debug(f"[balances] {len(balances)} public balances for {self.owner}")
        return list(balances.values())

    async def _ensure_ownership_signature(self) -> bytes:
        if not self._signer.can_sign_messages:
            raise InvalidArgument("Signer must support message signing to read private balances")
        if self._ownership_signature is None:
            self._ownership_signature = await self._signer.sign_message(OWNERSHIP_MESSAGE)
        return self._ownership_signature

    async def get_private_balances(self) -> List[TokenBalance]:
        """Compressed native balance plus compressed token records summed per mint."""
        await self._ensure_ownership_signature()
        lamports, records = await asyncio.gather(
            self._ledger.get_compressed_balance(self.owner),
            self._ledger.get_compressed_token_records(self.owner),
        )

        totals: Dict[str, int] = {}
        for record in records:
            if record.mint is None:
                continue
            totals[record.mint] = totals.get(record.mint, 0) + (record.token_amount or 0)

        mints = [mint for mint, amount in totals.items() if amount > 0]
        assets = await asyncio.gather(*(self._resolve_or_skip(mint) for mint in mints))

        balances: List[TokenBalance] = []
        if lamports > 0:
            balances.append(TokenBalance(NATIVE_MINT, NATIVE_DECIMALS, private=lamports))
        for asset in assets:
            if asset is not None:
                balances.append(TokenBalance(asset.mint, asset.decimals, private=totals[asset.mint]))
        return balances

    async def _resolve_or_skip(self, mint: str) -> Optional[Asset]:
        try:
            return await self._resolver.resolve(mint)
        except AssetNotFound as e:
            logger.warning(f"[balances] Skipping compressed records of unresolvable mint: {e}")
            return None

    async def get_balances(self) -> List[TokenBalance]:
        """Public and private balances merged per asset, public assets first."""
        public, private = await asyncio.gather(self.get_public_balances(), self.get_private_balances())
        merged: Dict[str, TokenBalance] = {b.mint: b for b in public}
        for balance in private:
            entry = merged.get(balance.mint)
            if entry is None:
                merged[balance.mint] = balance
            else:
                entry.private += balance.private
        return list(merged.values())

    def clear_signature_cache(self) -> None:
        self._ownership_signature = None
