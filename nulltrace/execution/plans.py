"""nulltrace/execution/plans.py

Instruction plans per asset kind.

The shape of every instruction differs between native SOL and token mints.
`plan_for(asset)` picks the variant once per operation so the orchestrators
never branch on the asset kind themselves. Both token programs share one
variant; the program id travels on the Asset.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence, Set, Tuple, Type

from solders.instruction import Instruction

from nulltrace.execution.programs import CompressionProgram
from nulltrace.ingestion.ledger import LedgerClient
from nulltrace.ingestion.types import Asset, ProgramKind, StateTree, ValidityProof, ValueRecord

logger = logging.getLogger(__name__)

# Lamports left untouched when compressing public SOL (fees, rent)
NATIVE_FEE_RESERVE_LAMPORTS = 100_000


class AccountCache:
    """Remembers accounts already seen on-chain.

    Only positive results are cached: an account that is missing now may be
    created by a bundle this client sends.
    """

    def __init__(self) -> None:
        self._known: Set[str] = set()

    async def exists(self, ledger: LedgerClient, address: str) -> bool:
        if address in self._known:
            return True
        found = await ledger.account_exists(address)
        if found:
            self._known.add(address)
        return found

    def clear(self) -> None:
        self._known.clear()


class AssetPlan(ABC):
    """Builds the instructions of one asset kind for one payer.

    Attributes:
        asset: Resolved asset.
        payer: Wallet paying fees and owning the records.
    """

    def __init__(
        self,
        asset: Asset,
        *,
        payer: str,
        ledger: LedgerClient,
        program: CompressionProgram,
        accounts: AccountCache,
        reserve_lamports: int = NATIVE_FEE_RESERVE_LAMPORTS,
    ):
        self.asset = asset
        self.payer = payer
        self.ledger = ledger
        self.program = program
        self.accounts = accounts
        self.reserve_lamports = reserve_lamports

    @abstractmethod
    async def compress(self, outputs: Sequence[Tuple[str, int]], tree: StateTree) -> List[Instruction]:
        """Move public funds of the payer into compressed outputs.

        Zero-amount outputs are dropped.
        """
        ...

    @abstractmethod
    async def spendable_public(self) -> int:
        """Public balance available to cover a compressed deficit."""
        ...

    @abstractmethod
    async def reveal_destination(self) -> Tuple[str, List[Instruction]]:
        """Public destination for decompressed funds plus setup instructions."""
        ...

    @abstractmethod
    async def decompress(
        self, records: Sequence[ValueRecord], to: str, amount: int, proof: ValidityProof
    ) -> Instruction:
        ...

    @abstractmethod
    async def transfer(
        self, records: Sequence[ValueRecord], to: str, amount: int, proof: ValidityProof
    ) -> Instruction:
        ...


class NativePlan(AssetPlan):
    """Lamport records handled by the light system program."""

    async def compress(self, outputs: Sequence[Tuple[str, int]], tree: StateTree) -> List[Instruction]:
        ixs = []
        for to, lamports in outputs:
            if lamports <= 0:
                continue
            ixs.append(await self.program.compress_native(payer=self.payer, to=to, lamports=lamports, tree=tree))
        return ixs

    async def spendable_public(self) -> int:
        balance = await self.ledger.get_balance(self.payer)
        return max(0, balance - self.reserve_lamports)

    async def reveal_destination(self) -> Tuple[str, List[Instruction]]:
        return self.payer, []

    async def decompress(
        self, records: Sequence[ValueRecord], to: str, amount: int, proof: ValidityProof
    ) -> Instruction:
        return await self.program.decompress_native(
            payer=self.payer, records=records, to=to, lamports=amount, proof=proof
        )

    async def transfer(
        self, records: Sequence[ValueRecord], to: str, amount: int, proof: ValidityProof
    ) -> Instruction:
        return await self.program.transfer_native(
            payer=self.payer, records=records, to=to, lamports=amount, proof=proof
        )


class TokenPlan(AssetPlan):
    """Token records handled by the compressed token program."""

    @property
    def holding_account(self) -> str:
        return self.program.holding_account_address(self.payer, self.asset)

    async def _pool_setup(self) -> Tuple[str, List[Instruction]]:
        pool = self.program.token_pool_address(self.asset)
        if await self.accounts.exists(self.ledger, pool):
            return pool, []
        logger.info(f"[plan] Token pool for {self.asset.mint} missing, adding create instruction")
        return pool, [await self.program.create_token_pool(payer=self.payer, asset=self.asset)]

    async def compress(self, outputs: Sequence[Tuple[str, int]], tree: StateTree) -> List[Instruction]:
        kept = [(to, amount) for to, amount in outputs if amount > 0]
        if not kept:
            return []
        pool, ixs = await self._pool_setup()
        ixs.append(
            await self.program.compress_token(
                payer=self.payer,
                owner=self.payer,
                source=self.holding_account,
                outputs=kept,
                asset=self.asset,
                tree=tree,
                pool=pool,
            )
        )
        return ixs

    async def spendable_public(self) -> int:
        holdings = [
            h for h in await self.ledger.get_token_holdings(self.payer, self.asset.token_program)
            if h.mint == self.asset.mint
        ]
        if not holdings:
            return 0
        source = self.holding_account
        for holding in holdings:
            if holding.address == source:
                return holding.amount
        return holdings[0].amount

    async def reveal_destination(self) -> Tuple[str, List[Instruction]]:
        destination = self.holding_account
        if await self.accounts.exists(self.ledger, destination):
            return destination, []
        create = self.program.create_holding_account(
            payer=self.payer, address=destination, owner=self.payer, asset=self.asset
        )
        return destination, [create]

    async def decompress(
        self, records: Sequence[ValueRecord], to: str, amount: int, proof: ValidityProof
    ) -> Instruction:
        return await self.program.decompress_token(
            payer=self.payer, records=records, to=to, amount=amount, proof=proof, asset=self.asset
        )

    async def transfer(
        self, records: Sequence[ValueRecord], to: str, amount: int, proof: ValidityProof
    ) -> Instruction:
        return await self.program.transfer_token(
            payer=self.payer, records=records, to=to, amount=amount, proof=proof, asset=self.asset
        )


_PLANS: Dict[ProgramKind, Type[AssetPlan]] = {
    ProgramKind.NATIVE: NativePlan,
    ProgramKind.TOKEN: TokenPlan,
    ProgramKind.TOKEN_2022: TokenPlan,
}


def plan_for(
    asset: Asset,
    *,
    payer: str,
    ledger: LedgerClient,
    program: CompressionProgram,
    accounts: AccountCache,
    reserve_lamports: int = NATIVE_FEE_RESERVE_LAMPORTS,
) -> AssetPlan:
    """Return the plan variant for `asset`."""
    return _PLANS[asset.kind](
        asset,
        payer=payer,
        ledger=ledger,
        program=program,
        accounts=accounts,
        reserve_lamports=reserve_lamports,
    )
