"""nulltrace/execution/orchestrator.py

Operation orchestrators: nullify, reveal, transfer and swap.

Every operation follows the same pipeline:
    resolve asset -> select records -> batch -> proof + instruction per batch
    -> pack -> sign once -> send and confirm sequentially

HARD RULES:
- Nothing is built when funds are insufficient
- Top-up bundles always precede private-transfer bundles
- Swap top-ups are confirmed before the operator sees the transfer payloads
- No retries; partial progress is reported on the raised exception
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
import random
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

import base58
from solders.instruction import Instruction
from solders.pubkey import Pubkey

from nulltrace.config.schema import NullTraceConfig, validate_rpc_url
from nulltrace.errors import InsufficientBalance, InvalidArgument, NullTraceError, SubmissionRejected
from nulltrace.execution.batcher import batch_records
from nulltrace.execution.fees import split_fee, to_raw_amount
from nulltrace.execution.models import SwapResult, SwapSession, SwapStatus, TransactionBundle
from nulltrace.execution.operator_client import STATUS_COMPLETED, OperatorClient
from nulltrace.execution.packer import pack_transactions
from nulltrace.execution.pipeline import send_and_confirm, sign_send_confirm
from nulltrace.execution.plans import AccountCache, AssetPlan, plan_for
from nulltrace.execution.programs import CompressionProgram
from nulltrace.execution.signer import Signer
from nulltrace.ingestion.balances import BalanceReader, TokenBalance
from nulltrace.ingestion.ledger import LedgerClient
from nulltrace.ingestion.mint_resolver import MintResolver
from nulltrace.ingestion.record_selector import SelectionResult, select_for_amount
from nulltrace.ingestion.rpc_ledger import RpcLedgerClient
from nulltrace.ingestion.types import Asset, LookupTable, StateTree, ValidityProof, ValueRecord

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], Union[None, Awaitable[None]]]
RecordOp = Callable[[Sequence[ValueRecord], str, int, ValidityProof], Awaitable[Instruction]]


def validate_address(value: Any, name: str) -> str:
    """Require a string that parses as a public key."""
    if not value or not isinstance(value, str):
        raise InvalidArgument(f"{name} is required")
    try:
        Pubkey.from_string(value)
    except Exception as e:  # noqa: BLE001
        raise InvalidArgument(f"{name} is not a valid address: {value}") from e
    return value


def new_session_id() -> str:
    return base58.b58encode(os.urandom(32)).decode("ascii")


class NullTrace:
    """
    Compressed-balance client for one wallet.

    Attributes:
        ledger: Chain and indexer access.
        program: Instruction builders and message compiler.
        signer: Wallet signing every bundle.
        operator: Remote swap operator client.
        config: Runtime settings.

    Callers must serialize operations on one instance; the lookup table,
    resolved assets and known accounts are cached per instance.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        program: CompressionProgram,
        signer: Signer,
        *,
        operator: Optional[OperatorClient] = None,
        config: Optional[NullTraceConfig] = None,
        owns_ledger: bool = False,
    ):
        self.config = config or NullTraceConfig()
        self.ledger = ledger
        self.program = program
        self.signer = signer
        self._owns_ledger = owns_ledger
        self._owns_operator = operator is None
        self.operator = operator or OperatorClient(
            base_url=self.config.operator_url,
            shared_secret=self.config.shared_secret,
            timeout_seconds=self.config.operator_timeout_sec,
            auth_step_seconds=self.config.auth_step_sec,
        )
        self.fee_rate = Decimal(str(self.config.fee_rate))
        self.resolver = MintResolver(ledger)
        self.accounts = AccountCache()
        self.balances = BalanceReader(ledger, signer, self.resolver)
        self._lookup_table: Optional[LookupTable] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        """Close the operator and ledger clients this instance created.

        Injected clients are left open for their owner to close.
        """
        if self._owns_operator:
            await self.operator.close()
        if self._owns_ledger and isinstance(self.ledger, RpcLedgerClient):
            await self.ledger.close()

    @property
    def owner(self) -> str:
        return self.signer.address

    @property
    def operator_address(self) -> str:
        return self.config.operator_address

    # -- shared steps -----------------------------------------------------------

    async def _prepare(self, mint: str, amount: Any) -> Tuple[Asset, int]:
        validate_address(mint, "mint")
        asset = await self.resolver.resolve(mint)
        raw = to_raw_amount(amount, asset.decimals)
        if raw <= 0:
            raise InvalidArgument(f"amount {amount} is below the smallest unit of {mint}")
        return asset, raw

    def _plan(self, asset: Asset) -> AssetPlan:
        return plan_for(
            asset,
            payer=self.owner,
            ledger=self.ledger,
            program=self.program,
            accounts=self.accounts,
            reserve_lamports=self.config.native_reserve_lamports,
        )

    async def _get_lookup_table(self) -> LookupTable:
        if self._lookup_table is None:
            self._lookup_table = await self.ledger.get_lookup_table(self.config.lookup_table_address)
            logger.debug(f"[orchestrator] Loaded lookup table with {len(self._lookup_table.addresses)} addresses")
        return self._lookup_table

    async def _pick_tree(self) -> StateTree:
        trees = await self.ledger.get_state_trees()
        if not trees:
            raise NullTraceError("No active state trees available")
        return random.choice(trees)

    async def _pack(self, instructions: Sequence[Instruction]) -> List[TransactionBundle]:
        if not instructions:
            return []
        anchor = await self.ledger.get_latest_anchor()
        lookup_table = await self._get_lookup_table()
        return pack_transactions(
            self.program,
            instructions,
            payer=self.owner,
            anchor=anchor,
            lookup_table=lookup_table,
            max_size=self.config.max_tx_size,
            unit_limit=self.config.compute_unit_limit,
            unit_price=self.config.compute_unit_price,
        )

    async def _per_batch(
        self,
        selection: SelectionResult,
        native: bool,
        to: str,
        amount: int,
        build: RecordOp,
    ) -> List[Instruction]:
        """One instruction per proof batch, spending at most `amount` in total.

        Each batch moves min(remaining, batch sum), so when the selection covers
        `amount` the instruction amounts sum to it exactly.
        """
        instructions: List[Instruction] = []
        remaining = amount
        for batch in batch_records(selection.records):
            batch_sum = sum(r.value(native) for r in batch)
            batch_amount = min(remaining, batch_sum)
            if batch_amount <= 0:
                logger.debug(f"[orchestrator] Skipping empty batch of {len(batch)} records")
                continue
            proof = await self.ledger.get_validity_proof(batch)
            instructions.append(await build(batch, to, batch_amount, proof))
            remaining -= batch_amount
        return instructions

    async def _plan_private_send(
        self,
        asset: Asset,
        raw: int,
        recipient: str,
        top_up_outputs: Callable[[int], List[Tuple[str, int]]],
    ) -> Tuple[List[TransactionBundle], List[TransactionBundle]]:
        """Build top-up and private-transfer bundles moving `raw` to `recipient`.

        Returns:
            (top-up bundles, transfer bundles).
        """
        plan = self._plan(asset)
        selection = await select_for_amount(self.ledger, self.owner, asset, raw)

        top_up_ixs: List[Instruction] = []
        if not selection.covers(raw):
            deficit = selection.shortfall(raw)
            spendable = await plan.spendable_public()
            if spendable < deficit:
                logger.warning(
                    f"[orchestrator] Insufficient {asset.mint}: private={selection.total} "
                    f"public={spendable} required={raw}"
                )
                raise InsufficientBalance(raw, selection.total + spendable)
            tree = await self._pick_tree()
            top_up_ixs = await plan.compress(top_up_outputs(deficit), tree)
            logger.info(f"[orchestrator] Topping up {deficit} of {asset.mint} from public balance")

        transfer_ixs = await self._per_batch(selection, asset.is_native, recipient, raw, plan.transfer)
        top_up = await self._pack(top_up_ixs)
        transfers = await self._pack(transfer_ixs)
        return top_up, transfers

    # -- operations -------------------------------------------------------------

    async def nullify(self, mint: str, amount: Any) -> List[str]:
        """Move public funds into the owner's compressed balance.

        The operator fee is compressed to the operator in the same bundle.

        Returns:
            Confirmed transaction signatures.
        """
        asset, raw = await self._prepare(mint, amount)
        split = split_fee(raw, self.fee_rate)
        tree = await self._pick_tree()

        plan = self._plan(asset)
        outputs = [(self.owner, split.net), (self.operator_address, split.fee)]
        instructions = await plan.compress(outputs, tree)

        logger.info(f"[nullify] {raw} of {asset.mint}: net={split.net} fee={split.fee}")
        bundles = await self._pack(instructions)
        return await sign_send_confirm(self.ledger, self.signer, bundles)

    async def reveal(self, mint: str, amount: Any) -> List[str]:
        """Move compressed funds back to the owner's public balance.

        Raises:
            InsufficientBalance: If the compressed records do not cover `amount`.
        """
        asset, raw = await self._prepare(mint, amount)
        selection = await select_for_amount(self.ledger, self.owner, asset, raw)
        if not selection.covers(raw):
            logger.warning(f"[reveal] Short by {selection.shortfall(raw)} of {asset.mint}")
            raise InsufficientBalance(raw, selection.total)

        plan = self._plan(asset)
        destination, instructions = await plan.reveal_destination()
        instructions += await self._per_batch(selection, asset.is_native, destination, raw, plan.decompress)

        logger.info(f"[reveal] {raw} of {asset.mint} from {len(selection.records)} records")
        bundles = await self._pack(instructions)
        return await sign_send_confirm(self.ledger, self.signer, bundles)

    async def transfer(self, mint: str, amount: Any, recipient: str) -> List[str]:
        """Send compressed funds to `recipient`, topping up from public funds if short.

        The top-up compresses (deficit - fee) straight to the recipient and the
        fee to the operator.
        """
        validate_address(recipient, "recipient")
        asset, raw = await self._prepare(mint, amount)

        def outputs(deficit: int) -> List[Tuple[str, int]]:
            split = split_fee(deficit, self.fee_rate)
            return [(recipient, split.net), (self.operator_address, split.fee)]

        top_up, transfers = await self._plan_private_send(asset, raw, recipient, outputs)
        logger.info(
            f"[transfer] {raw} of {asset.mint} to {recipient}: "
            f"{len(top_up)} top-up + {len(transfers)} transfer bundles"
        )
        return await sign_send_confirm(self.ledger, self.signer, top_up + transfers)

    async def quote_swap(self, input_mint: str, output_mint: str, amount: Any) -> Dict[str, Any]:
        """Ask the operator for a swap quote. No signing involved."""
        validate_address(output_mint, "output_mint")
        asset, raw = await self._prepare(input_mint, amount)
        return await self.operator.quote_swap(asset.mint, output_mint, raw)

    async def swap(
        self,
        from_mint: str,
        to_mint: str,
        amount: Any,
        *,
        on_status_change: Optional[StatusCallback] = None,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        slippage: Optional[float] = None,
    ) -> SwapResult:
        """
        Swap compressed funds through the remote operator.

        Every bundle is signed in one request. Top-up bundles are broadcast and
        confirmed here; transfer bundles are handed to the operator, which
        broadcasts them and executes the swap.

        Args:
            on_status_change: Called with "signing", "processing", then
                "completed" or "pending" (repeatedly while waiting).
            timeout: Seconds to wait for completion (default from config).
            poll_interval: Seconds between progress callbacks.
            slippage: Forwarded to the operator when given.

        Returns:
            SwapResult with status "completed", or "pending" once the timeout
            elapses; a pending swap may still complete on the operator side.

        Raises:
            SubmissionRejected: If the operator refuses the swap (no waiting);
                `confirmed` lists any top-up signatures that already landed.
        """
        validate_address(to_mint, "to_mint")
        asset, raw = await self._prepare(from_mint, amount)
        timeout = self.config.swap_timeout_sec if timeout is None else timeout
        poll_interval = self.config.swap_poll_interval_sec if poll_interval is None else poll_interval

        operator = self.operator_address
        top_up, transfers = await self._plan_private_send(
            asset, raw, operator, lambda deficit: [(operator, deficit)]
        )

        session = SwapSession(
            id=new_session_id(),
            from_mint=asset.mint,
            to_mint=to_mint,
            amount=str(amount),
            amount_value=raw,
            from_decimals=asset.decimals,
            owner=self.owner,
            recipient=operator,
        )
        swap_data = session.to_dict()
        if slippage is not None:
            swap_data["slippage"] = slippage

        await self._advance(session, SwapStatus.SIGNING, on_status_change)
        signed = await self.signer.sign_all(top_up + transfers)
        if len(signed) != len(top_up) + len(transfers):
            raise SubmissionRejected(
                f"Signer returned {len(signed)} transactions for {len(top_up) + len(transfers)} bundles"
            )

        top_up_signatures = await send_and_confirm(self.ledger, signed[:len(top_up)])

        await self._advance(session, SwapStatus.PROCESSING, on_status_change)
        logger.info(f"[swap] Submitting session {session.id}: {raw} {asset.mint} -> {to_mint}")
        try:
            response = await self.operator.process_swap(swap_data, signed[len(top_up):])
        except SubmissionRejected as e:
            e.confirmed = list(top_up_signatures)
            raise

        if response.get("status") == STATUS_COMPLETED:
            await self._advance(session, SwapStatus.COMPLETED, on_status_change)
            return SwapResult(
                status=session.status.value,
                session_id=session.id,
                result=response,
                top_up_signatures=top_up_signatures,
            )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            await asyncio.sleep(poll_interval)
            await self._advance(session, SwapStatus.PENDING, on_status_change)

        if session.status is not SwapStatus.PENDING:
            session.advance(SwapStatus.PENDING)
        logger.info(f"[swap] Session {session.id} still pending after {timeout}s")
        return SwapResult(
            status=session.status.value,
            session_id=session.id,
            result=response,
            top_up_signatures=top_up_signatures,
        )

    async def _advance(
        self, session: SwapSession, status: SwapStatus, callback: Optional[StatusCallback]
    ) -> None:
        session.advance(status)
        if callback is None:
            return
        outcome = callback(status.value)
        if inspect.isawaitable(outcome):
            await outcome

    # -- balances ---------------------------------------------------------------

    async def get_public_balances(self) -> List[TokenBalance]:
        return await self.balances.get_public_balances()

    async def get_private_balances(self) -> List[TokenBalance]:
        return await self.balances.get_private_balances()

    async def get_balances(self) -> List[TokenBalance]:
        return await self.balances.get_balances()

    def clear_signature_cache(self) -> None:
        self.balances.clear_signature_cache()

    def clear_caches(self) -> None:
        """Forget resolved assets, known accounts and the lookup table."""
        self.resolver.clear()
        self.accounts.clear()
        self._lookup_table = None


def create_client(
    config: NullTraceConfig,
    *,
    program: CompressionProgram,
    signer: Signer,
    ledger: Optional[LedgerClient] = None,
    operator: Optional[OperatorClient] = None,
) -> NullTrace:
    """Build a NullTrace client from config.

    Without an explicit ledger, an RpcLedgerClient is created for
    config.rpc_url, which must be a Helius endpoint.
    """
    owns_ledger = ledger is None
    if ledger is None:
        ledger = RpcLedgerClient(
            validate_rpc_url(config.rpc_url),
            commitment=config.commitment,
            timeout_seconds=config.rpc_timeout_sec,
            confirm_timeout_seconds=config.confirm_timeout_sec,
            confirm_poll_seconds=config.confirm_poll_interval_sec,
        )
    return NullTrace(ledger, program, signer, operator=operator, config=config, owns_ledger=owns_ledger)
