"""nulltrace/execution/packer.py

Pack an ordered instruction stream into size-bounded transactions.

Each bundle starts with the two compute-budget instructions. Instructions are
appended one at a time; when the compiled message would exceed the size
ceiling the current bundle is closed and a new one is started with the
instruction that did not fit.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from solders.instruction import Instruction
from solders.message import MessageV0, to_bytes_versioned

from nulltrace.errors import OversizedInstruction
from nulltrace.execution.models import TransactionBundle
from nulltrace.execution.programs import CompressionProgram, MessageCompileError
from nulltrace.ingestion.types import LookupTable

logger = logging.getLogger(__name__)

MAX_TX_SIZE = 1232
COMPUTE_UNIT_LIMIT = 1_400_000
COMPUTE_UNIT_PRICE = 5000  # micro-lamports


class TransactionPacker:
    """
    Incremental bundle builder.

    Attributes:
        program: Program adapter used to compile candidate messages.
        payer: Fee payer of every bundle.
        anchor: Recent blockhash shared by every bundle.
        lookup_table: Address lookup table shared by every bundle.
        max_size: Serialized message ceiling in bytes.
    """

    def __init__(
        self,
        program: CompressionProgram,
        *,
        payer: str,
        anchor: str,
        lookup_table: LookupTable,
        max_size: int = MAX_TX_SIZE,
        unit_limit: int = COMPUTE_UNIT_LIMIT,
        unit_price: int = COMPUTE_UNIT_PRICE,
    ):
        self.program = program
        self.payer = payer
        self.anchor = anchor
        self.lookup_table = lookup_table
        self._tables = [lookup_table.to_account()]
        self.max_size = max_size
        self._seed: List[Instruction] = list(program.compute_budget(unit_limit, unit_price))
        self._current: List[Instruction] = list(self._seed)
        self._bundles: List[TransactionBundle] = []

    def _compile(self, instructions: Sequence[Instruction]) -> MessageV0:
        return self.program.compile_message(
            payer=self.payer,
            instructions=instructions,
            anchor=self.anchor,
            lookup_tables=self._tables,
        )

    def _fits(self, instructions: Sequence[Instruction]) -> bool:
        try:
            message = self._compile(instructions)
        except MessageCompileError as e:
            logger.debug(f"[packer] Candidate message rejected: {e}")
            return False
        return len(to_bytes_versioned(message)) <= self.max_size

    def _emit(self) -> None:
        if len(self._current) <= len(self._seed):
            return
        bundle = TransactionBundle(
            payer=self.payer,
            anchor=self.anchor,
            instructions=tuple(self._current),
            message=self._compile(self._current),
        )
        self._bundles.append(bundle)
        logger.debug(
            f"[packer] Bundle {len(self._bundles)}: "
            f"{len(bundle.instructions) - len(self._seed)} instructions, {bundle.size} bytes"
        )

    def add(self, instruction: Instruction) -> None:
        """Append one instruction, closing the current bundle if it overflows."""
        if self._fits(self._current + [instruction]):
            self._current.append(instruction)
            return

        self._emit()
        fresh = self._seed + [instruction]
        if not self._fits(fresh):
            raise OversizedInstruction(
                f"Instruction for program {instruction.program_id} "
                f"does not fit in a {self.max_size}-byte transaction"
            )
        self._current = fresh

    def finish(self) -> List[TransactionBundle]:
        """Close the last bundle and return every bundle in order."""
        self._emit()
        self._current = list(self._seed)
        bundles, self._bundles = self._bundles, []
        return bundles


def pack_transactions(
    program: CompressionProgram,
    instructions: Sequence[Instruction],
    *,
    payer: str,
    anchor: str,
    lookup_table: LookupTable,
    max_size: int = MAX_TX_SIZE,
    unit_limit: int = COMPUTE_UNIT_LIMIT,
    unit_price: int = COMPUTE_UNIT_PRICE,
) -> List[TransactionBundle]:
    """Pack `instructions` into bundles that each serialize to <= max_size bytes.

    Returns:
        Bundles in input order; an empty stream yields no bundles.
    """
    packer = TransactionPacker(
        program,
        payer=payer,
        anchor=anchor,
        lookup_table=lookup_table,
        max_size=max_size,
        unit_limit=unit_limit,
        unit_price=unit_price,
    )
    for ix in instructions:
        packer.add(ix)
    bundles = packer.finish()
    logger.info(f"[packer] Packed {len(instructions)} instructions into {len(bundles)} bundles")
    return bundles
