"""nulltrace/ingestion/record_selector.py

Pick the compressed records that cover a target amount.

Records are sorted largest first (stable, so ties keep discovery order) and
taken until the running sum reaches the target. Selection stops as soon as the
target is met so the fewest records are consumed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from nulltrace.ingestion.ledger import LedgerClient
from nulltrace.ingestion.types import Asset, ValueRecord


@dataclass(frozen=True)
class SelectionResult:
    """Selected records in descending value order and their sum."""
    records: List[ValueRecord] = field(default_factory=list)
    total: int = 0

    def covers(self, target: int) -> bool:
        return self.total >= target

    def shortfall(self, target: int) -> int:
        return max(0, target - self.total)


def sort_records(records: Sequence[ValueRecord], native: bool) -> List[ValueRecord]:
    """Sort descending by value; Python's sort is stable."""
    return sorted(records, key=lambda r: r.value(native), reverse=True)


def select_records(sorted_records: Sequence[ValueRecord], target: int, native: bool) -> SelectionResult:
    """Greedily take records from the front until `target` is reached.

    Returns the accumulated records even when they fall short, so the caller
    can compute the deficit.
    """
    selected: List[ValueRecord] = []
    total = 0
    for record in sorted_records:
        if total >= target:
            break
        total += record.value(native)
        selected.append(record)
    return SelectionResult(records=selected, total=total)


async def fetch_sorted_records(ledger: LedgerClient, owner: str, asset: Asset) -> List[ValueRecord]:
    """Enumerate the owner's records for `asset`, largest first."""
    if asset.is_native:
        records = await ledger.get_compressed_records(owner)
    else:
        records = await ledger.get_compressed_token_records(owner, mint=asset.mint)
    return sort_records(records, asset.is_native)


async def select_for_amount(ledger: LedgerClient, owner: str, asset: Asset, target: int) -> SelectionResult:
    """Fetch, sort and select records covering `target` raw units."""
    records = await fetch_sorted_records(ledger, owner, asset)
    return select_records(records, target, asset.is_native)
