"""nulltrace/execution/batcher.py

Split selected records into proof batches.

Validity proofs can only be requested for fixed input counts, so a selection
is cut front-to-back into groups of 8, 4, 2 or 1 records.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple, TypeVar

T = TypeVar("T")

ALLOWED_BATCH_SIZES: Tuple[int, ...] = (8, 4, 2, 1)


def batch_records(records: Sequence[T], sizes: Sequence[int] = ALLOWED_BATCH_SIZES) -> List[List[T]]:
    """Greedily slice `records` into batches with sizes from `sizes`.

    Args:
        records: Ordered records (selection order is preserved).
        sizes: Allowed cardinalities, descending, must contain 1.

    Returns:
        Batches whose concatenation equals `records`.
    """
    if 1 not in sizes:
        raise ValueError(f"batch sizes must include 1, got {list(sizes)}")
    ordered = sorted(set(sizes), reverse=True)

    batches: List[List[T]] = []
    start = 0
    while start < len(records):
        remaining = len(records) - start
        size = next(s for s in ordered if s <= remaining)
        batches.append(list(records[start:start + size]))
        start += size
    return batches
