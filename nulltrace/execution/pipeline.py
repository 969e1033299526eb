"""nulltrace/execution/pipeline.py

Sign, send and confirm a list of bundles.

HARD RULES:
- One signing request for all bundles
- Strictly sequential: bundle N+1 is not sent before bundle N is confirmed
- First failure aborts the rest; confirmed bundles are never rolled back
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from nulltrace.errors import ConfirmationFailure, NullTraceError, SubmissionRejected
from nulltrace.execution.models import SignedBundle, TransactionBundle
from nulltrace.execution.signer import Signer
from nulltrace.ingestion.ledger import LedgerClient

logger = logging.getLogger(__name__)


async def send_and_confirm(ledger: LedgerClient, signed: Sequence[SignedBundle]) -> List[str]:
    """Broadcast and confirm already-signed bundles in order.

    Returns:
        Confirmed transaction signatures.

    Raises:
        SubmissionRejected: If the network refuses a broadcast.
        ConfirmationFailure: If a broadcast transaction fails to confirm.
        Both carry `confirmed` with the signatures that landed before it.
    """
    confirmed: List[str] = []
    for index, item in enumerate(signed):
        try:
            signature = await ledger.send_raw_transaction(item.payload)
        except SubmissionRejected as e:
            logger.error(f"[pipeline] Bundle {index + 1}/{len(signed)} rejected: {e}")
            raise SubmissionRejected(str(e), status=e.status, confirmed=confirmed) from e
        except NullTraceError as e:
            logger.error(f"[pipeline] Bundle {index + 1}/{len(signed)} send failed: {e}")
            raise SubmissionRejected(str(e), confirmed=confirmed) from e

        try:
            await ledger.confirm_transaction(signature)
        except ConfirmationFailure as e:
            logger.error(f"[pipeline] Bundle {index + 1}/{len(signed)} not confirmed: {e.reason}")
            raise ConfirmationFailure(signature, e.reason, confirmed=confirmed) from e

        confirmed.append(signature)
        logger.info(f"[pipeline] Confirmed {index + 1}/{len(signed)}: {signature}")
    return confirmed


async def sign_send_confirm(
    ledger: LedgerClient,
    signer: Signer,
    bundles: Sequence[TransactionBundle],
) -> List[str]:
    """Sign every bundle in one request, then send and confirm sequentially."""
    if not bundles:
        return []
    signed = await signer.sign_all(bundles)
    if len(signed) != len(bundles):
        raise SubmissionRejected(
            f"Signer returned {len(signed)} transactions for {len(bundles)} bundles"
        )
    return await send_and_confirm(ledger, signed)
