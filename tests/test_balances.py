from __future__ import annotations

import pytest

from conftest import OTHER_MINT, TOKEN_MINT, FakeSigner, token_record
from nulltrace.errors import InvalidArgument
from nulltrace.ingestion.balances import OWNERSHIP_MESSAGE, BalanceReader
from nulltrace.ingestion.mint_resolver import MintResolver
from nulltrace.ingestion.types import (
    NATIVE_MINT,
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    MintAccount,
    TokenHolding,
)


def reader(ledger, signer):
    return BalanceReader(ledger, signer, MintResolver(ledger))


@pytest.mark.asyncio
async def test_public_balances_cover_both_token_programs(ledger, signer):
    ledger.balance = 2_000_000_000
    ledger.holdings[TOKEN_PROGRAM_ID] = [
        TokenHolding("ata1", TOKEN_MINT, 500, 6, TOKEN_PROGRAM_ID),
        TokenHolding("ata2", "emptyMint", 0, 6, TOKEN_PROGRAM_ID),
    ]
    ledger.holdings[TOKEN_2022_PROGRAM_ID] = [TokenHolding("ata3", OTHER_MINT, 9, 2, TOKEN_2022_PROGRAM_ID)]

    balances = await reader(ledger, signer).get_public_balances()
    by_mint = {b.mint: b for b in balances}
    assert set(by_mint) == {NATIVE_MINT, TOKEN_MINT, OTHER_MINT}
    assert by_mint[NATIVE_MINT].public == 2_000_000_000
    assert by_mint[OTHER_MINT].decimals == 2


@pytest.mark.asyncio
async def test_private_balances_sum_per_mint_and_cache_signature(ledger, signer):
    ledger.compressed_balance = 1_500_000_000
    ledger.token_records = [token_record(1, 100), token_record(2, 50), token_record(3, 0, mint=OTHER_MINT)]
    ledger.mints[TOKEN_MINT] = MintAccount(TOKEN_MINT, TOKEN_PROGRAM_ID, 6)

    balances_reader = reader(ledger, signer)
    first = await balances_reader.get_private_balances()
    await balances_reader.get_private_balances()

    assert [(b.mint, b.private) for b in first] == [(NATIVE_MINT, 1_500_000_000), (TOKEN_MINT, 150)]
    assert signer.messages == [OWNERSHIP_MESSAGE]

    balances_reader.clear_signature_cache()
    await balances_reader.get_private_balances()
    assert len(signer.messages) == 2


@pytest.mark.asyncio
async def test_private_balances_need_message_signing(ledger):
    with pytest.raises(InvalidArgument):
        await reader(ledger, FakeSigner(can_sign_messages=False)).get_private_balances()


@pytest.mark.asyncio
async def test_merged_balances(ledger, signer):
    ledger.balance = 1_000_000_000
    ledger.compressed_balance = 500_000_000
    ledger.token_records = [token_record(1, 2_000_000)]
    ledger.mints[TOKEN_MINT] = MintAccount(TOKEN_MINT, TOKEN_PROGRAM_ID, 6)

    merged = await reader(ledger, signer).get_balances()
    by_mint = {b.mint: b for b in merged}
    assert by_mint[NATIVE_MINT].public == 1_000_000_000
    assert by_mint[NATIVE_MINT].private == 500_000_000
    assert by_mint[NATIVE_MINT].to_dict()["amount"] == "1.5"
    assert by_mint[TOKEN_MINT].public == 0
    assert by_mint[TOKEN_MINT].to_dict()["privateAmount"] == "2"


@pytest.mark.asyncio
async def test_unresolvable_mint_is_skipped_in_private_view(ledger, signer):
    ledger.compressed_balance = 7
    ledger.token_records = [token_record(1, 100), token_record(2, 40, mint=OTHER_MINT)]
    ledger.mints[TOKEN_MINT] = MintAccount(TOKEN_MINT, TOKEN_PROGRAM_ID, 6)

    private = await reader(ledger, signer).get_private_balances()
    assert [(b.mint, b.private) for b in private] == [(NATIVE_MINT, 7), (TOKEN_MINT, 100)]

    merged = await reader(ledger, signer).get_balances()
    assert OTHER_MINT not in {b.mint for b in merged}
