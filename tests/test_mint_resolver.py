from __future__ import annotations

import pytest

from conftest import TOKEN_MINT
from nulltrace.errors import AssetNotFound, InvalidArgument
from nulltrace.ingestion.mint_resolver import MintResolver
from nulltrace.ingestion.types import (
    NATIVE_MINT,
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    MintAccount,
    ProgramKind,
)


@pytest.mark.asyncio
async def test_native_mint_is_hard_coded(ledger):
    asset = await MintResolver(ledger).resolve(NATIVE_MINT)
    assert asset.decimals == 9
    assert asset.kind is ProgramKind.NATIVE
    assert asset.token_program == TOKEN_PROGRAM_ID
    assert ledger.mint_lookups == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "owner, kind",
    [(TOKEN_PROGRAM_ID, ProgramKind.TOKEN), (TOKEN_2022_PROGRAM_ID, ProgramKind.TOKEN_2022)],
)
async def test_token_program_selects_kind(ledger, owner, kind):
    ledger.mints[TOKEN_MINT] = MintAccount(address=TOKEN_MINT, owner=owner, decimals=6)
    asset = await MintResolver(ledger).resolve(TOKEN_MINT)
    assert asset.kind is kind
    assert asset.decimals == 6
    assert asset.token_program == owner


@pytest.mark.asyncio
async def test_results_are_cached_until_cleared(ledger):
    ledger.mints[TOKEN_MINT] = MintAccount(address=TOKEN_MINT, owner=TOKEN_PROGRAM_ID, decimals=6)
    resolver = MintResolver(ledger)
    await resolver.resolve(TOKEN_MINT)
    await resolver.resolve(TOKEN_MINT)
    assert ledger.mint_lookups == 1

    resolver.clear()
    await resolver.resolve(TOKEN_MINT)
    assert ledger.mint_lookups == 2


@pytest.mark.asyncio
async def test_missing_mint_raises(ledger):
    with pytest.raises(AssetNotFound) as exc:
        await MintResolver(ledger).resolve(TOKEN_MINT)
    assert exc.value.mint == TOKEN_MINT


@pytest.mark.asyncio
async def test_account_owned_by_other_program_raises(ledger):
    ledger.mints[TOKEN_MINT] = MintAccount(address=TOKEN_MINT, owner="11111111111111111111111111111111", decimals=0)
    with pytest.raises(AssetNotFound, match="Not a token mint"):
        await MintResolver(ledger).resolve(TOKEN_MINT)


@pytest.mark.asyncio
async def test_empty_mint_is_invalid(ledger):
    with pytest.raises(InvalidArgument):
        await MintResolver(ledger).resolve("")
