"""nulltrace/ingestion/rpc_ledger.py

LedgerClient over Solana JSON-RPC and the Photon compression indexer.

Both APIs are served by a Helius endpoint, so one URL covers:
- getBalance / getAccountInfo / getTokenAccountsByOwner / getLatestBlockhash
- getCompressedAccountsByOwner / getCompressedTokenAccountsByOwner
- getCompressedBalanceByOwner / getValidityProof
- sendTransaction / getSignatureStatuses
"""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
from typing import Any, Dict, List, Optional, Sequence

import aiohttp
from solders.address_lookup_table_account import AddressLookupTable

from nulltrace.errors import ConfirmationFailure, NullTraceError, SubmissionRejected
from nulltrace.ingestion.ledger import LedgerClient
from nulltrace.ingestion.types import (
    TOKEN_2022_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    LookupTable,
    MintAccount,
    StateTree,
    TokenHolding,
    ValidityProof,
    ValueRecord,
)

logger = logging.getLogger(__name__)

_CONFIRMED_LEVELS = {
    "processed": ("processed", "confirmed", "finalized"),
    "confirmed": ("confirmed", "finalized"),
    "finalized": ("finalized",),
}


class RpcError(NullTraceError):
    """Raised when the RPC node returns an error object or bad payload."""

    def __init__(self, method: str, message: str, code: Optional[int] = None):
        super().__init__(f"RPC error from {method}: {message}")
        self.method = method
        self.code = code


def _record_from_account(item: Dict[str, Any], token_data: Optional[Dict[str, Any]] = None) -> ValueRecord:
    context = item.get("merkleContext") or {}
    tree = item.get("tree") or context.get("tree") or ""
    queue = item.get("queue") or context.get("queue") or ""
    return ValueRecord(
        hash=item["hash"],
        tree=tree,
        queue=queue,
        lamports=int(item.get("lamports", 0)),
        token_amount=int(token_data["amount"]) if token_data else None,
        mint=token_data.get("mint") if token_data else None,
        raw=item,
    )


class RpcLedgerClient(LedgerClient):
    """
    JSON-RPC ledger client.

    Attributes:
        rpc_url: Helius endpoint.
        commitment: Commitment for reads and confirmations.
        timeout_seconds: Total timeout per HTTP request.
        confirm_timeout_seconds: How long confirm_transaction waits.
        confirm_poll_seconds: Delay between signature status checks.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        commitment: str = "processed",
        timeout_seconds: float = 30.0,
        confirm_timeout_seconds: float = 60.0,
        confirm_poll_seconds: float = 0.5,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.timeout_seconds = timeout_seconds
        self.confirm_timeout_seconds = confirm_timeout_seconds
        self.confirm_poll_seconds = confirm_poll_seconds
        self._session = session
        self._ids = itertools.count(1)

    async def __aenter__(self):
        await self._get_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
        return self._session

    async def _call(self, method: str, params: Any) -> Any:
        """Make a JSON-RPC call and return its `result`.

        Raises:
            RpcError: On transport failure, HTTP error or an RPC error object.
        """
        session = await self._get_session()
        request = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            async with session.post(self.rpc_url, json=request) as response:
                if response.status != 200:
                    text = await response.text()
                    raise RpcError(method, f"HTTP {response.status}: {text[:200]}")
                try:
                    body = await response.json(content_type=None)
                except ValueError as e:
                    raise RpcError(method, f"invalid JSON body: {e}") from e
        except asyncio.TimeoutError as e:
            raise RpcError(method, "timeout") from e
        except aiohttp.ClientError as e:
            raise RpcError(method, str(e)) from e

        if not isinstance(body, dict):
            raise RpcError(method, f"expected a JSON object, got {type(body).__name__}")
        if "error" in body:
            error = body["error"] or {}
            raise RpcError(method, error.get("message", "Unknown"), code=error.get("code"))
        return body.get("result")

    # -- public state ---------------------------------------------------------

    async def get_balance(self, owner: str) -> int:
        result = await self._call("getBalance", [owner, {"commitment": self.commitment}])
        return int(result["value"])

    async def get_token_holdings(self, owner: str, program_id: str) -> List[TokenHolding]:
        result = await self._call(
            "getTokenAccountsByOwner",
            [owner, {"programId": program_id}, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        holdings = []
        for entry in result.get("value", []):
            info = entry["account"]["data"]["parsed"]["info"]
            token_amount = info["tokenAmount"]
            holdings.append(
                TokenHolding(
                    address=entry["pubkey"],
                    mint=info["mint"],
                    amount=int(token_amount["amount"]),
                    decimals=int(token_amount["decimals"]),
                    program_id=program_id,
                )
            )
        return holdings

    async def _account_info(self, address: str, encoding: str) -> Optional[Dict[str, Any]]:
        result = await self._call(
            "getAccountInfo", [address, {"encoding": encoding, "commitment": self.commitment}]
        )
        return result.get("value") if result else None

    async def get_mint_account(self, mint: str) -> Optional[MintAccount]:
        value = await self._account_info(mint, "jsonParsed")
        if value is None:
            return None
        owner = value.get("owner", "")
        data = value.get("data")
        decimals = 0
        if isinstance(data, dict) and owner in (TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID):
            decimals = int(data["parsed"]["info"]["decimals"])
        return MintAccount(address=mint, owner=owner, decimals=decimals)

    async def account_exists(self, address: str) -> bool:
        return await self._account_info(address, "base64") is not None

    async def get_latest_anchor(self) -> str:
        result = await self._call("getLatestBlockhash", [{"commitment": self.commitment}])
        return result["value"]["blockhash"]

    async def get_lookup_table(self, address: str) -> LookupTable:
        value = await self._account_info(address, "base64")
        if value is None:
            raise RpcError("getAccountInfo", f"lookup table {address} not found")
        raw = base64.b64decode(value["data"][0])
        try:
            table = AddressLookupTable.deserialize(raw)
        except Exception as e:  # noqa: BLE001
            raise RpcError("getAccountInfo", f"account {address} is not a lookup table: {e}") from e
        return LookupTable(address=address, addresses=[str(key) for key in table.addresses], raw=raw)

    # -- compressed state ------------------------------------------------------

    async def get_compressed_records(self, owner: str) -> List[ValueRecord]:
        result = await self._call("getCompressedAccountsByOwner", {"owner": owner})
        return [_record_from_account(item) for item in result["value"]["items"]]

    async def get_compressed_token_records(self, owner: str, mint: Optional[str] = None) -> List[ValueRecord]:
        params: Dict[str, Any] = {"owner": owner}
        if mint is not None:
            params["mint"] = mint
        result = await self._call("getCompressedTokenAccountsByOwner", params)
        return [
            _record_from_account(item["account"], item["tokenData"])
            for item in result["value"]["items"]
        ]

    async def get_compressed_balance(self, owner: str) -> int:
        result = await self._call("getCompressedBalanceByOwner", {"owner": owner})
        return int(result["value"] or 0)

    async def get_validity_proof(self, records: Sequence[ValueRecord]) -> ValidityProof:
        result = await self._call(
            "getValidityProof", {"hashes": [r.hash for r in records], "newAddressesWithTrees": []}
        )
        value = result["value"]
        return ValidityProof(
            compressed_proof=value.get("compressedProof"),
            root_indices=[int(i) for i in value.get("rootIndices", [])],
        )

    async def get_state_trees(self) -> List[StateTree]:
        result = await self._call("getStateTreeInfos", [])
        return [
            StateTree(tree=item["tree"], queue=item["queue"], raw=item)
            for item in (result or [])
        ]

    # -- submission --------------------------------------------------------------

    async def send_raw_transaction(self, payload: bytes) -> str:
        encoded = base64.b64encode(payload).decode("ascii")
        try:
            return await self._call(
                "sendTransaction",
                [encoded, {"encoding": "base64", "preflightCommitment": self.commitment}],
            )
        except RpcError as e:
            raise SubmissionRejected(str(e)) from e

    async def confirm_transaction(self, signature: str) -> None:
        accepted = _CONFIRMED_LEVELS[self.commitment]
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.confirm_timeout_seconds

        while True:
            try:
                result = await self._call("getSignatureStatuses", [[signature]])
            except RpcError as e:
                raise ConfirmationFailure(signature, str(e)) from e

            status = (result or {}).get("value", [None])[0]
            if status is not None:
                if status.get("err") is not None:
                    raise ConfirmationFailure(signature, f"transaction failed: {status['err']}")
                if status.get("confirmationStatus") in accepted:
                    return

            if loop.time() >= deadline:
                raise ConfirmationFailure(signature, f"not confirmed within {self.confirm_timeout_seconds}s")
            await asyncio.sleep(self.confirm_poll_seconds)
