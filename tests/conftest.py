from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import base58
import pytest
from solders.compute_budget import set_compute_unit_price
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.message import MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey

from nulltrace.config import NullTraceConfig
from nulltrace.errors import ConfirmationFailure, SubmissionRejected
from nulltrace.execution.models import SignedBundle, TransactionBundle
from nulltrace.execution.operator_client import OperatorClient
from nulltrace.execution.orchestrator import NullTrace
from nulltrace.execution.programs import CompressionProgram
from nulltrace.execution.signer import Signer
from nulltrace.ingestion.ledger import LedgerClient
from nulltrace.ingestion.types import (
    LookupTable,
    MintAccount,
    StateTree,
    TokenHolding,
    ValidityProof,
    ValueRecord,
)


def addr(i: int) -> str:
    """Deterministic valid 32-byte base58 address."""
    return base58.b58encode(bytes([i]) * 32).decode("ascii")


OWNER = addr(1)
RECIPIENT = addr(2)
ANCHOR = addr(3)
ALT_ADDRESS = addr(4)
TOKEN_MINT = addr(7)
OTHER_MINT = addr(8)


def native_record(i: int, lamports: int) -> ValueRecord:
    return ValueRecord(hash=f"h{i}", tree="tree", queue="queue", lamports=lamports)


def token_record(i: int, amount: int, mint: str = TOKEN_MINT) -> ValueRecord:
    return ValueRecord(hash=f"t{i}", tree="tree", queue="queue", token_amount=amount, mint=mint)


def compiled_bundle(i: int = 0, payer: str = OWNER, extra_signer: Optional[str] = None) -> TransactionBundle:
    """Small real V0 bundle; `i` makes each message distinct."""
    instructions = [set_compute_unit_price(i)]
    if extra_signer is not None:
        meta = AccountMeta(Pubkey.from_string(extra_signer), is_signer=True, is_writable=False)
        instructions.append(Instruction(Pubkey.from_string(addr(9)), b"", [meta]))
    message = MessageV0.try_compile(Pubkey.from_string(payer), instructions, [], Hash.from_string(ANCHOR))
    return TransactionBundle(payer=payer, anchor=ANCHOR, instructions=tuple(instructions), message=message)


class FakeLedger(LedgerClient):
    def __init__(self) -> None:
        self.balance = 0
        self.holdings: Dict[str, List[TokenHolding]] = {}
        self.mints: Dict[str, MintAccount] = {}
        self.existing: Set[str] = set()
        self.records: List[ValueRecord] = []
        self.token_records: List[ValueRecord] = []
        self.compressed_balance = 0
        self.trees = [StateTree(tree="tree", queue="queue")]
        self.anchor = ANCHOR
        self.lookup_table = LookupTable(address=ALT_ADDRESS, addresses=[])
        self.proof_requests: List[List[str]] = []
        self.sent: List[bytes] = []
        self.confirmed: List[str] = []
        self.fail_send_at: Optional[int] = None
        self.fail_confirm_at: Optional[int] = None
        self.lookup_table_loads = 0
        self.mint_lookups = 0

    async def get_balance(self, owner: str) -> int:
        return self.balance

    async def get_token_holdings(self, owner: str, program_id: str) -> List[TokenHolding]:
        return list(self.holdings.get(program_id, []))

    async def get_mint_account(self, mint: str) -> Optional[MintAccount]:
        self.mint_lookups += 1
        return self.mints.get(mint)

    async def account_exists(self, address: str) -> bool:
        return address in self.existing

    async def get_compressed_records(self, owner: str) -> List[ValueRecord]:
        return list(self.records)

    async def get_compressed_token_records(self, owner: str, mint: Optional[str] = None) -> List[ValueRecord]:
        return [r for r in self.token_records if mint is None or r.mint == mint]

    async def get_compressed_balance(self, owner: str) -> int:
        return self.compressed_balance

    async def get_validity_proof(self, records: Sequence[ValueRecord]) -> ValidityProof:
        self.proof_requests.append([r.hash for r in records])
        return ValidityProof(compressed_proof={"n": len(records)}, root_indices=list(range(len(records))))

    async def get_state_trees(self) -> List[StateTree]:
        return list(self.trees)

    async def get_latest_anchor(self) -> str:
        return self.anchor

    async def get_lookup_table(self, address: str) -> LookupTable:
        self.lookup_table_loads += 1
        return self.lookup_table

    async def send_raw_transaction(self, payload: bytes) -> str:
        index = len(self.sent)
        if self.fail_send_at == index:
            raise SubmissionRejected("blockhash not found")
        self.sent.append(payload)
        return f"sig{index}"

    async def confirm_transaction(self, signature: str) -> None:
        if self.fail_confirm_at is not None and signature == f"sig{self.fail_confirm_at}":
            raise ConfirmationFailure(signature, "transaction failed")
        self.confirmed.append(signature)


class FakeProgram(CompressionProgram):
    """Compression builders that record their arguments.

    Each instruction carries the builder name plus `data_size` zero bytes and
    the payer as its only account. Compute budget, derived addresses and
    message compilation come from the real base class.
    """

    PROGRAM_ID = Pubkey.from_string(addr(9))

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.data_size = 100

    def _ix(self, name: str, **kwargs: Any) -> Instruction:
        self.calls.append((name, kwargs))
        payer = Pubkey.from_string(kwargs.get("payer", OWNER))
        return Instruction(
            self.PROGRAM_ID,
            name.encode() + b"\x00" * self.data_size,
            [AccountMeta(payer, is_signer=True, is_writable=True)],
        )

    def calls_named(self, name: str) -> List[Dict[str, Any]]:
        return [kw for n, kw in self.calls if n == name]

    async def compress_native(self, *, payer, to, lamports, tree):
        return self._ix("compress_native", payer=payer, to=to, lamports=lamports, tree=tree)

    async def compress_token(self, *, payer, owner, source, outputs, asset, tree, pool):
        return self._ix(
            "compress_token", payer=payer, owner=owner, source=source,
            outputs=list(outputs), asset=asset, tree=tree, pool=pool,
        )

    async def decompress_native(self, *, payer, records, to, lamports, proof):
        return self._ix("decompress_native", payer=payer, records=list(records), to=to, lamports=lamports, proof=proof)

    async def decompress_token(self, *, payer, records, to, amount, proof, asset):
        return self._ix(
            "decompress_token", payer=payer, records=list(records), to=to, amount=amount, proof=proof, asset=asset
        )

    async def transfer_native(self, *, payer, records, to, lamports, proof):
        return self._ix("transfer_native", payer=payer, records=list(records), to=to, lamports=lamports, proof=proof)

    async def transfer_token(self, *, payer, records, to, amount, proof, asset):
        return self._ix(
            "transfer_token", payer=payer, records=list(records), to=to, amount=amount, proof=proof, asset=asset
        )

    async def create_token_pool(self, *, payer, asset):
        return self._ix("create_token_pool", payer=payer, asset=asset)

    def create_holding_account(self, *, payer, address, owner, asset):
        self.calls.append(("create_holding_account", {"payer": payer, "address": address, "owner": owner}))
        return super().create_holding_account(payer=payer, address=address, owner=owner, asset=asset)


class FakeSigner(Signer):
    def __init__(self, address: str = OWNER, can_sign_messages: bool = True) -> None:
        self._address = address
        self._can_sign = can_sign_messages
        self.sign_calls: List[int] = []
        self.messages: List[bytes] = []

    @property
    def address(self) -> str:
        return self._address

    @property
    def can_sign_messages(self) -> bool:
        return self._can_sign

    async def sign_message(self, message: bytes) -> bytes:
        self.messages.append(message)
        return b"\x01" * 64

    async def sign_all(self, bundles: Sequence[TransactionBundle]) -> List[SignedBundle]:
        self.sign_calls.append(len(bundles))
        return [
            SignedBundle(bundle=b, payload=b"signed-%d:" % i + to_bytes_versioned(b.message), signature=f"local{i}")
            for i, b in enumerate(bundles)
        ]


class FakeResponse:
    def __init__(self, status: int = 200, data: Any = None, text: str = "", error: Optional[Exception] = None):
        self.status = status
        self._data = data
        self._text = text or (json.dumps(data) if data is not None else "")
        self._error = error

    async def __aenter__(self):
        if self._error is not None:
            raise self._error
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def json(self, content_type: Optional[str] = "application/json"):
        if self._data is None:
            raise ValueError("no json body")
        return self._data

    async def text(self) -> str:
        return self._text


class FakeSession:
    """Stands in for aiohttp.ClientSession.post; responses are served in order."""

    def __init__(self, responses: Optional[List[FakeResponse]] = None):
        self.responses = list(responses or [])
        self.requests: List[Dict[str, Any]] = []
        self.closed = False

    def queue(self, *responses: FakeResponse) -> None:
        self.responses.extend(responses)

    def post(self, url: str, json: Any = None, headers: Optional[Dict[str, str]] = None):
        self.requests.append({"url": url, "json": json, "headers": headers or {}})
        if not self.responses:
            raise AssertionError(f"unexpected request to {url}")
        return self.responses.pop(0)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def program() -> FakeProgram:
    return FakeProgram()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def operator_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def operator(operator_session: FakeSession) -> OperatorClient:
    return OperatorClient(base_url="http://operator.test/operator", session=operator_session)


@pytest.fixture
def config() -> NullTraceConfig:
    return NullTraceConfig(swap_poll_interval_sec=0.01, swap_timeout_sec=0.05)


@pytest.fixture
def client(ledger, program, signer, operator, config) -> NullTrace:
    return NullTrace(ledger, program, signer, operator=operator, config=config)
