"""nulltrace/execution/models.py

Data models for bundle assembly and the swap session lifecycle.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple

from solders.instruction import Instruction
from solders.message import MessageV0, to_bytes_versioned


@dataclass(frozen=True)
class TransactionBundle:
    """One size-bounded transaction, ready for signing.

    Always starts with the two compute-budget instructions. Built once and
    never mutated; `message` is the compiled V0 message the signer signs.
    """
    payer: str
    anchor: str
    instructions: Tuple[Instruction, ...]
    message: MessageV0

    @property
    def size(self) -> int:
        """Serialized message size including the version prefix."""
        return len(to_bytes_versioned(self.message))


@dataclass(frozen=True)
class SignedBundle:
    """A bundle plus its signed wire payload.

    Attributes:
        bundle: The bundle that was signed.
        payload: Serialized signed transaction.
        signature: Base58 transaction signature (first signature).
    """
    bundle: TransactionBundle
    payload: bytes
    signature: str


class SwapStatus(Enum):
    """Swap session lifecycle states."""
    INITIALIZED = "initialized"
    SIGNING = "signing"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PENDING = "pending"
    REJECTED = "rejected"


# Allowed forward transitions; REJECTED is only reached through an exception.
SWAP_TRANSITIONS: Dict[SwapStatus, Tuple[SwapStatus, ...]] = {
    SwapStatus.INITIALIZED: (SwapStatus.SIGNING,),
    SwapStatus.SIGNING: (SwapStatus.PROCESSING,),
    SwapStatus.PROCESSING: (SwapStatus.COMPLETED, SwapStatus.PENDING, SwapStatus.REJECTED),
    SwapStatus.PENDING: (SwapStatus.PENDING,),
    SwapStatus.COMPLETED: (),
    SwapStatus.REJECTED: (),
}


@dataclass
class SwapSession:
    """
    Swap handed to the remote operator.

    Attributes:
        id: Session identifier (random base58).
        from_mint: Source asset.
        to_mint: Destination asset.
        amount: Requested amount in human units, as given by the caller.
        amount_value: Requested amount in raw units.
        from_decimals: Source asset decimals.
        owner: Initiating wallet.
        recipient: Operator address receiving the funds.
        status: Current lifecycle state.
        created: Creation time in unix milliseconds.
    """
    id: str
    from_mint: str
    to_mint: str
    amount: str
    amount_value: int
    from_decimals: int
    owner: str
    recipient: str
    status: SwapStatus = SwapStatus.INITIALIZED
    created: int = 0

    def __post_init__(self):
        if self.created == 0:
            self.created = int(time.time() * 1000)

    def advance(self, new_status: SwapStatus) -> None:
        if new_status not in SWAP_TRANSITIONS[self.status]:
            raise ValueError(
                f"Illegal swap transition {self.status.value} -> {new_status.value}"
            )
        self.status = new_status

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the operator's wire shape."""
        return {
            "id": self.id,
            "fromToken": self.from_mint,
            "toToken": self.to_mint,
            "amount": self.amount,
            "amountValue": self.amount_value,
            "fromTokenDecimals": self.from_decimals,
            "userPublicKey": self.owner,
            "recipient": self.recipient,
            "status": self.status.value,
            "created": self.created,
        }


@dataclass
class SwapResult:
    status: str
    session_id: str
    result: Dict[str, Any] = field(default_factory=dict)
    top_up_signatures: List[str] = field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.status == SwapStatus.COMPLETED.value
