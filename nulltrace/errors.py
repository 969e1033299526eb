"""nulltrace/errors.py

Error taxonomy for the compressed-balance orchestrator.

Nothing in the core retries. Every error reaches the caller of the operation,
and partial progress (bundles already confirmed) is carried on the exception
so it can be reconciled with a balance re-query.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class NullTraceError(Exception):
    """Base exception for all orchestrator errors."""
    pass


class InvalidArgument(NullTraceError, ValueError):
    """Raised when a required input is missing or malformed."""
    pass


class OversizedInstruction(InvalidArgument):
    """Raised when one instruction cannot fit a transaction on its own."""
    pass


class AssetNotFound(NullTraceError):
    """Raised when a mint address does not resolve to a token mint."""

    def __init__(self, mint: str, reason: str = "Mint not found"):
        super().__init__(f"{reason}: {mint}")
        self.mint = mint


class InsufficientBalance(NullTraceError):
    """Raised when neither private nor public funds cover a request.

    Attributes:
        required: Raw amount that was requested.
        available: Raw amount that could be covered.
    """

    def __init__(self, required: int, available: int, message: str = "Insufficient balance"):
        super().__init__(f"{message}: required={required} available={available}")
        self.required = required
        self.available = available

    @property
    def shortfall(self) -> int:
        return max(0, self.required - self.available)


class SubmissionRejected(NullTraceError):
    """Raised when the operator or the network refuses a submission.

    Attributes:
        status: HTTP status from the operator, if any.
        confirmed: Signatures confirmed before the rejection.
    """

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        confirmed: Optional[Sequence[str]] = None,
    ):
        super().__init__(message)
        self.status = status
        self.confirmed: List[str] = list(confirmed or [])


class ConfirmationFailure(NullTraceError):
    """Raised when a broadcast transaction fails or times out on confirmation."""

    def __init__(
        self,
        signature: str,
        reason: str,
        *,
        confirmed: Optional[Sequence[str]] = None,
    ):
        super().__init__(f"Confirmation failed for {signature}: {reason}")
        self.signature = signature
        self.reason = reason
        self.confirmed: List[str] = list(confirmed or [])
