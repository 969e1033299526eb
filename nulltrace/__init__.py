"""nulltrace: compressed-balance transaction orchestrator for Solana.

Entry points:
  from nulltrace import NullTrace, create_client, load_config
"""

from nulltrace.config import NullTraceConfig, load_config
from nulltrace.errors import (
    AssetNotFound,
    ConfirmationFailure,
    InsufficientBalance,
    InvalidArgument,
    NullTraceError,
    OversizedInstruction,
    SubmissionRejected,
)
from nulltrace.execution.orchestrator import NullTrace, create_client

__version__ = "0.1.0"

__all__ = [
    "NullTrace",
    "create_client",
    "NullTraceConfig",
    "load_config",
    "NullTraceError",
    "InvalidArgument",
    "OversizedInstruction",
    "AssetNotFound",
    "InsufficientBalance",
    "SubmissionRejected",
    "ConfirmationFailure",
]
