"""nulltrace/config/schema.py

Configuration schema for the orchestrator.
Implements manual validation to avoid a Pydantic dependency.
"""

from dataclasses import dataclass
from typing import Any, Optional

from nulltrace.errors import InvalidArgument

DEFAULT_OPERATOR_URL = "http://34.68.76.183:3333/operator"
DEFAULT_OPERATOR_ADDRESS = "5STUuhrL8kJ4up9spEY39VJ6ibQCFrg8x8cRV5UeEcfv"
DEFAULT_LOOKUP_TABLE = "9NYFyEqPkyXUhkerbGHXUXkvb4qpzeEdHuGpgbgpH1NJ"
DEFAULT_SHARED_SECRET = "NULL_TRACE_OPERATOR_SECRET_BASE_V1"


def validate_rpc_url(url: str) -> str:
    """Compressed-state queries need a Helius (Photon) endpoint."""
    if not url or not isinstance(url, str):
        raise InvalidArgument("A Helius rpc_url is required")
    if "helius" not in url.lower():
        raise InvalidArgument("A Helius RPC endpoint is required. Get a key at https://helius.dev")
    return url


@dataclass(frozen=True)
class NullTraceConfig:
    """
    Orchestrator settings. Every field has a working default except rpc_url,
    which must be supplied before a client can be created.
    """
    # Ledger RPC
    rpc_url: str = ""
    commitment: str = "processed"
    rpc_timeout_sec: float = 30.0
    confirm_timeout_sec: float = 60.0
    confirm_poll_interval_sec: float = 0.5

    # Remote operator
    operator_url: str = DEFAULT_OPERATOR_URL
    operator_address: str = DEFAULT_OPERATOR_ADDRESS
    shared_secret: str = DEFAULT_SHARED_SECRET
    operator_timeout_sec: float = 30.0
    auth_step_sec: int = 180

    # Fees
    fee_rate: float = 0.001  # 0.1%
    native_reserve_lamports: int = 100_000

    # Packing
    lookup_table_address: str = DEFAULT_LOOKUP_TABLE
    compute_unit_limit: int = 1_400_000
    compute_unit_price: int = 5000  # micro-lamports
    max_tx_size: int = 1232

    # Swap polling
    swap_poll_interval_sec: float = 2.0
    swap_timeout_sec: float = 120.0

    def __post_init__(self):
        if self.rpc_url:
            validate_rpc_url(self.rpc_url)
        if self.commitment not in ("processed", "confirmed", "finalized"):
            raise InvalidArgument(f"commitment must be processed/confirmed/finalized, got {self.commitment}")
        for name in ("operator_url", "operator_address", "shared_secret", "lookup_table_address"):
            if not getattr(self, name):
                raise InvalidArgument(f"{name} cannot be empty")

        self._validate_range("rpc_timeout_sec", self.rpc_timeout_sec, 0.1, None)
        self._validate_range("confirm_timeout_sec", self.confirm_timeout_sec, 0.1, None)
        self._validate_range("confirm_poll_interval_sec", self.confirm_poll_interval_sec, 0.01, 60.0)
        self._validate_range("operator_timeout_sec", self.operator_timeout_sec, 0.1, None)
        self._validate_range("auth_step_sec", self.auth_step_sec, 1, None)
        self._validate_range("fee_rate", self.fee_rate, 0.0, 0.5)
        self._validate_range("native_reserve_lamports", self.native_reserve_lamports, 0, None)
        self._validate_range("compute_unit_limit", self.compute_unit_limit, 1, 1_400_000)
        self._validate_range("compute_unit_price", self.compute_unit_price, 0, None)
        self._validate_range("max_tx_size", self.max_tx_size, 64, 1232)
        self._validate_range("swap_poll_interval_sec", self.swap_poll_interval_sec, 0.01, 300.0)
        self._validate_range("swap_timeout_sec", self.swap_timeout_sec, 0.0, None)

    def _validate_range(self, name: str, value: Any, min_val: float, max_val: Optional[float] = None) -> None:
        try:
            val = float(value)
        except (TypeError, ValueError):
            raise InvalidArgument(f"{name} must be numeric, got {value}")

        if val < min_val:
            raise InvalidArgument(f"{name} {val} is below minimum {min_val}")
        if max_val is not None and val > max_val:
            raise InvalidArgument(f"{name} {val} is above maximum {max_val}")
