"""nulltrace/execution/fees.py

Pure amount arithmetic: human -> raw conversion and the operator fee split.

Uses Decimal so that floor(amount * rate) is exact for every integer amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Any, Union

from nulltrace.errors import InvalidArgument


# 0.1% skimmed whenever value enters the compressed domain
DEFAULT_FEE_RATE = Decimal("0.001")


@dataclass(frozen=True)
class FeeSplit:
    """Result of splitting an amount between recipient and operator.

    Attributes:
        net: Share delivered to the recipient.
        fee: Share delivered to the operator.
    """
    net: int
    fee: int

    @property
    def total(self) -> int:
        return self.net + self.fee


def _as_decimal(value: Any, name: str) -> Decimal:
    try:
        return Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise InvalidArgument(f"{name} must be numeric, got {value!r}") from e


def compute_fee(amount: int, rate: Union[Decimal, float, str] = DEFAULT_FEE_RATE) -> int:
    """Return floor(amount * rate)."""
    if amount < 0:
        raise InvalidArgument(f"amount cannot be negative, got {amount}")
    rate_d = _as_decimal(rate, "fee rate")
    if rate_d < 0 or rate_d >= 1:
        raise InvalidArgument(f"fee rate must be in [0, 1), got {rate}")
    return int((Decimal(amount) * rate_d).to_integral_value(rounding=ROUND_FLOOR))


def split_fee(amount: int, rate: Union[Decimal, float, str] = DEFAULT_FEE_RATE) -> FeeSplit:
    """Split a raw amount into net and fee shares.

    Args:
        amount: Raw amount (non-negative integer).
        rate: Fee rate as a fraction (0.001 = 10 bps).

    Returns:
        FeeSplit where net + fee == amount.
    """
    fee = compute_fee(amount, rate)
    return FeeSplit(net=amount - fee, fee=fee)


def to_raw_amount(amount: Any, decimals: int) -> int:
    """Convert a human-readable amount ("1.5") to raw units.

    Precision beyond `decimals` is floored.

    Raises:
        InvalidArgument: If the amount is missing, unparsable or not positive.
    """
    if amount is None or (isinstance(amount, str) and not amount.strip()):
        raise InvalidArgument("amount is required")
    value = _as_decimal(amount, "amount")
    if not value.is_finite() or value <= 0:
        raise InvalidArgument(f"amount must be positive, got {amount!r}")
    raw = (value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_FLOOR)
    return int(raw)


def to_ui_amount(raw: int, decimals: int) -> str:
    """Format raw units back to a plain decimal string."""
    value = Decimal(raw) / (Decimal(10) ** decimals)
    return format(value.normalize(), "f") if raw else "0"
