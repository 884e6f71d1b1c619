"""
Commission -- money and commission primitives.

Responsibility:
    Resolves a commission rule against a base amount and validates
    commission terms and platform percentages at write time.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.  Used by the settlement
    calculator (read side) and the partnership manager / project service
    (write side).

Invariants enforced:
    - Percentage commissions are ``base * value / 100``; fixed commissions
      ignore the base.
    - No floats.  Float inputs are rejected as invalid amounts.
    - Results are NOT rounded here; rounding happens once when a settlement
      is externalized (see ``db.types.round_money``).

Failure modes:
    - InvalidAmountError: negative base amount, non-numeric or float input,
      or an amount a money column cannot hold (>= MAX_AMOUNT or more than
      MONEY_SCALE decimal places).
    - InvalidCommissionError: unknown type, negative value, or a percentage
      above 100 (write-time validation only).
    - InvalidPlatformCommissionError: platform percent outside [0, 100] or
      with more than PERCENT_DECIMAL_PLACES decimal places.
"""

from decimal import Decimal, InvalidOperation
from enum import Enum

from settlement_kernel.db.types import (
    HUNDRED,
    MAX_AMOUNT,
    MONEY_SCALE,
    PERCENT_DECIMAL_PLACES,
    ZERO,
    round_money,
    to_decimal,
)
from settlement_kernel.exceptions import (
    InvalidAmountError,
    InvalidCommissionError,
    InvalidPlatformCommissionError,
)


class CommissionType(str, Enum):
    """How a partner's share is derived from the net amount."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


def _decimal_or_none(value) -> Decimal | None:
    try:
        result = to_decimal(value)
    except (TypeError, ValueError, InvalidOperation):
        return None
    if not result.is_finite():
        return None
    return result


def parse_amount(field: str, value, *, allow_zero: bool = True) -> Decimal:
    """
    Coerce a user supplied amount to Decimal and check its sign.

    Raises:
        InvalidAmountError: if the value is not a finite decimal, is
            negative, is zero when ``allow_zero`` is False, or does not fit
            a money column.
    """
    amount = _decimal_or_none(value)
    if amount is None:
        raise InvalidAmountError(field, value, "not a decimal amount")
    if amount < ZERO:
        raise InvalidAmountError(field, value, "must not be negative")
    if not allow_zero and amount == ZERO:
        raise InvalidAmountError(field, value, "must be greater than zero")
    if amount >= MAX_AMOUNT:
        raise InvalidAmountError(field, value, f"must be less than {MAX_AMOUNT:f}")
    if round_money(amount, MONEY_SCALE) != amount:
        raise InvalidAmountError(field, value, f"more than {MONEY_SCALE} decimal places")
    return amount


def coerce_commission_type(commission_type, commission_value=None) -> CommissionType:
    """Convert a raw string to CommissionType or raise InvalidCommissionError."""
    try:
        return CommissionType(commission_type)
    except ValueError:
        raise InvalidCommissionError(
            commission_type, commission_value, "unknown commission type"
        ) from None


def resolve_commission(
    base_amount: Decimal,
    commission_type: CommissionType | str,
    commission_value: Decimal,
) -> Decimal:
    """
    Compute the amount a commission rule yields against ``base_amount``.

    Args:
        base_amount: Amount the rule applies to (>= 0).
        commission_type: ``percentage`` or ``fixed``.
        commission_value: Percentage points or a fixed amount (>= 0).

    Returns:
        Unrounded Decimal commission.
    """
    base = _decimal_or_none(base_amount)
    if base is None:
        raise InvalidAmountError("base_amount", base_amount, "not a decimal amount")
    if base < ZERO:
        raise InvalidAmountError("base_amount", base_amount, "must not be negative")
    kind = coerce_commission_type(commission_type, commission_value)
    value = _decimal_or_none(commission_value)
    if value is None:
        raise InvalidCommissionError(kind.value, commission_value, "not a decimal value")
    if value < ZERO:
        raise InvalidCommissionError(kind.value, commission_value, "must not be negative")

    if kind is CommissionType.PERCENTAGE:
        return base * value / HUNDRED
    return value


def validate_commission_terms(
    commission_type: CommissionType | str,
    commission_value,
) -> tuple[CommissionType, Decimal]:
    """
    Write-time validation of a partner's commission terms.

    Stricter than ``resolve_commission``: percentages must not exceed 100.

    Returns:
        The normalized ``(CommissionType, Decimal)`` pair.
    """
    kind = coerce_commission_type(commission_type, commission_value)
    value = _decimal_or_none(commission_value)
    if value is None:
        raise InvalidCommissionError(kind.value, commission_value, "not a decimal value")
    if value < ZERO:
        raise InvalidCommissionError(kind.value, commission_value, "must not be negative")
    if kind is CommissionType.PERCENTAGE and value > HUNDRED:
        raise InvalidCommissionError(kind.value, commission_value, "must not exceed 100")
    if value >= MAX_AMOUNT or round_money(value, MONEY_SCALE) != value:
        raise InvalidCommissionError(kind.value, commission_value, "does not fit a money column")
    return kind, value


def validate_platform_commission_percent(value) -> Decimal:
    """Platform commission percent: within [0, 100], at most two decimal places."""
    percent = _decimal_or_none(value)
    if percent is None or percent < ZERO or percent > HUNDRED:
        raise InvalidPlatformCommissionError(value)
    if round_money(percent, PERCENT_DECIMAL_PLACES) != percent:
        raise InvalidPlatformCommissionError(value)
    return percent
