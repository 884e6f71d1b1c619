"""
Module: settlement_kernel.db.types
Responsibility: Precision constants and utility functions for money columns.
    Centralizes precision and rounding so that every model, domain function
    and selector uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for money.
    - No floats.  All monetary amounts use Decimal with explicit precision.

Failure modes:
    - round_money() never overflows the decimal context for values that fit
      a money column (below MAX_AMOUNT).
"""

from decimal import ROUND_HALF_UP, Context, Decimal

# Money columns are Numeric(MONEY_PRECISION, MONEY_SCALE)
MONEY_PRECISION = 38
MONEY_SCALE = 9

# Exclusive upper bound of a storable money amount
MAX_AMOUNT = Decimal(10) ** (MONEY_PRECISION - MONEY_SCALE)

# Percent columns are Numeric(5, PERCENT_DECIMAL_PLACES)
PERCENT_DECIMAL_PLACES = 2

# Rounding constants
MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Wide enough to quantize any sum of storable amounts at MONEY_SCALE places
_ROUNDING_CONTEXT = Context(prec=MONEY_PRECISION + MONEY_SCALE)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """Coerce an int/str/Decimal to Decimal.  Floats are rejected."""
    if isinstance(value, float):
        raise TypeError("Monetary values must not be float")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given decimal places.

    This is the ONLY sanctioned rounding function for money in the kernel.
    Settlement math stays unrounded until results are externalized.
    """
    quantize_str = "1." + "0" * decimal_places if decimal_places else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding, context=_ROUNDING_CONTEXT)


def format_money(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> str:
    """Render a money value as a fixed-point string (e.g. ``"720.00"``)."""
    return f"{round_money(value, decimal_places):f}"
