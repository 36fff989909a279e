"""Money helpers — all amounts are Decimal, quantised to cents."""

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value: Decimal | int | str | float | None) -> Decimal:
    """Coerce to a Decimal rounded half-up to two places. Floats go through str()."""
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percentage: Decimal | int | str) -> Decimal:
    return to_money(Decimal(amount) * Decimal(percentage) / HUNDRED)


def money_str(value: Decimal) -> str:
    return f"{to_money(value):.2f}"
