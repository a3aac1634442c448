"""
Money helpers.

All amounts are ``Decimal``. Intermediate products are kept exact; only the
final invoice total is rounded, half-up, to the currency precision.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

CURRENCY_PLACES = 2
CENT = Decimal(1).scaleb(-CURRENCY_PLACES)


def round_money(amount: Decimal) -> Decimal:
    """Round an amount half-up to the currency precision."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def exact_sum(amounts: Iterable[Decimal]) -> Decimal:
    """Sum Decimal amounts exactly, starting from zero cents."""
    return sum(amounts, Decimal("0.00"))


def format_money(amount: Decimal) -> str:
    """Format an amount with exactly the currency precision."""
    return f"{round_money(amount):.{CURRENCY_PLACES}f}"
