"""
money.py — the single rounding primitive for ledger amounts.

Every owed, paid, balance and transfer amount passes through round2() so
sum checks and near-zero detection compare like with like. Amounts are
always Decimal; floats are converted through str() to avoid binary noise.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    """Coerces int/str/float/Decimal to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value) -> Decimal:
    """Rounds to cents, half away from zero (x * 100, round, / 100)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def is_settled(value) -> bool:
    """True when the amount is within one cent of zero."""
    return abs(round2(value)) <= CENT
