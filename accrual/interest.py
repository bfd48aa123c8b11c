"""
interest.py - Pure accrual calculations

PURE FUNCTIONS - all inputs explicit, no ledger access, no hidden state.

Key Formulas:
    accrual_factor   = PRECISION + locked_rate * (now - last_settled)
    accrued_balance  = principal * accrual_factor // PRECISION
    interest_owed    = accrued_balance - principal

Accrual is simple (linear) interest between settlements. Settlement re-bases
the clock, so compounding only happens at the moments a holder is touched.
Division truncates toward zero; all operands are non-negative ints, so floor
division is truncation.
"""

from __future__ import annotations
from decimal import Decimal, ROUND_DOWN, localcontext
from typing import Optional

from .core import (
    HolderRecord, MAX_AMOUNT, PRECISION, SECONDS_PER_YEAR,
    InsufficientPrincipal,
)


def accrual_factor(locked_rate: int, last_settled: int, now: int) -> int:
    """
    Growth factor since the last settlement, scaled by PRECISION.

    Raises:
        ValueError: if `now` is before `last_settled`.
    """
    elapsed = now - last_settled
    if elapsed < 0:
        raise ValueError(f"Cannot accrue backwards: {now} < {last_settled}")
    return PRECISION + locked_rate * elapsed


def calculate_accrued_balance(
    principal: int,
    record: Optional[HolderRecord],
    now: int,
) -> int:
    """
    Principal plus interest accrued since the record's last settlement.

    Holders without a record have never been funded and accrue nothing.
    The product is formed before dividing; Python ints do not overflow, so
    no precision is lost relative to PRECISION.
    """
    if record is None or principal == 0:
        return principal
    factor = accrual_factor(record.locked_rate, record.last_settled, now)
    return principal * factor // PRECISION


def calculate_interest_owed(
    principal: int,
    record: Optional[HolderRecord],
    now: int,
) -> int:
    """Interest that settling at `now` would materialize (never negative)."""
    return calculate_accrued_balance(principal, record, now) - principal


def resolve_amount(holder: str, amount: int, principal: int) -> int:
    """
    Resolve the MAX_AMOUNT sentinel and check the amount is covered.

    Must be called with the post-settlement principal.

    Raises:
        InsufficientPrincipal: if `amount` exceeds `principal`.
    """
    if amount == MAX_AMOUNT:
        return principal
    if amount > principal:
        raise InsufficientPrincipal(holder, amount, principal)
    return amount


def per_second_rate(annual_rate: Decimal) -> int:
    """
    Convert a simple annual rate (e.g. Decimal("0.05") for 5%) into the
    per-second fixed-point rate the ledger stores. Rounds down.

    Example:
        per_second_rate(Decimal("0.05"))  # 1585489599
    """
    if not isinstance(annual_rate, Decimal):
        annual_rate = Decimal(str(annual_rate))
    if annual_rate.is_nan() or annual_rate.is_infinite() or annual_rate < 0:
        raise ValueError(f"annual_rate must be finite and non-negative, got {annual_rate}")
    with localcontext() as ctx:
        ctx.prec = 60
        scaled = annual_rate * PRECISION / SECONDS_PER_YEAR
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def to_display_amount(amount: int, decimals: int) -> Decimal:
    """Scale a base-unit amount down by `decimals` for display, exactly."""
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    with localcontext() as ctx:
        ctx.prec = 100
        return Decimal(amount).scaleb(-decimals)
