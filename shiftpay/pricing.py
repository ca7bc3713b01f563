"""Payment amount derivation.

All monetary values use Decimal and are rounded to cents (half-up) at
every derived step, not only for display, so that the stored figures add
up exactly: ``total_charged == subtotal + platform_fee``.

The platform fee is billed to the employer on top of the worker's pay.
The worker payout is the full subtotal.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from .hours import HoursBreakdown

CENT = Decimal("0.01")
ZERO = Decimal("0")

MoneyValue = Union[Decimal, int, float, str]


def to_decimal(value: MoneyValue) -> Decimal:
    """Convert a numeric value to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: MoneyValue) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PaymentAmounts:
    """Hours and money for one payment record."""

    regular_hours: Decimal
    regular_amount: Decimal
    overtime_hours: Decimal
    overtime_amount: Decimal
    subtotal: Decimal
    platform_fee_percentage: Decimal
    platform_fee: Decimal
    total_charged: Decimal

    @property
    def worker_payout(self) -> Decimal:
        """The worker receives the whole subtotal."""
        return self.subtotal


def _with_fee(
    regular_hours: Decimal,
    regular_amount: Decimal,
    overtime_hours: Decimal,
    overtime_amount: Decimal,
    fee_percentage: Decimal,
) -> PaymentAmounts:
    subtotal = round_money(regular_amount + overtime_amount)
    platform_fee = round_money(subtotal * fee_percentage)
    return PaymentAmounts(
        regular_hours=regular_hours,
        regular_amount=regular_amount,
        overtime_hours=overtime_hours,
        overtime_amount=overtime_amount,
        subtotal=subtotal,
        platform_fee_percentage=fee_percentage,
        platform_fee=platform_fee,
        total_charged=round_money(subtotal + platform_fee),
    )


def price_estimate(
    estimated_hours: MoneyValue,
    hourly_rate: MoneyValue,
    fee_percentage: MoneyValue,
) -> PaymentAmounts:
    """Price an escrow hold. Every estimated hour is regular time."""
    hours = to_decimal(estimated_hours)
    regular_amount = round_money(hours * to_decimal(hourly_rate))
    return _with_fee(hours, regular_amount, ZERO, ZERO, to_decimal(fee_percentage))


def price_actual(
    breakdown: HoursBreakdown,
    hourly_rate: MoneyValue,
    overtime_multiplier: MoneyValue,
    fee_percentage: MoneyValue,
) -> PaymentAmounts:
    """Price a settlement from a real hours breakdown."""
    rate = to_decimal(hourly_rate)
    regular_amount = round_money(breakdown.regular_hours * rate)
    overtime_amount = round_money(
        breakdown.overtime_hours * rate * to_decimal(overtime_multiplier)
    )
    return _with_fee(
        breakdown.regular_hours,
        regular_amount,
        breakdown.overtime_hours,
        overtime_amount,
        to_decimal(fee_percentage),
    )
