import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from . import config

WHOLE = Decimal("1")
HOURS_PER_DAY = 24


@dataclass(frozen=True)
class PriceBreakdown:
    billable_days: int
    base_price: Decimal
    gst_amount: Decimal
    total_price: Decimal
    advance_amount: Decimal
    balance_amount: Decimal


def round_amount(value: Decimal) -> Decimal:
    return value.quantize(WHOLE, rounding=ROUND_HALF_UP)


def billable_days(duration_hours: int) -> int:
    return max(1, math.ceil(duration_hours / HOURS_PER_DAY))


def compute_price(
    daily_rate: Decimal,
    duration_hours: int,
    gst_rate: Decimal | None = None,
    advance_rate: Decimal | None = None,
) -> PriceBreakdown:
    """Daily rate times started days, plus GST, split into advance and balance.

    Tax and advance are rounded half-up to whole currency units, so
    ``total == base + tax`` and ``advance + balance == total`` hold exactly.
    """
    gst_rate = config.GST_RATE if gst_rate is None else gst_rate
    advance_rate = config.ADVANCE_RATE if advance_rate is None else advance_rate

    days = billable_days(duration_hours)
    base = Decimal(daily_rate) * days
    tax = round_amount(base * gst_rate)
    total = base + tax
    advance = round_amount(total * advance_rate)

    return PriceBreakdown(
        billable_days=days,
        base_price=base,
        gst_amount=tax,
        total_price=total,
        advance_amount=advance,
        balance_amount=total - advance,
    )


def to_minor_units(amount: Decimal) -> int:
    """Major currency units to integer paise/cents."""
    return int((Decimal(amount) * 100).quantize(WHOLE, rounding=ROUND_HALF_UP))
