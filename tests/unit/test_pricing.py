from decimal import Decimal

import pytest

from heavyrent.pricing import billable_days, compute_price, to_minor_units


def test_short_rental_bills_one_day_with_gst_and_advance():
    price = compute_price(Decimal("1200"), 4)

    assert price.billable_days == 1
    assert price.base_price == Decimal("1200")
    assert price.gst_amount == Decimal("216")
    assert price.total_price == Decimal("1416")
    assert price.advance_amount == Decimal("425")
    assert price.balance_amount == Decimal("991")


@pytest.mark.parametrize("hours,days", [(1, 1), (24, 1), (25, 2), (48, 2), (49, 3), (720, 30)])
def test_billable_days_rounds_up_started_days(hours, days):
    assert billable_days(hours) == days


def test_totals_always_add_up():
    for rate in ("999", "1250.50", "7345", "15000"):
        for hours in (3, 26, 100):
            p = compute_price(Decimal(rate), hours)
            assert p.total_price == p.base_price + p.gst_amount
            assert p.advance_amount + p.balance_amount == p.total_price


def test_rates_can_be_overridden():
    p = compute_price(Decimal("1000"), 24, gst_rate=Decimal("0"), advance_rate=Decimal("0.5"))
    assert p.total_price == Decimal("1000")
    assert p.advance_amount == Decimal("500")


def test_minor_units_round_half_up():
    assert to_minor_units(Decimal("425")) == 42500
    assert to_minor_units(Decimal("1416.005")) == 141601
    assert to_minor_units(Decimal("0.01")) == 1
