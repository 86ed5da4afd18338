from datetime import date

import pytest

from apps.corecode.calendar import (
    TRANSPORT_MONTHS,
    BillingCycle,
    age_on,
    due_date_for,
    is_promotion_date,
    is_transport_month,
    month_name,
    parse_month_day,
    period_end,
    period_name,
    period_of,
    period_start,
    periods_for,
    transport_months_for_display,
)


def test_periods_per_cycle():
    assert periods_for(BillingCycle.MONTHLY) == tuple(range(1, 13))
    assert periods_for(BillingCycle.TERMLY) == (1, 2, 3)


@pytest.mark.parametrize("day, cycle, expected", [
    (date(2025, 4, 30), BillingCycle.TERMLY, 1),
    (date(2025, 5, 1), BillingCycle.TERMLY, 2),
    (date(2025, 12, 31), BillingCycle.TERMLY, 3),
    (date(2025, 7, 9), BillingCycle.MONTHLY, 7),
])
def test_period_of(day, cycle, expected):
    assert period_of(day, cycle) == expected


def test_period_start_and_end():
    assert period_start(2025, 2, BillingCycle.TERMLY) == date(2025, 5, 1)
    assert period_end(2025, 2, BillingCycle.TERMLY) == date(2025, 8, 31)
    assert period_end(2024, 2, BillingCycle.MONTHLY) == date(2024, 2, 29)


def test_out_of_range_period_returns_none():
    assert period_start(2025, 13, BillingCycle.MONTHLY) is None
    assert period_start(2025, 4, BillingCycle.TERMLY) is None
    assert period_end(2025, 0, BillingCycle.MONTHLY) is None
    assert due_date_for(2025, 0, BillingCycle.MONTHLY, 5) is None


def test_due_date_is_clamped_to_month_length():
    assert due_date_for(2025, 2, BillingCycle.MONTHLY, 31) == date(2025, 2, 28)
    assert due_date_for(2025, 3, BillingCycle.TERMLY, 10) == date(2025, 9, 10)


def test_transport_months_skip_term_breaks():
    assert len(TRANSPORT_MONTHS) == 9
    for month in (4, 8, 12):
        assert not is_transport_month(month)
    assert [row['month'] for row in transport_months_for_display()] == list(TRANSPORT_MONTHS)


def test_names():
    assert month_name(3) == "March"
    assert period_name(2, BillingCycle.TERMLY) == "Term 2"
    assert period_name(13, BillingCycle.MONTHLY) == "Month 13"


def test_parse_month_day():
    assert parse_month_day("02-29") == (2, 29)
    for bad in ("13-01", "02-30", "0101", "", None):
        with pytest.raises(ValueError):
            parse_month_day(bad)


def test_is_promotion_date():
    assert is_promotion_date(date(2025, 1, 1), "01-01")
    assert not is_promotion_date(date(2025, 1, 2), "01-01")


def test_age_on():
    assert age_on(date(2015, 6, 15), date(2025, 6, 14)) == 9
    assert age_on(date(2015, 6, 15), date(2025, 6, 15)) == 10
    assert age_on(None, date(2025, 1, 1)) is None
