"""
Calendar and billing-period helpers.

A period is a calendar month under the monthly cycle, or one of three fixed
terms under the termly cycle. Nothing here reads the clock; callers pass the
date they care about.
"""
import calendar
from datetime import date

from django.db import models
from django.utils.translation import gettext_lazy as _


class BillingCycle(models.TextChoices):
    MONTHLY = 'MONTHLY', _('Monthly')
    TERMLY = 'TERMLY', _('Termly')


# term number -> months it covers
TERMS = {
    1: (1, 2, 3, 4),
    2: (5, 6, 7, 8),
    3: (9, 10, 11, 12),
}

# April, August and December are end-of-term breaks with no transport.
TRANSPORT_MONTHS = (1, 2, 3, 5, 6, 7, 9, 10, 11)

MONTH_NAMES = tuple(calendar.month_name[m] for m in range(1, 13))


def _is_termly(cycle):
    return cycle == BillingCycle.TERMLY


def periods_for(cycle):
    """Ordered period numbers of a cycle."""
    if _is_termly(cycle):
        return tuple(TERMS)
    return tuple(range(1, 13))


def period_of(day, cycle):
    """Map a date to its period number."""
    if not _is_termly(cycle):
        return day.month
    for term, months in TERMS.items():
        if day.month in months:
            return term
    return None


def period_start(year, period, cycle):
    """
    First day of a period, or None when the period number is not part of
    the cycle.
    """
    if _is_termly(cycle):
        months = TERMS.get(period)
        if months is None:
            return None
        return date(year, months[0], 1)
    if not isinstance(period, int) or not 1 <= period <= 12:
        return None
    return date(year, period, 1)


def period_end(year, period, cycle):
    """Last day of a period, or None for unknown periods."""
    if _is_termly(cycle):
        months = TERMS.get(period)
        if months is None:
            return None
        last_month = months[-1]
    else:
        if not isinstance(period, int) or not 1 <= period <= 12:
            return None
        last_month = period
    return date(year, last_month, calendar.monthrange(year, last_month)[1])


def month_start(day):
    return date(day.year, day.month, 1)


def is_transport_month(month):
    return month in TRANSPORT_MONTHS


def month_name(month):
    if 1 <= month <= 12:
        return MONTH_NAMES[month - 1]
    return f"Month {month}"


def short_month_name(month):
    if 1 <= month <= 12:
        return calendar.month_abbr[month]
    return f"M{month}"


def period_name(period, cycle):
    """Display label for a period: a month name or "Term N"."""
    if _is_termly(cycle):
        return f"Term {period}"
    if isinstance(period, int) and 1 <= period <= 12:
        return MONTH_NAMES[period - 1]
    return f"Month {period}"


def due_date_for(year, period, cycle, due_day):
    """
    Due date of a period: `due_day` of the period's first month, clamped to
    the month's length.
    """
    start = period_start(year, period, cycle)
    if start is None:
        return None
    last_day = calendar.monthrange(year, start.month)[1]
    day = max(1, min(int(due_day or 1), last_day))
    return date(year, start.month, day)


def transport_months_for_display():
    return [
        {'month': month, 'name': month_name(month), 'short_name': short_month_name(month)}
        for month in TRANSPORT_MONTHS
    ]


def parse_month_day(value):
    """
    Parse a "MM-DD" string into a (month, day) tuple.

    Raises ValueError for anything that is not a valid calendar month-day.
    """
    try:
        month_part, day_part = str(value).strip().split('-')
        month, day = int(month_part), int(day_part)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid month-day value: {value!r}")
    # 2000 is a leap year, so 02-29 is accepted
    try:
        date(2000, month, day)
    except ValueError:
        raise ValueError(f"Invalid month-day value: {value!r}")
    return month, day


def is_promotion_date(day, promotion_date):
    month, dom = parse_month_day(promotion_date)
    return (day.month, day.day) == (month, dom)


def age_on(date_of_birth, as_of):
    if not date_of_birth:
        return None
    born = date_of_birth
    return as_of.year - born.year - ((as_of.month, as_of.day) < (born.month, born.day))
