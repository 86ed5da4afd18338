from datetime import date
from decimal import Decimal

import pytest

from apps.finance.ledger import record_fee_payment, record_transport_payment, toggle_transport_skip
from apps.finance.results import TransportStatusType
from apps.finance.schedule import rebuild_fee_schedule
from apps.finance.transport import (
    activate_transport,
    calculate_transport_outstanding,
    deactivate_transport,
    first_billed_month,
    get_transport_payment_status,
    get_transport_summary,
    initialize_transport_payments,
)


def test_activation_from_march(settings_monthly, march_15, student):
    result = activate_transport(student, "20", date(2025, 3, 1), settings_monthly, march_15)

    assert result.applied
    active = result.student
    assert active.has_transport
    assert active.transport_fee == Decimal("20.00")
    assert [p.month for p in active.transport_payments] == [3, 5, 6, 7, 9, 10, 11]
    assert all(p.amount_due == p.outstanding_amount == Decimal("20.00") for p in active.transport_payments)
    assert active.transport_payment(3).due_date == date(2025, 3, 7)
    # tuition records are untouched until rebuilt or paid against
    assert active.fee_payments == student.fee_payments
    touched = record_fee_payment(active, 3, "0", settings_monthly, march_15).student
    assert touched.fee_payment(3).amount_due == Decimal("70.00")


@pytest.mark.parametrize("fee, activation", [("0", date(2025, 3, 1)), ("-5", date(2025, 3, 1)), ("20", None)])
def test_activation_refused(settings_monthly, march_15, student, fee, activation):
    result = activate_transport(student, fee, activation, settings_monthly, march_15)
    assert not result.applied
    assert result.student is student


def test_first_billed_month_across_years():
    assert first_billed_month(date(2024, 9, 1), 2025) == 1
    assert first_billed_month(date(2026, 2, 1), 2025) == 13
    assert first_billed_month(date(2025, 6, 3), 2025) == 6


def test_activation_in_later_year_bills_nothing(settings_monthly, march_15):
    assert initialize_transport_payments(Decimal("20"), date(2026, 1, 1), settings_monthly, march_15) == ()


def test_deactivation_removes_transport_component(settings_monthly, march_15, student):
    active = activate_transport(student, "20", date(2025, 3, 1), settings_monthly, march_15).student
    active = rebuild_fee_schedule(active, settings_monthly, march_15)
    active = record_fee_payment(active, 3, "50", settings_monthly, march_15).student
    assert active.fee_payment(3).outstanding_amount == Decimal("20.00")

    result = deactivate_transport(active, settings_monthly)

    assert result.applied
    inactive = result.student
    assert not inactive.has_transport
    assert inactive.transport_payments == ()
    assert inactive.transport_fee == 0
    assert inactive.transport_activation_date is None
    for payment in inactive.fee_payments:
        assert payment.is_transport_waived
        assert payment.amount_due == Decimal("50.00")
    assert inactive.fee_payment(3).outstanding_amount == Decimal("0.00")
    assert inactive.fee_payment(3).paid


def test_deactivation_leaves_periods_without_component(settings_monthly, march_15, student):
    # activated but never rebuilt: stored amounts hold tuition only
    active = activate_transport(student, "20", date(2025, 3, 1), settings_monthly, march_15).student
    inactive = deactivate_transport(active, settings_monthly).student
    assert {p.amount_due for p in inactive.fee_payments} == {Decimal("50.00")}


def test_deactivation_requires_active_transport(settings_monthly, student):
    result = deactivate_transport(student, settings_monthly)
    assert not result.applied
    assert result.student is student


def test_reactivation_starts_a_new_history(settings_monthly, march_15, student):
    active = activate_transport(student, "20", date(2025, 3, 1), settings_monthly, march_15).student
    active = record_transport_payment(active, 3, "20", settings_monthly, march_15).student
    inactive = deactivate_transport(active, settings_monthly).student

    later = date(2025, 6, 10)
    again = activate_transport(inactive, "20", date(2025, 6, 1), settings_monthly, later).student

    assert [p.month for p in again.transport_payments] == [6, 7, 9, 10, 11]
    assert all(p.amount_paid == 0 for p in again.transport_payments)


def test_outstanding_counts_due_months_only(settings_monthly, student):
    as_of = date(2025, 6, 20)
    active = activate_transport(student, "20", date(2025, 3, 1), settings_monthly, as_of).student
    active = toggle_transport_skip(active, 5, True, settings_monthly, as_of).student

    # March and June; May is skipped, later months are not due yet
    assert calculate_transport_outstanding(active, as_of) == Decimal("40.00")

    summary = get_transport_summary(active, as_of)
    assert summary.skipped_months == [5]
    assert summary.active_months == 3
    assert summary.total_due == Decimal("40.00")


def test_payment_status(settings_monthly, student):
    as_of = date(2025, 6, 20)
    active = activate_transport(student, "20", date(2025, 3, 1), settings_monthly, as_of).student
    active = record_transport_payment(active, 3, "20", settings_monthly, as_of).student
    active = toggle_transport_skip(active, 7, True, settings_monthly, as_of).student

    def status(month):
        return get_transport_payment_status(active.transport_payment(month), as_of).status_type

    assert status(3) == TransportStatusType.PAID_IN_FULL
    assert status(5) == TransportStatusType.UNPAID
    assert status(6) == TransportStatusType.UNPAID
    assert status(7) == TransportStatusType.SKIPPED
    assert status(9) == TransportStatusType.FUTURE
    assert get_transport_payment_status(None, as_of).status_type == TransportStatusType.FUTURE
