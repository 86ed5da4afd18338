import dataclasses
from datetime import date
from decimal import Decimal

from apps.corecode.calendar import BillingCycle
from apps.finance.ledger import record_fee_payment
from apps.finance.schedule import rebuild_fee_schedule
from apps.finance.totals import (
    calculate_expected_to_date,
    calculate_outstanding_from_enrollment,
    calculate_school_fees_outstanding,
    calculate_student_totals,
    calculate_total_outstanding_from_enrollment,
    get_outstanding_breakdown,
    tuition_component,
    validate_payment_calculations,
)
from apps.finance.transport import activate_transport
from conftest import make_student

MONTHLY = BillingCycle.MONTHLY


def test_expected_to_date_in_march(march_15, student):
    assert calculate_expected_to_date(student, MONTHLY, march_15) == Decimal("150.00")
    summary = calculate_outstanding_from_enrollment(student, MONTHLY, march_15)
    assert summary == (Decimal("150.00"), Decimal("0"), Decimal("150.00"))


def test_totals_after_first_payment(settings_monthly, march_15, student):
    student = record_fee_payment(student, 1, "50", settings_monthly, march_15).student
    totals = calculate_student_totals(student, MONTHLY, march_15)
    assert totals.total_paid == Decimal("50.00")
    assert totals.total_owed == Decimal("100.00")
    assert totals.annual_fee == Decimal("600.00")
    assert totals.school_fees_paid == Decimal("50.00")


def test_overpayment_offsets_only_in_student_totals(settings_monthly, march_15, student):
    student = record_fee_payment(student, 1, "100", settings_monthly, march_15).student

    # per-period outstanding never goes negative, so period 1 cannot offset 2 and 3
    assert calculate_outstanding_from_enrollment(student, MONTHLY, march_15).total == Decimal("100.00")
    assert calculate_student_totals(student, MONTHLY, march_15).total_owed == Decimal("50.00")


def test_pre_admission_periods_are_excluded(settings_monthly):
    as_of = date(2025, 6, 30)
    student = make_student(settings_monthly, as_of, admission_date=date(2025, 4, 18))
    # a stale record left over from an earlier schedule
    payments = list(student.fee_payments)
    payments[0] = dataclasses.replace(payments[0], amount_paid=Decimal("50.00"), outstanding_amount=Decimal("0"))
    student = dataclasses.replace(student, fee_payments=tuple(payments))

    assert calculate_school_fees_outstanding(student, MONTHLY, as_of) == Decimal("150.00")
    totals = calculate_student_totals(student, MONTHLY, as_of)
    assert totals.expected_to_date == Decimal("150.00")
    assert totals.total_paid == Decimal("0.00")
    breakdown = get_outstanding_breakdown(student, MONTHLY, as_of)
    assert breakdown.total_periods_since_admission == 3
    assert [row['period'] for row in breakdown.unpaid_periods] == [4, 5, 6]
    assert breakdown.unpaid_periods[0]['period_name'] == "April"


def test_termly_outstanding(settings_termly):
    as_of = date(2025, 6, 1)
    student = make_student(settings_termly, as_of)
    summary = calculate_outstanding_from_enrollment(student, BillingCycle.TERMLY, as_of)
    assert summary.tuition == Decimal("100.00")


def test_transport_reported_separately(settings_monthly, march_15, student):
    student = activate_transport(student, "20", date(2025, 3, 1), settings_monthly, march_15).student
    # the caller rebuilds after switching transport on
    student = rebuild_fee_schedule(student, settings_monthly, march_15)
    assert student.fee_payment(3).amount_due == Decimal("70.00")
    assert tuition_component(student.fee_payment(3), student) == Decimal("50.00")

    summary = calculate_outstanding_from_enrollment(student, MONTHLY, march_15)
    assert summary.tuition == Decimal("150.00")
    assert summary.transport == Decimal("20.00")

    totals = calculate_student_totals(student, MONTHLY, march_15)
    assert totals.expected_to_date == Decimal("170.00")
    assert totals.transport_fees_total == Decimal("20.00")
    # seven transport months, March to November
    assert totals.annual_fee == Decimal("600.00") + Decimal("140.00")


def test_malformed_collections_count_as_empty(march_15, student):
    broken = dataclasses.replace(student, fee_payments=None, transport_payments="oops", has_transport=True)
    assert calculate_outstanding_from_enrollment(broken, MONTHLY, march_15).total == 0
    assert calculate_student_totals(broken, MONTHLY, march_15).total_owed == 0
    total = calculate_total_outstanding_from_enrollment([broken, student], MONTHLY, march_15)
    assert total == Decimal("150.00")
    assert not validate_payment_calculations(broken).is_valid


def test_validation_reports_without_correcting(settings_monthly, march_15, student):
    assert validate_payment_calculations(student).is_valid

    payments = list(student.fee_payments)
    payments[0] = dataclasses.replace(payments[0], outstanding_amount=Decimal("10.00"))
    payments[1] = dataclasses.replace(
        payments[1], amount_paid=Decimal("60.00"), outstanding_amount=Decimal("0"), paid=True,
    )
    broken = dataclasses.replace(student, fee_payments=tuple(payments))

    report = validate_payment_calculations(broken)
    assert not report.is_valid
    assert any("mismatch" in error for error in report.errors)
    assert any("exceeds" in warning for warning in report.warnings)
    assert broken.fee_payments[0].outstanding_amount == Decimal("10.00")
