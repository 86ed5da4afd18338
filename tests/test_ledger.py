import dataclasses
from datetime import date
from decimal import Decimal

import pytest

from apps.finance.ledger import (
    record_fee_payment,
    record_transport_payment,
    toggle_fee_skip,
    toggle_transport_month_waiver,
    toggle_transport_skip,
    toggle_transport_waiver,
    validate_payment_amount,
)
from apps.finance.transport import activate_transport
from conftest import make_student


@pytest.mark.parametrize("value", [None, "", "abc", "NaN", float("nan"), "Infinity", True])
def test_invalid_amounts(value):
    is_valid, amount, message = validate_payment_amount(value)
    assert not is_valid
    assert amount is None
    assert message


def test_negative_amount():
    assert validate_payment_amount("-5") == (False, None, "Amount cannot be negative")


def test_valid_amount_is_quantized():
    assert validate_payment_amount("12.345") == (True, Decimal("12.35"), "")
    assert validate_payment_amount(0)[0]


def test_pay_first_period(settings_monthly, march_15, student):
    result = record_fee_payment(student, 1, "50", settings_monthly, march_15)

    assert result.applied
    updated = result.student
    assert updated.fee_payment(1).outstanding_amount == Decimal("0.00")
    assert updated.fee_payment(1).paid
    assert updated.fee_payment(1).paid_date == march_15
    assert updated.fee_payment(2).outstanding_amount == Decimal("50.00")
    assert updated.fee_payment(3).outstanding_amount == Decimal("50.00")
    assert updated.total_paid == Decimal("50.00")
    assert updated.total_owed == Decimal("100.00")
    # the input record is never modified
    assert student.fee_payment(1).amount_paid == Decimal("0.00")


def test_payment_replaces_previous_amount(settings_monthly, march_15, student):
    student = record_fee_payment(student, 1, "20", settings_monthly, march_15).student
    student = record_fee_payment(student, 1, "45", settings_monthly, march_15).student
    assert student.fee_payment(1).amount_paid == Decimal("45.00")
    assert student.fee_payment(1).outstanding_amount == Decimal("5.00")
    assert not student.fee_payment(1).paid


def test_refused_payments_leave_student_unchanged(settings_monthly, march_15, student):
    for period, amount in ((1, "-10"), (1, "NaN"), (13, "50")):
        result = record_fee_payment(student, period, amount, settings_monthly, march_15)
        assert not result.applied
        assert result.student is student
        assert result.message


def test_malformed_payments_are_refused(settings_monthly, march_15, student):
    broken = dataclasses.replace(student, fee_payments=None)
    result = record_fee_payment(broken, 1, "10", settings_monthly, march_15)
    assert not result.applied


def test_skip_and_unskip_period(settings_monthly, march_15, student):
    student = record_fee_payment(student, 2, "10", settings_monthly, march_15).student

    skipped = toggle_fee_skip(student, 2, True, settings_monthly, march_15).student
    period = skipped.fee_payment(2)
    assert (period.amount_due, period.amount_paid, period.outstanding_amount) == (0, 0, 0)
    assert period.paid and period.is_skipped

    restored = toggle_fee_skip(skipped, 2, False, settings_monthly, march_15).student
    period = restored.fee_payment(2)
    assert period.amount_due == Decimal("50.00")
    assert period.outstanding_amount == Decimal("50.00")
    assert not period.paid and not period.is_skipped


def test_cannot_pay_a_skipped_period(settings_monthly, march_15, student):
    skipped = toggle_fee_skip(student, 2, True, settings_monthly, march_15).student
    result = record_fee_payment(skipped, 2, "50", settings_monthly, march_15)
    assert not result.applied
    assert result.student is skipped


def test_unskip_picks_up_transport(settings_monthly, march_15, student):
    student = activate_transport(student, "20", date(2025, 3, 1), settings_monthly, march_15).student
    skipped = toggle_fee_skip(student, 3, True, settings_monthly, march_15).student
    restored = toggle_fee_skip(skipped, 3, False, settings_monthly, march_15).student
    assert restored.fee_payment(3).amount_due == Decimal("70.00")


def test_transport_waiver_on_tuition_period(settings_monthly, march_15):
    student = make_student(
        settings_monthly, march_15, has_transport=True, transport_fee=Decimal("20"),
        transport_activation_date=date(2025, 1, 1),
    )
    assert student.fee_payment(5).amount_due == Decimal("70.00")

    waived = toggle_transport_waiver(student, 5, True, settings_monthly, march_15).student
    assert waived.fee_payment(5).amount_due == Decimal("50.00")
    assert waived.fee_payment(5).is_transport_waived

    unwaived = toggle_transport_waiver(waived, 5, False, settings_monthly, march_15).student
    assert unwaived.fee_payment(5).amount_due == Decimal("70.00")


def test_transport_payment_and_skip(settings_monthly, march_15, student):
    student = activate_transport(student, "20", date(2025, 3, 1), settings_monthly, march_15).student

    paid = record_transport_payment(student, 3, "20", settings_monthly, march_15)
    assert paid.applied
    assert paid.student.transport_payment(3).paid

    assert not record_transport_payment(student, 4, "20", settings_monthly, march_15).applied

    skipped = toggle_transport_skip(student, 5, True, settings_monthly, march_15).student
    assert skipped.transport_payment(5).amount_due == 0
    assert not record_transport_payment(skipped, 5, "20", settings_monthly, march_15).applied

    restored = toggle_transport_skip(skipped, 5, False, settings_monthly, march_15).student
    assert restored.transport_payment(5).amount_due == Decimal("20.00")


def test_transport_month_waiver(settings_monthly, march_15, student):
    student = activate_transport(student, "20", date(2025, 3, 1), settings_monthly, march_15).student
    waived = toggle_transport_month_waiver(student, 3, True, settings_monthly, march_15).student
    month = waived.transport_payment(3)
    assert month.is_waived and month.amount_due == 0 and month.paid


def test_transport_operations_need_active_transport(settings_monthly, march_15, student):
    result = record_transport_payment(student, 3, "20", settings_monthly, march_15)
    assert not result.applied
    assert result.student is student
