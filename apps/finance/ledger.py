"""
Payment ledger operations.

Each operation touches a single tuition period or transport month and
returns a LedgerResult. Bad input is refused with applied=False and the
student returned unchanged; nothing here raises for user mistakes.
"""
import dataclasses
import logging

from django.utils.translation import gettext as _

from apps.corecode.utils import ZERO, is_settled, outstanding_of, validate_payment_amount
from apps.finance.results import LedgerResult
from apps.finance.schedule import period_amount_due
from apps.finance.totals import calculate_student_totals

logger = logging.getLogger(__name__)

__all__ = [
    'LedgerResult',
    'record_fee_payment',
    'toggle_fee_skip',
    'toggle_transport_waiver',
    'record_transport_payment',
    'toggle_transport_skip',
    'toggle_transport_month_waiver',
    'validate_payment_amount',
    'refresh_totals',
]


def refresh_totals(student, settings, as_of):
    """Recompute the stored total_paid / total_owed figures."""
    totals = calculate_student_totals(student, settings.billing_cycle, as_of)
    return dataclasses.replace(student, total_paid=totals.total_paid, total_owed=totals.total_owed)


def _replace_fee_payment(student, updated):
    payments = tuple(
        updated if payment.period == updated.period else payment
        for payment in student.fee_payments
    )
    return dataclasses.replace(student, fee_payments=payments)


def _replace_transport_payment(student, updated):
    payments = tuple(
        updated if payment.month == updated.month else payment
        for payment in student.transport_payments
    )
    return dataclasses.replace(student, transport_payments=payments)


def _find_fee_payment(student, period):
    if not isinstance(student.fee_payments, tuple):
        return None
    return student.fee_payment(period)


def _find_transport_payment(student, month):
    if not student.has_transport or not isinstance(student.transport_payments, tuple):
        return None
    return student.transport_payment(month)


def _refuse(student, message):
    logger.warning("Ledger change refused for %s: %s", student.id, message)
    return LedgerResult(False, student, message)


def record_fee_payment(student, period, amount, settings, as_of):
    """
    Set the amount paid against one tuition period.

    The amount replaces what was recorded before. What is due is taken from
    the student's current fee and transport configuration, so a period
    touched after transport was switched on picks up the transport
    component.
    """
    is_valid, amount, message = validate_payment_amount(amount)
    if not is_valid:
        return LedgerResult(False, student, message)

    payment = _find_fee_payment(student, period)
    if payment is None:
        return _refuse(student, _("No fee period %(period)s for this student") % {'period': period})
    if payment.is_skipped:
        return _refuse(student, _("Period %(period)s is skipped; un-skip it before recording a payment") % {'period': period})

    amount_due = period_amount_due(
        student, period, settings, as_of.year, waived=payment.is_transport_waived,
    )
    outstanding = outstanding_of(amount_due, amount)
    updated = dataclasses.replace(
        payment,
        amount_due=amount_due,
        amount_paid=amount,
        outstanding_amount=outstanding,
        paid=is_settled(outstanding),
        paid_date=as_of if amount > 0 else None,
    )
    logger.debug("Recorded %s against period %s for %s", amount, period, student.id)
    student = refresh_totals(_replace_fee_payment(student, updated), settings, as_of)
    return LedgerResult(True, student, _("Payment recorded"))


def toggle_fee_skip(student, period, skip, settings, as_of):
    payment = _find_fee_payment(student, period)
    if payment is None:
        return _refuse(student, _("No fee period %(period)s for this student") % {'period': period})

    if skip:
        updated = dataclasses.replace(
            payment,
            amount_due=ZERO,
            amount_paid=ZERO,
            outstanding_amount=ZERO,
            paid=True,
            is_skipped=True,
        )
        message = _("Period skipped")
    else:
        amount_due = period_amount_due(
            student, period, settings, as_of.year, waived=payment.is_transport_waived,
        )
        outstanding = outstanding_of(amount_due, payment.amount_paid)
        updated = dataclasses.replace(
            payment,
            amount_due=amount_due,
            outstanding_amount=outstanding,
            paid=is_settled(outstanding),
            is_skipped=False,
        )
        message = _("Period restored")

    student = refresh_totals(_replace_fee_payment(student, updated), settings, as_of)
    return LedgerResult(True, student, message)


def toggle_transport_waiver(student, period, waive, settings, as_of):
    """Add or remove the transport component of one tuition period."""
    payment = _find_fee_payment(student, period)
    if payment is None:
        return _refuse(student, _("No fee period %(period)s for this student") % {'period': period})
    if payment.is_skipped:
        return _refuse(student, _("Period %(period)s is skipped") % {'period': period})

    amount_due = period_amount_due(student, period, settings, as_of.year, waived=waive)
    outstanding = outstanding_of(amount_due, payment.amount_paid)
    updated = dataclasses.replace(
        payment,
        amount_due=amount_due,
        outstanding_amount=outstanding,
        paid=is_settled(outstanding),
        is_transport_waived=bool(waive),
    )
    student = refresh_totals(_replace_fee_payment(student, updated), settings, as_of)
    return LedgerResult(True, student, _("Transport waived") if waive else _("Transport waiver removed"))


def record_transport_payment(student, month, amount, settings, as_of):
    is_valid, amount, message = validate_payment_amount(amount)
    if not is_valid:
        return LedgerResult(False, student, message)

    payment = _find_transport_payment(student, month)
    if payment is None:
        return _refuse(student, _("No transport month %(month)s for this student") % {'month': month})
    if payment.is_skipped:
        return _refuse(student, _("Transport month %(month)s is skipped") % {'month': month})

    outstanding = outstanding_of(payment.amount_due, amount)
    updated = dataclasses.replace(
        payment,
        amount_paid=amount,
        outstanding_amount=outstanding,
        paid=is_settled(outstanding),
        paid_date=as_of if amount > 0 else None,
    )
    student = refresh_totals(_replace_transport_payment(student, updated), settings, as_of)
    return LedgerResult(True, student, _("Transport payment recorded"))


def toggle_transport_skip(student, month, skip, settings, as_of):
    payment = _find_transport_payment(student, month)
    if payment is None:
        return _refuse(student, _("No transport month %(month)s for this student") % {'month': month})

    if skip:
        updated = dataclasses.replace(
            payment,
            amount_due=ZERO,
            amount_paid=ZERO,
            outstanding_amount=ZERO,
            paid=True,
            is_skipped=True,
        )
    else:
        amount_due = ZERO if payment.is_waived else student.transport_fee
        outstanding = outstanding_of(amount_due, payment.amount_paid)
        updated = dataclasses.replace(
            payment,
            amount_due=amount_due,
            outstanding_amount=outstanding,
            paid=is_settled(outstanding),
            is_skipped=False,
        )
    student = refresh_totals(_replace_transport_payment(student, updated), settings, as_of)
    return LedgerResult(True, student, _("Transport month skipped") if skip else _("Transport month restored"))


def toggle_transport_month_waiver(student, month, waive, settings, as_of):
    """Waive one transport month outright: nothing is due for it."""
    payment = _find_transport_payment(student, month)
    if payment is None:
        return _refuse(student, _("No transport month %(month)s for this student") % {'month': month})
    if payment.is_skipped:
        return _refuse(student, _("Transport month %(month)s is skipped") % {'month': month})

    amount_due = ZERO if waive else student.transport_fee
    outstanding = outstanding_of(amount_due, payment.amount_paid)
    updated = dataclasses.replace(
        payment,
        amount_due=amount_due,
        outstanding_amount=outstanding,
        paid=is_settled(outstanding),
        is_waived=bool(waive),
    )
    student = refresh_totals(_replace_transport_payment(student, updated), settings, as_of)
    return LedgerResult(True, student, _("Transport month waived") if waive else _("Transport month waiver removed"))
