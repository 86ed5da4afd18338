"""
Transport lifecycle: activation, deactivation and the transport side of
outstanding balances.

A student is either inactive (no transport, no transport payments) or
active with one TransportPayment per billed month from the activation month
onwards. Deactivation throws the transport history away.
"""
import dataclasses
import logging

from django.utils.translation import gettext as _

from apps.corecode.calendar import TRANSPORT_MONTHS, BillingCycle, due_date_for, month_name
from apps.corecode.utils import ZERO, TOLERANCE, is_settled, outstanding_of, validate_payment_amount
from apps.finance.results import LedgerResult, TransportStatus, TransportStatusType, TransportSummary
from apps.finance.schedule import base_fee
from apps.students.records import TransportPayment

logger = logging.getLogger(__name__)

DEFAULT_TRANSPORT_DUE_DAY = 7


def first_billed_month(activation_date, year):
    """
    First transport month that bills in `year`.

    An activation in an earlier year bills from January; one in a later
    year bills nothing (13).
    """
    if activation_date.year < year:
        return 1
    if activation_date.year > year:
        return 13
    return activation_date.month


def activation_month(student, as_of):
    if student.transport_activation_date is None:
        return as_of.month
    return first_billed_month(student.transport_activation_date, as_of.year)


def _transport_payments(student):
    if not student.has_transport or not isinstance(student.transport_payments, tuple):
        return ()
    return student.transport_payments


def counted_transport_payments(student, as_of):
    """Transport months that are due by `as_of`: on or after activation, not in the future."""
    first = activation_month(student, as_of)
    return tuple(
        payment for payment in _transport_payments(student)
        if first <= payment.month <= as_of.month
    )


def initialize_transport_payments(transport_fee, activation_date, settings, as_of):
    """Build the transport schedule for the year of `as_of`."""
    year = as_of.year
    first = first_billed_month(activation_date, year)
    due_day = settings.transport_due_date or DEFAULT_TRANSPORT_DUE_DAY
    return tuple(
        TransportPayment(
            month=month,
            month_name=month_name(month),
            amount_due=transport_fee,
            amount_paid=ZERO,
            outstanding_amount=transport_fee,
            paid=False,
            due_date=due_date_for(year, month, BillingCycle.MONTHLY, due_day),
            paid_date=None,
            is_active=True,
            is_skipped=False,
            is_waived=False,
        )
        for month in TRANSPORT_MONTHS
        if month >= first
    )


def activate_transport(student, transport_fee, activation_date, settings, as_of):
    """
    Turn transport on from `activation_date` at `transport_fee` a month.

    Tuition records are left alone; they pick the transport component up
    the next time they are rebuilt or touched.
    """
    is_valid, fee, message = validate_payment_amount(transport_fee)
    if not is_valid or fee <= 0:
        logger.warning("Refused transport activation for %s: fee=%r", student.id, transport_fee)
        return LedgerResult(False, student, message or _("Transport fee must be greater than zero"))
    if activation_date is None:
        return LedgerResult(False, student, _("An activation date is required"))

    payments = initialize_transport_payments(fee, activation_date, settings, as_of)
    updated = dataclasses.replace(
        student,
        has_transport=True,
        transport_fee=fee,
        transport_activation_date=activation_date,
        transport_payments=payments,
    )
    logger.info(
        "Transport activated for %s from %s at %s (%s months)",
        student.id, activation_date, fee, len(payments),
    )
    return LedgerResult(True, updated, _("Transport activated"))


def carries_transport(payment, student, settings):
    """Whether a stored tuition amount includes the transport component."""
    if payment.is_transport_waived or payment.is_skipped:
        return False
    return payment.amount_due - student.transport_fee >= base_fee(student, settings) - TOLERANCE


def deactivate_transport(student, settings):
    """
    Turn transport off.

    Transport payments are discarded and every tuition period not already
    waived is marked waived, with the transport component removed from the
    periods that carried it.
    """
    if not student.has_transport:
        return LedgerResult(False, student, _("Transport is not active for this student"))

    fee_payments = student.fee_payments if isinstance(student.fee_payments, tuple) else ()
    adjusted = []
    for payment in fee_payments:
        if payment.is_transport_waived:
            adjusted.append(payment)
            continue
        amount_due = payment.amount_due
        if carries_transport(payment, student, settings):
            amount_due = max(ZERO, amount_due - student.transport_fee)
        outstanding = outstanding_of(amount_due, payment.amount_paid)
        adjusted.append(dataclasses.replace(
            payment,
            amount_due=amount_due,
            outstanding_amount=ZERO if payment.is_skipped else outstanding,
            paid=True if payment.is_skipped else is_settled(outstanding),
            is_transport_waived=True,
        ))

    updated = dataclasses.replace(
        student,
        has_transport=False,
        transport_fee=ZERO,
        transport_activation_date=None,
        transport_payments=(),
        fee_payments=tuple(adjusted),
    )
    logger.info("Transport deactivated for %s", student.id)
    return LedgerResult(True, updated, _("Transport deactivated"))


def calculate_transport_outstanding(student, as_of):
    """Outstanding on transport months due by `as_of`, skipped months excluded."""
    return sum(
        (payment.outstanding_amount
         for payment in counted_transport_payments(student, as_of)
         if not payment.is_skipped),
        ZERO,
    )


def get_transport_summary(student, as_of):
    total_due = total_paid = total_outstanding = ZERO
    skipped_months = []
    active_months = paid_months = 0

    for payment in counted_transport_payments(student, as_of):
        if not payment.is_active:
            continue
        active_months += 1
        if payment.is_skipped:
            skipped_months.append(payment.month)
            continue
        total_due += payment.amount_due
        total_paid += payment.amount_paid
        total_outstanding += payment.outstanding_amount
        if payment.paid:
            paid_months += 1

    return TransportSummary(
        total_due=total_due,
        total_paid=total_paid,
        total_outstanding=total_outstanding,
        skipped_months=skipped_months,
        active_months=active_months,
        paid_months=paid_months,
    )


def get_transport_payment_status(payment, as_of):
    if payment is None:
        return TransportStatus(_("Unknown"), TransportStatusType.FUTURE)
    if not payment.is_active:
        return TransportStatus(_("Inactive"), TransportStatusType.FUTURE)
    if payment.is_skipped:
        return TransportStatus(_("Skipped"), TransportStatusType.SKIPPED)
    if payment.is_waived:
        return TransportStatus(_("Waived"), TransportStatusType.WAIVED)
    if payment.paid:
        return TransportStatus(_("Paid"), TransportStatusType.PAID_IN_FULL)
    if payment.outstanding_amount > 0:
        if payment.month < as_of.month:
            return TransportStatus(_("Overdue"), TransportStatusType.UNPAID)
        if payment.month == as_of.month:
            return TransportStatus(_("Due"), TransportStatusType.UNPAID)
    return TransportStatus(_("Pending"), TransportStatusType.FUTURE)
