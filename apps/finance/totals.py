"""
Outstanding and totals calculations.

Two outstanding figures are kept distinct on purpose:

* ``calculate_outstanding_from_enrollment`` sums the stored per-period
  outstanding amounts from the admission month up to ``as_of``.
* ``calculate_student_totals`` compares what was expected by ``as_of`` with
  what was paid and clamps the difference at zero for the whole student, so
  an overpaid period offsets an underpaid one.

Nothing here modifies a record. Periods before the admission month are left
out of every figure.
"""
import logging

from django.utils.translation import gettext as _

from apps.corecode.calendar import period_name, period_start
from apps.corecode.utils import ZERO, TOLERANCE, outstanding_of
from apps.finance.results import OutstandingBreakdown, OutstandingSummary, StudentTotals, ValidationReport
from apps.finance.schedule import enrollment_start
from apps.finance.transport import calculate_transport_outstanding, counted_transport_payments

logger = logging.getLogger(__name__)


def _fee_payments(student):
    payments = student.fee_payments
    if not isinstance(payments, tuple):
        logger.warning("Student %s has malformed fee payments; treating as empty", student.id)
        return ()
    return payments


def _enrolled_periods(student, cycle, as_of, up_to_date=True):
    """
    Yield (payment, start) for periods on or after the admission month,
    optionally only those that have started by `as_of`.
    """
    admission_start = enrollment_start(student, as_of.year)
    for payment in _fee_payments(student):
        start = period_start(as_of.year, payment.period, cycle)
        if start is None or start < admission_start:
            continue
        if up_to_date and start > as_of:
            continue
        yield payment, start


def transport_component(payment, student):
    if student.has_transport and not payment.is_transport_waived and not payment.is_skipped:
        return student.transport_fee
    return ZERO


def tuition_component(payment, student):
    """Tuition-only part of a period's amount due."""
    return max(ZERO, payment.amount_due - transport_component(payment, student))


def calculate_school_fees_outstanding(student, cycle, as_of):
    """Tuition outstanding for periods from the admission month to `as_of`."""
    outstanding = ZERO
    for payment, _start in _enrolled_periods(student, cycle, as_of):
        if payment.is_skipped:
            continue
        outstanding += max(ZERO, payment.outstanding_amount - transport_component(payment, student))
    return outstanding


def calculate_outstanding_from_enrollment(student, cycle, as_of):
    tuition = calculate_school_fees_outstanding(student, cycle, as_of)
    transport = calculate_transport_outstanding(student, as_of)
    return OutstandingSummary(tuition=tuition, transport=transport, total=tuition + transport)


def calculate_total_outstanding_from_enrollment(students, cycle, as_of):
    return sum(
        (calculate_outstanding_from_enrollment(student, cycle, as_of).total for student in students),
        ZERO,
    )


def calculate_expected_to_date(student, cycle, as_of):
    """Tuition plus transport that should have been billed by `as_of`."""
    expected = ZERO
    for payment, _start in _enrolled_periods(student, cycle, as_of):
        if not payment.is_skipped:
            expected += tuition_component(payment, student)
    for payment in counted_transport_payments(student, as_of):
        if not payment.is_skipped:
            expected += payment.amount_due
    return expected


def calculate_student_totals(student, cycle, as_of):
    school_fees_total = school_fees_paid = ZERO
    paid_to_date = ZERO

    for payment, start in _enrolled_periods(student, cycle, as_of, up_to_date=False):
        if payment.is_skipped:
            continue
        school_fees_total += tuition_component(payment, student)
        school_fees_paid += payment.amount_paid
        if start <= as_of:
            paid_to_date += payment.amount_paid

    transport_fees_total = transport_paid = transport_outstanding = ZERO
    for payment in counted_transport_payments(student, as_of):
        if payment.is_skipped:
            continue
        transport_fees_total += payment.amount_due
        transport_paid += payment.amount_paid
        transport_outstanding += payment.outstanding_amount

    annual_transport = ZERO
    if student.has_transport and isinstance(student.transport_payments, tuple):
        annual_transport = sum(
            (p.amount_due for p in student.transport_payments if not p.is_skipped),
            ZERO,
        )

    expected_to_date = calculate_expected_to_date(student, cycle, as_of)
    total_paid = paid_to_date + transport_paid

    return StudentTotals(
        total_paid=total_paid,
        total_owed=max(ZERO, expected_to_date - total_paid),
        expected_to_date=expected_to_date,
        annual_fee=school_fees_total + annual_transport,
        school_fees_total=school_fees_total,
        school_fees_paid=school_fees_paid,
        school_fees_outstanding=calculate_school_fees_outstanding(student, cycle, as_of),
        transport_fees_total=transport_fees_total,
        transport_paid=transport_paid,
        transport_outstanding=transport_outstanding,
    )


def get_outstanding_breakdown(student, cycle, as_of):
    total_periods = 0
    unpaid_periods = []
    for payment, _start in _enrolled_periods(student, cycle, as_of):
        total_periods += 1
        if payment.outstanding_amount > TOLERANCE:
            unpaid_periods.append({
                'period': payment.period,
                'outstanding_amount': payment.outstanding_amount,
                'period_name': period_name(payment.period, cycle),
            })

    summary = calculate_outstanding_from_enrollment(student, cycle, as_of)
    transport_payments = student.transport_payments if isinstance(student.transport_payments, tuple) else ()
    return OutstandingBreakdown(
        total_periods_since_admission=total_periods,
        unpaid_periods=unpaid_periods,
        school_fees_outstanding=summary.tuition,
        transport_outstanding=summary.transport,
        total_outstanding=summary.total,
        transport_skipped_months=[p.month for p in transport_payments if p.is_skipped],
    )


def validate_payment_calculations(student):
    """
    Check stored records for arithmetic problems. Reports, never corrects.

    Returns: ValidationReport(is_valid, errors, warnings)
    """
    errors = []
    warnings = []

    if not isinstance(student.fee_payments, tuple):
        errors.append(_("Fee payments are missing or invalid"))
        return ValidationReport(False, errors, warnings)

    for index, payment in enumerate(student.fee_payments, start=1):
        label = _("Payment %(index)s") % {'index': index}
        if payment.amount_paid < 0:
            errors.append(_("%(label)s: Amount paid cannot be negative") % {'label': label})
        if payment.amount_due < 0:
            errors.append(_("%(label)s: Amount due cannot be negative") % {'label': label})
        if payment.amount_paid > payment.amount_due:
            warnings.append(_("%(label)s: Amount paid exceeds amount due") % {'label': label})
        expected = outstanding_of(payment.amount_due, payment.amount_paid)
        if abs(payment.outstanding_amount - expected) > TOLERANCE:
            errors.append(_("%(label)s: Outstanding amount calculation mismatch") % {'label': label})
        if payment.paid and payment.outstanding_amount > TOLERANCE:
            warnings.append(_("%(label)s: Marked as paid but has outstanding amount") % {'label': label})
        if payment.is_skipped and (payment.amount_due or payment.amount_paid or not payment.paid):
            errors.append(_("%(label)s: Skipped period still carries amounts") % {'label': label})

    if student.has_transport and isinstance(student.transport_payments, tuple):
        for index, payment in enumerate(student.transport_payments, start=1):
            label = _("Transport Payment %(index)s") % {'index': index}
            if payment.amount_paid < 0:
                errors.append(_("%(label)s: Amount paid cannot be negative") % {'label': label})
            if payment.amount_due < 0:
                errors.append(_("%(label)s: Amount due cannot be negative") % {'label': label})
            expected = outstanding_of(payment.amount_due, payment.amount_paid)
            if abs(payment.outstanding_amount - expected) > TOLERANCE:
                errors.append(_("%(label)s: Outstanding amount calculation mismatch") % {'label': label})

    if errors:
        logger.warning("Payment records of %s failed validation: %s", student.id, errors)
    return ValidationReport(not errors, errors, warnings)
