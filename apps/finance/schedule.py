"""
Fee schedule builder.

Builds the full-year tuition schedule of a student: one FeePayment per
period of the billing cycle. Rebuilding keeps whatever was already paid,
skipped or waived for a period; it only corrects what is due.
"""
import dataclasses
import logging
from datetime import date

from apps.corecode.calendar import due_date_for, month_start, period_start, periods_for
from apps.corecode.utils import ZERO, TOLERANCE, is_settled, outstanding_of
from apps.finance.exceptions import ClassGroupNotFound
from apps.students.records import FeePayment

logger = logging.getLogger(__name__)

# Editing any of these changes what is due, so the schedule must be rebuilt.
FEE_AFFECTING_FIELDS = (
    'admission_date',
    'has_transport',
    'transport_fee',
    'has_custom_fees',
    'custom_school_fee',
)


def base_fee(student, settings):
    """Per-period tuition before any transport component."""
    if student.has_custom_fees and student.custom_school_fee > 0:
        return student.custom_school_fee
    return settings.standard_fee_for(student.class_group)


def enrollment_start(student, year):
    """First day of the admission month; students without one count from January."""
    if student.admission_date is None:
        return date(year, 1, 1)
    return month_start(student.admission_date)


def includes_transport(student, start, admission_start, waived=False):
    return bool(student.has_transport) and not waived and start >= admission_start


def period_amount_due(student, period, settings, year, waived=False):
    """Tuition due for one period under the student's current configuration."""
    amount_due = base_fee(student, settings)
    start = period_start(year, period, settings.billing_cycle)
    if start is not None and includes_transport(student, start, enrollment_start(student, year), waived):
        amount_due += student.transport_fee
    return amount_due


def _existing_by_period(student):
    payments = student.fee_payments if isinstance(student.fee_payments, tuple) else ()
    return {payment.period: payment for payment in payments}


def build_fee_payments(student, settings, as_of):
    """
    Return the tuple of FeePayment records for the year of `as_of`.

    Existing records (keyed by period) keep their amount paid, paid date,
    due date and skip/waiver flags; amount due and outstanding are always
    recomputed.
    """
    cycle = settings.billing_cycle
    year = as_of.year
    existing = _existing_by_period(student)

    payments = []
    for period in periods_for(cycle):
        previous = existing.get(period)
        waived = previous.is_transport_waived if previous else False
        skipped = previous.is_skipped if previous else False
        due_date = (previous.due_date if previous and previous.due_date
                    else due_date_for(year, period, cycle, settings.payment_due_date))

        if skipped:
            payments.append(FeePayment(
                period=period,
                amount_due=ZERO,
                amount_paid=ZERO,
                outstanding_amount=ZERO,
                paid=True,
                due_date=due_date,
                paid_date=previous.paid_date,
                is_transport_waived=waived,
                is_skipped=True,
            ))
            continue

        amount_due = period_amount_due(student, period, settings, year, waived)

        amount_paid = previous.amount_paid if previous else ZERO
        outstanding = outstanding_of(amount_due, amount_paid)
        payments.append(FeePayment(
            period=period,
            amount_due=amount_due,
            amount_paid=amount_paid,
            outstanding_amount=outstanding,
            paid=is_settled(outstanding),
            due_date=due_date,
            paid_date=previous.paid_date if previous else None,
            is_transport_waived=waived,
            is_skipped=False,
        ))
    return tuple(payments)


def owed_since_admission(payments, student, cycle, year):
    """Sum of outstanding for post-admission periods that are still open."""
    admission_start = enrollment_start(student, year)
    total = ZERO
    for payment in payments:
        start = period_start(year, payment.period, cycle)
        if start is None or start < admission_start:
            continue
        if payment.outstanding_amount > TOLERANCE:
            total += payment.outstanding_amount
    return total


def rebuild_fee_schedule(student, settings, as_of):
    """Replace the student's schedule and recompute `total_owed`."""
    payments = build_fee_payments(student, settings, as_of)
    total_owed = owed_since_admission(payments, student, settings.billing_cycle, as_of.year)
    logger.debug(
        "Rebuilt %s fee periods for student %s (owed=%s)",
        len(payments), student.id, total_owed,
    )
    return dataclasses.replace(student, fee_payments=payments, total_owed=total_owed)


def initialize_fee_payments(student, settings, as_of):
    """Fresh schedule with no payment history, as used on enrolment and promotion."""
    cleared = dataclasses.replace(student, fee_payments=(), total_paid=ZERO, total_owed=ZERO)
    return rebuild_fee_schedule(cleared, settings, as_of)


def needs_fee_rebuild(before, after):
    return any(
        getattr(before, name) != getattr(after, name)
        for name in FEE_AFFECTING_FIELDS
    )


def apply_student_edit(before, after, settings, as_of):
    """
    Accept an edited student record, rebuilding the schedule only when a
    fee-affecting field changed.
    """
    if not needs_fee_rebuild(before, after):
        return after
    logger.info("Fee-affecting edit on student %s; rebuilding schedule", after.id)
    return rebuild_fee_schedule(after, settings, as_of)


def rebuild_for_class_group(students, class_group_id, settings, as_of):
    """
    Rebuild every student of a class group after its standard fee changed.

    Returns the full list with the affected students replaced.
    """
    if settings.class_group(class_group_id) is None:
        raise ClassGroupNotFound(class_group_id)
    rebuilt = []
    count = 0
    for student in students:
        if student.class_group == class_group_id:
            student = rebuild_fee_schedule(student, settings, as_of)
            count += 1
        rebuilt.append(student)
    logger.info("Rebuilt fee schedules for %s students in class group %s", count, class_group_id)
    return rebuilt
