"""
Finance utilities for collection reports and class breakdowns
"""
import logging
from decimal import Decimal

from apps.corecode.calendar import period_name, period_of, periods_for
from apps.corecode.utils import ZERO, TOLERANCE
from apps.finance.totals import calculate_outstanding_from_enrollment, calculate_student_totals

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')


def _percentage(part, whole):
    if whole <= 0:
        return ZERO
    rate = (part / whole * HUNDRED).quantize(Decimal('0.01'))
    return min(HUNDRED, max(ZERO, rate))


def _fee_payments(student):
    payments = student.fee_payments
    return payments if isinstance(payments, tuple) else ()


def calculate_period_collections(students, period):
    """Total paid against one period across all students."""
    total = ZERO
    for student in students:
        payment = next((p for p in _fee_payments(student) if p.period == period), None)
        if payment is not None:
            total += payment.amount_paid
    return total


def calculate_current_period_collections(students, cycle, as_of):
    """Collections for the month or term that contains `as_of`."""
    return calculate_period_collections(students, period_of(as_of, cycle))


def calculate_class_group_stats(students, class_group_id, cycle, as_of):
    """
    Expected, collected and outstanding figures for one class group.

    Returns: dict
    """
    class_students = [s for s in students if s.class_group == class_group_id]

    total_expected = total_collected = outstanding = ZERO
    for student in class_students:
        totals = calculate_student_totals(student, cycle, as_of)
        total_expected += totals.annual_fee
        total_collected += totals.total_paid
        outstanding += totals.total_owed

    return {
        'student_count': len(class_students),
        'total_expected': total_expected,
        'total_collected': total_collected,
        'outstanding_amount': outstanding,
        'average_payment_rate': _percentage(total_collected, total_expected),
    }


def calculate_transport_stats(students, cycle, as_of):
    with_transport = [s for s in students if s.has_transport]

    revenue = fees = ZERO
    for student in with_transport:
        revenue += calculate_student_totals(student, cycle, as_of).transport_fees_total
        fees += student.transport_fee

    average_fee = (fees / len(with_transport)).quantize(Decimal('0.01')) if with_transport else ZERO
    return {
        'total_students_with_transport': len(with_transport),
        'total_transport_revenue': revenue,
        'average_transport_fee': average_fee,
        'transport_utilization_rate': _percentage(Decimal(len(with_transport)), Decimal(len(students))),
    }


def calculate_payment_trends(students, cycle, as_of):
    """Collections per period against the annual target."""
    collections = [
        {
            'period': period,
            'amount': calculate_period_collections(students, period),
            'period_name': period_name(period, cycle),
        }
        for period in periods_for(cycle)
    ]
    annual_target = sum(
        (calculate_student_totals(student, cycle, as_of).annual_fee for student in students),
        ZERO,
    )
    collected = sum((row['amount'] for row in collections), ZERO)
    return {
        'periodly_collections': collections,
        'total_annual_target': annual_target,
        'collection_rate': _percentage(collected, annual_target),
    }


def class_breakdown(students, settings, as_of):
    """
    Per-class-group rows for the reports screen.

    Returns: list of dicts, one per configured class group plus one for
    students whose group is not configured.
    """
    cycle = settings.billing_cycle
    rows = []
    known = set()
    for group in settings.class_groups:
        known.add(group.id)
        stats = calculate_class_group_stats(students, group.id, cycle, as_of)
        rows.append({'class_group': group.id, 'name': group.name, **stats})

    orphans = {s.class_group for s in students if s.class_group not in known}
    for group_id in sorted(orphans, key=str):
        logger.warning("Students reference unknown class group %s", group_id)
        stats = calculate_class_group_stats(students, group_id, cycle, as_of)
        rows.append({'class_group': group_id, 'name': str(group_id), **stats})
    return rows


def outstanding_students_report(students, settings, as_of):
    """
    Students owing more than the settled tolerance, largest balance first.

    Returns: list of dicts
    """
    cycle = settings.billing_cycle
    rows = []
    for student in students:
        summary = calculate_outstanding_from_enrollment(student, cycle, as_of)
        if summary.total <= TOLERANCE:
            continue
        rows.append({
            'student_id': student.id,
            'full_name': student.full_name,
            'class_name': student.class_name,
            'class_group': student.class_group,
            'parent_contact': student.parent_contact,
            'school_fees_outstanding': summary.tuition,
            'transport_outstanding': summary.transport,
            'total_outstanding': summary.total,
        })
    rows.sort(key=lambda row: row['total_outstanding'], reverse=True)
    return rows
