"""
Result shapes returned by the billing operations.
"""
from collections import namedtuple

from django.db import models
from django.utils.translation import gettext_lazy as _

# applied is False when the input was refused; student is then unchanged
LedgerResult = namedtuple('LedgerResult', ['applied', 'student', 'message'])

OutstandingSummary = namedtuple('OutstandingSummary', ['tuition', 'transport', 'total'])

ValidationReport = namedtuple('ValidationReport', ['is_valid', 'errors', 'warnings'])

StudentTotals = namedtuple('StudentTotals', [
    'total_paid',
    'total_owed',
    'expected_to_date',
    'annual_fee',
    'school_fees_total',
    'school_fees_paid',
    'school_fees_outstanding',
    'transport_fees_total',
    'transport_paid',
    'transport_outstanding',
])

TransportSummary = namedtuple('TransportSummary', [
    'total_due',
    'total_paid',
    'total_outstanding',
    'skipped_months',
    'active_months',
    'paid_months',
])

OutstandingBreakdown = namedtuple('OutstandingBreakdown', [
    'total_periods_since_admission',
    'unpaid_periods',
    'school_fees_outstanding',
    'transport_outstanding',
    'total_outstanding',
    'transport_skipped_months',
])

TransportStatus = namedtuple('TransportStatus', ['status', 'status_type'])


class TransportStatusType(models.TextChoices):
    PAID_IN_FULL = 'PAID_IN_FULL', _('Paid in full')
    UNPAID = 'UNPAID', _('Unpaid')
    SKIPPED = 'SKIPPED', _('Skipped')
    WAIVED = 'WAIVED', _('Waived')
    FUTURE = 'FUTURE', _('Future')

# Same contract as LedgerResult, for the expense book and extra billing pages
ExpenseResult = namedtuple('ExpenseResult', ['applied', 'expenses', 'message'])

ExtraBillingResult = namedtuple('ExtraBillingResult', ['applied', 'page', 'message'])

ExpenseSummary = namedtuple('ExpenseSummary', [
    'date_from',
    'date_to',
    'gross_expenses',
    'total_reversed',
    'net_expenses',
    'count',
    'reversed_count',
    'total_transactions',
])

PageTotals = namedtuple('PageTotals', [
    'total_entries',
    'active_entries',
    'deleted_entries',
    'total_collected',
    'total_refunded',
])
