"""
School expense book.

Expenses are never deleted: a mistaken entry is reversed, which keeps it in
the book with the reason attached and takes it out of the totals. Every
operation takes the whole tuple of expenses and returns an ExpenseResult
holding the new tuple; refused input leaves the tuple unchanged.
"""
from __future__ import annotations

import dataclasses
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from django.utils.translation import gettext as _

from apps.corecode.utils import ZERO, validate_payment_amount
from apps.finance.results import ExpenseResult, ExpenseSummary
from apps.students.records import RecordMixin

logger = logging.getLogger(__name__)

PERIOD_TABS = ('daily', 'weekly', 'monthly', 'yearly')


@dataclass(frozen=True)
class ExpenseCategory(RecordMixin):
    id: str
    name: str = ''
    is_active: bool = True


DEFAULT_EXPENSE_CATEGORIES = (
    ExpenseCategory('salaries', "Salaries"),
    ExpenseCategory('utilities', "Utilities"),
    ExpenseCategory('supplies', "Stationery & Supplies"),
    ExpenseCategory('maintenance', "Repairs & Maintenance"),
    ExpenseCategory('transport', "Transport & Fuel"),
    ExpenseCategory('food', "Food & Catering"),
    ExpenseCategory('other', "Other"),
)


@dataclass(frozen=True)
class Expense(RecordMixin):
    id: str
    purpose: str = ''
    amount: Decimal = ZERO
    expense_date: Optional[date] = None
    category: str = ''
    created_by: str = 'System'
    receipt_number: str = ''
    notes: str = ''
    is_reversed: bool = False
    reversed_on: Optional[date] = None
    reversal_reason: str = ''


@dataclass(frozen=True)
class ExpenseFilter:
    """Criteria for filter_expenses; None means "don't filter on this"."""

    search_term: Optional[str] = None
    category: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    is_reversed: Optional[bool] = None
    created_by: Optional[str] = None


def _refuse(expenses, message):
    logger.warning("Expense change refused: %s", message)
    return ExpenseResult(False, expenses, message)


def _category(categories, category_id):
    for category in categories:
        if category.id == category_id:
            return category
    return None


def add_expense(expenses, expense_id, purpose, amount, category, expense_date,
                categories=DEFAULT_EXPENSE_CATEGORIES, created_by='System',
                receipt_number='', notes=''):
    expenses = tuple(expenses)
    if not (purpose or '').strip():
        return _refuse(expenses, _("Purpose is required"))

    is_valid, amount, message = validate_payment_amount(amount)
    if not is_valid:
        return _refuse(expenses, message)
    if amount == 0:
        return _refuse(expenses, _("Amount must be greater than zero"))

    found = _category(categories, category)
    if found is None or not found.is_active:
        return _refuse(expenses, _("Select an active expense category"))
    if expense_date is None:
        return _refuse(expenses, _("Expense date is required"))
    if any(expense.id == expense_id for expense in expenses):
        return _refuse(expenses, _("Expense %(id)s already exists") % {'id': expense_id})

    expense = Expense(
        id=expense_id,
        purpose=purpose.strip(),
        amount=amount,
        expense_date=expense_date,
        category=category,
        created_by=created_by or 'System',
        receipt_number=receipt_number,
        notes=notes,
    )
    logger.info("Expense %s recorded: %s %s", expense_id, amount, found.name)
    return ExpenseResult(True, expenses + (expense,), _("Expense recorded"))


def reverse_expense(expenses, expense_id, reason, as_of):
    """Mark an expense reversed. The entry stays in the book."""
    expenses = tuple(expenses)
    if not (reason or '').strip():
        return _refuse(expenses, _("A reason is required to reverse an expense"))

    target = next((expense for expense in expenses if expense.id == expense_id), None)
    if target is None:
        return _refuse(expenses, _("Expense %(id)s not found") % {'id': expense_id})
    if target.is_reversed:
        return _refuse(expenses, _("Expense %(id)s is already reversed") % {'id': expense_id})

    reason = reason.strip()
    reversed_expense = dataclasses.replace(
        target,
        is_reversed=True,
        reversed_on=as_of,
        reversal_reason=reason,
        notes=f"{target.notes}\nReversed: {reason}" if target.notes else f"Reversed: {reason}",
    )
    logger.info("Expense %s reversed: %s", expense_id, reason)
    return ExpenseResult(
        True,
        tuple(reversed_expense if expense.id == expense_id else expense for expense in expenses),
        _("Expense reversed"),
    )


def _matches(expense, criteria):
    if criteria.search_term and criteria.search_term.lower() not in expense.purpose.lower():
        return False
    if criteria.date_from and (expense.expense_date is None or expense.expense_date < criteria.date_from):
        return False
    if criteria.date_to and (expense.expense_date is None or expense.expense_date > criteria.date_to):
        return False
    if criteria.category and expense.category != criteria.category:
        return False
    if criteria.min_amount is not None and expense.amount < criteria.min_amount:
        return False
    if criteria.max_amount is not None and expense.amount > criteria.max_amount:
        return False
    if criteria.is_reversed is not None and expense.is_reversed != criteria.is_reversed:
        return False
    if criteria.created_by and expense.created_by != criteria.created_by:
        return False
    return True


def filter_expenses(expenses, criteria=None):
    """
    Expenses matching `criteria`, latest date first. Entries on the same
    date come out latest-recorded first.
    """
    criteria = criteria or ExpenseFilter()
    indexed = [
        (index, expense) for index, expense in enumerate(expenses)
        if _matches(expense, criteria)
    ]
    indexed.sort(key=lambda item: (item[1].expense_date or date.min, item[0]), reverse=True)
    return [expense for _index, expense in indexed]


def period_range(tab, today):
    """(date_from, date_to) for the daily/weekly/monthly/yearly views. Weeks start on Sunday."""
    if tab == 'daily':
        start = today
    elif tab == 'weekly':
        start = today - timedelta(days=(today.weekday() + 1) % 7)
    elif tab == 'monthly':
        start = today.replace(day=1)
    elif tab == 'yearly':
        start = today.replace(month=1, day=1)
    else:
        raise ValueError(f"Unknown expense period: {tab}")
    return start, today


def summarize_expenses(expenses, date_from=None, date_to=None):
    """
    Totals over the expenses dated within the range.

    Reversed entries are counted apart; the net figure is what was
    actually spent.
    """
    selected = filter_expenses(expenses, ExpenseFilter(date_from=date_from, date_to=date_to))
    active = [expense for expense in selected if not expense.is_reversed]
    reversed_ = [expense for expense in selected if expense.is_reversed]
    gross = sum((expense.amount for expense in selected), ZERO)
    total_reversed = sum((expense.amount for expense in reversed_), ZERO)
    return ExpenseSummary(
        date_from=date_from,
        date_to=date_to,
        gross_expenses=gross,
        total_reversed=total_reversed,
        net_expenses=gross - total_reversed,
        count=len(active),
        reversed_count=len(reversed_),
        total_transactions=len(selected),
    )


def summary_by_category(expenses, categories=DEFAULT_EXPENSE_CATEGORIES, date_from=None, date_to=None):
    """Net spending per category, largest first. Unknown categories show as Uncategorized."""
    names = {category.id: category.name for category in categories}
    totals = defaultdict(lambda: ZERO)
    counts = defaultdict(int)
    for expense in filter_expenses(expenses, ExpenseFilter(date_from=date_from, date_to=date_to,
                                                           is_reversed=False)):
        totals[expense.category] += expense.amount
        counts[expense.category] += 1

    rows = [
        {
            'category': category_id,
            'name': names.get(category_id, _("Uncategorized")),
            'total': total,
            'count': counts[category_id],
        }
        for category_id, total in totals.items()
    ]
    rows.sort(key=lambda row: (-row['total'], row['name']))
    return rows
