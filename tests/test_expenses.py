from datetime import date
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command

from apps.finance.expenses import (
    Expense,
    ExpenseCategory,
    ExpenseFilter,
    add_expense,
    filter_expenses,
    period_range,
    reverse_expense,
    summarize_expenses,
    summary_by_category,
)
from apps.finance.repository import DjangoFinanceRepository

MAY_10 = date(2026, 5, 10)


def book():
    expenses = ()
    for expense_id, purpose, amount, category, day in [
        ("X1", "Teacher salaries", "1200", "salaries", date(2026, 4, 30)),
        ("X2", "Electricity bill", "85.50", "utilities", date(2026, 5, 2)),
        ("X3", "Chalk and exercise books", "40", "supplies", date(2026, 5, 2)),
        ("X4", "Bus diesel", "60", "transport", date(2025, 12, 1)),
    ]:
        expenses = add_expense(expenses, expense_id, purpose, amount, category, day).expenses
    return expenses


def test_add_expense():
    result = add_expense((), "X1", "  Water bill ", "30", "utilities", MAY_10, receipt_number="R-17")
    assert result.applied
    [expense] = result.expenses
    assert expense.purpose == "Water bill"
    assert expense.amount == Decimal("30.00")
    assert expense.created_by == "System"
    assert not expense.is_reversed


@pytest.mark.parametrize("purpose, amount, category, day, message", [
    ("", "30", "utilities", MAY_10, "Purpose is required"),
    ("Water", "abc", "utilities", MAY_10, "Please enter a valid amount"),
    ("Water", "0", "utilities", MAY_10, "Amount must be greater than zero"),
    ("Water", "30", "holidays", MAY_10, "Select an active expense category"),
    ("Water", "30", "utilities", None, "Expense date is required"),
])
def test_add_expense_refusals(purpose, amount, category, day, message):
    existing = book()
    result = add_expense(existing, "X9", purpose, amount, category, day)
    assert not result.applied
    assert result.expenses == existing
    assert result.message == message


def test_inactive_category_and_duplicate_id():
    categories = (ExpenseCategory("old", "Old", is_active=False),)
    assert not add_expense((), "X1", "Thing", "5", "old", MAY_10, categories=categories).applied
    assert not add_expense(book(), "X1", "Again", "5", "other", MAY_10).applied


def test_reverse_expense_keeps_the_entry():
    result = reverse_expense(book(), "X2", "Billed twice", MAY_10)
    assert result.applied
    reversed_ = next(e for e in result.expenses if e.id == "X2")
    assert reversed_.is_reversed
    assert reversed_.reversed_on == MAY_10
    assert reversed_.notes == "Reversed: Billed twice"
    assert len(result.expenses) == 4

    again = reverse_expense(result.expenses, "X2", "Again", MAY_10)
    assert not again.applied
    assert not reverse_expense(book(), "X2", "  ", MAY_10).applied
    assert not reverse_expense(book(), "nope", "Reason", MAY_10).applied


def test_filter_sorts_latest_first():
    ids = [e.id for e in filter_expenses(book())]
    assert ids == ["X3", "X2", "X1", "X4"]

    criteria = ExpenseFilter(search_term="BILL", date_from=date(2026, 1, 1))
    assert [e.id for e in filter_expenses(book(), criteria)] == ["X2"]
    assert [e.id for e in filter_expenses(book(), ExpenseFilter(min_amount=Decimal("60"),
                                                               max_amount=Decimal("100")))] == ["X2", "X4"]


@pytest.mark.parametrize("tab, start", [
    ("daily", MAY_10),
    ("weekly", date(2026, 5, 10)),
    ("monthly", date(2026, 5, 1)),
    ("yearly", date(2026, 1, 1)),
])
def test_period_range(tab, start):
    # 2026-05-10 is a Sunday
    assert period_range(tab, MAY_10) == (start, MAY_10)


def test_week_starts_on_sunday():
    assert period_range("weekly", date(2026, 5, 13)) == (MAY_10, date(2026, 5, 13))
    with pytest.raises(ValueError):
        period_range("hourly", MAY_10)


def test_summary_separates_reversed():
    expenses = reverse_expense(book(), "X3", "Returned", MAY_10).expenses
    summary = summarize_expenses(expenses, date(2026, 1, 1), MAY_10)
    assert summary.total_transactions == 3
    assert summary.gross_expenses == Decimal("1325.50")
    assert summary.total_reversed == Decimal("40.00")
    assert summary.net_expenses == Decimal("1285.50")
    assert (summary.count, summary.reversed_count) == (2, 1)


def test_summary_by_category():
    expenses = book() + (Expense(id="X5", purpose="Mystery", amount=Decimal("7.00"),
                                 expense_date=MAY_10, category="gone"),)
    rows = summary_by_category(expenses, date_from=date(2026, 1, 1))
    assert [row['category'] for row in rows] == ["salaries", "utilities", "supplies", "gone"]
    assert rows[-1]['name'] == "Uncategorized"
    assert rows[0]['total'] == Decimal("1200.00")


@pytest.mark.django_db
def test_expenses_round_trip_and_report(monkeypatch):
    repository = DjangoFinanceRepository()
    expenses = reverse_expense(book(), "X2", "Billed twice", MAY_10).expenses
    repository.save_expenses(expenses)
    assert tuple(repository.load_expenses()) == expenses

    monkeypatch.setattr("django.utils.timezone.localdate", lambda: MAY_10)
    out = StringIO()
    call_command("expense_report", "--period", "monthly", stdout=out)
    output = out.getvalue()
    assert "EXPENSES 2026-05-01 to 2026-05-10" in output
    assert "Net: 40.00" in output
