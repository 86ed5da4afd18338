import dataclasses
from datetime import date
from decimal import Decimal

from apps.corecode.calendar import BillingCycle
from apps.finance.ledger import record_fee_payment
from apps.finance.transport import activate_transport
from apps.finance.utils import (
    calculate_class_group_stats,
    calculate_current_period_collections,
    calculate_payment_trends,
    calculate_period_collections,
    calculate_transport_stats,
    class_breakdown,
    outstanding_students_report,
)
from conftest import make_student

MONTHLY = BillingCycle.MONTHLY


def roster(settings, as_of):
    first = record_fee_payment(make_student(settings, as_of, "S001"), 3, "50", settings, as_of).student
    second = record_fee_payment(make_student(settings, as_of, "S002"), 3, "20", settings, as_of).student
    third = make_student(settings, as_of, "S003", class_group="form-1-6", class_name="Form 1")
    return [first, second, third]


def test_period_collections(settings_monthly, march_15):
    students = roster(settings_monthly, march_15)
    assert calculate_period_collections(students, 3) == Decimal("70.00")
    assert calculate_period_collections(students, 4) == Decimal("0.00")
    assert calculate_current_period_collections(students, MONTHLY, march_15) == Decimal("70.00")


def test_malformed_student_is_skipped_in_collections(settings_monthly, march_15):
    students = roster(settings_monthly, march_15)
    students.append(dataclasses.replace(students[0], id="S004", fee_payments=None))
    assert calculate_period_collections(students, 3) == Decimal("70.00")


def test_class_group_stats(settings_monthly, march_15):
    stats = calculate_class_group_stats(roster(settings_monthly, march_15), "grade-1-7", MONTHLY, march_15)
    assert stats['student_count'] == 2
    assert stats['total_expected'] == Decimal("1200.00")
    assert stats['total_collected'] == Decimal("70.00")
    assert stats['outstanding_amount'] == Decimal("230.00")
    assert stats['average_payment_rate'] == Decimal("5.83")


def test_transport_stats(settings_monthly, march_15):
    students = roster(settings_monthly, march_15)
    students[0] = activate_transport(students[0], "20", date(2025, 3, 1), settings_monthly, march_15).student
    stats = calculate_transport_stats(students, MONTHLY, march_15)
    assert stats['total_students_with_transport'] == 1
    assert stats['total_transport_revenue'] == Decimal("20.00")
    assert stats['average_transport_fee'] == Decimal("20.00")
    assert stats['transport_utilization_rate'] == Decimal("33.33")


def test_payment_trends(settings_monthly, march_15):
    trends = calculate_payment_trends(roster(settings_monthly, march_15), MONTHLY, march_15)
    assert len(trends['periodly_collections']) == 12
    assert trends['periodly_collections'][2] == {'period': 3, 'amount': Decimal("70.00"), 'period_name': "March"}
    assert trends['total_annual_target'] == Decimal("2160.00")


def test_class_breakdown_lists_unknown_groups(settings_monthly, march_15):
    students = roster(settings_monthly, march_15)
    students.append(make_student(settings_monthly, march_15, "S005", class_group="night-school"))
    rows = class_breakdown(students, settings_monthly, march_15)
    assert [row['class_group'] for row in rows] == ["grade-1-7", "ecd-ab", "form-1-6", "night-school"]
    assert rows[1]['student_count'] == 0


def test_outstanding_students_report_is_sorted(settings_monthly, march_15):
    rows = outstanding_students_report(roster(settings_monthly, march_15), settings_monthly, march_15)
    assert [row['student_id'] for row in rows] == ["S003", "S002", "S001"]
    assert rows[0]['total_outstanding'] == Decimal("240.00")
    assert rows[0]['parent_contact'] == "0770000000"
