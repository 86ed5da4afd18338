from datetime import date
from decimal import Decimal

import pytest

from apps.corecode.calendar import BillingCycle
from apps.finance.schedule import initialize_fee_payments
from apps.students.records import AppSettings, ClassGroup, Student


def make_settings(cycle=BillingCycle.MONTHLY, **overrides):
    """School settings with the three standard class groups."""
    values = dict(
        billing_cycle=cycle,
        class_groups=(
            ClassGroup(
                id="grade-1-7",
                name="Grade 1-7",
                standard_fee=Decimal("50.00"),
                classes=tuple(f"Grade {n}" for n in range(1, 8)),
            ),
            ClassGroup(
                id="ecd-ab",
                name="ECD A-B",
                standard_fee=Decimal("40.00"),
                classes=("ECD A", "ECD B"),
            ),
            ClassGroup(
                id="form-1-6",
                name="Form 1-6",
                standard_fee=Decimal("80.00"),
                classes=tuple(f"Form {n}" for n in range(1, 7)),
            ),
        ),
        payment_due_date=1,
        transport_due_date=7,
        auto_promotion_enabled=True,
        auto_promotion_date="01-01",
        school_name="Test School",
    )
    values.update(overrides)
    return AppSettings(**values)


def make_student(settings, as_of, student_id="S001", **overrides):
    """A student with a fresh fee schedule for the year of `as_of`."""
    values = dict(
        id=student_id,
        full_name=f"Student {student_id}",
        class_group="grade-1-7",
        class_name="Grade 3",
        academic_year=as_of.year,
        admission_date=date(as_of.year, 1, 1),
        date_of_birth=date(as_of.year - 9, 6, 15),
        parent_name="Parent",
        parent_contact="0770000000",
    )
    values.update(overrides)
    return initialize_fee_payments(Student(**values), settings, as_of)


@pytest.fixture
def settings_monthly():
    return make_settings()


@pytest.fixture
def settings_termly():
    return make_settings(cycle=BillingCycle.TERMLY)


@pytest.fixture
def march_15():
    return date(2025, 3, 15)


@pytest.fixture
def student(settings_monthly, march_15):
    return make_student(settings_monthly, march_15)
