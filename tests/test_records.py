import dataclasses
from datetime import date
from decimal import Decimal

import pytest

from apps.students.records import (
    PendingPromotedStudent,
    Student,
    TransferredStudent,
    student_from_dict,
)


def test_from_dict_coerces_types():
    student = Student.from_dict({
        'id': "S001",
        'admission_date': "2025-01-10",
        'transport_fee': 20,
        'fee_payments': [{'period': 1, 'amount_due': "50", 'due_date': "2025-01-01"}],
        'unexpected': "ignored",
    })
    assert student.admission_date == date(2025, 1, 10)
    assert student.transport_fee == Decimal("20.00")
    assert student.fee_payments[0].amount_due == Decimal("50.00")
    assert student.fee_payments[0].due_date == date(2025, 1, 1)
    assert student.transport_payments == ()


@pytest.mark.parametrize("payments", [None, "oops", 12, {"period": 1}])
def test_from_dict_tolerates_bad_collections(payments):
    student = Student.from_dict({'id': "S001", 'fee_payments': payments, 'transport_payments': payments})
    assert student.fee_payments == ()
    assert student.transport_payments == ()


def test_bad_dates_and_amounts_degrade():
    student = Student.from_dict({'id': "S001", 'admission_date': "not a date", 'total_owed': "abc"})
    assert student.admission_date is None
    assert student.total_owed == Decimal("0.00")


def test_records_are_immutable(student):
    with pytest.raises(dataclasses.FrozenInstanceError):
        student.total_owed = Decimal("1")
    assert isinstance(student.fee_payments, tuple)


def test_to_dict_is_json_ready(student):
    data = student.to_dict()
    assert data['admission_date'] == "2025-01-01"
    assert data['fee_payments'][0]['amount_due'] == "50.00"
    assert Student.from_dict(data) == student


def test_student_from_dict_picks_the_variant(student):
    pending = PendingPromotedStudent(
        **{f.name: getattr(student, f.name) for f in dataclasses.fields(Student)},
        from_class="ECD B",
        to_class="Grade 1",
        original_data=student,
    )
    restored = student_from_dict(pending.to_dict())
    assert isinstance(restored, PendingPromotedStudent)
    assert restored.original_data == student

    transferred = student_from_dict({'id': "T1", 'transfer_date': "2024-12-01"})
    assert isinstance(transferred, TransferredStudent)
    assert type(student_from_dict({'id': "S9"})) is Student


def test_with_note_appends_lines():
    student = Student(id="S001")
    student = student.with_note("first").with_note("second")
    assert student.notes == "first\nsecond"


def test_settings_lookups(settings_monthly):
    assert settings_monthly.standard_fee_for("form-1-6") == Decimal("80.00")
    assert settings_monthly.standard_fee_for("missing") == 0
    assert settings_monthly.class_group_for_class("Grade 4").id == "grade-1-7"
    assert settings_monthly.class_group_for_class("Form 9") is None
