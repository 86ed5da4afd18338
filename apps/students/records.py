"""
Immutable value objects the billing engine works on.

Every billing operation takes these and returns new instances built with
``dataclasses.replace``; payment collections are tuples so a record held by
one caller can never change under another. ``from_dict``/``to_dict`` exist
for the persistence layer only.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple

from apps.corecode.calendar import BillingCycle
from apps.corecode.utils import ZERO, money_or_zero

logger = logging.getLogger(__name__)


DATE_FIELDS = frozenset({
    'due_date',
    'paid_date',
    'admission_date',
    'date_of_birth',
    'transport_activation_date',
    'transfer_date',
    'original_admission_date',
    'promotion_date',
    'last_promotion_date',
    'expense_date',
    'reversed_on',
    'created_on',
    'deleted_on',
    'paid_on',
})

MONEY_FIELDS = frozenset({
    'amount_due',
    'amount_paid',
    'outstanding_amount',
    'custom_school_fee',
    'transport_fee',
    'total_paid',
    'total_owed',
    'standard_fee',
    'amount',
})


def parse_date(value):
    """Accept a date, datetime or ISO string; anything else becomes None."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning("Ignoring malformed date value %r", value)
        return None


def _serialize(value):
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, tuple):
        return [_serialize(item) for item in value]
    if dataclasses.is_dataclass(value):
        return value.to_dict()
    return value


class RecordMixin:
    """Generic dict conversion shared by every value object."""

    # field name -> value object class for nested collections
    nested = {}

    @classmethod
    def _coerce(cls, name, value):
        if name in DATE_FIELDS:
            return parse_date(value)
        if name in MONEY_FIELDS:
            return money_or_zero(value)
        if name in cls.nested:
            item_cls = cls.nested[name]
            if not isinstance(value, (list, tuple)):
                return ()
            return tuple(
                item if isinstance(item, item_cls) else item_cls.from_dict(item)
                for item in value
                if isinstance(item, (dict, item_cls))
            )
        return value

    @classmethod
    def from_dict(cls, data):
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {
            name: cls._coerce(name, value)
            for name, value in (data or {}).items()
            if name in known
        }
        for name in cls.nested:
            kwargs.setdefault(name, ())
        return cls(**kwargs)

    def to_dict(self):
        return {
            f.name: _serialize(getattr(self, f.name))
            for f in dataclasses.fields(self)
        }


@dataclass(frozen=True)
class FeePayment(RecordMixin):
    """One tuition period of a student's schedule."""

    period: int
    amount_due: Decimal = ZERO
    amount_paid: Decimal = ZERO
    outstanding_amount: Decimal = ZERO
    paid: bool = False
    due_date: Optional[date] = None
    paid_date: Optional[date] = None
    is_transport_waived: bool = False
    is_skipped: bool = False


@dataclass(frozen=True)
class TransportPayment(RecordMixin):
    """One billed transport month."""

    month: int
    month_name: str = ''
    amount_due: Decimal = ZERO
    amount_paid: Decimal = ZERO
    outstanding_amount: Decimal = ZERO
    paid: bool = False
    due_date: Optional[date] = None
    paid_date: Optional[date] = None
    is_active: bool = True
    is_skipped: bool = False
    is_waived: bool = False


@dataclass(frozen=True)
class Student(RecordMixin):
    id: str
    full_name: str = ''
    class_group: str = ''
    class_name: str = ''
    academic_year: int = 0
    admission_date: Optional[date] = None
    date_of_birth: Optional[date] = None
    has_custom_fees: bool = False
    custom_school_fee: Decimal = ZERO
    has_transport: bool = False
    transport_fee: Decimal = ZERO
    transport_activation_date: Optional[date] = None
    fee_payments: Tuple[FeePayment, ...] = ()
    transport_payments: Tuple[TransportPayment, ...] = ()
    total_paid: Decimal = ZERO
    total_owed: Decimal = ZERO
    notes: str = ''
    is_active: bool = True
    is_transferred: bool = False
    parent_name: str = ''
    parent_contact: str = ''
    address: str = ''

    nested = {
        'fee_payments': FeePayment,
        'transport_payments': TransportPayment,
    }

    def fee_payment(self, period):
        for payment in self.fee_payments:
            if payment.period == period:
                return payment
        return None

    def transport_payment(self, month):
        for payment in self.transport_payments:
            if payment.month == month:
                return payment
        return None

    def with_note(self, line):
        """Append one line to the audit notes."""
        notes = f"{self.notes}\n{line}" if self.notes else line
        return dataclasses.replace(self, notes=notes)

    def as_student(self):
        """Strip variant metadata, keeping only the plain Student fields."""
        names = {f.name for f in dataclasses.fields(Student)}
        return Student(**{name: getattr(self, name) for name in names})


@dataclass(frozen=True)
class TransferredStudent(Student):
    transfer_date: Optional[date] = None
    transfer_reason: str = ''
    new_school: str = ''
    original_admission_date: Optional[date] = None
    original_class_group: str = ''
    original_class_name: str = ''
    payment_history_retained: bool = False


@dataclass(frozen=True)
class PendingPromotedStudent(Student):
    ECD_B_TO_GRADE_1 = 'ECD_B_TO_GRADE_1'

    promotion_date: Optional[date] = None
    from_class: str = ''
    to_class: str = ''
    promotion_type: str = ECD_B_TO_GRADE_1
    can_be_restored: bool = True
    original_data: Optional[Student] = None

    @classmethod
    def _coerce(cls, name, value):
        if name == 'original_data':
            if isinstance(value, Student):
                return value
            return Student.from_dict(value) if isinstance(value, dict) else None
        return super()._coerce(name, value)


@dataclass(frozen=True)
class ClassGroup(RecordMixin):
    id: str
    name: str = ''
    standard_fee: Decimal = ZERO
    classes: Tuple[str, ...] = ()

    @classmethod
    def _coerce(cls, name, value):
        if name == 'classes':
            return tuple(value) if isinstance(value, (list, tuple)) else ()
        return super()._coerce(name, value)


@dataclass(frozen=True)
class AppSettings(RecordMixin):
    """School-wide billing configuration. Never modified by the engine."""

    billing_cycle: str = BillingCycle.MONTHLY
    class_groups: Tuple[ClassGroup, ...] = ()
    payment_due_date: int = 1
    transport_due_date: int = 7
    auto_promotion_enabled: bool = True
    auto_promotion_date: str = '01-01'
    last_promotion_date: Optional[date] = None
    school_name: str = ''

    nested = {'class_groups': ClassGroup}

    def class_group(self, class_group_id):
        for group in self.class_groups:
            if group.id == class_group_id:
                return group
        return None

    def standard_fee_for(self, class_group_id):
        group = self.class_group(class_group_id)
        return group.standard_fee if group is not None else ZERO

    def class_group_for_class(self, class_name):
        """Find the group that lists `class_name` among its classes."""
        for group in self.class_groups:
            if class_name in group.classes:
                return group
        return None


def student_from_dict(data):
    """Build the right Student variant for a stored snapshot."""
    data = data or {}
    if 'original_data' in data or 'promotion_type' in data:
        return PendingPromotedStudent.from_dict(data)
    if 'transfer_date' in data or 'transfer_reason' in data:
        return TransferredStudent.from_dict(data)
    return Student.from_dict(data)
