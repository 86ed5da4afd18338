"""
Extra billing pages: ad-hoc collections outside the fee schedule, such as
a school trip or uniform sales.

A page holds one entry per payer, each with its list of payments. Deleting
an entry only marks it (the money was refunded); it stays on the page and
can be restored.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from django.utils.translation import gettext as _

from apps.corecode.utils import ZERO, validate_payment_amount
from apps.finance.exceptions import BillingPageNotFound
from apps.finance.results import ExtraBillingResult, PageTotals
from apps.students.records import RecordMixin

logger = logging.getLogger(__name__)

NO_PURPOSE = "-"


@dataclass(frozen=True)
class ExtraPayment(RecordMixin):
    amount: Decimal = ZERO
    paid_on: Optional[date] = None


@dataclass(frozen=True)
class ExtraBillingEntry(RecordMixin):
    id: str
    student_name: str = ''
    purpose: str = NO_PURPOSE
    payments: Tuple[ExtraPayment, ...] = ()
    deleted: bool = False
    deleted_on: Optional[date] = None

    nested = {'payments': ExtraPayment}

    @property
    def total_paid(self):
        return sum((payment.amount for payment in self.payments), ZERO)


@dataclass(frozen=True)
class ExtraBillingPage(RecordMixin):
    id: str
    name: str = ''
    entries: Tuple[ExtraBillingEntry, ...] = ()
    created_on: Optional[date] = None

    nested = {'entries': ExtraBillingEntry}

    def entry(self, entry_id):
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None


def _refuse(page, message):
    logger.warning("Extra billing change refused on %s: %s", page.id if page else None, message)
    return ExtraBillingResult(False, page, message)


def _replace_entry(page, updated):
    return dataclasses.replace(
        page,
        entries=tuple(updated if entry.id == updated.id else entry for entry in page.entries),
    )


def _positive_amount(amount):
    is_valid, amount, message = validate_payment_amount(amount)
    if is_valid and amount == 0:
        return False, None, _("Amount must be greater than zero")
    return is_valid, amount, message


def create_page(page_id, name, as_of):
    if not (name or '').strip():
        return _refuse(None, _("A page name is required"))
    page = ExtraBillingPage(id=page_id, name=name.strip(), created_on=as_of)
    logger.info("Extra billing page %s created: %s", page_id, page.name)
    return ExtraBillingResult(True, page, _("Billing page created"))


def remove_page(pages, page_id):
    """Drop a whole page. Unlike entries, pages are removed for good."""
    remaining = [page for page in pages if page.id != page_id]
    if len(remaining) == len(pages):
        raise BillingPageNotFound(page_id)
    logger.info("Extra billing page %s removed", page_id)
    return remaining


def add_entry(page, entry_id, student_name, purpose, amount, as_of):
    """New entry with its first payment."""
    if not (student_name or '').strip():
        return _refuse(page, _("Student name is required"))
    is_valid, amount, message = _positive_amount(amount)
    if not is_valid:
        return _refuse(page, message)
    if page.entry(entry_id) is not None:
        return _refuse(page, _("Entry %(id)s already exists") % {'id': entry_id})

    entry = ExtraBillingEntry(
        id=entry_id,
        student_name=student_name.strip(),
        purpose=(purpose or '').strip() or NO_PURPOSE,
        payments=(ExtraPayment(amount=amount, paid_on=as_of),),
    )
    return ExtraBillingResult(
        True, dataclasses.replace(page, entries=page.entries + (entry,)), _("Entry added"),
    )


def add_extra_payment(page, entry_id, amount, as_of):
    entry = page.entry(entry_id)
    if entry is None:
        return _refuse(page, _("Entry %(id)s not found") % {'id': entry_id})
    if entry.deleted:
        return _refuse(page, _("Restore the entry before adding payments"))
    is_valid, amount, message = _positive_amount(amount)
    if not is_valid:
        return _refuse(page, message)

    updated = dataclasses.replace(entry, payments=entry.payments + (ExtraPayment(amount=amount, paid_on=as_of),))
    return ExtraBillingResult(True, _replace_entry(page, updated), _("Payment added"))


def delete_entry(page, entry_id, as_of):
    entry = page.entry(entry_id)
    if entry is None:
        return _refuse(page, _("Entry %(id)s not found") % {'id': entry_id})
    if entry.deleted:
        return _refuse(page, _("Entry is already deleted"))
    updated = dataclasses.replace(entry, deleted=True, deleted_on=as_of)
    logger.info("Extra billing entry %s on %s marked deleted", entry_id, page.id)
    return ExtraBillingResult(True, _replace_entry(page, updated), _("Entry marked as deleted"))


def restore_entry(page, entry_id):
    entry = page.entry(entry_id)
    if entry is None:
        return _refuse(page, _("Entry %(id)s not found") % {'id': entry_id})
    if not entry.deleted:
        return _refuse(page, _("Entry is not deleted"))
    updated = dataclasses.replace(entry, deleted=False, deleted_on=None)
    return ExtraBillingResult(True, _replace_entry(page, updated), _("Entry restored"))


def search_entries(page, term):
    term = (term or '').lower()
    return [entry for entry in page.entries if term in entry.student_name.lower()]


def page_totals(page):
    """Collected money counts live entries only; deleted entries were refunded."""
    active = [entry for entry in page.entries if not entry.deleted]
    deleted = [entry for entry in page.entries if entry.deleted]
    return PageTotals(
        total_entries=len(page.entries),
        active_entries=len(active),
        deleted_entries=len(deleted),
        total_collected=sum((entry.total_paid for entry in active), ZERO),
        total_refunded=sum((entry.total_paid for entry in deleted), ZERO),
    )


def collected_between(page, date_from, date_to):
    """Payments on live entries dated within the range, as used by the page export."""
    return sum(
        (
            payment.amount
            for entry in page.entries if not entry.deleted
            for payment in entry.payments
            if payment.paid_on is not None and date_from <= payment.paid_on <= date_to
        ),
        ZERO,
    )
