from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.finance.expenses import Expense
from apps.finance.extra_billing import ExtraBillingPage


class FinanceSnapshot(models.Model):
    """A finance value object kept as JSON, keyed by its id."""

    record_id = models.CharField(max_length=64, unique=True)
    data = models.JSONField(default=dict)
    updated_at = models.DateTimeField(auto_now=True)

    record_class = None

    class Meta:
        abstract = True

    def to_record(self):
        if not isinstance(self.data, dict):
            raise ValidationError(_("Malformed snapshot for %(id)s") % {'id': self.record_id})
        try:
            return self.record_class.from_dict({**self.data, 'id': self.record_id})
        except TypeError as exc:
            raise ValidationError(
                _("Malformed snapshot for %(id)s: %(error)s") % {'id': self.record_id, 'error': exc}
            )

    @classmethod
    def from_record(cls, record):
        return cls(record_id=record.id, data=record.to_dict(), **cls.extra_columns(record))

    @classmethod
    def extra_columns(cls, record):
        return {}


class ExpenseRecord(FinanceSnapshot):
    expense_date = models.DateField(null=True, blank=True, db_index=True)
    category = models.CharField(max_length=50, blank=True, db_index=True)
    purpose = models.CharField(max_length=255, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    is_reversed = models.BooleanField(default=False)

    record_class = Expense

    class Meta:
        ordering = ["-expense_date", "-id"]
        verbose_name = _("Expense")
        verbose_name_plural = _("Expenses")

    def __str__(self):
        return f"{self.expense_date} {self.purpose} ({self.amount})"

    @classmethod
    def extra_columns(cls, record):
        return {
            'expense_date': record.expense_date,
            'category': record.category,
            'purpose': record.purpose[:255],
            'amount': record.amount,
            'is_reversed': record.is_reversed,
        }


class ExtraBillingPageRecord(FinanceSnapshot):
    name = models.CharField(max_length=200)
    created_on = models.DateField(null=True, blank=True)

    record_class = ExtraBillingPage

    class Meta:
        ordering = ["created_on", "id"]
        verbose_name = _("Extra Billing Page")
        verbose_name_plural = _("Extra Billing Pages")

    def __str__(self):
        return self.name

    @classmethod
    def extra_columns(cls, record):
        return {'name': record.name, 'created_on': record.created_on}
