"""
Loading and storing the expense book and the extra billing pages.

Same contract as the student repositories: whole collections in, whole
collections out.
"""
import logging

from django.db import transaction

logger = logging.getLogger(__name__)


class FinanceRepository:

    def load_expenses(self):
        raise NotImplementedError

    def save_expenses(self, expenses):
        raise NotImplementedError

    def load_billing_pages(self):
        raise NotImplementedError

    def save_billing_pages(self, pages):
        raise NotImplementedError


class InMemoryFinanceRepository(FinanceRepository):

    def __init__(self, expenses=(), pages=()):
        self.expenses = list(expenses)
        self.pages = list(pages)

    def load_expenses(self):
        return list(self.expenses)

    def save_expenses(self, expenses):
        self.expenses = list(expenses)

    def load_billing_pages(self):
        return list(self.pages)

    def save_billing_pages(self, pages):
        self.pages = list(pages)


class DjangoFinanceRepository(FinanceRepository):

    @staticmethod
    def _load(model):
        return [row.to_record() for row in model.objects.order_by('id')]

    @staticmethod
    def _replace(model, records):
        with transaction.atomic():
            model.objects.all().delete()
            model.objects.bulk_create([model.from_record(record) for record in records])
        logger.debug("Stored %s %s rows", len(records), model.__name__)

    def load_expenses(self):
        from apps.finance.models import ExpenseRecord
        return self._load(ExpenseRecord)

    def save_expenses(self, expenses):
        from apps.finance.models import ExpenseRecord
        self._replace(ExpenseRecord, list(expenses))

    def load_billing_pages(self):
        from apps.finance.models import ExtraBillingPageRecord
        return self._load(ExtraBillingPageRecord)

    def save_billing_pages(self, pages):
        from apps.finance.models import ExtraBillingPageRecord
        self._replace(ExtraBillingPageRecord, list(pages))
