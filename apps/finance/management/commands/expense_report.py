from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.finance.expenses import PERIOD_TABS, period_range, summarize_expenses, summary_by_category
from apps.finance.extra_billing import page_totals
from apps.finance.repository import DjangoFinanceRepository


class Command(BaseCommand):
    help = 'Summarize school expenses and extra billing collections'

    def add_arguments(self, parser):
        parser.add_argument(
            '--period',
            choices=PERIOD_TABS,
            default='yearly',
            help='Expense window ending today'
        )

    def handle(self, *args, **options):
        repository = DjangoFinanceRepository()
        expenses = repository.load_expenses()
        date_from, date_to = period_range(options['period'], timezone.localdate())
        summary = summarize_expenses(expenses, date_from, date_to)

        self.stdout.write(self.style.SUCCESS('=' * 60))
        self.stdout.write(self.style.SUCCESS(f"EXPENSES {date_from} to {date_to}"))
        self.stdout.write(self.style.SUCCESS('=' * 60))
        self.stdout.write(f"   Transactions: {summary.total_transactions}")
        self.stdout.write(f"   Gross: {summary.gross_expenses}")
        self.stdout.write(f"   Reversed: {summary.total_reversed} ({summary.reversed_count} entries)")
        self.stdout.write(self.style.WARNING(f"   Net: {summary.net_expenses}"))

        self.stdout.write("\nBy category:")
        for row in summary_by_category(expenses, date_from=date_from, date_to=date_to):
            self.stdout.write(f"   {row['name']:<30} {row['count']:>4} {row['total']:>12}")

        pages = repository.load_billing_pages()
        if pages:
            self.stdout.write("\nExtra billing:")
            for page in pages:
                totals = page_totals(page)
                self.stdout.write(
                    f"   {page.name:<30} {totals.active_entries:>4} entries "
                    f"{totals.total_collected:>12} collected {totals.total_refunded:>10} refunded"
                )
