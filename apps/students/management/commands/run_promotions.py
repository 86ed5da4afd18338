from datetime import date

from django.core.management.base import BaseCommand, CommandError

from tasks.student_tasks import run_auto_promotion


class Command(BaseCommand):
    help = 'Run (or preview) the automatic yearly promotion'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            dest='as_of',
            help='Run as if today were this date (YYYY-MM-DD)'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would happen without storing anything'
        )

    def handle(self, *args, **options):
        as_of = options['as_of']
        if as_of:
            try:
                date.fromisoformat(as_of)
            except ValueError:
                raise CommandError(f"Invalid date: {as_of}")

        result = run_auto_promotion.apply(kwargs={'as_of': as_of, 'dry_run': options['dry_run']}).get()

        if result['status'] == 'preview':
            self.stdout.write(self.style.SUCCESS(f"Promotion preview for {result['date']}"))
            for row in result['students']:
                reasons = '; '.join(row['reasons']) or '-'
                self.stdout.write(
                    f"{row['student_id']:<15} {row['current_class']:<12} -> "
                    f"{row['proposed_class']:<12} {row['action']:<18} {reasons}"
                )
            return

        if result['status'] == 'skipped':
            self.stdout.write(self.style.WARNING(result['message']))
            for error in result['errors']:
                self.stdout.write(self.style.ERROR(error))
            return

        self.stdout.write(result['report'])
        style = self.style.SUCCESS if result['status'] == 'completed' else self.style.ERROR
        self.stdout.write(style(result['message']))
