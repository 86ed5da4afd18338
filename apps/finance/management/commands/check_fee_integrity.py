from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.finance.totals import calculate_student_totals, validate_payment_calculations
from apps.students.repository import DjangoStudentRepository


class Command(BaseCommand):
    help = 'Validate stored payment records and report students with problems'

    def add_arguments(self, parser):
        parser.add_argument(
            '--format',
            choices=['console', 'csv'],
            default='console',
            help='Output format'
        )
        parser.add_argument(
            '--class-group',
            dest='class_group',
            help='Only check one class group'
        )

    def handle(self, *args, **options):
        repository = DjangoStudentRepository()
        settings = repository.load_settings()
        students = repository.load_students()
        as_of = timezone.localdate()

        if options['class_group']:
            students = [s for s in students if s.class_group == options['class_group']]

        valid_count = 0
        invalid_count = 0
        warning_count = 0
        report_data = []

        for student in students:
            report = validate_payment_calculations(student)
            totals = calculate_student_totals(student, settings.billing_cycle, as_of)

            if report.is_valid:
                valid_count += 1
            else:
                invalid_count += 1
            warning_count += len(report.warnings)

            report_data.append({
                'student_id': student.id,
                'name': student.full_name,
                'class': student.class_name or 'None',
                'is_valid': report.is_valid,
                'total_owed': totals.total_owed,
                'problems': '; '.join(report.errors + report.warnings) or 'None',
            })

        if options['format'] == 'csv':
            self.output_csv(report_data)
        else:
            self.output_console(report_data, valid_count, invalid_count, warning_count)

    def output_console(self, data, valid_count, invalid_count, warning_count):
        self.stdout.write(self.style.SUCCESS('=' * 80))
        self.stdout.write(self.style.SUCCESS('FEE INTEGRITY REPORT'))
        self.stdout.write(self.style.SUCCESS('=' * 80))

        self.stdout.write("\nSummary:")
        self.stdout.write(f"   Total Students: {valid_count + invalid_count}")
        self.stdout.write(f"   Valid Records: {self.style.SUCCESS(str(valid_count))}")
        self.stdout.write(f"   Invalid Records: {self.style.ERROR(str(invalid_count))}")
        self.stdout.write(f"   Warnings: {self.style.WARNING(str(warning_count))}")

        self.stdout.write("\nDetailed List:")
        self.stdout.write(f"{'Student ID':<15} {'Name':<30} {'Class':<15} {'Owed':>10}  {'Problems'}")
        self.stdout.write('-' * 90)

        for item in data:
            line = (f"{item['student_id']:<15} {item['name']:<30} "
                    f"{item['class']:<15} {item['total_owed']:>10}  {item['problems']}")
            self.stdout.write(line if item['is_valid'] else self.style.ERROR(line))

    def output_csv(self, data):
        import csv

        writer = csv.writer(self.stdout)
        writer.writerow(['Student ID', 'Name', 'Class', 'Status', 'Total Owed', 'Problems'])

        for item in data:
            writer.writerow([
                item['student_id'],
                item['name'],
                item['class'],
                'VALID' if item['is_valid'] else 'INVALID',
                item['total_owed'],
                item['problems'],
            ])
