#!/usr/bin/env python
"""
CPanel task runner - executes tasks synchronously when Celery is not available
"""
import os
import sys
import django
import logging

# Setup Django
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'billing_app.settings')
django.setup()

from tasks.student_tasks import (  # noqa: E402
    cleanup_old_transfers,
    rebuild_fee_schedules,
    restore_pending_students,
    run_auto_promotion,
)
from tasks.system_tasks import audit_payment_integrity_task  # noqa: E402

logging.basicConfig(level=logging.INFO, format='[%(asctime)s] %(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def run_promotions(as_of=None):
    """Run the automatic promotion check"""
    logger.info("Running automatic promotions for %s", as_of or "today")
    return run_auto_promotion.apply(kwargs={'as_of': as_of}).get()


def run_rebuild(class_group_id):
    logger.info("Rebuilding fee schedules for class group %s", class_group_id)
    return rebuild_fee_schedules.apply(args=[class_group_id]).get()


def run_audit():
    return audit_payment_integrity_task.apply().get()


def run_cleanup():
    return cleanup_old_transfers.apply().get()


def run_restore_pending(class_name="Grade 1"):
    logger.info("Restoring pending students into %s", class_name)
    return restore_pending_students.apply(kwargs={'class_name': class_name}).get()


if __name__ == "__main__":
    # This script can be called from CPanel cron jobs
    # Example: python cpanel_tasks/run_tasks.py rebuild_fees grade-1-7
    if len(sys.argv) > 1:
        command = sys.argv[1]

        if command == 'promotions':
            result = run_promotions(sys.argv[2] if len(sys.argv) > 2 else None)
            print(f"Result: {result}")

        elif command == 'rebuild_fees' and len(sys.argv) > 2:
            result = run_rebuild(sys.argv[2])
            print(f"Result: {result}")

        elif command == 'audit':
            print(f"Result: {run_audit()}")

        elif command == 'cleanup_transfers':
            print(f"Result: {run_cleanup()}")

        elif command == 'restore_pending':
            result = run_restore_pending(sys.argv[2] if len(sys.argv) > 2 else "Grade 1")
            print(f"Result: {result}")

        else:
            print("Unknown command. Available commands:")
            print("  promotions [YYYY-MM-DD]")
            print("  rebuild_fees <class_group_id>")
            print("  audit")
            print("  cleanup_transfers")
            print("  restore_pending [class name]")
    else:
        print("No command specified")
