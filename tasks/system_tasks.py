"""
System-level background tasks.

This module contains low-level, cross-cutting background tasks that support
the overall stability and maintenance of the system. These tasks watch the
stored billing data rather than change it, and are safe to retry.

Design principles:
- Explicit task names for Celery stability
- Controlled retries (no retry storms)
- Loud logging, quiet failures where appropriate
- Batch tasks use tasks.base.BaseTask for progress logging
"""

import logging
from datetime import date

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from tasks.base import BaseTask

logger = logging.getLogger("system.tasks")

PROGRESS_EVERY = 50


# ---------------------------------------------------------------------------
# SYSTEM ALERT TASK
# ---------------------------------------------------------------------------

@shared_task(
    bind=True,
    name="system.send_alert",
    autoretry_for=(Exception,),
    retry_backoff=300,          # 5 minutes base backoff
    retry_backoff_max=1800,     # max 30 minutes
    retry_kwargs={"max_retries": 3},
)
def send_system_alert_task(
    self,
    alert_type: str,
    sender: str | None = None,
    instance_id: str | None = None,
    error: str | None = None,
):
    """
    Send a system-level alert email to site administrators.

    Used for promotion runs that ended with errors and for payment records
    that fail the integrity audit.

    The task retries automatically on failure with exponential backoff.
    Failures are logged clearly to avoid silent system degradation.
    """
    task_id = self.request.id
    timestamp = timezone.now()

    logger.info(
        "[%s] Preparing system alert",
        task_id,
        extra={
            "alert_type": alert_type,
            "sender": sender,
            "instance_id": instance_id,
        },
    )

    school_name = getattr(settings, "SCHOOL_NAME", "School System")
    site_url = getattr(settings, "SITE_URL", "N/A")
    from_email = getattr(settings, "DEFAULT_FROM_EMAIL", None)

    admins = getattr(settings, "ADMINS", [])
    admin_emails = [email for _, email in admins if email]

    if not admin_emails:
        logger.warning(
            "[%s] No ADMINS configured; system alert will not be emailed",
            task_id,
        )
        return {
            "success": False,
            "reason": "no_admin_emails",
            "alert_type": alert_type,
        }

    subject = f"[{school_name}] System Alert: {alert_type}"

    message = f"""
SYSTEM ALERT

Type: {alert_type}
Time: {timestamp.strftime('%Y-%m-%d %H:%M:%S')}
Sender: {sender or 'Unknown'}
Instance ID: {instance_id or 'N/A'}

Error Details:
{error or 'No error details provided'}

Environment: {"Development" if settings.DEBUG else "Production"}
Site URL: {site_url}

This message was generated automatically by the system task runner.
"""

    send_mail(
        subject=subject,
        message=message.strip(),
        from_email=from_email,
        recipient_list=admin_emails,
        fail_silently=False,
    )

    logger.info(
        "[%s] System alert sent successfully",
        task_id,
        extra={
            "alert_type": alert_type,
            "recipients": len(admin_emails),
        },
    )

    return {
        "success": True,
        "alert_type": alert_type,
        "sent_to": admin_emails,
        "sent_at": timestamp.isoformat(),
    }


# ---------------------------------------------------------------------------
# PAYMENT INTEGRITY AUDIT
# ---------------------------------------------------------------------------

@shared_task(
    bind=True,
    base=BaseTask,
    name="system.audit_payment_integrity",
    autoretry_for=(Exception,),
    retry_backoff=600,
    retry_kwargs={"max_retries": 2},
)
def audit_payment_integrity_task(self, as_of: str | None = None):
    """
    Validate the stored payment records of every active student.

    Records are only reported, never corrected. When any student fails
    validation an alert goes to the administrators.
    """
    from apps.finance.totals import calculate_student_totals, validate_payment_calculations
    from apps.students.repository import DjangoStudentRepository

    task_id = self.request.id
    day = date.fromisoformat(as_of) if as_of else timezone.localdate()
    repository = DjangoStudentRepository()
    school_settings = repository.load_settings()
    students = repository.load_students()

    logger.info("[%s] Auditing payment records of %s students", task_id, len(students))

    failures = {}
    warnings = 0
    owing = 0
    for index, student in enumerate(students, start=1):
        if index % PROGRESS_EVERY == 0 or index == len(students):
            self.log_progress(f"Audited {index} of {len(students)} students", index, len(students))
        try:
            report = validate_payment_calculations(student)
            totals = calculate_student_totals(student, school_settings.billing_cycle, day)
        except Exception as exc:
            logger.exception("[%s] Audit crashed on student %s", task_id, student.id)
            failures[student.id] = [str(exc)]
            continue
        warnings += len(report.warnings)
        if not report.is_valid:
            failures[student.id] = list(report.errors)
        elif totals.total_owed > 0:
            owing += 1

    if failures:
        logger.warning("[%s] %s students failed the payment audit", task_id, len(failures))
        details = "\n".join(
            f"{student_id}: {'; '.join(problems)}" for student_id, problems in sorted(failures.items())
        )
        send_system_alert_task.delay(
            alert_type="Payment integrity",
            sender="system.audit_payment_integrity",
            instance_id=task_id,
            error=details,
        )
    else:
        logger.info("[%s] Payment audit passed", task_id)

    return {
        "success": not failures,
        "checked": len(students),
        "failed": len(failures),
        "warnings": warnings,
        "owing": owing,
        "failures": failures,
        "date": day.isoformat(),
    }
