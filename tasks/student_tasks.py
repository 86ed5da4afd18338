"""
Student billing background tasks.

Every task loads whole collections through the repository, runs the pure
billing operations on them and stores the result back. Failures on one
student never stop the run for the others.

All tasks in this file are SAFE to retry: each one recomputes its result
from stored state and the date it is given, and the promotion run records
its date in the same transaction as its changes, so a retried or repeated
run on that date stores nothing.
"""

from __future__ import annotations

import logging
from datetime import date

from celery import shared_task
from django.utils import timezone
from django.utils.translation import gettext as _

logger = logging.getLogger(__name__)


def _as_of(value: str | None) -> date:
    """ISO date passed by the caller, or today in the configured timezone."""
    if value:
        return date.fromisoformat(value)
    return timezone.localdate()


def _repository():
    from apps.students.repository import DjangoStudentRepository
    return DjangoStudentRepository()


def _log_promotion_result(result, originals, task_id):
    """One PromotionLog row per student the run moved."""
    from apps.students.models import PromotionLog

    entries = []
    for student in result.promoted:
        entries.append(PromotionLog(
            student_id=student.id,
            student_name=student.full_name,
            action=PromotionLog.Action.PROMOTED,
            from_class=originals[student.id].class_name if student.id in originals else '',
            to_class=student.class_name,
            task_id=task_id or '',
        ))
    for student in result.transferred:
        entries.append(PromotionLog(
            student_id=student.id,
            student_name=student.full_name,
            action=PromotionLog.Action.GRADUATED,
            from_class=student.original_class_name,
            reason=student.transfer_reason,
            task_id=task_id or '',
        ))
    for student in result.pending:
        entries.append(PromotionLog(
            student_id=student.id,
            student_name=student.full_name,
            action=PromotionLog.Action.PENDING,
            from_class=student.from_class,
            to_class=student.to_class,
            task_id=task_id or '',
        ))
    for student_id, reason in result.retained.items():
        entries.append(PromotionLog(
            student_id=student_id,
            student_name=originals[student_id].full_name,
            action=PromotionLog.Action.RETAINED,
            from_class=originals[student_id].class_name,
            reason=reason,
            task_id=task_id or '',
        ))
    PromotionLog.objects.bulk_create(entries)
    return len(entries)


# =====================================================================
# AUTOMATIC PROMOTION
# =====================================================================

@shared_task(
    bind=True,
    name="students.run_auto_promotion",
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def run_auto_promotion(self, as_of: str | None = None, dry_run: bool = False) -> dict:
    """
    Run the yearly promotion when today is the configured promotion date.

    With dry_run the preview is returned and nothing is stored.
    """
    from django.db import transaction

    from apps.students.promotion import PromotionManager

    task_id = self.request.id
    day = _as_of(as_of)
    repository = _repository()
    settings = repository.load_settings()
    students = repository.load_students()
    manager = PromotionManager(settings)

    logger.info("[%s] Automatic promotion check for %s (%s students)", task_id, day, len(students))

    if dry_run:
        preview = manager.preview(students, day)
        return {
            "status": "preview",
            "date": day.isoformat(),
            "students": [
                {**row._asdict(), "outstanding_amount": str(row.outstanding_amount)}
                for row in preview
            ],
        }

    result = manager.check_automatic_promotions(students, day)
    if not result.total_processed:
        logger.info("[%s] %s", task_id, result.message)
        return {"status": "skipped", "message": result.message, "errors": result.errors}

    originals = {student.id: student for student in students}
    with transaction.atomic():
        if not repository.claim_promotion_run(day):
            message = _("Automatic promotions already ran on %(date)s") % {'date': day.isoformat()}
            logger.warning("[%s] %s", task_id, message)
            return {"status": "skipped", "message": message, "errors": []}
        repository.save_students(result.remaining)
        if result.transferred:
            repository.save_transferred(repository.load_transferred() + result.transferred)
        if result.pending:
            repository.save_pending(repository.load_pending() + result.pending)
        logged = _log_promotion_result(result, originals, task_id)

    for error in result.errors:
        logger.error("[%s] %s", task_id, error)
    if result.errors:
        from tasks.system_tasks import send_system_alert_task

        send_system_alert_task.delay(
            alert_type="Automatic promotion",
            sender="students.run_auto_promotion",
            instance_id=task_id,
            error="\n".join(result.errors),
        )

    logger.info("[%s] %s (%s log entries)", task_id, result.message, logged)
    return {
        "status": "completed" if result.success else "completed_with_errors",
        "message": result.message,
        "promoted": len(result.promoted),
        "transferred": len(result.transferred),
        "pending": len(result.pending),
        "retained": len(result.retained),
        "errors": result.errors,
        "report": manager.generate_promotion_report(result, day),
    }


# =====================================================================
# FEE SCHEDULE REBUILD
# =====================================================================

@shared_task(
    bind=True,
    name="students.rebuild_fee_schedules",
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def rebuild_fee_schedules(self, class_group_id: str, as_of: str | None = None) -> dict:
    """
    Rebuild the fee schedule of every student in a class group, typically
    after its standard fee was changed.
    """
    from apps.finance.exceptions import ClassGroupNotFound
    from apps.finance.schedule import rebuild_for_class_group

    task_id = self.request.id
    day = _as_of(as_of)
    repository = _repository()
    settings = repository.load_settings()
    students = repository.load_students()

    try:
        rebuilt = rebuild_for_class_group(students, class_group_id, settings, day)
    except ClassGroupNotFound:
        logger.error("[%s] Class group %s not found", task_id, class_group_id)
        return {"status": "missing", "class_group": class_group_id}

    repository.save_students(rebuilt)
    count = sum(1 for student in rebuilt if student.class_group == class_group_id)
    logger.info("[%s] Rebuilt %s fee schedules for %s", task_id, count, class_group_id)
    return {"status": "completed", "class_group": class_group_id, "rebuilt": count}


# =====================================================================
# TRANSFER RETENTION
# =====================================================================

@shared_task(
    bind=True,
    name="students.cleanup_old_transfers",
    autoretry_for=(Exception,),
    retry_backoff=600,
    retry_kwargs={"max_retries": 2},
)
def cleanup_old_transfers(self, retention_years: int | None = None, as_of: str | None = None) -> dict:
    """Drop transfer records older than the retention window."""
    from apps.students.promotion import PromotionManager

    task_id = self.request.id
    day = _as_of(as_of)
    repository = _repository()
    manager = PromotionManager(repository.load_settings())

    kept, removed = manager.cleanup_old_transfers(repository.load_transferred(), day, retention_years)
    if removed:
        repository.save_transferred(kept)
        logger.warning("[%s] Removed %s transfer records", task_id, removed)
    else:
        logger.info("[%s] No transfer records past retention", task_id)
    return {"status": "completed", "removed": removed, "kept": len(kept)}


# =====================================================================
# MANUAL TRANSFERS AND PLACEMENTS
# =====================================================================

@shared_task(
    bind=True,
    name="students.transfer_student",
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def transfer_student(self, student_id: str, new_school: str, reason: str,
                     transfer_date: str | None = None, retain_payment_history: bool = False,
                     notes: str = '') -> dict:
    """
    Move one active student to the transferred list.

    A retry after the move finds the student gone and reports "missing".
    """
    from django.db import transaction

    from apps.students.models import PromotionLog
    from apps.students.promotion import PromotionManager

    task_id = self.request.id
    day = _as_of(transfer_date)
    repository = _repository()
    students = repository.load_students()

    student = next((s for s in students if s.id == student_id), None)
    if student is None:
        logger.error("[%s] Student %s not found on the active roster", task_id, student_id)
        return {"status": "missing", "student_id": student_id}

    manager = PromotionManager(repository.load_settings())
    ok, transferred, message = manager.transfer_student(
        student, day, new_school, reason, retain_payment_history, notes,
    )
    if not ok:
        logger.warning("[%s] Transfer of %s refused: %s", task_id, student_id, message)
        return {"status": "refused", "student_id": student_id, "message": message}

    with transaction.atomic():
        repository.save_students([s for s in students if s.id != student_id])
        repository.save_transferred(repository.load_transferred() + [transferred])
        PromotionLog.objects.create(
            student_id=student.id,
            student_name=student.full_name,
            action=PromotionLog.Action.TRANSFERRED,
            from_class=student.class_name,
            to_class=new_school[:100],
            reason=reason,
            task_id=task_id or '',
        )

    logger.info("[%s] %s", task_id, message)
    return {"status": "completed", "student_id": student_id, "message": message}


@shared_task(
    bind=True,
    name="students.restore_pending_students",
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def restore_pending_students(self, student_ids: list | None = None, class_name: str = "Grade 1",
                             as_of: str | None = None) -> dict:
    """
    Place pending ECD B students into `class_name` with a fresh fee year.

    Without `student_ids` every pending student is restored.
    """
    from django.db import transaction

    from apps.students.models import PromotionLog
    from apps.students.promotion import PromotionManager

    task_id = self.request.id
    day = _as_of(as_of)
    repository = _repository()
    pending = repository.load_pending()

    wanted = set(student_ids) if student_ids is not None else None
    selected = [p for p in pending if wanted is None or p.id in wanted]
    untouched = [p for p in pending if wanted is not None and p.id not in wanted]
    missing = sorted(wanted - {p.id for p in selected}) if wanted is not None else []

    manager = PromotionManager(repository.load_settings())
    restored, still_pending, errors = manager.bulk_restore_pending(selected, day, class_name)
    for error in errors:
        logger.error("[%s] %s", task_id, error)

    if restored:
        originals = {p.id: p for p in selected}
        with transaction.atomic():
            repository.save_students(repository.load_students() + restored)
            repository.save_pending(untouched + still_pending)
            PromotionLog.objects.bulk_create([
                PromotionLog(
                    student_id=student.id,
                    student_name=student.full_name,
                    action=PromotionLog.Action.RESTORED,
                    from_class=originals[student.id].from_class,
                    to_class=student.class_name,
                    task_id=task_id or '',
                )
                for student in restored
            ])

    logger.info("[%s] Restored %s pending students into %s", task_id, len(restored), class_name)
    return {
        "status": "completed" if not errors else "completed_with_errors",
        "restored": [student.id for student in restored],
        "missing": missing,
        "errors": errors,
    }
