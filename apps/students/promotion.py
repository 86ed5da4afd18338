"""
Promotion, graduation and transfer of students.

Class names are parsed once into a ClassLevel (family + level) against the
class ladders configured in ``SCHOOL_BILLING["CLASS_LADDERS"]``; the successor
of a level is then a plain lookup. A ladder with a ``next`` family (ECD)
does not promote across the boundary: its top class goes to the pending
placement list instead, to be restored by hand.
"""
from __future__ import annotations

import dataclasses
import logging
import re
from collections import Counter, namedtuple
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from django.utils.translation import gettext as _

from apps.corecode.calendar import age_on, is_promotion_date
from apps.corecode.utils import ZERO, billing_setting, to_money
from apps.finance.exceptions import StudentNotFound
from apps.finance.schedule import initialize_fee_payments
from apps.finance.totals import calculate_outstanding_from_enrollment
from apps.finance.transport import initialize_transport_payments
from apps.students.records import PendingPromotedStudent, Student, TransferredStudent

logger = logging.getLogger(__name__)

DEFAULT_GRADUATION_REASON = "Graduation - Completed final grade"
GRADUATED_SCHOOL = "Graduated"

ClassLevel = namedtuple('ClassLevel', ['family', 'level'])

Promotion = namedtuple('Promotion', ['target_class', 'target_family'])
PendingPlacement = namedtuple('PendingPlacement', ['target_class'])
Graduation = namedtuple('Graduation', ['reason'])


def _normalize(name):
    return re.sub(r'[\s\-_]+', ' ', str(name or '')).strip().lower()


@dataclass(frozen=True)
class ClassLadder:
    family: str
    labels: Tuple[str, ...]
    prefixes: Tuple[str, ...] = ()
    class_group: str = ''
    next_family: Optional[str] = None
    graduation_reason: str = DEFAULT_GRADUATION_REASON

    @classmethod
    def from_config(cls, config):
        prefix = config.get('prefix')
        if prefix:
            first, last = int(config.get('first', 1)), int(config['last'])
            labels = tuple(f"{prefix} {n}" for n in range(first, last + 1))
            prefixes = (prefix, *config.get('aliases', ()))
        else:
            labels = tuple(config['labels'])
            prefixes = ()
        return cls(
            family=config['family'],
            labels=labels,
            prefixes=tuple(prefixes),
            class_group=config.get('class_group', ''),
            next_family=config.get('next'),
            graduation_reason=config.get('graduation_reason', DEFAULT_GRADUATION_REASON),
        )

    def match(self, class_name):
        """Level (1-based) of `class_name` on this ladder, or None."""
        normalized = _normalize(class_name)
        for index, label in enumerate(self.labels, start=1):
            if normalized == _normalize(label):
                return index
        # "Grade 3 Blue" still sits on level 3
        for prefix in self.prefixes:
            found = re.match(rf'^{re.escape(_normalize(prefix))} (\d+)\b', normalized)
            if found:
                number = int(found.group(1))
                for index, label in enumerate(self.labels, start=1):
                    if label.endswith(f" {number}"):
                        return index
        return None


def load_class_ladders(config=None):
    if config is None:
        config = billing_setting('CLASS_LADDERS')
    return tuple(ClassLadder.from_config(item) for item in config)


def parse_class_level(class_name, ladders):
    for ladder in ladders:
        level = ladder.match(class_name)
        if level is not None:
            return ClassLevel(ladder.family, level)
    return None


def _ladder(ladders, family):
    for ladder in ladders:
        if ladder.family == family:
            return ladder
    return None


def next_step(level, ladders):
    """Promotion, PendingPlacement or Graduation for a parsed class level."""
    ladder = _ladder(ladders, level.family)
    if ladder is None:
        return None
    if level.level < len(ladder.labels):
        return Promotion(ladder.labels[level.level], ladder.family)
    if ladder.next_family:
        successor = _ladder(ladders, ladder.next_family)
        if successor is not None:
            return PendingPlacement(successor.labels[0])
    return Graduation(ladder.graduation_reason)


@dataclass(frozen=True)
class PromotionRule:
    id: str
    name: str
    enabled: bool = True
    max_outstanding_amount: Optional[Decimal] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    applicable_classes: Tuple[str, ...] = ()
    description: str = ''

    def applies_to(self, class_name):
        if not self.applicable_classes:
            return True
        wanted = _normalize(class_name)
        return any(_normalize(c) == wanted for c in self.applicable_classes)


DEFAULT_PROMOTION_RULES = (
    PromotionRule(
        id='default_payment_rule',
        name='Payment Clearance Rule',
        max_outstanding_amount=ZERO,
        description='Students must clear outstanding payments before promotion',
    ),
)


def evaluate_rules(student, rules, cycle, as_of):
    """Reasons the student may not move up; empty when nothing blocks."""
    reasons = []
    for rule in rules:
        if not rule.enabled or not rule.applies_to(student.class_name):
            continue
        if rule.max_outstanding_amount is not None:
            outstanding = calculate_outstanding_from_enrollment(student, cycle, as_of).total
            if outstanding > to_money(rule.max_outstanding_amount):
                reasons.append(_("%(rule)s: outstanding payment of %(amount)s") % {
                    'rule': rule.name, 'amount': outstanding,
                })
        age = age_on(student.date_of_birth, as_of)
        if age is not None and rule.min_age is not None and age < rule.min_age:
            reasons.append(_("%(rule)s: younger than %(age)s") % {'rule': rule.name, 'age': rule.min_age})
        if age is not None and rule.max_age is not None and age > rule.max_age:
            reasons.append(_("%(rule)s: older than %(age)s") % {'rule': rule.name, 'age': rule.max_age})
    return reasons


@dataclass
class PromotionResult:
    promoted: List[Student] = field(default_factory=list)
    transferred: List[TransferredStudent] = field(default_factory=list)
    pending: List[PendingPromotedStudent] = field(default_factory=list)
    # student id -> reason the student stayed in class
    retained: Dict[str, str] = field(default_factory=dict)
    # active roster after the run
    remaining: List[Student] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    message: str = ''
    total_processed: int = 0
    promotions_by_class: Counter = field(default_factory=Counter)
    transfers_by_reason: Counter = field(default_factory=Counter)

    @property
    def success(self):
        return not self.errors


PromotionPreview = namedtuple('PromotionPreview', [
    'student_id',
    'student_name',
    'current_class',
    'proposed_class',
    'action',
    'can_promote',
    'reasons',
    'outstanding_amount',
    'age',
])


class PromotionManager:
    """
    Runs promotions over value objects. Nothing is persisted here; callers
    store `result.remaining`, `result.transferred` and `result.pending`.
    """

    def __init__(self, settings, rules=None, ladders=None):
        self.settings = settings
        self.rules = tuple(DEFAULT_PROMOTION_RULES if rules is None else rules)
        self.ladders = load_class_ladders() if ladders is None else tuple(ladders)

    # ------------------------------------------------------------------
    # Automatic run
    # ------------------------------------------------------------------

    def check_automatic_promotions(self, students, as_of, retain_payment_history=None):
        result = PromotionResult(remaining=list(students))

        if not self.settings.auto_promotion_enabled:
            result.message = _("Automatic promotions are disabled in school settings")
            return result

        promotion_date = self.settings.auto_promotion_date or '01-01'
        try:
            due_today = is_promotion_date(as_of, promotion_date)
        except ValueError:
            result.errors.append(_("Invalid automatic promotion date: %(date)s") % {'date': promotion_date})
            result.message = result.errors[-1]
            return result

        if not due_today:
            result.message = _("Automatic promotions only occur on %(date)s") % {'date': promotion_date}
            return result

        if self.settings.last_promotion_date == as_of:
            result.message = _("Automatic promotions already ran on %(date)s") % {'date': as_of.isoformat()}
            return result

        result = self._run(students, as_of, retain_payment_history)
        result.message = _(
            "Automatic promotions completed: %(promoted)s promoted, %(transferred)s transferred, "
            "%(pending)s ECD B students moved to pending list"
        ) % {
            'promoted': len(result.promoted),
            'transferred': len(result.transferred),
            'pending': len(result.pending),
        }
        logger.info(result.message)
        return result

    def _run(self, students, as_of, retain_payment_history):
        result = PromotionResult()
        cycle = self.settings.billing_cycle

        for student in students:
            if student.is_transferred:
                result.remaining.append(student)
                continue
            result.total_processed += 1
            try:
                level = parse_class_level(student.class_name, self.ladders)
                step = next_step(level, self.ladders) if level else None
                if step is None:
                    result.warnings.append(_("%(name)s: class %(cls)s is not on a promotion ladder") % {
                        'name': student.full_name, 'cls': student.class_name,
                    })
                    result.remaining.append(student)
                    continue

                if isinstance(step, PendingPlacement):
                    result.pending.append(self.move_to_pending(student, step.target_class, as_of))
                    continue

                reasons = evaluate_rules(student, self.rules, cycle, as_of)
                if reasons:
                    result.retained[student.id] = "; ".join(reasons)
                    result.remaining.append(student)
                    continue

                if isinstance(step, Promotion):
                    promoted = self.promote_student(student, step.target_class, as_of)
                    result.promoted.append(promoted)
                    result.remaining.append(promoted)
                    result.promotions_by_class[student.class_name] += 1
                else:
                    graduated = self.graduate_student(
                        student, as_of, step.reason, retain_payment_history,
                    )
                    result.transferred.append(graduated)
                    result.transfers_by_reason[graduated.transfer_reason] += 1

            except Exception as exc:
                logger.exception("Promotion failed for student %s", student.id)
                result.errors.append(_("Failed to process %(name)s: %(error)s") % {
                    'name': student.full_name, 'error': exc,
                })
                result.remaining.append(student)

        return result

    def preview(self, students, as_of):
        """Dry run: what the automatic run would do, student by student."""
        previews = []
        cycle = self.settings.billing_cycle
        for student in students:
            if student.is_transferred:
                continue
            level = parse_class_level(student.class_name, self.ladders)
            step = next_step(level, self.ladders) if level else None
            outstanding = calculate_outstanding_from_enrollment(student, cycle, as_of).total
            reasons = evaluate_rules(student, self.rules, cycle, as_of)

            if step is None:
                action, proposed = 'retention', student.class_name
                reasons = reasons + [_("Class is not on a promotion ladder")]
            elif isinstance(step, PendingPlacement):
                action, proposed, reasons = 'pending_placement', step.target_class, []
            elif isinstance(step, Promotion):
                action, proposed = ('retention', student.class_name) if reasons else ('grade_promotion', step.target_class)
            else:
                action, proposed = ('retention', student.class_name) if reasons else ('graduation', GRADUATED_SCHOOL)

            previews.append(PromotionPreview(
                student_id=student.id,
                student_name=student.full_name,
                current_class=student.class_name,
                proposed_class=proposed,
                action=action,
                can_promote=action != 'retention',
                reasons=reasons,
                outstanding_amount=outstanding,
                age=age_on(student.date_of_birth, as_of),
            ))
        return previews

    # ------------------------------------------------------------------
    # Single-student transitions
    # ------------------------------------------------------------------

    def _class_group_for(self, class_name, fallback):
        wanted = _normalize(class_name)
        for group in self.settings.class_groups:
            if any(_normalize(c) == wanted for c in group.classes):
                return group.id
        level = parse_class_level(class_name, self.ladders)
        ladder = _ladder(self.ladders, level.family) if level else None
        if ladder and ladder.class_group and self.settings.class_group(ladder.class_group):
            return ladder.class_group
        return fallback

    def _fresh_year(self, student, as_of):
        """New fee schedule (and transport schedule) with no payment history."""
        student = initialize_fee_payments(student, self.settings, as_of)
        transport_payments = ()
        if student.has_transport and student.transport_fee > 0:
            activated = student.transport_activation_date or date(as_of.year, 1, 1)
            transport_payments = initialize_transport_payments(
                student.transport_fee, activated, self.settings, as_of,
            )
        return dataclasses.replace(
            student,
            transport_payments=transport_payments,
            total_paid=ZERO,
            total_owed=ZERO,
        )

    def promote_student(self, student, target_class, as_of, class_group=None):
        promoted = dataclasses.replace(
            student,
            class_name=target_class,
            class_group=class_group or self._class_group_for(target_class, student.class_group),
            academic_year=as_of.year,
            fee_payments=(),
        )
        promoted = self._fresh_year(promoted, as_of)
        logger.info("Promoted %s from %s to %s", student.id, student.class_name, target_class)
        return promoted.with_note(
            f"[AUTO-PROMOTED from {student.class_name} on {as_of.isoformat()}]"
        )

    def _to_transferred(self, student, transfer_date, new_school, reason, retain_payment_history):
        base = student.as_student()
        if not retain_payment_history:
            base = dataclasses.replace(
                base,
                fee_payments=(),
                transport_payments=(),
                total_paid=ZERO,
                total_owed=ZERO,
                has_transport=False,
                transport_fee=ZERO,
                transport_activation_date=None,
            )
        values = {f.name: getattr(base, f.name) for f in dataclasses.fields(Student)}
        values.update(is_transferred=True, is_active=False)
        return TransferredStudent(
            **values,
            transfer_date=transfer_date,
            transfer_reason=reason,
            new_school=new_school,
            original_admission_date=student.admission_date,
            original_class_group=student.class_group,
            original_class_name=student.class_name,
            payment_history_retained=bool(retain_payment_history),
        )

    def graduate_student(self, student, as_of, reason=DEFAULT_GRADUATION_REASON,
                         retain_payment_history=None):
        if retain_payment_history is None:
            retain_payment_history = billing_setting('RETAIN_PAYMENT_HISTORY_ON_GRADUATION')
        graduated = self._to_transferred(student, as_of, GRADUATED_SCHOOL, reason, retain_payment_history)
        logger.info("Graduated %s from %s", student.id, student.class_name)
        return graduated.with_note(f"[GRADUATED on {as_of.isoformat()}]")

    def transfer_student(self, student, transfer_date, new_school, reason,
                         retain_payment_history=False, notes=''):
        """
        Move a student to another school.

        Returns: (success, transferred_student_or_None, message)
        """
        if student.is_transferred:
            return False, None, _("Student is already transferred")
        if not new_school:
            return False, None, _("The new school is required")
        transferred = self._to_transferred(
            student, transfer_date, new_school, reason, retain_payment_history,
        )
        transferred = transferred.with_note(
            f"[TRANSFERRED to {new_school} on {transfer_date.isoformat()}]"
        )
        if notes:
            transferred = transferred.with_note(f"Transfer Note: {notes}")
        logger.info("Transferred %s to %s", student.id, new_school)
        return True, transferred, _("Student %(name)s transferred to %(school)s") % {
            'name': student.full_name, 'school': new_school,
        }

    def move_to_pending(self, student, target_class, as_of):
        snapshot = student.as_student()
        values = {f.name: getattr(snapshot, f.name) for f in dataclasses.fields(Student)}
        logger.info("Moved %s (%s) to the pending placement list", student.id, student.class_name)
        return PendingPromotedStudent(
            **values,
            promotion_date=as_of,
            from_class=student.class_name,
            to_class=target_class,
            promotion_type=PendingPromotedStudent.ECD_B_TO_GRADE_1,
            can_be_restored=True,
            original_data=snapshot,
        )

    def restore_pending_student(self, pending, as_of, class_name=None, overrides=None):
        """Bring a pending student back onto the active roster with a fresh year."""
        base = pending.original_data or pending.as_student()
        target_class = class_name or pending.to_class or "Grade 1"
        restored = dataclasses.replace(
            base,
            class_name=target_class,
            academic_year=as_of.year,
            notes=pending.notes,
            fee_payments=(),
            is_transferred=False,
            is_active=True,
        )
        known = {f.name for f in dataclasses.fields(Student)}
        overrides = {k: v for k, v in (overrides or {}).items() if k in known and k != 'id'}
        if overrides:
            restored = dataclasses.replace(restored, **overrides)
        if 'class_group' not in overrides:
            restored = dataclasses.replace(
                restored, class_group=self._class_group_for(restored.class_name, base.class_group),
            )
        restored = self._fresh_year(restored, as_of)
        logger.info("Restored %s from the pending list as %s", pending.id, restored.class_name)
        return restored.with_note(f"[RESTORED from ECD B pending list on {as_of.isoformat()}]")

    def bulk_restore_pending(self, pending_list, as_of, target_class_name="Grade 1"):
        """
        Restore every ECD B pending student into `target_class_name`.

        Returns: (restored, still_pending, errors)
        """
        restored, still_pending, errors = [], [], []
        for pending in pending_list:
            if pending.promotion_type != PendingPromotedStudent.ECD_B_TO_GRADE_1:
                still_pending.append(pending)
                continue
            try:
                restored.append(self.restore_pending_student(pending, as_of, target_class_name))
            except Exception as exc:
                logger.exception("Could not restore pending student %s", pending.id)
                errors.append(f"{pending.full_name}: {exc}")
                still_pending.append(pending)
        return restored, still_pending, errors

    def remove_pending_student(self, pending_list, student_id):
        remaining = [p for p in pending_list if p.id != student_id]
        if len(remaining) == len(pending_list):
            raise StudentNotFound(student_id)
        return remaining

    def bulk_promote_by_class(self, students, class_name, new_class_name, new_class_group, as_of):
        """Move every active student of one class to a named class, ignoring rules."""
        result = PromotionResult()
        for student in students:
            if student.is_transferred or student.class_name != class_name:
                result.remaining.append(student)
                continue
            result.total_processed += 1
            try:
                promoted = self.promote_student(student, new_class_name, as_of, class_group=new_class_group)
                result.promoted.append(promoted)
                result.remaining.append(promoted)
            except Exception as exc:
                logger.exception("Bulk promotion failed for student %s", student.id)
                result.errors.append(_("Failed to promote %(name)s: %(error)s") % {
                    'name': student.full_name, 'error': exc,
                })
                result.remaining.append(student)
        if result.promoted:
            result.promotions_by_class[class_name] = len(result.promoted)
        result.message = _("%(count)s students moved from %(old)s to %(new)s") % {
            'count': len(result.promoted), 'old': class_name, 'new': new_class_name,
        }
        return result

    def generate_promotion_report(self, result, as_of):
        lines = [
            "=== STUDENT PROMOTION REPORT ===",
            f"Date: {as_of.isoformat()}",
            f"Academic Year: {as_of.year}",
            "",
            "=== SUMMARY ===",
            f"Total Students Processed: {result.total_processed}",
            f"Successfully Promoted: {len(result.promoted)}",
            f"Transferred/Graduated: {len(result.transferred)}",
            f"Pending Placement: {len(result.pending)}",
            f"Retained: {len(result.retained)}",
            f"Errors: {len(result.errors)}",
            f"Warnings: {len(result.warnings)}",
            "",
            "=== PROMOTIONS BY CLASS ===",
            *[f"{name}: {count} students" for name, count in sorted(result.promotions_by_class.items())],
            "",
            "=== TRANSFERS BY REASON ===",
            *[f"{reason}: {count} students" for reason, count in sorted(result.transfers_by_reason.items())],
            "",
        ]
        if result.retained:
            lines.append("=== RETAINED ===")
            lines.extend(f"{student_id}: {reason}" for student_id, reason in result.retained.items())
            lines.append("")
        if result.errors:
            lines.append("=== ERRORS ===")
            lines.extend(result.errors)
            lines.append("")
        if result.warnings:
            lines.append("=== WARNINGS ===")
            lines.extend(result.warnings)
            lines.append("")
        lines.append("=== END OF REPORT ===")
        return "\n".join(lines)

    def cleanup_old_transfers(self, transferred, as_of, retention_years=None):
        if retention_years is None:
            retention_years = billing_setting('TRANSFER_RETENTION_YEARS')
        return cleanup_old_transfers(transferred, retention_years, as_of)


def retention_cutoff(as_of, retention_years):
    try:
        return as_of.replace(year=as_of.year - retention_years)
    except ValueError:
        # 29 February in a non-leap target year
        return as_of.replace(year=as_of.year - retention_years, day=28)


def cleanup_old_transfers(transferred, retention_years, as_of):
    """
    Drop transfer records older than the retention window.

    Returns: (kept, removed_count)
    """
    if retention_years < 0:
        raise ValueError("Retention years must be a non-negative number")
    cutoff = retention_cutoff(as_of, retention_years)
    kept = [t for t in transferred if t.transfer_date is not None and t.transfer_date > cutoff]
    removed = len(transferred) - len(kept)
    logger.info("Cleaned up %s old transfer records (cutoff %s)", removed, cutoff)
    return kept, removed
