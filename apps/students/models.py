from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.students.records import PendingPromotedStudent, Student, TransferredStudent


class SnapshotRecord(models.Model):
    """
    A student value object stored as a JSON snapshot, with the columns the
    admin and reports filter on kept alongside.
    """

    student_id = models.CharField(max_length=64, unique=True, verbose_name=_("Student ID"))
    full_name = models.CharField(max_length=200, verbose_name=_("Full Name"))
    class_name = models.CharField(max_length=100, blank=True, verbose_name=_("Class"))
    class_group = models.CharField(max_length=50, blank=True, db_index=True, verbose_name=_("Class Group"))
    data = models.JSONField(default=dict)
    updated_at = models.DateTimeField(auto_now=True)

    record_class = Student

    class Meta:
        abstract = True
        ordering = ["full_name"]

    def __str__(self):
        return f"{self.student_id} - {self.full_name}"

    def to_record(self):
        if not isinstance(self.data, dict):
            raise ValidationError(_("Malformed student snapshot for %(id)s") % {'id': self.student_id})
        try:
            return self.record_class.from_dict({**self.data, 'id': self.student_id})
        except TypeError as exc:
            raise ValidationError(
                _("Malformed student snapshot for %(id)s: %(error)s") % {'id': self.student_id, 'error': exc}
            )

    @classmethod
    def from_record(cls, record):
        return cls(
            student_id=record.id,
            full_name=record.full_name,
            class_name=record.class_name,
            class_group=record.class_group,
            data=record.to_dict(),
            **cls.extra_columns(record),
        )

    @classmethod
    def extra_columns(cls, record):
        return {}


class StudentRecord(SnapshotRecord):
    """Active roster entry"""

    has_transport = models.BooleanField(default=False)
    total_owed = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    class Meta(SnapshotRecord.Meta):
        verbose_name = _("Student")
        verbose_name_plural = _("Students")

    @classmethod
    def extra_columns(cls, record):
        return {'has_transport': record.has_transport, 'total_owed': record.total_owed}


class TransferredStudentRecord(SnapshotRecord):
    """Graduated or transferred student"""

    transfer_date = models.DateField(null=True, blank=True)
    transfer_reason = models.CharField(max_length=255, blank=True)

    record_class = TransferredStudent

    class Meta(SnapshotRecord.Meta):
        ordering = ["-transfer_date"]
        verbose_name = _("Transferred Student")
        verbose_name_plural = _("Transferred Students")

    @classmethod
    def extra_columns(cls, record):
        return {'transfer_date': record.transfer_date, 'transfer_reason': record.transfer_reason[:255]}


class PendingPromotionRecord(SnapshotRecord):
    """Student waiting for manual placement (ECD B to Grade 1)"""

    promotion_date = models.DateField(null=True, blank=True)
    to_class = models.CharField(max_length=100, blank=True)

    record_class = PendingPromotedStudent

    class Meta(SnapshotRecord.Meta):
        verbose_name = _("Pending Promotion")
        verbose_name_plural = _("Pending Promotions")

    @classmethod
    def extra_columns(cls, record):
        return {'promotion_date': record.promotion_date, 'to_class': record.to_class}


class PromotionLog(models.Model):
    """One line per promotion event"""

    class Action(models.TextChoices):
        PROMOTED = 'promoted', _('Promoted')
        GRADUATED = 'graduated', _('Graduated')
        TRANSFERRED = 'transferred', _('Transferred')
        PENDING = 'pending', _('Moved to pending list')
        RESTORED = 'restored', _('Restored from pending list')
        RETAINED = 'retained', _('Retained')

    student_id = models.CharField(max_length=64, db_index=True)
    student_name = models.CharField(max_length=200)
    action = models.CharField(max_length=20, choices=Action.choices)
    from_class = models.CharField(max_length=100, blank=True)
    to_class = models.CharField(max_length=100, blank=True)
    reason = models.TextField(blank=True)
    task_id = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = _("Promotion Log")
        verbose_name_plural = _("Promotion Logs")

    def __str__(self):
        return f"{self.student_name}: {self.get_action_display()} ({self.from_class} -> {self.to_class})"
