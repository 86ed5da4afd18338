"""
Loading and storing the student collections.

The billing engine works on whole collections of value objects, so
repositories hand out lists and take lists back. ``save_*`` replaces the
stored collection with the one given.
"""
import dataclasses
import logging

from django.db import transaction

logger = logging.getLogger(__name__)


class StudentRepository:
    """Interface shared by the Django-backed and in-memory stores."""

    def load_students(self):
        raise NotImplementedError

    def save_students(self, students):
        raise NotImplementedError

    def load_transferred(self):
        raise NotImplementedError

    def save_transferred(self, transferred):
        raise NotImplementedError

    def load_pending(self):
        raise NotImplementedError

    def save_pending(self, pending):
        raise NotImplementedError

    def load_settings(self):
        raise NotImplementedError

    def claim_promotion_run(self, as_of):
        """
        Record that the automatic promotion ran on `as_of`.

        Returns False when a run for that date was already recorded.
        """
        raise NotImplementedError


class InMemoryStudentRepository(StudentRepository):
    """Keeps everything in lists; used by tests and dry runs."""

    def __init__(self, settings, students=(), transferred=(), pending=()):
        self.settings = settings
        self.students = list(students)
        self.transferred = list(transferred)
        self.pending = list(pending)

    def load_students(self):
        return list(self.students)

    def save_students(self, students):
        self.students = list(students)

    def load_transferred(self):
        return list(self.transferred)

    def save_transferred(self, transferred):
        self.transferred = list(transferred)

    def load_pending(self):
        return list(self.pending)

    def save_pending(self, pending):
        self.pending = list(pending)

    def load_settings(self):
        return self.settings

    def claim_promotion_run(self, as_of):
        if self.settings.last_promotion_date == as_of:
            return False
        self.settings = dataclasses.replace(self.settings, last_promotion_date=as_of)
        return True


class DjangoStudentRepository(StudentRepository):
    """Stores each collection as JSON snapshots in its own table."""

    @staticmethod
    def _load(model):
        return [row.to_record() for row in model.objects.all()]

    @staticmethod
    def _replace(model, records):
        with transaction.atomic():
            model.objects.all().delete()
            model.objects.bulk_create([model.from_record(record) for record in records])
        logger.debug("Stored %s %s rows", len(records), model.__name__)

    def load_students(self):
        from apps.students.models import StudentRecord
        return self._load(StudentRecord)

    def save_students(self, students):
        from apps.students.models import StudentRecord
        self._replace(StudentRecord, list(students))

    def load_transferred(self):
        from apps.students.models import TransferredStudentRecord
        return self._load(TransferredStudentRecord)

    def save_transferred(self, transferred):
        from apps.students.models import TransferredStudentRecord
        self._replace(TransferredStudentRecord, list(transferred))

    def load_pending(self):
        from apps.students.models import PendingPromotionRecord
        return self._load(PendingPromotionRecord)

    def save_pending(self, pending):
        from apps.students.models import PendingPromotionRecord
        self._replace(PendingPromotionRecord, list(pending))

    def load_settings(self):
        from apps.corecode.models import SchoolSettings
        return SchoolSettings.load().to_app_settings()

    def claim_promotion_run(self, as_of):
        from apps.corecode.models import SchoolSettings

        SchoolSettings.load()
        with transaction.atomic():
            row = SchoolSettings.objects.select_for_update().get(pk=1)
            if row.last_promotion_date == as_of:
                logger.info("Promotion run for %s already recorded", as_of)
                return False
            row.last_promotion_date = as_of
            row.save(update_fields=['last_promotion_date', 'updated_at'])
        return True
