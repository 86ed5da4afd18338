from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _

from apps.corecode.calendar import BillingCycle, parse_month_day
from apps.corecode.utils import billing_setting


class SchoolSettings(models.Model):
    """School-wide billing configuration (a single row)"""

    school_name = models.CharField(max_length=200, blank=True, verbose_name=_("School Name"))
    billing_cycle = models.CharField(
        max_length=10,
        choices=BillingCycle.choices,
        default=BillingCycle.MONTHLY,
        verbose_name=_("Billing Cycle"),
    )
    payment_due_date = models.PositiveSmallIntegerField(
        default=1,
        verbose_name=_("Payment Due Day"),
        help_text=_("Day of the month tuition falls due"),
    )
    transport_due_date = models.PositiveSmallIntegerField(
        default=7,
        verbose_name=_("Transport Due Day"),
    )
    auto_promotion_enabled = models.BooleanField(default=True, verbose_name=_("Automatic Promotions"))
    auto_promotion_date = models.CharField(
        max_length=5,
        default="01-01",
        verbose_name=_("Promotion Date"),
        help_text=_("MM-DD"),
    )
    # set by the promotion task; a second run on the same date is a no-op
    last_promotion_date = models.DateField(null=True, blank=True, editable=False,
                                           verbose_name=_("Last Promotion Run"))
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("School Settings")
        verbose_name_plural = _("School Settings")

    def __str__(self):
        return self.school_name or "School Settings"

    def clean(self):
        errors = {}
        if not 1 <= self.payment_due_date <= 31:
            errors['payment_due_date'] = _("Due day must be between 1 and 31")
        if not 1 <= self.transport_due_date <= 31:
            errors['transport_due_date'] = _("Due day must be between 1 and 31")
        try:
            parse_month_day(self.auto_promotion_date)
        except ValueError:
            errors['auto_promotion_date'] = _("Use the MM-DD format")
        if errors:
            raise ValidationError(errors)

    @classmethod
    def load(cls):
        """The settings row, created from SCHOOL_BILLING defaults on first use."""
        from django.conf import settings

        instance, _created = cls.objects.get_or_create(
            pk=1,
            defaults={
                'school_name': getattr(settings, 'SCHOOL_NAME', ''),
                'billing_cycle': billing_setting('BILLING_CYCLE'),
                'payment_due_date': billing_setting('PAYMENT_DUE_DAY'),
                'transport_due_date': billing_setting('TRANSPORT_DUE_DAY'),
                'auto_promotion_enabled': billing_setting('AUTO_PROMOTION_ENABLED'),
                'auto_promotion_date': billing_setting('AUTO_PROMOTION_DATE'),
            },
        )
        return instance

    def to_app_settings(self):
        from apps.students.records import AppSettings

        return AppSettings(
            billing_cycle=self.billing_cycle,
            class_groups=tuple(group.to_record() for group in ClassGroup.objects.all()),
            payment_due_date=self.payment_due_date,
            transport_due_date=self.transport_due_date,
            auto_promotion_enabled=self.auto_promotion_enabled,
            auto_promotion_date=self.auto_promotion_date,
            last_promotion_date=self.last_promotion_date,
            school_name=self.school_name,
        )


class ClassGroup(models.Model):
    """A group of classes sharing one standard fee"""

    slug = models.SlugField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    standard_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    # class names belonging to the group, e.g. ["Grade 1", "Grade 2"]
    classes = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["name"]
        verbose_name = _("Class Group")
        verbose_name_plural = _("Class Groups")

    def __str__(self):
        return self.name

    def clean(self):
        if self.standard_fee is not None and self.standard_fee < 0:
            raise ValidationError({'standard_fee': _("Fee cannot be negative")})
        if not isinstance(self.classes, list):
            raise ValidationError({'classes': _("Classes must be a list of class names")})

    def to_record(self):
        from apps.students.records import ClassGroup as ClassGroupRecord

        return ClassGroupRecord(
            id=self.slug,
            name=self.name,
            standard_fee=self.standard_fee,
            classes=tuple(self.classes or ()),
        )


from apps.corecode import signals  # noqa: E402,F401
