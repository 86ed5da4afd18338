"""
Signals for billing configuration.
Fee schedule rebuilds are offloaded to Celery once the transaction commits.
"""
import logging

from django.db import transaction
from django.db.models.signals import post_save, pre_save
from django.dispatch import receiver

logger = logging.getLogger(__name__)


@receiver(pre_save, sender='corecode.ClassGroup')
def remember_previous_fee(sender, instance, **kwargs):
    """Keep the stored fee on the instance so post_save can compare."""
    instance._previous_fee = None
    if instance.pk:
        instance._previous_fee = (
            sender.objects.filter(pk=instance.pk).values_list('standard_fee', flat=True).first()
        )


@receiver(post_save, sender='corecode.ClassGroup')
def rebuild_schedules_on_fee_change(sender, instance, created, **kwargs):
    """
    Queue a rebuild of every fee schedule in the group when its standard
    fee changed.
    """
    previous = getattr(instance, '_previous_fee', None)
    if created or previous is None or previous == instance.standard_fee:
        return

    logger.info(
        "Standard fee of %s changed from %s to %s; queueing fee rebuild",
        instance.slug, previous, instance.standard_fee,
    )
    slug = instance.slug
    transaction.on_commit(lambda: _queue_rebuild(slug))


def _queue_rebuild(class_group_id):
    from tasks.student_tasks import rebuild_fee_schedules

    try:
        task = rebuild_fee_schedules.delay(class_group_id)
    except Exception:
        logger.exception("Failed to queue fee rebuild for %s", class_group_id)
        raise
    logger.info("Fee rebuild task queued: %s", task.id)
