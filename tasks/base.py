"""
Base task class - NO DJANGO IMPORTS AT MODULE LEVEL
"""
import logging
from celery import Task

logger = logging.getLogger(__name__)


class BaseTask(Task):
    """
    Base class for batch tasks that walk the whole student roster.
    Safe for Celery auto-discovery and worker startup.
    """

    abstract = True

    bar_length = 20

    def progress_of(self, done, total):
        if total <= 0:
            return 100
        return max(0, min(100, int(done * 100 / total)))

    def log_progress(self, message, done, total):
        """
        Log batch progress with a visual indicator.

        Returns the percentage logged.
        """
        progress = self.progress_of(done, total)
        filled = int(self.bar_length * progress / 100)
        bar = "█" * filled + "░" * (self.bar_length - filled)

        task_id = self.request.id if self.request else None
        logger.info("[%s] [%s] %3d%% - %s", task_id, bar, progress, message)
        return progress
