"""
Configuration for background tasks - NO EARLY DJANGO IMPORTS
"""
import os
import logging

from celery.schedules import crontab

logger = logging.getLogger(__name__)

# Use explicit environment variable for CPanel detection
ENV_TYPE = os.environ.get('ENV_TYPE', 'STANDARD').upper()
IS_CPANEL = ENV_TYPE == 'CPANEL'

# Broker configuration - prioritize environment variables
BROKER_URL = os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0')
RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', 'django-db')

# The promotion check runs daily; it is a no-op except on the configured
# promotion date.
BEAT_SCHEDULE = {
    'students-auto-promotion': {
        'task': 'students.run_auto_promotion',
        'schedule': crontab(hour=0, minute=30),
    },
    'system-payment-integrity-audit': {
        'task': 'system.audit_payment_integrity',
        'schedule': crontab(hour=2, minute=0, day_of_week='sunday'),
    },
    'students-cleanup-old-transfers': {
        'task': 'students.cleanup_old_transfers',
        'schedule': crontab(hour=3, minute=0, day_of_month='1'),
    },
}

# Task configuration
TASK_CONFIG = {
    'USE_CELERY': not IS_CPANEL,  # Use Celery by default unless CPanel
    'IS_CPANEL': IS_CPANEL,
    'ENV_TYPE': ENV_TYPE,
    'BROKER_URL': BROKER_URL,
    'RESULT_BACKEND': RESULT_BACKEND,
    'TASK_TRACK_STARTED': True,
    'TASK_TIME_LIMIT': 30 * 60,
    'WORKER_CONCURRENCY': int(os.environ.get('CELERY_WORKER_CONCURRENCY', 4)),
    'TASK_SERIALIZER': 'json',
    'RESULT_SERIALIZER': 'json',
    'ACCEPT_CONTENT': ['json'],
    'TIMEZONE': 'UTC',
    'BEAT_SCHEDULE': BEAT_SCHEDULE,
}

# Log the configuration
logger.info("Celery Configuration:")
logger.info("  Environment: %s", ENV_TYPE)
logger.info("  Broker URL: %s", BROKER_URL)
logger.info("  Result Backend: %s", RESULT_BACKEND)
