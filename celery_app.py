"""
Celery configuration for the billing project.
Named celery_app.py to avoid conflict with celery package.
"""
import os
from celery import Celery

# Use environment variable or default
settings_module = os.environ.get('DJANGO_SETTINGS_MODULE', 'billing_app.settings')

# Set the default Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', settings_module)

# Create Celery app with unique name
app = Celery('billing_background_tasks')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django apps.
app.autodiscover_tasks()


@app.task(name='health_check')
def health_check():
    """Simple health check task"""
    import datetime
    return {
        'status': 'healthy',
        'timestamp': datetime.datetime.now().isoformat()
    }


import tasks.student_tasks  # noqa: E402,F401
import tasks.system_tasks  # noqa: E402,F401
