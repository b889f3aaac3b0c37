"""
Celery configuration for the Django application.

Celery runs the payments background work:
- The scheduled subscription lifecycle job (celery-beat, DatabaseScheduler)
- Refund status syncs queued after a refund is initiated

Redis is both the message broker and the result backend. Tasks are
auto-discovered from the installed Django apps.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import logging
import os

from celery import Celery

logger = logging.getLogger(__name__)

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()


@app.task(bind=True, ignore_result=True)
def debug_task(self):
    """Log the task request to check worker connectivity."""
    logger.info("Celery debug task", extra={"task_id": self.request.id})
