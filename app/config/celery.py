"""
Celery configuration for the Django application.

Celery runs the payment engine's background work:
- Audit log writes and notification delivery queued after commit
- The periodic payout run (run-due-payouts, when CRON_ENABLED)
- The webhook reconciliation sweep (retry and stuck-event reset)

Redis is both the message broker and result backend. Periodic tasks are
stored in the database by django-celery-beat. Tasks are auto-discovered
from the tasks.py module of every installed app.

Usage:
    # Worker and beat
    celery -A config worker -l info
    celery -A config beat -l info

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Create Celery application instance
app = Celery("config")

# Load configuration from Django settings
# All Celery settings should be prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all registered Django apps
app.autodiscover_tasks()
