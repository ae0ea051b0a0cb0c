"""Celery application for deferred job-offer expiry and periodic sweeps."""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "repairhub.settings")

app = Celery("repairhub")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
