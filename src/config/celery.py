"""
Celery application for the storefront.

``DJANGO_SETTINGS_MODULE`` is set before the app is created so the worker
reads Django settings (``CELERY_`` prefix) and discovers every module's
``tasks.py``.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("storefront")

app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
