"""Notification sink adapters."""
from .celery_sink import CeleryNotificationSink

__all__ = ["CeleryNotificationSink"]
