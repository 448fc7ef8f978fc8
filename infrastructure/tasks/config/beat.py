"""Celery beat schedule configuration.

Entries follow the Celery docs layout so periodic jobs are easy to add.
"""
from __future__ import annotations

from core.config import settings

CELERY_BEAT_SCHEDULE = {
    # Resolve refunds left in "processing" by a crash between gateway call and finalize
    "refunds-reconcile-stale-processing": {
        "task": "refunds.reconcile_stale_processing",
        "schedule": float(settings.refund.reconcile_interval_seconds),
        "options": {"queue": "low"},
    },
}
