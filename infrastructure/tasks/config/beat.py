"""Celery beat schedule configuration.

Only needed for deployments that run a worker + beat instead of the
in-process sweeper started by the API.
"""
from __future__ import annotations

from core.config import settings

CELERY_BEAT_SCHEDULE = {
    "shares-cleanup-expired": {
        "task": "shares.cleanup_expired",
        "schedule": float(settings.share.cleanup_interval_seconds),
        "options": {"queue": "low"},
    },
}
