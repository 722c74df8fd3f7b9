# referral_engine/tasks/beat_schedule.py
"""
Celery Beat schedule for the referral engine housekeeping.

The sweeps themselves are idempotent; the schedule only decides how often
they run.
"""

from typing import Any

from celery.schedules import crontab

CELERYBEAT_SCHEDULE: dict[str, dict[str, Any]] = {
    "referrals-expire-daily": {
        "task": "referral_engine.tasks.referral_tasks.expire_referrals",
        "schedule": crontab(hour=2, minute=0),  # Daily at 02:00 UTC
        "options": {"queue": "maintenance", "priority": 5},
    },
    "rewards-expire-daily": {
        "task": "referral_engine.tasks.referral_tasks.expire_rewards",
        "schedule": crontab(hour=3, minute=0),  # Daily at 03:00 UTC
        "options": {"queue": "maintenance", "priority": 5},
    },
}

SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "development": {
        "referrals-expire-daily": {
            "task": "referral_engine.tasks.referral_tasks.expire_referrals",
            "schedule": crontab(minute=0),  # Hourly locally
            "options": {"queue": "maintenance"},
        },
    },
}


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, testing)

    Returns:
        Mapping of schedule entry name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = dict(CELERYBEAT_SCHEDULE)
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update(overrides)
    return base
