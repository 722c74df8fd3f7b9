"""Celery tasks for referral program housekeeping."""

from __future__ import annotations

import logging
from typing import Dict

from referral_engine.database import get_db_session
from referral_engine.services.expiry_sweeper import ExpirySweeper
from referral_engine.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="referral_engine.tasks.referral_tasks.expire_referrals")
def expire_referrals() -> Dict[str, int]:
    """Expire pending referrals past their expiry date."""
    with get_db_session() as db:
        result = ExpirySweeper(db).run(referrals=True, rewards=False)
    logger.info("Referral expiry sweep finished: expired=%s", result.referrals_expired)
    return {"referrals_expired": result.referrals_expired}


@celery_app.task(name="referral_engine.tasks.referral_tasks.expire_rewards")
def expire_rewards() -> Dict[str, int]:
    """Expire pending rewards past their expiry date."""
    with get_db_session() as db:
        result = ExpirySweeper(db).run(referrals=False, rewards=True)
    logger.info("Reward expiry sweep finished: expired=%s", result.rewards_expired)
    return {"rewards_expired": result.rewards_expired}
