"""Referral and reward expiry sweeper (cron/CLI entrypoint)."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
import logging
from typing import Optional

from sqlalchemy.orm import Session

from referral_engine.core.timezone_utils import utc_now
from referral_engine.database import SessionLocal
from referral_engine.services.base import BaseService
from referral_engine.services.notification_service import NotificationService
from referral_engine.services.program_config import ProgramConfig
from referral_engine.services.referral_service import ReferralService
from referral_engine.services.reward_service import RewardService

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    referrals_expired: int = 0
    rewards_expired: int = 0


class ExpirySweeper(BaseService):
    """Runs the referral and reward expiry sweeps independently of each other."""

    def __init__(
        self,
        db: Session,
        *,
        config: Optional[ProgramConfig] = None,
        notifications: Optional[NotificationService] = None,
        referral_service: Optional[ReferralService] = None,
        reward_service: Optional[RewardService] = None,
    ):
        super().__init__(db)
        self.config = config or ProgramConfig.from_settings()
        notifier = notifications or NotificationService()
        self.referral_service = referral_service or ReferralService(
            db, config=self.config, notifications=notifier
        )
        self.reward_service = reward_service or RewardService(
            db, config=self.config, notifications=notifier
        )

    @BaseService.measure_operation("sweeper.run")
    def run(
        self, *, referrals: bool = True, rewards: bool = True, limit: Optional[int] = None
    ) -> SweepResult:
        now = utc_now()
        result = SweepResult()
        if referrals:
            result.referrals_expired = self.referral_service.sweep_expired(now=now, limit=limit)
        if rewards:
            result.rewards_expired = self.reward_service.sweep_expired_rewards(
                now=now, limit=limit
            )
        return result


def main() -> None:  # pragma: no cover - CLI entry point
    parser = argparse.ArgumentParser(description="Referral and reward expiry sweeper")
    parser.add_argument("--skip-referrals", action="store_true", help="Do not expire referrals")
    parser.add_argument("--skip-rewards", action="store_true", help="Do not expire rewards")
    parser.add_argument("--limit", type=int, default=None, help="Maximum records per sweep")
    args = parser.parse_args()

    session = SessionLocal()
    sweeper = ExpirySweeper(session)
    try:
        result = sweeper.run(
            referrals=not args.skip_referrals, rewards=not args.skip_rewards, limit=args.limit
        )
        logger.info(
            "Expiry sweep finished: referrals_expired=%s rewards_expired=%s",
            result.referrals_expired,
            result.rewards_expired,
        )
    finally:
        session.close()


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
