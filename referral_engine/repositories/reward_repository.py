"""Reward repository: dedup lookups, compare-and-set transitions and summaries."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
import logging
from typing import Dict, List, Optional, cast

import sqlalchemy as sa
from sqlalchemy import func
from sqlalchemy.orm import Session

from referral_engine.core.enums import RewardSourceType, RewardStatus, RewardType, UserRole
from referral_engine.models.rewards import Reward

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class RewardRepository(BaseRepository[Reward]):
    """Data access for rewards."""

    def __init__(self, db: Session):
        super().__init__(db, Reward)

    def get_by_dedup_key(self, recipient_id: str, dedup_key: str) -> Optional[Reward]:
        stmt = sa.select(Reward).where(
            Reward.recipient_id == recipient_id,
            Reward.dedup_key == dedup_key,
        ).execution_options(populate_existing=True)
        return cast(Optional[Reward], self.db.execute(stmt).scalar_one_or_none())

    def list_for_user(
        self,
        recipient_id: str,
        *,
        status: Optional[RewardStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Reward]:
        stmt = sa.select(Reward).where(Reward.recipient_id == recipient_id)
        if status is not None:
            stmt = stmt.where(Reward.status == status)
        stmt = (
            stmt.order_by(Reward.created_at.desc(), Reward.id.desc())
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(self.db.execute(stmt).scalars().all())

    def mark_credited(self, reward_id: str, credited_at: datetime) -> bool:
        """Compare-and-set ``pending -> credited``."""

        updated = self.conditional_update(
            Reward.id == reward_id,
            Reward.status == RewardStatus.PENDING,
            status=RewardStatus.CREDITED,
            credited_date=credited_at,
        )
        return updated == 1

    def mark_expired(self, reward_id: str) -> bool:
        updated = self.conditional_update(
            Reward.id == reward_id,
            Reward.status == RewardStatus.PENDING,
            status=RewardStatus.EXPIRED,
        )
        return updated == 1

    def find_expired_pending_ids(
        self, now: datetime, limit: int = 500, after_id: Optional[str] = None
    ) -> List[str]:
        """One page of expired pending ids in id order, starting after ``after_id``."""

        stmt = sa.select(Reward.id).where(
            Reward.status == RewardStatus.PENDING, Reward.expiry_date < now
        )
        if after_id is not None:
            stmt = stmt.where(Reward.id > after_id)
        stmt = stmt.order_by(Reward.id.asc()).limit(limit)
        return [row[0] for row in self.db.execute(stmt).all()]

    def summary_for_user(self, recipient_id: str) -> Dict[str, object]:
        """Counts and amount totals per status for one recipient."""

        stmt = (
            sa.select(
                Reward.status,
                func.count(Reward.id),
                func.coalesce(func.sum(Reward.amount), 0),
            )
            .where(Reward.recipient_id == recipient_id)
            .group_by(Reward.status)
        )
        counts: Dict[str, int] = {status.value: 0 for status in RewardStatus}
        totals: Dict[str, Decimal] = {status.value: Decimal("0") for status in RewardStatus}
        for status, count, total in self.db.execute(stmt).all():
            key = status.value if isinstance(status, RewardStatus) else str(status)
            counts[key] = int(count or 0)
            totals[key] = Decimal(str(total or 0))
        return {"counts": counts, "totals": totals}

    def leaderboard(
        self,
        *,
        since: Optional[datetime] = None,
        role: Optional[UserRole] = None,
        limit: int = 10,
    ) -> List[Dict[str, object]]:
        total_amount = func.coalesce(func.sum(Reward.amount), 0).label("total_amount")
        credited = func.count(
            sa.case((Reward.status == RewardStatus.CREDITED, 1))
        ).label("credited_rewards")
        stmt = sa.select(
            Reward.recipient_id,
            Reward.recipient_role,
            func.count(Reward.id).label("total_rewards"),
            total_amount,
            credited,
        )
        if since is not None:
            stmt = stmt.where(Reward.created_at >= since)
        if role is not None:
            stmt = stmt.where(Reward.recipient_role == role)
        stmt = (
            stmt.group_by(Reward.recipient_id, Reward.recipient_role)
            .order_by(total_amount.desc(), credited.desc(), Reward.recipient_id.asc())
            .limit(limit)
        )
        return [
            {
                "user_id": recipient_id,
                "user_role": recipient_role,
                "total_rewards": int(total_rewards or 0),
                "total_amount": Decimal(str(amount or 0)),
                "credited_rewards": int(credited_rewards or 0),
            }
            for recipient_id, recipient_role, total_rewards, amount, credited_rewards in (
                self.db.execute(stmt).all()
            )
        ]

    def has_reward_of_type(self, recipient_id: str, reward_type: RewardType) -> bool:
        stmt = (
            sa.select(Reward.id)
            .where(Reward.recipient_id == recipient_id, Reward.reward_type == reward_type)
            .limit(1)
        )
        return self.db.execute(stmt).first() is not None

    def totals_for_source(
        self, source_type: RewardSourceType, source_id: str
    ) -> Dict[str, object]:
        """Reward count, amount and credited count issued from one source."""

        stmt = sa.select(
            func.count(Reward.id),
            func.coalesce(func.sum(Reward.amount), 0),
            func.count(sa.case((Reward.status == RewardStatus.CREDITED, 1))),
        ).where(Reward.source_type == source_type, Reward.source_id == source_id)
        count, amount, credited = self.db.execute(stmt).one()
        return {
            "rewards_issued": int(count or 0),
            "rewards_amount": Decimal(str(amount or 0)),
            "rewards_credited": int(credited or 0),
        }
