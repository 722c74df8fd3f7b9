"""Referral code and referral repositories."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
import logging
from typing import Dict, List, Optional, cast

import sqlalchemy as sa
from sqlalchemy import func
from sqlalchemy.orm import Session

from referral_engine.core.enums import ReferralStatus, UserRole
from referral_engine.models.referrals import Referral, ReferralCode

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ReferralCodeRepository(BaseRepository[ReferralCode]):
    """Data access for referral codes."""

    def __init__(self, db: Session):
        super().__init__(db, ReferralCode)

    @staticmethod
    def normalize(code: str) -> str:
        return code.strip().upper()

    def get_by_code(self, code: str) -> Optional[ReferralCode]:
        stmt = (
            sa.select(ReferralCode)
            .where(ReferralCode.code == self.normalize(code))
            .execution_options(populate_existing=True)
        )
        return cast(Optional[ReferralCode], self.db.execute(stmt).scalar_one_or_none())

    def get_active_for_owner(self, owner_id: str, owner_role: UserRole) -> Optional[ReferralCode]:
        stmt = (
            sa.select(ReferralCode)
            .where(
                ReferralCode.owner_id == owner_id,
                ReferralCode.owner_role == owner_role,
                ReferralCode.is_active.is_(True),
            )
            .order_by(ReferralCode.created_at.asc())
            .limit(1)
        )
        return cast(Optional[ReferralCode], self.db.execute(stmt).scalar_one_or_none())

    def list_for_owner(
        self, owner_id: str, owner_role: Optional[UserRole] = None
    ) -> List[ReferralCode]:
        stmt = sa.select(ReferralCode).where(ReferralCode.owner_id == owner_id)
        if owner_role is not None:
            stmt = stmt.where(ReferralCode.owner_role == owner_role)
        stmt = stmt.order_by(ReferralCode.created_at.desc(), ReferralCode.id.desc())
        return list(self.db.execute(stmt).scalars().all())

    def increment_usage(self, code_id: str) -> bool:
        """Consume one use of the code; False when the code is gone, inactive or full."""

        updated = self.conditional_update(
            ReferralCode.id == code_id,
            ReferralCode.is_active.is_(True),
            ReferralCode.usage_count < ReferralCode.max_usage,
            usage_count=ReferralCode.usage_count + 1,
        )
        return updated == 1

    def deactivate(self, code_id: str) -> bool:
        updated = self.conditional_update(
            ReferralCode.id == code_id,
            ReferralCode.is_active.is_(True),
            is_active=False,
        )
        return updated == 1


class ReferralRepository(BaseRepository[Referral]):
    """Data access for referrals."""

    def __init__(self, db: Session):
        super().__init__(db, Referral)

    def list_for_referee(
        self, referee_id: str, status: Optional[ReferralStatus] = None
    ) -> List[Referral]:
        stmt = sa.select(Referral).where(Referral.referee_id == referee_id)
        if status is not None:
            stmt = stmt.where(Referral.status == status)
        stmt = stmt.order_by(Referral.created_at.asc(), Referral.id.asc()).execution_options(
            populate_existing=True
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_for_referrer(
        self,
        referrer_id: str,
        *,
        status: Optional[ReferralStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Referral]:
        stmt = sa.select(Referral).where(Referral.referrer_id == referrer_id)
        if status is not None:
            stmt = stmt.where(Referral.status == status)
        stmt = (
            stmt.order_by(Referral.created_at.desc(), Referral.id.desc())
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(self.db.execute(stmt).scalars().all())

    def transition_from_pending(
        self, referral_id: str, new_status: ReferralStatus, **values: object
    ) -> bool:
        """Move a referral out of ``pending``; only one concurrent caller wins."""

        updated = self.conditional_update(
            Referral.id == referral_id,
            Referral.status == ReferralStatus.PENDING,
            status=new_status,
            **values,
        )
        return updated == 1

    def find_expired_pending_ids(
        self, now: datetime, limit: int = 500, after_id: Optional[str] = None
    ) -> List[str]:
        """One page of expired pending ids in id order, starting after ``after_id``."""

        stmt = sa.select(Referral.id).where(
            Referral.status == ReferralStatus.PENDING, Referral.expiry_date < now
        )
        if after_id is not None:
            stmt = stmt.where(Referral.id > after_id)
        stmt = stmt.order_by(Referral.id.asc()).limit(limit)
        return [row[0] for row in self.db.execute(stmt).all()]

    def count_completed_for_referrer(self, referrer_id: str) -> int:
        stmt = sa.select(func.count(Referral.id)).where(
            Referral.referrer_id == referrer_id,
            Referral.status == ReferralStatus.COMPLETED,
        )
        return int(self.db.execute(stmt).scalar() or 0)

    def stats_for_referrer(
        self,
        referrer_id: str,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, object]:
        """Referral counts by status plus bonus totals for the referrer."""

        stmt = sa.select(
            Referral.status,
            func.count(Referral.id),
            func.coalesce(func.sum(Referral.referrer_bonus), 0),
        ).where(Referral.referrer_id == referrer_id)
        if start is not None:
            stmt = stmt.where(Referral.created_at >= start)
        if end is not None:
            stmt = stmt.where(Referral.created_at <= end)
        stmt = stmt.group_by(Referral.status)

        counts: Dict[str, int] = {status.value: 0 for status in ReferralStatus}
        bonus_totals: Dict[str, Decimal] = {status.value: Decimal("0") for status in ReferralStatus}
        for status, count, bonus_sum in self.db.execute(stmt).all():
            key = status.value if isinstance(status, ReferralStatus) else str(status)
            counts[key] = int(count or 0)
            bonus_totals[key] = Decimal(str(bonus_sum or 0))

        return {
            "total_referrals": sum(counts.values()),
            "counts": counts,
            "earned_bonus": bonus_totals[ReferralStatus.COMPLETED.value],
            "pending_bonus": bonus_totals[ReferralStatus.PENDING.value],
        }
