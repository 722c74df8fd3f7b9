"""Campaign repository with capacity-guarded participant counters."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Dict, List, Optional

import sqlalchemy as sa
from sqlalchemy import func
from sqlalchemy.orm import Session

from referral_engine.core.enums import TargetAudience, UserRole
from referral_engine.models.campaigns import Campaign

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CampaignRepository(BaseRepository[Campaign]):
    """Data access for campaigns."""

    def __init__(self, db: Session):
        super().__init__(db, Campaign)

    def find_running_for_role(self, role: UserRole, now: datetime) -> List[Campaign]:
        """
        Running campaigns open to ``role`` that still have room.

        Ordered by start date, then creation time, then id, so the first row is
        a stable choice when several campaigns overlap.
        """
        stmt = (
            sa.select(Campaign)
            .where(
                Campaign.is_active.is_(True),
                Campaign.start_date <= now,
                Campaign.end_date >= now,
                Campaign.target_audience.in_([TargetAudience(role.value), TargetAudience.ALL]),
                sa.or_(
                    Campaign.max_participants.is_(None),
                    Campaign.current_participants < Campaign.max_participants,
                ),
            )
            .order_by(Campaign.start_date.asc(), Campaign.created_at.asc(), Campaign.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_running(
        self, now: datetime, audience: Optional[TargetAudience] = None
    ) -> List[Campaign]:
        """Active campaigns in their window; ``all`` campaigns match every audience."""

        stmt = sa.select(Campaign).where(
            Campaign.is_active.is_(True),
            Campaign.start_date <= now,
            Campaign.end_date >= now,
        )
        if audience is not None:
            stmt = stmt.where(Campaign.target_audience.in_([audience, TargetAudience.ALL]))
        stmt = stmt.order_by(
            Campaign.start_date.asc(), Campaign.created_at.asc(), Campaign.id.asc()
        ).execution_options(populate_existing=True)
        return list(self.db.execute(stmt).scalars().all())

    def list_campaigns(self, *, active_only: bool = False) -> List[Campaign]:
        stmt = sa.select(Campaign)
        if active_only:
            stmt = stmt.where(Campaign.is_active.is_(True))
        stmt = stmt.order_by(Campaign.created_at.desc(), Campaign.id.desc())
        return list(self.db.execute(stmt).scalars().all())

    def increment_participants(self, campaign_id: str) -> bool:
        """Take one participant slot; False when the campaign is full or gone."""

        updated = self.conditional_update(
            Campaign.id == campaign_id,
            sa.or_(
                Campaign.max_participants.is_(None),
                Campaign.current_participants < Campaign.max_participants,
            ),
            current_participants=Campaign.current_participants + 1,
        )
        return updated == 1

    def decrement_participants(self, campaign_id: str) -> bool:
        """Release one slot; the counter never goes below zero."""

        updated = self.conditional_update(
            Campaign.id == campaign_id,
            Campaign.current_participants > 0,
            current_participants=Campaign.current_participants - 1,
        )
        return updated == 1

    def set_active(self, campaign_id: str, is_active: bool) -> bool:
        updated = self.conditional_update(Campaign.id == campaign_id, is_active=is_active)
        return updated == 1

    def summary(self) -> Dict[str, int]:
        stmt = sa.select(
            func.count(Campaign.id),
            func.count(sa.case((Campaign.is_active.is_(True), 1))),
            func.coalesce(func.sum(Campaign.current_participants), 0),
        )
        total, active, participants = self.db.execute(stmt).one()
        return {
            "total": int(total or 0),
            "active": int(active or 0),
            "inactive": int(total or 0) - int(active or 0),
            "participants": int(participants or 0),
        }
