"""Campaign model: a time-boxed, capacity-bounded bonus overlay."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from referral_engine.core.enums import BonusType, CampaignType, TargetAudience
from referral_engine.core.timezone_utils import ensure_utc, utc_now
from referral_engine.core.ulid_helper import generate_ulid
from referral_engine.database import Base

from .types import MONEY, enum_column


class Campaign(Base):
    """Promotional campaign created by an administrator."""

    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    campaign_type: Mapped[CampaignType] = mapped_column(
        enum_column(CampaignType, "campaign_type"), nullable=False
    )
    target_audience: Mapped[TargetAudience] = mapped_column(
        enum_column(TargetAudience, "target_audience"), nullable=False
    )
    bonus_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    bonus_type: Mapped[BonusType] = mapped_column(
        enum_column(BonusType, "bonus_type"), nullable=False, default=BonusType.CREDIT
    )
    minimum_requirement: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    max_participants: Mapped[Optional[int]] = mapped_column(Integer)
    current_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    terms_conditions: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "current_participants >= 0", name="ck_campaigns_participants_non_negative"
        ),
        CheckConstraint(
            "max_participants IS NULL OR max_participants > 0",
            name="ck_campaigns_max_participants_positive",
        ),
        CheckConstraint("end_date > start_date", name="ck_campaigns_window_ordered"),
        Index("idx_campaigns_active_window", "is_active", "start_date", "end_date"),
    )

    def is_running(self, now: datetime) -> bool:
        start = ensure_utc(self.start_date)
        end = ensure_utc(self.end_date)
        return bool(self.is_active) and start <= now <= end

    def has_capacity(self) -> bool:
        return self.max_participants is None or self.current_participants < self.max_participants

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<Campaign id={self.id} name={self.name!r} "
            f"participants={self.current_participants}/{self.max_participants}>"
        )
