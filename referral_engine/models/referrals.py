"""Referral code and referral models.

A ``ReferralCode`` is the invitation instrument an owner hands out. A
``Referral`` is one directed relationship from referrer to referee for a single
role pairing. Referrals point at their code by code string and at their
campaign by id; neither is a foreign key so codes and campaigns can change
independently of the referrals that used them.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from referral_engine.core.enums import (
    BonusType,
    CompletionCondition,
    ReferralStatus,
    UserRole,
)
from referral_engine.core.timezone_utils import ensure_utc, utc_now
from referral_engine.core.ulid_helper import generate_ulid
from referral_engine.database import Base

from .types import MONEY, enum_column


class ReferralCode(Base):
    """Referral code owned by a customer, driver or restaurant."""

    __tablename__ = "referral_codes"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    owner_role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole, "user_role"), nullable=False
    )
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_usage: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    bonus_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    bonus_type: Mapped[BonusType] = mapped_column(
        enum_column(BonusType, "bonus_type"), nullable=False, default=BonusType.CREDIT
    )
    minimum_order_amount: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    expiry_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    campaign_id: Mapped[Optional[str]] = mapped_column(String(26))
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
        CheckConstraint("usage_count >= 0", name="ck_referral_codes_usage_non_negative"),
        CheckConstraint("usage_count <= max_usage", name="ck_referral_codes_usage_within_cap"),
        CheckConstraint(
            "max_usage >= 1 AND max_usage <= 1000", name="ck_referral_codes_max_usage_range"
        ),
        CheckConstraint("bonus_amount > 0", name="ck_referral_codes_bonus_positive"),
        Index("idx_referral_codes_owner", "owner_id", "owner_role"),
    )

    def is_usable(self, now: datetime) -> bool:
        """Active, under its usage cap and not past its expiry."""
        if not self.is_active or self.usage_count >= self.max_usage:
            return False
        expiry = ensure_utc(self.expiry_date)
        return expiry is None or expiry > now

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<ReferralCode code={self.code} owner={self.owner_id} "
            f"usage={self.usage_count}/{self.max_usage} active={self.is_active}>"
        )


class Referral(Base):
    """Directed referral between two participants for one role pairing."""

    __tablename__ = "referrals"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    referrer_id: Mapped[str] = mapped_column(String(64), nullable=False)
    referrer_role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole, "user_role"), nullable=False
    )
    referee_id: Mapped[str] = mapped_column(String(64), nullable=False)
    referee_role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole, "user_role"), nullable=False
    )
    referral_code: Mapped[str] = mapped_column(String(20), nullable=False)
    completion_condition: Mapped[CompletionCondition] = mapped_column(
        enum_column(CompletionCondition, "completion_condition"), nullable=False
    )
    status: Mapped[ReferralStatus] = mapped_column(
        enum_column(ReferralStatus, "referral_status"),
        nullable=False,
        default=ReferralStatus.PENDING,
    )
    referrer_bonus: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    referrer_bonus_type: Mapped[BonusType] = mapped_column(
        enum_column(BonusType, "bonus_type"), nullable=False, default=BonusType.CREDIT
    )
    referee_bonus: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    referee_bonus_type: Mapped[BonusType] = mapped_column(
        enum_column(BonusType, "bonus_type"), nullable=False, default=BonusType.CREDIT
    )
    minimum_order_amount: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    campaign_id: Mapped[Optional[str]] = mapped_column(String(26))
    completion_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completion_order_id: Mapped[Optional[str]] = mapped_column(String(64))
    completion_delivery_id: Mapped[Optional[str]] = mapped_column(String(64))
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
        UniqueConstraint(
            "referrer_id",
            "referee_id",
            "referrer_role",
            "referee_role",
            name="uq_referrals_pair_roles",
        ),
        CheckConstraint("referrer_id <> referee_id", name="ck_referrals_no_self_referral"),
        Index("idx_referrals_referee_status", "referee_id", "status"),
        Index("idx_referrals_referrer_status", "referrer_id", "status"),
        Index("idx_referrals_status_expiry", "status", "expiry_date"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<Referral id={self.id} referrer={self.referrer_id} referee={self.referee_id} "
            f"status={self.status}>"
        )
