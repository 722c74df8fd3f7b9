"""Reward model.

One row is one payout unit owed to one recipient from one source. The source
is stored as a ``(source_type, source_id)`` pair; services convert it to and
from the ``RewardSource`` union in ``services/reward_source.py``. The
``dedup_key`` column carries the typed per-recipient dedup key and is unique
together with the recipient.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from referral_engine.core.enums import (
    RewardSourceType,
    RewardStatus,
    RewardType,
    UserRole,
)
from referral_engine.core.timezone_utils import utc_now
from referral_engine.core.ulid_helper import generate_ulid
from referral_engine.database import Base

from .types import MONEY, enum_column


class Reward(Base):
    """Reward owed to a participant."""

    __tablename__ = "rewards"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    recipient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    recipient_role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole, "user_role"), nullable=False
    )
    reward_type: Mapped[RewardType] = mapped_column(
        enum_column(RewardType, "reward_type"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    status: Mapped[RewardStatus] = mapped_column(
        enum_column(RewardStatus, "reward_status"),
        nullable=False,
        default=RewardStatus.PENDING,
    )
    credited_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source_type: Mapped[RewardSourceType] = mapped_column(
        enum_column(RewardSourceType, "reward_source_type"), nullable=False
    )
    source_id: Mapped[Optional[str]] = mapped_column(String(64))
    dedup_key: Mapped[Optional[str]] = mapped_column(String(96))
    description: Mapped[Optional[str]] = mapped_column(Text)
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
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
        UniqueConstraint("recipient_id", "dedup_key", name="uq_rewards_recipient_dedup_key"),
        CheckConstraint("amount > 0", name="ck_rewards_amount_positive"),
        Index("idx_rewards_recipient_status", "recipient_id", "status"),
        Index("idx_rewards_status_expiry", "status", "expiry_date"),
        Index("idx_rewards_source", "source_type", "source_id"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<Reward id={self.id} recipient={self.recipient_id} type={self.reward_type} "
            f"amount={self.amount} status={self.status}>"
        )
