"""Schemas for rewards, reward analytics and bulk settlement."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from referral_engine.core.enums import RewardSourceType, RewardStatus, RewardType, UserRole

from ._strict_base import StrictRequestModel


class RewardOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    recipient_id: str
    recipient_role: UserRole
    reward_type: RewardType
    amount: Decimal
    currency: str
    status: RewardStatus
    source_type: RewardSourceType
    source_id: Optional[str] = None
    description: Optional[str] = None
    credited_date: Optional[datetime] = None
    expiry_date: datetime
    created_at: datetime


class RewardSummaryOut(BaseModel):
    total_rewards: int
    total_amount: Decimal
    credited_amount: Decimal
    pending_amount: Decimal
    expired_amount: Decimal
    counts: Dict[str, int]


class UserAnalyticsOut(BaseModel):
    user_id: str
    summary: RewardSummaryOut
    recent_rewards: List[RewardOut]
    referral_stats: Dict[str, Any]
    pending_earnings: Decimal
    next_milestone: Optional[int] = None
    progress_to_next_milestone: float
    total_lifetime_earnings: Decimal
    average_reward_amount: Decimal
    conversion_rate: float


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    user_role: UserRole
    name: str
    avatar: Optional[str] = None
    total_rewards: int
    total_amount: Decimal
    credited_rewards: int


class BulkRewardRequest(StrictRequestModel):
    """
    One entry of a bulk settlement batch.

    ``type`` selects the settlement path: referral, milestone, campaign or
    first_time. It is left as a plain string so unknown values reach the
    batch loop and are reported per entry.
    """

    type: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    user_role: Optional[UserRole] = None
    referral_id: Optional[str] = None
    milestone: Optional[int] = Field(default=None, gt=0)
    campaign_id: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    description: Optional[str] = None
    trigger_type: Optional[str] = None
