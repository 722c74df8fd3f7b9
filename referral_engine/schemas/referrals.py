"""Schemas for referral codes, referrals, triggers and campaigns."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from referral_engine.core.enums import (
    ADMIN_ROLES,
    BonusType,
    CampaignType,
    TargetAudience,
    UserRole,
)
from referral_engine.core.exceptions import ValidationException

from ._strict_base import StrictRequestModel


class Actor(StrictRequestModel):
    """Caller identity for permission checks."""

    actor_id: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


class CodeTerms(StrictRequestModel):
    """Terms for issuing a referral code; unset values fall back to program defaults."""

    code: Optional[str] = Field(default=None, min_length=4, max_length=20, pattern=r"^[A-Za-z0-9]+$")
    bonus_amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    bonus_type: BonusType = BonusType.CREDIT
    max_usage: Optional[int] = Field(default=None, ge=1, le=1000)
    minimum_order_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    expiry_date: Optional[datetime] = None
    campaign_id: Optional[str] = None
    allow_multiple: bool = False

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value else value

    @field_validator("expiry_date")
    @classmethod
    def _future_expiry(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return value
        aware = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        if aware <= datetime.now(timezone.utc):
            raise ValueError("expiry_date must be in the future")
        return aware


class CreateReferralRequest(StrictRequestModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    referral_code: str = Field(..., min_length=1, max_length=20)
    referee_id: str = Field(..., min_length=1, max_length=64)
    referee_role: UserRole


class TriggerPayload(BaseModel):
    """
    Business event payload.

    Unknown keys are kept so callers can pass the raw event through.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    customer_id: Optional[str] = None
    driver_id: Optional[str] = None
    user_id: Optional[str] = None
    amount: Optional[Decimal] = None
    order_id: Optional[str] = None
    delivery_id: Optional[str] = None


class CompletionEvidence(StrictRequestModel):
    order_id: Optional[str] = None
    delivery_id: Optional[str] = None


class CampaignCreate(StrictRequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    campaign_type: CampaignType
    target_audience: TargetAudience
    bonus_amount: Decimal = Field(..., gt=0, decimal_places=2)
    bonus_type: BonusType = BonusType.CREDIT
    minimum_requirement: Decimal = Field(default=Decimal("0"), ge=0)
    max_participants: Optional[int] = Field(default=None, ge=1)
    start_date: datetime
    end_date: datetime
    terms_conditions: Optional[str] = None

    @model_validator(mode="after")
    def _window_ordered(self) -> "CampaignCreate":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class ReferralStatsOut(BaseModel):
    referrer_id: str
    total_referrals: int
    pending_referrals: int
    completed_referrals: int
    expired_referrals: int
    cancelled_referrals: int
    earned_bonus: Decimal
    pending_bonus: Decimal
    conversion_rate: float


class CodeDescription(BaseModel):
    """Public view of a usable referral code."""

    code: str
    owner_role: UserRole
    owner_name: str
    owner_avatar: Optional[str] = None
    bonus_amount: Decimal
    bonus_type: BonusType
    minimum_order_amount: Decimal
    expiry_date: Optional[datetime] = None
    remaining_uses: int


class CampaignStatsOut(BaseModel):
    campaign_id: str
    name: str
    is_active: bool
    is_running: bool
    current_participants: int
    max_participants: Optional[int] = None
    remaining_slots: Optional[int] = None
    rewards_issued: int
    rewards_credited: int
    rewards_amount: Decimal


def coerce_role(value: object) -> UserRole:
    """Parse a participant role; anything outside the fixed set is a validation error."""
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationException(
            f"Unsupported role: {value}",
            code="INVALID_ROLE",
            details={"role": value, "allowed": [role.value for role in UserRole]},
        ) from exc
