"""Referral program terms handed to the services at construction."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from referral_engine.core.config import Settings, settings as default_settings
from referral_engine.core.enums import UserRole


class ProgramConfig(BaseModel):
    """
    Bonus defaults, expiry windows and milestone table.

    Immutable so one instance can be shared by every service and swapped
    wholesale in tests.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    role_bonuses: Dict[UserRole, Decimal] = Field(
        default_factory=lambda: {
            UserRole.CUSTOMER: Decimal("10.00"),
            UserRole.DRIVER: Decimal("25.00"),
            UserRole.RESTAURANT: Decimal("50.00"),
        }
    )
    referral_expiry_days: int = Field(default=30, gt=0)
    reward_expiry_days: int = Field(default=30, gt=0)
    default_max_usage: int = Field(default=50, ge=1, le=1000)
    allow_multiple_codes: bool = False
    currency: str = "USD"
    first_time_bonus: Decimal = Field(default=Decimal("5.00"), gt=0)
    milestone_amounts: Dict[int, Decimal] = Field(
        default_factory=lambda: {
            5: Decimal("15.00"),
            10: Decimal("30.00"),
            25: Decimal("75.00"),
            50: Decimal("150.00"),
            100: Decimal("300.00"),
        }
    )
    sweep_batch_size: int = Field(default=500, gt=0)

    @field_validator("role_bonuses")
    @classmethod
    def _every_role_has_bonus(cls, value: Dict[UserRole, Decimal]) -> Dict[UserRole, Decimal]:
        missing = [role.value for role in UserRole if role not in value]
        if missing:
            raise ValueError(f"missing role bonuses: {', '.join(missing)}")
        if any(amount <= 0 for amount in value.values()):
            raise ValueError("role bonuses must be positive")
        return value

    @field_validator("milestone_amounts")
    @classmethod
    def _positive_milestones(cls, value: Dict[int, Decimal]) -> Dict[int, Decimal]:
        if any(threshold <= 0 or amount <= 0 for threshold, amount in value.items()):
            raise ValueError("milestone thresholds and amounts must be positive")
        return value

    @property
    def milestone_thresholds(self) -> List[int]:
        return sorted(self.milestone_amounts)

    def bonus_for_role(self, role: UserRole) -> Decimal:
        return self.role_bonuses[role]

    def milestone_amount(self, milestone: int) -> Optional[Decimal]:
        return self.milestone_amounts.get(milestone)

    def next_milestone(self, completed: int) -> Optional[int]:
        return next((m for m in self.milestone_thresholds if m > completed), None)

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "ProgramConfig":
        s = source or default_settings
        return cls(
            role_bonuses={
                UserRole.CUSTOMER: s.referrals_customer_bonus,
                UserRole.DRIVER: s.referrals_driver_bonus,
                UserRole.RESTAURANT: s.referrals_restaurant_bonus,
            },
            referral_expiry_days=s.referrals_expiry_days,
            reward_expiry_days=s.rewards_expiry_days,
            default_max_usage=s.referrals_default_max_usage,
            allow_multiple_codes=s.referrals_allow_multiple_codes,
            currency=s.rewards_currency,
            first_time_bonus=s.rewards_first_time_bonus,
            milestone_amounts=dict(s.rewards_milestones),
            sweep_batch_size=s.sweep_batch_size,
        )


__all__ = ["ProgramConfig"]
