"""ProgramConfig defaults, validation and settings mapping."""

from __future__ import annotations

from decimal import Decimal

from pydantic import ValidationError
import pytest

from referral_engine.core.config import Settings
from referral_engine.core.enums import UserRole
from referral_engine.services.program_config import ProgramConfig


def test_defaults_match_program_terms():
    config = ProgramConfig()
    assert config.bonus_for_role(UserRole.CUSTOMER) == Decimal("10.00")
    assert config.bonus_for_role(UserRole.DRIVER) == Decimal("25.00")
    assert config.bonus_for_role(UserRole.RESTAURANT) == Decimal("50.00")
    assert config.milestone_thresholds == [5, 10, 25, 50, 100]
    assert config.milestone_amount(25) == Decimal("75.00")
    assert config.milestone_amount(7) is None
    assert config.referral_expiry_days == 30
    assert config.reward_expiry_days == 30


@pytest.mark.parametrize(("completed", "expected"), [(0, 5), (5, 10), (99, 100), (100, None)])
def test_next_milestone(completed, expected):
    assert ProgramConfig().next_milestone(completed) == expected


def test_missing_role_bonus_is_rejected():
    with pytest.raises(ValidationError):
        ProgramConfig(role_bonuses={UserRole.CUSTOMER: Decimal("10")})


def test_non_positive_milestone_is_rejected():
    with pytest.raises(ValidationError):
        ProgramConfig(milestone_amounts={5: Decimal("0")})


def test_from_settings_uses_overrides():
    source = Settings(
        referrals_driver_bonus=Decimal("40.00"),
        rewards_currency="eur",
        rewards_milestones={3: Decimal("9.00")},
        referrals_allow_multiple_codes=True,
    )
    config = ProgramConfig.from_settings(source)
    assert config.bonus_for_role(UserRole.DRIVER) == Decimal("40.00")
    assert config.currency == "EUR"
    assert config.milestone_thresholds == [3]
    assert config.allow_multiple_codes is True


def test_config_is_immutable():
    config = ProgramConfig()
    with pytest.raises(ValidationError):
        config.referral_expiry_days = 5
