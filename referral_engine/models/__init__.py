"""ORM models for the referral engine."""

from .campaigns import Campaign
from .referrals import Referral, ReferralCode
from .rewards import Reward

__all__ = [
    "Campaign",
    "Referral",
    "ReferralCode",
    "Reward",
]
