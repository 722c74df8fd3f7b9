"""Repository layer for the referral engine."""

from .base_repository import BaseRepository
from .campaign_repository import CampaignRepository
from .factory import RepositoryFactory
from .referral_repository import ReferralCodeRepository, ReferralRepository
from .reward_repository import RewardRepository

__all__ = [
    "BaseRepository",
    "CampaignRepository",
    "ReferralCodeRepository",
    "ReferralRepository",
    "RepositoryFactory",
    "RewardRepository",
]
