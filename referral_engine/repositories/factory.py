# referral_engine/repositories/factory.py
"""
Repository Factory for the referral engine.

Centralizes repository creation so services get consistently initialized
data access objects and tests can swap implementations in one place.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .campaign_repository import CampaignRepository
    from .referral_repository import ReferralCodeRepository, ReferralRepository
    from .reward_repository import RewardRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_referral_code_repository(db: Session) -> "ReferralCodeRepository":
        """Create repository for referral codes."""
        from .referral_repository import ReferralCodeRepository

        return ReferralCodeRepository(db)

    @staticmethod
    def create_referral_repository(db: Session) -> "ReferralRepository":
        """Create repository for referrals."""
        from .referral_repository import ReferralRepository

        return ReferralRepository(db)

    @staticmethod
    def create_reward_repository(db: Session) -> "RewardRepository":
        """Create repository for rewards."""
        from .reward_repository import RewardRepository

        return RewardRepository(db)

    @staticmethod
    def create_campaign_repository(db: Session) -> "CampaignRepository":
        """Create repository for campaigns."""
        from .campaign_repository import CampaignRepository

        return CampaignRepository(db)
