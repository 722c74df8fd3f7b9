"""Service layer for the referral engine."""

from .base import BaseService
from .campaign_service import CampaignService
from .expiry_sweeper import ExpirySweeper, SweepResult
from .notification_service import NotificationService
from .program_config import ProgramConfig
from .referral_code_service import ReferralCodeService, generate_code
from .referral_service import ReferralService
from .reward_service import BulkProcessResult, ReferralSettlement, RewardService
from .trigger_service import TriggerOutcome, TriggerService, match

__all__ = [
    "BaseService",
    "BulkProcessResult",
    "CampaignService",
    "ExpirySweeper",
    "NotificationService",
    "ProgramConfig",
    "ReferralCodeService",
    "ReferralService",
    "ReferralSettlement",
    "RewardService",
    "SweepResult",
    "TriggerOutcome",
    "TriggerService",
    "generate_code",
    "match",
]
