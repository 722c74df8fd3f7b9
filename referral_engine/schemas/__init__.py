"""Pydantic schemas for the referral engine."""

from ._strict_base import StrictModel, StrictRequestModel, coerce_model
from .referrals import (
    Actor,
    CampaignCreate,
    CampaignStatsOut,
    CodeDescription,
    CodeTerms,
    CompletionEvidence,
    CreateReferralRequest,
    ReferralStatsOut,
    TriggerPayload,
    coerce_role,
)
from .rewards import (
    BulkRewardRequest,
    LeaderboardEntry,
    RewardOut,
    RewardSummaryOut,
    UserAnalyticsOut,
)

__all__ = [
    "Actor",
    "BulkRewardRequest",
    "CampaignCreate",
    "CampaignStatsOut",
    "CodeDescription",
    "CodeTerms",
    "CompletionEvidence",
    "CreateReferralRequest",
    "LeaderboardEntry",
    "ReferralStatsOut",
    "RewardOut",
    "RewardSummaryOut",
    "StrictModel",
    "StrictRequestModel",
    "TriggerPayload",
    "UserAnalyticsOut",
    "coerce_model",
    "coerce_role",
]
