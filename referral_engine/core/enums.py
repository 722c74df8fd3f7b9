# referral_engine/core/enums.py
"""
Core enums for the referral engine.

Shared by the ORM models, the schemas and the services so that the closed
sets (roles, statuses, reward kinds) have a single definition.
"""

from enum import Enum


class UserRole(str, Enum):
    """Platform participant roles that can refer and be referred."""

    CUSTOMER = "customer"
    DRIVER = "driver"
    RESTAURANT = "restaurant"


class AdminRole(str, Enum):
    """Back-office roles allowed to administer codes, referrals and campaigns."""

    ADMIN = "admin"
    SALES = "sales"


ADMIN_ROLES = frozenset(role.value for role in AdminRole)


class BonusType(str, Enum):
    CASH = "cash"
    CREDIT = "credit"
    PERCENTAGE = "percentage"


class CompletionCondition(str, Enum):
    """Business event that converts a pending referral into a completed one."""

    FIRST_ORDER = "first_order"
    FIRST_DELIVERY = "first_delivery"
    REGISTRATION = "registration"


class ReferralStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class RewardType(str, Enum):
    REFERRAL_BONUS = "referral_bonus"
    MILESTONE_BONUS = "milestone_bonus"
    CAMPAIGN_BONUS = "campaign_bonus"
    LOYALTY_BONUS = "loyalty_bonus"


class RewardStatus(str, Enum):
    PENDING = "pending"
    CREDITED = "credited"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class RewardSourceType(str, Enum):
    REFERRAL = "referral"
    CAMPAIGN = "campaign"
    MILESTONE = "milestone"
    MANUAL = "manual"


class DedupKind(str, Enum):
    """Namespaces of the per-recipient reward dedup key."""

    REFERRAL = "referral"
    MILESTONE = "milestone"
    CAMPAIGN = "campaign"
    LOYALTY = "loyalty"


class CampaignType(str, Enum):
    REFERRAL = "referral"
    MILESTONE = "milestone"
    SEASONAL = "seasonal"
    PROMOTIONAL = "promotional"


class TargetAudience(str, Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"
    RESTAURANT = "restaurant"
    ALL = "all"


class TriggerType(str, Enum):
    """External business events fed to the trigger matcher."""

    ORDER_COMPLETED = "order_completed"
    DELIVERY_COMPLETED = "delivery_completed"
    USER_VERIFIED = "user_verified"


COMPLETION_CONDITION_BY_ROLE = {
    UserRole.CUSTOMER: CompletionCondition.FIRST_ORDER,
    UserRole.DRIVER: CompletionCondition.FIRST_DELIVERY,
    UserRole.RESTAURANT: CompletionCondition.REGISTRATION,
}

CODE_PREFIX_BY_ROLE = {
    UserRole.CUSTOMER: "CUS",
    UserRole.DRIVER: "DRV",
    UserRole.RESTAURANT: "REST",
}
