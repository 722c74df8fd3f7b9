"""Campaign participation guard and campaign administration."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy.orm import Session

from referral_engine.core.enums import RewardSourceType, TargetAudience, UserRole
from referral_engine.core.exceptions import (
    NotFoundException,
    PermissionDeniedException,
    ValidationException,
)
from referral_engine.core.timezone_utils import utc_now
from referral_engine.models.campaigns import Campaign
from referral_engine.repositories.campaign_repository import CampaignRepository
from referral_engine.repositories.factory import RepositoryFactory
from referral_engine.repositories.reward_repository import RewardRepository
from referral_engine.schemas import (
    Actor,
    CampaignCreate,
    CampaignStatsOut,
    coerce_model,
    coerce_role,
)
from referral_engine.services.base import BaseService

logger = logging.getLogger(__name__)


class CampaignService(BaseService):
    """
    Window and capacity checks plus the participant counter.

    The counter only moves through conditional updates; reads of
    ``current_participants`` are advisory.
    """

    def __init__(self, db: Session):
        super().__init__(db)
        self.campaign_repo: CampaignRepository = RepositoryFactory.create_campaign_repository(db)
        self.reward_repo: RewardRepository = RepositoryFactory.create_reward_repository(db)

    @staticmethod
    def is_running(campaign: Campaign, now: Optional[datetime] = None) -> bool:
        return campaign.is_running(now or utc_now())

    @staticmethod
    def has_capacity(campaign: Campaign) -> bool:
        return campaign.has_capacity()

    @BaseService.measure_operation("campaigns.select_for_role")
    def select_for_role(
        self, role: Union[UserRole, str], now: Optional[datetime] = None
    ) -> Optional[Campaign]:
        """First running campaign with capacity for ``role`` in start-date order."""

        candidates = self.campaign_repo.find_running_for_role(coerce_role(role), now or utc_now())
        if len(candidates) > 1:
            logger.info(
                "Multiple running campaigns for %s; using %s",
                role,
                candidates[0].id,
                extra={"campaign_ids": [c.id for c in candidates]},
            )
        return candidates[0] if candidates else None

    @BaseService.measure_operation("campaigns.increment_participants")
    def increment_participants(self, campaign_id: str) -> bool:
        with self.transaction():
            taken = self.campaign_repo.increment_participants(campaign_id)
        if not taken:
            logger.info("Campaign %s has no free participant slot", campaign_id)
        return taken

    @BaseService.measure_operation("campaigns.decrement_participants")
    def decrement_participants(self, campaign_id: str) -> bool:
        with self.transaction():
            return self.campaign_repo.decrement_participants(campaign_id)

    @BaseService.measure_operation("campaigns.create")
    def create_campaign(
        self,
        data: Union[CampaignCreate, Mapping[str, Any]],
        actor: Union[Actor, Mapping[str, Any]],
    ) -> Campaign:
        caller = self._require_admin(actor)
        payload = coerce_model(CampaignCreate, data)
        with self.transaction():
            campaign = self.campaign_repo.create(
                **payload.model_dump(),
                current_participants=0,
                is_active=True,
                created_by=caller.actor_id,
            )
        self.log_operation("campaigns.create", campaign_id=campaign.id, actor_id=caller.actor_id)
        return campaign

    @BaseService.measure_operation("campaigns.activate")
    def activate(self, campaign_id: str, actor: Union[Actor, Mapping[str, Any]]) -> Campaign:
        return self._set_active(campaign_id, actor, True)

    @BaseService.measure_operation("campaigns.deactivate")
    def deactivate(self, campaign_id: str, actor: Union[Actor, Mapping[str, Any]]) -> Campaign:
        return self._set_active(campaign_id, actor, False)

    def _set_active(
        self, campaign_id: str, actor: Union[Actor, Mapping[str, Any]], is_active: bool
    ) -> Campaign:
        self._require_admin(actor)
        self.get(campaign_id)
        with self.transaction():
            self.campaign_repo.set_active(campaign_id, is_active)
        return self.get(campaign_id)

    @BaseService.measure_operation("campaigns.get")
    def get(self, campaign_id: str) -> Campaign:
        campaign = self.campaign_repo.get_by_id(campaign_id, refresh=True)
        if campaign is None:
            raise NotFoundException(
                "Campaign not found", code="CAMPAIGN_NOT_FOUND", details={"id": campaign_id}
            )
        return campaign

    def list_campaigns(self, *, active_only: bool = False) -> List[Campaign]:
        return self.campaign_repo.list_campaigns(active_only=active_only)

    @BaseService.measure_operation("campaigns.list_running")
    def list_running(
        self,
        audience: Union[TargetAudience, UserRole, str, None] = None,
        now: Optional[datetime] = None,
    ) -> List[Campaign]:
        """Campaigns inside their window, optionally narrowed to one audience."""

        target = None if audience is None else self._coerce_audience(audience)
        return self.campaign_repo.list_running(now or utc_now(), target)

    @BaseService.measure_operation("campaigns.stats")
    def campaign_stats(
        self, campaign_id: str, actor: Union[Actor, Mapping[str, Any]]
    ) -> CampaignStatsOut:
        self._require_admin(actor)
        campaign = self.get(campaign_id)
        totals = self.reward_repo.totals_for_source(RewardSourceType.CAMPAIGN, campaign.id)
        remaining = None
        if campaign.max_participants is not None:
            remaining = max(campaign.max_participants - campaign.current_participants, 0)
        return CampaignStatsOut(
            campaign_id=campaign.id,
            name=campaign.name,
            is_active=campaign.is_active,
            is_running=campaign.is_running(utc_now()),
            current_participants=campaign.current_participants,
            max_participants=campaign.max_participants,
            remaining_slots=remaining,
            **totals,
        )

    def summary(self) -> Dict[str, int]:
        return self.campaign_repo.summary()

    @staticmethod
    def _require_admin(actor: Union[Actor, Mapping[str, Any]]) -> Actor:
        caller = coerce_model(Actor, actor)
        if not caller.is_admin:
            raise PermissionDeniedException(
                "Administrative role required", code="ADMIN_REQUIRED"
            )
        return caller

    @staticmethod
    def _coerce_audience(value: Union[TargetAudience, UserRole, str]) -> TargetAudience:
        if isinstance(value, TargetAudience):
            return value
        raw = value.value if isinstance(value, UserRole) else str(value).strip().lower()
        try:
            return TargetAudience(raw)
        except ValueError:
            raise ValidationException(
                "Unknown campaign audience", code="INVALID_AUDIENCE", details={"audience": raw}
            ) from None
