"""Referral lifecycle: create, complete, cancel and expire referrals."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy.orm import Session

from referral_engine.core.enums import COMPLETION_CONDITION_BY_ROLE, ReferralStatus, UserRole
from referral_engine.core.exceptions import (
    DuplicateReferralException,
    InvalidReferralCodeException,
    NotFoundException,
    PermissionDeniedException,
    SelfReferralException,
)
from referral_engine.core.timezone_utils import days_from_now, utc_now
from referral_engine.events.referral_events import emit_referral_closed, emit_referral_created
from referral_engine.integrations.protocols import IdentityLookup
from referral_engine.models.referrals import Referral
from referral_engine.monitoring.prometheus_metrics import prometheus_metrics
from referral_engine.repositories.factory import RepositoryFactory
from referral_engine.repositories.referral_repository import ReferralRepository
from referral_engine.schemas import (
    Actor,
    CompletionEvidence,
    CreateReferralRequest,
    ReferralStatsOut,
    coerce_model,
    coerce_role,
)
from referral_engine.services.base import BaseService
from referral_engine.services.campaign_service import CampaignService
from referral_engine.services.notification_service import NotificationService
from referral_engine.services.program_config import ProgramConfig
from referral_engine.services.referral_code_service import ReferralCodeService

logger = logging.getLogger(__name__)


class ReferralService(BaseService):
    """Creates referrals and drives their one-way status transitions."""

    def __init__(
        self,
        db: Session,
        *,
        config: Optional[ProgramConfig] = None,
        notifications: Optional[NotificationService] = None,
        identity: Optional[IdentityLookup] = None,
    ):
        super().__init__(db)
        self.config = config or ProgramConfig.from_settings()
        self.notifications = notifications or NotificationService()
        self.referral_repo: ReferralRepository = RepositoryFactory.create_referral_repository(db)
        self.code_service = ReferralCodeService(db, config=self.config, identity=identity)
        self.campaign_service = CampaignService(db)

    @BaseService.measure_operation("referrals.create")
    def create(
        self, referral_code: str, referee_id: str, referee_role: Union[UserRole, str]
    ) -> Referral:
        """
        Create a pending referral from ``referral_code`` to the referee.

        Code usage and campaign participation are consumed after the referral
        commits; losing either counter race is logged, not raised.
        """

        request = coerce_model(
            CreateReferralRequest,
            {
                "referral_code": referral_code,
                "referee_id": referee_id,
                "referee_role": coerce_role(referee_role),
            },
        )
        role = request.referee_role
        referee_id = request.referee_id
        code = self.code_service.resolve(request.referral_code)
        if code is None:
            raise InvalidReferralCodeException(request.referral_code)

        if code.owner_id == referee_id:
            raise SelfReferralException(referee_id)

        duplicate = DuplicateReferralException(
            referrer_id=code.owner_id,
            referee_id=referee_id,
            referrer_role=code.owner_role.value,
            referee_role=role.value,
        )
        for existing in self.referral_repo.list_for_referee(referee_id):
            if (
                existing.referrer_id == code.owner_id
                and existing.referrer_role == code.owner_role
                and existing.referee_role == role
            ):
                raise duplicate

        now = utc_now()
        campaign = self.campaign_service.select_for_role(code.owner_role, now)
        referrer_bonus = campaign.bonus_amount if campaign else code.bonus_amount
        referrer_bonus_type = campaign.bonus_type if campaign else code.bonus_type

        with self.transaction():
            referral = self.referral_repo.create_if_absent(
                referrer_id=code.owner_id,
                referrer_role=code.owner_role,
                referee_id=referee_id,
                referee_role=role,
                referral_code=code.code,
                completion_condition=COMPLETION_CONDITION_BY_ROLE[role],
                status=ReferralStatus.PENDING,
                referrer_bonus=referrer_bonus,
                referrer_bonus_type=referrer_bonus_type,
                referee_bonus=self.config.bonus_for_role(role),
                minimum_order_amount=code.minimum_order_amount,
                expiry_date=days_from_now(self.config.referral_expiry_days, now=now),
                campaign_id=campaign.id if campaign else None,
            )
            if referral is None:
                raise duplicate

        self.code_service.mark_used(code.id)
        if campaign is not None:
            self.campaign_service.increment_participants(campaign.id)

        emit_referral_created(
            referral_id=referral.id,
            referrer_id=referral.referrer_id,
            referee_id=referee_id,
            code=code.code,
            campaign_id=referral.campaign_id,
        )
        self.notifications.referral_created(
            referral_id=referral.id,
            referrer_id=referral.referrer_id,
            referee_id=referee_id,
            referrer_bonus=referral.referrer_bonus,
        )
        return referral

    @BaseService.measure_operation("referrals.complete")
    def complete(
        self,
        referral_id: str,
        evidence: Union[CompletionEvidence, Mapping[str, Any], None] = None,
    ) -> Optional[Referral]:
        """Conditionally move ``pending -> completed``; None when another caller won."""

        proof = coerce_model(CompletionEvidence, evidence)
        with self.transaction():
            won = self.referral_repo.transition_from_pending(
                referral_id,
                ReferralStatus.COMPLETED,
                completion_date=utc_now(),
                completion_order_id=proof.order_id,
                completion_delivery_id=proof.delivery_id,
            )
        if not won:
            logger.info("Referral %s was not pending; completion skipped", referral_id)
            return None
        return self.referral_repo.get_by_id(referral_id, refresh=True)

    @BaseService.measure_operation("referrals.cancel")
    def cancel(self, referral_id: str, actor: Union[Actor, Mapping[str, Any]]) -> Referral:
        caller = coerce_model(Actor, actor)
        if not caller.is_admin:
            raise PermissionDeniedException(
                "Only administrators can cancel referrals", code="ADMIN_REQUIRED"
            )
        self.get(referral_id)

        with self.transaction():
            cancelled = self.referral_repo.transition_from_pending(
                referral_id, ReferralStatus.CANCELLED
            )
        if cancelled:
            emit_referral_closed(referral_id=referral_id, status=ReferralStatus.CANCELLED.value)
        return self.get(referral_id)

    @BaseService.measure_operation("referrals.sweep_expired")
    def sweep_expired(self, now: Optional[datetime] = None, limit: Optional[int] = None) -> int:
        """
        Expire every pending referral past its expiry; bad records are skipped.

        Candidates are read in pages of ``sweep_batch_size``; ``limit`` caps the
        total number examined.
        """

        cutoff = now or utc_now()
        expired = scanned = 0
        after_id: Optional[str] = None
        while limit is None or scanned < limit:
            page_size = self.config.sweep_batch_size
            if limit is not None:
                page_size = min(page_size, limit - scanned)
            candidates = self.referral_repo.find_expired_pending_ids(
                cutoff, page_size, after_id=after_id
            )
            if not candidates:
                break
            scanned += len(candidates)
            after_id = candidates[-1]
            expired += self._expire_referrals(candidates)

        prometheus_metrics.inc_sweep_transitions("referral", expired)
        logger.info("Expired %s of %s pending referrals", expired, scanned)
        return expired

    def _expire_referrals(self, candidates: List[str]) -> int:
        expired = 0
        for referral_id in candidates:
            try:
                with self.transaction():
                    changed = self.referral_repo.transition_from_pending(
                        referral_id, ReferralStatus.EXPIRED
                    )
            except Exception as exc:
                logger.error("Failed to expire referral %s: %s", referral_id, exc)
                continue
            if changed:
                expired += 1
                emit_referral_closed(referral_id=referral_id, status=ReferralStatus.EXPIRED.value)
        return expired

    @BaseService.measure_operation("referrals.get")
    def get(self, referral_id: str) -> Referral:
        referral = self.referral_repo.get_by_id(referral_id, refresh=True)
        if referral is None:
            raise NotFoundException(
                "Referral not found", code="REFERRAL_NOT_FOUND", details={"id": referral_id}
            )
        return referral

    def list_pending_for_referee(self, referee_id: str) -> List[Referral]:
        return self.referral_repo.list_for_referee(referee_id, ReferralStatus.PENDING)

    @BaseService.measure_operation("referrals.list_sent")
    def list_sent(self, referrer_id: str, *, limit: int = 50, offset: int = 0) -> List[Referral]:
        return self.referral_repo.list_for_referrer(referrer_id, limit=limit, offset=offset)

    @BaseService.measure_operation("referrals.list_received")
    def list_received(self, referee_id: str) -> List[Referral]:
        return self.referral_repo.list_for_referee(referee_id)

    @BaseService.measure_operation("referrals.get_stats")
    def get_stats(
        self,
        referrer_id: str,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> ReferralStatsOut:
        stats = self.referral_repo.stats_for_referrer(referrer_id, start=start, end=end)
        counts = stats["counts"]
        total = int(stats["total_referrals"])
        completed = counts[ReferralStatus.COMPLETED.value]
        return ReferralStatsOut(
            referrer_id=referrer_id,
            total_referrals=total,
            pending_referrals=counts[ReferralStatus.PENDING.value],
            completed_referrals=completed,
            expired_referrals=counts[ReferralStatus.EXPIRED.value],
            cancelled_referrals=counts[ReferralStatus.CANCELLED.value],
            earned_bonus=stats["earned_bonus"],
            pending_bonus=stats["pending_bonus"],
            conversion_rate=round(completed / total * 100, 2) if total else 0.0,
        )
