"""
Reward settlement engine.

Issues rewards for completed referrals, milestones, campaigns and first-time
activity, and credits them through the external ledger. Every reward insert
is keyed by a per-recipient dedup key, and every credit is a compare-and-set
on ``status = pending``, so retries and concurrent callers never pay twice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union, cast

from sqlalchemy.orm import Session

from referral_engine.core.enums import (
    ReferralStatus,
    RewardStatus,
    RewardType,
    UserRole,
)
from referral_engine.core.exceptions import (
    ExternalServiceException,
    NotFoundException,
    PermissionDeniedException,
    PreconditionFailedException,
    ServiceException,
    ValidationException,
)
from referral_engine.core.timezone_utils import days_from_now, is_past, utc_now
from referral_engine.events.referral_events import (
    emit_reward_credited,
    emit_reward_expired,
    emit_reward_issued,
)
from referral_engine.integrations.protocols import CreditLedger, IdentityLookup, UserDetails
from referral_engine.models.referrals import Referral
from referral_engine.models.rewards import Reward
from referral_engine.monitoring.prometheus_metrics import prometheus_metrics
from referral_engine.repositories.campaign_repository import CampaignRepository
from referral_engine.repositories.factory import RepositoryFactory
from referral_engine.repositories.referral_repository import ReferralRepository
from referral_engine.repositories.reward_repository import RewardRepository
from referral_engine.schemas import (
    BulkRewardRequest,
    LeaderboardEntry,
    RewardOut,
    RewardSummaryOut,
    UserAnalyticsOut,
    coerce_model,
    coerce_role,
)
from referral_engine.services.base import BaseService
from referral_engine.services.notification_service import NotificationService
from referral_engine.services.program_config import ProgramConfig
from referral_engine.services.reward_source import (
    CampaignSource,
    DedupKey,
    ManualSource,
    MilestoneSource,
    ReferralSource,
    RewardSource,
    source_to_columns,
)

logger = logging.getLogger(__name__)

LEADERBOARD_PERIODS: Dict[str, Optional[int]] = {
    "week": 7,
    "month": 30,
    "year": 365,
    "all": None,
}

BULK_TYPES = ("referral", "milestone", "campaign", "first_time")


@dataclass
class ReferralSettlement:
    referrer_reward: Reward
    referee_reward: Reward
    milestone_rewards: List[Reward] = field(default_factory=list)


@dataclass
class BulkItemResult:
    index: int
    type: str
    success: bool
    reward_ids: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class BulkProcessResult:
    results: List[BulkItemResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.results if item.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded


class RewardService(BaseService):
    """Issues, deduplicates and credits rewards."""

    def __init__(
        self,
        db: Session,
        *,
        config: Optional[ProgramConfig] = None,
        ledger: Optional[CreditLedger] = None,
        notifications: Optional[NotificationService] = None,
        identity: Optional[IdentityLookup] = None,
    ):
        super().__init__(db)
        if ledger is None:
            from referral_engine.integrations import build_credit_ledger_client

            ledger = build_credit_ledger_client()
        self.config = config or ProgramConfig.from_settings()
        self.ledger = ledger
        self.notifications = notifications or NotificationService()
        self.identity = identity
        self.reward_repo: RewardRepository = RepositoryFactory.create_reward_repository(db)
        self.referral_repo: ReferralRepository = RepositoryFactory.create_referral_repository(db)
        self.campaign_repo: CampaignRepository = RepositoryFactory.create_campaign_repository(db)

    # ------------------------------------------------------------------
    # Issuing
    # ------------------------------------------------------------------

    def _issue(
        self,
        *,
        recipient_id: str,
        recipient_role: UserRole,
        reward_type: RewardType,
        amount: Decimal,
        source: RewardSource,
        dedup_key: DedupKey,
        description: str,
        details: Dict[str, Any],
    ) -> Tuple[Reward, bool]:
        """
        Get-or-create a reward by dedup key inside the caller's transaction.

        Returns ``(reward, created)``.
        """
        key = dedup_key.encode()
        existing = self.reward_repo.get_by_dedup_key(recipient_id, key)
        if existing is not None:
            return existing, False

        source_type, source_id = source_to_columns(source)
        created = self.reward_repo.create_if_absent(
            recipient_id=recipient_id,
            recipient_role=recipient_role,
            reward_type=reward_type,
            amount=amount,
            currency=self.config.currency,
            status=RewardStatus.PENDING,
            expiry_date=days_from_now(self.config.reward_expiry_days),
            source_type=source_type,
            source_id=source_id,
            dedup_key=key,
            description=description,
            details=details,
        )
        if created is not None:
            return created, True
        winner = self.reward_repo.get_by_dedup_key(recipient_id, key)
        if winner is None:
            raise ServiceException(
                "Reward insert rejected without a matching reward",
                code="REWARD_DEDUP_CONFLICT",
                details={"recipient_id": recipient_id, "dedup_key": key},
            )
        return winner, False

    @staticmethod
    def _announce_issued(reward: Reward) -> None:
        prometheus_metrics.inc_reward_issued(reward.reward_type.value)
        emit_reward_issued(
            reward_id=reward.id,
            recipient_id=reward.recipient_id,
            reward_type=reward.reward_type.value,
            amount=reward.amount,
        )

    # ------------------------------------------------------------------
    # Crediting
    # ------------------------------------------------------------------

    @BaseService.measure_operation("rewards.credit")
    def credit_reward(self, reward_id: str) -> Optional[Reward]:
        """
        Credit a pending reward through the ledger.

        Returns None when the reward does not exist and the reward unchanged
        when it is no longer pending. Ledger failure raises
        ``ExternalServiceException`` and leaves the reward pending; the
        exception is retryable unless the ledger rejected the request outright.
        """
        return self._credit(reward_id, notify=True)

    def _credit(self, reward_id: str, *, notify: bool) -> Optional[Reward]:
        with self.transaction():
            reward = self.reward_repo.get_by_id(reward_id, refresh=True)
        if reward is None:
            return None
        if reward.status != RewardStatus.PENDING:
            return reward

        metadata = {
            "reward_id": reward.id,
            "reward_type": reward.reward_type.value,
            "source_type": reward.source_type.value,
            "source_id": reward.source_id,
            "currency": reward.currency,
            "description": reward.description,
        }
        try:
            result = self.ledger.credit_account(
                reward.recipient_id, reward.amount, metadata, idempotency_key=reward.id
            )
        except ExternalServiceException:
            prometheus_metrics.inc_credit_attempt("ledger_failed")
            raise
        if not result.success:
            prometheus_metrics.inc_credit_attempt("ledger_failed")
            raise ExternalServiceException(
                f"Failed to credit reward: {result.error or 'unknown error'}",
                service="payment_service",
                retryable=result.retryable,
                details={"reward_id": reward.id},
            )

        with self.transaction():
            won = self.reward_repo.mark_credited(reward.id, utc_now())
        credited = self.reward_repo.get_by_id(reward.id, refresh=True) or reward

        if not won:
            prometheus_metrics.inc_credit_attempt("lost_race")
            logger.warning("Reward %s was credited concurrently", reward.id)
            return credited

        prometheus_metrics.inc_credit_attempt("credited")
        emit_reward_credited(
            reward_id=credited.id, recipient_id=credited.recipient_id, amount=credited.amount
        )
        if notify:
            self.notifications.reward_credited(credited.recipient_id, credited.amount, credited.id)
        return credited

    def _auto_credit(self, reward: Reward) -> Reward:
        """Credit without failing the caller; a ledger error leaves the reward pending."""
        try:
            return self._credit(reward.id, notify=False) or reward
        except ExternalServiceException as exc:
            logger.warning(
                "Auto-credit failed for reward %s; left pending: %s", reward.id, exc.message
            )
            return self.reward_repo.get_by_id(reward.id, refresh=True) or reward

    @BaseService.measure_operation("rewards.claim")
    def claim_reward(self, reward_id: str, user_id: str) -> Reward:
        reward = self.reward_repo.get_by_id(reward_id, refresh=True)
        if reward is None:
            raise NotFoundException(
                "Reward not found", code="REWARD_NOT_FOUND", details={"id": reward_id}
            )
        if reward.recipient_id != user_id:
            raise PermissionDeniedException(
                "Reward belongs to another user", code="REWARD_NOT_OWNED"
            )
        if reward.status != RewardStatus.PENDING:
            raise PreconditionFailedException(
                "Reward is not available for claiming",
                code="REWARD_NOT_CLAIMABLE",
                details={"status": reward.status.value},
            )
        if is_past(reward.expiry_date, now=utc_now()):
            raise PreconditionFailedException("Reward has expired", code="REWARD_EXPIRED")

        credited = self._credit(reward_id, notify=True)
        return credited or reward

    # ------------------------------------------------------------------
    # Settlement paths
    # ------------------------------------------------------------------

    @BaseService.measure_operation("rewards.settle_referral")
    def settle_referral(self, referral: Referral) -> ReferralSettlement:
        """
        Issue both sides of a completed referral.

        The referrer's bonus waits for a claim; the referee's welcome bonus is
        credited straight away. Milestones for the referrer are checked last.
        """
        if referral.status != ReferralStatus.COMPLETED:
            raise PreconditionFailedException(
                "Referral must be completed before settlement",
                code="REFERRAL_NOT_COMPLETED",
                details={"referral_id": referral.id, "status": referral.status.value},
            )

        key = DedupKey.for_referral(referral.id)
        source = ReferralSource(referral.id)
        with self.transaction():
            referrer_reward, referrer_new = self._issue(
                recipient_id=referral.referrer_id,
                recipient_role=referral.referrer_role,
                reward_type=RewardType.REFERRAL_BONUS,
                amount=referral.referrer_bonus,
                source=source,
                dedup_key=key,
                description=(
                    "Referral bonus for successfully referring a "
                    f"{referral.referee_role.value}"
                ),
                details={"referral_id": referral.id, "referee_id": referral.referee_id},
            )
            referee_reward, referee_new = self._issue(
                recipient_id=referral.referee_id,
                recipient_role=referral.referee_role,
                reward_type=RewardType.REFERRAL_BONUS,
                amount=referral.referee_bonus,
                source=source,
                dedup_key=key,
                description=(
                    f"Welcome bonus for being referred by a {referral.referrer_role.value}"
                ),
                details={"referral_id": referral.id, "referrer_id": referral.referrer_id},
            )
        if referrer_new:
            self._announce_issued(referrer_reward)
        if referee_new:
            self._announce_issued(referee_reward)

        was_pending = referee_reward.status == RewardStatus.PENDING
        referee_reward = self._auto_credit(referee_reward)
        milestone_rewards = self.check_milestones(referral.referrer_id, referral.referrer_role)

        if referrer_new:
            self.notifications.referral_reward_earned(
                referrer_reward.recipient_id, referrer_reward.amount, referrer_reward.id
            )
        if was_pending and referee_reward.status == RewardStatus.CREDITED:
            self.notifications.welcome_bonus_credited(
                referee_reward.recipient_id, referee_reward.amount, referee_reward.id
            )

        return ReferralSettlement(
            referrer_reward=referrer_reward,
            referee_reward=referee_reward,
            milestone_rewards=milestone_rewards,
        )

    @BaseService.measure_operation("rewards.check_milestones")
    def check_milestones(self, user_id: str, user_role: Union[UserRole, str]) -> List[Reward]:
        """Grant every reached milestone the user does not hold yet."""

        role = coerce_role(user_role)
        completed = self.referral_repo.count_completed_for_referrer(user_id)
        granted: List[Reward] = []
        for milestone in self.config.milestone_thresholds:
            if completed < milestone:
                break
            reward, created = self._issue_milestone(user_id, role, milestone, completed)
            if created and reward is not None:
                granted.append(reward)
        return granted

    @BaseService.measure_operation("rewards.grant_milestone")
    def grant_milestone(
        self, user_id: str, user_role: Union[UserRole, str], milestone: int
    ) -> Optional[Reward]:
        """Grant one milestone directly; None for thresholds outside the table."""

        reward, _ = self._issue_milestone(user_id, coerce_role(user_role), milestone, None)
        return reward

    def _issue_milestone(
        self,
        user_id: str,
        role: UserRole,
        milestone: int,
        completed: Optional[int],
    ) -> Tuple[Optional[Reward], bool]:
        amount = self.config.milestone_amount(milestone)
        if amount is None:
            logger.info("No milestone bonus configured for %s referrals", milestone)
            return None, False

        details: Dict[str, Any] = {"milestone": milestone}
        if completed is not None:
            details["completed_referrals"] = completed
        with self.transaction():
            reward, created = self._issue(
                recipient_id=user_id,
                recipient_role=role,
                reward_type=RewardType.MILESTONE_BONUS,
                amount=amount,
                source=MilestoneSource(milestone),
                dedup_key=DedupKey.for_milestone(milestone),
                description=f"Milestone bonus for reaching {milestone} successful referrals!",
                details=details,
            )
        if not created or reward is None:
            return reward, False

        self._announce_issued(reward)
        reward = self._auto_credit(reward)
        self.notifications.milestone_achieved(user_id, milestone, reward.amount, reward.id)
        return reward, True

    @BaseService.measure_operation("rewards.settle_campaign")
    def settle_campaign(
        self,
        user_id: str,
        user_role: Union[UserRole, str],
        campaign_id: str,
        amount: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> Optional[Reward]:
        """
        Issue a pending campaign bonus and take a participant slot.

        None when the campaign is missing, not running, full, or already paid
        to this user. The slot and the reward are written in one transaction.
        """
        role = coerce_role(user_role)
        if amount is not None and amount <= 0:
            raise ValidationException("Reward amount must be positive", code="INVALID_AMOUNT")

        campaign = self.campaign_repo.get_by_id(campaign_id, refresh=True)
        if campaign is None:
            return None
        if not campaign.is_running(utc_now()) or not campaign.has_capacity():
            return None

        key = DedupKey.for_campaign(campaign.id)
        if self.reward_repo.get_by_dedup_key(user_id, key.encode()) is not None:
            return None

        source_type, source_id = source_to_columns(CampaignSource(campaign.id))
        with self.transaction():
            if not self.campaign_repo.increment_participants(campaign.id):
                logger.info("Campaign %s filled before settlement for %s", campaign.id, user_id)
                return None
            reward = self.reward_repo.create_if_absent(
                recipient_id=user_id,
                recipient_role=role,
                reward_type=RewardType.CAMPAIGN_BONUS,
                amount=amount or campaign.bonus_amount,
                currency=self.config.currency,
                status=RewardStatus.PENDING,
                expiry_date=days_from_now(self.config.reward_expiry_days),
                source_type=source_type,
                source_id=source_id,
                dedup_key=key.encode(),
                description=description or f"Campaign bonus: {campaign.name}",
                details={
                    "campaign_id": campaign.id,
                    "campaign_name": campaign.name,
                    "campaign_type": campaign.campaign_type.value,
                },
            )
            if reward is None:
                # Concurrent settlement for the same user won; hand the slot back.
                self.campaign_repo.decrement_participants(campaign.id)
                return None

        self._announce_issued(reward)
        return reward

    @BaseService.measure_operation("rewards.settle_first_time")
    def settle_first_time(
        self, user_id: str, user_role: Union[UserRole, str], trigger_type: str
    ) -> Optional[Reward]:
        """One auto-credited loyalty bonus per user; None when already granted."""

        role = coerce_role(user_role)
        if self.reward_repo.has_reward_of_type(user_id, RewardType.LOYALTY_BONUS):
            return None

        with self.transaction():
            reward, created = self._issue(
                recipient_id=user_id,
                recipient_role=role,
                reward_type=RewardType.LOYALTY_BONUS,
                amount=self.config.first_time_bonus,
                source=ManualSource(),
                dedup_key=DedupKey.first_time(),
                description="Welcome bonus for joining our platform!",
                details={"trigger_type": str(trigger_type), "first_time_bonus": True},
            )
        if not created or reward is None:
            return None

        self._announce_issued(reward)
        reward = self._auto_credit(reward)
        if reward.status == RewardStatus.CREDITED:
            self.notifications.welcome_bonus_credited(user_id, reward.amount, reward.id)
        return reward

    @BaseService.measure_operation("rewards.sweep_expired")
    def sweep_expired_rewards(
        self, now: Optional[datetime] = None, limit: Optional[int] = None
    ) -> int:
        """
        Expire every pending reward past its expiry; bad records are skipped.

        Paged like the referral sweep; ``limit`` caps the total examined.
        """

        cutoff = now or utc_now()
        expired = scanned = 0
        after_id: Optional[str] = None
        while limit is None or scanned < limit:
            page_size = self.config.sweep_batch_size
            if limit is not None:
                page_size = min(page_size, limit - scanned)
            candidates = self.reward_repo.find_expired_pending_ids(
                cutoff, page_size, after_id=after_id
            )
            if not candidates:
                break
            scanned += len(candidates)
            after_id = candidates[-1]
            expired += self._expire_rewards(candidates)

        prometheus_metrics.inc_sweep_transitions("reward", expired)
        logger.info("Expired %s of %s pending rewards", expired, scanned)
        return expired

    def _expire_rewards(self, candidates: List[str]) -> int:
        expired = 0
        for reward_id in candidates:
            try:
                with self.transaction():
                    changed = self.reward_repo.mark_expired(reward_id)
            except Exception as exc:
                logger.error("Failed to expire reward %s: %s", reward_id, exc)
                continue
            if not changed:
                continue
            expired += 1
            emit_reward_expired(reward_id=reward_id)
            reward = self.reward_repo.get_by_id(reward_id, refresh=True)
            if reward is not None:
                self.notifications.reward_expired(reward.recipient_id, reward.amount, reward.id)

        return expired

    # ------------------------------------------------------------------
    # Batch processing
    # ------------------------------------------------------------------

    @BaseService.measure_operation("rewards.bulk_process")
    def bulk_process(
        self, requests: Iterable[Union[BulkRewardRequest, Mapping[str, Any]]]
    ) -> BulkProcessResult:
        """Settle a batch of requests; each entry succeeds or fails on its own."""

        outcome = BulkProcessResult()
        for index, raw in enumerate(requests):
            request_type = str(
                raw.type if isinstance(raw, BulkRewardRequest) else raw.get("type", "")
            )
            if request_type not in BULK_TYPES:
                logger.error("Unknown bulk reward type %r at index %s", request_type, index)
                outcome.results.append(
                    BulkItemResult(
                        index=index,
                        type=request_type,
                        success=False,
                        error=f"Unknown reward type: {request_type}",
                    )
                )
                continue
            try:
                request = coerce_model(BulkRewardRequest, raw)
                rewards = self._process_bulk_item(request)
            except Exception as exc:
                logger.error("Bulk reward %s at index %s failed: %s", request_type, index, exc)
                outcome.results.append(
                    BulkItemResult(index=index, type=request_type, success=False, error=str(exc))
                )
                continue

            if not rewards:
                outcome.results.append(
                    BulkItemResult(
                        index=index, type=request_type, success=False, error="No reward issued"
                    )
                )
                continue
            outcome.results.append(
                BulkItemResult(
                    index=index,
                    type=request_type,
                    success=True,
                    reward_ids=[reward.id for reward in rewards],
                )
            )
        return outcome

    def _process_bulk_item(self, request: BulkRewardRequest) -> List[Reward]:
        if request.type == "referral":
            referral_id = _required(request.referral_id, "referral_id")
            referral = self.referral_repo.get_by_id(referral_id, refresh=True)
            if referral is None:
                raise NotFoundException("Referral not found", code="REFERRAL_NOT_FOUND")
            settlement = self.settle_referral(referral)
            return [
                settlement.referrer_reward,
                settlement.referee_reward,
                *settlement.milestone_rewards,
            ]

        user_id = _required(request.user_id, "user_id")
        user_role = _required(request.user_role, "user_role")
        if request.type == "milestone":
            reward = self.grant_milestone(
                user_id, user_role, _required(request.milestone, "milestone")
            )
        elif request.type == "campaign":
            reward = self.settle_campaign(
                user_id,
                user_role,
                _required(request.campaign_id, "campaign_id"),
                amount=request.amount,
                description=request.description,
            )
        else:
            reward = self.settle_first_time(user_id, user_role, request.trigger_type or "manual")
        return [reward] if reward is not None else []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @BaseService.measure_operation("rewards.list_for_user")
    def list_for_user(
        self,
        user_id: str,
        *,
        status: Optional[Union[RewardStatus, str]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Reward]:
        reward_status = RewardStatus(status) if status is not None else None
        return self.reward_repo.list_for_user(
            user_id, status=reward_status, limit=limit, offset=offset
        )

    @BaseService.measure_operation("rewards.user_summary")
    def get_user_summary(self, user_id: str) -> RewardSummaryOut:
        raw = self.reward_repo.summary_for_user(user_id)
        counts = cast(Dict[str, int], raw["counts"])
        totals = cast(Dict[str, Decimal], raw["totals"])
        return RewardSummaryOut(
            total_rewards=sum(counts.values()),
            total_amount=sum(totals.values(), Decimal("0")),
            credited_amount=totals[RewardStatus.CREDITED.value],
            pending_amount=totals[RewardStatus.PENDING.value],
            expired_amount=totals[RewardStatus.EXPIRED.value],
            counts=counts,
        )

    @BaseService.measure_operation("rewards.user_analytics")
    def get_user_analytics(self, user_id: str) -> UserAnalyticsOut:
        summary = self.get_user_summary(user_id)
        recent = self.reward_repo.list_for_user(user_id, limit=10)
        stats = self.referral_repo.stats_for_referrer(user_id)
        counts = cast(Dict[str, int], stats["counts"])
        total_referrals = cast(int, stats["total_referrals"])
        completed = counts[ReferralStatus.COMPLETED.value]

        next_milestone = self.config.next_milestone(completed)
        progress = round(completed / next_milestone * 100, 2) if next_milestone else 100.0
        average = (
            (summary.total_amount / summary.total_rewards).quantize(Decimal("0.01"))
            if summary.total_rewards
            else Decimal("0.00")
        )

        return UserAnalyticsOut(
            user_id=user_id,
            summary=summary,
            recent_rewards=[RewardOut.model_validate(reward) for reward in recent],
            referral_stats={
                "total_referrals": total_referrals,
                "completed_referrals": completed,
                "pending_referrals": counts[ReferralStatus.PENDING.value],
                "expired_referrals": counts[ReferralStatus.EXPIRED.value],
                "earned_bonus": stats["earned_bonus"],
            },
            pending_earnings=stats["pending_bonus"],
            next_milestone=next_milestone,
            progress_to_next_milestone=progress,
            total_lifetime_earnings=summary.credited_amount,
            average_reward_amount=average,
            conversion_rate=(
                round(completed / total_referrals * 100, 2) if total_referrals else 0.0
            ),
        )

    @BaseService.measure_operation("rewards.leaderboard")
    def get_leaderboard(
        self,
        *,
        role: Optional[Union[UserRole, str]] = None,
        period: str = "all",
        limit: int = 10,
    ) -> List[LeaderboardEntry]:
        if period not in LEADERBOARD_PERIODS:
            raise ValidationException(
                f"Unsupported leaderboard period: {period}",
                code="INVALID_PERIOD",
                details={"allowed": list(LEADERBOARD_PERIODS)},
            )
        days = LEADERBOARD_PERIODS[period]
        since = utc_now() - timedelta(days=days) if days else None
        rows = self.reward_repo.leaderboard(
            since=since, role=coerce_role(role) if role is not None else None, limit=limit
        )

        entries: List[LeaderboardEntry] = []
        for rank, row in enumerate(rows, start=1):
            user_id = str(row["user_id"])
            user_role = UserRole(row["user_role"])
            details = self._lookup_user(user_id, user_role)
            entries.append(
                LeaderboardEntry(
                    rank=rank,
                    user_id=user_id,
                    user_role=user_role,
                    name=details.name if details else "Anonymous",
                    avatar=details.avatar if details else None,
                    total_rewards=row["total_rewards"],
                    total_amount=row["total_amount"],
                    credited_rewards=row["credited_rewards"],
                )
            )
        return entries

    def _lookup_user(self, user_id: str, role: UserRole) -> Optional[UserDetails]:
        if self.identity is None:
            return None
        try:
            return self.identity.get_user_details(user_id, role.value)
        except Exception as exc:
            logger.warning("Identity lookup failed for %s: %s", user_id, exc)
            return None


def _required(value: Any, name: str) -> Any:
    if value is None:
        raise ValidationException(f"{name} is required", code="MISSING_FIELD")
    return value
