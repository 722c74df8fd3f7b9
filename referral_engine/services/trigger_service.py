"""Trigger matching: turn external business events into referral completions."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
import logging
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy.orm import Session

from referral_engine.core.enums import CompletionCondition, TriggerType
from referral_engine.events.referral_events import emit_referral_completed
from referral_engine.models.referrals import Referral
from referral_engine.schemas import CompletionEvidence, TriggerPayload, coerce_model
from referral_engine.services.base import BaseService
from referral_engine.services.referral_service import ReferralService
from referral_engine.services.reward_service import ReferralSettlement, RewardService

logger = logging.getLogger(__name__)


def _parse_trigger(trigger_type: Union[TriggerType, str]) -> Optional[TriggerType]:
    try:
        return TriggerType(trigger_type)
    except ValueError:
        return None


def match(
    referral: Referral,
    trigger_type: Union[TriggerType, str],
    payload: Union[TriggerPayload, Mapping[str, Any]],
) -> bool:
    """True when the event satisfies the referral's completion condition."""

    trigger = _parse_trigger(trigger_type)
    event = coerce_model(TriggerPayload, payload)
    condition = referral.completion_condition

    if condition == CompletionCondition.FIRST_ORDER:
        if trigger != TriggerType.ORDER_COMPLETED or event.customer_id != referral.referee_id:
            return False
        minimum = referral.minimum_order_amount or Decimal("0")
        if minimum <= 0:
            return True
        return event.amount is not None and event.amount >= minimum

    if condition == CompletionCondition.FIRST_DELIVERY:
        return (
            trigger == TriggerType.DELIVERY_COMPLETED and event.driver_id == referral.referee_id
        )

    if condition == CompletionCondition.REGISTRATION:
        return trigger == TriggerType.USER_VERIFIED and event.user_id == referral.referee_id

    return False


@dataclass
class CompletedReferral:
    referral: Referral
    settlement: ReferralSettlement


@dataclass
class TriggerFailure:
    referral_id: str
    error: str


@dataclass
class TriggerOutcome:
    completed: List[CompletedReferral] = field(default_factory=list)
    failures: List[TriggerFailure] = field(default_factory=list)

    @property
    def completed_ids(self) -> List[str]:
        return [item.referral.id for item in self.completed]


class TriggerService(BaseService):
    """Fans a trigger out over the referee's pending referrals."""

    def __init__(
        self,
        db: Session,
        *,
        referral_service: ReferralService,
        reward_service: RewardService,
    ):
        super().__init__(db)
        self.referral_service = referral_service
        self.reward_service = reward_service

    @staticmethod
    def match(
        referral: Referral,
        trigger_type: Union[TriggerType, str],
        payload: Union[TriggerPayload, Mapping[str, Any]],
    ) -> bool:
        return match(referral, trigger_type, payload)

    @BaseService.measure_operation("triggers.process")
    def process_trigger(
        self,
        referee_id: str,
        trigger_type: Union[TriggerType, str],
        payload: Union[TriggerPayload, Mapping[str, Any]],
    ) -> TriggerOutcome:
        """
        Complete and settle every pending referral the event satisfies.

        Referrals are handled one at a time; a failure is recorded in the
        outcome and the loop moves on.
        """

        event = coerce_model(TriggerPayload, payload)
        outcome = TriggerOutcome()
        trigger = _parse_trigger(trigger_type)
        if trigger is None:
            logger.info("Ignoring unknown trigger type %s for %s", trigger_type, referee_id)
            return outcome

        for referral in self.referral_service.list_pending_for_referee(referee_id):
            if not match(referral, trigger, event):
                continue
            try:
                completed = self.referral_service.complete(
                    referral.id,
                    CompletionEvidence(order_id=event.order_id, delivery_id=event.delivery_id),
                )
                if completed is None:
                    continue
                emit_referral_completed(
                    referral_id=completed.id,
                    referee_id=referee_id,
                    trigger_type=trigger.value,
                )
                settlement = self.reward_service.settle_referral(completed)
                outcome.completed.append(CompletedReferral(completed, settlement))
            except Exception as exc:
                logger.error(
                    "Failed to process referral %s for trigger %s: %s",
                    referral.id,
                    trigger.value,
                    exc,
                    exc_info=True,
                )
                outcome.failures.append(TriggerFailure(referral_id=referral.id, error=str(exc)))

        return outcome
