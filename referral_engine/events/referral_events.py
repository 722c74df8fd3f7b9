"""Typed referral events and dispatcher helpers."""

from __future__ import annotations

from decimal import Decimal
import logging
from typing import Callable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger("referral_engine.events.referrals")


class ReferralEvent(BaseModel):
    """Base class for referral domain events."""

    model_config = ConfigDict(extra="forbid", frozen=True)


ReferralEventListener = Callable[[ReferralEvent], None]


class ReferralEvents:
    """Registry for referral event listeners."""

    _listeners: List[ReferralEventListener] = []

    @classmethod
    def register(cls, listener: ReferralEventListener) -> None:
        cls._listeners.append(listener)

    @classmethod
    def unregister(cls, listener: ReferralEventListener) -> None:
        cls._listeners = [existing for existing in cls._listeners if existing is not listener]

    @classmethod
    def listeners(cls) -> Sequence[ReferralEventListener]:  # pragma: no cover - trivial accessor
        return tuple(cls._listeners)

    @classmethod
    def dispatch(cls, event: ReferralEvent) -> None:
        for listener in list(cls._listeners):
            try:
                listener(event)
            except Exception:  # pragma: no cover - listener errors are logged only
                logger.exception("Referral event listener error: %s", listener)
        logger.info("referral_event=%s payload=%s", event.__class__.__name__, event.model_dump())


class ReferralCodeIssued(ReferralEvent):
    owner_id: str
    owner_role: str
    code: str


class ReferralCodeDeactivated(ReferralEvent):
    code_id: str
    actor_id: str


class ReferralCreated(ReferralEvent):
    referral_id: str
    referrer_id: str
    referee_id: str
    code: str
    campaign_id: Optional[str] = None


class ReferralCompleted(ReferralEvent):
    referral_id: str
    referee_id: str
    trigger_type: str


class ReferralClosed(ReferralEvent):
    referral_id: str
    status: str


class RewardIssued(ReferralEvent):
    reward_id: str
    recipient_id: str
    reward_type: str
    amount: Decimal


class RewardCredited(ReferralEvent):
    reward_id: str
    recipient_id: str
    amount: Decimal


class RewardExpired(ReferralEvent):
    reward_id: str


def register_listener(listener: ReferralEventListener) -> None:
    """Register an in-process listener for referral events."""

    ReferralEvents.register(listener)


def unregister_listener(listener: ReferralEventListener) -> None:
    """Remove a previously registered listener."""

    ReferralEvents.unregister(listener)


def emit_referral_code_issued(*, owner_id: str, owner_role: str, code: str) -> ReferralCodeIssued:
    event = ReferralCodeIssued(owner_id=owner_id, owner_role=owner_role, code=code)
    ReferralEvents.dispatch(event)
    return event


def emit_referral_code_deactivated(*, code_id: str, actor_id: str) -> ReferralCodeDeactivated:
    event = ReferralCodeDeactivated(code_id=code_id, actor_id=actor_id)
    ReferralEvents.dispatch(event)
    return event


def emit_referral_created(
    *,
    referral_id: str,
    referrer_id: str,
    referee_id: str,
    code: str,
    campaign_id: Optional[str] = None,
) -> ReferralCreated:
    event = ReferralCreated(
        referral_id=referral_id,
        referrer_id=referrer_id,
        referee_id=referee_id,
        code=code,
        campaign_id=campaign_id,
    )
    ReferralEvents.dispatch(event)
    return event


def emit_referral_completed(
    *, referral_id: str, referee_id: str, trigger_type: str
) -> ReferralCompleted:
    event = ReferralCompleted(
        referral_id=referral_id, referee_id=referee_id, trigger_type=trigger_type
    )
    ReferralEvents.dispatch(event)
    return event


def emit_referral_closed(*, referral_id: str, status: str) -> ReferralClosed:
    event = ReferralClosed(referral_id=referral_id, status=status)
    ReferralEvents.dispatch(event)
    return event


def emit_reward_issued(
    *, reward_id: str, recipient_id: str, reward_type: str, amount: Decimal
) -> RewardIssued:
    event = RewardIssued(
        reward_id=reward_id, recipient_id=recipient_id, reward_type=reward_type, amount=amount
    )
    ReferralEvents.dispatch(event)
    return event


def emit_reward_credited(*, reward_id: str, recipient_id: str, amount: Decimal) -> RewardCredited:
    event = RewardCredited(reward_id=reward_id, recipient_id=recipient_id, amount=amount)
    ReferralEvents.dispatch(event)
    return event


def emit_reward_expired(*, reward_id: str) -> RewardExpired:
    event = RewardExpired(reward_id=reward_id)
    ReferralEvents.dispatch(event)
    return event


__all__ = [
    "ReferralEvent",
    "ReferralEventListener",
    "ReferralEvents",
    "ReferralCodeIssued",
    "ReferralCodeDeactivated",
    "ReferralCreated",
    "ReferralCompleted",
    "ReferralClosed",
    "RewardIssued",
    "RewardCredited",
    "RewardExpired",
    "register_listener",
    "unregister_listener",
    "emit_referral_code_issued",
    "emit_referral_code_deactivated",
    "emit_referral_created",
    "emit_referral_completed",
    "emit_referral_closed",
    "emit_reward_issued",
    "emit_reward_credited",
    "emit_reward_expired",
]
