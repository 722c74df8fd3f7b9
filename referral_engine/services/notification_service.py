"""
Referral notifications.

Every notification is handed to the Celery ``send_notification`` task after
the state change it describes has been committed. Enqueue failures are logged
and counted; they never fail the calling operation.
"""

from __future__ import annotations

from decimal import Decimal
import logging
from typing import Any, Callable, Dict, Optional

from referral_engine.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

NotificationDispatcher = Callable[[str, Dict[str, Any]], Any]

REFERRAL_CREATED = "referral_created"
REFERRAL_RECEIVED = "referral_received"
REFERRAL_REWARD_EARNED = "referral_reward_earned"
WELCOME_BONUS_CREDITED = "welcome_bonus_credited"
MILESTONE_ACHIEVED = "milestone_achieved"
REWARD_CREDITED = "reward_credited"
REWARD_EXPIRED = "reward_expired"


def format_money(amount: Decimal) -> str:
    return f"${Decimal(amount).quantize(Decimal('0.01'))}"


def enqueue_notification(user_id: str, payload: Dict[str, Any]) -> Any:
    """Default dispatcher: queue the Celery delivery task."""
    from referral_engine.tasks.enqueue import enqueue_task
    from referral_engine.tasks.notification_tasks import SEND_NOTIFICATION_TASK

    return enqueue_task(SEND_NOTIFICATION_TASK, args=(user_id, payload))


class NotificationService:
    """Builds referral notification payloads and dispatches them best-effort."""

    def __init__(self, dispatcher: Optional[NotificationDispatcher] = None):
        self._dispatch = dispatcher or enqueue_notification

    def send(self, user_id: str, notification_type: str, message: str, **data: Any) -> bool:
        payload: Dict[str, Any] = {"type": notification_type, "message": message}
        if data:
            payload["data"] = {key: _jsonable(value) for key, value in data.items()}
        try:
            self._dispatch(user_id, payload)
        except Exception as exc:
            logger.warning(
                "Failed to enqueue %s notification for %s: %s",
                notification_type,
                user_id,
                exc,
                extra={"notification_type": notification_type, "user_id": user_id},
            )
            prometheus_metrics.record_notification_enqueue(notification_type, "failed")
            return False
        prometheus_metrics.record_notification_enqueue(notification_type, "queued")
        return True

    def referral_created(
        self, *, referral_id: str, referrer_id: str, referee_id: str, referrer_bonus: Decimal
    ) -> None:
        self.send(
            referrer_id,
            REFERRAL_CREATED,
            "Someone joined with your referral code! You'll earn "
            f"{format_money(referrer_bonus)} once they complete their first activity.",
            referral_id=referral_id,
        )
        self.send(
            referee_id,
            REFERRAL_RECEIVED,
            "Welcome! Your referral has been recorded.",
            referral_id=referral_id,
        )

    def referral_reward_earned(self, user_id: str, amount: Decimal, reward_id: str) -> None:
        self.send(
            user_id,
            REFERRAL_REWARD_EARNED,
            f"Great news! You've earned {format_money(amount)} for your successful referral!",
            reward_id=reward_id,
            amount=amount,
        )

    def welcome_bonus_credited(self, user_id: str, amount: Decimal, reward_id: str) -> None:
        self.send(
            user_id,
            WELCOME_BONUS_CREDITED,
            f"Welcome! {format_money(amount)} has been added to your account.",
            reward_id=reward_id,
            amount=amount,
        )

    def milestone_achieved(
        self, user_id: str, milestone: int, amount: Decimal, reward_id: str
    ) -> None:
        self.send(
            user_id,
            MILESTONE_ACHIEVED,
            f"Congratulations! You've reached {milestone} referrals and earned "
            f"{format_money(amount)}!",
            reward_id=reward_id,
            milestone=milestone,
            amount=amount,
        )

    def reward_credited(self, user_id: str, amount: Decimal, reward_id: str) -> None:
        self.send(
            user_id,
            REWARD_CREDITED,
            f"{format_money(amount)} has been credited to your account!",
            reward_id=reward_id,
            amount=amount,
        )

    def reward_expired(self, user_id: str, amount: Decimal, reward_id: str) -> None:
        self.send(
            user_id,
            REWARD_EXPIRED,
            f"Your {format_money(amount)} reward has expired",
            reward_id=reward_id,
            amount=amount,
        )


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    return value


__all__ = ["NotificationDispatcher", "NotificationService", "enqueue_notification", "format_money"]
