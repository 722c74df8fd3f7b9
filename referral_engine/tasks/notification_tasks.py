"""Celery task that delivers referral notifications."""

from __future__ import annotations

import logging
from typing import Any, Dict

from referral_engine.core.exceptions import ExternalServiceException
from referral_engine.integrations import build_notification_client
from referral_engine.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

SEND_NOTIFICATION_TASK = "referral_engine.tasks.notification_tasks.send_notification"


@celery_app.task(bind=True, name=SEND_NOTIFICATION_TASK, max_retries=3)
def send_notification(self: Any, user_id: str, payload: Dict[str, Any]) -> Dict[str, str]:
    """
    Deliver one notification.

    Retryable collaborator errors are retried with backoff; anything left after
    the last retry is logged and dropped.
    """
    notification_type = str(payload.get("type", "unknown"))
    try:
        build_notification_client().notify(user_id, payload)
    except ExternalServiceException as exc:
        if exc.retryable and self.request.retries < self.max_retries:
            raise self.retry(exc=exc, countdown=30 * (2**self.request.retries))
        logger.warning(
            "Dropping notification %s for %s: %s",
            notification_type,
            user_id,
            exc.message,
            extra={"notification_type": notification_type, "user_id": user_id},
        )
        return {"status": "failed", "type": notification_type}

    logger.info("Notification %s delivered to %s", notification_type, user_id)
    return {"status": "sent", "type": notification_type}
