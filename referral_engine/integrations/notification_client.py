"""Notification delivery client."""

from __future__ import annotations

from typing import Any, Dict

from .service_client import PlatformServiceClient


class NotificationClient(PlatformServiceClient):
    """POSTs notifications to the notification service; errors propagate."""

    service_name = "notification_service"

    def notify(self, user_id: str, payload: Dict[str, Any]) -> None:
        self.request("POST", "/api/notifications", json_body={"user_id": user_id, **payload})
