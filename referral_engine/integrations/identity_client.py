"""Identity lookup against the user service."""

from __future__ import annotations

import logging
from typing import Optional

from referral_engine.core.enums import UserRole
from referral_engine.core.exceptions import ExternalServiceException

from .protocols import UserDetails
from .service_client import PlatformServiceClient

logger = logging.getLogger(__name__)


class IdentityClient(PlatformServiceClient):
    """Resolve display details for customers, drivers and restaurants."""

    service_name = "user_service"

    def get_user_details(self, user_id: str, role: str) -> Optional[UserDetails]:
        resource = "restaurants" if role == UserRole.RESTAURANT.value else "users"
        try:
            payload = self.request("GET", f"/api/{resource}/{user_id}")
        except ExternalServiceException as exc:
            logger.warning("Identity lookup failed for %s (%s): %s", user_id, role, exc.message)
            return None

        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        name = data.get("name") if isinstance(data, dict) else None
        if not name:
            return None
        return UserDetails(name=str(name), avatar=self._optional(data.get("avatar")))
