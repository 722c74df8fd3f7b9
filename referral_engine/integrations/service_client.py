"""Shared HTTP plumbing for the internal platform services."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, cast

import httpx
from pydantic import SecretStr

from referral_engine.core.exceptions import ExternalServiceException

logger = logging.getLogger(__name__)


class PlatformServiceClient:
    """Thin JSON client that authenticates with the shared service key."""

    service_name = "platform"

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | SecretStr = "",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        secret_value = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        self._api_key = secret_value
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self._api_key:
            headers["X-Service-Key"] = self._api_key
        return headers

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Dict[str, Any] | None = None,
        headers: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        """Perform a request and return the parsed JSON payload (empty dict for no body)."""

        url = f"{self._base_url}{path}"
        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            headers=self._headers(),
        ) as client:
            try:
                response = client.request(method, url, json=json_body, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.error(
                    "%s API error %s for %s %s: %s",
                    self.service_name,
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                )
                raise ExternalServiceException(
                    f"{self.service_name} responded with status {status}",
                    service=self.service_name,
                    retryable=status >= 500 or status == 429,
                    details={"status_code": status},
                ) from exc
            except httpx.RequestError as exc:
                logger.error(
                    "%s request failure for %s %s: %s", self.service_name, method, path, str(exc)
                )
                raise ExternalServiceException(
                    f"Failed to reach {self.service_name}", service=self.service_name
                ) from exc

        if not response.content:
            return {}
        try:
            return cast(Dict[str, Any], response.json())
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from %s for %s %s", self.service_name, method, path)
            raise ExternalServiceException(
                f"Received malformed JSON from {self.service_name}",
                service=self.service_name,
            ) from exc

    @staticmethod
    def _optional(value: Optional[Any]) -> Optional[str]:
        return str(value) if value is not None else None
