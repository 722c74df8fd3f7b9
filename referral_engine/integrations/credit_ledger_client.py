"""Credit ledger client: issues credit instructions to the payment service."""

from __future__ import annotations

from decimal import Decimal
import logging
from typing import Any, Dict, Optional

from referral_engine.core.exceptions import ExternalServiceException

from .protocols import CreditResult
from .service_client import PlatformServiceClient

logger = logging.getLogger(__name__)


class CreditLedgerClient(PlatformServiceClient):
    """Credit user accounts; remote failures come back as ``CreditResult(success=False)``."""

    service_name = "payment_service"

    def credit_account(
        self,
        user_id: str,
        amount: Decimal,
        metadata: Dict[str, Any],
        *,
        idempotency_key: Optional[str] = None,
    ) -> CreditResult:
        body: Dict[str, Any] = {"user_id": user_id, "amount": str(amount), **metadata}
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        try:
            payload = self.request("POST", "/api/credits", json_body=body, headers=headers)
        except ExternalServiceException as exc:
            logger.error("Credit instruction failed for %s: %s", user_id, exc.message)
            return CreditResult(success=False, error=exc.message, retryable=exc.retryable)

        success = bool(payload.get("success", True))
        return CreditResult(
            success=success,
            error=None if success else str(payload.get("error") or "credit rejected"),
            transaction_id=self._optional(payload.get("transaction_id")),
            retryable=bool(payload.get("retryable", True)),
        )
