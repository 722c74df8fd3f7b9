"""Contracts for the external collaborators the engine depends on."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol


@dataclass(frozen=True)
class UserDetails:
    name: str
    avatar: Optional[str] = None


@dataclass(frozen=True)
class CreditResult:
    success: bool
    error: Optional[str] = None
    transaction_id: Optional[str] = None
    retryable: bool = True


class IdentityLookup(Protocol):
    def get_user_details(self, user_id: str, role: str) -> Optional[UserDetails]:
        """Return display details, or None when the user cannot be resolved."""
        ...


class NotificationSender(Protocol):
    def notify(self, user_id: str, payload: Dict[str, Any]) -> None:
        """Deliver a notification; raises ExternalServiceException on failure."""
        ...


class CreditLedger(Protocol):
    def credit_account(
        self,
        user_id: str,
        amount: Decimal,
        metadata: Dict[str, Any],
        *,
        idempotency_key: Optional[str] = None,
    ) -> CreditResult:
        """Instruct the ledger to credit ``amount``; never raises for remote failures."""
        ...
