"""External collaborator clients and their contracts."""

from referral_engine.core.config import settings

from .credit_ledger_client import CreditLedgerClient
from .identity_client import IdentityClient
from .notification_client import NotificationClient
from .protocols import (
    CreditLedger,
    CreditResult,
    IdentityLookup,
    NotificationSender,
    UserDetails,
)


def build_identity_client() -> IdentityClient:
    return IdentityClient(
        base_url=settings.user_service_url,
        api_key=settings.service_api_key,
        timeout=settings.external_timeout_seconds,
    )


def build_notification_client() -> NotificationClient:
    return NotificationClient(
        base_url=settings.notification_service_url,
        api_key=settings.service_api_key,
        timeout=settings.external_timeout_seconds,
    )


def build_credit_ledger_client() -> CreditLedgerClient:
    return CreditLedgerClient(
        base_url=settings.payment_service_url,
        api_key=settings.service_api_key,
        timeout=settings.external_timeout_seconds,
    )


__all__ = [
    "CreditLedger",
    "CreditLedgerClient",
    "CreditResult",
    "IdentityClient",
    "IdentityLookup",
    "NotificationClient",
    "NotificationSender",
    "UserDetails",
    "build_credit_ledger_client",
    "build_identity_client",
    "build_notification_client",
]
