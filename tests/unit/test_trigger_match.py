"""Trigger matcher predicate tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from referral_engine.core.enums import (
    COMPLETION_CONDITION_BY_ROLE,
    ReferralStatus,
    TriggerType,
    UserRole,
)
from referral_engine.models.referrals import Referral
from referral_engine.services.trigger_service import match


def _referral(referee_role: UserRole, minimum: str = "0", referee_id: str = "ref-2") -> Referral:
    return Referral(
        id="01HZZZZZZZZZZZZZZZZZZZZZZZ",
        referrer_id="ref-1",
        referrer_role=UserRole.CUSTOMER,
        referee_id=referee_id,
        referee_role=referee_role,
        referral_code="CUSABC123",
        completion_condition=COMPLETION_CONDITION_BY_ROLE[referee_role],
        status=ReferralStatus.PENDING,
        referrer_bonus=Decimal("10.00"),
        referee_bonus=Decimal("10.00"),
        minimum_order_amount=Decimal(minimum),
        expiry_date=datetime.now(timezone.utc) + timedelta(days=30),
    )


def test_first_order_matches_customer_order():
    referral = _referral(UserRole.CUSTOMER)
    assert match(referral, TriggerType.ORDER_COMPLETED, {"customer_id": "ref-2", "amount": "0"})


def test_first_order_without_amount_matches_when_no_minimum():
    referral = _referral(UserRole.CUSTOMER)
    assert match(referral, "order_completed", {"customer_id": "ref-2"})


@pytest.mark.parametrize(
    ("amount", "expected"),
    [("24.99", False), ("25.00", True), ("80", True)],
)
def test_first_order_minimum_amount_is_inclusive(amount, expected):
    referral = _referral(UserRole.CUSTOMER, minimum="25.00")
    payload = {"customer_id": "ref-2", "amount": amount}
    assert match(referral, TriggerType.ORDER_COMPLETED, payload) is expected


def test_first_order_requires_amount_when_minimum_set():
    referral = _referral(UserRole.CUSTOMER, minimum="25.00")
    assert not match(referral, TriggerType.ORDER_COMPLETED, {"customer_id": "ref-2"})


def test_first_order_rejects_other_customer():
    referral = _referral(UserRole.CUSTOMER)
    assert not match(referral, TriggerType.ORDER_COMPLETED, {"customer_id": "someone-else"})


def test_first_delivery_matches_driver_only():
    referral = _referral(UserRole.DRIVER)
    assert match(referral, TriggerType.DELIVERY_COMPLETED, {"driver_id": "ref-2"})
    assert not match(referral, TriggerType.ORDER_COMPLETED, {"customer_id": "ref-2"})
    assert not match(referral, TriggerType.DELIVERY_COMPLETED, {"driver_id": "ref-9"})


def test_registration_matches_user_verified():
    referral = _referral(UserRole.RESTAURANT)
    assert match(referral, TriggerType.USER_VERIFIED, {"user_id": "ref-2"})
    assert not match(referral, TriggerType.DELIVERY_COMPLETED, {"driver_id": "ref-2"})


def test_unknown_trigger_type_never_matches():
    referral = _referral(UserRole.CUSTOMER)
    assert not match(referral, "refund_issued", {"customer_id": "ref-2"})


def test_extra_payload_keys_are_accepted():
    referral = _referral(UserRole.RESTAURANT)
    payload = {"user_id": "ref-2", "verified_by": "ops", "source": "kyc"}
    assert match(referral, TriggerType.USER_VERIFIED, payload)
