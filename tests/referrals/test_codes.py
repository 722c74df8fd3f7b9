"""Referral code registry tests."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from referral_engine.core.enums import BonusType, UserRole
from referral_engine.core.exceptions import (
    ConflictException,
    DuplicateCodeException,
    NotFoundException,
    PermissionDeniedException,
    ValidationException,
)
from referral_engine.core.timezone_utils import utc_now
from referral_engine.events.referral_events import ReferralCodeDeactivated, ReferralCodeIssued

from ..conftest import ADMIN


def test_issue_generates_role_code_with_defaults(code_service, capture_events):
    code = code_service.issue("drv-1", "driver")

    assert code.code.startswith("DRV")
    assert len(code.code) == 9
    assert code.owner_role == UserRole.DRIVER
    assert code.bonus_amount == Decimal("25.00")
    assert code.bonus_type == BonusType.CREDIT
    assert code.max_usage == 50
    assert code.usage_count == 0
    assert code.is_active is True
    assert [type(event) for event in capture_events] == [ReferralCodeIssued]


def test_issue_respects_custom_terms(code_service):
    code = code_service.issue(
        "cust-1",
        UserRole.CUSTOMER,
        {"code": "cus7f3k2a", "bonus_amount": "12.50", "max_usage": 3},
    )
    assert code.code == "CUS7F3K2A"
    assert code.bonus_amount == Decimal("12.50")
    assert code.max_usage == 3


def test_second_active_code_is_a_conflict(code_service):
    code_service.issue("cust-1", "customer")
    with pytest.raises(ConflictException) as exc_info:
        code_service.issue("cust-1", "customer")
    assert exc_info.value.code == "ACTIVE_CODE_EXISTS"

    extra = code_service.issue("cust-1", "customer", {"allow_multiple": True})
    assert len(code_service.list_codes_for_owner("cust-1")) == 2
    assert extra.is_active


def test_requested_code_collision(code_service):
    code_service.issue("cust-1", "customer", {"code": "FRIENDS1"})
    with pytest.raises(DuplicateCodeException):
        code_service.issue("cust-2", "customer", {"code": "friends1"})


def test_invalid_role_is_validation_error(code_service):
    with pytest.raises(ValidationException):
        code_service.issue("x-1", "courier")


def test_resolve_is_case_insensitive(code_service):
    issued = code_service.issue("cust-1", "customer", {"code": "CUS7F3K2A"})
    assert code_service.resolve("  cus7f3k2a ").id == issued.id
    assert code_service.resolve("NOPE0000") is None
    assert code_service.resolve("") is None


def test_exhausted_code_is_not_resolvable(code_service):
    issued = code_service.issue("cust-1", "customer", {"max_usage": 1})

    assert code_service.mark_used(issued.id) is True
    assert code_service.mark_used(issued.id) is False
    assert code_service.resolve(issued.code) is None
    assert code_service.code_repo.get_by_id(issued.id, refresh=True).usage_count == 1


def test_mark_used_on_missing_code_is_silent(code_service):
    assert code_service.mark_used("01HXXXXXXXXXXXXXXXXXXXXXXX") is False


def test_expired_code_is_not_resolvable(db, code_service):
    issued = code_service.issue("cust-1", "customer")
    issued.expiry_date = utc_now() - timedelta(minutes=1)
    db.commit()

    assert code_service.resolve(issued.code) is None


def test_deactivate_by_owner_is_idempotent(code_service, capture_events):
    issued = code_service.issue("cust-1", "customer")
    owner = {"actor_id": "cust-1", "role": "customer"}

    first = code_service.deactivate(issued.id, owner)
    second = code_service.deactivate(issued.id, owner)

    assert first.is_active is False
    assert second.is_active is False
    assert code_service.resolve(issued.code) is None
    deactivations = [e for e in capture_events if isinstance(e, ReferralCodeDeactivated)]
    assert len(deactivations) == 1


def test_deactivate_permissions(code_service):
    issued = code_service.issue("cust-1", "customer")
    with pytest.raises(PermissionDeniedException):
        code_service.deactivate(issued.id, {"actor_id": "cust-2", "role": "customer"})

    assert code_service.deactivate(issued.id, ADMIN).is_active is False

    with pytest.raises(NotFoundException):
        code_service.deactivate("01HXXXXXXXXXXXXXXXXXXXXXXX", ADMIN)


def test_describe_code_uses_identity_with_anonymous_fallback(code_service):
    named = code_service.issue("cust-1", "customer")
    unnamed = code_service.issue("cust-9", "customer")

    description = code_service.describe_code(named.code)
    assert description.owner_name == "Casey Customer"
    assert description.remaining_uses == 50
    assert code_service.describe_code(unnamed.code).owner_name == "Anonymous"
    assert code_service.describe_code("MISSING1") is None
