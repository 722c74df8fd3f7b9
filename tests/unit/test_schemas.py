"""Request schema validation and the ValidationException bridge."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
import re

import pytest

from referral_engine.core.enums import UserRole
from referral_engine.core.exceptions import ValidationException
from referral_engine.schemas import Actor, CampaignCreate, CodeTerms, coerce_model, coerce_role
from referral_engine.services.referral_code_service import generate_code


def test_generated_codes_carry_role_prefix():
    assert re.fullmatch(r"CUS[A-Z0-9]{6}", generate_code(UserRole.CUSTOMER))
    assert re.fullmatch(r"DRV[A-Z0-9]{6}", generate_code(UserRole.DRIVER))
    assert re.fullmatch(r"REST[A-Z0-9]{6}", generate_code(UserRole.RESTAURANT))


def test_generate_code_rejects_non_positive_length():
    with pytest.raises(ValueError):
        generate_code(UserRole.CUSTOMER, length=0)


def test_code_terms_normalize_requested_code():
    terms = coerce_model(CodeTerms, {"code": "friend2024"})
    assert terms.code == "FRIEND2024"


@pytest.mark.parametrize(
    "payload",
    [
        {"code": "BAD CODE"},
        {"code": "X" * 21},
        {"bonus_amount": "0"},
        {"max_usage": 1001},
        {"expiry_date": datetime.now(timezone.utc) - timedelta(days=1)},
        {"unexpected": True},
    ],
)
def test_invalid_code_terms_raise_validation_exception(payload):
    with pytest.raises(ValidationException) as exc_info:
        coerce_model(CodeTerms, payload)
    assert exc_info.value.code == "VALIDATION_ERROR"
    assert exc_info.value.details["errors"]


def test_campaign_window_must_be_ordered():
    start = datetime(2026, 1, 10, tzinfo=timezone.utc)
    with pytest.raises(ValidationException):
        coerce_model(
            CampaignCreate,
            {
                "name": "Backwards",
                "campaign_type": "seasonal",
                "target_audience": "all",
                "bonus_amount": Decimal("5.00"),
                "start_date": start,
                "end_date": start - timedelta(days=1),
            },
        )


def test_coerce_role_accepts_strings_and_rejects_unknown():
    assert coerce_role("Driver") is UserRole.DRIVER
    with pytest.raises(ValidationException) as exc_info:
        coerce_role("courier")
    assert exc_info.value.code == "INVALID_ROLE"


def test_actor_admin_roles():
    assert Actor(actor_id="a", role="sales").is_admin
    assert not Actor(actor_id="a", role="customer").is_admin
