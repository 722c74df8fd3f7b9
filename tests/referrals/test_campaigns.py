"""Campaign administration, selection and capacity-guarded settlement."""

from datetime import timedelta
from decimal import Decimal

import pytest

from referral_engine.core.enums import RewardSourceType, RewardStatus, RewardType
from referral_engine.core.exceptions import (
    NotFoundException,
    PermissionDeniedException,
    ValidationException,
)
from referral_engine.core.timezone_utils import utc_now

from ..conftest import ADMIN


def campaign_payload(**overrides):
    now = utc_now()
    payload = {
        "name": "Spring referral boost",
        "campaign_type": "referral",
        "target_audience": "customer",
        "bonus_amount": Decimal("20.00"),
        "start_date": now - timedelta(days=1),
        "end_date": now + timedelta(days=30),
    }
    payload.update(overrides)
    return payload


def test_create_campaign_requires_admin(campaign_service):
    with pytest.raises(PermissionDeniedException):
        campaign_service.create_campaign(
            campaign_payload(), {"actor_id": "cust-1", "role": "customer"}
        )


def test_create_campaign_rejects_inverted_window(campaign_service):
    now = utc_now()
    with pytest.raises(ValidationException):
        campaign_service.create_campaign(
            campaign_payload(start_date=now, end_date=now - timedelta(hours=1)), ADMIN
        )


def test_create_activate_deactivate_and_summary(campaign_service):
    campaign = campaign_service.create_campaign(campaign_payload(), ADMIN)
    assert campaign.is_active is True
    assert campaign.current_participants == 0
    assert campaign.created_by == "admin-1"

    assert campaign_service.deactivate(campaign.id, ADMIN).is_active is False
    assert campaign_service.select_for_role("customer") is None
    assert campaign_service.summary() == {
        "total": 1,
        "active": 0,
        "inactive": 1,
        "participants": 0,
    }

    assert campaign_service.activate(campaign.id, ADMIN).is_active is True
    assert campaign_service.select_for_role("customer").id == campaign.id
    assert [c.id for c in campaign_service.list_campaigns(active_only=True)] == [campaign.id]


def test_get_unknown_campaign(campaign_service):
    with pytest.raises(NotFoundException):
        campaign_service.get("01HXXXXXXXXXXXXXXXXXXXXXXX")


def test_selection_is_deterministic_and_audience_aware(campaign_service):
    now = utc_now()
    later = campaign_service.create_campaign(
        campaign_payload(name="Later", start_date=now - timedelta(hours=1)), ADMIN
    )
    earlier = campaign_service.create_campaign(
        campaign_payload(name="Earlier", start_date=now - timedelta(days=2)), ADMIN
    )
    everyone = campaign_service.create_campaign(
        campaign_payload(
            name="Everyone", target_audience="all", start_date=now - timedelta(minutes=5)
        ),
        ADMIN,
    )

    assert campaign_service.select_for_role("customer").id == earlier.id
    assert campaign_service.select_for_role("driver").id == everyone.id
    assert later.id != earlier.id


def test_future_and_full_campaigns_are_not_selected(campaign_service):
    now = utc_now()
    campaign_service.create_campaign(
        campaign_payload(start_date=now + timedelta(days=1), end_date=now + timedelta(days=5)),
        ADMIN,
    )
    full = campaign_service.create_campaign(campaign_payload(max_participants=1), ADMIN)
    assert campaign_service.increment_participants(full.id) is True

    assert campaign_service.select_for_role("customer") is None
    assert campaign_service.increment_participants(full.id) is False


def test_decrement_never_goes_negative(campaign_service):
    campaign = campaign_service.create_campaign(campaign_payload(), ADMIN)
    assert campaign_service.decrement_participants(campaign.id) is False
    assert campaign_service.get(campaign.id).current_participants == 0


def test_referral_attributed_to_running_campaign(
    campaign_service, code_service, referral_service
):
    campaign = campaign_service.create_campaign(campaign_payload(), ADMIN)
    customer_code = code_service.issue("cust-1", "customer")
    driver_code = code_service.issue("drv-1", "driver")

    referral = referral_service.create(customer_code.code, "cust-2", "customer")
    assert referral.campaign_id == campaign.id
    assert referral.referrer_bonus == Decimal("20.00")
    assert referral.referee_bonus == Decimal("10.00")
    assert campaign_service.get(campaign.id).current_participants == 1

    driver_referral = referral_service.create(driver_code.code, "drv-2", "driver")
    assert driver_referral.campaign_id is None
    assert driver_referral.referrer_bonus == Decimal("25.00")


def test_settle_campaign_issues_pending_bonus_once(campaign_service, reward_service, ledger):
    campaign = campaign_service.create_campaign(campaign_payload(max_participants=5), ADMIN)

    reward = reward_service.settle_campaign("cust-3", "customer", campaign.id)
    assert reward.reward_type == RewardType.CAMPAIGN_BONUS
    assert reward.source_type == RewardSourceType.CAMPAIGN
    assert reward.source_id == campaign.id
    assert reward.status == RewardStatus.PENDING
    assert reward.amount == Decimal("20.00")
    assert reward.description == "Campaign bonus: Spring referral boost"
    assert ledger.calls == []

    assert reward_service.settle_campaign("cust-3", "customer", campaign.id) is None
    assert campaign_service.get(campaign.id).current_participants == 1


def test_settle_campaign_amount_override(campaign_service, reward_service):
    campaign = campaign_service.create_campaign(campaign_payload(), ADMIN)
    reward = reward_service.settle_campaign(
        "cust-3", "customer", campaign.id, amount=Decimal("7.50"), description="Launch week"
    )
    assert reward.amount == Decimal("7.50")
    assert reward.description == "Launch week"

    with pytest.raises(ValidationException):
        reward_service.settle_campaign("cust-4", "customer", campaign.id, amount=Decimal("0"))


def test_full_campaign_pays_nothing(db, campaign_service, reward_service):
    campaign = campaign_service.create_campaign(campaign_payload(max_participants=1), ADMIN)
    campaign_service.increment_participants(campaign.id)

    assert reward_service.settle_campaign("cust-9", "customer", campaign.id) is None
    assert campaign_service.get(campaign.id).current_participants == 1
    assert reward_service.list_for_user("cust-9") == []


def test_settle_campaign_losing_slot_race_issues_nothing(
    campaign_service, reward_service, monkeypatch
):
    campaign = campaign_service.create_campaign(campaign_payload(max_participants=1), ADMIN)
    monkeypatch.setattr(
        reward_service.campaign_repo, "increment_participants", lambda campaign_id: False
    )

    assert reward_service.settle_campaign("cust-9", "customer", campaign.id) is None
    assert reward_service.list_for_user("cust-9") == []


def test_settle_campaign_inactive_or_missing(campaign_service, reward_service):
    campaign = campaign_service.create_campaign(campaign_payload(), ADMIN)
    campaign_service.deactivate(campaign.id, ADMIN)

    assert reward_service.settle_campaign("cust-3", "customer", campaign.id) is None
    assert reward_service.settle_campaign("cust-3", "customer", "missing") is None


def test_running_and_capacity_guards(campaign_service):
    now = utc_now()
    campaign = campaign_service.create_campaign(campaign_payload(max_participants=2), ADMIN)

    assert campaign_service.is_running(campaign, now) is True
    assert campaign_service.is_running(campaign, now + timedelta(days=31)) is False
    assert campaign_service.has_capacity(campaign) is True

    campaign_service.increment_participants(campaign.id)
    campaign_service.increment_participants(campaign.id)
    assert campaign_service.has_capacity(campaign_service.get(campaign.id)) is False


def test_list_running_honours_window_and_audience(campaign_service):
    now = utc_now()
    customer = campaign_service.create_campaign(campaign_payload(name="Customers"), ADMIN)
    everyone = campaign_service.create_campaign(
        campaign_payload(name="Everyone", target_audience="all"), ADMIN
    )
    driver = campaign_service.create_campaign(
        campaign_payload(name="Drivers", target_audience="driver"), ADMIN
    )
    campaign_service.create_campaign(
        campaign_payload(name="Later", start_date=now + timedelta(days=2)), ADMIN
    )
    paused = campaign_service.create_campaign(campaign_payload(name="Paused"), ADMIN)
    campaign_service.deactivate(paused.id, ADMIN)

    running = {c.id for c in campaign_service.list_running()}
    assert running == {customer.id, everyone.id, driver.id}

    assert {c.id for c in campaign_service.list_running("Driver ")} == {driver.id, everyone.id}
    assert {c.id for c in campaign_service.list_running("customer")} == {
        customer.id,
        everyone.id,
    }
    assert [c.id for c in campaign_service.list_running("all")] == [everyone.id]


def test_list_running_rejects_unknown_audience(campaign_service):
    with pytest.raises(ValidationException) as exc:
        campaign_service.list_running("martians")
    assert exc.value.code == "INVALID_AUDIENCE"


def test_campaign_stats_counts_campaign_rewards(campaign_service, reward_service):
    campaign = campaign_service.create_campaign(campaign_payload(max_participants=5), ADMIN)
    first = reward_service.settle_campaign("cust-3", "customer", campaign.id)
    reward_service.settle_campaign("cust-4", "customer", campaign.id, amount=Decimal("5.00"))
    reward_service.claim_reward(first.id, "cust-3")

    stats = campaign_service.campaign_stats(campaign.id, ADMIN)
    assert stats.campaign_id == campaign.id
    assert stats.name == "Spring referral boost"
    assert stats.is_running is True
    assert stats.current_participants == 2
    assert stats.max_participants == 5
    assert stats.remaining_slots == 3
    assert stats.rewards_issued == 2
    assert stats.rewards_credited == 1
    assert stats.rewards_amount == Decimal("25.00")


def test_campaign_stats_guards(campaign_service):
    campaign = campaign_service.create_campaign(campaign_payload(), ADMIN)

    stats = campaign_service.campaign_stats(campaign.id, ADMIN)
    assert stats.remaining_slots is None
    assert stats.rewards_issued == 0
    assert stats.rewards_amount == Decimal("0")

    with pytest.raises(PermissionDeniedException):
        campaign_service.campaign_stats(campaign.id, {"actor_id": "cust-1", "role": "customer"})
    with pytest.raises(NotFoundException):
        campaign_service.campaign_stats("missing", ADMIN)
