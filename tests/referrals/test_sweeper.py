"""Expiry sweeps for referrals and rewards, and the combined sweeper."""

from datetime import timedelta
from decimal import Decimal

import pytest

from referral_engine.core.enums import ReferralStatus, RewardStatus
from referral_engine.core.timezone_utils import utc_now
from referral_engine.events.referral_events import RewardExpired
from referral_engine.services.expiry_sweeper import ExpirySweeper, SweepResult
from referral_engine.services.program_config import ProgramConfig
from referral_engine.services.referral_service import ReferralService
from referral_engine.services.reward_service import RewardService

from ..conftest import ADMIN


@pytest.fixture
def pending_reward(db, campaign_service, reward_service):
    now = utc_now()
    campaign = campaign_service.create_campaign(
        {
            "name": "Autumn",
            "campaign_type": "promotional",
            "target_audience": "all",
            "bonus_amount": Decimal("12.00"),
            "start_date": now - timedelta(days=1),
            "end_date": now + timedelta(days=10),
        },
        ADMIN,
    )
    return reward_service.settle_campaign("cust-3", "customer", campaign.id)


def _backdate(db, row):
    row.expiry_date = utc_now() - timedelta(hours=1)
    db.commit()


def test_reward_sweep_expires_once(
    db, reward_service, pending_reward, dispatcher, capture_events
):
    _backdate(db, pending_reward)

    assert reward_service.sweep_expired_rewards() == 1
    assert reward_service.sweep_expired_rewards() == 0

    reward = reward_service.reward_repo.get_by_id(pending_reward.id, refresh=True)
    assert reward.status == RewardStatus.EXPIRED
    assert dispatcher.types_for("cust-3") == ["reward_expired"]
    assert [e.reward_id for e in capture_events if isinstance(e, RewardExpired)] == [reward.id]


def test_reward_sweep_ignores_credited_and_unexpired(db, reward_service, pending_reward):
    credited = reward_service.settle_first_time("cust-4", "customer", "user_verified")
    _backdate(db, credited)

    assert reward_service.sweep_expired_rewards() == 0
    assert (
        reward_service.reward_repo.get_by_id(credited.id, refresh=True).status
        == RewardStatus.CREDITED
    )
    assert (
        reward_service.reward_repo.get_by_id(pending_reward.id, refresh=True).status
        == RewardStatus.PENDING
    )


def test_reward_sweep_skips_failing_record(db, reward_service, pending_reward, monkeypatch):
    _backdate(db, pending_reward)

    def explode(reward_id):
        raise RuntimeError("row locked")

    monkeypatch.setattr(reward_service.reward_repo, "mark_expired", explode)
    assert reward_service.sweep_expired_rewards() == 0
    assert (
        reward_service.reward_repo.get_by_id(pending_reward.id, refresh=True).status
        == RewardStatus.PENDING
    )


def test_claim_then_sweep_does_not_expire_credited(db, reward_service, pending_reward):
    reward_service.claim_reward(pending_reward.id, "cust-3")
    _backdate(db, pending_reward)
    assert reward_service.sweep_expired_rewards() == 0


def test_expiry_sweeper_runs_both_sweeps(
    db, config, notifications, code_service, referral_service, reward_service, pending_reward
):
    code = code_service.issue("cust-1", "customer")
    referral = referral_service.create(code.code, "cust-2", "customer")
    _backdate(db, referral)
    _backdate(db, pending_reward)

    sweeper = ExpirySweeper(
        db,
        config=config,
        notifications=notifications,
        referral_service=referral_service,
        reward_service=reward_service,
    )
    assert sweeper.run() == SweepResult(referrals_expired=1, rewards_expired=1)
    assert referral_service.get(referral.id).status == ReferralStatus.EXPIRED
    assert sweeper.run() == SweepResult()


def test_expiry_sweeper_respects_skip_flags(
    db, config, notifications, referral_service, reward_service, pending_reward
):
    _backdate(db, pending_reward)
    sweeper = ExpirySweeper(
        db,
        config=config,
        notifications=notifications,
        referral_service=referral_service,
        reward_service=reward_service,
    )

    assert sweeper.run(rewards=False) == SweepResult(referrals_expired=0, rewards_expired=0)
    assert sweeper.run(referrals=False, limit=1) == SweepResult(rewards_expired=1)


@pytest.fixture
def paged_config():
    return ProgramConfig(sweep_batch_size=2)


def test_referral_sweep_walks_every_page(db, paged_config, notifications, code_service):
    service = ReferralService(db, config=paged_config, notifications=notifications)
    code = code_service.issue("cust-1", "customer", {"allow_multiple": True})
    referrals = [service.create(code.code, f"cust-{n}", "customer") for n in (2, 3, 4)]
    for referral in referrals:
        _backdate(db, referral)

    assert service.sweep_expired() == 3
    assert {service.get(r.id).status for r in referrals} == {ReferralStatus.EXPIRED}
    assert service.sweep_expired() == 0


def test_reward_sweep_walks_every_page(
    db, paged_config, ledger, notifications, pending_reward
):
    service = RewardService(db, config=paged_config, ledger=ledger, notifications=notifications)
    campaign_id = pending_reward.source_id
    rewards = [pending_reward]
    for user_id in ("cust-5", "cust-6"):
        rewards.append(service.settle_campaign(user_id, "customer", campaign_id))
    for reward in rewards:
        _backdate(db, reward)

    assert service.sweep_expired_rewards() == 3
    statuses = {service.reward_repo.get_by_id(r.id, refresh=True).status for r in rewards}
    assert statuses == {RewardStatus.EXPIRED}


def test_sweep_limit_caps_records_examined(db, paged_config, notifications, code_service):
    service = ReferralService(db, config=paged_config, notifications=notifications)
    code = code_service.issue("cust-1", "customer", {"allow_multiple": True})
    for n in (2, 3, 4):
        _backdate(db, service.create(code.code, f"cust-{n}", "customer"))

    assert service.sweep_expired(limit=2) == 2
    assert service.sweep_expired() == 1


def test_failing_record_does_not_stall_later_pages(
    db, paged_config, notifications, code_service, monkeypatch
):
    service = ReferralService(db, config=paged_config, notifications=notifications)
    code = code_service.issue("cust-1", "customer", {"allow_multiple": True})
    referrals = [service.create(code.code, f"cust-{n}", "customer") for n in (2, 3, 4)]
    for referral in referrals:
        _backdate(db, referral)
    broken = min(r.id for r in referrals)
    original = service.referral_repo.transition_from_pending

    def flaky(referral_id, new_status, **values):
        if referral_id == broken:
            raise RuntimeError("row locked")
        return original(referral_id, new_status, **values)

    monkeypatch.setattr(service.referral_repo, "transition_from_pending", flaky)

    assert service.sweep_expired() == 2
    assert service.get(broken).status == ReferralStatus.PENDING
