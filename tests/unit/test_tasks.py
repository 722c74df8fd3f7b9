"""Celery wiring: beat schedule, routing and task bodies."""

from __future__ import annotations

from contextlib import contextmanager
from unittest.mock import MagicMock, patch

from celery.schedules import crontab

from referral_engine.core.exceptions import ExternalServiceException
from referral_engine.services.expiry_sweeper import SweepResult
from referral_engine.tasks import enqueue, notification_tasks, referral_tasks
from referral_engine.tasks.beat_schedule import get_beat_schedule
from referral_engine.tasks.celery_app import celery_app


def test_daily_expiry_schedule():
    schedule = get_beat_schedule("production")
    assert schedule["referrals-expire-daily"]["schedule"] == crontab(hour=2, minute=0)
    assert schedule["rewards-expire-daily"]["schedule"] == crontab(hour=3, minute=0)
    assert (
        schedule["rewards-expire-daily"]["task"]
        == "referral_engine.tasks.referral_tasks.expire_rewards"
    )


def test_development_runs_referral_sweep_hourly():
    schedule = get_beat_schedule("development")
    assert schedule["referrals-expire-daily"]["schedule"] == crontab(minute=0)
    assert "rewards-expire-daily" in schedule


def test_tasks_are_registered():
    assert notification_tasks.SEND_NOTIFICATION_TASK in celery_app.tasks
    assert "referral_engine.tasks.referral_tasks.expire_referrals" in celery_app.tasks


def test_send_notification_reports_sent():
    client = MagicMock()
    with patch.object(notification_tasks, "build_notification_client", return_value=client):
        result = notification_tasks.send_notification.run("cust-1", {"type": "reward_credited"})

    assert result == {"status": "sent", "type": "reward_credited"}
    client.notify.assert_called_once_with("cust-1", {"type": "reward_credited"})


def test_send_notification_drops_non_retryable_failure():
    client = MagicMock()
    client.notify.side_effect = ExternalServiceException(
        "bad request", service="notification_service", retryable=False
    )
    with patch.object(notification_tasks, "build_notification_client", return_value=client):
        result = notification_tasks.send_notification.run("cust-1", {"type": "reward_expired"})

    assert result == {"status": "failed", "type": "reward_expired"}


def test_expire_rewards_task_runs_reward_sweep_only():
    sweeper = MagicMock()
    sweeper.run.return_value = SweepResult(referrals_expired=0, rewards_expired=3)

    @contextmanager
    def fake_session():
        yield MagicMock()

    with patch.object(referral_tasks, "get_db_session", fake_session), patch.object(
        referral_tasks, "ExpirySweeper", return_value=sweeper
    ):
        result = referral_tasks.expire_rewards.run()

    assert result == {"rewards_expired": 3}
    sweeper.run.assert_called_once_with(referrals=False, rewards=True)


def test_enqueue_task_tags_origin_and_passes_options():
    task = MagicMock()
    app = MagicMock()
    app.tasks = {"sample.task": task}
    with patch.object(enqueue, "current_app", app):
        enqueue.enqueue_task("sample.task", args=["cust-1"], countdown=5, headers={"trace": "t-1"})

    task.apply_async.assert_called_once_with(
        args=("cust-1",),
        kwargs={},
        headers={"trace": "t-1", "origin": "referral_engine"},
        countdown=5,
    )
