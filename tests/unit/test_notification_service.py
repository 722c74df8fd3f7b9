"""Notification payloads and best-effort dispatch."""

from __future__ import annotations

from decimal import Decimal

from referral_engine.services.notification_service import NotificationService, format_money


def test_format_money_uses_two_decimals():
    assert format_money(Decimal("10")) == "$10.00"
    assert format_money(Decimal("7.5")) == "$7.50"


def test_milestone_payload(dispatcher):
    service = NotificationService(dispatcher=dispatcher)
    service.milestone_achieved("cust-1", 5, Decimal("15.00"), "rw-1")

    user_id, payload = dispatcher.sent[0]
    assert user_id == "cust-1"
    assert payload["type"] == "milestone_achieved"
    assert payload["message"] == "Congratulations! You've reached 5 referrals and earned $15.00!"
    assert payload["data"] == {"reward_id": "rw-1", "milestone": 5, "amount": "15.00"}


def test_referral_created_notifies_both_parties(dispatcher):
    service = NotificationService(dispatcher=dispatcher)
    service.referral_created(
        referral_id="r-1", referrer_id="cust-1", referee_id="cust-2", referrer_bonus=Decimal("10")
    )
    assert dispatcher.types_for("cust-1") == ["referral_created"]
    assert dispatcher.types_for("cust-2") == ["referral_received"]


def test_dispatch_failure_is_swallowed(dispatcher):
    dispatcher.fail = True
    service = NotificationService(dispatcher=dispatcher)

    assert service.reward_expired("cust-1", Decimal("10.00"), "rw-1") is None
    assert service.send("cust-1", "reward_expired", "gone") is False
    assert dispatcher.sent == []


def test_default_dispatcher_enqueues_celery_task(monkeypatch):
    calls = []

    def fake_enqueue(task_name, args=None, kwargs=None, **options):
        calls.append((task_name, args))

    monkeypatch.setattr("referral_engine.tasks.enqueue.enqueue_task", fake_enqueue)
    NotificationService().reward_credited("cust-2", Decimal("10.00"), "rw-9")

    assert len(calls) == 1
    task_name, args = calls[0]
    assert task_name == "referral_engine.tasks.notification_tasks.send_notification"
    assert args[0] == "cust-2"
    assert args[1]["message"] == "$10.00 has been credited to your account!"
