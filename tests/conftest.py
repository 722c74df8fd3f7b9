"""
Pytest configuration for the referral engine.

Settings are pinned to an in-memory SQLite database and eager Celery before
any package import, and every test gets a freshly created schema.
"""

import os

os.environ["REFERRAL_ENGINE_ENVIRONMENT"] = "test"
os.environ["REFERRAL_ENGINE_DATABASE_URL"] = "sqlite://"
os.environ["REFERRAL_ENGINE_CELERY_ALWAYS_EAGER"] = "true"

from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import pytest
from sqlalchemy.orm import sessionmaker

from referral_engine.database import Base, build_engine, init_db
from referral_engine.events import referral_events
from referral_engine.integrations.protocols import CreditResult, UserDetails
from referral_engine.services.campaign_service import CampaignService
from referral_engine.services.notification_service import NotificationService
from referral_engine.services.program_config import ProgramConfig
from referral_engine.services.referral_code_service import ReferralCodeService
from referral_engine.services.referral_service import ReferralService
from referral_engine.services.reward_service import RewardService
from referral_engine.services.trigger_service import TriggerService

ADMIN = {"actor_id": "admin-1", "role": "admin"}


class FakeLedger:
    """Credit ledger double that records every instruction."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.fail = False
        self.retryable = True

    def credit_account(
        self,
        user_id: str,
        amount: Decimal,
        metadata: Dict[str, Any],
        *,
        idempotency_key: Optional[str] = None,
    ) -> CreditResult:
        self.calls.append(
            {
                "user_id": user_id,
                "amount": amount,
                "metadata": metadata,
                "idempotency_key": idempotency_key,
            }
        )
        if self.fail:
            return CreditResult(
                success=False, error="ledger unavailable", retryable=self.retryable
            )
        return CreditResult(success=True, transaction_id=f"txn-{len(self.calls)}")

    def calls_for(self, reward_id: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["idempotency_key"] == reward_id]


class RecordingDispatcher:
    """Notification dispatcher that keeps payloads instead of queueing them."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, Dict[str, Any]]] = []
        self.fail = False

    def __call__(self, user_id: str, payload: Dict[str, Any]) -> None:
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.sent.append((user_id, payload))

    def types_for(self, user_id: str) -> List[str]:
        return [payload["type"] for uid, payload in self.sent if uid == user_id]


class FakeIdentity:
    def __init__(self, names: Optional[Dict[str, str]] = None) -> None:
        self.names = names or {}

    def get_user_details(self, user_id: str, role: str) -> Optional[UserDetails]:
        name = self.names.get(user_id)
        return UserDetails(name=name, avatar=f"https://cdn.test/{user_id}.png") if name else None


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://")
    init_db(test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def config() -> ProgramConfig:
    return ProgramConfig()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def identity() -> FakeIdentity:
    return FakeIdentity({"cust-1": "Casey Customer", "drv-1": "Dana Driver"})


@pytest.fixture
def notifications(dispatcher) -> NotificationService:
    return NotificationService(dispatcher=dispatcher)


@pytest.fixture
def code_service(db, config, identity) -> ReferralCodeService:
    return ReferralCodeService(db, config=config, identity=identity)


@pytest.fixture
def campaign_service(db) -> CampaignService:
    return CampaignService(db)


@pytest.fixture
def referral_service(db, config, notifications, identity) -> ReferralService:
    return ReferralService(db, config=config, notifications=notifications, identity=identity)


@pytest.fixture
def reward_service(db, config, ledger, notifications, identity) -> RewardService:
    return RewardService(
        db, config=config, ledger=ledger, notifications=notifications, identity=identity
    )


@pytest.fixture
def trigger_service(db, referral_service, reward_service) -> TriggerService:
    return TriggerService(db, referral_service=referral_service, reward_service=reward_service)


@pytest.fixture
def capture_events():
    collected = []

    def listener(event):
        collected.append(event)

    referral_events.register_listener(listener)
    yield collected
    referral_events.unregister_listener(listener)
