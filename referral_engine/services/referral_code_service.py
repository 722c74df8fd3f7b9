"""Referral code registry: issue, resolve, consume and deactivate codes."""

from __future__ import annotations

import logging
import secrets
import string
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy.orm import Session

from referral_engine.core.enums import CODE_PREFIX_BY_ROLE, UserRole
from referral_engine.core.exceptions import (
    ConflictException,
    DuplicateCodeException,
    NotFoundException,
    PermissionDeniedException,
    ServiceException,
)
from referral_engine.core.timezone_utils import utc_now
from referral_engine.events.referral_events import (
    emit_referral_code_deactivated,
    emit_referral_code_issued,
)
from referral_engine.integrations.protocols import IdentityLookup
from referral_engine.models.referrals import ReferralCode
from referral_engine.repositories.factory import RepositoryFactory
from referral_engine.repositories.referral_repository import ReferralCodeRepository
from referral_engine.schemas import Actor, CodeDescription, CodeTerms, coerce_model, coerce_role
from referral_engine.services.base import BaseService
from referral_engine.services.program_config import ProgramConfig

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_SUFFIX_LENGTH = 6
MAX_CODE_ATTEMPTS = 10


def generate_code(role: UserRole, length: int = CODE_SUFFIX_LENGTH) -> str:
    """Role prefix plus ``length`` random base-36 characters, e.g. ``CUS7F3K2A``."""

    if length <= 0:
        raise ValueError("Referral code length must be positive")
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{CODE_PREFIX_BY_ROLE[role]}{suffix}"


class ReferralCodeService(BaseService):
    """Owns the referral code lifecycle."""

    def __init__(
        self,
        db: Session,
        *,
        config: Optional[ProgramConfig] = None,
        identity: Optional[IdentityLookup] = None,
    ):
        super().__init__(db)
        self.config = config or ProgramConfig.from_settings()
        self.identity = identity
        self.code_repo: ReferralCodeRepository = (
            RepositoryFactory.create_referral_code_repository(db)
        )

    @BaseService.measure_operation("referral_codes.issue")
    def issue(
        self,
        owner_id: str,
        owner_role: Union[UserRole, str],
        terms: Union[CodeTerms, Mapping[str, Any], None] = None,
    ) -> ReferralCode:
        """Create a referral code for the owner, generating one when none is requested."""

        role = coerce_role(owner_role)
        code_terms = coerce_model(CodeTerms, terms)
        allow_multiple = code_terms.allow_multiple or self.config.allow_multiple_codes

        values = {
            "owner_id": owner_id,
            "owner_role": role,
            "bonus_amount": code_terms.bonus_amount or self.config.bonus_for_role(role),
            "bonus_type": code_terms.bonus_type,
            "max_usage": code_terms.max_usage or self.config.default_max_usage,
            "minimum_order_amount": code_terms.minimum_order_amount,
            "expiry_date": code_terms.expiry_date,
            "campaign_id": code_terms.campaign_id,
        }

        with self.transaction():
            if not allow_multiple and self.code_repo.get_active_for_owner(owner_id, role):
                raise ConflictException(
                    "User already has an active referral code",
                    code="ACTIVE_CODE_EXISTS",
                    details={"owner_id": owner_id, "owner_role": role.value},
                )

            if code_terms.code:
                created = self.code_repo.create_if_absent(code=code_terms.code, **values)
                if created is None:
                    raise DuplicateCodeException(code_terms.code)
            else:
                created = self._insert_generated(role, values)

        emit_referral_code_issued(owner_id=owner_id, owner_role=role.value, code=created.code)
        return created

    def _insert_generated(self, role: UserRole, values: Mapping[str, Any]) -> ReferralCode:
        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            candidate = generate_code(role)
            created = self.code_repo.create_if_absent(code=candidate, **values)
            if created is not None:
                return created
            logger.debug("Referral code collision on %s (attempt %s)", candidate, attempt)
        raise ServiceException(
            "Could not generate a unique referral code",
            code="CODE_GENERATION_FAILED",
        )

    @BaseService.measure_operation("referral_codes.resolve")
    def resolve(self, code: str) -> Optional[ReferralCode]:
        """Return the code only while it is usable; anything else looks absent."""

        if not code or not code.strip():
            return None
        row = self.code_repo.get_by_code(code)
        if row is None or not row.is_usable(utc_now()):
            return None
        return row

    @BaseService.measure_operation("referral_codes.mark_used")
    def mark_used(self, code_id: str) -> bool:
        with self.transaction():
            consumed = self.code_repo.increment_usage(code_id)
        if not consumed:
            logger.info("Referral code %s not consumed: missing, inactive or full", code_id)
        return consumed

    @BaseService.measure_operation("referral_codes.deactivate")
    def deactivate(self, code_id: str, actor: Union[Actor, Mapping[str, Any]]) -> ReferralCode:
        caller = coerce_model(Actor, actor)
        code = self.code_repo.get_by_id(code_id)
        if code is None:
            raise NotFoundException("Referral code not found", code="REFERRAL_CODE_NOT_FOUND")
        if code.owner_id != caller.actor_id and not caller.is_admin:
            raise PermissionDeniedException(
                "Only the owner or an administrator can deactivate this code",
                code="CODE_DEACTIVATION_FORBIDDEN",
                details={"code_id": code_id},
            )

        with self.transaction():
            changed = self.code_repo.deactivate(code_id)

        if changed:
            emit_referral_code_deactivated(code_id=code_id, actor_id=caller.actor_id)
        return self.code_repo.get_by_id(code_id, refresh=True) or code

    @BaseService.measure_operation("referral_codes.describe")
    def describe_code(self, code: str) -> Optional[CodeDescription]:
        """Public view of a usable code with the owner's display name."""

        row = self.resolve(code)
        if row is None:
            return None

        details = None
        if self.identity is not None:
            try:
                details = self.identity.get_user_details(row.owner_id, row.owner_role.value)
            except Exception as exc:
                logger.warning("Identity lookup failed for %s: %s", row.owner_id, exc)

        return CodeDescription(
            code=row.code,
            owner_role=row.owner_role,
            owner_name=details.name if details else "Anonymous",
            owner_avatar=details.avatar if details else None,
            bonus_amount=row.bonus_amount,
            bonus_type=row.bonus_type,
            minimum_order_amount=row.minimum_order_amount,
            expiry_date=row.expiry_date,
            remaining_uses=row.max_usage - row.usage_count,
        )

    @BaseService.measure_operation("referral_codes.list_for_owner")
    def list_codes_for_owner(
        self, owner_id: str, owner_role: Union[UserRole, str, None] = None
    ) -> List[ReferralCode]:
        role = coerce_role(owner_role) if owner_role is not None else None
        return self.code_repo.list_for_owner(owner_id, role)
