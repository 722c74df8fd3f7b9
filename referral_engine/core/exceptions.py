# referral_engine/core/exceptions.py
"""
Domain-specific exceptions for the referral engine.

These exceptions carry business-focused messages and stable codes. Callers
at the transport layer translate them; no transport concerns live here.
"""

from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, "details": self.details}


class ValidationException(DomainException):
    """Raised when input validation fails."""


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""


class PreconditionFailedException(DomainException):
    """Raised when an entity is not in the state an action requires."""


class PermissionDeniedException(DomainException):
    """Raised when the actor lacks permission for an action."""


class ServiceException(DomainException):
    """Raised when a service operation fails."""


class ExternalServiceException(DomainException):
    """Raised when an external collaborator fails."""

    def __init__(
        self,
        message: str,
        *,
        service: str,
        retryable: bool = True,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code="EXTERNAL_SERVICE_ERROR",
            details={"service": service, "retryable": retryable, **(details or {})},
        )
        self.service = service
        self.retryable = retryable


# Specific referral exceptions


class InvalidReferralCodeException(NotFoundException):
    """Raised when a referral code is absent, inactive, exhausted or expired."""

    def __init__(self, code: str):
        super().__init__(
            message="Invalid or expired referral code",
            code="INVALID_REFERRAL_CODE",
            details={"referral_code": code},
        )


class SelfReferralException(ConflictException):
    """Raised when a user tries to redeem their own referral code."""

    def __init__(self, user_id: str):
        super().__init__(
            message="Cannot refer yourself",
            code="SELF_REFERRAL",
            details={"user_id": user_id},
        )


class DuplicateReferralException(ConflictException):
    """Raised when a referral already exists between the same users and roles."""

    def __init__(
        self,
        *,
        referrer_id: str,
        referee_id: str,
        referrer_role: str,
        referee_role: str,
    ):
        super().__init__(
            message="Referral already exists between these users",
            code="DUPLICATE_REFERRAL",
            details={
                "referrer_id": referrer_id,
                "referee_id": referee_id,
                "referrer_role": referrer_role,
                "referee_role": referee_role,
            },
        )


class DuplicateCodeException(ConflictException):
    """Raised when a requested referral code string is already taken."""

    def __init__(self, code: str):
        super().__init__(
            message=f"Referral code {code} already exists",
            code="DUPLICATE_REFERRAL_CODE",
            details={"referral_code": code},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as connection issues,
    query failures, or constraint violations.
    """
