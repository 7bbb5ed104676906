"""Domain exceptions raised by the loyalty services and their HTTP mapping."""

from __future__ import annotations

from typing import Any

from fastapi import status


class LoyaltyServiceError(RuntimeError):
    """Base exception for loyalty administration failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None, *, data: Any = None) -> None:
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)


class ValidationError(LoyaltyServiceError):
    """Raised when input is malformed or violates a business rule."""

    default_message = "Invalid request"


class NotConfigured(LoyaltyServiceError):
    """Raised when an operation needs an active rule and none exists."""

    default_message = "No active configuration found"


class LimitReached(LoyaltyServiceError):
    """Raised when a referrer already holds the maximum number of referrals."""

    default_message = "Referral limit reached."


class ConversionDisabled(LoyaltyServiceError):
    """Raised when the active coin rule has been reset to a zero rate."""

    default_message = "Coin conversion is currently disabled"


class NotFound(LoyaltyServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class DuplicateReferral(LoyaltyServiceError):
    """Raised when a referee has already been referred."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Customer has already been referred"


class InvalidReferralTransition(LoyaltyServiceError):
    """Raised when a referral entry is asked to leave a terminal status."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current_status: str, requested_status: str) -> None:
        super().__init__(f"Cannot transition referral from {current_status} to {requested_status}")
        self.current_status = current_status
        self.requested_status = requested_status


class Forbidden(LoyaltyServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class PersistenceFailure(LoyaltyServiceError):
    """Raised when the underlying store rejects or loses a write."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"


class ActiveRuleConflict(PersistenceFailure):
    """Raised when a concurrent writer stored another active rule first."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Another active rule was saved concurrently"


__all__ = [
    "ActiveRuleConflict",
    "ConversionDisabled",
    "DuplicateReferral",
    "Forbidden",
    "InvalidReferralTransition",
    "LimitReached",
    "LoyaltyServiceError",
    "NotConfigured",
    "NotFound",
    "PersistenceFailure",
    "ValidationError",
]
