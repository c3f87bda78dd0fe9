"""
Domain errors raised by the service layer.

Services raise these; app.main renders them as JSON with the status code
carried by each class, so route handlers never translate errors by hand.
"""
from typing import Any, Dict, Optional

from fastapi import status


class AppError(Exception):
    """Base class for all expected, user-facing failures."""
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def to_detail(self) -> Dict[str, Any]:
        detail = {"error": self.code, "message": self.message}
        detail.update(self.extra)
        return detail


# --- Not found -------------------------------------------------------------

class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Resource not found"


class PlanNotFound(NotFound):
    code = "plan_not_found"
    default_message = "Plan not found"


class TopUpPackNotFound(NotFound):
    code = "top_up_pack_not_found"
    default_message = "Top-up pack not found"


class TierNotFound(NotFound):
    code = "tier_not_found"
    default_message = "Membership tier not found"


class UserNotFound(NotFound):
    code = "user_not_found"
    default_message = "User not found"


class OrderNotFound(NotFound):
    code = "order_not_found"
    default_message = "Order not found"


class MembershipNotFound(NotFound):
    code = "membership_not_found"
    default_message = "Membership record not found"


# --- Validation ------------------------------------------------------------

class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
    default_message = "Invalid request"


class InvalidTopUpAmount(ValidationError):
    code = "invalid_top_up_amount"
    default_message = "Top-up amount must be a positive integer"


# --- Quota / membership ----------------------------------------------------

class QuotaExhausted(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "quota_exhausted"
    default_message = "No usable quota left"


class MembershipExpired(AppError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    code = "membership_expired"
    default_message = "Your membership has expired, please renew"


class RateLimited(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"
    default_message = "Too many requests"


# --- Conflicts -------------------------------------------------------------

class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Conflicting state"


class OrderAlreadyActivated(Conflict):
    code = "order_already_activated"
    default_message = "Order is not pending and cannot be activated"


class DuplicateEmail(Conflict):
    code = "duplicate_email"
    default_message = "Email already registered"


class TierInUse(Conflict):
    code = "tier_in_use"
    default_message = "Membership tier is referenced by active or pending memberships"


# --- Server side -----------------------------------------------------------

class ConfigurationError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "configuration_error"
    default_message = "System is misconfigured"
