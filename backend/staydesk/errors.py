"""Typed errors raised by the booking core and rendered by the API layer."""

from typing import Any


class AppError(Exception):
    status_code: int = 500
    code: str = "internal_error"
    retryable: bool | None = None

    def __init__(self, message: str, *, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }
        if self.retryable is not None:
            payload["retryable"] = self.retryable
        return {"error": payload}


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    """State changed underneath the caller; retrying with fresh state may succeed."""

    status_code = 409
    code = "conflict"
    retryable = True


class BusinessRuleViolation(AppError):
    status_code = 400
    code = "business_rule_violation"


class InfrastructureError(AppError):
    status_code = 503
    code = "infrastructure_error"
    retryable = True


# ── Specific failures ──────────────────────────────────────────────────────────


class InvalidDateRange(ValidationError):
    code = "invalid_date_range"


class NoRoomAvailable(ConflictError):
    code = "no_room_available"


class AvailabilityConflict(ConflictError):
    code = "availability_conflict"


class InvalidCoupon(BusinessRuleViolation):
    code = "invalid_coupon"


class InvalidTransition(BusinessRuleViolation):
    code = "invalid_transition"


class RefundExceedsBalance(BusinessRuleViolation):
    code = "refund_exceeds_balance"
