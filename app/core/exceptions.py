from typing import Any, List, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        details: Optional[List[Any]] = None,
    ):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    """Client-fixable input problems. ``details`` lists one message per field."""

    status_code = 400
    default_message = "Validation failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        super().__init__(message, details=list(errors) if errors else None)

    @property
    def errors(self) -> List[str]:
        return list(self.details or [])


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class SignatureError(AppError):
    status_code = 400
    default_message = "Invalid webhook signature"


class GatewayError(AppError):
    """Payment provider failure. Infrastructure errors keep a generic message."""

    status_code = 502
    default_message = "Payment processing failed"


class CardError(GatewayError):
    """The card was declined; the provider's message is safe to show the donor."""

    status_code = 402
    default_message = "Card error"


class DeliveryError(AppError):
    """The mail provider refused or never acknowledged a message."""

    status_code = 502
    default_message = "Email delivery failed"


class ReceiptError(AppError):
    status_code = 500
    default_message = "Failed to generate receipt"


class DuplicateSubscriberError(AppError):
    status_code = 409
    default_message = "Email is already subscribed"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class RateLimitExceeded(AppError):
    status_code = 429
    default_message = "Too many requests from this IP, please try again later."

    def __init__(self, message: Optional[str] = None, retry_after: int = 0):
        super().__init__(message)
        self.retry_after = max(int(retry_after), 0)

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retryAfter"] = self.retry_after
        return body
