"""
Input validation for donation, refund and form payloads.

Every ``validate_*`` function is pure: it never raises and reports problems
through a :class:`ValidationResult`. Callers decide whether to turn an invalid
result into :class:`app.core.exceptions.ValidationError`.
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from email_validator import EmailNotValidError, validate_email as _check_email

from app.core.config.settings import settings
from app.models.payment_model import RefundReason
from app.utils.currency import format_currency, to_decimal


FRIENDLY_PROJECT_ID_PATTERN = re.compile(r"^[a-z0-9-]{3,64}$", re.IGNORECASE)
UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
# Unicode letters, whitespace, hyphen, apostrophe, period
NAME_PATTERN = re.compile(r"^(?:[^\W\d_]|[\s\-'.])+$")
PAYMENT_INTENT_ID_PATTERN = re.compile(r"^pi_[A-Za-z0-9]+$")

ANONYMOUS_DONOR_NAME = "Anonymous"
GENERAL_PROJECT_ID = "general"


@dataclass
class ValidationResult:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)

    def add(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        for message in other.errors:
            self.add(message)
        return self

    @classmethod
    def invalid(cls, message: str) -> "ValidationResult":
        return cls(is_valid=False, errors=[message])


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_valid_email(email: Any) -> bool:
    if not isinstance(email, str) or not email:
        return False
    if len(email) > settings.validation.MAX_EMAIL_LENGTH:
        return False
    try:
        _check_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def validate_email(email: Any, label: str = "Email") -> ValidationResult:
    if _is_blank(email):
        return ValidationResult.invalid(f"{label} is required")
    if not is_valid_email(email):
        return ValidationResult.invalid("Invalid email format")
    return ValidationResult()


def parse_amount(amount: Any) -> Optional[Decimal]:
    """Return the amount as a Decimal, or None when it is not a number."""
    if isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)):
        return None
    try:
        return to_decimal(amount)
    except ValueError:
        return None


def validate_amount(amount: Any, label: str = "Amount") -> ValidationResult:
    minimum = settings.validation.MIN_DONATION_AMOUNT
    maximum = settings.validation.MAX_DONATION_AMOUNT

    if amount is None or amount == "":
        return ValidationResult.invalid(f"{label} is required")

    value = parse_amount(amount)
    if value is None or not (minimum <= value <= maximum):
        return ValidationResult.invalid(
            f"{label} must be between {format_currency(minimum)} and {format_currency(maximum)}"
        )
    return ValidationResult()


def is_valid_name(name: Any) -> bool:
    if not isinstance(name, str):
        return False
    trimmed = name.strip()
    return (
        0 < len(trimmed) <= settings.validation.MAX_NAME_LENGTH
        and NAME_PATTERN.match(trimmed) is not None
    )


def validate_name(name: Any, anonymous: bool = False) -> ValidationResult:
    if anonymous:
        # Anonymous donors may leave the name empty or send the placeholder
        if _is_blank(name) or name == ANONYMOUS_DONOR_NAME:
            return ValidationResult()
        if not is_valid_name(name):
            return ValidationResult.invalid("Invalid donor name format")
        return ValidationResult()

    if _is_blank(name):
        return ValidationResult.invalid(
            "Donor name is required for non-anonymous donations"
        )
    if not is_valid_name(name):
        return ValidationResult.invalid("Invalid donor name format")
    return ValidationResult()


def validate_message(message: Any) -> ValidationResult:
    limit = settings.validation.MAX_MESSAGE_LENGTH
    if message is None or message == "":
        return ValidationResult()
    if not isinstance(message, str) or len(message) > limit:
        return ValidationResult.invalid(f"Message must be less than {limit} characters")
    return ValidationResult()


def is_valid_project_id(project_id: Any) -> bool:
    if not isinstance(project_id, str):
        return False
    normalized = project_id.strip()
    if normalized.lower() == GENERAL_PROJECT_ID:
        return True
    if UUID_PATTERN.match(normalized):
        return True
    return FRIENDLY_PROJECT_ID_PATTERN.match(normalized) is not None


def validate_project_id(project_id: Any) -> ValidationResult:
    if _is_blank(project_id):
        return ValidationResult.invalid("Project ID is required")
    if not is_valid_project_id(project_id):
        return ValidationResult.invalid("Invalid project ID format")
    return ValidationResult()


def validate_anonymous(anonymous: Any) -> ValidationResult:
    if anonymous is None or isinstance(anonymous, bool):
        return ValidationResult()
    return ValidationResult.invalid("Invalid anonymous flag")


def validate_payment_intent_id(payment_intent_id: Any) -> ValidationResult:
    if _is_blank(payment_intent_id):
        return ValidationResult.invalid("Payment intent ID is required")
    if not isinstance(payment_intent_id, str) or not PAYMENT_INTENT_ID_PATTERN.match(
        payment_intent_id
    ):
        return ValidationResult.invalid("Invalid payment intent ID format")
    return ValidationResult()


def validate_donation_data(donation: Mapping[str, Any]) -> ValidationResult:
    """Check a normalized donation payload (camelCase keys)."""
    result = ValidationResult()
    anonymous = donation.get("anonymous")

    result.merge(validate_amount(donation.get("amount")))
    result.merge(validate_project_id(donation.get("projectId")))
    result.merge(validate_email(donation.get("donorEmail"), label="Donor email"))
    result.merge(validate_name(donation.get("donorName"), anonymous=anonymous is True))
    result.merge(validate_message(donation.get("message")))
    result.merge(validate_anonymous(anonymous))
    return result


def validate_refund_data(refund: Mapping[str, Any]) -> ValidationResult:
    result = ValidationResult()
    result.merge(validate_payment_intent_id(refund.get("paymentIntentId")))

    amount = refund.get("amount")
    if amount is not None:
        result.merge(validate_amount(amount, label="Refund amount"))

    reason = refund.get("reason")
    if reason is not None and reason not in RefundReason.values():
        result.add("Invalid refund reason")
    return result


def _first_present(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None and value != "":
            return value
    return None


def _coerce_bool(value: Any) -> Any:
    if value is None:
        return False
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered in ("false", ""):
            return False
    return value


def _coerce_amount(value: Any) -> Any:
    if isinstance(value, str):
        cleaned = re.sub(r"[^0-9.\-]", "", value)
        if not cleaned:
            return value
        try:
            return to_decimal(cleaned)
        except ValueError:
            return value
    return value


def normalize_donation_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Fold the field spellings used by the various donation forms into one shape.

    Accepts snake_case and legacy aliases, string amounts such as ``"$50.00"``
    and ``"true"``/``"false"`` strings for the anonymous flag. Values that
    cannot be coerced are passed through untouched so validation can reject
    them with a precise message.
    """
    payload = payload or {}

    project_id = _first_present(
        payload, "projectId", "project_id", "projectSlug", "project_slug"
    )
    if isinstance(project_id, str):
        project_id = project_id.strip()

    donor_name = _first_present(payload, "donorName", "donor_name")
    if donor_name is None:
        parts = [payload.get("firstName"), payload.get("lastName")]
        joined = " ".join(str(p).strip() for p in parts if p and str(p).strip())
        donor_name = joined or None
    if isinstance(donor_name, str):
        donor_name = donor_name.strip()

    anonymous = _coerce_bool(payload.get("anonymous"))
    if anonymous is True and _is_blank(donor_name):
        donor_name = ANONYMOUS_DONOR_NAME

    donor_email = _first_present(payload, "donorEmail", "donor_email", "email")
    if isinstance(donor_email, str):
        donor_email = donor_email.strip().lower()

    message = _first_present(payload, "message", "note", "comment")
    if message is None:
        message = ""
    elif isinstance(message, str):
        message = message.strip()

    project_title = _first_present(payload, "projectTitle", "project_title")
    if isinstance(project_title, str):
        project_title = project_title.strip()

    return {
        "amount": _coerce_amount(payload.get("amount")),
        "projectId": project_id,
        "projectTitle": project_title or settings.organization.DEFAULT_PROJECT_TITLE,
        "donorName": donor_name or "",
        "donorEmail": donor_email,
        "anonymous": anonymous,
        "message": message,
    }
