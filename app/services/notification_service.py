from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from app.core.config.base import split_csv
from app.core.exceptions import ValidationError
from app.core.logger import logger_manager
from app.utils.currency import format_currency, to_decimal
from app.utils.email import EmailService, get_email_service


@dataclass(frozen=True)
class EmailConfig:
    """Sender and recipient addresses, resolved once per process."""

    from_address: str
    donor_from_address: str
    admin_recipients: List[str] = field(default_factory=list)
    is_sandbox: bool = True
    environment: str = "development"

    @classmethod
    def from_settings(cls, settings) -> "EmailConfig":
        email = settings.email
        is_sandbox = email.EMAIL_SANDBOX
        if is_sandbox is None:
            is_sandbox = not settings.app.is_production

        if is_sandbox:
            # 沙盒账号只能使用 Resend 提供的发件地址
            from_address = f"{email.EMAIL_FROM_NAME} <{email.EMAIL_SANDBOX_FROM_ADDRESS}>"
            donor_from_address = (
                f"{email.EMAIL_DONOR_FROM_NAME} <{email.EMAIL_SANDBOX_FROM_ADDRESS}>"
            )
        else:
            address = f"{email.EMAIL_FROM_LOCAL_PART}@{email.EMAIL_SENDER_DOMAIN}"
            from_address = f"{email.EMAIL_FROM_NAME} <{address}>"
            donor_from_address = f"{email.EMAIL_DONOR_FROM_NAME} <{address}>"

        return cls(
            from_address=from_address,
            donor_from_address=donor_from_address,
            admin_recipients=split_csv(email.EMAIL_ADMIN_RECIPIENTS),
            is_sandbox=is_sandbox,
            environment=settings.app.ENV,
        )


def _now_text() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _display_time(value: Any) -> str:
    if not value:
        return _now_text()
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S UTC")
    return str(value)


class NotificationService:
    """Transactional mail for donors and site administrators."""

    def __init__(
        self,
        email_service: EmailService,
        config: EmailConfig,
        organization: Optional[Dict[str, str]] = None,
    ):
        self.email_service = email_service
        self.config = config
        self.organization = organization or {}
        self.logger = logger_manager.get_logger(__name__)

    @staticmethod
    def _require(payload: Mapping[str, Any], required: Sequence[str], kind: str) -> None:
        missing = [
            name
            for name in required
            if payload.get(name) is None or str(payload.get(name)).strip() == ""
        ]
        if missing:
            raise ValidationError(
                f"Missing required fields for {kind} notification: {', '.join(missing)}",
                errors=[f"{name} is required" for name in missing],
            )

    @staticmethod
    def _require_amount(payload: Mapping[str, Any], kind: str, name: str = "amount") -> None:
        try:
            to_decimal(payload[name])
        except ValueError:
            raise ValidationError(
                f"Invalid {name} for {kind} notification",
                errors=[f"{name} must be a number"],
            )

    @staticmethod
    def _join(value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return ", ".join(str(item) for item in value)
        return value

    @staticmethod
    def _address(payload: Mapping[str, Any]) -> Optional[str]:
        parts = [payload.get(key) for key in ("address", "city", "province", "postalCode")]
        parts = [str(part).strip() for part in parts if part not in (None, "")]
        return ", ".join(parts) or None

    def _subject(self, subject: str) -> str:
        return f"[TEST] {subject}" if self.config.is_sandbox else subject

    def _base_vars(self, heading: str, **extra) -> Dict[str, Any]:
        variables = {
            "heading": heading,
            "sandbox": self.config.is_sandbox,
            "organization": self.organization,
        }
        variables.update(extra)
        return variables

    async def _notify_admins(
        self,
        subject: str,
        heading: str,
        fields: List[Tuple[str, Any]],
        submitted_at: Any = None,
        reply_to: Optional[str] = None,
        **extra,
    ) -> Dict[str, Any]:
        rows = [(label, value) for label, value in fields if value not in (None, "")]
        return await self.email_service.send_email(
            subject=self._subject(subject),
            recipients=self.config.admin_recipients,
            template="admin_notification",
            sender=self.config.from_address,
            reply_to=reply_to,
            **self._base_vars(
                heading,
                fields=rows,
                submitted_at=_display_time(submitted_at),
                reply_address=reply_to,
                **extra,
            ),
        )

    async def send_contact_notification(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        self._require(payload, ("name", "email", "subject"), "contact")
        return await self._notify_admins(
            subject=f"🔔 New Contact Form Submission: {payload['subject']}",
            heading="🔔 New Contact Form Submission",
            fields=[
                ("Name", payload["name"]),
                ("Email", payload["email"]),
                ("Subject", payload["subject"]),
            ],
            submitted_at=payload.get("submittedAt"),
            reply_to=payload["email"],
            reply_name=payload["name"],
            reply_subject=payload["subject"],
            message=payload.get("message"),
            section_title="Contact Details",
        )

    async def send_donation_notification(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        self._require(payload, ("donorEmail", "amount", "projectTitle"), "donation")
        self._require_amount(payload, "donation")
        anonymous = payload.get("anonymous") is True
        return await self._notify_admins(
            subject=f"💸 New Donation Received: {payload['projectTitle']}",
            heading="💸 New Donation Received",
            fields=[
                ("Amount", format_currency(payload["amount"], payload.get("currency") or "usd")),
                ("Project", payload["projectTitle"]),
                ("Donor", "Anonymous" if anonymous else payload.get("donorName")),
                ("Donor Email", payload["donorEmail"]),
                ("Payment ID", payload.get("paymentIntentId")),
            ],
            submitted_at=payload.get("submittedAt"),
            message=payload.get("message"),
            message_title="Donor Message",
            section_title="Donation Details",
        )

    async def send_donation_confirmation(
        self,
        payload: Mapping[str, Any],
        receipt_path: Optional[Union[str, Path]] = None,
    ) -> Dict[str, Any]:
        """Thank the donor; the PDF receipt is attached when ``receipt_path`` exists."""
        self._require(payload, ("donorEmail", "amount", "projectTitle"), "donation confirmation")
        self._require_amount(payload, "donation confirmation")

        donor_name = payload.get("donorName")
        anonymous = payload.get("anonymous") is True
        salutation = "Generous Donor" if anonymous or not donor_name or donor_name == "Anonymous" else donor_name

        attachments = self._receipt_attachment(receipt_path)
        return await self.email_service.send_email(
            subject=self._subject(f"🙏 Thank you for your donation to {payload['projectTitle']}"),
            recipients=payload["donorEmail"],
            template="donation_confirmation",
            sender=self.config.donor_from_address,
            attachments=attachments,
            **self._base_vars(
                "🙏 Thank You for Your Donation!",
                salutation=salutation,
                amount=format_currency(payload["amount"], payload.get("currency") or "usd"),
                project_title=payload["projectTitle"],
                payment_id=payload.get("paymentIntentId"),
                message=payload.get("message"),
                submitted_at=_display_time(payload.get("submittedAt")),
                has_receipt=bool(attachments),
            ),
        )

    async def send_refund_confirmation(
        self,
        payload: Mapping[str, Any],
        receipt_path: Optional[Union[str, Path]] = None,
    ) -> Dict[str, Any]:
        self._require(payload, ("donorEmail", "refundId", "amount"), "refund")
        self._require_amount(payload, "refund")
        if payload.get("originalAmount") is not None:
            self._require_amount(payload, "refund", name="originalAmount")
        currency = payload.get("currency") or "usd"
        original_amount = payload.get("originalAmount")

        attachments = self._receipt_attachment(receipt_path)
        return await self.email_service.send_email(
            subject=self._subject("↩️ Your donation refund has been processed"),
            recipients=payload["donorEmail"],
            template="refund_confirmation",
            sender=self.config.donor_from_address,
            attachments=attachments,
            **self._base_vars(
                "Refund Processed",
                accent="#e63946",
                amount=format_currency(payload["amount"], currency),
                original_amount=format_currency(original_amount, currency) if original_amount is not None else None,
                project_title=payload.get("projectTitle"),
                reason=payload.get("reason") or "Not specified",
                refund_id=payload["refundId"],
                payment_id=payload.get("paymentIntentId"),
                submitted_at=_display_time(payload.get("submittedAt")),
                has_receipt=bool(attachments),
            ),
        )

    async def send_volunteer_notification(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        self._require(payload, ("firstName", "lastName", "email"), "volunteer")
        full_name = f"{payload['firstName']} {payload['lastName']}"
        emergency = payload.get("emergencyContact")
        if emergency and payload.get("emergencyPhone"):
            emergency = f"{emergency} ({payload['emergencyPhone']})"
        return await self._notify_admins(
            subject="🙋 New Volunteer Application",
            heading="🙋 New Volunteer Application",
            fields=[
                ("Name", full_name),
                ("Email", payload["email"]),
                ("Phone", payload.get("phone")),
                ("Address", self._address(payload)),
                ("Availability", payload.get("availability")),
                ("Volunteer Roles", self._join(payload.get("volunteerRoles"))),
                ("Experience", payload.get("experience")),
                ("Skills", self._join(payload.get("skills"))),
                ("Emergency Contact", emergency or payload.get("emergencyPhone")),
            ],
            submitted_at=payload.get("submittedAt"),
            reply_to=payload["email"],
            reply_name=full_name,
            reply_subject="Your volunteer application",
            message=payload.get("motivation"),
            message_title="Motivation",
            section_title="Volunteer Details",
        )

    async def send_enrollment_notification(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        self._require(payload, ("firstName", "lastName", "email", "courseId"), "enrollment")
        full_name = f"{payload['firstName']} {payload['lastName']}"
        return await self._notify_admins(
            subject="📚 New Course Enrollment",
            heading="📚 New Course Enrollment",
            fields=[
                ("Course ID", payload["courseId"]),
                ("Name", full_name),
                ("Email", payload["email"]),
                ("Phone", payload.get("phone")),
                ("Address", self._address(payload)),
            ],
            submitted_at=payload.get("submittedAt"),
            reply_to=payload["email"],
            reply_name=full_name,
            reply_subject="Your course enrollment",
            message=payload.get("motivation"),
            message_title="Motivation",
            section_title="Enrollment Details",
        )

    async def send_expression_notification(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        self._require(payload, ("communityName", "coordinatorName", "email"), "expression of interest")
        return await self._notify_admins(
            subject="🏠 New Home Model Expression of Interest",
            heading="🏠 New Expression of Interest",
            fields=[
                ("Community", payload["communityName"]),
                ("Province", payload.get("province")),
                ("Coordinator", payload["coordinatorName"]),
                ("Email", payload["email"]),
                ("Phone", payload.get("phone")),
                ("Home Model", payload.get("homeModelName") or payload.get("homeModelId")),
                ("Program Type", payload.get("programType")),
                ("Homes Per Year", payload.get("homesPerYear")),
            ],
            submitted_at=payload.get("submittedAt"),
            reply_to=payload["email"],
            reply_name=payload["coordinatorName"],
            reply_subject="Your expression of interest",
            message=payload.get("comments"),
            message_title="Comments",
            section_title="Community Details",
        )

    async def send_newsletter_notification(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        self._require(payload, ("email",), "newsletter")
        return await self._notify_admins(
            subject="📧 New Newsletter Subscription",
            heading="📧 New Newsletter Subscription",
            fields=[
                ("Email", payload["email"]),
                ("Source", payload.get("source")),
                ("Total Subscribers", payload.get("totalSubscribers")),
            ],
            submitted_at=payload.get("submittedAt"),
            section_title="Subscriber",
        )

    async def send_test_email(self, recipient: Optional[str]) -> Dict[str, Any]:
        self._require({"recipient": recipient}, ("recipient",), "test")
        return await self.email_service.send_email(
            subject=self._subject("🧪 Email Configuration Test"),
            recipients=recipient,
            template="test_email",
            sender=self.config.from_address,
            **self._base_vars(
                "✅ Email Test Successful!",
                environment=self.config.environment,
                from_address=self.config.from_address,
                submitted_at=_now_text(),
            ),
        )

    def _receipt_attachment(self, receipt_path: Optional[Union[str, Path]]) -> List[Dict[str, Any]]:
        if not receipt_path:
            return []
        path = Path(receipt_path)
        try:
            content = path.read_bytes()
        except OSError as e:
            # 回执缺失时照常发送邮件, 只是不带附件
            self.logger.warning(f"⚠️ Receipt {path} could not be attached: {e}")
            return []
        return [{"filename": path.name, "content": content, "content_type": "application/pdf"}]


_notification_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    global _notification_service
    if _notification_service is None:
        from app.core.config.settings import settings

        org = settings.organization
        _notification_service = NotificationService(
            email_service=get_email_service(),
            config=EmailConfig.from_settings(settings),
            organization={
                "name": org.ORG_NAME,
                "contact_email": org.ORG_CONTACT_EMAIL,
                "website": org.ORG_WEBSITE,
            },
        )
    return _notification_service
