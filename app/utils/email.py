import asyncio
import base64
from abc import ABC, abstractmethod
from asyncio import TimeoutError as AsyncioTimeoutError
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from app.core.exceptions import DeliveryError
from app.core.logger import logger_manager


TEMPLATE_ROOT = Path(__file__).resolve().parent.parent / "templates"


class EmailSendError(Exception):
    """Raised by backends. ``retryable`` marks transient provider failures."""

    def __init__(self, message: str, retryable: bool = False, status_code: Optional[int] = None):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class EmailMessage:
    """Email message builder class."""

    def __init__(self, subject: str, recipients: Union[str, List[str]], sender: str):
        self.subject = subject
        self.recipients = [recipients] if isinstance(recipients, str) else list(recipients)
        self.sender = sender
        self.html_content: Optional[str] = None
        self.text_content: Optional[str] = None
        self.reply_to: Optional[str] = None
        self.attachments: List[Dict[str, Any]] = []

    def set_html_content(self, content: str) -> "EmailMessage":
        self.html_content = content
        return self

    def set_text_content(self, content: str) -> "EmailMessage":
        self.text_content = content
        return self

    def set_reply_to(self, address: Optional[str]) -> "EmailMessage":
        self.reply_to = address
        return self

    def add_attachment(
        self,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> "EmailMessage":
        self.attachments.append(
            {"filename": filename, "content": content, "content_type": content_type}
        )
        return self

    def build(self) -> Dict[str, Any]:
        """Build the JSON body accepted by the Resend send endpoint."""
        payload: Dict[str, Any] = {
            "from": self.sender,
            "to": self.recipients,
            "subject": self.subject,
        }
        if self.html_content:
            payload["html"] = self.html_content
        if self.text_content:
            payload["text"] = self.text_content
        if self.reply_to:
            payload["reply_to"] = self.reply_to
        if self.attachments:
            payload["attachments"] = [
                {
                    "filename": attachment["filename"],
                    "content": base64.b64encode(attachment["content"]).decode("ascii"),
                    "content_type": attachment["content_type"],
                }
                for attachment in self.attachments
            ]
        return payload


class EmailBackend(ABC):
    """Abstract base class for email backends."""

    @abstractmethod
    async def send_email(self, message: EmailMessage) -> Dict[str, Any]:
        """Deliver ``message`` and return the provider's response body."""

    @abstractmethod
    def test_connection(self) -> bool:
        pass


class ResendEmailBackend(EmailBackend):
    """Resend REST API backend."""

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 15,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.transport = transport
        self.logger = logger_manager.get_logger(__name__)

    async def send_email(self, message: EmailMessage) -> Dict[str, Any]:
        if not self.api_key:
            raise EmailSendError("RESEND_API_KEY is not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, json=message.build(), headers=headers)
        except httpx.TimeoutException as e:
            raise EmailSendError(f"Mail API timed out: {e}", retryable=True)
        except httpx.HTTPError as e:
            raise EmailSendError(f"Mail API unreachable: {e}", retryable=True)

        if response.status_code >= 400:
            try:
                detail = response.json().get("message", response.text)
            except ValueError:
                detail = response.text
            retryable = response.status_code == 429 or response.status_code >= 500
            raise EmailSendError(
                f"Mail API rejected message ({response.status_code}): {detail}",
                retryable=retryable,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            return {}

    def test_connection(self) -> bool:
        return bool(self.api_key)


class EmailTemplateLoader:
    """Email template loader using Jinja2 with caching."""

    def __init__(self, template_dir: Union[str, Path] = TEMPLATE_ROOT / "email"):
        self.template_dir = Path(template_dir)
        self.logger = logger_manager.get_logger(__name__)
        self._template_cache: Dict[str, Any] = {}

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render_template(self, template_file: str, **kwargs) -> str:
        """Render ``template_file`` (name with extension) using the cache."""
        try:
            template = self._template_cache.get(template_file)
            if template is None:
                template = self.env.get_template(template_file)
                self._template_cache[template_file] = template
            return template.render(**kwargs)

        except TemplateNotFound:
            self.logger.error(
                f"Template '{template_file}' not found in '{self.template_dir}'"
            )
            raise FileNotFoundError(
                f"Template '{template_file}' not found in '{self.template_dir}'"
            )

    def template_exists(self, template_name: str) -> bool:
        return (self.template_dir / f"{template_name}.html").exists()

    def list_templates(self) -> List[str]:
        return sorted({f.stem for f in self.template_dir.glob("*.html")})

    def clear_cache(self) -> None:
        self._template_cache.clear()


class EmailService:
    """Renders templates and delivers them with timeout and retries."""

    def __init__(
        self,
        backend: EmailBackend,
        template_loader: Optional[EmailTemplateLoader] = None,
        timeout: float = 15,
        retries: int = 3,
        retry_delay: float = 1.0,
    ):
        self.backend = backend
        self.template_loader = template_loader or EmailTemplateLoader()
        self.timeout = timeout
        self.retries = retries
        self.retry_delay = retry_delay
        self.logger = logger_manager.get_logger(__name__)

    def render(self, template: str, **template_vars) -> Dict[str, str]:
        """Render the ``.html`` and ``.txt`` bodies of ``template``."""
        template_vars.setdefault("year", str(datetime.now().year))
        return {
            "html": self.template_loader.render_template(f"{template}.html", **template_vars),
            "text": self.template_loader.render_template(f"{template}.txt", **template_vars),
        }

    async def send_email(
        self,
        subject: str,
        recipients: Union[str, List[str]],
        template: str,
        sender: str,
        reply_to: Optional[str] = None,
        attachments: Optional[List[Dict[str, Any]]] = None,
        **template_vars,
    ) -> Dict[str, Any]:
        """Send email with retry mechanism and timeout; raises DeliveryError."""
        if not recipients:
            raise DeliveryError("No recipients given")
        if not subject.strip():
            raise DeliveryError("Email subject cannot be empty")

        try:
            bodies = self.render(template, **template_vars)
        except FileNotFoundError as e:
            raise DeliveryError(str(e))

        email_message = (
            EmailMessage(subject, recipients, sender)
            .set_html_content(bodies["html"])
            .set_text_content(bodies["text"])
            .set_reply_to(reply_to)
        )
        for attachment in attachments or []:
            email_message.add_attachment(
                filename=attachment["filename"],
                content=attachment["content"],
                content_type=attachment.get("content_type", "application/octet-stream"),
            )

        last_error = "unknown error"
        # Retry mechanism with exponential backoff
        for attempt in range(self.retries):
            try:
                result = await asyncio.wait_for(
                    self.backend.send_email(email_message), timeout=self.timeout
                )
                self.logger.info(
                    f"📧 Email '{template}' sent to {', '.join(email_message.recipients)}"
                )
                return result

            except AsyncioTimeoutError:
                last_error = "timed out"
                self.logger.warning(
                    f"Timeout sending '{template}', attempt {attempt + 1}/{self.retries}"
                )
            except EmailSendError as e:
                last_error = str(e)
                self.logger.error(
                    f"Error sending '{template}', attempt {attempt + 1}/{self.retries}: {e}"
                )
                if not e.retryable:
                    break

            if attempt < self.retries - 1:
                await asyncio.sleep(self.retry_delay * (2**attempt))

        raise DeliveryError(f"Failed to send email: {last_error}")

    def test_connection(self) -> bool:
        return self.backend.test_connection()

    def get_available_templates(self) -> List[str]:
        return self.template_loader.list_templates()


# Global email service instance
_email_service_instance = None


def get_email_service() -> EmailService:
    """Get the global email service instance."""
    global _email_service_instance
    if _email_service_instance is None:
        from app.core.config.settings import settings

        config = settings.email
        api_key = config.RESEND_API_KEY.get_secret_value() if config.RESEND_API_KEY else None
        _email_service_instance = EmailService(
            backend=ResendEmailBackend(
                api_key=api_key,
                api_url=config.RESEND_API_URL,
                timeout=config.EMAIL_TIMEOUT,
            ),
            template_loader=EmailTemplateLoader(config.EMAIL_TEMPLATE_DIR or TEMPLATE_ROOT / "email"),
            timeout=config.EMAIL_TIMEOUT,
            retries=config.EMAIL_MAX_RETRIES,
            retry_delay=config.EMAIL_RETRY_DELAY,
        )
    return _email_service_instance
