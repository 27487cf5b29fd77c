import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape, TemplateNotFound

from app.core.exceptions import ReceiptError, ValidationError
from app.core.logger import logger_manager
from app.models.receipt_model import DonationReceiptData, RefundReceiptData
from app.utils.currency import format_currency


TEMPLATE_ROOT = Path(__file__).resolve().parent.parent / "templates"

RECEIPT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

REFUND_REASON_LABELS = {
    "requested_by_customer": "Requested by donor",
    "duplicate": "Duplicate payment",
    "fraudulent": "Fraudulent payment",
}


def _safe_id(value: str) -> str:
    if not isinstance(value, str) or not RECEIPT_ID_PATTERN.match(value):
        raise ValidationError("Invalid receipt identifier", errors=["Invalid receipt identifier"])
    return value


def receipt_filename(payment_intent_id: str) -> str:
    """The single naming rule shared by receipt writes and lookups."""
    return f"receipt-{_safe_id(payment_intent_id)}.pdf"


def refund_receipt_filename(refund_id: str) -> str:
    return f"refund-{_safe_id(refund_id)}.pdf"


class ReceiptGenerator:
    """Donation and refund receipts rendered with Jinja2 and WeasyPrint."""

    def __init__(
        self,
        upload_path: Union[str, Path],
        template_dir: Union[str, Path] = TEMPLATE_ROOT / "receipt",
        organization: Optional[Dict[str, str]] = None,
        max_file_size: Optional[int] = None,
    ):
        self.upload_path = Path(upload_path)
        self.template_dir = Path(template_dir)
        self.organization = organization or {}
        self.max_file_size = max_file_size
        self.logger = logger_manager.get_logger(__name__)

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["currency"] = format_currency

    def ensure_upload_directory(self) -> Path:
        self.upload_path.mkdir(parents=True, exist_ok=True)
        return self.upload_path

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def get_receipt_path(self, payment_intent_id: str) -> Path:
        return self.upload_path / receipt_filename(payment_intent_id)

    def get_refund_receipt_path(self, refund_id: str) -> Path:
        return self.upload_path / refund_receipt_filename(refund_id)

    def receipt_exists(self, payment_intent_id: str) -> bool:
        return self.get_receipt_path(payment_intent_id).is_file()

    def refund_receipt_exists(self, refund_id: str) -> bool:
        return self.get_refund_receipt_path(refund_id).is_file()

    def delete_receipt(self, path: Union[str, Path]) -> bool:
        path = Path(path)
        if path.resolve().parent != self.upload_path.resolve():
            raise ValidationError("Receipt path is outside the upload directory")
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        self.logger.info(f"🗑️ Receipt deleted: {path}")
        return True

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            template = self.env.get_template(f"{template_name}.html")
        except TemplateNotFound:
            self.logger.error(
                f"Template '{template_name}' not found in '{self.template_dir}'"
            )
            raise ReceiptError(f"Receipt template '{template_name}' not found")
        context.setdefault("organization", self.organization)
        context.setdefault("generated_at", datetime.now(timezone.utc))
        return template.render(**context)

    def render_donation_html(self, data: DonationReceiptData) -> str:
        return self._render(
            "donation_receipt",
            {
                "receipt": data,
                "donor_name": data.display_name,
                "payment_method": data.payment_method or "Credit Card",
                "project_category": data.project_category
                or self.organization.get("default_category", "Community"),
                "project_location": data.project_location
                or self.organization.get("default_location", "Canada"),
            },
        )

    def render_refund_html(self, data: RefundReceiptData) -> str:
        return self._render(
            "refund_receipt",
            {
                "refund": data,
                "reason_label": REFUND_REASON_LABELS.get(data.reason or "", data.reason or "Not specified"),
            },
        )

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def _write_pdf(self, html_content: str, output_path: Path) -> None:
        """Render HTML to a PDF file. Heavy import kept local to this call."""
        import weasyprint
        from weasyprint.text.fonts import FontConfiguration

        html_doc = weasyprint.HTML(
            string=html_content, base_url=str(self.template_dir), encoding="utf-8"
        )
        html_doc.write_pdf(
            str(output_path),
            font_config=FontConfiguration(),
            presentational_hints=True,
        )

    def _persist(self, html_content: str, target: Path) -> Path:
        self.ensure_upload_directory()
        fd, tmp_name = tempfile.mkstemp(
            dir=str(self.upload_path), prefix=f".{target.stem}.", suffix=".tmp"
        )
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            self._write_pdf(html_content, tmp_path)
            size = tmp_path.stat().st_size
            if self.max_file_size and size > self.max_file_size:
                raise ReceiptError(
                    f"Receipt is {size} bytes, over the {self.max_file_size} byte limit"
                )
            os.replace(tmp_path, target)
        except ReceiptError:
            raise
        except Exception as e:
            self.logger.error(f"❌ Error writing receipt {target.name}: {e}")
            raise ReceiptError(f"Failed to generate receipt: {e}")
        finally:
            tmp_path.unlink(missing_ok=True)
        return target

    def generate_donation_receipt(self, data: DonationReceiptData) -> Path:
        """Write the receipt for a payment; an existing receipt is returned unchanged."""
        target = self.get_receipt_path(data.payment_intent_id)
        if target.is_file():
            self.logger.info(f"Receipt already exists for {data.payment_intent_id}")
            return target

        self._persist(self.render_donation_html(data), target)
        self.logger.info(f"🧾 Receipt generated: {target}")
        return target

    def generate_refund_receipt(self, data: RefundReceiptData) -> Path:
        target = self.get_refund_receipt_path(data.refund_id)
        if target.is_file():
            self.logger.info(f"Refund receipt already exists for {data.refund_id}")
            return target

        self._persist(self.render_refund_html(data), target)
        self.logger.info(f"🧾 Refund receipt generated: {target}")
        return target


# Global instance
_receipt_generator = None


def get_receipt_generator() -> ReceiptGenerator:
    """Get the global receipt generator instance."""
    global _receipt_generator
    if _receipt_generator is None:
        from app.core.config.settings import settings

        org = settings.organization
        _receipt_generator = ReceiptGenerator(
            upload_path=settings.files.UPLOAD_PATH,
            template_dir=settings.files.RECEIPT_TEMPLATE_DIR or TEMPLATE_ROOT / "receipt",
            organization={
                "name": org.ORG_NAME,
                "tagline": org.ORG_TAGLINE,
                "contact_email": org.ORG_CONTACT_EMAIL,
                "website": org.ORG_WEBSITE,
                "charity_statement": org.ORG_CHARITY_STATEMENT,
                "default_category": org.DEFAULT_PROJECT_CATEGORY,
                "default_location": org.DEFAULT_PROJECT_LOCATION,
            },
            max_file_size=settings.files.UPLOAD_MAX_FILE_SIZE,
        )
    return _receipt_generator
