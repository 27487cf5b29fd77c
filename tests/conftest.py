"""
Pytest configuration and fixtures for the test suite.
"""
import hashlib
import hmac
import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import httpx
import pytest

# Set test environment before importing app modules
_TMP_ROOT = Path(tempfile.mkdtemp(prefix="donation-tests-"))

os.environ["ENV"] = "test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["RESEND_API_KEY"] = "re_test_key"
os.environ["EMAIL_ADMIN_RECIPIENTS"] = "admin@example.com"
os.environ["EMAIL_RETRY_DELAY"] = "0.01"
os.environ["UPLOAD_PATH"] = str(_TMP_ROOT / "uploads")
os.environ["NEWSLETTER_SUBSCRIBERS_FILE"] = str(_TMP_ROOT / "subscribers.json")
os.environ["RATE_LIMIT_MAX_REQUESTS"] = "10000"
os.environ["PAYMENT_RATE_LIMIT"] = "1000"
os.environ["CONTACT_RATE_LIMIT"] = "1000"
os.environ["SPEED_LIMIT_DELAY_AFTER"] = "100000"
os.environ["SPEED_LIMIT_DELAY_MS"] = "0"
os.environ["LOG_TO_FILE"] = "false"
os.environ.pop("ADMIN_API_KEY", None)

import stripe  # noqa: E402

WEBHOOK_SECRET = "whsec_test_secret"

ORGANIZATION = {
    "name": "Metrax",
    "tagline": "Supporting Indigenous Communities",
    "contact_email": "info@example.org",
    "website": "https://example.org",
    "charity_statement": "Registered charity.",
    "default_category": "Community",
    "default_location": "Canada",
}


def make_intent(**overrides) -> stripe.PaymentIntent:
    """A PaymentIntent as the SDK would return it."""
    data: Dict[str, Any] = {
        "id": "pi_3TestIntent123",
        "object": "payment_intent",
        "amount": 5000,
        "amount_received": 5000,
        "currency": "usd",
        "status": "succeeded",
        "client_secret": "pi_3TestIntent123_secret_abc",
        "created": 1700000000,
        "metadata": {
            "projectId": "general",
            "projectTitle": "Community Project",
            "donorName": "Jane Doe",
            "donorEmail": "jane@example.com",
            "message": "Keep it up",
            "anonymous": "false",
        },
    }
    data.update(overrides)
    return stripe.PaymentIntent.construct_from(data, "sk_test_123")


def make_refund(**overrides) -> stripe.Refund:
    data: Dict[str, Any] = {
        "id": "re_3TestRefund123",
        "object": "refund",
        "amount": 5000,
        "status": "succeeded",
        "reason": "requested_by_customer",
        "payment_intent": "pi_3TestIntent123",
        "created": 1700000500,
    }
    data.update(overrides)
    return stripe.Refund.construct_from(data, "sk_test_123")


def compute_signature(payload: bytes, secret: str, timestamp: int) -> str:
    """HMAC-SHA256 hex digest the way Stripe signs webhook bodies."""
    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """A `Stripe-Signature` header value for ``payload``."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    return f"t={timestamp},v1={compute_signature(payload, secret, timestamp)}"


def fake_write_pdf(self, html_content: str, output_path: Path) -> None:
    Path(output_path).write_bytes(b"%PDF-1.4\n" + html_content.encode("utf-8")[:200])


@pytest.fixture(autouse=True)
def isolated_state(tmp_path, monkeypatch):
    """Fresh singletons, counters and files for every test."""
    from app.core import rate_limit
    from app.core.config.settings import settings
    from app.crud import event_store, expression_store, subscriber_store
    from app.services import (
        notification_service,
        payment_service,
        receipt_service,
        webhook_service,
    )
    from app.utils import email, receipt_generator

    monkeypatch.setattr(settings.files, "UPLOAD_PATH", str(tmp_path / "uploads"))
    monkeypatch.setattr(
        settings.files, "NEWSLETTER_SUBSCRIBERS_FILE", str(tmp_path / "subscribers.json")
    )

    monkeypatch.setattr(rate_limit, "_backend", None)
    monkeypatch.setattr(event_store, "_event_store", None)
    monkeypatch.setattr(expression_store, "_expression_store", None)
    monkeypatch.setattr(subscriber_store, "_subscriber_store", None)
    monkeypatch.setattr(payment_service, "_payment_service", None)
    monkeypatch.setattr(notification_service, "_notification_service", None)
    monkeypatch.setattr(receipt_service, "_receipt_service", None)
    monkeypatch.setattr(webhook_service, "_webhook_service", None)
    monkeypatch.setattr(receipt_generator, "_receipt_generator", None)
    monkeypatch.setattr(email, "_email_service_instance", None)
    yield


@pytest.fixture
def outbox() -> List[Dict[str, Any]]:
    """JSON bodies posted to the mail API."""
    return []


@pytest.fixture
def mail_transport(outbox) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        outbox.append(json.loads(request.content))
        return httpx.Response(200, json={"id": f"email_{len(outbox)}"})

    return httpx.MockTransport(handler)


@pytest.fixture
def email_service(mail_transport):
    from app.utils.email import EmailService, ResendEmailBackend

    return EmailService(
        backend=ResendEmailBackend(api_key="re_test_key", transport=mail_transport),
        retries=2,
        retry_delay=0,
    )


@pytest.fixture
def email_config():
    from app.services.notification_service import EmailConfig

    return EmailConfig(
        from_address="Metrax Website <onboarding@resend.dev>",
        donor_from_address="Metrax Indigenous <onboarding@resend.dev>",
        admin_recipients=["admin@example.com"],
        is_sandbox=True,
        environment="test",
    )


@pytest.fixture
def notification_service(email_service, email_config):
    from app.services.notification_service import NotificationService

    return NotificationService(email_service, email_config, organization=ORGANIZATION)


@pytest.fixture
def receipt_generator(tmp_path, monkeypatch):
    from app.utils.receipt_generator import ReceiptGenerator

    monkeypatch.setattr(ReceiptGenerator, "_write_pdf", fake_write_pdf)
    return ReceiptGenerator(upload_path=tmp_path / "receipts", organization=ORGANIZATION)


@pytest.fixture
def receipt_service(receipt_generator):
    from app.services.receipt_service import ReceiptService

    return ReceiptService(receipt_generator, timeout=5)


@pytest.fixture
def webhook_service(receipt_service, notification_service):
    from app.crud.event_store import InMemoryEventStore
    from app.services.webhook_service import DonationEventHandler, WebhookService

    return WebhookService(
        handler=DonationEventHandler(receipt_service, notification_service),
        event_store=InMemoryEventStore(ttl=3600),
        secret=WEBHOOK_SECRET,
        tolerance=300,
    )


@pytest.fixture
def gateway(monkeypatch) -> MagicMock:
    """Patched Stripe SDK entry points used by PaymentService."""
    mocks = MagicMock()
    mocks.create = MagicMock(return_value=make_intent(status="requires_payment_method", amount_received=0))
    mocks.retrieve = MagicMock(return_value=make_intent())
    mocks.confirm = MagicMock(return_value=make_intent())
    mocks.refund = MagicMock(return_value=make_refund())
    monkeypatch.setattr(stripe.PaymentIntent, "create", mocks.create)
    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", mocks.retrieve)
    monkeypatch.setattr(stripe.PaymentIntent, "confirm", mocks.confirm)
    monkeypatch.setattr(stripe.Refund, "create", mocks.refund)
    return mocks


@pytest.fixture
def client(gateway, notification_service, receipt_service, webhook_service):
    from fastapi.testclient import TestClient

    from app.main import app
    from app.services.notification_service import get_notification_service
    from app.services.receipt_service import get_receipt_service
    from app.services.webhook_service import get_webhook_service

    app.dependency_overrides[get_notification_service] = lambda: notification_service
    app.dependency_overrides[get_receipt_service] = lambda: receipt_service
    app.dependency_overrides[get_webhook_service] = lambda: webhook_service
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()
