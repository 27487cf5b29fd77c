"""
Tests for receipt rendering, naming and persistence.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import ORGANIZATION, fake_write_pdf


def _donation_data(**overrides):
    from app.models.receipt_model import DonationReceiptData

    data = {
        "payment_intent_id": "pi_3TestIntent123",
        "amount": Decimal("1250.00"),
        "donor_name": "Jane Doe",
        "donor_email": "jane@example.com",
        "project_title": "Clean Water",
        "paid_at": datetime(2024, 3, 1, 15, 30, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return DonationReceiptData(**data)


def _refund_data(**overrides):
    from app.models.receipt_model import RefundReceiptData

    data = {
        "refund_id": "re_3TestRefund123",
        "refund_amount": Decimal("20.00"),
        "original_amount": Decimal("50.00"),
        "reason": "duplicate",
        "project_title": "Clean Water",
        "original_payment_intent_id": "pi_3TestIntent123",
    }
    data.update(overrides)
    return RefundReceiptData(**data)


class TestReceiptNaming:
    def test_one_rule_for_write_and_lookup(self, receipt_generator):
        path = receipt_generator.generate_donation_receipt(_donation_data())

        assert path.name == "receipt-pi_3TestIntent123.pdf"
        assert path == receipt_generator.get_receipt_path("pi_3TestIntent123")
        assert receipt_generator.receipt_exists("pi_3TestIntent123")

    @pytest.mark.parametrize("bad_id", ["../etc/passwd", "pi_1/../x", "", "pi 1"])
    def test_unsafe_ids_rejected(self, receipt_generator, bad_id):
        from app.core.exceptions import ValidationError

        with pytest.raises(ValidationError):
            receipt_generator.get_receipt_path(bad_id)


class TestReceiptGeneration:
    def test_html_contains_receipt_details(self, receipt_generator):
        html = receipt_generator.render_donation_html(_donation_data(message="<b>Thanks</b>"))

        assert "$1,250.00" in html
        assert "Jane Doe" in html
        assert "Clean Water" in html
        assert "&lt;b&gt;Thanks&lt;/b&gt;" in html
        assert ORGANIZATION["name"] in html

    def test_anonymous_donor_name(self, receipt_generator):
        html = receipt_generator.render_donation_html(_donation_data(anonymous=True))

        assert "Anonymous Donor" in html
        assert "Jane Doe" not in html

    def test_existing_receipt_is_not_rewritten(self, receipt_generator, monkeypatch):
        path = receipt_generator.generate_donation_receipt(_donation_data())
        original = path.read_bytes()

        writes = []
        monkeypatch.setattr(
            type(receipt_generator), "_write_pdf", lambda self, html, out: writes.append(out)
        )
        again = receipt_generator.generate_donation_receipt(_donation_data(amount=Decimal("1")))

        assert again == path
        assert writes == []
        assert path.read_bytes() == original

    def test_oversized_receipt_is_discarded(self, tmp_path, monkeypatch):
        from app.core.exceptions import ReceiptError
        from app.utils.receipt_generator import ReceiptGenerator

        monkeypatch.setattr(ReceiptGenerator, "_write_pdf", fake_write_pdf)
        generator = ReceiptGenerator(upload_path=tmp_path, organization=ORGANIZATION, max_file_size=10)

        with pytest.raises(ReceiptError):
            generator.generate_donation_receipt(_donation_data())

        assert not generator.receipt_exists("pi_3TestIntent123")
        assert list(tmp_path.iterdir()) == []

    def test_renderer_failure_leaves_no_file(self, tmp_path, monkeypatch):
        from app.core.exceptions import ReceiptError
        from app.utils.receipt_generator import ReceiptGenerator

        def broken(self, html, out):
            out.write_bytes(b"partial")
            raise OSError("fonts missing")

        monkeypatch.setattr(ReceiptGenerator, "_write_pdf", broken)
        generator = ReceiptGenerator(upload_path=tmp_path, organization=ORGANIZATION)

        with pytest.raises(ReceiptError):
            generator.generate_donation_receipt(_donation_data())
        assert list(tmp_path.iterdir()) == []

    def test_refund_receipt(self, receipt_generator):
        path = receipt_generator.generate_refund_receipt(_refund_data())

        assert path.name == "refund-re_3TestRefund123.pdf"
        assert receipt_generator.refund_receipt_exists("re_3TestRefund123")
        html = receipt_generator.render_refund_html(_refund_data())
        assert "Duplicate payment" in html
        assert "$20.00" in html


class TestReceiptService:
    @pytest.mark.asyncio
    async def test_receipt_for_intent_uses_gateway_record(self, receipt_service, receipt_generator):
        from app.services.payment_service import summarize_intent
        from conftest import make_intent

        summary = summarize_intent(make_intent())
        path = await receipt_service.receipt_for_intent(summary)

        assert receipt_service.find_receipt("pi_3TestIntent123") == path
        data = receipt_service.donation_data_from_intent(summary)
        assert data.amount == Decimal("50.00")
        assert data.donor_email == "jane@example.com"
        assert data.paid_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    @pytest.mark.asyncio
    async def test_find_receipt_missing(self, receipt_service):
        assert receipt_service.find_receipt("pi_3Nothing") is None

    @pytest.mark.asyncio
    async def test_safe_generate_swallows_receipt_errors(self, receipt_service):
        from app.core.exceptions import ReceiptError

        async def fail(data):
            raise ReceiptError("renderer down")

        assert await receipt_service.safe_generate(fail, _donation_data()) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ValueError("bad template value"), OSError("disk full")])
    async def test_safe_generate_swallows_unexpected_errors(self, receipt_service, error):
        async def fail(data):
            raise error

        assert await receipt_service.safe_generate(fail, _donation_data()) is None

    @pytest.mark.asyncio
    async def test_safe_generate_swallows_unsafe_id(self, receipt_service):
        data = _donation_data(payment_intent_id="../../etc/passwd")

        result = await receipt_service.safe_generate(receipt_service.generate_donation_receipt, data)

        assert result is None

    @pytest.mark.asyncio
    async def test_slow_render_times_out(self, receipt_generator, monkeypatch):
        import time

        from app.core.exceptions import ReceiptError
        from app.services.receipt_service import ReceiptService

        monkeypatch.setattr(
            type(receipt_generator), "_write_pdf", lambda self, html, out: time.sleep(0.5)
        )
        service = ReceiptService(receipt_generator, timeout=0.05)

        with pytest.raises(ReceiptError):
            await service.generate_donation_receipt(_donation_data())
