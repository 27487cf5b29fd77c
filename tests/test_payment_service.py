"""
Tests for PaymentService against a patched Stripe SDK.
"""
import time
from decimal import Decimal

import pytest
import stripe

from conftest import make_intent


def _donation(**overrides):
    data = {
        "amount": 50,
        "projectId": "general",
        "projectTitle": "Clean Water",
        "donorName": "Jane Doe",
        "donorEmail": "jane@example.com",
        "message": "For the well",
    }
    data.update(overrides)
    return data


class TestSummarizeIntent:
    def test_metadata_copied_from_stripe_object(self):
        from app.services.payment_service import stripe_object_to_dict, summarize_intent

        intent = make_intent()

        assert stripe_object_to_dict(intent.metadata)["donorEmail"] == "jane@example.com"
        assert stripe_object_to_dict(None) == {}
        assert summarize_intent(intent).metadata["projectTitle"] == intent.metadata["projectTitle"]


class TestCreatePaymentIntent:
    @pytest.mark.asyncio
    async def test_amount_sent_in_minor_units(self, gateway):
        from app.services.payment_service import PaymentService

        result = await PaymentService().create_payment_intent(_donation())

        kwargs = gateway.create.call_args.kwargs
        assert kwargs["amount"] == 5000
        assert kwargs["currency"] == "usd"
        assert kwargs["description"] == "Donation to Clean Water"
        assert kwargs["receipt_email"] == "jane@example.com"
        assert kwargs["metadata"]["donorName"] == "Jane Doe"
        assert kwargs["metadata"]["anonymous"] == "false"
        assert result.payment_intent_id == "pi_3TestIntent123"
        assert result.client_secret == "pi_3TestIntent123_secret_abc"
        assert result.amount == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_anonymous_donation_metadata(self, gateway):
        from app.services.payment_service import PaymentService

        await PaymentService().create_payment_intent(
            _donation(donorName=None, anonymous=True)
        )

        metadata = gateway.create.call_args.kwargs["metadata"]
        assert metadata["donorName"] == "Anonymous"
        assert metadata["anonymous"] == "true"
        assert all(isinstance(value, str) for value in metadata.values())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [{"amount": 0.5}, {"amount": 10001}, {"donorEmail": "nope"}, {"projectId": ""}],
    )
    async def test_invalid_donation_never_reaches_gateway(self, gateway, overrides):
        from app.core.exceptions import ValidationError
        from app.services.payment_service import PaymentService

        with pytest.raises(ValidationError) as exc_info:
            await PaymentService().create_payment_intent(_donation(**overrides))

        assert exc_info.value.message == "Validation failed"
        assert exc_info.value.errors
        gateway.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_idempotency_key_forwarded(self, gateway):
        from app.services.payment_service import PaymentService

        await PaymentService().create_payment_intent(_donation(), idempotency_key="donation-abc")

        assert gateway.create.call_args.kwargs["idempotency_key"] == "donation-abc"


class TestGatewayErrors:
    """Provider failures map onto the error taxonomy."""

    @pytest.mark.asyncio
    async def test_card_decline_keeps_provider_message(self, gateway):
        from app.core.exceptions import CardError
        from app.services.payment_service import PaymentService

        gateway.create.side_effect = stripe.CardError(
            "Your card was declined.", None, "card_declined"
        )

        with pytest.raises(CardError) as exc_info:
            await PaymentService().create_payment_intent(_donation())

        assert exc_info.value.status_code == 402
        assert exc_info.value.message == "Your card was declined."

    @pytest.mark.asyncio
    async def test_missing_intent_is_not_found(self, gateway):
        from app.core.exceptions import NotFoundError
        from app.services.payment_service import PaymentService

        gateway.retrieve.side_effect = stripe.InvalidRequestError(
            "No such payment_intent", "id", code="resource_missing"
        )

        with pytest.raises(NotFoundError):
            await PaymentService().get_payment_intent("pi_3Missing")

    @pytest.mark.asyncio
    async def test_connection_error_is_generic(self, gateway):
        from app.core.exceptions import GatewayError
        from app.services.payment_service import PaymentService

        gateway.create.side_effect = stripe.APIConnectionError("socket closed at 10.0.0.3")

        with pytest.raises(GatewayError) as exc_info:
            await PaymentService().create_payment_intent(_donation())

        assert exc_info.value.status_code == 502
        assert "10.0.0.3" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_slow_gateway_times_out(self, gateway):
        from app.core.exceptions import GatewayError
        from app.services.payment_service import PaymentService

        gateway.retrieve.side_effect = lambda *args, **kwargs: time.sleep(0.5)

        with pytest.raises(GatewayError) as exc_info:
            await PaymentService(timeout=0.05).get_payment_intent("pi_3Slow")

        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_malformed_id_is_rejected_locally(self, gateway):
        from app.core.exceptions import ValidationError
        from app.services.payment_service import PaymentService

        with pytest.raises(ValidationError):
            await PaymentService().get_payment_intent("not-an-intent")

        gateway.retrieve.assert_not_called()


class TestConfirmPayment:
    @pytest.mark.asyncio
    async def test_succeeded_intent_confirms(self, gateway):
        from app.services.payment_service import PaymentService

        confirmation = await PaymentService().confirm_payment("pi_3TestIntent123")

        assert confirmation.success is True
        assert confirmation.status == "succeeded"
        assert confirmation.payment_intent.amount == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_amount_mismatch_rejected(self, gateway):
        from app.core.exceptions import ValidationError
        from app.services.payment_service import PaymentService

        with pytest.raises(ValidationError) as exc_info:
            await PaymentService().confirm_payment(
                "pi_3TestIntent123", expected_amount=Decimal("75")
            )

        assert exc_info.value.message == "Amount mismatch"

    @pytest.mark.asyncio
    async def test_matching_amount_accepted(self, gateway):
        from app.services.payment_service import PaymentService

        confirmation = await PaymentService().confirm_payment(
            "pi_3TestIntent123", expected_amount=50
        )
        assert confirmation.success

    @pytest.mark.asyncio
    async def test_unfinished_payment_not_completed(self, gateway):
        from app.core.exceptions import ValidationError
        from app.services.payment_service import PaymentService

        gateway.retrieve.return_value = make_intent(status="processing", amount_received=0)

        with pytest.raises(ValidationError) as exc_info:
            await PaymentService().confirm_payment("pi_3TestIntent123")

        assert exc_info.value.message == "Payment not completed"

    @pytest.mark.asyncio
    async def test_server_side_confirmation_with_payment_method(self, gateway):
        from app.services.payment_service import PaymentService

        gateway.confirm.return_value = make_intent(status="requires_action", amount_received=0)

        confirmation = await PaymentService().confirm_payment(
            "pi_3TestIntent123", payment_method_id="pm_card_visa"
        )

        gateway.retrieve.assert_called_once_with("pi_3TestIntent123")
        gateway.confirm.assert_called_once_with("pi_3TestIntent123", payment_method="pm_card_visa")
        assert confirmation.success is False
        assert confirmation.status == "requires_action"

    @pytest.mark.asyncio
    async def test_mismatch_is_rejected_before_the_card_is_charged(self, gateway):
        from app.core.exceptions import ValidationError
        from app.services.payment_service import PaymentService

        gateway.retrieve.return_value = make_intent(status="requires_confirmation", amount_received=0)

        with pytest.raises(ValidationError) as exc_info:
            await PaymentService().confirm_payment(
                "pi_3TestIntent123", payment_method_id="pm_card_visa", expected_amount=Decimal("10.00")
            )

        assert exc_info.value.message == "Amount mismatch"
        gateway.confirm.assert_not_called()

    @pytest.mark.asyncio
    async def test_matching_amount_with_payment_method_confirms(self, gateway):
        from app.services.payment_service import PaymentService

        gateway.retrieve.return_value = make_intent(status="requires_confirmation", amount_received=0)

        confirmation = await PaymentService().confirm_payment(
            "pi_3TestIntent123", payment_method_id="pm_card_visa", expected_amount=Decimal("50.00")
        )

        gateway.confirm.assert_called_once()
        assert confirmation.success is True

    @pytest.mark.asyncio
    async def test_non_numeric_expected_amount_rejected(self, gateway):
        from app.core.exceptions import ValidationError
        from app.services.payment_service import PaymentService

        with pytest.raises(ValidationError) as exc_info:
            await PaymentService().confirm_payment("pi_3TestIntent123", expected_amount="50")

        assert exc_info.value.errors == ["Amount must be a number"]


class TestCreateRefund:
    @pytest.mark.asyncio
    async def test_full_refund_omits_amount(self, gateway):
        from app.services.payment_service import PaymentService

        refund = await PaymentService().create_refund("pi_3TestIntent123")

        kwargs = gateway.refund.call_args.kwargs
        assert "amount" not in kwargs
        assert kwargs["reason"] == "requested_by_customer"
        assert refund.id == "re_3TestRefund123"
        assert refund.amount == Decimal("50.00")
        assert refund.original_amount == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_partial_refund_in_minor_units(self, gateway):
        from app.services.payment_service import PaymentService

        await PaymentService().create_refund(
            "pi_3TestIntent123", amount=Decimal("12.50"), reason="duplicate"
        )

        kwargs = gateway.refund.call_args.kwargs
        assert kwargs["amount"] == 1250
        assert kwargs["reason"] == "duplicate"

    @pytest.mark.asyncio
    async def test_refund_above_captured_amount_rejected(self, gateway):
        from app.core.exceptions import ValidationError
        from app.services.payment_service import PaymentService

        with pytest.raises(ValidationError):
            await PaymentService().create_refund("pi_3TestIntent123", amount=60)

        gateway.refund.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsettled_payment_cannot_be_refunded(self, gateway):
        from app.core.exceptions import ValidationError
        from app.services.payment_service import PaymentService

        gateway.retrieve.return_value = make_intent(status="processing", amount_received=0)

        with pytest.raises(ValidationError) as exc_info:
            await PaymentService().create_refund("pi_3TestIntent123")

        assert exc_info.value.message == "Payment cannot be refunded"
        gateway.refund.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_intent_id_rejected(self, gateway):
        from app.core.exceptions import ValidationError
        from app.services.payment_service import PaymentService

        with pytest.raises(ValidationError):
            await PaymentService().create_refund("3f2b8c1e-9a7d-4e6f-8b1a-2c3d4e5f6a7b")

        gateway.retrieve.assert_not_called()
