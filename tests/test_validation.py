"""
Tests for donation and refund validation rules.
"""
from decimal import Decimal

import pytest


def _donation(**overrides):
    data = {
        "amount": Decimal("50"),
        "projectId": "general",
        "projectTitle": "Community Project",
        "donorName": "Jane Doe",
        "donorEmail": "jane@example.com",
        "anonymous": False,
        "message": "",
    }
    data.update(overrides)
    return data


class TestAmountValidation:
    """Amounts must be numbers within the configured bounds."""

    @pytest.mark.parametrize("amount", [1, Decimal("1.00"), 50, 99.99, Decimal("10000.00")])
    def test_accepts_amounts_in_range(self, amount):
        from app.utils.validation import validate_amount

        assert validate_amount(amount).is_valid

    @pytest.mark.parametrize("amount", [0, Decimal("0.99"), -5, Decimal("10000.01"), 50000])
    def test_rejects_amounts_out_of_range(self, amount):
        from app.utils.validation import validate_amount

        result = validate_amount(amount)
        assert not result.is_valid
        assert result.errors == ["Amount must be between $1.00 and $10,000.00"]

    @pytest.mark.parametrize("amount", ["50", True, [50], float("nan")])
    def test_rejects_non_numeric_amounts(self, amount):
        from app.utils.validation import validate_amount

        assert not validate_amount(amount).is_valid

    def test_missing_amount_is_required(self):
        from app.utils.validation import validate_amount

        assert validate_amount(None).errors == ["Amount is required"]


class TestEmailValidation:
    def test_accepts_valid_email(self):
        from app.utils.validation import validate_email

        assert validate_email("donor@example.com").is_valid

    @pytest.mark.parametrize("email", ["not-an-email", "a@", "@b.com", "a b@c.com"])
    def test_rejects_malformed_email(self, email):
        from app.utils.validation import validate_email

        result = validate_email(email)
        assert not result.is_valid
        assert result.errors == ["Invalid email format"]

    def test_rejects_overlong_email(self):
        from app.utils.validation import validate_email

        email = "a" * 64 + "@" + ("b" * 60 + ".") * 4 + "com"
        assert len(email) > 254
        assert not validate_email(email).is_valid


class TestNameValidation:
    def test_name_required_unless_anonymous(self):
        from app.utils.validation import validate_name

        assert not validate_name("", anonymous=False).is_valid
        assert validate_name("", anonymous=True).is_valid
        assert validate_name("Anonymous", anonymous=True).is_valid

    @pytest.mark.parametrize("name", ["Jane Doe", "Zoë O'Neil", "J. R. Smith-Jones", "李雷"])
    def test_accepts_unicode_names(self, name):
        from app.utils.validation import validate_name

        assert validate_name(name).is_valid

    @pytest.mark.parametrize("name", ["Jane123", "<script>", "a" * 101])
    def test_rejects_invalid_names(self, name):
        from app.utils.validation import validate_name

        assert not validate_name(name).is_valid


class TestProjectIdValidation:
    @pytest.mark.parametrize(
        "project_id",
        ["general", "GENERAL", "3f2b8c1e-9a7d-4e6f-8b1a-2c3d4e5f6a7b", "clean-water-2024"],
    )
    def test_accepts_known_formats(self, project_id):
        from app.utils.validation import validate_project_id

        assert validate_project_id(project_id).is_valid

    @pytest.mark.parametrize("project_id", ["", "ab", "has spaces", "x" * 65, 42])
    def test_rejects_other_values(self, project_id):
        from app.utils.validation import validate_project_id

        assert not validate_project_id(project_id).is_valid


class TestDonationData:
    def test_valid_donation(self):
        from app.utils.validation import validate_donation_data

        assert validate_donation_data(_donation()).is_valid

    def test_collects_every_error(self):
        from app.utils.validation import validate_donation_data

        result = validate_donation_data(
            _donation(amount=0, donorEmail="bad", projectId="", donorName="")
        )
        assert not result.is_valid
        assert len(result.errors) == 4

    def test_message_length_limit(self):
        from app.utils.validation import validate_donation_data

        assert validate_donation_data(_donation(message="x" * 500)).is_valid
        result = validate_donation_data(_donation(message="x" * 501))
        assert result.errors == ["Message must be less than 500 characters"]

    def test_never_raises_on_garbage(self):
        from app.utils.validation import validate_donation_data

        result = validate_donation_data({"amount": object(), "anonymous": "maybe"})
        assert not result.is_valid


class TestNormalizeDonationPayload:
    def test_anonymous_without_name_becomes_anonymous(self):
        from app.utils.validation import normalize_donation_payload

        payload = normalize_donation_payload(
            {"amount": 50, "projectId": "general", "donorEmail": "a@b.com", "anonymous": True}
        )
        assert payload["donorName"] == "Anonymous"
        assert payload["anonymous"] is True

    def test_accepts_legacy_aliases(self):
        from app.utils.validation import normalize_donation_payload

        payload = normalize_donation_payload(
            {
                "amount": "$1,250.50",
                "project_slug": "clean-water",
                "firstName": "Jane",
                "lastName": "Doe",
                "email": "  Jane@Example.COM ",
                "anonymous": "false",
                "note": "Good luck",
                "project_title": "Clean Water",
            }
        )
        assert payload["amount"] == Decimal("1250.50")
        assert payload["projectId"] == "clean-water"
        assert payload["donorName"] == "Jane Doe"
        assert payload["donorEmail"] == "jane@example.com"
        assert payload["anonymous"] is False
        assert payload["message"] == "Good luck"
        assert payload["projectTitle"] == "Clean Water"

    def test_missing_title_uses_default(self):
        from app.utils.validation import normalize_donation_payload

        payload = normalize_donation_payload({"amount": 5, "projectId": "general"})
        assert payload["projectTitle"] == "Community Project"

    def test_uncoercible_values_pass_through(self):
        from app.utils.validation import normalize_donation_payload, validate_donation_data

        payload = normalize_donation_payload(
            {"amount": "abc", "projectId": "general", "donorEmail": "a@b.com", "anonymous": True}
        )
        assert payload["amount"] == "abc"
        assert not validate_donation_data(payload).is_valid


class TestRefundData:
    def test_valid_full_refund(self):
        from app.utils.validation import validate_refund_data

        assert validate_refund_data({"paymentIntentId": "pi_3Abc123"}).is_valid

    def test_payment_intent_id_must_match_gateway_format(self):
        from app.utils.validation import validate_refund_data

        result = validate_refund_data({"paymentIntentId": "3f2b8c1e-9a7d-4e6f-8b1a-2c3d4e5f6a7b"})
        assert result.errors == ["Invalid payment intent ID format"]

    def test_rejects_unknown_reason(self):
        from app.utils.validation import validate_refund_data

        result = validate_refund_data({"paymentIntentId": "pi_1", "reason": "changed_mind"})
        assert result.errors == ["Invalid refund reason"]

    def test_partial_amount_bounds(self):
        from app.utils.validation import validate_refund_data

        assert validate_refund_data({"paymentIntentId": "pi_1", "amount": 10}).is_valid
        assert not validate_refund_data({"paymentIntentId": "pi_1", "amount": 0}).is_valid
