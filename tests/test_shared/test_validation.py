"""Tests for shared validation utilities."""
import pytest
from shared.validation import Validator, ValidationError


class TestValidator:
    """Test validation utilities."""

    def test_validate_email_success(self):
        """Valid addresses are accepted and lower-cased."""
        assert Validator.validate_email("test@example.com") == "test@example.com"
        assert Validator.validate_email(" User.Name+tag@Example.co.uk ") == "user.name+tag@example.co.uk"

    def test_validate_email_failure(self):
        invalid_emails = [
            "invalid-email",
            "@example.com",
            "test@",
            "test.example.com",
            "a..b@example.com",
            None,
        ]
        for email in invalid_emails:
            with pytest.raises(ValidationError, match="Invalid email format"):
                Validator.validate_email(email)

    def test_validate_phone(self):
        """Separators are ignored when counting digits, formatting is kept."""
        assert Validator.validate_phone("+212 6 12-34-56-78") == "+212 6 12-34-56-78"
        assert Validator.validate_phone("(555) 123-4567") == "(555) 123-4567"
        for phone in ("1234", "+212abc45678", "", None):
            with pytest.raises(ValidationError, match="Invalid phone number format"):
                Validator.validate_phone(phone)

    def test_validate_suite_number(self):
        assert Validator.validate_suite_number(" ma-1234 ") == "MA-1234"
        for suite in ("MA-12", "US-1234", "MA1234", 1234):
            with pytest.raises(ValidationError, match="Invalid suite number format"):
                Validator.validate_suite_number(suite)

    def test_validate_url(self):
        assert Validator.validate_url(" https://res.cloudinary.com/x.jpg ") == "https://res.cloudinary.com/x.jpg"
        with pytest.raises(ValidationError, match="photo must be a valid http"):
            Validator.validate_url("javascript:alert(1)", "photo")

    def test_validate_hs_code(self):
        assert Validator.validate_hs_code("6403.99") == "6403.99"
        assert Validator.validate_hs_code(None) == ""
        with pytest.raises(ValidationError, match="HS code"):
            Validator.validate_hs_code("64-03")

    def test_missing_fields(self):
        data = {'full_name': 'Amina', 'street': '  ', 'city': None}
        assert Validator.missing_fields(data, ('full_name', 'street', 'city', 'phone')) == ['street', 'city', 'phone']

    def test_sanitize_html(self):
        """Only basic formatting tags survive."""
        assert Validator.sanitize_html("plain text") == "plain text"
        assert Validator.sanitize_html("") == ""
        assert Validator.sanitize_html("<strong>fragile</strong>") == "<strong>fragile</strong>"
        cleaned = Validator.sanitize_html('<img src=x onerror="alert(1)"><b>hi</b>')
        assert '<img' not in cleaned
        assert '<b>' not in cleaned
        assert 'hi' in cleaned

    def test_validation_error_is_value_error(self):
        assert issubclass(ValidationError, ValueError)
