"""Input validation utilities."""
import re
import bleach


class ValidationError(ValueError):
    """Raised when input validation fails.

    Subclasses ValueError so pydantic validators surface it as a field error.
    """
    pass


class Validator:
    """Input validation utilities."""

    # Local part and domain labels must start/end with alphanumerics
    EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9]+([._%+-][a-zA-Z0-9]+)*@([a-zA-Z0-9]+([.-][a-zA-Z0-9]+)*\.)+[a-zA-Z]{2,}$')
    # International numbers: optional +, 8-15 digits once separators are removed
    PHONE_PATTERN = re.compile(r'^\+?\d{8,15}$')
    PHONE_SEPARATORS = re.compile(r'[\s().-]')
    SUITE_PATTERN = re.compile(r'^MA-\d{4}$')
    URL_PATTERN = re.compile(r'^https?://[^\s<>"]+$')
    HS_CODE_PATTERN = re.compile(r'^[0-9.]{0,14}$')

    @staticmethod
    def validate_email(email):
        """Validate email format and normalise to lower case."""
        if not isinstance(email, str):
            raise ValidationError("Invalid email format")
        email = email.strip()
        if not Validator.EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format")
        return email.lower()

    @staticmethod
    def validate_phone(phone):
        """Validate an international phone number, keeping the caller's formatting."""
        if not isinstance(phone, str):
            raise ValidationError("Invalid phone number format")
        phone = phone.strip()
        if not Validator.PHONE_PATTERN.match(Validator.PHONE_SEPARATORS.sub('', phone)):
            raise ValidationError("Invalid phone number format")
        return phone

    @staticmethod
    def validate_suite_number(suite_number):
        """Validate an ``MA-XXXX`` suite number."""
        if not isinstance(suite_number, str):
            raise ValidationError("Invalid suite number format")
        suite_number = suite_number.strip().upper()
        if not Validator.SUITE_PATTERN.match(suite_number):
            raise ValidationError("Invalid suite number format")
        return suite_number

    @staticmethod
    def validate_url(url, field_name='url'):
        if not isinstance(url, str) or not Validator.URL_PATTERN.match(url.strip()):
            raise ValidationError(f"{field_name} must be a valid http(s) URL")
        return url.strip()

    @staticmethod
    def validate_hs_code(hs_code):
        """Harmonized System code: digits and dots only, may be blank."""
        hs_code = (hs_code or '').strip()
        if not Validator.HS_CODE_PATTERN.match(hs_code):
            raise ValidationError("HS code must contain only digits and dots")
        return hs_code

    @staticmethod
    def missing_fields(data, fields):
        """Return the names in ``fields`` whose value in ``data`` is blank."""
        missing = []
        for name in fields:
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    @staticmethod
    def sanitize_html(text):
        """Secure HTML sanitization using bleach library.

        Plain text without markup characters is returned untouched.
        """
        if not text:
            return text

        if '<' not in text and '>' not in text and '&' not in text:
            return text

        # Only basic formatting survives, no attributes, CSS or scripts
        allowed_tags = ['p', 'br', 'strong', 'em', 'u', 'ul', 'ol', 'li', 'blockquote']
        allowed_attributes = {}

        return bleach.clean(text, tags=allowed_tags, attributes=allowed_attributes, strip=True)
