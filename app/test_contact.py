import app.testing_utils  # noqa: F401

import unittest

from app.models.otp_code import ContactType
from app.utils.contact import (
    Contact,
    mask_contact,
    normalize_contact,
    sanitize_phone_number,
    validate_email,
    validate_phone,
)


class TestValidateEmail(unittest.TestCase):
    def test_accepts_ordinary_address(self):
        self.assertTrue(validate_email("user@example.com"))
        self.assertTrue(validate_email("first.last+jobs@sub.example.co"))

    def test_rejects_malformed(self):
        for value in ["", "plainaddress", "a@b@c.com", "@example.com", "user@", "user@-example.com"]:
            with self.subTest(value=value):
                self.assertFalse(validate_email(value))

    def test_rejects_consecutive_dots(self):
        self.assertFalse(validate_email("john..doe@example.com"))
        self.assertFalse(validate_email("john@example..com"))

    def test_length_bounds(self):
        self.assertTrue(validate_email("a" * 64 + "@example.com"))
        self.assertFalse(validate_email("a" * 65 + "@example.com"))
        long_domain = ".".join(["d" * 60] * 5) + ".com"     # > 253 chars
        self.assertFalse(validate_email(f"user@{long_domain}"))


class TestValidatePhone(unittest.TestCase):
    def test_requires_plus_prefix(self):
        self.assertTrue(validate_phone("+14155550123"))
        self.assertFalse(validate_phone("14155550123"))

    def test_digit_count(self):
        self.assertTrue(validate_phone("+1234567"))
        self.assertFalse(validate_phone("+123456"))
        self.assertTrue(validate_phone("+123456789012345"))
        self.assertFalse(validate_phone("+1234567890123456"))

    def test_separators_are_ignored(self):
        self.assertTrue(validate_phone("+1 (415) 555-0123"))


class TestSanitizePhoneNumber(unittest.TestCase):
    def test_ten_digits_get_default_country_code(self):
        self.assertEqual(sanitize_phone_number("(415) 555-0123", "1"), "+14155550123")

    def test_eleven_digits_with_country_code(self):
        self.assertEqual(sanitize_phone_number("14155550123", "1"), "+14155550123")

    def test_already_international(self):
        self.assertEqual(sanitize_phone_number("+44 20 7946 0958", "1"), "+442079460958")

    def test_double_zero_prefix(self):
        self.assertEqual(sanitize_phone_number("0044 20 7946 0958", "1"), "+442079460958")

    def test_ten_digits_starting_with_double_zero(self):
        self.assertEqual(sanitize_phone_number("0012345678", "1"), "+10012345678")
        self.assertEqual(sanitize_phone_number("00 1234 5678", "1"), "+10012345678")

    def test_idempotent(self):
        samples = [
            "4155550123", "14155550123", "+1 415 555 0123", "0044 20 7946 0958",
            "1234567890", "+62 812-3456-7890", "  555.0123  ", "0012345678",
        ]
        for raw in samples:
            with self.subTest(raw=raw):
                once = sanitize_phone_number(raw, "1")
                self.assertEqual(sanitize_phone_number(once, "1"), once)


class TestNormalizeContact(unittest.TestCase):
    def test_email_is_lowercased_and_trimmed(self):
        contact = normalize_contact("  User@Example.COM ", ContactType.EMAIL)
        self.assertEqual(contact, Contact("user@example.com", ContactType.EMAIL))

    def test_phone_is_sanitized(self):
        contact = normalize_contact("415-555-0123", ContactType.PHONE)
        self.assertEqual(contact.value, "+14155550123")
        self.assertEqual(contact.kind, ContactType.PHONE)

    def test_invalid_returns_none(self):
        self.assertIsNone(normalize_contact("not-an-email", ContactType.EMAIL))
        self.assertIsNone(normalize_contact("12", ContactType.PHONE))


class TestMaskContact(unittest.TestCase):
    def test_masks(self):
        self.assertEqual(mask_contact("jobseeker@example.com", ContactType.EMAIL), "jo***@example.com")
        self.assertEqual(mask_contact("+14155550123", ContactType.PHONE), "**********23")


if __name__ == '__main__':
    unittest.main()
