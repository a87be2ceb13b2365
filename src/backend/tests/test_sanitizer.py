"""
Tests for PII removal before extraction.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest

from expirycare.services.sanitizer import PIISanitizer, sanitize_text


@pytest.fixture
def sanitizer():
    return PIISanitizer()


class TestIdentifiers:

    def test_aadhaar_and_name_removed(self, sanitizer):
        text = "Warranty Card\nName: John Doe\nAadhaar: 123456789012\nValid till 31/12/2026"
        out = sanitizer.sanitize(text)
        assert "123456789012" not in out
        assert "John Doe" not in out
        assert "Valid till 31/12/2026" in out

    def test_grouped_aadhaar(self, sanitizer):
        out = sanitizer.sanitize("UID 1234 5678 9012 issued")
        assert "1234 5678 9012" not in out
        assert "5678" not in out

    def test_phone_and_email(self, sanitizer):
        out = sanitizer.sanitize("Call +91 9876543210 or mail care@example.com")
        assert "9876543210" not in out
        assert "care@example.com" not in out
        assert out.startswith("Call")

    def test_pan(self, sanitizer):
        out = sanitizer.sanitize("PAN ABCDE1234F")
        assert "ABCDE1234F" not in out

    def test_driving_licence_number(self, sanitizer):
        out = sanitizer.sanitize("Licence MH12 20110012345")
        assert "20110012345" not in out


class TestLabelledPersonalData:

    def test_customer_name_stops_at_next_label(self, sanitizer):
        out = sanitizer.sanitize("Customer Name: Ravi Kumar Valid till 31/12/2026")
        assert "Ravi" not in out
        assert "Valid till 31/12/2026" in out

    def test_date_of_birth(self, sanitizer):
        out = sanitizer.sanitize("DOB: 01/01/1990\nExpiry: 31/12/2030")
        assert "1990" not in out
        assert "Expiry: 31/12/2030" in out

    def test_business_names_kept(self, sanitizer):
        text = "Product Name: Galaxy S23\nMedicine Name: Crocin Advance\nPlan Name: Premium"
        assert sanitizer.sanitize(text) == text

    def test_address_line(self, sanitizer):
        out = sanitizer.sanitize("Address: 12 MG Road, Pune\nPolicy No: 12345")
        assert "MG Road" not in out
        assert "Policy No: 12345" in out


class TestSanitizerBehaviour:

    @pytest.mark.parametrize("text", [
        "Name: John Doe\nAadhaar 1234 5678 9012",
        "Customer Name: Ravi Kumar Valid till 31/12/2026",
        "Paracetamol 500mg EXP: 31/12/2024 BATCH: ABC123",
        "   spaced    out\n\n\ttext   ",
    ])
    def test_idempotent(self, sanitizer, text):
        once = sanitizer.sanitize(text)
        assert sanitizer.sanitize(once) == once

    def test_whitespace_collapsed(self, sanitizer):
        assert sanitizer.sanitize("  Valid \t till\n\n 31/12/2026  ") == "Valid till\n31/12/2026"

    @pytest.mark.parametrize("value", [None, "", 42])
    def test_bad_input_returns_empty_string(self, sanitizer, value):
        assert sanitizer.sanitize(value) == ""

    def test_module_helper(self):
        assert sanitize_text("Mail me at a.b@example.org") == "Mail me at"
