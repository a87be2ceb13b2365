"""
Tests for date token parsing and OCR text repair.

Tests cover:
- Every supported date shape resolving to ISO YYYY-MM-DD
- Two-digit year expansion relative to an injected "today"
- Invalid calendar dates resolving to None
- Token scanning inside free text
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from datetime import date

import pytest

from expirycare.utils.dates import (
    DateFormat,
    DateNormalizer,
    DatePrecision,
    expand_two_digit_year,
    find_date_tokens,
    is_iso_date,
    normalize_date,
    parse_date_token,
)
from expirycare.utils.text import clean_code_value, clean_text_value, normalize_ocr_text, normalize_period


TODAY = date(2024, 6, 1)


class TestNormalizeDate:
    """Each shape maps to one ISO date."""

    @pytest.mark.parametrize("token,expected", [
        ("31/12/2024", "2024-12-31"),
        ("31-12-2024", "2024-12-31"),
        ("31.12.2024", "2024-12-31"),
        ("2024-12-31", "2024-12-31"),
        ("15 Aug 2026", "2026-08-15"),
        ("15th August, 2026", "2026-08-15"),
        ("Dec 31, 2025", "2025-12-31"),
        ("August 5th 2026", "2026-08-05"),
        ("AUG 2026", "2026-08-31"),
        ("Feb 2028", "2028-02-29"),
        ("12/2026", "2026-12-31"),
        ("2027", "2027-12-31"),
    ])
    def test_supported_shapes(self, token, expected):
        assert normalize_date(token, today=TODAY) == expected

    def test_month_short_year_uses_last_day(self):
        assert normalize_date("08/26", today=date(2024, 1, 1)) == "2026-08-31"

    def test_two_digit_year_in_full_date(self):
        assert normalize_date("27-08-38", today=TODAY) == "2038-08-27"

    def test_month_zero_means_december(self):
        assert normalize_date("00/2028", today=TODAY) == "2028-12-31"

    @pytest.mark.parametrize("token", ["31/02/2024", "13/13/2024", "00/00/0000", "hello", "", None])
    def test_invalid_tokens_return_none(self, token):
        assert normalize_date(token, today=TODAY) is None

    def test_leap_day(self):
        assert normalize_date("29/02/2024", today=TODAY) == "2024-02-29"
        assert normalize_date("29/02/2023", today=TODAY) is None

    def test_output_is_always_iso_or_none(self):
        for token in ["1/1/25", "Dec 30", "5-6-2031", "garbage 12", "31/04/2030", "2030/06/15"]:
            value = normalize_date(token, today=TODAY)
            assert value is None or is_iso_date(value)

    def test_format_hint_restricts_shapes(self):
        assert normalize_date("12/2026", format_hint=DateFormat.YEAR, today=TODAY) is None
        assert normalize_date("12/2026", format_hint=DateFormat.MONTH_YEAR, today=TODAY) == "2026-12-31"
        assert normalize_date("12/2026", format_hint=DateFormat.AUTO, today=TODAY) == "2026-12-31"


class TestParsedPrecision:

    def test_precision_reported(self):
        assert parse_date_token("31/12/2024", today=TODAY).precision == DatePrecision.DAY
        assert parse_date_token("12/2024", today=TODAY).precision == DatePrecision.MONTH
        assert parse_date_token("2024", today=TODAY).precision == DatePrecision.YEAR

    def test_as_date(self):
        assert parse_date_token("2024-12-31").as_date == date(2024, 12, 31)


class TestTwoDigitYears:

    def test_current_century(self):
        assert expand_two_digit_year(38, date(2024, 1, 1)) == 2038

    def test_recent_past_stays_in_century(self):
        assert expand_two_digit_year(14, TODAY) == 2014

    def test_far_past_rolls_forward(self):
        assert expand_two_digit_year(10, TODAY) == 2110
        assert expand_two_digit_year(5, date(2098, 1, 1)) == 2105


class TestFindDateTokens:

    def test_tokens_in_reading_order(self):
        tokens = find_date_tokens("EXP 12/2026 MFG 01/2024")
        assert [t.raw for t in tokens] == ["12/2026", "01/2024"]

    def test_month_first_date_is_one_token(self):
        tokens = find_date_tokens("Valid till Dec 31, 2025")
        assert [t.raw for t in tokens] == ["Dec 31, 2025"]

    def test_day_after_month_name_is_not_a_year(self):
        assert find_date_tokens("Exp Dec 31st") == []
        assert find_date_tokens("Exp Dec 31, 2025")[0].raw == "Dec 31, 2025"

    def test_window_never_cuts_a_date(self):
        text = "Valid till 31/12/2025"
        tokens = find_date_tokens(text, start=10, limit=12)
        assert [t.raw for t in tokens] == ["31/12/2025"]

    def test_limit_excludes_later_tokens(self):
        text = "Valid till 31/12/2025 and 30/06/2026"
        tokens = find_date_tokens(text, start=10, limit=25)
        assert [t.raw for t in tokens] == ["31/12/2025"]

    def test_normalizer_uses_injected_today(self):
        normalizer = DateNormalizer(date(2024, 1, 1))
        assert normalizer.today == date(2024, 1, 1)
        assert normalizer.normalize("08/26") == "2026-08-31"


class TestOcrRepair:

    def test_letter_o_in_dates(self):
        assert normalize_ocr_text("EXP 3O/12/2O26") == "EXP 30/12/2026"

    def test_letter_spaced_words(self):
        assert normalize_ocr_text("E X P : 31/12/2026") == "EXP : 31/12/2026"

    def test_date_split_across_lines(self):
        assert normalize_ocr_text("Valid till 31/12/\n2026") == "Valid till 31/12/2026"

    def test_words_left_alone(self):
        assert normalize_ocr_text("Oral Solution") == "Oral Solution"


class TestValueCleaning:

    def test_text_value_stops_at_next_label(self):
        assert clean_text_value("Galaxy S23 Serial No: R5CT1234") == "Galaxy S23"

    def test_text_value_rejects_label_words_and_dates(self):
        assert clean_text_value("Batch") is None
        assert clean_text_value("31/12/2026") is None
        assert clean_text_value("12") is None

    def test_reject_words_match_whole_words(self):
        assert clean_text_value("Expert Care Services", reject=('exp',)) == "Expert Care Services"
        assert clean_text_value("Datex Labs", reject=('date',)) == "Datex Labs"
        assert clean_text_value("Exp 12/26", reject=('exp',)) is None
        assert clean_text_value("Mfg. Date", reject=('mfg',)) is None

    def test_long_values_keep_whole_words(self):
        value = clean_text_value("Samsung " * 12)
        assert value is not None
        assert len(value) <= 60
        assert value.endswith("Samsung")

    def test_code_value(self):
        assert clean_code_value(": abc123 extra") == "ABC123"
        assert clean_code_value("no code here") is None

    @pytest.mark.parametrize("raw,expected", [
        ("2 Years", "2 Years"),
        ("1 yr", "1 Year"),
        ("1+1 Years", "2 Years"),
        ("6 months", "6 Months"),
        ("lifetime", None),
    ])
    def test_period(self, raw, expected):
        assert normalize_period(raw) == expected
