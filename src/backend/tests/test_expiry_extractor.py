"""
Test suite for keyword-proximity expiry extraction.

Tests cover:
- Keyword-anchored dates and their confidence levels
- Exclusion of manufacturing / issue / birth dates
- Keyword-free fallback at Low confidence
- Staleness guard and past-expiry / ambiguity warnings
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from datetime import date

import pytest

from expirycare.models.document import ConfidenceLevel
from expirycare.services.expiry_extractor import ExpiryFieldExtractor
from expirycare.utils.dates import DateNormalizer


def make_debug():
    return {'patterns_matched': {}, 'confidence_per_field': {}, 'warnings': [], 'expiry_candidates': []}


@pytest.fixture
def extractor():
    return ExpiryFieldExtractor(DateNormalizer(date(2024, 6, 1)))


class TestKeywordAnchoredDates:

    def test_exp_label(self, extractor):
        result = extractor.extract_expiry("Paracetamol 500mg EXP: 31/12/2024 BATCH: ABC123")
        assert result.value == "2024-12-31"
        assert result.confidence_level == ConfidenceLevel.HIGH
        assert result.source_keyword == "exp"

    def test_valid_till(self, extractor):
        result = extractor.extract_expiry("Policy valid till 15 Aug 2026")
        assert result.value == "2026-08-15"
        assert result.confidence_score == 95
        assert result.source_keyword == "valid till"

    def test_month_only_date_is_medium(self, extractor):
        result = extractor.extract_expiry("EXP 08/2026")
        assert result.value == "2026-08-31"
        assert result.confidence_level == ConfidenceLevel.MEDIUM

    def test_ocr_damaged_keyword_and_date(self, extractor):
        result = extractor.extract_expiry("E X P : 3O/12/2O26")
        assert result.value == "2026-12-30"

    def test_debug_provenance(self, extractor):
        _debug = make_debug()
        extractor.extract_expiry("Valid till 31/12/2025", _debug=_debug)
        assert _debug['patterns_matched']['expiryDate'] == "valid_till"
        assert _debug['confidence_per_field']['expiryDate'] == 95
        assert _debug['expiry_candidates'][0]['value'] == "2025-12-31"


class TestExclusions:

    def test_manufacturing_date_ignored(self, extractor):
        result = extractor.extract_expiry("Mfg Date: 01/01/2024 Exp Date: 31/12/2025")
        assert result.value == "2025-12-31"
        assert result.source_keyword == "exp date"

    def test_only_manufacturing_date(self, extractor):
        result = extractor.extract_expiry("Mfg Date: 01/01/2024")
        assert result.is_empty
        assert result.confidence_level == ConfidenceLevel.LOW

    def test_issue_date_ignored_in_fallback(self, extractor):
        result = extractor.extract_expiry("Date of Issue: 10/10/2024\nRef 15/03/2026")
        assert result.value == "2026-03-15"


class TestFallback:

    def test_keyword_free_date_is_low(self, extractor):
        result = extractor.extract_expiry("Document ref 15/03/2026")
        assert result.value == "2026-03-15"
        assert result.confidence_level == ConfidenceLevel.LOW
        assert result.source_keyword is None

    def test_nearest_future_date_wins(self, extractor):
        result = extractor.extract_expiry("Ref 15/03/2027 and 20/07/2024 and 01/01/2024")
        assert result.value == "2024-07-20"

    def test_no_dates(self, extractor):
        assert extractor.extract_expiry("nothing to see here").is_empty

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input(self, extractor, text):
        result = extractor.extract_expiry(text)
        assert result.value is None
        assert result.confidence_score == 0


class TestGuardsAndWarnings:

    def test_stale_date_rejected(self, extractor):
        assert extractor.extract_expiry("Valid till 31/12/2019").is_empty

    def test_plausibility(self, extractor):
        assert extractor.is_plausible("2023-06-01")
        assert not extractor.is_plausible("2023-05-31")
        assert not extractor.is_plausible("not-a-date")
        assert not extractor.is_plausible(None)

    def test_recent_past_date_warns(self):
        extractor = ExpiryFieldExtractor(DateNormalizer(date(2022, 6, 1)))
        _debug = make_debug()
        result = extractor.extract_expiry("Warranty Card Valid up to Date: 22-02-2022", _debug=_debug)
        assert result.value == "2022-02-22"
        assert any("past" in warning for warning in _debug['warnings'])

    def test_ambiguous_dates_warn(self, extractor):
        _debug = make_debug()
        result = extractor.extract_expiry(
            "Valid till 31/12/2025\nExpiry Date: 30/06/2026", _debug=_debug
        )
        assert result.value == "2025-12-31"
        assert any("2025-12-31" in w and "2026-06-30" in w for w in _debug['warnings'])

    def test_same_date_twice_is_not_ambiguous(self, extractor):
        _debug = make_debug()
        extractor.extract_expiry("Exp Date: 31/12/2025", _debug=_debug)
        assert _debug['warnings'] == []

    def test_birth_date_never_expiry(self, extractor):
        assert extractor.extract_expiry("Date of Birth: 15/08/2024").is_empty
        assert extractor.extract_expiry("15/08/2024 (date of birth)").is_empty

    def test_stale_keyword_date_does_not_fall_back(self, extractor):
        assert extractor.extract_expiry("EXP: 01/2020\nPrinted 15/09/2024").is_empty

    def test_month_first_date(self, extractor):
        result = extractor.extract_expiry("Valid till Dec 31, 2025")
        assert result.value == "2025-12-31"
        assert result.source_keyword == "valid till"
        assert result.confidence_level == ConfidenceLevel.HIGH
