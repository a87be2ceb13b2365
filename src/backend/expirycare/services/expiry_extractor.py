"""
Expiry date extraction.

Finds dates anchored by expiry keywords ("valid till", "exp", "best
before", ...) while ignoring dates labelled as issue, manufacturing, birth or
purchase dates. When no keyword is present a keyword-free scan picks the
most plausible date at Low confidence.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional

from expirycare.models.document import ConfidenceLevel
from expirycare.utils.candidates import (
    ExpiryCandidate,
    FieldValue,
    ambiguous_dates_warning,
    create_expiry_candidate,
    past_expiry_warning,
)
from expirycare.utils.dates import DATE_TOKEN_PATTERN, DateNormalizer, DatePrecision
from expirycare.utils.patterns import compile_phrases, phrase_pattern
from expirycare.utils.scoring import score_expiry_candidate, select_best_expiry, select_top_expiries
from expirycare.utils.text import normalize_ocr_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpiryKeyword:
    """An expiry keyword with its base confidence and scan window."""
    phrase: str
    base_score: int
    window: int
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(phrase_pattern(self.phrase), re.IGNORECASE))


class ExpiryFieldExtractor:
    """Keyword-proximity expiry extractor with exclusion and staleness guards."""

    # Most explicit phrases first; generic "exp" has the smallest window
    EXPIRY_KEYWORDS = [
        ExpiryKeyword('valid till', 95, 120),
        ExpiryKeyword('valid until', 95, 120),
        ExpiryKeyword('valid upto', 95, 120),
        ExpiryKeyword('valid up to', 95, 120),
        ExpiryKeyword('valid through', 93, 120),
        ExpiryKeyword('valid thru', 93, 120),
        ExpiryKeyword('expiry date', 94, 120),
        ExpiryKeyword('expiration date', 94, 120),
        ExpiryKeyword('date of expiry', 94, 120),
        ExpiryKeyword('expires on', 92, 120),
        ExpiryKeyword('exp date', 92, 80),
        ExpiryKeyword('exp dt', 90, 80),
        ExpiryKeyword('exp. date', 92, 80),
        ExpiryKeyword('subscription ends on', 93, 120),
        ExpiryKeyword('plan valid till', 93, 120),
        ExpiryKeyword('access valid till', 92, 120),
        ExpiryKeyword('membership valid up to', 93, 120),
        ExpiryKeyword('membership expiry', 91, 120),
        ExpiryKeyword('next renewal date', 90, 120),
        ExpiryKeyword('renewal due on', 90, 120),
        ExpiryKeyword('renewal date', 86, 100),
        ExpiryKeyword('billing cycle ends', 88, 120),
        ExpiryKeyword('warranty till', 92, 120),
        ExpiryKeyword('warranty upto', 92, 120),
        ExpiryKeyword('warranty up to', 92, 120),
        ExpiryKeyword('warranty expires', 92, 120),
        ExpiryKeyword('policy expiry', 92, 120),
        ExpiryKeyword('policy end date', 91, 120),
        ExpiryKeyword('amc valid till', 93, 120),
        ExpiryKeyword('best before', 90, 100),
        ExpiryKeyword('use before', 90, 100),
        ExpiryKeyword('use by', 88, 100),
        ExpiryKeyword('validity', 85, 80),
        ExpiryKeyword('expiry', 88, 60),
        ExpiryKeyword('expires', 88, 80),
        ExpiryKeyword('exp', 86, 50),
        ExpiryKeyword('bbd', 86, 50),
    ]

    # Dates labelled with any of these are never expiry dates
    EXCLUSION_KEYWORDS = [
        'date of issue', 'issued on', 'issue date', 'date issued', 'doi',
        'mfg date', 'mfg', 'mfd', 'manufacturing date', 'manufactured on', 'manufactured',
        'date of manufacture', 'made on', 'produced on', 'packed on', 'pkd',
        'date of birth', 'dob', 'd.o.b', 'birth date', 'born on',
        'purchase date', 'date of purchase', 'invoice date', 'bill date',
    ]

    # Preceding context inspected for the nearest label
    LABEL_LOOKBEHIND = 40
    # Trailing context inspected for keyword-free dates ("01/01/1990 (DOB)")
    LABEL_LOOKAHEAD = 20

    def __init__(self, normalizer: Optional[DateNormalizer] = None):
        self.normalizer = normalizer or DateNormalizer()
        self._exclusion_pattern = compile_phrases(self.EXCLUSION_KEYWORDS)
        self._expiry_pattern = compile_phrases(kw.phrase for kw in self.EXPIRY_KEYWORDS)

    @property
    def today(self) -> date:
        return self.normalizer.today

    def extract_expiry(self, text: str, _debug=None) -> FieldValue:
        """
        Extract the expiry date from sanitized OCR text.

        Args:
            text: Sanitized OCR text
            _debug: Optional debug dict receiving provenance and warnings

        Returns:
            FieldValue with ISO date (or None), score and anchoring keyword
        """
        if not text or not text.strip():
            return FieldValue.empty()

        try:
            text = normalize_ocr_text(text)

            anchored = self._keyword_candidates(text)
            keyword_candidates = [
                candidate for candidate in anchored
                if self.is_plausible(candidate.value)
            ]
            if keyword_candidates:
                candidates = keyword_candidates
                best, score = select_best_expiry(candidates)
                top = select_top_expiries(candidates, top_n=3)
            elif anchored:
                # A labelled expiry that is stale means no expiry, not an unlabelled guess
                logger.debug("Keyword-anchored expiry is stale", extra={"candidates": len(anchored)})
                return FieldValue.empty()
            else:
                # Fallback candidates arrive already ranked by closeness to today
                candidates = [
                    candidate for candidate in self._fallback_candidates(text)
                    if self.is_plausible(candidate.value)
                ]
                if not candidates:
                    logger.debug("No expiry date found")
                    return FieldValue.empty()
                top = [(c, score_expiry_candidate(c)) for c in candidates[:3]]
                best, score = top[0]

            self._record_warnings(best, score, keyword_candidates, _debug)

            if _debug is not None:
                _debug['patterns_matched']['expiryDate'] = best.pattern_name
                _debug['confidence_per_field']['expiryDate'] = score
                _debug['expiry_candidates'] = [
                    {'value': c.value, 'score': s, 'pattern': c.pattern_name}
                    for c, s in top
                ]

            return FieldValue(value=best.value, confidence_score=score, source_keyword=best.keyword)

        except (re.error, ValueError):
            logger.warning("Error extracting expiry date", exc_info=True)
            return FieldValue.empty()

    def is_plausible(self, iso_value: Optional[str]) -> bool:
        """Reject expiry dates more than a year before today (stale OCR)."""
        if not iso_value:
            return False
        try:
            value = date.fromisoformat(iso_value)
        except ValueError:
            return False
        return value >= self._one_year_before(self.today)

    def _keyword_candidates(self, text: str) -> List[ExpiryCandidate]:
        candidates: List[ExpiryCandidate] = []
        for keyword in self.EXPIRY_KEYWORDS:
            for match in keyword.compiled.finditer(text):
                tokens = self.normalizer.find_tokens(text, start=match.end(), limit=match.end() + keyword.window)
                for token in tokens:
                    start, end = token.start, token.end
                    if self._is_excluded(text, start, end, anchored=True):
                        continue
                    parsed = self.normalizer.parse(token.raw)
                    if not parsed:
                        continue
                    candidates.append(create_expiry_candidate(
                        value=parsed.iso,
                        pattern_name=keyword.phrase.replace(' ', '_'),
                        match_span=(start, end),
                        raw_text=token.raw,
                        keyword=keyword.phrase,
                        base_score=keyword.base_score,
                        keyword_end=match.end(),
                        precision=parsed.precision.value,
                    ))
                    # Only the first date after a keyword belongs to it
                    break
        return candidates

    def _fallback_candidates(self, text: str) -> List[ExpiryCandidate]:
        """Keyword-free scan: any labelled-safe date, nearest on/after today first."""
        candidates: List[ExpiryCandidate] = []
        for token in self.normalizer.find_tokens(text):
            if self._is_excluded(text, token.start, token.end, anchored=False):
                continue
            parsed = self.normalizer.parse(token.raw)
            if not parsed or parsed.precision == DatePrecision.YEAR:
                continue
            candidates.append(create_expiry_candidate(
                value=parsed.iso,
                pattern_name='fallback_scan',
                match_span=(token.start, token.end),
                raw_text=token.raw,
                keyword=None,
                base_score=0,
                keyword_end=None,
                precision=parsed.precision.value,
            ))

        # Future dates closest to today win; otherwise the most recent past date
        today = self.today
        candidates.sort(key=lambda c: self._fallback_rank(c.value, today))
        for rank, candidate in enumerate(candidates):
            candidate.distance = rank
        return candidates

    @staticmethod
    def _fallback_rank(iso_value: str, today: date):
        value = date.fromisoformat(iso_value)
        if value >= today:
            return (0, (value - today).days)
        return (1, (today - value).days)

    def _is_excluded(self, text: str, start: int, end: int, anchored: bool) -> bool:
        """
        True if the nearest label before the date is an exclusion keyword.

        Keyword-free dates are also excluded when an exclusion keyword
        follows them closely, as in "01/01/1990 (DOB)".
        """
        before = text[max(0, start - self.LABEL_LOOKBEHIND):start]
        last_exclusion = self._last_match_end(self._exclusion_pattern, before)
        last_expiry = self._last_match_end(self._expiry_pattern, before)
        if last_exclusion is not None and (last_expiry is None or last_exclusion > last_expiry):
            # A label only governs the first date after it
            if not DATE_TOKEN_PATTERN.search(before, last_exclusion):
                return True

        if not anchored and last_expiry is None:
            after = text[end:end + self.LABEL_LOOKAHEAD]
            if self._exclusion_pattern.search(after) and not self._expiry_pattern.search(after):
                return True
        return False

    @staticmethod
    def _last_match_end(pattern: re.Pattern, text: str) -> Optional[int]:
        last = None
        for match in pattern.finditer(text):
            last = match.end()
        return last

    def _record_warnings(
        self,
        best: ExpiryCandidate,
        score: int,
        keyword_candidates: List[ExpiryCandidate],
        _debug
    ) -> None:
        if _debug is None:
            return

        level = ConfidenceLevel.from_score(score)
        if not best.from_fallback:
            same_level: Dict[str, None] = {}
            for candidate, candidate_score in select_top_expiries(keyword_candidates, top_n=len(keyword_candidates)):
                if ConfidenceLevel.from_score(candidate_score) == level:
                    same_level.setdefault(candidate.value)
            if len(same_level) > 1:
                _debug['warnings'].append(ambiguous_dates_warning(list(same_level)))

        if date.fromisoformat(best.value) < self.today:
            _debug['warnings'].append(past_expiry_warning(best.value))

    @staticmethod
    def _one_year_before(today: date) -> date:
        try:
            return today.replace(year=today.year - 1)
        except ValueError:
            # 29 February
            return today - timedelta(days=365)
