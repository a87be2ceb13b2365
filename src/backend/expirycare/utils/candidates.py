"""
Candidate dataclasses for extraction scoring and merging.

FieldValue is the single canonical value type: every pass (heuristic, regex,
keyword, AI) reports its findings as FieldValues grouped in an
ExtractionCandidate, and the aggregator folds those into one ExtractionResult.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from expirycare.models.document import (
    Category,
    CategoryConfidenceOut,
    ConfidenceLevel,
    ExpiryDateOut,
    ExtractionResponse,
    FieldOut,
)


@dataclass(frozen=True)
class FieldValue:
    """An extracted value with its 0-100 confidence score."""
    value: Optional[str] = None
    confidence_score: int = 0
    source_keyword: Optional[str] = None

    def __post_init__(self):
        score = max(0, min(100, int(self.confidence_score)))
        if self.value is None:
            # Nothing found is never more than Low
            score = 0
        object.__setattr__(self, 'confidence_score', score)

    @property
    def confidence_level(self) -> ConfidenceLevel:
        return ConfidenceLevel.from_score(self.confidence_score)

    @property
    def is_empty(self) -> bool:
        return self.value is None

    @classmethod
    def empty(cls) -> "FieldValue":
        return cls()


class CandidateSource(str, Enum):
    """Where a candidate came from; lower rank wins during merge."""
    HEURISTIC = "heuristic"
    REGEX = "regex"
    KEYWORD = "keyword"
    AI = "ai"

    @property
    def rank(self) -> int:
        return SOURCE_PRECEDENCE[self]


SOURCE_PRECEDENCE = {
    CandidateSource.HEURISTIC: 1,
    CandidateSource.REGEX: 2,
    CandidateSource.KEYWORD: 3,
    CandidateSource.AI: 4,
}


@dataclass
class ExtractionCandidate:
    """Fields proposed by one extraction pass."""
    source: CandidateSource
    category: Category
    fields: Dict[str, FieldValue] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


@dataclass
class ExpiryCandidate:
    """
    A date found near (or without) an expiry keyword.

    Scoring factors:
    - base_score: Keyword strength (valid till > expiry date > exp)
    - distance: Characters between the keyword and the date
    - precision: day / month / year (coarser dates are capped)
    - from_fallback: Found by the keyword-free scan
    """
    value: str  # ISO format: YYYY-MM-DD
    pattern_name: str
    match_span: Tuple[int, int]
    raw_text: str = ""
    keyword: Optional[str] = None
    base_score: int = 0
    distance: int = 999
    precision: str = "day"
    from_fallback: bool = False


def create_expiry_candidate(
    value: str,
    pattern_name: str,
    match_span: Tuple[int, int],
    raw_text: str,
    keyword: Optional[str],
    base_score: int,
    keyword_end: Optional[int],
    precision: str,
) -> ExpiryCandidate:
    """
    Create ExpiryCandidate with the keyword distance computed.

    Args:
        value: ISO-formatted date
        pattern_name: Name of the keyword spec (or 'fallback_scan')
        match_span: Character span of the date token in the text
        raw_text: Date token as written
        keyword: Keyword that anchored the date, None for fallback
        base_score: Keyword base confidence
        keyword_end: End offset of the keyword match
        precision: 'day', 'month' or 'year'
    """
    start, _ = match_span
    distance = start - keyword_end if keyword_end is not None else 999
    return ExpiryCandidate(
        value=value,
        pattern_name=pattern_name,
        match_span=match_span,
        raw_text=raw_text,
        keyword=keyword,
        base_score=base_score,
        distance=max(0, distance),
        precision=precision,
        from_fallback=keyword is None,
    )


@dataclass(frozen=True)
class ExtractionResult:
    """Final, immutable output of one extraction request."""
    category: Category
    category_confidence: FieldValue
    expiry_date: FieldValue = field(default_factory=FieldValue)
    fields: Dict[str, FieldValue] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()
    missing_required_fields: Tuple[str, ...] = ()
    debug: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def empty(cls) -> "ExtractionResult":
        """Safe default for empty input: nothing found, no warning."""
        return cls(
            category=Category.OTHER,
            category_confidence=FieldValue(Category.OTHER.value, 0),
        )

    def to_response(self) -> ExtractionResponse:
        return ExtractionResponse(
            category=self.category,
            categoryConfidence=CategoryConfidenceOut(
                level=self.category_confidence.confidence_level,
                percentage=self.category_confidence.confidence_score,
            ),
            expiryDate=ExpiryDateOut(
                value=self.expiry_date.value,
                confidence=self.expiry_date.confidence_level,
                sourceKeyword=self.expiry_date.source_keyword,
            ),
            fields={
                name: FieldOut(value=fv.value, confidence=fv.confidence_level)
                for name, fv in self.fields.items()
            },
            warnings=list(self.warnings),
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.to_response().model_dump(by_alias=True, mode="json")


def ambiguous_dates_warning(values: List[str]) -> str:
    return "Multiple possible expiry dates found: " + ", ".join(values)


def past_expiry_warning(value: str) -> str:
    return f"Expiry date {value} is in the past; the document may already have expired"
