"""
Document categories, confidence levels and the pydantic models for the
extraction request/response wire shape.
"""

from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator


class Category(str, Enum):
    """Closed set of document categories."""
    WARRANTY = "warranty"
    INSURANCE = "insurance"
    AMC = "amc"
    SUBSCRIPTION = "subscription"
    MEDICINE = "medicine"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Union["Category", str, None]) -> Optional["Category"]:
        """Return the matching category, or None for unknown/empty values."""
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class ConfidenceLevel(str, Enum):
    """Coarse confidence bucket derived from a 0-100 score."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def from_score(cls, score: int) -> "ConfidenceLevel":
        if score >= HIGH_CONFIDENCE_MIN:
            return cls.HIGH
        if score >= MEDIUM_CONFIDENCE_MIN:
            return cls.MEDIUM
        return cls.LOW


HIGH_CONFIDENCE_MIN = 85
MEDIUM_CONFIDENCE_MIN = 60


class ExtractionRequest(BaseModel):
    """Input to the extraction engine."""
    raw_text: str = Field("", alias="rawText")
    category_hint: Optional[Category] = Field(None, alias="categoryHint")

    class Config:
        populate_by_name = True


class CategoryConfidenceOut(BaseModel):
    level: ConfidenceLevel
    percentage: int


class ExpiryDateOut(BaseModel):
    value: Optional[str] = None
    confidence: ConfidenceLevel = ConfidenceLevel.LOW
    source_keyword: Optional[str] = Field(None, alias="sourceKeyword")

    class Config:
        populate_by_name = True


class FieldOut(BaseModel):
    value: Optional[str] = None
    confidence: ConfidenceLevel = ConfidenceLevel.LOW


class ExtractionResponse(BaseModel):
    """Serialized extraction result returned to callers."""
    category: Category
    category_confidence: CategoryConfidenceOut = Field(alias="categoryConfidence")
    expiry_date: ExpiryDateOut = Field(alias="expiryDate")
    fields: Dict[str, FieldOut] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class EnrichmentField(BaseModel):
    """A single field proposed by the AI enrichment service."""
    value: Optional[str] = None
    confidence_score: int = Field(0, alias="confidenceScore", ge=0, le=100)
    source_keyword: Optional[str] = Field(None, alias="sourceKeyword")

    class Config:
        populate_by_name = True

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _level_to_score(cls, value):
        # Services sometimes answer with a level name instead of a number
        if isinstance(value, str) and not value.strip().isdigit():
            return ENRICHMENT_LEVEL_SCORES.get(value.strip().lower(), 0)
        return value

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None


ENRICHMENT_LEVEL_SCORES = {"high": 90, "medium": 70, "low": 40}


class EnrichmentPayload(BaseModel):
    """Body returned by the AI enrichment service."""
    category: Optional[str] = None
    fields: Dict[str, EnrichmentField] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)
