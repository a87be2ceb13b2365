"""
Document extraction entry point.

Runs the whole pipeline for one OCR text:

    sanitize -> category -> label pass -> regex pass -> expiry keywords
             -> optional AI enrichment -> merge + privacy whitelist

Every pass works on sanitized text except category prediction, which needs
the raw wording (license indicators such as "union of india" sit next to
personal data). Extraction never raises on bad input.
"""

import logging
from datetime import date
from typing import List, Optional, Union

from expirycare.config import settings
from expirycare.models.document import Category, ConfidenceLevel, ExtractionRequest, ExtractionResponse
from expirycare.services.aggregator import ResultAggregator
from expirycare.services.category_predictor import CategoryPredictor
from expirycare.services.category_schemas import CategorySchemaRegistry
from expirycare.services.enrichment import (
    EnrichmentProvider,
    EnrichmentUnavailable,
    canonicalize_fields,
)
from expirycare.services.expiry_extractor import ExpiryFieldExtractor
from expirycare.services.field_extractor import FieldExtractionEngine
from expirycare.services.label_reader import LabelReader
from expirycare.services.sanitizer import PIISanitizer
from expirycare.utils.candidates import (
    CandidateSource,
    ExtractionCandidate,
    ExtractionResult,
    FieldValue,
    past_expiry_warning,
)
from expirycare.utils.dates import DateNormalizer

logger = logging.getLogger(__name__)


class DocumentExtractor:
    """Orchestrates the extraction passes for one document at a time."""

    HINT_CONFIDENCE = 100
    LICENSE_CONFIDENCE = 60

    def __init__(
        self,
        enrichment_provider: Optional[EnrichmentProvider] = None,
        today: Optional[date] = None,
        sanitizer: Optional[PIISanitizer] = None,
        predictor: Optional[CategoryPredictor] = None,
        registry: Optional[CategorySchemaRegistry] = None,
    ):
        normalizer = DateNormalizer(today)
        self.enrichment_provider = enrichment_provider
        self.sanitizer = sanitizer or PIISanitizer()
        self.predictor = predictor or CategoryPredictor()
        self.registry = registry or CategorySchemaRegistry()
        self.label_reader = LabelReader(normalizer)
        self.field_engine = FieldExtractionEngine(normalizer)
        self.expiry_extractor = ExpiryFieldExtractor(normalizer)
        self.aggregator = ResultAggregator(self.registry)

    def extract(
        self,
        raw_text: str,
        category_hint: Union[Category, str, None] = None
    ) -> ExtractionResult:
        """
        Extract the structured record from OCR text.

        Args:
            raw_text: OCR text as produced by the OCR collaborator
            category_hint: Category chosen by the user, if any

        Returns:
            ExtractionResult (category "other" with nothing found for empty input)
        """
        if not isinstance(raw_text, str) or not raw_text.strip():
            return ExtractionResult.empty()

        _debug = {
            'patterns_matched': {},
            'confidence_per_field': {},
            'warnings': [],
            'expiry_candidates': [],
        }

        sanitized = self.sanitizer.sanitize(raw_text)
        category, category_confidence = self._resolve_category(raw_text, category_hint)
        _debug['category'] = category.value

        candidates: List[ExtractionCandidate] = [
            ExtractionCandidate(
                CandidateSource.HEURISTIC, category,
                self.label_reader.read(sanitized, category, _debug=_debug),
            ),
            ExtractionCandidate(
                CandidateSource.REGEX, category,
                self.field_engine.extract_fields(sanitized, category, _debug=_debug),
            ),
        ]

        expiry = self.expiry_extractor.extract_expiry(sanitized, _debug=_debug)
        candidates.append(ExtractionCandidate(
            CandidateSource.KEYWORD, category, {'expiryDate': expiry},
        ))

        preliminary = self.aggregator.merge(candidates, category, category_confidence, _debug['warnings'])
        if self._has_gaps(preliminary):
            ai_candidate = self._enrich(sanitized, category, expiry)
            if ai_candidate is not None:
                candidates.append(ai_candidate)

        result = self.aggregator.merge(
            candidates, category, category_confidence, _debug['warnings'], debug=_debug,
        )

        logger.info(
            "Extraction complete",
            extra={
                "category": result.category.value,
                "category_confidence": result.category_confidence.confidence_score,
                "expiry_confidence": result.expiry_date.confidence_level.value,
                "fields": sorted(result.fields),
                "missing_required_fields": list(result.missing_required_fields),
                "warnings": len(result.warnings),
                "sources": _debug.get('sources', {}),
            }
        )
        if settings.DEBUG:
            logger.debug(
                "Extraction provenance",
                extra={
                    "patterns_matched": _debug['patterns_matched'],
                    "confidence_per_field": _debug['confidence_per_field'],
                }
            )
        return result

    def extract_request(self, request: ExtractionRequest) -> ExtractionResponse:
        """Wire-level entry point: request model in, response model out."""
        return self.extract(request.raw_text, request.category_hint).to_response()

    def _resolve_category(self, raw_text: str, category_hint) -> tuple:
        # Licenses are always "other": their fields are personal data
        if self.predictor.is_license_document(raw_text):
            return Category.OTHER, FieldValue(Category.OTHER.value, self.LICENSE_CONFIDENCE)

        if category_hint is not None:
            hinted = Category.coerce(category_hint)
            if hinted is not None:
                return hinted, FieldValue(hinted.value, self.HINT_CONFIDENCE)
            logger.warning("Ignoring unknown category hint", extra={"category_hint": str(category_hint)[:32]})

        category, confidence = self.predictor.predict_with_confidence(raw_text)
        return category, FieldValue(category.value, confidence)

    @staticmethod
    def _has_gaps(result: ExtractionResult) -> bool:
        return bool(result.missing_required_fields) or result.expiry_date.confidence_level != ConfidenceLevel.HIGH

    def _enrich(
        self,
        sanitized: str,
        category: Category,
        keyword_expiry: FieldValue
    ) -> Optional[ExtractionCandidate]:
        """Ask the enrichment provider for gap-filling fields; None on any failure."""
        if self.enrichment_provider is None or not sanitized:
            return None

        try:
            candidate = self.enrichment_provider.enrich(sanitized, category)
        except EnrichmentUnavailable as e:
            logger.warning("Enrichment unavailable: %s", e)
            return None
        except Exception:
            logger.warning("Enrichment provider failed", exc_info=True)
            return None

        if candidate is None:
            return None

        fields = canonicalize_fields(candidate.fields, category, self.registry)
        ai_expiry = fields.get('expiryDate')
        if ai_expiry is not None and not ai_expiry.is_empty:
            if not self.expiry_extractor.is_plausible(ai_expiry.value):
                logger.debug("Dropped implausible expiry from enrichment")
                fields.pop('expiryDate')
            elif keyword_expiry.is_empty and date.fromisoformat(ai_expiry.value) < self.expiry_extractor.today:
                candidate.warnings.append(past_expiry_warning(ai_expiry.value))

        return ExtractionCandidate(CandidateSource.AI, category, fields, list(candidate.warnings))


def extract(
    raw_text: str,
    category_hint: Union[Category, str, None] = None,
    enrichment_provider: Optional[EnrichmentProvider] = None,
    today: Optional[date] = None,
) -> ExtractionResult:
    """Convenience wrapper around DocumentExtractor.extract."""
    return DocumentExtractor(enrichment_provider=enrichment_provider, today=today).extract(raw_text, category_hint)
