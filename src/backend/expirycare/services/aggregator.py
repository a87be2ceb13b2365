"""
Candidate merging.

Folds the candidates of every extraction pass into one ExtractionResult.
Sources are walked in precedence order (heuristic, regex, keyword, ai) and
the first source with a value wins the field, so AI output only fills gaps.
The category whitelist is applied last.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from expirycare.models.document import Category
from expirycare.services.category_schemas import CategorySchemaRegistry
from expirycare.utils.candidates import (
    CandidateSource,
    ExtractionCandidate,
    ExtractionResult,
    FieldValue,
)

logger = logging.getLogger(__name__)


class ResultAggregator:
    """Merge per-source candidates into the final record."""

    def __init__(self, registry: Optional[CategorySchemaRegistry] = None):
        self.registry = registry or CategorySchemaRegistry()

    def merge(
        self,
        candidates: Iterable[ExtractionCandidate],
        category: Category,
        category_confidence: FieldValue,
        warnings: Optional[Iterable[str]] = None,
        debug: Optional[dict] = None,
    ) -> ExtractionResult:
        """
        Merge candidates for one document.

        Args:
            candidates: Candidates from any passes, in any order
            category: Final document category
            category_confidence: Category label with its confidence score
            warnings: Warnings raised outside the candidates
            debug: Optional debug dict receiving field provenance

        Returns:
            ExtractionResult restricted to the category's allowed fields
        """
        candidates = list(candidates)
        chosen: Dict[str, Tuple[FieldValue, CandidateSource]] = {}

        ordered = sorted(enumerate(candidates), key=lambda item: (item[1].source.rank, item[0]))
        for _, candidate in ordered:
            for name, field_value in candidate.fields.items():
                if field_value is None or field_value.is_empty:
                    continue
                name = self.registry.canonical_field_name(category, name)
                current = chosen.get(name)
                if current is None:
                    chosen[name] = (field_value, candidate.source)
                    continue
                current_value, current_source = current
                # A lower tier never overrides; within a tier the stronger score wins
                if (candidate.source == current_source
                        and field_value.confidence_score > current_value.confidence_score):
                    chosen[name] = (field_value, candidate.source)

        merged_warnings = self._union_warnings(warnings or (), candidates)

        fields = self.registry.sanitize_fields(category, {name: fv for name, (fv, _) in chosen.items()})
        expiry = fields.pop('expiryDate', FieldValue.empty())
        missing = self.registry.missing_required_fields(category, {**fields, 'expiryDate': expiry})

        if debug is not None:
            debug['sources'] = {
                name: source.value for name, (_, source) in chosen.items()
                if name in fields or (name == 'expiryDate' and not expiry.is_empty)
            }
            debug['missing_required_fields'] = missing

        logger.debug(
            "Merged candidates",
            extra={
                "category": category.value,
                "candidates": len(candidates),
                "fields": sorted(fields),
                "missing": missing,
            }
        )

        return ExtractionResult(
            category=category,
            category_confidence=category_confidence,
            expiry_date=expiry,
            fields=fields,
            warnings=tuple(merged_warnings),
            missing_required_fields=tuple(missing),
            debug=debug if debug is not None else {},
        )

    @staticmethod
    def _union_warnings(extra: Iterable[str], candidates: List[ExtractionCandidate]) -> List[str]:
        seen = {}
        for warning in extra:
            seen.setdefault(warning)
        for candidate in candidates:
            for warning in candidate.warnings:
                seen.setdefault(warning)
        return [warning for warning in seen if warning]
