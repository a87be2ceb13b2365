"""
Category predictor: classifies raw OCR text into one of the six document
categories using weighted keywords, with a license-document override.
"""

import logging
from typing import Dict, List, Tuple

from expirycare.models.document import Category

logger = logging.getLogger(__name__)


class CategoryPredictor:
    """Keyword-weighted document classifier."""

    MIN_TEXT_LENGTH = 10
    SCORE_THRESHOLD = 10

    # Flat confidence: any real category vs. falling back to 'other'
    PREDICTED_CONFIDENCE = 85
    OTHER_CONFIDENCE = 60

    # Tie-break order when two categories score the same
    CATEGORY_ORDER = (
        Category.WARRANTY,
        Category.INSURANCE,
        Category.MEDICINE,
        Category.SUBSCRIPTION,
        Category.AMC,
        Category.OTHER,
    )

    # (keyword, weight); weights are distinct within a category
    CATEGORY_KEYWORDS: Dict[Category, List[Tuple[str, int]]] = {
        Category.WARRANTY: [
            ('warranty', 30),
            ('guarantee', 24),
            ('extended warranty', 19),
            ('warranty period', 18),
            ('warranty card', 16),
            ('date of purchase', 15),
            ('purchase date', 14),
            ('serial number', 13),
            ('serial no', 11),
            ('model no', 9),
            ('invoice', 4),
        ],
        Category.INSURANCE: [
            ('insurance', 29),
            ('policy number', 23),
            ('policy no', 21),
            ('insured', 20),
            ('sum insured', 17),
            ('premium', 10),
            ('policy', 8),
            ('nominee', 7),
            ('insurer', 6),
            ('claim', 3),
        ],
        Category.MEDICINE: [
            ('tablets', 28),
            ('tablet', 27),
            ('capsules', 26),
            ('capsule', 25),
            ('syrup', 22),
            ('medicine', 20),
            ('batch', 12),
            ('mg', 5),
            ('mfg', 4),
            ('pharma', 3),
            ('dosage', 2),
            ('ml', 1),
        ],
        Category.SUBSCRIPTION: [
            ('subscription', 31),
            ('membership', 26),
            ('renewal', 23),
            ('billing cycle', 22),
            ('auto-renew', 21),
            ('netflix', 32),
            ('spotify', 33),
            ('amazon prime', 34),
            ('hotstar', 35),
            ('youtube premium', 36),
            ('plan', 3),
        ],
        Category.AMC: [
            ('annual maintenance contract', 40),
            ('annual maintenance', 37),
            ('maintenance contract', 27),
            ('amc', 28),
            ('service contract', 24),
            ('preventive maintenance', 20),
            ('service visit', 13),
            ('maintenance', 6),
        ],
    }

    # Each entry is a group of phrases that must all appear to count
    LICENSE_INDICATORS: List[Tuple[str, ...]] = [
        ('driving licence',),
        ('driving license',),
        ('dl no',),
        ('dl number',),
        ('licence no',),
        ('license no',),
        ('licence number',),
        ('license number',),
        ('transport department',),
        ('class of vehicle',),
        ('issuing authority',),
        ('union of india',),
        ('date of issue',),
        ('valid till', 'driving'),
        ('valid till', 'transport'),
    ]
    LICENSE_MIN_MATCHES = 2

    def predict(self, raw_text: str) -> Category:
        """
        Predict the document category from raw (unsanitized) OCR text.

        Returns:
            The winning category, or Category.OTHER for short, unscored,
            or license-like text
        """
        if not self._has_enough_text(raw_text):
            return Category.OTHER

        if self.is_license_document(raw_text):
            logger.debug("License indicators matched, classifying as other")
            return Category.OTHER

        scores = self.score(raw_text)
        best_score = max(scores.values())
        if best_score < self.SCORE_THRESHOLD:
            return Category.OTHER

        for category in self.CATEGORY_ORDER:
            if scores.get(category, 0) == best_score:
                logger.debug(
                    "Predicted category",
                    extra={"category": category.value, "score": best_score}
                )
                return category
        return Category.OTHER

    def confidence(self, raw_text: str, category: Category) -> int:
        """Flat confidence for a predicted category (0 when nothing was scored)."""
        if not self._has_enough_text(raw_text):
            return 0
        return self.OTHER_CONFIDENCE if category == Category.OTHER else self.PREDICTED_CONFIDENCE

    def predict_with_confidence(self, raw_text: str) -> Tuple[Category, int]:
        category = self.predict(raw_text)
        return category, self.confidence(raw_text, category)

    def score(self, raw_text: str) -> Dict[Category, int]:
        """Sum keyword weights per category (case-insensitive substring match)."""
        lowered = (raw_text or '').lower()
        scores: Dict[Category, int] = {category: 0 for category in self.CATEGORY_ORDER}
        for category, keywords in self.CATEGORY_KEYWORDS.items():
            scores[category] = sum(weight for keyword, weight in keywords if keyword in lowered)
        return scores

    def is_license_document(self, raw_text: str) -> bool:
        """True when at least LICENSE_MIN_MATCHES license indicators appear."""
        lowered = (raw_text or '').lower()
        matches = sum(
            1 for phrases in self.LICENSE_INDICATORS
            if all(phrase in lowered for phrase in phrases)
        )
        return matches >= self.LICENSE_MIN_MATCHES

    def _has_enough_text(self, raw_text: str) -> bool:
        return isinstance(raw_text, str) and len(raw_text.strip()) >= self.MIN_TEXT_LENGTH
