"""
Heuristic label reader.

Reads OCR text line by line the way a person reads a label: when a line
starts with a known label ("Batch No.", "Insurer", "Plan"), the value is the
rest of the line, or the next line when the label stands alone (a common
OCR split). This pass runs first and takes precedence over the regex pass.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from expirycare.models.document import Category
from expirycare.utils.candidates import FieldValue
from expirycare.utils.dates import DateNormalizer, find_date_tokens
from expirycare.utils.text import (
    clean_code_value,
    clean_text_value,
    normalize_ocr_text,
    normalize_period,
)

logger = logging.getLogger(__name__)


def _label_regex(label: str) -> str:
    words = [re.escape(word) for word in label.split()]
    return r'[\s.]*'.join(words)


@dataclass(frozen=True)
class LabelRule:
    field_name: str
    labels: Tuple[str, ...]
    kind: str = 'text'  # text | code | date | period
    compiled: Tuple[Tuple[str, re.Pattern], ...] = field(default=(), init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', tuple(
            (label, re.compile(
                r'^[\W_]*(?P<label>' + _label_regex(label) + r')(?![a-z])\s*[:.\-#)]*\s*(?P<rest>.*)$',
                re.IGNORECASE,
            ))
            for label in self.labels
        ))


class LabelReader:
    """Line-oriented, per-category label heuristics."""

    SAME_LINE_SCORE = 90
    NEXT_LINE_SCORE = 72

    RULES: Dict[Category, Tuple[LabelRule, ...]] = {
        Category.WARRANTY: (
            LabelRule('productName', ('product name', 'product', 'model name', 'item name', 'item')),
            LabelRule('brand', ('brand name', 'brand', 'manufacturer')),
            LabelRule('serialNumber', ('serial no', 'serial number', 'sr no', 's/n'), 'code'),
            LabelRule('warrantyPeriod', ('warranty period', 'warranty duration'), 'period'),
            LabelRule('purchaseDate', ('purchase date', 'date of purchase', 'invoice date', 'bill date'), 'date'),
        ),
        Category.INSURANCE: (
            LabelRule('policyType', ('policy type', 'type of policy', 'plan name', 'product name')),
            LabelRule('provider', ('insurer name', 'insurer', 'insurance company', 'insurance provider')),
            LabelRule('policyNumber', ('policy no', 'policy number', 'policy #', 'certificate no'), 'code'),
        ),
        Category.AMC: (
            LabelRule('serviceProvider', ('service provider', 'serviced by', 'provider', 'vendor')),
            LabelRule('productName', ('product name', 'product', 'appliance', 'equipment')),
            LabelRule('contractNumber', ('contract no', 'contract number', 'amc no', 'amc number'), 'code'),
            LabelRule('serviceType', ('service type', 'type of service', 'contract type', 'amc type')),
        ),
        Category.SUBSCRIPTION: (
            LabelRule('serviceName', ('service name', 'service', 'platform', 'subscription')),
            LabelRule('plan', ('plan name', 'plan type', 'plan', 'package')),
            LabelRule('subscriptionId', ('subscription id', 'membership id', 'member id', 'subscription no'), 'code'),
        ),
        Category.MEDICINE: (
            LabelRule('medicineName', ('medicine name', 'medicine', 'drug name', 'brand name', 'product name')),
            LabelRule('manufacturer', ('manufactured by', 'mfd by', 'mfd. by', 'mfg by', 'mfg. by',
                                       'marketed by', 'mkt by', 'manufacturer')),
            LabelRule('batchNumber', ('batch no', 'batch number', 'batch', 'b.no', 'lot no', 'lot'), 'code'),
            LabelRule('manufacturingDate', ('mfg date', 'mfg', 'mfd', 'manufacturing date',
                                            'date of manufacture'), 'date'),
        ),
        Category.OTHER: (),
    }

    def __init__(self, normalizer: Optional[DateNormalizer] = None):
        self.normalizer = normalizer or DateNormalizer()

    def read(self, sanitized_text: str, category: Category, _debug=None) -> Dict[str, FieldValue]:
        """
        Read labelled values for the category's fields.

        Returns:
            Mapping of field name to FieldValue (first labelled occurrence wins)
        """
        rules = self.RULES.get(category, ())
        if not rules or not sanitized_text:
            return {}

        lines = [line.strip() for line in normalize_ocr_text(sanitized_text).split('\n')]
        fields: Dict[str, FieldValue] = {}
        for index, line in enumerate(lines):
            hit = self._match_label(line, rules)
            if hit is None:
                continue
            rule, label, rest = hit
            if rule.field_name in fields:
                continue

            value = self._read_value(rest, rule)
            score = self.SAME_LINE_SCORE
            if value is None and not rest and index + 1 < len(lines):
                next_line = lines[index + 1]
                if self._match_label(next_line, rules) is None:
                    value = self._read_value(next_line, rule)
                    score = self.NEXT_LINE_SCORE
            if value is None:
                continue

            fields[rule.field_name] = FieldValue(value, score, label)
            if _debug is not None:
                _debug['patterns_matched'][rule.field_name] = f"label:{label}"
                _debug['confidence_per_field'][rule.field_name] = score

        logger.debug("Label reader found fields", extra={"category": category.value, "fields": sorted(fields)})
        return fields

    @staticmethod
    def _match_label(line: str, rules) -> Optional[Tuple[LabelRule, str, str]]:
        """Return the rule whose label is the longest match at the start of the line."""
        best: Optional[Tuple[LabelRule, str, str]] = None
        best_length = 0
        for rule in rules:
            for label, pattern in rule.compiled:
                match = pattern.match(line)
                if match and len(match.group('label')) > best_length:
                    best = (rule, label, match.group('rest').strip())
                    best_length = len(match.group('label'))
        return best

    def _read_value(self, raw: str, rule: LabelRule) -> Optional[str]:
        if not raw:
            return None
        if rule.kind == 'code':
            return clean_code_value(raw)
        if rule.kind == 'period':
            return normalize_period(raw)
        if rule.kind == 'date':
            for token in find_date_tokens(raw):
                value = self.normalizer.normalize(token.raw)
                if value:
                    return value
            return None
        return clean_text_value(raw, reject=self._text_rejects())

    @staticmethod
    def _text_rejects() -> List[str]:
        return [
            'batch', 'exp', 'expiry', 'expires', 'mfg', 'mfd', 'date', 'dated', 'valid', 'validity',
            'invoice', 'policy no', 'serial',
        ]
