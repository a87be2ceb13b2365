"""
Category-specific field extraction with ordered regex patterns.

Every category has its own sub-extractor. For each field the patterns are
tried most specific first (labelled value → known names → shape heuristics)
and the first plausible match wins.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from expirycare.models.document import Category
from expirycare.utils.candidates import FieldValue
from expirycare.utils.dates import MONTH_NAME, DateNormalizer
from expirycare.utils.patterns import PatternSpec
from expirycare.utils.text import (
    clean_code_value,
    clean_text_value,
    normalize_ocr_text,
    normalize_period,
    title_case,
)

logger = logging.getLogger(__name__)

# Date token (any supported shape) for use inside labelled patterns
_DATE_VALUE = (
    r'(?P<value>\d{1,2}\s?[/\-.]\s?\d{1,2}\s?[/\-.]\s?(?:\d{4}|\d{2})'
    r'|\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}'
    r'|\d{1,2}(?:st|nd|rd|th)?[\s\-/.,]*' + MONTH_NAME + r"\.?[\s\-/.,']*(?:\d{4}|\d{2})"
    r'|' + MONTH_NAME + r"\.?[\s\-/.,']*(?:\d{4}|\d{2})"
    r'|\d{1,2}[/\-.]\d{4}'
    r'|\d{1,2}[/\-]\d{2})(?!\d)'
)
_SEP = r'\s*[:\-#.]?\s*'
_TEXT_SEP = r'\s*[:\-]\s*'
_TEXT_VALUE = r'(?P<value>[A-Za-z0-9][^\n|]{1,80})'
_CODE_VALUE = r'(?P<value>[A-Za-z0-9][A-Za-z0-9\-/]{2,29})'

PRODUCT_TYPES = (
    r'(?:TV|LED\s+TV|Smart\s+TV|Television|AC|Air\s+Conditioner|Refrigerator|Fridge|Washing\s+Machine'
    r'|Microwave(?:\s+Oven)?|Oven|Water\s+Purifier|Geyser|Water\s+Heater|Laptop|Smartphone|Phone|Mobile'
    r'|Tablet|Headphones|Earbuds|Speaker|Smart\s*Watch|Watch|Camera|Mixer(?:\s+Grinder)?|Chimney'
    r'|Inverter|Air\s+Purifier|Vacuum\s+Cleaner|Dishwasher|Printer|Monitor)'
)

KNOWN_BRANDS = (
    'Samsung', 'LG', 'Sony', 'Panasonic', 'Whirlpool', 'Godrej', 'Voltas', 'Daikin', 'Hitachi',
    'Carrier', 'Apple', 'Philips', 'Bosch', 'Haier', 'Lenovo', 'Dell', 'HP', 'Asus', 'Acer',
    'Xiaomi', 'OnePlus', 'Havells', 'Bajaj', 'Prestige', 'Blue Star', 'IFB', 'Kent',
)

KNOWN_INSURERS = (
    'LIC', 'Life Insurance Corporation of India', 'HDFC ERGO', 'HDFC Life', 'ICICI Lombard',
    'ICICI Prudential', 'Bajaj Allianz', 'Reliance General', 'Star Health', 'New India Assurance',
    'Oriental Insurance', 'United India', 'National Insurance', 'Tata AIG', 'SBI General', 'SBI Life',
    'Max Life', 'Care Health', 'Niva Bupa', 'Go Digit', 'Acko', 'Kotak Mahindra',
)

KNOWN_SERVICES = (
    'Netflix', 'Amazon Prime', 'Prime Video', 'Disney+ Hotstar', 'Disney Hotstar', 'JioHotstar',
    'Hotstar', 'Spotify', 'YouTube Premium', 'YouTube Music', 'Zee5', 'SonyLIV', 'Apple Music',
    'Apple TV+', 'iCloud+', 'Google One', 'Microsoft 365', 'Office 365', 'Adobe Creative Cloud',
    'Canva Pro', 'LinkedIn Premium', 'Audible', 'Kindle Unlimited', 'JioSaavn', 'Gaana',
    'Swiggy One', 'Zomato Gold', 'JioCinema',
)

POLICY_TYPES = (
    'Health Insurance', 'Life Insurance', 'Term Insurance', 'Term Plan', 'Motor Insurance',
    'Car Insurance', 'Vehicle Insurance', 'Two Wheeler Insurance', 'Bike Insurance',
    'Travel Insurance', 'Home Insurance', 'Personal Accident', 'Critical Illness',
    'Mediclaim', 'Endowment Plan', 'ULIP',
)

SERVICE_TYPES = (
    'Comprehensive', 'Non-Comprehensive', 'Non Comprehensive', 'Preventive Maintenance',
    'Annual Maintenance', 'Breakdown Maintenance', 'Labour Only', 'Parts and Labour',
    'Repair Service', 'Service Contract',
)

DOCUMENT_TYPES: List[Tuple[str, str, int]] = [
    # (pattern, display name, score)
    (r'driving\s+licen[cs]e', 'Driving License', 88),
    (r'passport', 'Passport', 80),
    (r'voter\s*(?:id|identity)|election\s+commission', 'Voter ID', 80),
    (r'ration\s+card', 'Ration Card', 78),
    (r'(?:pan|permanent\s+account\s+number)\s+card', 'PAN Card', 78),
    (r'certificate', 'Certificate', 65),
    (r'licen[cs]e', 'License', 62),
]


def _alternation(names) -> str:
    ordered = sorted(names, key=len, reverse=True)
    return '|'.join(re.escape(name).replace(r'\ ', r'\s+') for name in ordered)


@dataclass(frozen=True)
class FieldRule:
    """How to extract one field: ordered patterns plus a value cleaner."""
    field_name: str
    patterns: Tuple[PatternSpec, ...]
    kind: str = 'text'  # text | code | date | period
    reject: Tuple[str, ...] = ()
    vocabulary: Tuple[str, ...] = ()  # canonical spellings for known_* matches


class FieldExtractionEngine:
    """Dispatches sanitized text to a category-specific sub-extractor."""

    # Pattern priority → confidence score
    PRIORITY_SCORES = {1: 88, 2: 78, 3: 66, 4: 55, 5: 45}

    NAME_REJECT = (
        'batch', 'invoice', 'exp', 'expiry', 'expires', 'expiration', 'mfg', 'mfd', 'manufactured',
        'date', 'dated', 'lic no', 'price', 'mrp', 'store', 'keep', 'protect', 'protected',
        'warning', 'caution', 'dosage', 'composition', 'each', 'schedule', 'policy', 'valid',
        'validity', 'serial', 'warranty card', 'customer', 'tax', 'gst',
    )

    WARRANTY_RULES = (
        FieldRule('productName', (
            PatternSpec('labelled_product',
                        r'\b(?P<label>product(?:\s+name)?|item(?:\s+name)?|model\s+name|appliance)' + _TEXT_SEP + _TEXT_VALUE,
                        example='Product Name: Galaxy S23', priority=1),
            PatternSpec('product_type',
                        r'(?P<value>\b[A-Z][A-Za-z0-9\-]*(?:\s+[A-Za-z0-9][A-Za-z0-9\-.]*){0,4}\s+'
                        r'(?i:' + PRODUCT_TYPES + r'))\b',
                        example='Samsung 55 inch Smart TV', priority=2, flags=0),
        ), reject=NAME_REJECT),
        FieldRule('brand', (
            PatternSpec('labelled_brand',
                        r'\b(?P<label>brand(?:\s+name)?|manufacturer)' + _TEXT_SEP + _TEXT_VALUE,
                        example='Brand: Samsung', priority=1),
            PatternSpec('known_brand',
                        r'\b(?P<value>' + _alternation(KNOWN_BRANDS) + r')\b',
                        example='SAMSUNG WARRANTY CARD', priority=2),
            PatternSpec('company_suffix',
                        r'(?P<value>\b[A-Z][A-Za-z&.\-]*(?:\s+[A-Z][A-Za-z&.\-]*){0,4}\s+'
                        r'(?i:pvt\.?\s*ltd\.?|private\s+limited|ltd\.?|limited|inc\.?|corp\.?|llc))',
                        example='Voltas Limited', priority=3, flags=0),
        ), reject=NAME_REJECT, vocabulary=KNOWN_BRANDS),
        FieldRule('warrantyPeriod', (
            PatternSpec('period_then_warranty',
                        r'(?P<value>\d{1,2}\s*(?:\+\s*\d{1,2}\s*)?(?:years?|yrs?|months?|mths?))\s*'
                        r'(?:of\s+)?(?:comprehensive\s+|extended\s+|standard\s+)?(?P<label>warranty|guarantee)',
                        example='2 Years Warranty', priority=1),
            PatternSpec('warranty_then_period',
                        r'\b(?P<label>warranty|guarantee)\s*(?:period)?' + _SEP + r'(?:of\s+)?'
                        r'(?P<value>\d{1,2}\s*(?:\+\s*\d{1,2}\s*)?(?:years?|yrs?|months?|mths?))',
                        example='Warranty Period: 1 Year', priority=1),
        ), kind='period'),
        FieldRule('serialNumber', (
            PatternSpec('labelled_serial',
                        r'\b(?P<label>serial\s*(?:no\.?|number|#)?|s/n|sr\.?\s*no\.?)' + _SEP + _CODE_VALUE,
                        example='Serial No: SN12345678', priority=1),
        ), kind='code'),
        FieldRule('purchaseDate', (
            PatternSpec('labelled_purchase_date',
                        r'\b(?P<label>(?:date\s+of\s+)?purchase(?:\s+date)?|invoice\s+date|bill\s+date)' + _SEP + _DATE_VALUE,
                        example='Purchase Date: 12/03/2024', priority=1),
        ), kind='date'),
    )

    INSURANCE_RULES = (
        FieldRule('policyType', (
            PatternSpec('labelled_policy_type',
                        r'\b(?P<label>policy\s+type|type\s+of\s+policy|plan\s+type|product\s+name)' + _TEXT_SEP + _TEXT_VALUE,
                        example='Policy Type: Health Insurance', priority=1),
            PatternSpec('known_policy_type',
                        r'\b(?P<value>' + _alternation(POLICY_TYPES) + r')\b',
                        example='Family Health Insurance Policy', priority=2),
        ), reject=NAME_REJECT, vocabulary=POLICY_TYPES),
        FieldRule('provider', (
            PatternSpec('labelled_insurer',
                        r'\b(?P<label>insurer(?:\s+name)?|insurance\s+company|insurance\s+provider|provider(?:\s+name)?)'
                        + _TEXT_SEP + _TEXT_VALUE,
                        example='Insurer: Star Health', priority=1),
            PatternSpec('known_insurer',
                        r'\b(?P<value>' + _alternation(KNOWN_INSURERS) + r')\b',
                        example='HDFC ERGO General Insurance', priority=2),
            PatternSpec('insurance_company_suffix',
                        r'(?P<value>\b[A-Z][A-Za-z&.\-]*(?:\s+[A-Z][A-Za-z&.\-]*){0,4}\s+'
                        r'(?i:insurance|assurance)(?:\s+(?i:co\.?|company))?(?:\s+(?i:ltd\.?|limited))?)',
                        example='Oriental Insurance Company Limited', priority=3, flags=0),
        ), reject=NAME_REJECT, vocabulary=KNOWN_INSURERS),
        FieldRule('policyNumber', (
            PatternSpec('labelled_policy_number',
                        r'\b(?P<label>policy\s*(?:no\.?|number|#|id)|certificate\s*(?:no\.?|number))' + _SEP + _CODE_VALUE,
                        example='Policy No: 2345/678901/00', priority=1),
        ), kind='code'),
    )

    AMC_RULES = (
        FieldRule('serviceProvider', (
            PatternSpec('labelled_provider',
                        r'\b(?P<label>service\s+provider|service\s+company|serviced\s+by|provider|vendor)' + _TEXT_SEP + _TEXT_VALUE,
                        example='Service Provider: Urban Company', priority=1),
            PatternSpec('company_suffix',
                        r'(?P<value>\b[A-Z][A-Za-z&.\-]*(?:\s+[A-Z][A-Za-z&.\-]*){0,4}\s+'
                        r'(?i:services|pvt\.?\s*ltd\.?|private\s+limited|ltd\.?|limited|enterprises|solutions))',
                        example='CoolCare Services', priority=3, flags=0),
        ), reject=NAME_REJECT),
        FieldRule('productName', (
            PatternSpec('labelled_product',
                        r'\b(?P<label>product|appliance|equipment|machine|model)' + _TEXT_SEP + _TEXT_VALUE,
                        example='Appliance: Split AC 1.5 Ton', priority=1),
            PatternSpec('product_type',
                        r'(?P<value>\b[A-Z][A-Za-z0-9\-.]*(?:\s+[A-Za-z0-9][A-Za-z0-9\-.]*){0,4}\s+'
                        r'(?i:' + PRODUCT_TYPES + r'))\b',
                        example='Voltas Split AC', priority=2, flags=0),
        ), reject=NAME_REJECT),
        FieldRule('contractNumber', (
            PatternSpec('labelled_contract',
                        r'\b(?P<label>(?:contract|amc)\s*(?:no\.?|number|#|id))' + _SEP + _CODE_VALUE,
                        example='Contract No: AMC-2024-0012', priority=1),
        ), kind='code'),
        FieldRule('serviceType', (
            PatternSpec('labelled_service_type',
                        r'\b(?P<label>service\s+type|type\s+of\s+service|contract\s+type|amc\s+type)' + _TEXT_SEP + _TEXT_VALUE,
                        example='AMC Type: Comprehensive', priority=1),
            PatternSpec('known_service_type',
                        r'\b(?P<value>' + _alternation(SERVICE_TYPES) + r')\b',
                        example='Comprehensive AMC', priority=2),
        ), reject=NAME_REJECT, vocabulary=SERVICE_TYPES),
    )

    SUBSCRIPTION_RULES = (
        FieldRule('serviceName', (
            PatternSpec('known_service',
                        r'(?<![A-Za-z])(?P<value>' + _alternation(KNOWN_SERVICES) + r')(?![A-Za-z])',
                        example='Netflix Premium Plan', priority=1),
            PatternSpec('labelled_service',
                        r'\b(?P<label>service(?:\s+name)?|platform|app(?:\s+name)?|subscription\s+to)\s*[:\-]\s*' + _TEXT_VALUE,
                        example='Service: Cult.fit', priority=2),
        ), reject=NAME_REJECT, vocabulary=KNOWN_SERVICES),
        FieldRule('plan', (
            PatternSpec('labelled_plan',
                        r'\b(?P<label>plan(?:\s+name|\s+type)?|package|tier)\s*[:\-]\s*' + _TEXT_VALUE,
                        example='Plan: Premium', priority=1),
            PatternSpec('named_plan',
                        r'\b(?P<value>basic|standard|premium|family|individual|student|mobile|super|pro|duo)\s+'
                        r'(?:plan|membership|tier|subscription|pack)\b',
                        example='Premium Plan', priority=2),
            PatternSpec('billing_period_plan',
                        r'\b(?P<value>annual|monthly|quarterly|yearly|half[\s\-]yearly)\s+'
                        r'(?:plan|subscription|membership|pack)\b',
                        example='Annual Subscription', priority=3),
        ), reject=NAME_REJECT),
        FieldRule('subscriptionId', (
            PatternSpec('labelled_subscription_id',
                        r'\b(?P<label>(?:subscription|membership|member|order)\s*(?:id|no\.?|number|#))' + _SEP + _CODE_VALUE,
                        example='Subscription ID: SUB-99812', priority=1),
        ), kind='code'),
    )

    MEDICINE_RULES = (
        FieldRule('medicineName', (
            PatternSpec('labelled_medicine',
                        r'\b(?P<label>medicine(?:\s+name)?|drug(?:\s+name)?|brand\s+name|product(?:\s+name)?)\s*[:\-]\s*'
                        + _TEXT_VALUE,
                        example='Medicine Name: Crocin Advance', priority=1),
            PatternSpec('name_with_strength',
                        r'(?P<value>\b[A-Z][A-Za-z\-]+(?:\s+[A-Z][A-Za-z\-]+){0,2}\s*\d+(?:\.\d+)?\s*'
                        r'(?i:mg|mcg|g|ml|iu)(?![A-Za-z]))',
                        example='Paracetamol 500mg', priority=2, flags=0),
            PatternSpec('name_with_form',
                        r'(?P<value>\b[A-Z][A-Za-z\-]+(?:\s+[A-Za-z\-]+){0,2}\s+'
                        r'(?i:tablets?|capsules?|syrup|suspension|injection|drops|ointment|cream|gel))\b',
                        example='Crocin Tablets', priority=3, flags=0),
            PatternSpec('first_line',
                        r'\A\s*(?P<value>[A-Za-z][A-Za-z0-9 \-+]{2,40}?)\s*$',
                        example='DOLO 650', priority=5, flags=re.MULTILINE),
        ), reject=NAME_REJECT),
        FieldRule('manufacturer', (
            PatternSpec('labelled_manufacturer',
                        r'\b(?P<label>(?:mfd|mfg|mkt|manufactured|marketed)\.?\s+by|manufacturer)' + _TEXT_SEP + _TEXT_VALUE,
                        example='Mfd. by: Micro Labs Ltd', priority=1),
            PatternSpec('pharma_company',
                        r'(?P<value>\b[A-Z][A-Za-z&.\-]*(?:\s+[A-Z][A-Za-z&.\-]*){0,3}\s+'
                        r'(?i:pharma(?:ceuticals)?|laboratories|labs|healthcare|lifesciences|remedies)'
                        r'(?:\s+(?i:pvt\.?\s*ltd\.?|ltd\.?|limited))?)',
                        example='Cipla Pharmaceuticals Ltd', priority=2, flags=0),
        ), reject=NAME_REJECT),
        FieldRule('batchNumber', (
            PatternSpec('labelled_batch',
                        r'\b(?P<label>batch\s*(?:no\.?|number|#)?|b\.\s*no\.?|lot\s*(?:no\.?|number|#)?)' + _SEP + _CODE_VALUE,
                        example='Batch No: ABC123', priority=1),
        ), kind='code'),
        FieldRule('manufacturingDate', (
            PatternSpec('labelled_mfg_date',
                        r'\b(?P<label>mfg\.?\s*(?:date|dt\.?)?|mfd\.?|manufacturing\s+date|date\s+of\s+(?:mfg|manufacture)'
                        r'|manufactured\s+on)' + _SEP + _DATE_VALUE,
                        example='MFG: 01/2024', priority=1),
        ), kind='date'),
    )

    def __init__(self, normalizer: Optional[DateNormalizer] = None):
        self.normalizer = normalizer or DateNormalizer()
        self._dispatch: Dict[Category, Callable[[str, Optional[dict]], Dict[str, FieldValue]]] = {
            Category.WARRANTY: self.extract_warranty_fields,
            Category.INSURANCE: self.extract_insurance_fields,
            Category.AMC: self.extract_amc_fields,
            Category.SUBSCRIPTION: self.extract_subscription_fields,
            Category.MEDICINE: self.extract_medicine_fields,
            Category.OTHER: self.extract_other_fields,
        }

    def extract_fields(self, sanitized_text: str, category: Category, _debug=None) -> Dict[str, FieldValue]:
        """
        Extract category-specific fields (never expiryDate).

        Args:
            sanitized_text: PII-free OCR text
            category: Resolved document category
            _debug: Optional debug dict receiving provenance

        Returns:
            Mapping of field name to FieldValue; fields not found are absent
        """
        if not sanitized_text or not sanitized_text.strip():
            return {}
        text = normalize_ocr_text(sanitized_text)
        return self._dispatch[category](text, _debug)

    def extract_warranty_fields(self, text: str, _debug=None) -> Dict[str, FieldValue]:
        fields = self._apply_rules(text, self.WARRANTY_RULES, _debug)
        if 'brand' in fields:
            fields['brand'] = FieldValue(
                title_case(fields['brand'].value),
                fields['brand'].confidence_score,
                fields['brand'].source_keyword,
            )
        return fields

    def extract_insurance_fields(self, text: str, _debug=None) -> Dict[str, FieldValue]:
        fields = self._apply_rules(text, self.INSURANCE_RULES, _debug)
        if 'policyType' in fields:
            fields['policyType'] = FieldValue(
                title_case(fields['policyType'].value),
                fields['policyType'].confidence_score,
                fields['policyType'].source_keyword,
            )
        return fields

    def extract_amc_fields(self, text: str, _debug=None) -> Dict[str, FieldValue]:
        fields = self._apply_rules(text, self.AMC_RULES, _debug)
        if 'serviceType' in fields:
            fields['serviceType'] = FieldValue(
                title_case(fields['serviceType'].value),
                fields['serviceType'].confidence_score,
                fields['serviceType'].source_keyword,
            )
        return fields

    def extract_subscription_fields(self, text: str, _debug=None) -> Dict[str, FieldValue]:
        fields = self._apply_rules(text, self.SUBSCRIPTION_RULES, _debug)
        if 'plan' in fields:
            fields['plan'] = FieldValue(
                title_case(fields['plan'].value),
                fields['plan'].confidence_score,
                fields['plan'].source_keyword,
            )
        return fields

    def extract_medicine_fields(self, text: str, _debug=None) -> Dict[str, FieldValue]:
        return self._apply_rules(text, self.MEDICINE_RULES, _debug)

    def extract_other_fields(self, text: str, _debug=None) -> Dict[str, FieldValue]:
        """Only the document type is ever returned for uncategorised documents."""
        for pattern, display_name, score in DOCUMENT_TYPES:
            if re.search(pattern, text, re.IGNORECASE):
                if _debug is not None:
                    _debug['patterns_matched']['documentType'] = display_name
                return {'documentType': FieldValue(display_name, score)}
        return {}

    def _apply_rules(self, text: str, rules, _debug=None) -> Dict[str, FieldValue]:
        fields: Dict[str, FieldValue] = {}
        for rule in rules:
            try:
                found = self._apply_rule(text, rule)
            except (re.error, ValueError):
                logger.warning("Error extracting field", extra={"field": rule.field_name}, exc_info=True)
                continue
            if found is None:
                continue
            field_value, spec = found
            fields[rule.field_name] = field_value
            if _debug is not None:
                _debug['patterns_matched'][rule.field_name] = spec.name
                _debug['confidence_per_field'][rule.field_name] = field_value.confidence_score
        return fields

    def _apply_rule(self, text: str, rule: FieldRule) -> Optional[Tuple[FieldValue, PatternSpec]]:
        for spec in sorted(rule.patterns, key=lambda s: s.priority or 100):
            pos = 0
            while pos <= len(text):
                match = spec.compiled.search(text, pos)
                if match is None:
                    break
                # A rejected match may still contain a shorter valid one
                pos = match.start() + 1
                value = self._clean(match.group('value'), rule)
                if value is None:
                    continue
                if rule.vocabulary and spec.name.startswith('known_'):
                    value = self._canonical(value, rule.vocabulary)
                label = match.groupdict().get('label')
                score = self.PRIORITY_SCORES.get(spec.priority or 5, 45)
                return FieldValue(value, score, label.lower() if label else None), spec
        return None

    @staticmethod
    def _canonical(value: str, vocabulary: Tuple[str, ...]) -> str:
        key = re.sub(r'\s+', ' ', value).lower()
        for name in vocabulary:
            if name.lower() == key:
                return name
        return value

    def _clean(self, raw: Optional[str], rule: FieldRule) -> Optional[str]:
        if rule.kind == 'code':
            return clean_code_value(raw)
        if rule.kind == 'date':
            return self.normalizer.normalize(raw) if raw else None
        if rule.kind == 'period':
            return normalize_period(raw)
        return clean_text_value(raw, reject=rule.reject)
