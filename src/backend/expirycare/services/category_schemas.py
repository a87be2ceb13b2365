"""
Per-category field whitelist.

Each category declares which fields may be returned, which of them are
required for a useful record, and value patterns that must never be
returned (personal data that slipped through extraction).
"""

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

from expirycare.models.document import Category
from expirycare.utils.candidates import FieldValue

logger = logging.getLogger(__name__)


class UnknownCategoryError(KeyError):
    """Raised when the registry has no schema for a category."""


@dataclass(frozen=True)
class CategorySchema:
    display_name: str
    description: str
    allowed_fields: FrozenSet[str]
    required_fields: FrozenSet[str]
    forbidden_field_patterns: Tuple[re.Pattern, ...] = field(default=(), repr=False)

    def __post_init__(self):
        extra = self.required_fields - self.allowed_fields
        if extra:
            raise ValueError(f"Required fields not in allowed fields: {sorted(extra)}")


def _patterns(*sources: str) -> Tuple[re.Pattern, ...]:
    return tuple(re.compile(source, re.IGNORECASE) for source in sources)


# Values shaped like personal data are rejected for every category
PII_VALUE_PATTERNS = _patterns(
    r'[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}',
    r'(?<!\d)\d{10}(?!\d)',
    r'(?<!\d)\d{4}[ \-]?\d{4}[ \-]?\d{4}(?!\d)',
    r'\b[A-Z]{5}\d{4}[A-Z]\b',
)

CATEGORY_SCHEMAS: Mapping[Category, CategorySchema] = MappingProxyType({
    Category.WARRANTY: CategorySchema(
        display_name="Warranty",
        description="Product warranty cards and invoices",
        allowed_fields=frozenset({
            'expiryDate', 'productName', 'brand', 'warrantyPeriod', 'serialNumber', 'purchaseDate',
        }),
        required_fields=frozenset({'expiryDate', 'productName', 'brand'}),
        forbidden_field_patterns=_patterns(
            r'\baddress\b', r'\bphone\b', r'\bmobile\b', r'\bemail\b', r'\bcustomer\b',
        ),
    ),
    Category.INSURANCE: CategorySchema(
        display_name="Insurance",
        description="Health, life, motor and other insurance policies",
        allowed_fields=frozenset({'expiryDate', 'policyType', 'provider', 'policyNumber'}),
        required_fields=frozenset({'expiryDate', 'policyType', 'provider'}),
        forbidden_field_patterns=_patterns(
            r'\bnominee\b', r'\bproposer\b', r'\binsured\s+(?:person|name)\b', r'\bmedical\b',
            r'\bhealth\s+(?:condition|history)\b', r'\bdob\b', r'\bdate\s+of\s+birth\b', r'\baddress\b',
        ),
    ),
    Category.AMC: CategorySchema(
        display_name="AMC",
        description="Annual maintenance and service contracts",
        allowed_fields=frozenset({
            'expiryDate', 'serviceProvider', 'productName', 'contractNumber', 'serviceType',
        }),
        required_fields=frozenset({'expiryDate', 'serviceProvider', 'productName'}),
        forbidden_field_patterns=_patterns(
            r'\baddress\b', r'\bphone\b', r'\bmobile\b', r'\bcustomer\b', r'\bcontact\b',
        ),
    ),
    Category.SUBSCRIPTION: CategorySchema(
        display_name="Subscription",
        description="Streaming, software and membership subscriptions",
        allowed_fields=frozenset({'expiryDate', 'serviceName', 'plan', 'subscriptionId'}),
        required_fields=frozenset({'expiryDate', 'serviceName'}),
        forbidden_field_patterns=_patterns(
            r'\bcard\s*(?:no|number)\b', r'\bcvv\b', r'\bbank\b', r'\bupi\b', r'\baccount\s*(?:no|number)\b',
            r'\b(?:\d{4}[ \-]?){3}\d{4}\b',
        ),
    ),
    Category.MEDICINE: CategorySchema(
        display_name="Medicine",
        description="Medicine strips, bottles and packs",
        allowed_fields=frozenset({
            'expiryDate', 'medicineName', 'manufacturer', 'batchNumber', 'manufacturingDate',
        }),
        required_fields=frozenset({'expiryDate', 'medicineName'}),
        forbidden_field_patterns=_patterns(
            r'\bpatient\b', r'\bdoctor\b', r'\bdr\.', r'\bprescription\b', r'\bdiagnosis\b', r'\bprescribed\b',
        ),
    ),
    Category.OTHER: CategorySchema(
        display_name="Other",
        description="Licences, IDs, certificates and anything unclassified",
        allowed_fields=frozenset({'expiryDate', 'documentType'}),
        required_fields=frozenset({'expiryDate'}),
        forbidden_field_patterns=_patterns(
            r'\bname\b', r'\baddress\b', r'\bdob\b', r'\bdate\s+of\s+birth\b', r'\bfather\b',
            r'\bblood\s+group\b', r'\bsignature\b',
        ),
    ),
})

# Aliases used by the enrichment service (and older payloads), per category.
# A None key applies to every category.
FIELD_ALIASES: Mapping[str, Mapping[Optional[Category], str]] = MappingProxyType({
    'companyName': {
        Category.WARRANTY: 'brand',
        Category.INSURANCE: 'provider',
        Category.AMC: 'serviceProvider',
        Category.SUBSCRIPTION: 'serviceName',
        Category.MEDICINE: 'manufacturer',
    },
    'brandName': {Category.WARRANTY: 'brand', Category.MEDICINE: 'medicineName'},
    'brand': {Category.MEDICINE: 'manufacturer'},
    'providerName': {Category.INSURANCE: 'provider', Category.AMC: 'serviceProvider'},
    'insurerName': {None: 'provider'},
    'insurer': {None: 'provider'},
    'productName': {Category.MEDICINE: 'medicineName'},
    'batchNo': {None: 'batchNumber'},
    'lotNumber': {None: 'batchNumber'},
    'planType': {None: 'plan'},
    'planName': {None: 'plan'},
    'mfgDate': {None: 'manufacturingDate'},
    'expiry': {None: 'expiryDate'},
    'expiry_date': {None: 'expiryDate'},
    'policyNo': {None: 'policyNumber'},
    'serialNo': {None: 'serialNumber'},
    'amcType': {None: 'serviceType'},
})


class CategorySchemaRegistry:
    """Read-only lookup over the category schemas."""

    def __init__(self, schemas: Mapping[Category, CategorySchema] = CATEGORY_SCHEMAS):
        missing = [category.value for category in Category if category not in schemas]
        if missing:
            raise UnknownCategoryError(f"No schema registered for: {', '.join(missing)}")
        self._schemas = MappingProxyType(dict(schemas))

    def schema_for(self, category: Category) -> CategorySchema:
        try:
            return self._schemas[category]
        except KeyError:
            raise UnknownCategoryError(f"No schema registered for: {category}") from None

    def is_allowed(self, category: Category, field_name: str) -> bool:
        return field_name in self.schema_for(category).allowed_fields

    def contains_forbidden_data(self, category: Category, value: Optional[str]) -> bool:
        if not value:
            return False
        patterns = self.schema_for(category).forbidden_field_patterns + PII_VALUE_PATTERNS
        return any(pattern.search(value) for pattern in patterns)

    def canonical_field_name(self, category: Category, field_name: str) -> str:
        aliases = FIELD_ALIASES.get(field_name)
        if not aliases:
            return field_name
        return aliases.get(category) or aliases.get(None) or field_name

    def missing_required_fields(self, category: Category, fields: Mapping[str, FieldValue]) -> List[str]:
        schema = self.schema_for(category)
        return sorted(
            name for name in schema.required_fields
            if name not in fields or fields[name].value is None
        )

    def sanitize_fields(self, category: Category, fields: Mapping[str, FieldValue]) -> Dict[str, FieldValue]:
        """
        Apply the privacy whitelist.

        Drops every field the category does not allow and every value that
        matches a forbidden pattern.
        """
        schema = self.schema_for(category)
        cleaned: Dict[str, FieldValue] = {}
        dropped: List[str] = []
        for name, field_value in fields.items():
            if name not in schema.allowed_fields:
                dropped.append(name)
                continue
            if self.contains_forbidden_data(category, field_value.value):
                dropped.append(name)
                continue
            cleaned[name] = field_value

        if dropped:
            logger.debug(
                "Dropped fields outside category schema",
                extra={"category": category.value, "fields": dropped}
            )
        return cleaned
