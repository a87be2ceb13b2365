"""
Tests for the per-category field whitelist.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pytest

from expirycare.models.document import Category
from expirycare.services.category_schemas import (
    CATEGORY_SCHEMAS,
    CategorySchema,
    CategorySchemaRegistry,
    UnknownCategoryError,
)
from expirycare.utils.candidates import FieldValue


@pytest.fixture
def registry():
    return CategorySchemaRegistry()


class TestSchemaDefinitions:

    def test_every_category_has_a_schema(self):
        assert set(CATEGORY_SCHEMAS) == set(Category)

    def test_required_fields_are_allowed(self):
        for schema in CATEGORY_SCHEMAS.values():
            assert schema.required_fields <= schema.allowed_fields
            assert 'expiryDate' in schema.required_fields

    def test_required_outside_allowed_rejected(self):
        with pytest.raises(ValueError):
            CategorySchema(
                display_name="Broken",
                description="",
                allowed_fields=frozenset({'expiryDate'}),
                required_fields=frozenset({'expiryDate', 'brand'}),
            )

    def test_missing_schema_is_loud(self):
        partial = {Category.WARRANTY: CATEGORY_SCHEMAS[Category.WARRANTY]}
        with pytest.raises(UnknownCategoryError):
            CategorySchemaRegistry(partial)

    def test_unknown_lookup(self, registry):
        with pytest.raises(UnknownCategoryError):
            registry.schema_for("boat")


class TestPrivacyGate:

    def test_other_keeps_only_document_type(self, registry):
        fields = {
            'documentType': FieldValue("Passport", 80),
            'name': FieldValue("John Doe", 90),
            'address': FieldValue("12 MG Road", 90),
            'licenseNumber': FieldValue("MH1220110012345", 90),
        }
        assert list(registry.sanitize_fields(Category.OTHER, fields)) == ['documentType']

    def test_fields_from_other_categories_dropped(self, registry):
        fields = {
            'medicineName': FieldValue("Crocin", 80),
            'brand': FieldValue("LG", 80),
        }
        assert list(registry.sanitize_fields(Category.WARRANTY, fields)) == ['brand']

    def test_forbidden_values_dropped(self, registry):
        fields = {
            'provider': FieldValue("claims@insurer.example", 80),
            'policyType': FieldValue("Nominee details", 80),
            'policyNumber': FieldValue("P/211/001", 80),
        }
        assert list(registry.sanitize_fields(Category.INSURANCE, fields)) == ['policyNumber']

    def test_medicine_prescriber_dropped(self, registry):
        fields = {'manufacturer': FieldValue("Prescribed by Dr. Rao", 70)}
        assert registry.sanitize_fields(Category.MEDICINE, fields) == {}

    def test_is_allowed(self, registry):
        assert registry.is_allowed(Category.SUBSCRIPTION, 'plan')
        assert not registry.is_allowed(Category.SUBSCRIPTION, 'cardNumber')


class TestFieldNames:

    @pytest.mark.parametrize("category,name,expected", [
        (Category.WARRANTY, 'companyName', 'brand'),
        (Category.INSURANCE, 'companyName', 'provider'),
        (Category.AMC, 'companyName', 'serviceProvider'),
        (Category.MEDICINE, 'productName', 'medicineName'),
        (Category.WARRANTY, 'productName', 'productName'),
        (Category.INSURANCE, 'insurer', 'provider'),
        (Category.SUBSCRIPTION, 'planType', 'plan'),
        (Category.OTHER, 'expiry', 'expiryDate'),
        (Category.OTHER, 'documentType', 'documentType'),
    ])
    def test_canonical_names(self, registry, category, name, expected):
        assert registry.canonical_field_name(category, name) == expected

    def test_missing_required_fields(self, registry):
        fields = {'productName': FieldValue("Smart TV", 80), 'brand': FieldValue(None)}
        assert registry.missing_required_fields(Category.WARRANTY, fields) == ['brand', 'expiryDate']

    def test_medicine_brand_is_manufacturer(self, registry):
        assert registry.canonical_field_name(Category.MEDICINE, 'brand') == 'manufacturer'
        assert registry.canonical_field_name(Category.WARRANTY, 'brand') == 'brand'
