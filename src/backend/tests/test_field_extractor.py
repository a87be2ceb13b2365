"""
Test suite for category-specific regex field extraction.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from datetime import date

import pytest

from expirycare.models.document import Category
from expirycare.services.field_extractor import FieldExtractionEngine
from expirycare.utils.dates import DateNormalizer


@pytest.fixture
def engine():
    return FieldExtractionEngine(DateNormalizer(date(2024, 6, 1)))


def values(fields):
    return {name: fv.value for name, fv in fields.items()}


class TestWarrantyFields:

    def test_labelled_card(self, engine):
        text = (
            "SAMSUNG WARRANTY CARD\n"
            "Product Name: Galaxy S23 Ultra\n"
            "Serial No: R5CT123456X\n"
            "Warranty Period: 1 Year\n"
            "Purchase Date: 12/03/2024"
        )
        fields = engine.extract_fields(text, Category.WARRANTY)
        assert values(fields) == {
            'productName': "Galaxy S23 Ultra",
            'brand': "Samsung",
            'serialNumber': "R5CT123456X",
            'warrantyPeriod': "1 Year",
            'purchaseDate': "2024-03-12",
        }
        assert fields['productName'].source_keyword == "product name"
        assert fields['productName'].confidence_score > fields['brand'].confidence_score

    def test_period_before_keyword(self, engine):
        fields = engine.extract_fields("LG 2 Years Warranty on compressor", Category.WARRANTY)
        assert fields['warrantyPeriod'].value == "2 Years"
        assert fields['brand'].value == "LG"

    def test_never_returns_expiry(self, engine):
        fields = engine.extract_fields("Warranty valid till 31/12/2026", Category.WARRANTY)
        assert 'expiryDate' not in fields


class TestInsuranceFields:

    def test_policy(self, engine):
        text = (
            "Star Health and Allied Insurance Co. Ltd.\n"
            "Policy Number: P/211/001/2024/123\n"
            "Policy Type: Family Health Insurance"
        )
        assert values(engine.extract_fields(text, Category.INSURANCE)) == {
            'policyType': "Family Health Insurance",
            'provider': "Star Health",
            'policyNumber': "P/211/001/2024/123",
        }

    def test_known_policy_type_without_label(self, engine):
        fields = engine.extract_fields("HDFC ERGO motor insurance certificate", Category.INSURANCE)
        assert fields['policyType'].value == "Motor Insurance"
        assert fields['provider'].value == "HDFC ERGO"


class TestAmcFields:

    def test_contract(self, engine):
        text = (
            "Annual Maintenance Contract\n"
            "Service Provider: CoolCare Services\n"
            "Product: Split AC\n"
            "Contract No: AMC-2024-0012\n"
            "AMC Type: Comprehensive"
        )
        assert values(engine.extract_fields(text, Category.AMC)) == {
            'serviceProvider': "CoolCare Services",
            'productName': "Split AC",
            'contractNumber': "AMC-2024-0012",
            'serviceType': "Comprehensive",
        }


class TestSubscriptionFields:

    def test_streaming(self, engine):
        text = "Netflix\nPlan: Premium\nSubscription ID: SUB-99812"
        assert values(engine.extract_fields(text, Category.SUBSCRIPTION)) == {
            'serviceName': "Netflix",
            'plan': "Premium",
            'subscriptionId': "SUB-99812",
        }

    def test_named_plan(self, engine):
        fields = engine.extract_fields("spotify family plan renews monthly", Category.SUBSCRIPTION)
        assert fields['serviceName'].value == "Spotify"
        assert fields['plan'].value == "Family"


class TestMedicineFields:

    def test_strip(self, engine):
        text = "Paracetamol 500mg EXP: 31/12/2024 BATCH: ABC123"
        fields = engine.extract_fields(text, Category.MEDICINE)
        assert fields['batchNumber'].value == "ABC123"
        assert fields['medicineName'].value == "Paracetamol 500mg"
        assert 'expiryDate' not in fields

    def test_first_line_name_is_low_priority(self, engine):
        fields = engine.extract_fields("DOLO 650\nBatch No: DL2401\nMfg: 01/2024", Category.MEDICINE)
        assert fields['medicineName'].value == "DOLO 650"
        assert fields['medicineName'].confidence_score == 45
        assert fields['batchNumber'].value == "DL2401"
        assert fields['manufacturingDate'].value == "2024-01-31"

    def test_manufacturer(self, engine):
        fields = engine.extract_fields("Crocin Tablets\nMfd. by: GSK Consumer Healthcare", Category.MEDICINE)
        assert fields['medicineName'].value == "Crocin Tablets"
        assert fields['manufacturer'].value == "GSK Consumer Healthcare"


class TestOtherFields:

    @pytest.mark.parametrize("text,expected", [
        ("Republic of India Passport", "Passport"),
        ("DRIVING LICENCE issued by RTO", "Driving License"),
        ("Certificate of Completion", "Certificate"),
    ])
    def test_document_type_only(self, engine, text, expected):
        fields = engine.extract_fields(text, Category.OTHER)
        assert values(fields) == {'documentType': expected}

    def test_unknown_document(self, engine):
        assert engine.extract_fields("Thank you", Category.OTHER) == {}


class TestEdgeCases:

    @pytest.mark.parametrize("category", list(Category))
    def test_empty_text(self, engine, category):
        assert engine.extract_fields("", category) == {}

    def test_debug_records_patterns(self, engine):
        _debug = {'patterns_matched': {}, 'confidence_per_field': {}, 'warnings': []}
        engine.extract_fields("Batch No: ABC123", Category.MEDICINE, _debug=_debug)
        assert _debug['patterns_matched']['batchNumber'] == "labelled_batch"
        assert _debug['confidence_per_field']['batchNumber'] == 88
