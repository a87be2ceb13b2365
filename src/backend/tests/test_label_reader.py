"""
Tests for the line-oriented label heuristics.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from datetime import date

import pytest

from expirycare.models.document import Category
from expirycare.services.label_reader import LabelReader
from expirycare.utils.dates import DateNormalizer


@pytest.fixture
def reader():
    return LabelReader(DateNormalizer(date(2024, 6, 1)))


class TestSameLineValues:

    def test_medicine_labels(self, reader):
        text = "Crocin Advance\nBatch No: AB1234\nMfg. By: GSK Consumer Healthcare\nMfg Date: 03/2024"
        fields = reader.read(text, Category.MEDICINE)
        assert fields['batchNumber'].value == "AB1234"
        assert fields['manufacturer'].value == "GSK Consumer Healthcare"
        assert fields['manufacturingDate'].value == "2024-03-31"
        assert fields['batchNumber'].confidence_score == LabelReader.SAME_LINE_SCORE

    def test_longest_label_wins(self, reader):
        fields = reader.read("Policy Type: Health Insurance", Category.INSURANCE)
        assert fields['policyType'].value == "Health Insurance"
        assert fields['policyType'].source_keyword == "policy type"

    def test_first_occurrence_wins(self, reader):
        fields = reader.read("Brand: LG\nBrand: Sony", Category.WARRANTY)
        assert fields['brand'].value == "LG"


class TestNextLineValues:

    def test_value_on_following_line(self, reader):
        fields = reader.read("Batch No.\nAB1234", Category.MEDICINE)
        assert fields['batchNumber'].value == "AB1234"
        assert fields['batchNumber'].confidence_score == LabelReader.NEXT_LINE_SCORE

    def test_next_line_label_is_not_a_value(self, reader):
        fields = reader.read("Product Name:\nSerial No: X123", Category.WARRANTY)
        assert 'productName' not in fields
        assert fields['serialNumber'].value == "X123"

    def test_service_provider_split(self, reader):
        fields = reader.read("Service Provider\nCoolCare Services\nAppliance: Split AC", Category.AMC)
        assert fields['serviceProvider'].value == "CoolCare Services"
        assert fields['productName'].value == "Split AC"


class TestScope:

    def test_other_yields_nothing(self, reader):
        assert reader.read("Document Type: Passport", Category.OTHER) == {}

    def test_never_produces_expiry(self, reader):
        fields = reader.read("Plan: Premium\nValid till: 31/12/2026", Category.SUBSCRIPTION)
        assert 'expiryDate' not in fields
        assert fields['plan'].value == "Premium"

    def test_label_must_start_the_line(self, reader):
        assert reader.read("Paracetamol 500mg EXP: 31/12/2024 BATCH: ABC123", Category.MEDICINE) == {}

    @pytest.mark.parametrize("category", list(Category))
    def test_empty_text(self, reader, category):
        assert reader.read("", category) == {}
