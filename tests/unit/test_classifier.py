"""
Unit tests for the vertical classifier.
"""

import pytest

from fetchers.classifier import (
    DEFAULT_VERTICAL,
    VERTICAL_RULES,
    VerticalClassifier,
    prefixes_for_verticals,
)


@pytest.fixture
def classifier():
    return VerticalClassifier()


class TestVerticalClassifier:
    """Tests for VerticalClassifier."""

    @pytest.mark.parametrize("text,expected", [
        ("WIOA Adult Program", "Workforce Development"),
        ("Nutrition Services for the Elderly", "Aging Services"),
        ("Veterans State Home Construction", "Veterans"),
        ("Community Violence Intervention Initiative", "CVI Prevention"),
        ("Maternal, Infant and Early Childhood Home Visiting", "Home Visiting"),
        ("Second Chance Act Reentry Program", "Re-entry"),
        ("Weatherization Assistance for Low-Income Persons: Energy", "Energy & Environment"),
        ("Highway Planning and Construction", "Transportation & Infrastructure"),
        ("Title I Grants to Local Educational Agencies: school improvement", "Education"),
        ("Community Health Centers", "Healthcare"),
    ])
    def test_classifies_each_vertical(self, classifier, text, expected):
        assert classifier.classify(text) == expected

    def test_first_rule_wins(self, classifier):
        """Workforce is listed before Healthcare."""
        assert classifier.classify("Health workforce training") == "Workforce Development"

    def test_case_insensitive(self, classifier):
        assert classifier.classify("HOSPITAL PREPAREDNESS") == "Healthcare"

    def test_no_match_is_other(self, classifier):
        assert classifier.classify("Miscellaneous federal payment") == DEFAULT_VERTICAL

    def test_empty_input_is_other(self, classifier):
        assert classifier.classify() == DEFAULT_VERTICAL
        assert classifier.classify(None, "") == DEFAULT_VERTICAL

    def test_word_boundaries(self, classifier):
        """"support" must not match the transportation "port" keyword."""
        assert classifier.classify("General operating support") == DEFAULT_VERTICAL

    def test_matching_verticals_in_rule_order(self, classifier):
        matches = classifier.matching_verticals("Veterans health care and job training")
        assert matches == ["Workforce Development", "Veterans", "Healthcare"]
        assert classifier.classify_logged("Veterans health care and job training") == matches[0]

    def test_rule_order_is_stable(self):
        assert [name for name, _ in VERTICAL_RULES][0] == "Workforce Development"
        assert [name for name, _ in VERTICAL_RULES][-1] == "Healthcare"


class TestPrefixesForVerticals:
    """Tests for prefixes_for_verticals."""

    def test_union_without_duplicates(self):
        assert prefixes_for_verticals(["Healthcare", "Aging Services", "Education"]) == ["93", "84"]

    def test_unknown_and_other_add_nothing(self):
        assert prefixes_for_verticals(["Other", "Nope"]) == []
