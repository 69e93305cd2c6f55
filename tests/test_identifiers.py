"""Tests for identifier extraction."""

import re

from compscout.normalize.identifiers import (
    KeywordClassifier,
    extract_brand,
    extract_case_size,
    extract_family,
    extract_identifiers,
    extract_model_number,
    infer_demographic,
)


class TestKeywordClassifier:
    """Test the ordered (pattern, label) classifier."""

    def test_first_match_wins(self):
        classifier = KeywordClassifier([("seiko", "seiko"), ("grand seiko", "grand seiko")])
        assert classifier.classify("Grand Seiko SBGA211") == "seiko"

    def test_string_patterns_are_case_insensitive(self):
        classifier = KeywordClassifier.from_keywords(["Tag Heuer"])
        assert classifier.classify("TAG HEUER Carrera") == "Tag Heuer"

    def test_regex_patterns(self):
        classifier = KeywordClassifier([(re.compile(r"\bss\b", re.IGNORECASE), "steel")])
        assert classifier.classify("Diver SS bracelet") == "steel"
        assert classifier.classify("Glass case") is None

    def test_labels_keep_order(self):
        classifier = KeywordClassifier.from_keywords(["a", "b", "c"])
        assert classifier.labels() == ["a", "b", "c"]


def test_seiko_prospex_title():
    """Test a fully recognised title."""
    ids = extract_identifiers("Seiko Prospex Automatic 42mm Men's Diver")

    assert ids.brand == "seiko"
    assert ids.family == "prospex"
    assert ids.movement == "automatic"
    assert ids.case_size == "42mm"
    assert ids.demographic == "mens"


def test_empty_title():
    ids = extract_identifiers("")
    assert ids.brand == ""
    assert ids.family == ""
    assert ids.model_number is None


def test_family_requires_brand():
    """Families are only looked up for the detected brand."""
    assert extract_family("Prospex diver", "") == ""
    assert extract_family("Prospex diver", "citizen") == ""
    assert extract_family("Prospex diver", "seiko") == "prospex"


def test_unknown_brand():
    assert extract_brand("Vintage pocket watch") == ""


def test_model_number_collapses_variant_suffix():
    assert extract_model_number("Casio Edifice ACW8082-007 Chronograph") == "ACW8082"


def test_model_number_bare_digits():
    assert extract_model_number("Invicta Pro Diver 8926OB") == "8926OB"
    assert extract_model_number("Invicta 47484 watch") == "47484"


def test_model_number_missing():
    assert extract_model_number("Timex Weekender watch") is None


def test_case_size():
    assert extract_case_size("Tissot PRX 40 mm") == "40mm"
    assert extract_case_size("Tissot PRX") is None


class TestDemographic:
    """Test demographic inference."""

    def test_explicit_words_win_over_size(self):
        assert infer_demographic("Ladies Citizen watch", "42mm") == "womens"
        assert infer_demographic("Gents Orient watch", "30mm") == "mens"

    def test_size_thresholds(self):
        assert infer_demographic("Citizen watch", "34mm") == "womens"
        assert infer_demographic("Citizen watch", "40mm") == "mens"
        assert infer_demographic("Citizen watch", "37mm") == "unisex"

    def test_unknown_without_size(self):
        assert infer_demographic("Citizen watch", None) is None


def test_material_and_secondary_attributes_are_independent():
    ids = extract_identifiers("Omega Seamaster titanium 300M")
    assert ids.brand == "omega"
    assert ids.family == "seamaster"
    assert ids.material == "titanium"
    assert ids.movement is None
