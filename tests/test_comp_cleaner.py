"""Tests for sold-comp cleaning."""

import pytest

from compscout.pricing.comp_cleaner import (
    CleaningReason,
    Confidence,
    RawComp,
    clean_sold_comps,
    quartile_bounds,
    round_price,
    should_exclude_comp,
)


def _comps(prices, title="Seiko Prospex SRP777 watch"):
    return [RawComp(sold_price=p, title=title) for p in prices]


def test_quartile_trim_eight_comps():
    """Test the 8-comp example: indices 2-5 are retained."""
    result = clean_sold_comps(_comps([80, 10, 60, 30, 20, 50, 70, 40]))

    assert result.success is True
    assert [c.sold_price for c in result.retained_comps] == [30, 40, 50, 60]
    assert result.median_price == 45.0
    assert result.low_price == 30.0
    assert result.high_price == 60.0
    assert result.comp_count == 4


def test_outliers_kept_and_flagged():
    result = clean_sold_comps(_comps([10, 20, 30, 40, 50, 60, 70, 80]))

    assert len(result.comps) == 8
    flagged = [c.sold_price for c in result.comps if c.is_outlier]
    assert flagged == [10, 20, 70, 80]


@pytest.mark.parametrize("n, expected", [(4, (1, 3)), (5, (1, 4)), (8, (2, 6)), (13, (3, 10))])
def test_quartile_bounds(n, expected):
    assert quartile_bounds(n) == expected


def test_five_comps_retain_three():
    result = clean_sold_comps(_comps([100, 200, 300, 400, 500]))
    assert [c.sold_price for c in result.retained_comps] == [200, 300, 400]
    assert result.median_price == 300.0


class TestExclusionFilter:
    """Test title-based exclusion."""

    def test_parts_listing_excluded(self):
        assert should_exclude_comp("Rolex Submariner parts for repair, not working")

    def test_parts_listing_never_reaches_statistics(self):
        comps = _comps([100, 110, 120, 130])
        comps.append(RawComp(sold_price=5, title="Rolex Submariner parts for repair, not working"))

        result = clean_sold_comps(comps)
        assert all(c.sold_price != 5 for c in result.comps)

    @pytest.mark.parametrize("title", [
        "Lot of 5 Casio watches",
        "Seiko SKX007 strap only",
        "Omega Seamaster homage diver",
        "Apple Watch charger cable",
        "Replacement crystal for Citizen",
    ])
    def test_excluded_titles(self, title):
        assert should_exclude_comp(title)

    def test_clean_titles_kept(self):
        assert not should_exclude_comp("Tissot PRX Powermatic 80 40mm")
        assert not should_exclude_comp(None)
        assert not should_exclude_comp("")

    def test_untitled_comps_kept(self):
        comps = [RawComp(sold_price=p) for p in (10, 20, 30, 40)]
        result = clean_sold_comps(comps)
        assert result.success is True


class TestFailures:
    """Test explicit failure results."""

    def test_no_comps(self):
        result = clean_sold_comps([])
        assert result.success is False
        assert result.reason == "No comps found"
        assert result.reason_code == CleaningReason.NO_COMPS
        assert result.median_price is None

    def test_none_input(self):
        assert clean_sold_comps(None).reason_code == CleaningReason.NO_COMPS

    def test_all_filtered(self):
        result = clean_sold_comps(_comps([100, 200], title="Broken watch for parts"))
        assert result.success is False
        assert result.reason == "All comps filtered (parts/repair/bundles)"
        assert result.reason_code == CleaningReason.ALL_FILTERED
        assert result.median_price is None
        assert result.low_price is None
        assert result.high_price is None

    def test_single_comp_is_retained(self):
        # n=1: Q1=0, Q3=1
        result = clean_sold_comps(_comps([100]))
        assert result.success is True
        assert result.comp_count == 1


class TestConfidence:
    """Test the confidence boundary."""

    def test_high_at_eight_retained(self):
        # n=14: Q1=3, Q3=11 -> 8 retained
        result = clean_sold_comps(_comps(range(100, 240, 10)))
        assert result.comp_count == 8
        assert result.confidence == Confidence.HIGH
        assert result.reason is None
        assert result.reason_code is None

    def test_low_at_seven_retained(self):
        # n=13: Q1=3, Q3=10 -> 7 retained
        result = clean_sold_comps(_comps(range(100, 230, 10)))
        assert result.comp_count == 7
        assert result.confidence == Confidence.LOW
        assert result.reason == "Low comp confidence (7/8 required)"
        assert result.reason_code == CleaningReason.LOW_CONFIDENCE
        assert result.success is True

    def test_threshold_override(self):
        result = clean_sold_comps(_comps([10, 20, 30, 40]), min_comps_for_high_confidence=2)
        assert result.confidence == Confidence.HIGH

    def test_zero_threshold_is_respected(self):
        # A single retained comp would be low under the default of 8
        result = clean_sold_comps(_comps([50]), min_comps_for_high_confidence=0)
        assert result.comp_count == 1
        assert result.confidence == Confidence.HIGH
        assert result.reason_code is None


def test_search_query_carried_through():
    result = clean_sold_comps(_comps([10, 20, 30, 40]), search_query="seiko prospex")
    assert result.search_query == "seiko prospex"


def test_round_price_half_up():
    assert round_price(10.005) == 10.01
    assert round_price(2.675) == 2.68


def test_total_price_includes_shipping():
    assert RawComp(sold_price=100.0, shipping_cost=12.5).total_price == 112.5
