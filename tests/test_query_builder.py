"""Tests for query sanitizing, weighting and filter bundles."""

import pytest

from app.schemas.search import SearchFilters
from app.services.query_builder import (
    build_filter_bundle,
    build_weighted_search_query,
    sanitize_search_query,
)

SAMPLE_QUERIES = [
    "",
    "ruby",
    "  ruby  ",
    "ruby<script>",
    "ruby&sapphire|emerald",
    "ruby!()|&",
    "( ruby )",
    "!! (",
    "  <> & | ! ( )  ",
    "blue sapphire 2ct",
    "rubí ñ 红宝石",
]


class TestSanitizeSearchQuery:
    def test_removes_angle_brackets(self):
        assert sanitize_search_query("ruby<script>") == "rubyscript"

    def test_removes_boolean_operators(self):
        assert sanitize_search_query("ruby&sapphire|emerald") == "rubysapphireemerald"

    def test_trims_whitespace(self):
        assert sanitize_search_query("  ruby  ") == "ruby"

    def test_empty_string(self):
        assert sanitize_search_query("") == ""

    def test_only_special_characters(self):
        assert sanitize_search_query("ruby!()|&") == "ruby"

    def test_trims_after_stripping(self):
        """Whitespace exposed by removed characters is trimmed too"""
        assert sanitize_search_query("( ruby )") == "ruby"

    def test_keeps_inner_whitespace(self):
        assert sanitize_search_query("blue  sapphire") == "blue  sapphire"

    @pytest.mark.parametrize("raw", SAMPLE_QUERIES)
    def test_idempotent(self, raw):
        once = sanitize_search_query(raw)
        assert sanitize_search_query(once) == once

    @pytest.mark.parametrize("raw", SAMPLE_QUERIES)
    def test_output_has_no_tsquery_operators(self, raw):
        cleaned = sanitize_search_query(raw)
        assert not any(char in cleaned for char in "<>&|!()")


class TestBuildWeightedSearchQuery:
    def test_single_term(self):
        assert build_weighted_search_query("ruby") == "ruby:A"

    def test_multiple_terms(self):
        assert build_weighted_search_query("ruby 2ct") == "ruby:A & 2ct:B"

    def test_later_terms_share_lower_weight(self):
        assert build_weighted_search_query("blue sapphire oval 3ct") == "blue:A & sapphire:B & oval:B & 3ct:B"

    def test_extra_whitespace(self):
        assert build_weighted_search_query("ruby   2ct") == "ruby:A & 2ct:B"

    def test_empty_string(self):
        assert build_weighted_search_query("") == ""

    def test_only_operators_is_empty(self):
        assert build_weighted_search_query("&| ()") == ""

    def test_sanitizes_before_building(self):
        assert build_weighted_search_query("ruby<script> 2ct") == "rubyscript:A & 2ct:B"

    def test_deterministic(self):
        assert build_weighted_search_query("emerald cabochon") == build_weighted_search_query("emerald cabochon")


class TestBuildFilterBundle:
    def test_empty_filters(self):
        assert build_filter_bundle(SearchFilters()) == {}

    def test_uses_database_key_names(self):
        filters = SearchFilters(
            gemstone_types=["ruby", "sapphire"],
            min_price=1000,
            max_price=50000,
            min_weight=0.5,
            in_stock_only=True,
            has_ai_analysis=True,
        )

        assert build_filter_bundle(filters) == {
            "gemstoneTypes": ["ruby", "sapphire"],
            "minPrice": 1000,
            "maxPrice": 50000,
            "minWeight": 0.5,
            "inStockOnly": True,
            "hasAIAnalysis": True,
        }

    def test_drops_empty_lists(self):
        assert build_filter_bundle(SearchFilters(colors=[], cuts=["oval"])) == {"cuts": ["oval"]}

    def test_keeps_false_flags(self):
        assert build_filter_bundle(SearchFilters(has_certification=False)) == {"hasCertification": False}

    def test_fuzzy_mode_switch(self):
        filters = SearchFilters(colors=["red"])

        bundle = build_filter_bundle(filters, use_fuzzy=True, similarity_threshold=0.3)

        assert bundle == {"colors": ["red"], "useFuzzy": True, "similarityThreshold": 0.3}
        # Same structural filters as the exact bundle
        exact = build_filter_bundle(filters)
        assert {k: v for k, v in bundle.items() if k in exact} == exact


class TestSearchFiltersValidation:
    def test_accepts_camel_case_payload(self):
        filters = SearchFilters.model_validate({"gemstoneTypes": ["ruby"], "hasAIAnalysis": True})
        assert filters.gemstone_types == ["ruby"]
        assert filters.has_ai_analysis is True

    def test_rejects_inverted_price_range(self):
        with pytest.raises(ValueError):
            SearchFilters(min_price=500, max_price=100)

    def test_rejects_inverted_weight_range(self):
        with pytest.raises(ValueError):
            SearchFilters(min_weight=3.0, max_weight=1.0)

    def test_rejects_negative_price(self):
        with pytest.raises(ValueError):
            SearchFilters(min_price=-1)
