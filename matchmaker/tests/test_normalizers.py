"""Tests for the free-text normalizers and alias tables."""
from __future__ import annotations

import pytest

from matchmaker.normalizers import (
    STAGE_ORDER,
    contains_phrase,
    industry_groups,
    normalize_industry,
    normalize_location,
    normalize_locations,
    normalize_stage,
    parse_check_size_range,
)


class TestNormalizeStage:
    @pytest.mark.parametrize("label,expected", [
        ("Pre-Seed", "pre-seed"),
        ("preseed", "pre-seed"),
        ("Angel", "pre-seed"),
        ("Seed", "seed"),
        ("  SEED  ", "seed"),
        ("Early-Stage", "seed"),
        ("Series A", "series-a"),
        ("series-b", "series-b"),
        ("Series C", "series-c"),
        ("Growth", "growth"),
        ("Late Stage", "growth"),
    ])
    def test_known_labels(self, label, expected):
        assert normalize_stage(label) == expected

    def test_unknown_label_returned_lowercased(self):
        assert normalize_stage("Bridge Round") == "bridge round"
        assert normalize_stage("Bridge Round") not in STAGE_ORDER

    def test_empty(self):
        assert normalize_stage(None) == ""
        assert normalize_stage("") == ""


class TestNormalizeLocation:
    def test_city_expands_to_region_and_country(self):
        tokens = normalize_location("San Francisco")
        assert tokens[0] == "san francisco"
        assert {"bay area", "silicon valley", "usa"} <= set(tokens)

    def test_alias_expands_back_to_city(self):
        assert "san francisco" in normalize_location("Bay Area")

    def test_splits_on_separators(self):
        tokens = normalize_location("London; Paris / Berlin")
        assert {"london", "paris", "berlin", "europe"} <= set(tokens)

    def test_no_partial_word_expansion(self):
        tokens = normalize_location("Germany")
        assert "berlin" in tokens
        assert "new york" not in tokens
        assert "global" not in tokens

    def test_deduplicated(self):
        tokens = normalize_location("San Francisco, SF")
        assert len(tokens) == len(set(tokens))

    def test_empty(self):
        assert normalize_location(None) == []
        assert normalize_locations([]) == []

    def test_list_input(self):
        tokens = normalize_locations(["Berlin", "Paris"])
        assert {"berlin", "paris", "germany", "france"} <= set(tokens)


class TestNormalizeIndustry:
    def test_flattens_and_splits(self):
        assert normalize_industry(["FinTech & Payments", "SaaS/Cloud"]) == [
            "fintech", "payments", "saas", "cloud",
        ]

    def test_scalar(self):
        assert normalize_industry("AI, ML; Data") == ["ai", "ml", "data"]

    def test_empty(self):
        assert normalize_industry(None) == []
        assert normalize_industry(["", "  "]) == []


class TestIndustryGroups:
    def test_variant_resolves_to_group(self):
        assert industry_groups("film") == ["entertainment"]
        assert industry_groups("artificial intelligence") == ["ai"]

    def test_variant_can_resolve_to_several_groups(self):
        assert industry_groups("logistics") == ["real estate", "mobility"]

    def test_whole_word_only(self):
        assert industry_groups("email marketing") == []

    def test_contains_phrase(self):
        assert contains_phrase("sf bay area", "bay area")
        assert not contains_phrase("germany", "ny")


class TestParseCheckSizeRange:
    def test_range_with_suffixes(self):
        assert parse_check_size_range("$500K - $2M") == {"min": 500_000.0, "max": 2_000_000.0}

    def test_bare_lower_bound_borrows_upper_suffix(self):
        assert parse_check_size_range("1-2m") == {"min": 1_000_000.0, "max": 2_000_000.0}

    def test_suffix_not_borrowed_when_it_would_invert_range(self):
        assert parse_check_size_range("500-2m") == {"min": 500.0, "max": 2_000_000.0}

    def test_single_number_defaults_max_to_ten_times(self):
        assert parse_check_size_range("$250k") == {"min": 250_000.0, "max": 2_500_000.0}

    def test_words(self):
        assert parse_check_size_range("up to 1.5 million") == {"min": 1_500_000.0, "max": 15_000_000.0}

    def test_commas_stripped(self):
        assert parse_check_size_range("$1,000,000") == {"min": 1_000_000.0, "max": 10_000_000.0}

    def test_no_numbers(self):
        assert parse_check_size_range("varies by deal") is None
        assert parse_check_size_range(None) is None
