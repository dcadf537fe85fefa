"""
Classification Rules Test Module

Tests for labdash/services/classification.py.

Test Coverage:
- Specimen code sets per named category variant, including the screened alias
- Province group resolution, with the nearby-bucket override
- Province filter matching (prefix, sentinel, all)
- Rejection mnemonics and lab-number exclusion
- Submitter ID normalization across int/str/Decimal/float
"""

from dataclasses import FrozenInstanceError
from decimal import Decimal

import pytest

from labdash.core.errors import InvalidWindow
from labdash.models.enums import SpecimenCategory
from labdash.services.classification import (
    NEARBY_GROUP,
    NEARBY_SUBMITTER_IDS,
    UNSATISFACTORY_MNEMONICS,
    ClassificationRules,
    category_to_specimen_codes,
    is_unsatisfactory_mnemonic,
    normalize_submitter_id,
    province_key,
    resolve_province_group,
)


# =============================================================================
# Specimen Categories
# =============================================================================

class TestSpecimenCodes:
    """Named category variants keep their own ordered code sets."""

    def test_received_codes(self):
        assert category_to_specimen_codes("received") == (
            "1", "87", "20", "2", "3", "4", "5", "18"
        )

    def test_screened_resolves_to_daily_variant(self):
        assert category_to_specimen_codes(SpecimenCategory.SCREENED) == ("20", "1")
        assert category_to_specimen_codes("screened_daily") == ("20", "1")

    def test_summary_variants_differ_from_report_variants(self):
        assert category_to_specimen_codes("screened_summary") == (
            "4", "3", "20", "2", "1", "87"
        )
        assert category_to_specimen_codes("received_summary") == (
            "5", "4", "3", "20", "2", "87"
        )

    def test_detail_and_comparison_variants(self):
        assert category_to_specimen_codes("unsat_detail") == ("2", "3", "4", "20", "87")
        assert category_to_specimen_codes("province_comparison") == ("20", "87")

    def test_category_lookup_ignores_case_and_padding(self):
        assert category_to_specimen_codes("  Received ") == category_to_specimen_codes("received")

    def test_unknown_category_is_rejected(self):
        with pytest.raises(InvalidWindow) as excinfo:
            category_to_specimen_codes("archived")
        assert "archived" in excinfo.value.message


# =============================================================================
# Province Grouping
# =============================================================================

class TestProvinceGroup:
    """resolve_province_group applies the nearby override unconditionally."""

    @pytest.mark.parametrize("submitter_id", [51, "51", " 51 ", Decimal("51"), 51.0])
    def test_nearby_submitter_in_any_representation(self, submitter_id):
        assert resolve_province_group(submitter_id, "BATANGAS") == NEARBY_GROUP

    def test_nearby_submitter_with_missing_county(self):
        assert resolve_province_group(8306, None) == NEARBY_GROUP

    def test_every_configured_nearby_id_resolves_to_bucket(self):
        for submitter_id in NEARBY_SUBMITTER_IDS:
            assert resolve_province_group(submitter_id, "LAGUNA") == NEARBY_GROUP

    def test_other_submitter_keeps_trimmed_county(self):
        assert resolve_province_group(1204, "  Batangas   ") == "Batangas"

    def test_other_submitter_without_county(self):
        assert resolve_province_group(1204, None) == ""

    def test_province_key_normalizes(self):
        assert province_key(" laguna  ") == "LAGUNA"
        assert province_key(None) == ""


class TestProvinceFilter:
    """matches_province_filter mirrors the SQL province filter."""

    @pytest.mark.parametrize("requested", [None, "", "all", "ALL", " All "])
    def test_all_matches_everything(self, rules, requested):
        assert rules.matches_province_filter("BATANGAS", requested)
        assert rules.matches_province_filter(NEARBY_GROUP, requested)

    def test_prefix_match_is_case_insensitive(self, rules):
        assert rules.matches_province_filter("BATANGAS", "bat")
        assert rules.matches_province_filter("Batangas", "BATANGAS")
        assert not rules.matches_province_filter("LAGUNA", "BAT")

    def test_literal_county_never_matches_nearby_bucket(self, rules):
        assert not rules.matches_province_filter(NEARBY_GROUP, "LOPEZ")

    def test_sentinel_matches_only_nearby_bucket(self, rules):
        assert rules.matches_province_filter(NEARBY_GROUP, "lopez_nearby")
        assert not rules.matches_province_filter("QUEZON", NEARBY_GROUP)


# =============================================================================
# Unsatisfactory Samples
# =============================================================================

class TestUnsatisfactory:

    @pytest.mark.parametrize("code", list(UNSATISFACTORY_MNEMONICS))
    def test_canonical_mnemonics(self, code):
        assert is_unsatisfactory_mnemonic(code)

    @pytest.mark.parametrize("code", ["NORMAL", "E104", "", None])
    def test_other_codes(self, code):
        assert not is_unsatisfactory_mnemonic(code)

    def test_mnemonic_matching_ignores_case_and_padding(self):
        assert is_unsatisfactory_mnemonic(" ins ")

    def test_lab_number_with_marker_in_eighth_position_is_excluded(self, rules):
        assert rules.is_excluded_lab_number("20240018001")
        assert not rules.is_excluded_lab_number("20240011001")

    def test_short_or_missing_lab_number_is_not_excluded(self, rules):
        assert not rules.is_excluded_lab_number("1234567")
        assert not rules.is_excluded_lab_number(None)


# =============================================================================
# Rules Configuration
# =============================================================================

class TestRulesConfiguration:

    @pytest.mark.parametrize("value,expected", [
        (51, "51"),
        ("51", "51"),
        (Decimal("51"), "51"),
        (51.0, "51"),
        ("51.00", "51"),
        ("  ", None),
        (None, None),
    ])
    def test_normalize_submitter_id(self, value, expected):
        assert normalize_submitter_id(value) == expected

    def test_rules_are_immutable(self, rules):
        with pytest.raises(FrozenInstanceError):
            rules.nearby_group = "OTHER"

    def test_custom_rules_are_independent_of_defaults(self):
        custom = ClassificationRules(nearby_submitter_ids=frozenset({"9999"}))
        assert custom.resolve_province_group(9999, "RIZAL") == NEARBY_GROUP
        assert custom.resolve_province_group(51, "RIZAL") == "RIZAL"

    def test_sorted_nearby_ids_are_stable(self, rules):
        ids = rules.sorted_nearby_ids
        assert ids[0] == "51"
        assert ids[-1] == "8306"
        assert len(ids) == len(set(NEARBY_SUBMITTER_IDS))
