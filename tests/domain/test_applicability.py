"""Tests for per-merchant applicability maps."""

from unittest.mock import patch

import pytest

from gateway_qa.domain.applicability import (
    APPLICABILITY,
    INTENT_APPLICABILITY,
    KNOWN_MERCHANTS,
    REFUND_APPLICABILITY,
    STATUS_APPLICABILITY,
    ApplicabilityMap,
    ScenarioFamily,
    get_applicability,
    validate_applicability,
)
from gateway_qa.domain.exceptions import UnknownMerchantError


@pytest.fixture
def applicability() -> ApplicabilityMap:
    return ApplicabilityMap(
        {
            "TC_012": ["SBIC", "Google"],
            "TC_020": [],
        }
    )


class TestIsApplicable:
    """Tests for ApplicabilityMap.is_applicable."""

    def test_case_without_entry_applies_to_everyone(self, applicability):
        assert applicability.is_applicable("TC_999", "Anyone") is True

    def test_empty_entry_applies_to_everyone(self, applicability):
        assert applicability.is_applicable("TC_020", "Anyone") is True

    def test_listed_merchant(self, applicability):
        assert applicability.is_applicable("TC_012", "Google") is True

    def test_unlisted_merchant(self, applicability):
        assert applicability.is_applicable("TC_012", "Zenith") is False

    @pytest.mark.parametrize("name", ["google", "GOOGLE", "  Google "])
    def test_merchant_name_is_case_insensitive(self, applicability, name):
        assert applicability.is_applicable("TC_012", name) is True

    def test_case_id_is_case_insensitive(self, applicability):
        assert applicability.is_applicable("tc_012", "Zenith") is False
        assert "tc_012" in applicability

    def test_skip_reason(self, applicability):
        assert applicability.skip_reason("TC_012", "Google") is None
        reason = applicability.skip_reason("TC_012", "Zenith")
        assert "TC_012" in reason
        assert "Zenith" in reason


class TestValidate:
    """Tests for validating maps against the registry."""

    def test_known_names_pass(self, applicability):
        applicability.validate(["sbic", "Google", "Zenith"])

    def test_unknown_names_are_listed(self, applicability):
        with pytest.raises(UnknownMerchantError) as exc_info:
            applicability.validate(["Google"])

        assert exc_info.value.details["unknown"] == [("TC_012", "SBIC")]
        assert "SBIC" in exc_info.value.message

    @pytest.mark.parametrize(
        "table", [INTENT_APPLICABILITY, STATUS_APPLICABILITY, REFUND_APPLICABILITY]
    )
    def test_static_tables_only_name_known_merchants(self, table):
        table.validate(KNOWN_MERCHANTS)

    def test_partial_credentials_file_passes(self):
        validate_applicability(["Google", "IIFA"])

    def test_registry_only_merchant_passes(self):
        validate_applicability(["Google", "Acme Pay"])

    def test_roster_covers_every_table(self):
        validate_applicability()

    def test_name_in_neither_list_fails(self):
        table = ApplicabilityMap({"TC_030": ["Nowhere Pay"]})

        with patch.dict(APPLICABILITY, {ScenarioFamily.REFUND: table}):
            with pytest.raises(UnknownMerchantError) as exc_info:
                validate_applicability(["Google"])

        assert exc_info.value.details["unknown"] == [("TC_030", "Nowhere Pay")]


class TestStaticTables:
    """Tests for the built-in tables."""

    def test_netbanking_limited_to_hosted_merchants(self):
        assert INTENT_APPLICABILITY.is_applicable("TC_013", "SBIC")
        assert not INTENT_APPLICABILITY.is_applicable("TC_013", "Dadabhai Travel")

    def test_blank_verify_supplier_skips_tap_merchant(self):
        assert not STATUS_APPLICABILITY.is_applicable("TC_027", "Dadabhai Travel")
        assert STATUS_APPLICABILITY.is_applicable("TC_027", "Google")

    def test_validation_cases_apply_everywhere(self):
        assert INTENT_APPLICABILITY.is_applicable("TC_001", "Dadabhai Travel")

    def test_get_applicability_by_family(self):
        assert get_applicability(ScenarioFamily.REFUND) is REFUND_APPLICABILITY
        assert get_applicability("status") is STATUS_APPLICABILITY

    def test_get_applicability_unknown_family(self):
        with pytest.raises(ValueError):
            get_applicability("wallets")

    def test_partial_refund_card_case_skips_zenith(self):
        assert INTENT_APPLICABILITY.is_applicable("TC_028", "IIFA")
        assert INTENT_APPLICABILITY.is_applicable("TC_028", "SBIC")
        assert not INTENT_APPLICABILITY.is_applicable("TC_028", "Zenith")
        assert not INTENT_APPLICABILITY.is_applicable("TC_028", "Zenith Gyftr")

    @pytest.mark.parametrize(
        "refund_case, payment_cases",
        [("TC_030", ("TC_012", "TC_013")), ("TC_031", ("TC_028", "TC_014"))],
    )
    def test_refund_merchants_have_a_payment_to_refund(self, refund_case, payment_cases):
        for name in KNOWN_MERCHANTS:
            if REFUND_APPLICABILITY.is_applicable(refund_case, name):
                assert any(
                    INTENT_APPLICABILITY.is_applicable(case_id, name) for case_id in payment_cases
                ), name

    def test_axis_traveledge_has_no_refund_source(self):
        assert not REFUND_APPLICABILITY.is_applicable("TC_030", "Axis Traveledge")
        assert not REFUND_APPLICABILITY.is_applicable("TC_031", "Axis Traveledge new")
