"""
Tests for the normalizer - canonical shape from every alias generation, idempotency.
"""

import json

import pytest

from benefits.normalizer import dump_benefits, load_benefits, normalize_benefits


CURRENT_FLAT_RESULT = {
    "patient_eligible": True,
    "effective_date": "2023-01-01",
    "in_network": True,
    "plan_type": "PPO",
    "insurance_company": "Delta Dental",
    "group_number": "G0C-100",
    "subscriber_id": "W123456789",
    "annual_maximum": 1500,
    "maximum_used": 300,
    "maximum_remaining": 1200,
    "deductible_met": True,
    "deductible_amount_met": 50,
    "coverage_preventive": 100,
    "coverage_basic": 80,
    "coverage_major": 50,
    "frequency_bwx": "1x per 12 months",
    "history_bwx": "2024-03-01",
    "frequency_d1110": "2x per calendar year",
    "coverage_d4346": 80,
    "coverage_d7210": 80,
    "implants_covered": False,
    "occlusal_guard_covered": True,
    "portal_only_fields": ["history_fmx"],
    "call_reference": "REF-1",
    "rep_name": "Maria",
}

ORIGINAL_FLAT_RESULT = {
    "patient_eligible": True,
    "effective_date": "2020-05-01",
    "plan_type": "PPO",
    "benefit_year": "Calendar",
    "annual_maximum": 1000,
    "remaining_maximum": 750,
    "deductible": 50,
    "deductible_met": 50,
    "preventive_coverage": 100,
    "basic_coverage": 80,
    "major_coverage": 50,
    "prophy_frequency": "2x/year",
    "bwx_frequency": "1x/year",
    "pano_frequency": "1x/5 years",
    "waiting_periods": "None",
}

ORIGINAL_STORED = {
    "eligible": True,
    "effectiveDate": "2020-05-01",
    "planType": "PPO",
    "benefitYear": "Calendar",
    "annualMaximum": 1000,
    "remainingMaximum": 750,
    "deductible": 50,
    "deductibleMet": 50,
    "coverage": {"preventive": 100, "basic": 80, "major": 50},
    "frequencies": {"prophy": "2x/year", "bwx": "1x/year", "pano": "1x/5 years"},
    "waitingPeriods": "None",
}

PER_CODE_STORED = {
    "eligible": True,
    "inNetwork": False,
    "planGroupName": "ACME Corp",
    "subscriberName": "John Doe",
    "annualMaximum": 2000,
    "maximumUsed": 500,
    "coverage": {"diagnostic": 100, "preventive": 100, "endodontics": 80, "periodontics": 80},
    "frequencies": {"exams": "2x/year", "srp": "1x/24 months", "crowns": "1x/5 years", "d4910": "4x/year"},
    "history": {"exams": "2024-01-10", "fmx": "2021-06-01"},
    "specificCodes": {"d4346Coverage": 80, "d4346SharesWithD1110": True, "d4910Coverage": 80},
    "waitingPeriods": {"preventive": "None", "basic": "6 months", "major": "12 months"},
    "missingToothClause": True,
    "fluoride": {"covered": True, "ageLimit": "14"},
    "implants": {"covered": True, "coverage": 50},
    "crowns": {"covered": True, "coverage": 50},
    "notes": "Rep confirmed downgrades on posterior composites.",
}


class TestNormalizeShape:
    """Output shape is independent of which generation supplied a value."""

    def test_current_flat_result(self):
        doc = normalize_benefits(CURRENT_FLAT_RESULT)
        assert doc["eligibility"] == {"eligible": True, "effective_date": "2023-01-01", "in_network": True}
        assert doc["maximums"] == {"annual": 1500, "used": 300, "remaining": 1200}
        assert doc["deductible"] == {"met": True, "amount_met": 50}
        assert doc["coverage"] == {"preventive": 100, "basic": 80, "major": 50}
        assert doc["diagnostic_codes"]["bwx"] == {"frequency": "1x per 12 months", "history": "2024-03-01"}
        assert doc["preventive_codes"]["d1110"] == {"frequency": "2x per calendar year"}
        assert doc["preventive_codes"]["d4346"] == {"coverage": 80}
        assert doc["extraction_codes"]["d7210"] == {"coverage": 80}
        assert doc["implants"] == {"covered": False}
        assert doc["plan"]["insurance_company"] == "Delta Dental"
        assert doc["subscriber"]["member_id"] == "W123456789"
        assert doc["portal_only_fields"] == ["history_fmx"]

    def test_attribution_keys_not_benefits(self):
        doc = normalize_benefits(CURRENT_FLAT_RESULT)
        assert "call_reference" not in json.dumps(doc)
        assert "rep_name" not in json.dumps(doc)

    def test_original_flat_and_stored_agree(self):
        assert normalize_benefits(ORIGINAL_FLAT_RESULT) == normalize_benefits(ORIGINAL_STORED)

    def test_original_stored_values(self):
        doc = normalize_benefits(ORIGINAL_STORED)
        assert doc["eligibility"]["benefit_year"] == "Calendar"
        assert doc["maximums"] == {"annual": 1000, "remaining": 750}
        assert doc["deductible"] == {"amount": 50, "met": 50}
        assert doc["preventive_codes"]["d1110"]["frequency"] == "2x/year"
        assert doc["diagnostic_codes"]["pano"]["frequency"] == "1x/5 years"
        assert doc["waiting_periods"] == {"summary": "None"}

    def test_per_code_stored_values(self):
        doc = normalize_benefits(PER_CODE_STORED)
        assert doc["eligibility"] == {"eligible": True, "in_network": False}
        assert doc["plan"]["group_name"] == "ACME Corp"
        assert doc["diagnostic_codes"]["d0120"] == {"frequency": "2x/year", "history": "2024-01-10"}
        assert doc["diagnostic_codes"]["fmx"] == {"history": "2021-06-01"}
        assert doc["periodontics_codes"]["d4341"] == {"frequency": "1x/24 months"}
        assert doc["periodontics_codes"]["d4910"] == {"coverage": 80, "frequency": "4x/year"}
        assert doc["preventive_codes"]["d4346"] == {"coverage": 80, "shares_with_d1110": True}
        assert doc["preventive_codes"]["fluoride"] == {"covered": True, "age_limit": "14"}
        assert doc["waiting_periods"] == {"preventive": "None", "basic": "6 months", "major": "12 months"}
        assert doc["major"] == {"crown_frequency": "1x/5 years", "crowns_covered": True, "crown_coverage": 50}
        assert doc["implants"] == {"covered": True, "coverage": 50}
        assert doc["clauses"] == {"missing_tooth": True}
        assert doc["notes"].startswith("Rep confirmed")

    def test_absent_fields_omitted(self):
        doc = normalize_benefits({"patient_eligible": False})
        assert doc == {"eligibility": {"eligible": False}}

    def test_falsy_values_kept(self):
        doc = normalize_benefits({"coverage_major": 0, "downgrade_crowns": False, "notes": ""})
        assert doc["coverage"]["major"] == 0
        assert doc["major"]["downgrade_crowns"] is False
        assert doc["notes"] == ""

    def test_unknown_keys_ignored(self):
        assert normalize_benefits({"favorite_color": "blue"}) == {}

    @pytest.mark.parametrize("bag", [None, [], "text", 42])
    def test_non_dict_input(self, bag):
        assert normalize_benefits(bag) == {}

    def test_canonical_wins_over_alias(self):
        doc = normalize_benefits({"coverage": {"preventive": 90}, "coverage_preventive": 100, "preventive_coverage": 80})
        assert doc["coverage"]["preventive"] == 90

    def test_numeric_strings_coerced(self):
        doc = normalize_benefits({"annual_maximum": "$1,500", "coverage_basic": "80%"})
        assert doc["maximums"]["annual"] == 1500
        assert doc["coverage"]["basic"] == 80


class TestIdempotency:
    """normalize(normalize(x)) == normalize(x)."""

    @pytest.mark.parametrize("bag", [CURRENT_FLAT_RESULT, ORIGINAL_FLAT_RESULT, ORIGINAL_STORED, PER_CODE_STORED, {}])
    def test_idempotent(self, bag):
        once = normalize_benefits(bag)
        assert normalize_benefits(once) == once

    def test_input_not_mutated(self):
        bag = dict(ORIGINAL_STORED)
        normalize_benefits(bag)
        assert bag == ORIGINAL_STORED


class TestSerialization:
    """Stored benefits are JSON strings; older rows may hold dicts."""

    def test_round_trip(self):
        doc = normalize_benefits(PER_CODE_STORED)
        assert load_benefits(dump_benefits(doc)) == doc

    def test_load_accepts_dict(self):
        assert load_benefits({"eligible": True}) == {"eligible": True}

    @pytest.mark.parametrize("raw", [None, "", "not json", "[1, 2]", 17])
    def test_load_unreadable_is_none(self, raw):
        assert load_benefits(raw) is None

    def test_dump_none(self):
        assert dump_benefits(None) is None
