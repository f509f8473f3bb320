"""
Benefit field dictionary.

Single source of truth for every benefit concept the voice agent can
capture, across all generations of the structured call output and of
the stored benefits document. Both the normalizer (write path) and the
presentation adapter (read path) resolve values through this table.

Alias generations, newest first:
    G5  current flat tool output      coverage_preventive, frequency_bwx, ...
    G4  per-code stored document      specificCodes.*, fluoride.*, crowns.*
    G3  extended stored document      frequencies.*, history.*, planGroupName
    G2  original stored document      eligible, annualMaximum, waitingPeriods
    G1  original flat tool output     preventive_coverage, prophy_frequency

Each field lists its aliases newest generation first. Resolution order is
the canonical path, then the aliases in listed order.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class FieldType(str, Enum):
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    # "deductible met" arrives as a flag or as the dollar amount met so far
    BOOLEAN_OR_NUMBER = "boolean_or_number"
    STRING_LIST = "string_list"


class UnknownFieldError(KeyError):
    """Raised when the dictionary is asked for a path it does not define."""


class _Missing:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "MISSING"


MISSING = _Missing()


@dataclass(frozen=True)
class BenefitField:
    path: str
    type: FieldType
    label: str
    aliases: Tuple[str, ...] = ()

    @property
    def category(self) -> str:
        return self.path.split(".", 1)[0]

    @property
    def names(self) -> Tuple[str, ...]:
        return (self.path,) + self.aliases


CATEGORIES: List[Tuple[str, str]] = [
    ("eligibility", "Eligibility"),
    ("plan", "Plan Information"),
    ("subscriber", "Subscriber"),
    ("maximums", "Maximums"),
    ("deductible", "Deductible"),
    ("ortho", "Orthodontics"),
    ("waiting_periods", "Waiting Periods"),
    ("clauses", "Clauses"),
    ("coverage", "Coverage Percentages"),
    ("diagnostic_codes", "Diagnostic (X-Rays & Exams)"),
    ("preventive_codes", "Preventive"),
    ("basic", "Basic"),
    ("major", "Major & Crowns"),
    ("extraction_codes", "Extractions"),
    ("periodontics_codes", "Periodontics"),
    ("implants", "Implants"),
    ("occlusal_guard", "Occlusal Guard"),
    ("portal_only_fields", "Portal-Only Fields"),
    ("notes", "Notes"),
]

B = FieldType.BOOLEAN
N = FieldType.NUMBER
S = FieldType.STRING


def _code_pair(category: str, code: str, label: str, frequency: Tuple[str, ...] = (),
               history: Tuple[str, ...] = ()) -> List[BenefitField]:
    """Frequency/history pair for one CDT code block."""
    key = code.lower()
    return [
        BenefitField(f"{category}.{key}.frequency", S, f"{label} Frequency",
                     (f"frequency_{key}",) + frequency),
        BenefitField(f"{category}.{key}.history", S, f"{label} Last Done",
                     (f"history_{key}",) + history),
    ]


BENEFIT_FIELDS: Tuple[BenefitField, ...] = tuple([
    # Eligibility
    BenefitField("eligibility.eligible", B, "Patient Eligible", ("patient_eligible", "eligible")),
    BenefitField("eligibility.effective_date", S, "Effective Date", ("effective_date", "effectiveDate")),
    BenefitField("eligibility.in_network", B, "In Network", ("in_network", "inNetwork")),
    BenefitField("eligibility.benefit_year", S, "Benefit Year", ("benefit_year", "benefitYear")),

    # Plan
    BenefitField("plan.plan_type", S, "Plan Type", ("plan_type", "planType")),
    BenefitField("plan.fee_schedule", S, "Fee Schedule", ("fee_schedule", "feeSchedule")),
    BenefitField("plan.group_name", S, "Plan / Group Name", ("plan_group_name", "planGroupName")),
    BenefitField("plan.group_number", S, "Group Number", ("group_number", "groupNumber")),
    BenefitField("plan.payor_id", S, "Payor ID", ("payor_id", "payorId")),
    BenefitField("plan.claims_mailing_address", S, "Claims Mailing Address",
                 ("claims_mailing_address", "claimsMailingAddress")),
    BenefitField("plan.insurance_company", S, "Insurance Company", ("insurance_company",)),

    # Subscriber
    BenefitField("subscriber.name", S, "Subscriber Name", ("subscriber_name", "subscriberName")),
    BenefitField("subscriber.dob", S, "Subscriber DOB", ("subscriber_dob", "subscriberDOB")),
    BenefitField("subscriber.member_id", S, "Subscriber ID", ("subscriber_id",)),
    BenefitField("subscriber.relationship", S, "Relationship to Subscriber",
                 ("relationship_to_subscriber", "relationshipToSubscriber")),

    # Maximums
    BenefitField("maximums.annual", N, "Annual Maximum", ("annual_maximum", "annualMaximum")),
    BenefitField("maximums.used", N, "Maximum Used", ("maximum_used", "maximumUsed")),
    BenefitField("maximums.remaining", N, "Remaining Maximum",
                 ("maximum_remaining", "remainingMaximum", "remaining_maximum")),
    BenefitField("maximums.applies_to", S, "Maximum Applies To", ("maximum_applies_to", "maximumAppliesTo")),

    # Deductible
    BenefitField("deductible.amount", N, "Deductible", ("deductible",)),
    BenefitField("deductible.met", FieldType.BOOLEAN_OR_NUMBER, "Deductible Met",
                 ("deductible_met", "deductibleMet")),
    BenefitField("deductible.amount_met", N, "Deductible Amount Met",
                 ("deductible_amount_met", "deductibleAmountMet")),
    BenefitField("deductible.applies_to", S, "Deductible Applies To",
                 ("deductible_applies_to", "deductibleAppliesTo")),

    # Ortho
    BenefitField("ortho.maximum", N, "Ortho Maximum", ("ortho_maximum", "orthoMaximum")),
    BenefitField("ortho.maximum_used", N, "Ortho Maximum Used", ("ortho_maximum_used", "orthoMaximumUsed")),

    # Waiting periods
    BenefitField("waiting_periods.preventive", S, "Preventive Waiting Period",
                 ("waiting_period_preventive", "waitingPeriods.preventive")),
    BenefitField("waiting_periods.basic", S, "Basic Waiting Period",
                 ("waiting_period_basic", "waitingPeriods.basic")),
    BenefitField("waiting_periods.major", S, "Major Waiting Period",
                 ("waiting_period_major", "waitingPeriods.major")),
    BenefitField("waiting_periods.summary", S, "Waiting Periods", ("waitingPeriods", "waiting_periods")),

    # Clauses
    BenefitField("clauses.missing_tooth", B, "Missing Tooth Clause", ("missing_tooth_clause", "missingToothClause")),

    # Coverage percentages
    BenefitField("coverage.diagnostic", N, "Diagnostic", ("coverage_diagnostic",)),
    BenefitField("coverage.preventive", N, "Preventive", ("coverage_preventive", "preventive_coverage")),
    BenefitField("coverage.basic", N, "Basic", ("coverage_basic", "basic_coverage")),
    BenefitField("coverage.major", N, "Major", ("coverage_major", "major_coverage")),
    BenefitField("coverage.endodontics", N, "Endodontics", ("coverage_endodontics",)),
    BenefitField("coverage.periodontics", N, "Periodontics", ("coverage_periodontics",)),
    BenefitField("coverage.extractions", N, "Extractions", ("coverage_extractions",)),

    # Diagnostic codes
    *_code_pair("diagnostic_codes", "bwx", "Bitewings (D0220/D0274)",
                frequency=("frequencies.bwx", "bwx_frequency"), history=("history.bwx",)),
    *_code_pair("diagnostic_codes", "pano", "Panoramic (D0330)",
                frequency=("frequencies.pano", "pano_frequency"), history=("history.pano",)),
    *_code_pair("diagnostic_codes", "fmx", "Full Mouth X-Rays (D0210)",
                frequency=("frequencies.fmx",), history=("history.fmx",)),
    *_code_pair("diagnostic_codes", "d0150", "Comprehensive Exam (D0150)"),
    *_code_pair("diagnostic_codes", "d0120", "Periodic Exam (D0120)",
                frequency=("frequencies.exams",), history=("history.exams",)),
    *_code_pair("diagnostic_codes", "d0140", "Limited Exam (D0140)"),
    BenefitField("diagnostic_codes.exams_share_frequency", B, "Exams Share Frequency",
                 ("exams_share_frequency", "frequencies.examsShareFrequency")),

    # Preventive codes
    *_code_pair("preventive_codes", "d1110", "Adult Prophy (D1110)",
                frequency=("frequencies.prophy", "prophy_frequency"), history=("history.prophy",)),
    BenefitField("preventive_codes.d4346.coverage", N, "D4346 Coverage",
                 ("coverage_d4346", "specificCodes.d4346Coverage")),
    BenefitField("preventive_codes.d4346.frequency", S, "D4346 Frequency",
                 ("frequency_d4346", "frequencies.d4346")),
    BenefitField("preventive_codes.d4346.shares_with_d1110", B, "D4346 Shares Frequency with D1110",
                 ("d4346_shares_with_d1110", "specificCodes.d4346SharesWithD1110")),
    BenefitField("preventive_codes.fluoride.covered", B, "Fluoride Covered (D1208)",
                 ("fluoride_covered", "fluoride.covered")),
    BenefitField("preventive_codes.fluoride.age_limit", S, "Fluoride Age Limit",
                 ("fluoride_age_limit", "fluoride.ageLimit")),

    # Basic
    BenefitField("basic.downgrade_fillings", B, "Downgrades Resin Fillings", ("downgrade_fillings",)),

    # Major
    BenefitField("major.downgrade_crowns", B, "Downgrades Crowns", ("downgrade_crowns",)),
    BenefitField("major.crown_frequency", S, "Crown Replacement Frequency",
                 ("frequency_crowns", "frequencies.crowns")),
    BenefitField("major.crowns_covered", B, "Crowns Covered", ("crowns.covered",)),
    BenefitField("major.crown_coverage", N, "Crown Coverage", ("crowns.coverage",)),

    # Extraction codes
    BenefitField("extraction_codes.d7210.coverage", N, "Surgical Extraction (D7210)",
                 ("coverage_d7210", "specificCodes.d7210Coverage")),
    BenefitField("extraction_codes.d7140.coverage", N, "Simple Extraction (D7140)",
                 ("coverage_d7140", "specificCodes.d7140Coverage")),

    # Periodontics codes
    BenefitField("periodontics_codes.d4910.coverage", N, "Perio Maintenance (D4910) Coverage",
                 ("coverage_d4910", "specificCodes.d4910Coverage")),
    BenefitField("periodontics_codes.d4910.frequency", S, "Perio Maintenance (D4910) Frequency",
                 ("frequency_d4910", "frequencies.d4910")),
    *_code_pair("periodontics_codes", "d4341", "SRP 4+ Teeth (D4341)", frequency=("frequencies.srp",)),
    *_code_pair("periodontics_codes", "d4342", "SRP 1-3 Teeth (D4342)"),

    # Implants
    BenefitField("implants.covered", B, "Implants Covered", ("implants_covered",)),
    BenefitField("implants.coverage", N, "Implant Coverage"),
    BenefitField("implants.d6010.coverage", N, "Surgical Placement (D6010)", ("coverage_d6010",)),
    BenefitField("implants.d6057.coverage", N, "Abutment (D6057)", ("coverage_d6057",)),
    BenefitField("implants.d6058.coverage", N, "Implant Crown (D6058)", ("coverage_d6058",)),

    # Occlusal guard
    BenefitField("occlusal_guard.covered", B, "Occlusal Guard Covered (D9944)", ("occlusal_guard_covered",)),
    BenefitField("occlusal_guard.coverage", N, "Occlusal Guard Coverage", ("occlusal_guard_coverage",)),

    BenefitField("portal_only_fields", FieldType.STRING_LIST, "Portal-Only Fields"),
    BenefitField("notes", S, "Notes"),
])

_FIELDS_BY_PATH: Dict[str, BenefitField] = {f.path: f for f in BENEFIT_FIELDS}


def get_field(path: str) -> BenefitField:
    try:
        return _FIELDS_BY_PATH[path]
    except KeyError:
        raise UnknownFieldError(path)


def fields_in_category(category: str) -> List[BenefitField]:
    return [f for f in BENEFIT_FIELDS if f.category == category]


def iter_fields() -> Iterator[BenefitField]:
    return iter(BENEFIT_FIELDS)


# ---------------------------------------------------------------------------
# Path access
# ---------------------------------------------------------------------------

def lookup(source: Any, name: str) -> Any:
    """Walk a dotted name through nested dicts. None counts as absent."""
    current = source
    for part in name.split("."):
        if not isinstance(current, dict) or part not in current:
            return MISSING
        current = current[part]
    return MISSING if current is None else current


def set_path(doc: dict, path: str, value: Any) -> None:
    parts = path.split(".")
    node = doc
    for part in parts[:-1]:
        node = node.setdefault(part, {})
    node[parts[-1]] = value


# ---------------------------------------------------------------------------
# Type acceptance
# ---------------------------------------------------------------------------

_NUMERIC_STRING = re.compile(r"^\s*\$?\s*(-?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?)\s*%?\s*$")
_TRUE_STRINGS = {"true", "yes", "y"}
_FALSE_STRINGS = {"false", "no", "n"}


def _as_number(value: Any) -> Any:
    if isinstance(value, bool):
        return MISSING
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        match = _NUMERIC_STRING.match(value)
        if not match:
            return MISSING
        number = float(match.group(1).replace(",", ""))
        return int(number) if number.is_integer() else number
    return MISSING


def _as_boolean(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return MISSING


def coerce(field: BenefitField, value: Any) -> Any:
    """Return value shaped for the field's type, or MISSING if it does not fit."""
    if value is MISSING or value is None:
        return MISSING

    if field.type is FieldType.BOOLEAN:
        return _as_boolean(value)

    if field.type is FieldType.NUMBER:
        return _as_number(value)

    if field.type is FieldType.BOOLEAN_OR_NUMBER:
        flag = _as_boolean(value)
        return flag if flag is not MISSING else _as_number(value)

    if field.type is FieldType.STRING:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return MISSING

    if field.type is FieldType.STRING_LIST:
        if isinstance(value, str):
            return [value]
        if isinstance(value, (list, tuple)):
            return [item for item in value if isinstance(item, str)]
        return MISSING

    return MISSING


def resolve(source: Any, field: BenefitField) -> Any:
    """First name (canonical, then aliases) holding a value of the right type."""
    for name in field.names:
        value = coerce(field, lookup(source, name))
        if value is not MISSING:
            return value
    return MISSING


def resolve_with_source(source: Any, field: BenefitField) -> Tuple[Any, Optional[str]]:
    for name in field.names:
        value = coerce(field, lookup(source, name))
        if value is not MISSING:
            return value, name
    return MISSING, None
