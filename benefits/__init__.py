"""Call-outcome normalization: field dictionary, extraction, reconciliation, status, presentation."""

from benefits.fields import BENEFIT_FIELDS, CATEGORIES, MISSING, BenefitField, FieldType, UnknownFieldError, get_field
from benefits.extractor import CallTelemetry, Extraction, extract, is_terminal_event
from benefits.normalizer import dump_benefits, load_benefits, normalize_benefits
from benefits.status import GRACEFUL_END_REASONS, VerificationStatus, classify_call
from benefits.presentation import NOT_CAPTURED, build_view, parse_benefits

__all__ = [
    "BENEFIT_FIELDS",
    "CATEGORIES",
    "MISSING",
    "BenefitField",
    "FieldType",
    "UnknownFieldError",
    "get_field",
    "CallTelemetry",
    "Extraction",
    "extract",
    "is_terminal_event",
    "dump_benefits",
    "load_benefits",
    "normalize_benefits",
    "GRACEFUL_END_REASONS",
    "VerificationStatus",
    "classify_call",
    "NOT_CAPTURED",
    "build_view",
    "parse_benefits",
]
