"""
Presentation adapter.

Reads a stored benefits document of any generation and produces a complete,
uniformly shaped view: every category and every dictionary field under its
canonical name, with absent fields marked NOT_CAPTURED.
"""

from typing import Any, Dict, List, Optional, Union

from benefits.fields import BENEFIT_FIELDS, CATEGORIES, MISSING, fields_in_category, get_field, resolve_with_source, set_path
from benefits.normalizer import load_benefits


class _NotCaptured:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __eq__(self, other):
        return other is self

    def __hash__(self):
        return id(self)

    def __repr__(self):
        return "NOT_CAPTURED"


NOT_CAPTURED = _NotCaptured()


def parse_benefits(raw: Union[str, Dict[str, Any], None]) -> Dict[str, Any]:
    """
    Canonical nested document with every dictionary field present.

    Accepts the stored JSON string or a dict of any generation. Never raises
    for a malformed or legacy value: unresolvable fields become NOT_CAPTURED.
    """
    source = load_benefits(raw) or {}
    document: Dict[str, Any] = {}
    for field in BENEFIT_FIELDS:
        value, _ = resolve_with_source(source, field)
        set_path(document, field.path, NOT_CAPTURED if value is MISSING else value)
    return document


def captured_value(document: Dict[str, Any], path: str) -> Any:
    """Leaf value of a parsed document, NOT_CAPTURED when absent."""
    node: Any = document
    for part in get_field(path).path.split("."):
        if not isinstance(node, dict) or part not in node:
            return NOT_CAPTURED
        node = node[part]
    return node


def is_captured(value: Any) -> bool:
    return value is not NOT_CAPTURED


def eligibility_summary(document: Dict[str, Any]) -> str:
    eligible = captured_value(document, "eligibility.eligible")
    if not is_captured(eligible):
        return "unknown"
    return "active" if eligible else "inactive"


def remaining_percent(document: Dict[str, Any]) -> Optional[int]:
    """Share of the annual maximum still available, 0-100, or None."""
    annual = captured_value(document, "maximums.annual")
    remaining = captured_value(document, "maximums.remaining")
    if not is_captured(annual) or not is_captured(remaining) or not annual:
        return None
    percent = round(remaining / annual * 100)
    return max(0, min(100, percent))


def deductible_status(document: Dict[str, Any]) -> str:
    """
    Render "deductible met" whichever shape it was captured in.

    A boolean is taken as-is. A number is the amount met so far, compared
    against the deductible amount when that is known.
    """
    met = captured_value(document, "deductible.met")
    amount_met = captured_value(document, "deductible.amount_met")
    amount = captured_value(document, "deductible.amount")

    if isinstance(met, bool):
        return "met" if met else "not_met"

    so_far = met if is_captured(met) else amount_met
    if not is_captured(so_far):
        return "not_captured"
    if so_far <= 0:
        return "not_met"
    if is_captured(amount) and so_far >= amount:
        return "met"
    return "partial"


def _json_value(value: Any) -> Any:
    return None if value is NOT_CAPTURED else value


def build_view(raw: Union[str, Dict[str, Any], None]) -> Dict[str, Any]:
    """
    JSON-ready view model.

    Each field carries its canonical path, label, value (null when not
    captured), a captured flag and, for values read from an older
    generation, the legacy name they were found under.
    """
    source = load_benefits(raw) or {}
    parsed: Dict[str, Any] = {}
    categories: List[Dict[str, Any]] = []

    for key, label in CATEGORIES:
        entries = []
        for field in fields_in_category(key):
            value, found_as = resolve_with_source(source, field)
            value = NOT_CAPTURED if value is MISSING else value
            set_path(parsed, field.path, value)
            entries.append({
                "path": field.path,
                "label": field.label,
                "type": field.type.value,
                "value": _json_value(value),
                "captured": is_captured(value),
                "legacyName": found_as if found_as not in (None, field.path) else None,
            })
        categories.append({
            "key": key,
            "label": label,
            "fields": entries,
            "capturedCount": sum(1 for e in entries if e["captured"]),
        })

    return {
        "categories": categories,
        "summary": {
            "eligibility": eligibility_summary(parsed),
            "remainingPercent": remaining_percent(parsed),
            "deductibleStatus": deductible_status(parsed),
            "capturedFields": sum(c["capturedCount"] for c in categories),
            "totalFields": len(BENEFIT_FIELDS),
        },
    }
