"""
Call-outcome extractor.

Turns an end-of-call report of unknown shape into a flat bag of candidate
benefit fields plus identity, attribution and call telemetry. Never raises
on malformed input: anything it cannot find is left absent.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# Ordered candidate locations of the structured result. First non-empty wins.
STRUCTURED_RESULT_LOCATIONS: List[Tuple[str, ...]] = [
    ("message", "artifact", "structuredOutputs"),
    ("message", "analysis", "structuredData"),
]

# Where the system prompt (rendered with the patient block) can be found.
SYSTEM_MESSAGE_LOCATIONS: List[Tuple[str, ...]] = [
    ("message", "artifact", "messages"),
    ("message", "call", "assistantOverrides", "model", "messages"),
]

RECORDING_URL_LOCATIONS: List[Tuple[str, ...]] = [
    ("message", "artifact", "recordingUrl"),
    ("message", "artifact", "stereoRecordingUrl"),
    ("message", "call", "recordingUrl"),
    ("message", "recordingUrl"),
]

TRANSCRIPT_LOCATIONS: List[Tuple[str, ...]] = [
    ("message", "artifact", "transcript"),
    ("message", "call", "transcript"),
    ("message", "transcript"),
]

DURATION_LOCATIONS: List[Tuple[str, ...]] = [
    ("message", "call", "duration"),
    ("message", "durationSeconds"),
]

ENDED_REASON_LOCATIONS: List[Tuple[str, ...]] = [
    ("message", "call", "endedReason"),
    ("message", "endedReason"),
]

METADATA_LOCATIONS: List[Tuple[str, ...]] = [
    ("message", "call", "metadata"),
    ("message", "metadata"),
]

# Structured-result keys per identity field, newest first.
IDENTITY_KEYS: Dict[str, Tuple[str, ...]] = {
    "patientName": ("patient_name",),
    "patientDOB": ("patient_dob",),
    # subscriber_id is the policy holder's id, not a dependent patient's
    "memberId": ("member_id",),
    "insuranceCarrier": ("insurance_carrier", "insurance_company"),
}

ATTRIBUTION_KEYS: Dict[str, Tuple[str, ...]] = {
    "referenceNumber": ("call_reference", "reference_number"),
    "repName": ("rep_name",),
}

# Labels in the rendered system prompt. Anchored at line start so that
# "Subscriber DOB:" does not shadow the patient's DOB.
SYSTEM_PROMPT_PATTERNS: Dict[str, re.Pattern] = {
    "patientName": re.compile(r"^[ \t#*\-]*Patient(?: Name)?:[ \t]*([^\n]+)", re.IGNORECASE | re.MULTILINE),
    "patientDOB": re.compile(r"^[ \t#*\-]*(?:Patient )?DOB:[ \t]*([^\n]+)", re.IGNORECASE | re.MULTILINE),
    "memberId": re.compile(r"^[ \t#*\-]*Member ID:[ \t]*([^\n]+)", re.IGNORECASE | re.MULTILINE),
}

# Member ids are rendered one character at a time ("G, zero, C")
_SPOKEN_DIGITS = {
    "zero": "0", "one": "1", "two": "2", "three": "3", "four": "4",
    "five": "5", "six": "6", "seven": "7", "eight": "8", "nine": "9",
}

TERMINAL_EVENT_TYPE = "end-of-call-report"


@dataclass
class CallTelemetry:
    call_id: Optional[str] = None
    ended_reason: Optional[str] = None
    duration_seconds: Optional[float] = None
    call_duration: Optional[str] = None
    recording_url: Optional[str] = None
    transcript: Optional[str] = None


@dataclass
class Extraction:
    """Everything the core reads out of one call-outcome payload."""
    structured: Dict[str, Any] = field(default_factory=dict)
    identity: Dict[str, str] = field(default_factory=dict)
    attribution: Dict[str, str] = field(default_factory=dict)
    telemetry: CallTelemetry = field(default_factory=CallTelemetry)
    verification_id: Optional[str] = None
    practice_id: Optional[str] = None


def _dig(payload: Any, location: Tuple[str, ...]) -> Any:
    current = payload
    for key in location:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _first_present(payload: Any, locations: List[Tuple[str, ...]]) -> Any:
    for location in locations:
        value = _dig(payload, location)
        if value not in (None, "", {}, []):
            return value
    return None


def _non_empty_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def event_type(payload: Any) -> str:
    value = _dig(payload, ("message", "type"))
    return value if isinstance(value, str) else ""


def is_terminal_event(payload: Any) -> bool:
    return event_type(payload) == TERMINAL_EVENT_TYPE


def _unwrap_structured(container: Any) -> Dict[str, Any]:
    """
    Reduce a structured-output container to the result object.

    Named entries ({"<id>": {"name": ..., "result": {...}}}) yield the first
    entry's result, and nothing when that first entry carries none. A
    container with no named entries is the result itself.
    """
    entries = list(container.values()) if isinstance(container, dict) else container
    if not isinstance(entries, list) or not entries:
        return {}

    first = entries[0]
    if isinstance(first, dict) and "result" in first:
        result = first.get("result")
        return dict(result) if isinstance(result, dict) else {}

    if any(isinstance(e, dict) and "result" in e for e in entries):
        return {}

    if isinstance(container, dict):
        return dict(container)
    return {}


def find_structured_result(payload: Any) -> Dict[str, Any]:
    for location in STRUCTURED_RESULT_LOCATIONS:
        container = _dig(payload, location)
        if container:
            return _unwrap_structured(container)
    return {}


def find_system_message(payload: Any) -> Optional[str]:
    for location in SYSTEM_MESSAGE_LOCATIONS:
        messages = _dig(payload, location)
        if not isinstance(messages, list):
            continue
        for message in messages:
            if not isinstance(message, dict) or message.get("role") != "system":
                continue
            text = message.get("message") or message.get("content")
            if isinstance(text, str) and text:
                return text
    return None


def _unspell(value: str) -> str:
    """Spoken id back to characters, "G, zero, C" -> "G0C". Otherwise strips whitespace."""
    tokens = [t.strip() for t in value.split(",")]
    if len(tokens) > 1 and all(len(t) == 1 or t.lower() in _SPOKEN_DIGITS for t in tokens):
        return "".join(_SPOKEN_DIGITS.get(t.lower(), t) for t in tokens)
    return re.sub(r"\s+", "", value)


def scrape_identity(text: Optional[str]) -> Dict[str, str]:
    """Best-effort scrape of labeled identity lines. Missing labels are skipped."""
    if not isinstance(text, str):
        return {}

    scraped = {}
    for key, pattern in SYSTEM_PROMPT_PATTERNS.items():
        match = pattern.search(text)
        if not match:
            continue
        value = match.group(1).strip()
        if key == "memberId":
            value = _unspell(value)
        if value:
            scraped[key] = value
    return scraped


def resolve_identity(structured: Dict[str, Any], system_text: Optional[str]) -> Dict[str, str]:
    identity: Dict[str, str] = {}
    for key, candidates in IDENTITY_KEYS.items():
        for candidate in candidates:
            value = _non_empty_string(structured.get(candidate))
            if value:
                identity[key] = value
                break

    missing = [k for k in SYSTEM_PROMPT_PATTERNS if k not in identity]
    if missing:
        scraped = scrape_identity(system_text)
        for key in missing:
            if key in scraped:
                identity[key] = scraped[key]
    return identity


def resolve_attribution(structured: Dict[str, Any]) -> Dict[str, str]:
    attribution: Dict[str, str] = {}
    for key, candidates in ATTRIBUTION_KEYS.items():
        for candidate in candidates:
            value = structured.get(candidate)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            value = _non_empty_string(value)
            if value:
                attribution[key] = value
                break
    return attribution


def format_call_duration(seconds: Any) -> Optional[str]:
    """104 -> "1 min 44 sec". Non-numeric or negative input yields None."""
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        return None
    if seconds < 0 or seconds != seconds:
        return None

    minutes = int(seconds // 60)
    # Halves round up: 44.5 -> 45
    remainder = int(seconds % 60 + 0.5)
    if remainder == 60:
        minutes, remainder = minutes + 1, 0
    return f"{minutes} min {remainder} sec"


def resolve_telemetry(payload: Any) -> CallTelemetry:
    duration = _first_present(payload, DURATION_LOCATIONS)
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        duration = None

    return CallTelemetry(
        call_id=_non_empty_string(_dig(payload, ("message", "call", "id"))),
        ended_reason=_non_empty_string(_first_present(payload, ENDED_REASON_LOCATIONS)),
        duration_seconds=duration,
        call_duration=format_call_duration(duration),
        recording_url=_non_empty_string(_first_present(payload, RECORDING_URL_LOCATIONS)),
        transcript=_non_empty_string(_first_present(payload, TRANSCRIPT_LOCATIONS)),
    )


def extract(payload: Any) -> Extraction:
    if not isinstance(payload, dict):
        return Extraction()

    structured = find_structured_result(payload)
    metadata = _first_present(payload, METADATA_LOCATIONS)
    metadata = metadata if isinstance(metadata, dict) else {}

    return Extraction(
        structured=structured,
        identity=resolve_identity(structured, find_system_message(payload)),
        attribution=resolve_attribution(structured),
        telemetry=resolve_telemetry(payload),
        verification_id=_non_empty_string(metadata.get("verificationId")),
        practice_id=_non_empty_string(metadata.get("practiceId")),
    )
