"""
Tests for the call-outcome extractor - source precedence, identity fallback, telemetry.
"""

import pytest

from benefits.extractor import (
    extract,
    find_structured_result,
    format_call_duration,
    is_terminal_event,
    scrape_identity,
)


SYSTEM_PROMPT = """# Dental Insurance Verification Agent

## Patient Info (ONLY give when the rep asks)
Patient Name: Jane Doe
Patient DOB: January 1, 1990
Member ID: W, one, two, three, A
Group Number: NOT AVAILABLE

## Subscriber Info
Subscriber Name: John Doe
Subscriber DOB: March 3, 1960
"""


class TestStructuredResultLocation:
    """First non-empty location wins."""

    def test_primary_location(self, end_of_call_report):
        payload = end_of_call_report(result={"patient_eligible": True})
        assert find_structured_result(payload) == {"patient_eligible": True}

    def test_legacy_analysis_location(self, end_of_call_report):
        payload = end_of_call_report(result={"annual_maximum": 1500}, location="analysis")
        assert find_structured_result(payload) == {"annual_maximum": 1500}

    def test_primary_preferred_over_legacy(self, end_of_call_report):
        payload = end_of_call_report(result={"annual_maximum": 2000})
        payload["message"]["analysis"] = {
            "structuredData": {"x": {"name": "old", "result": {"annual_maximum": 1000}}}
        }
        assert find_structured_result(payload) == {"annual_maximum": 2000}

    def test_first_named_entry_taken(self):
        payload = {"message": {"artifact": {"structuredOutputs": {
            "a": {"name": "first", "result": {"plan_type": "PPO"}},
            "b": {"name": "second", "result": {"plan_type": "HMO"}},
        }}}}
        assert find_structured_result(payload) == {"plan_type": "PPO"}

    def test_later_entry_not_used_when_first_has_no_result(self):
        payload = {"message": {"artifact": {"structuredOutputs": {
            "a": {"name": "first"},
            "b": {"name": "second", "result": {"plan_type": "HMO"}},
        }}}}
        assert find_structured_result(payload) == {}

    def test_flat_structured_data(self):
        payload = {"message": {"analysis": {"structuredData": {"patient_eligible": False}}}}
        assert find_structured_result(payload) == {"patient_eligible": False}

    def test_empty_primary_falls_to_legacy(self):
        payload = {"message": {
            "artifact": {"structuredOutputs": {}},
            "analysis": {"structuredData": {"x": {"result": {"plan_type": "PPO"}}}},
        }}
        assert find_structured_result(payload) == {"plan_type": "PPO"}

    def test_no_structured_data_is_empty(self, end_of_call_report):
        assert find_structured_result(end_of_call_report(result=None)) == {}


class TestIdentity:
    """Structured field first, then the labeled system prompt lines."""

    def test_plain_labels_scraped(self, end_of_call_report):
        payload = end_of_call_report(result={}, system_prompt="Patient: Jane Doe\nDOB: 1990-01-01")
        identity = extract(payload).identity
        assert identity["patientName"] == "Jane Doe"
        assert identity["patientDOB"] == "1990-01-01"
        assert "memberId" not in identity

    def test_structured_value_wins(self, end_of_call_report):
        payload = end_of_call_report(
            result={"patient_name": "Janet Doe", "insurance_company": "Delta Dental"},
            system_prompt="Patient: Jane Doe",
        )
        identity = extract(payload).identity
        assert identity["patientName"] == "Janet Doe"
        assert identity["insuranceCarrier"] == "Delta Dental"

    def test_rendered_prompt_labels(self):
        scraped = scrape_identity(SYSTEM_PROMPT)
        assert scraped == {
            "patientName": "Jane Doe",
            "patientDOB": "January 1, 1990",
            "memberId": "W123A",
        }

    def test_subscriber_dob_not_taken_for_patient(self):
        assert scrape_identity("Subscriber DOB: March 3, 1960") == {}

    def test_member_id_whitespace_removed(self):
        assert scrape_identity("Member ID: W12 345 678")["memberId"] == "W12345678"

    def test_missing_labels_are_not_errors(self):
        assert scrape_identity("Hello there") == {}
        assert scrape_identity(None) == {}

    def test_subscriber_id_not_taken_as_member_id(self, end_of_call_report):
        payload = end_of_call_report(result={"subscriber_id": "SUB-1"}, system_prompt="Member ID: W777")
        assert extract(payload).identity["memberId"] == "W777"

        payload = end_of_call_report(result={"subscriber_id": "SUB-1"})
        assert "memberId" not in extract(payload).identity

    def test_carrier_never_scraped(self, end_of_call_report):
        payload = end_of_call_report(result={}, system_prompt="Insurance Carrier: Aetna")
        assert "insuranceCarrier" not in extract(payload).identity

    def test_prompt_from_assistant_overrides(self):
        payload = {"message": {"type": "end-of-call-report", "call": {"assistantOverrides": {"model": {
            "messages": [{"role": "system", "content": "Patient: Sam Smith"}]
        }}}}}
        assert extract(payload).identity == {"patientName": "Sam Smith"}


class TestTelemetry:
    """Recording, transcript and duration fallbacks."""

    @pytest.mark.parametrize("seconds,expected", [
        (104, "1 min 44 sec"),
        (59, "0 min 59 sec"),
        (60, "1 min 0 sec"),
        (0, "0 min 0 sec"),
        (119.6, "2 min 0 sec"),
        (104.5, "1 min 45 sec"),
        (0.5, "0 min 1 sec"),
        (59.5, "1 min 0 sec"),
    ])
    def test_duration_formatting(self, seconds, expected):
        assert format_call_duration(seconds) == expected

    @pytest.mark.parametrize("seconds", [None, "104", True, -5])
    def test_duration_never_fabricated(self, seconds):
        assert format_call_duration(seconds) is None

    def test_recording_prefers_artifact(self, end_of_call_report):
        payload = end_of_call_report(result={})
        payload["message"]["call"]["recordingUrl"] = "https://call-level.example.com"
        assert extract(payload).telemetry.recording_url == "https://storage.example.com/rec/call-123.wav"

    def test_recording_stereo_fallback(self):
        payload = {"message": {
            "artifact": {"stereoRecordingUrl": "https://stereo.example.com"},
            "call": {"recordingUrl": "https://call-level.example.com"},
        }}
        assert extract(payload).telemetry.recording_url == "https://stereo.example.com"

    def test_recording_call_level_fallback(self):
        payload = {"message": {"call": {"recordingUrl": "https://call-level.example.com"}}}
        assert extract(payload).telemetry.recording_url == "https://call-level.example.com"

    def test_transcript_call_level_fallback(self):
        payload = {"message": {"call": {"transcript": "User: hello"}}}
        assert extract(payload).telemetry.transcript == "User: hello"

    def test_telemetry_fields(self, end_of_call_report):
        telemetry = extract(end_of_call_report(result={}, ended_reason="voicemail")).telemetry
        assert telemetry.call_id == "call-123"
        assert telemetry.ended_reason == "voicemail"
        assert telemetry.call_duration == "1 min 44 sec"

    def test_missing_duration(self, end_of_call_report):
        payload = end_of_call_report(result={})
        del payload["message"]["call"]["duration"]
        assert extract(payload).telemetry.call_duration is None


class TestExtract:
    """Whole-payload behaviour."""

    @pytest.mark.parametrize("payload", [None, [], "text", {}, {"message": None}, {"message": {"artifact": 3}}])
    def test_malformed_payload_never_raises(self, payload):
        extraction = extract(payload)
        assert extraction.structured == {}
        assert extraction.identity == {}

    def test_metadata_and_attribution(self, end_of_call_report):
        payload = end_of_call_report(
            result={"call_reference": "REF-991", "reference_number": "OLD-1", "rep_name": "Maria"},
            verification_id="65f0c0ffee0000000000abcd",
        )
        extraction = extract(payload)
        assert extraction.verification_id == "65f0c0ffee0000000000abcd"
        assert extraction.practice_id == "practice-smile-dental"
        assert extraction.attribution == {"referenceNumber": "REF-991", "repName": "Maria"}

    def test_legacy_reference_number(self, end_of_call_report):
        payload = end_of_call_report(result={"reference_number": 445566})
        assert extract(payload).attribution == {"referenceNumber": "445566"}

    def test_terminal_event_detection(self, end_of_call_report):
        assert is_terminal_event(end_of_call_report(result={}))
        assert not is_terminal_event({"message": {"type": "status-update"}})
        assert not is_terminal_event({})
