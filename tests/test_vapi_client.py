"""
Tests for the outbound call trigger: payload shape and error mapping.
"""

import pytest

from backend.vapi_client import VapiCallError, VapiClient, build_variable_values

PRACTICE = {
    "name": "Smile Dental",
    "dentistName": "Dr. Lee",
    "address": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zip": "62701",
    "phone": "5550001111",
}

PATIENT = {
    "patientName": "Jane Doe",
    "patientDOB": "January 1, 1990",
    "memberId": "W12A",
    "groupNumber": None,
}


class FakeResponse:
    def __init__(self, status, body):
        self.status = status
        self.body = body

    async def json(self):
        return self.body

    async def text(self):
        return str(self.body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        return self.response


def make_client(response):
    session = FakeSession(response)
    client = VapiClient(
        session,
        api_key="vapi-key",
        assistant_id="asst-1",
        phone_number_id="phone-1",
        base_url="https://vapi.example.com/",
        max_duration_seconds=600,
    )
    return client, session


class TestVariableValues:
    """Values substituted into the assistant prompt."""

    def test_spoken_ids_and_defaults(self):
        values = build_variable_values(PRACTICE, PATIENT)
        assert values["memberId"] == "W, one, two, A"
        assert values["groupNumber"] == "NOT AVAILABLE"
        assert values["practiceAddress"] == "1 Main St, Springfield, IL, 62701"
        assert values["npiPractice"] == "N/A"
        assert values["patientIsSubscriber"] is True

    def test_subscriber(self):
        values = build_variable_values(PRACTICE, PATIENT, {"subscriberName": "John Doe", "subscriberDOB": "March 3, 1960"})
        assert values["patientIsSubscriber"] is False
        assert values["subscriberName"] == "John Doe"


class TestStartCall:
    """Call placement against a fake HTTP session."""

    @pytest.mark.asyncio
    async def test_payload_and_call_id(self):
        client, session = make_client(FakeResponse(201, {"id": "call-abc", "status": "queued"}))

        call_id = await client.start_call(
            "+15551234567", PRACTICE, PATIENT, None, "practice-smile-dental", "65f0c0ffee0000000000abcd"
        )

        assert call_id == "call-abc"
        url, kwargs = session.calls[0]
        assert url == "https://vapi.example.com/call/phone"
        assert kwargs["headers"]["Authorization"] == "Bearer vapi-key"
        payload = kwargs["json"]
        assert payload["assistantId"] == "asst-1"
        assert payload["phoneNumberId"] == "phone-1"
        assert payload["customer"] == {"number": "+15551234567"}
        assert payload["metadata"] == {
            "practiceId": "practice-smile-dental",
            "verificationId": "65f0c0ffee0000000000abcd",
        }
        assert payload["assistantOverrides"]["maxDurationSeconds"] == 600
        assert payload["assistantOverrides"]["variableValues"]["patientName"] == "Jane Doe"

    @pytest.mark.asyncio
    async def test_error_status(self):
        client, _ = make_client(FakeResponse(400, {"message": "Invalid number"}))
        with pytest.raises(VapiCallError, match="400"):
            await client.start_call("+15551234567", PRACTICE, PATIENT, None, "p", "v")

    @pytest.mark.asyncio
    async def test_missing_call_id(self):
        client, _ = make_client(FakeResponse(201, {"status": "queued"}))
        with pytest.raises(VapiCallError):
            await client.start_call("+15551234567", PRACTICE, PATIENT, None, "p", "v")

    @pytest.mark.asyncio
    async def test_not_configured(self, monkeypatch):
        monkeypatch.delenv("VAPI_API_KEY", raising=False)
        session = FakeSession(FakeResponse(201, {"id": "call-abc"}))
        client = VapiClient(session, assistant_id="asst-1", phone_number_id="phone-1")
        with pytest.raises(VapiCallError, match="not configured"):
            await client.start_call("+15551234567", PRACTICE, PATIENT, None, "p", "v")
        assert session.calls == []
