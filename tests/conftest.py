"""
Shared fixtures: environment, in-memory Mongo, end-of-call payload builders.
"""

import os

os.environ["ENV"] = "local"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017/")
os.environ.setdefault("ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.pop("VAPI_WEBHOOK_SECRET", None)

import pytest
from mongomock_motor import AsyncMongoMockClient

from backend.models.practice import AsyncPracticeRecord
from backend.models.verification import AsyncVerificationRecord

PRACTICE_ID = "practice-smile-dental"
OTHER_PRACTICE_ID = "practice-other"


@pytest.fixture
def mongo_client():
    return AsyncMongoMockClient()


@pytest.fixture
def verification_db(mongo_client):
    return AsyncVerificationRecord(mongo_client)


@pytest.fixture
def practice_db(mongo_client):
    return AsyncPracticeRecord(mongo_client)


def make_end_of_call_report(
    result=None,
    ended_reason="customer-ended-call",
    duration=104,
    call_id="call-123",
    verification_id=None,
    practice_id=PRACTICE_ID,
    system_prompt=None,
    location="structuredOutputs",
):
    """Build a Vapi end-of-call-report payload."""
    metadata = {"practiceId": practice_id}
    if verification_id:
        metadata["verificationId"] = verification_id

    message = {
        "type": "end-of-call-report",
        "call": {
            "id": call_id,
            "status": "ended",
            "endedReason": ended_reason,
            "duration": duration,
            "metadata": metadata,
        },
        "artifact": {
            "recordingUrl": "https://storage.example.com/rec/call-123.wav",
            "transcript": "AI: Hi, I'm calling to verify benefits.\nUser: Sure.",
        },
    }

    if result is not None:
        outputs = {"d1f0-4a": {"name": "dental_benefits", "result": result}}
        if location == "structuredOutputs":
            message["artifact"]["structuredOutputs"] = outputs
        else:
            message["analysis"] = {"structuredData": outputs, "summary": "Verified benefits."}

    if system_prompt is not None:
        message["artifact"]["messages"] = [
            {"role": "system", "message": system_prompt},
            {"role": "bot", "message": "Hi, I'm calling to verify benefits."},
        ]

    return {"message": message}


@pytest.fixture
def end_of_call_report():
    return make_end_of_call_report
