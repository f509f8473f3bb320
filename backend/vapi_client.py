"""Outbound verification call trigger (Vapi phone-call API)."""
import os
import asyncio
from typing import Optional

import aiohttp
from loguru import logger
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from backend.speech import format_alphanumeric_for_speech
from backend.utils import mask_id

VAPI_BASE_URL = os.getenv("VAPI_BASE_URL", "https://api.vapi.ai")
VAPI_TIMEOUT_SECONDS = int(os.getenv("VAPI_TIMEOUT_SECONDS", "30"))
VAPI_MAX_DURATION_SECONDS = int(os.getenv("VAPI_MAX_DURATION_SECONDS", "4500"))

NOT_AVAILABLE = "NOT AVAILABLE"


class VapiCallError(Exception):
    """The call could not be placed."""


def _practice_address(practice: dict) -> str:
    parts = [practice.get(k) for k in ("address", "city", "state", "zip")]
    return ", ".join(p for p in parts if p) or "N/A"


def build_variable_values(practice: dict, patient: dict, subscriber: Optional[dict] = None) -> dict:
    """
    Values substituted into the assistant's prompt template.

    The template renders the patient block with "Patient Name:", "Patient DOB:"
    and "Member ID:" lines, which the call-outcome extractor reads back.
    """
    subscriber = subscriber or {}
    return {
        "practiceName": practice.get("name") or "N/A",
        "dentistName": practice.get("dentistName") or "N/A",
        "practiceAddress": _practice_address(practice),
        "practicePhone": practice.get("phone") or "N/A",
        "practiceFax": practice.get("fax") or "N/A",
        "npiPractice": practice.get("npiPractice") or "N/A",
        "npiIndividual": practice.get("npiIndividual") or "N/A",
        "taxId": practice.get("taxId") or "N/A",
        "patientName": patient["patientName"],
        "patientDOB": patient["patientDOB"],
        "patientAddress": patient.get("patientAddress") or NOT_AVAILABLE,
        "memberId": format_alphanumeric_for_speech(patient["memberId"]),
        "groupNumber": format_alphanumeric_for_speech(patient.get("groupNumber")) or NOT_AVAILABLE,
        "patientIsSubscriber": not subscriber.get("subscriberName"),
        "subscriberName": subscriber.get("subscriberName") or "",
        "subscriberDOB": subscriber.get("subscriberDOB") or "",
    }


class VapiClient:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: Optional[str] = None,
        assistant_id: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        base_url: str = VAPI_BASE_URL,
        timeout_seconds: int = VAPI_TIMEOUT_SECONDS,
        max_duration_seconds: int = VAPI_MAX_DURATION_SECONDS,
    ):
        self.session = session
        self.api_key = api_key or os.getenv("VAPI_API_KEY")
        self.assistant_id = assistant_id or os.getenv("VAPI_ASSISTANT_ID")
        self.phone_number_id = phone_number_id or os.getenv("VAPI_PHONE_NUMBER_ID")
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_duration_seconds = max_duration_seconds

    def build_call_payload(
        self,
        phone_number: str,
        practice: dict,
        patient: dict,
        subscriber: Optional[dict],
        practice_id: str,
        verification_id: str,
    ) -> dict:
        return {
            "assistantId": self.assistant_id,
            "assistantOverrides": {
                "maxDurationSeconds": self.max_duration_seconds,
                "variableValues": build_variable_values(practice, patient, subscriber),
                "voicemailDetection": {"provider": "vapi"},
            },
            "phoneNumberId": self.phone_number_id,
            "customer": {"number": phone_number},
            "metadata": {
                "practiceId": practice_id,
                "verificationId": verification_id,
            },
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((aiohttp.ClientConnectionError, asyncio.TimeoutError)),
        reraise=True
    )
    async def _post_call(self, payload: dict) -> dict:
        async with asyncio.timeout(self.timeout_seconds):
            async with self.session.post(
                f"{self.base_url}/call/phone",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            ) as response:
                if response.status >= 300:
                    error_text = await response.text()
                    raise VapiCallError(f"Vapi API error ({response.status}): {error_text}")
                return await response.json()

    async def start_call(
        self,
        phone_number: str,
        practice: dict,
        patient: dict,
        subscriber: Optional[dict],
        practice_id: str,
        verification_id: str,
    ) -> str:
        """Place the call and return the external call id."""
        if not self.api_key or not self.assistant_id or not self.phone_number_id:
            raise VapiCallError("Vapi is not configured (VAPI_API_KEY, VAPI_ASSISTANT_ID, VAPI_PHONE_NUMBER_ID)")

        payload = self.build_call_payload(
            phone_number, practice, patient, subscriber, practice_id, verification_id
        )

        try:
            body = await self._post_call(payload)
        except asyncio.TimeoutError:
            raise VapiCallError(f"Vapi API timed out after {self.timeout_seconds}s")
        except aiohttp.ClientError as e:
            raise VapiCallError(f"Vapi API unreachable: {e}")

        call_id = body.get("id") if isinstance(body, dict) else None
        if not call_id:
            raise VapiCallError("Vapi API response did not include a call id")

        logger.info(f"Vapi call {mask_id(call_id)} started for verification {verification_id}")
        return call_id
