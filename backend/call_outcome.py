"""
Terminal call-outcome processing.

Extract -> normalize -> classify -> one conditional store write.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from loguru import logger

from backend.models.practice import AsyncPracticeRecord
from backend.models.verification import AsyncVerificationRecord, TerminalUpdateResult
from backend.utils import mask_id
from benefits.extractor import Extraction, extract
from benefits.normalizer import normalize_benefits
from benefits.status import VerificationStatus, classify_call

UNKNOWN_PATIENT = "Unknown Patient"


class OutcomeAction(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    UNMATCHED = "unmatched"


@dataclass
class OutcomeResult:
    action: OutcomeAction
    verification_id: Optional[str] = None
    status: Optional[VerificationStatus] = None

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": True, "action": self.action.value}
        if self.verification_id:
            body["verificationId"] = self.verification_id
        if self.status:
            body["status"] = self.status.value
        return body


def telemetry_fields(extraction: Extraction) -> Dict[str, Any]:
    telemetry = extraction.telemetry
    fields = {
        "callId": telemetry.call_id,
        "callDuration": telemetry.call_duration,
        "recordingUrl": telemetry.recording_url,
        "transcript": telemetry.transcript,
        "endedReason": telemetry.ended_reason,
    }
    fields.update(extraction.attribution)
    return {k: v for k, v in fields.items() if v is not None}


async def _match_verification(
    extraction: Extraction,
    verification_db: AsyncVerificationRecord
) -> Optional[dict]:
    if extraction.verification_id:
        verification = await verification_db.get_by_id(extraction.verification_id)
        if verification:
            return verification
    if extraction.telemetry.call_id:
        return await verification_db.find_by_call_id(extraction.telemetry.call_id)
    return None


async def _create_for_unlinked_call(
    extraction: Extraction,
    verification_db: AsyncVerificationRecord,
    practice_db: AsyncPracticeRecord
) -> Optional[str]:
    """Calls placed outside the trigger carry only a practice id."""
    if not extraction.practice_id or not await practice_db.exists(extraction.practice_id):
        return None

    identity = extraction.identity
    return await verification_db.create({
        "practiceId": extraction.practice_id,
        "status": VerificationStatus.IN_PROGRESS.value,
        "patientName": identity.get("patientName") or UNKNOWN_PATIENT,
        "patientDOB": identity.get("patientDOB") or "",
        "memberId": identity.get("memberId") or "",
        "insuranceCarrier": identity.get("insuranceCarrier") or "",
        "callId": extraction.telemetry.call_id,
        "createdById": None,
    })


async def process_call_outcome(
    payload: Dict[str, Any],
    verification_db: AsyncVerificationRecord,
    practice_db: AsyncPracticeRecord
) -> OutcomeResult:
    """
    Apply a terminal call-outcome event to its verification.

    Duplicate or late deliveries are reported, not raised. Store failures
    propagate so the caller answers with an error.
    """
    extraction = extract(payload)
    benefits = normalize_benefits(extraction.structured)
    status = classify_call(extraction.telemetry.ended_reason, benefits)

    verification = await _match_verification(extraction, verification_db)
    if verification is not None:
        verification_id = str(verification["_id"])
    else:
        verification_id = await _create_for_unlinked_call(extraction, verification_db, practice_db)
        if verification_id is None:
            logger.warning(
                f"No verification matched call {mask_id(extraction.telemetry.call_id)} "
                f"(verificationId={extraction.verification_id}, practiceId={extraction.practice_id})"
            )
            return OutcomeResult(OutcomeAction.UNMATCHED)
        logger.info(f"Created verification {verification_id} for unlinked call {mask_id(extraction.telemetry.call_id)}")

    result = await verification_db.update_terminal(
        verification_id,
        status,
        benefits,
        telemetry=telemetry_fields(extraction),
        identity=extraction.identity,
    )

    if result is TerminalUpdateResult.APPLIED:
        logger.info(
            f"Verification {verification_id} -> {status.value} "
            f"(endedReason={extraction.telemetry.ended_reason}, fields={len(extraction.structured)})"
        )
        return OutcomeResult(OutcomeAction.APPLIED, verification_id, status)

    if result is TerminalUpdateResult.ALREADY_TERMINAL:
        logger.warning(f"Duplicate terminal event for verification {verification_id}, ignored")
        return OutcomeResult(OutcomeAction.DUPLICATE, verification_id)

    logger.warning(f"Verification {verification_id} disappeared before terminal update")
    return OutcomeResult(OutcomeAction.UNMATCHED, verification_id)
