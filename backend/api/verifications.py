from fastapi import APIRouter, HTTPException, Request, Depends
from slowapi import Limiter
from loguru import logger

from backend.dependencies import (
    get_current_user,
    get_current_practice_id,
    get_practice_db,
    get_user_id_from_request,
    get_vapi_client,
    get_verification_db
)
from backend.models import AsyncPracticeRecord, AsyncVerificationRecord
from backend.schemas import (
    VerificationCallRequest,
    VerificationCallResponse,
    VerificationCreate,
    VerificationUpdate
)
from backend.speech import InvalidPhoneNumber, format_date_for_speech, normalize_phone_number
from backend.utils import convert_objectid, mask_id
from backend.vapi_client import VapiCallError, VapiClient
from benefits.normalizer import load_benefits
from benefits.presentation import build_view

router = APIRouter()
limiter = Limiter(key_func=get_user_id_from_request)


def verification_response(doc: dict) -> dict:
    """Stored verification as API JSON: string id, benefits decoded."""
    verification = convert_objectid(doc)
    verification["benefits"] = load_benefits(verification.get("benefits"))
    return verification


@router.post("/call", status_code=201, response_model=VerificationCallResponse)
@limiter.limit("10/minute")
async def start_verification_call(
    call_request: VerificationCallRequest,
    request: Request,
    current_user: dict = Depends(get_current_user),
    practice_id: str = Depends(get_current_practice_id),
    verification_db: AsyncVerificationRecord = Depends(get_verification_db),
    practice_db: AsyncPracticeRecord = Depends(get_practice_db),
    vapi: VapiClient = Depends(get_vapi_client)
):
    """Create an in-progress verification and place the call for it."""
    try:
        phone_number = normalize_phone_number(call_request.phone_number)
    except InvalidPhoneNumber as e:
        raise HTTPException(status_code=400, detail=str(e))

    practice = await practice_db.get_by_id(practice_id)
    if not practice:
        raise HTTPException(status_code=404, detail="Practice not found")

    spoken_dob = format_date_for_speech(call_request.patient_dob)
    subscriber = None
    if call_request.subscriber_name:
        subscriber = {
            "subscriberName": call_request.subscriber_name,
            "subscriberDOB": format_date_for_speech(call_request.subscriber_dob) if call_request.subscriber_dob else "",
        }

    verification_id = await verification_db.create({
        "practiceId": practice_id,
        "status": "in_progress",
        "patientName": call_request.patient_name,
        "patientDOB": spoken_dob,
        "memberId": call_request.member_id,
        "insuranceCarrier": call_request.insurance_carrier,
        "phoneNumber": phone_number,
        "createdById": current_user["sub"],
    })

    patient = {
        "patientName": call_request.patient_name,
        "patientDOB": spoken_dob,
        "memberId": call_request.member_id,
        "groupNumber": call_request.group_number,
        "patientAddress": call_request.patient_address,
    }

    try:
        call_id = await vapi.start_call(
            phone_number=phone_number,
            practice=practice,
            patient=patient,
            subscriber=subscriber,
            practice_id=practice_id,
            verification_id=verification_id,
        )
    except VapiCallError as e:
        logger.error(f"Vapi call trigger failed for verification {verification_id}: {e}")
        await verification_db.mark_failed(verification_id)
        raise HTTPException(status_code=502, detail="Failed to start verification call. Please try again.")

    await verification_db.set_call_id(verification_id, call_id)
    logger.info(f"Verification {verification_id} call started ({mask_id(call_id)}) by user {mask_id(current_user['sub'])}")

    return VerificationCallResponse(verification_id=verification_id)


@router.get("")
async def list_verifications(
    practice_id: str = Depends(get_current_practice_id),
    verification_db: AsyncVerificationRecord = Depends(get_verification_db)
):
    docs = await verification_db.list_by_practice(practice_id)
    verifications = [verification_response(doc) for doc in docs]
    logger.info(f"Returning {len(verifications)} verifications for practice {mask_id(practice_id)}")
    return {
        "verifications": verifications,
        "totalCount": len(verifications)
    }


@router.post("", status_code=201)
async def create_verification(
    verification: VerificationCreate,
    current_user: dict = Depends(get_current_user),
    practice_id: str = Depends(get_current_practice_id),
    verification_db: AsyncVerificationRecord = Depends(get_verification_db)
):
    fields = verification.to_document()
    fields.update({"practiceId": practice_id, "createdById": current_user["sub"]})

    verification_id = await verification_db.create(fields)
    doc = await verification_db.get_by_id(verification_id, practice_id)
    return verification_response(doc)


@router.get("/{verification_id}")
async def get_verification(
    verification_id: str,
    practice_id: str = Depends(get_current_practice_id),
    verification_db: AsyncVerificationRecord = Depends(get_verification_db)
):
    doc = await verification_db.get_by_id(verification_id, practice_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Verification not found")
    return verification_response(doc)


@router.get("/{verification_id}/view")
async def get_verification_view(
    verification_id: str,
    practice_id: str = Depends(get_current_practice_id),
    verification_db: AsyncVerificationRecord = Depends(get_verification_db)
):
    """Benefits breakdown with every field under its current name."""
    doc = await verification_db.get_by_id(verification_id, practice_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Verification not found")

    verification = convert_objectid(doc)
    raw_benefits = verification.pop("benefits", None)
    return {
        "verification": verification,
        "benefits": build_view(raw_benefits) if raw_benefits is not None else None,
    }


@router.patch("/{verification_id}")
async def update_verification(
    verification_id: str,
    update: VerificationUpdate,
    practice_id: str = Depends(get_current_practice_id),
    verification_db: AsyncVerificationRecord = Depends(get_verification_db)
):
    changes = update.changes()
    doc = await verification_db.update(verification_id, changes, practice_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Verification not found")

    logger.info(f"Verification {verification_id} edited: {sorted(changes)}")
    return verification_response(doc)


@router.delete("/{verification_id}")
async def delete_verification(
    verification_id: str,
    practice_id: str = Depends(get_current_practice_id),
    verification_db: AsyncVerificationRecord = Depends(get_verification_db)
):
    deleted = await verification_db.delete(verification_id, practice_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Verification not found")

    logger.info(f"Verification {verification_id} deleted")
    return {"success": True}
